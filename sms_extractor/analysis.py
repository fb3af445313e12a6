"""Analysis module: recurring debits (EMIs, subscriptions) and salary credits.

Works on stored transaction dicts (TransactionRecord.to_dict()):
amount_minor in paise, ts in epoch milliseconds, type, merchant.
"""
import logging
import re
from collections import Counter, defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List

from fuzzywuzzy import fuzz

logger = logging.getLogger(__name__)

SALARY_KEYWORDS = ['salary', 'sal credit', 'wages', 'payroll', 'remuneration', 'stipend']
DESCRIPTION_NOISE = re.compile(r'\b\d{2,}/\d{2,}/\d{2,}\b|\b\d{6,}\b|[x*]{4,}')


def _month(ts_millis: int) -> str:
    return datetime.fromtimestamp(ts_millis / 1000, tz=timezone.utc).strftime('%Y-%m')


def _date(ts_millis: int) -> str:
    return datetime.fromtimestamp(ts_millis / 1000, tz=timezone.utc).strftime('%Y-%m-%d')


def _description(t: Dict[str, Any]) -> str:
    return DESCRIPTION_NOISE.sub('', (t.get('merchant') or '').strip().lower()).strip()


def analyze_recurring_debits(transactions: List[Dict[str, Any]], min_occurrences: int = 3,
                             amount_tolerance: float = 0.05, desc_similarity_threshold: int = 80) -> List[Dict[str, Any]]:
    """
    Identify debits that repeat month after month at a stable amount.

    Args:
        transactions: stored transaction dicts
        min_occurrences: minimum repeats (and distinct months) to report
        amount_tolerance: allowed relative deviation from the most common amount
        desc_similarity_threshold: fuzzy merchant similarity to group on

    Returns:
        List of recurring-debit summaries
    """
    logger.info("Analyzing recurring debits (potential EMIs/subscriptions)...")
    debits = [t for t in transactions
              if t.get('type') == 'DEBIT' and not t.get('ignore_for_totals') and _description(t)]
    if len(debits) < min_occurrences:
        logger.info("Not enough debit transactions to analyze for recurrence.")
        return []

    groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    processed = set()
    for i, current in enumerate(debits):
        if i in processed:
            continue
        key = _description(current)
        groups[key].append(current)
        processed.add(i)
        for j in range(i + 1, len(debits)):
            if j in processed:
                continue
            if fuzz.token_sort_ratio(key, _description(debits[j])) >= desc_similarity_threshold:
                groups[key].append(debits[j])
                processed.add(j)

    results = []
    for desc, group in groups.items():
        if len(group) < min_occurrences:
            continue
        most_common_amount, _ = Counter(t['amount_minor'] for t in group).most_common(1)[0]
        recurring = [t for t in group
                     if abs(t['amount_minor'] - most_common_amount) <= most_common_amount * amount_tolerance]
        if len(recurring) < min_occurrences:
            continue
        recurring.sort(key=lambda t: t['ts'])
        months = {_month(t['ts']) for t in recurring}
        if len(months) < min_occurrences:
            continue
        results.append({
            'description_pattern': desc,
            'estimated_amount': most_common_amount / 100,
            'occurrences': len(recurring),
            'first_occurrence_date': _date(recurring[0]['ts']),
            'last_occurrence_date': _date(recurring[-1]['ts']),
            'transaction_ids': [t.get('id') for t in recurring],
        })
        logger.info(f"Identified recurring debit: Desc='{desc}', Amt={most_common_amount / 100:.2f}, "
                    f"Occurrences={len(recurring)}")
    return results


def analyze_salary_credits(transactions: List[Dict[str, Any]], min_occurrences: int = 2) -> List[Dict[str, Any]]:
    """Credits that look like salary: keyword-named, or a large amount repeating across months."""
    logger.info("Analyzing potential salary credits...")
    credits = sorted((t for t in transactions if t.get('type') == 'CREDIT' and not t.get('ignore_for_totals')),
                     key=lambda t: t['amount_minor'], reverse=True)
    candidates = credits[:max(10, len(credits) // 5)]
    if len(candidates) < min_occurrences:
        logger.info("Not enough credit transactions to analyze for salary.")
        return []

    keyword_group = []
    other_large = []
    for t in candidates:
        text = f"{t.get('merchant') or ''} {t.get('raw_body') or ''}".lower()
        if any(keyword in text for keyword in SALARY_KEYWORDS):
            keyword_group.append(t)
        else:
            other_large.append(t)

    results = []
    if len(keyword_group) >= min_occurrences:
        keyword_group.sort(key=lambda t: t['ts'])
        if len({_month(t['ts']) for t in keyword_group}) >= min_occurrences:
            avg = sum(t['amount_minor'] for t in keyword_group) / len(keyword_group)
            results.append(_salary_info('Keyword-Based', keyword_group, avg))

    if other_large:
        most_common_amount, count = Counter(t['amount_minor'] for t in other_large).most_common(1)[0]
        if count >= min_occurrences:
            same_amount = sorted((t for t in other_large if t['amount_minor'] == most_common_amount),
                                 key=lambda t: t['ts'])
            if len({_month(t['ts']) for t in same_amount}) >= min_occurrences:
                results.append(_salary_info('Amount-Based', same_amount, most_common_amount))

    for info in results:
        logger.info(f"Identified potential salary ({info['type']}): Avg Amt={info['estimated_amount']:.2f}, "
                    f"Occurrences={info['occurrences']}")
    return results


def _salary_info(kind: str, group: List[Dict[str, Any]], amount_minor: float) -> Dict[str, Any]:
    return {
        'type': kind,
        'description_sample': group[0].get('merchant'),
        'estimated_amount': amount_minor / 100,
        'occurrences': len(group),
        'first_occurrence_date': _date(group[0]['ts']),
        'last_occurrence_date': _date(group[-1]['ts']),
        'transaction_ids': [t.get('id') for t in group],
    }
