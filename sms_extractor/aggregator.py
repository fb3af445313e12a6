"""Batch aggregation over classifier output.

Classifies a batch of SMS, then marks debit/credit pairs of the same
amount inside a ten-minute window that look like the same counterparty,
skips card-bill payments and refunds, and totals what is left.
"""
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional

import pandas as pd
from fuzzywuzzy import fuzz

from .classifier import SmsMultiTaskClassifier, analyze_sms_with_timeout
from .models import Direction, ParsedRow, RawMessage, to_minor_units
from .noise import is_noise
from .patterns import extract_account_tail, extract_reference
from .transfers import STRONG_HINTS, WEAK_HINTS

logger = logging.getLogger(__name__)

CARDPAY_SKIP = re.compile(r'(?:payment\s+of|online\s+payment).*\b(?:card|cc)\b|\bcredited\s+to\s+your\s+card\b', re.I)
REFUND_SKIP = re.compile(r'\b(?:refund|reversal|reversed|chargeback|cashback)\b', re.I)
COUNTERPARTY_SIMILARITY = 90

COLUMNS = ['timestamp_millis', 'direction', 'amount_minor', 'account_tail', 'counterparty',
           'ref_id', 'raw_text', 'ignore_for_calculations']


@dataclass
class AggregationResult:
    rows: pd.DataFrame
    total_credits: Decimal = Decimal('0')
    total_debits: Decimal = Decimal('0')
    paired_count: int = 0
    skipped_count: int = 0
    dropped_messages: int = 0
    notes: List[str] = field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.total_credits - self.total_debits

    def summary(self) -> str:
        return (f"{len(self.rows)} transactions, credits Rs.{self.total_credits:,.2f}, "
                f"debits Rs.{self.total_debits:,.2f}, net Rs.{self.net:,.2f} "
                f"({self.paired_count} paired legs, {self.skipped_count} skipped, "
                f"{self.dropped_messages} messages dropped)")


def is_likely_same_counterparty(a: pd.Series, b: pd.Series) -> bool:
    """Same reference, same account tail, near-identical counterparty, or self-transfer wording."""
    if a.ref_id and b.ref_id and a.ref_id == b.ref_id:
        return True
    if a.account_tail and b.account_tail and a.account_tail == b.account_tail:
        return True
    if a.counterparty and b.counterparty:
        if fuzz.token_sort_ratio(str(a.counterparty).lower(), str(b.counterparty).lower()) >= COUNTERPARTY_SIMILARITY:
            return True
    for text in (a.raw_text, b.raw_text):
        if STRONG_HINTS.search(text) or WEAK_HINTS.search(text):
            return True
    return False


def mark_offsetting_pairs(df: pd.DataFrame, window_millis: int) -> int:
    """Two-pointer walk over debits and credits of each amount. Returns legs marked."""
    marked = 0
    for _, group in df.groupby('amount_minor'):
        debits = group[group['direction'] == Direction.DEBIT.value].sort_values('timestamp_millis')
        credits = group[group['direction'] == Direction.CREDIT.value].sort_values('timestamp_millis')
        i = j = 0
        while i < len(debits) and j < len(credits):
            debit = debits.iloc[i]
            credit = credits.iloc[j]
            gap = credit.timestamp_millis - debit.timestamp_millis
            if abs(gap) <= window_millis and is_likely_same_counterparty(debit, credit):
                df.at[debit.name, 'ignore_for_calculations'] = True
                df.at[credit.name, 'ignore_for_calculations'] = True
                marked += 2
                i += 1
                j += 1
            elif debit.timestamp_millis <= credit.timestamp_millis:
                i += 1
            else:
                j += 1
    return marked


def skip_for_totals(df: pd.DataFrame) -> int:
    """Flag card-bill payments and refunds so they never reach the totals."""
    mask = df['raw_text'].str.contains(CARDPAY_SKIP) | df['raw_text'].str.contains(REFUND_SKIP)
    newly = mask & ~df['ignore_for_calculations']
    df.loc[mask, 'ignore_for_calculations'] = True
    return int(newly.sum())


class TransactionAggregator:
    """Classifier-driven batch totals, independent of the dialect parsers."""

    def __init__(self, classifier: Optional[SmsMultiTaskClassifier] = None, window_millis: int = 600_000,
                 timeout_seconds: Optional[float] = None):
        self.classifier = classifier or SmsMultiTaskClassifier()
        self.window_millis = window_millis
        self.timeout_seconds = timeout_seconds

    def _analyze(self, text: str):
        if self.timeout_seconds:
            return analyze_sms_with_timeout(self.classifier, text, self.timeout_seconds)
        return self.classifier.analyze_sms(text)

    def classify_rows(self, messages: Iterable[RawMessage]) -> List[ParsedRow]:
        rows = []
        for message in messages:
            if is_noise(message.body):
                continue
            analysis = self._analyze(message.body)
            if not analysis.is_transactional or analysis.amount is None or analysis.direction is None:
                continue
            rows.append(ParsedRow(
                timestamp_millis=message.timestamp_millis,
                direction=analysis.direction,
                amount_minor=to_minor_units(analysis.amount),
                account_tail=extract_account_tail(message.body),
                counterparty=analysis.merchant,
                ref_id=extract_reference(message.body),
                raw_text=message.body,
            ))
        return rows

    def process_batch(self, messages: Iterable[RawMessage]) -> AggregationResult:
        messages = list(messages)
        rows = self.classify_rows(messages)
        df = pd.DataFrame(
            [{
                'timestamp_millis': r.timestamp_millis,
                'direction': r.direction.value,
                'amount_minor': r.amount_minor,
                'account_tail': r.account_tail,
                'counterparty': r.counterparty,
                'ref_id': r.ref_id,
                'raw_text': r.raw_text,
                'ignore_for_calculations': r.ignore_for_calculations,
            } for r in rows],
            columns=COLUMNS,
        )
        result = AggregationResult(rows=df, dropped_messages=len(messages) - len(rows))
        if df.empty:
            return result

        df['ignore_for_calculations'] = df['ignore_for_calculations'].astype(bool)
        result.paired_count = mark_offsetting_pairs(df, self.window_millis)
        result.skipped_count = skip_for_totals(df)

        counted = df[~df['ignore_for_calculations']]
        credit_paise = int(counted.loc[counted['direction'] == Direction.CREDIT.value, 'amount_minor'].sum())
        debit_paise = int(counted.loc[counted['direction'] == Direction.DEBIT.value, 'amount_minor'].sum())
        result.total_credits = Decimal(credit_paise) / 100
        result.total_debits = Decimal(debit_paise) / 100
        logger.info(f"Aggregated batch: {result.summary()}")
        return result
