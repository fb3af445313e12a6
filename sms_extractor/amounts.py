"""Picks the transaction amount when a message quotes several currency figures.

"Rs.500 debited ... Avl Bal Rs.10,000" must resolve to 500, so each
candidate is scored by the cues around it: debit and credit verbs pull a
figure up, balance and limit wording pushes it down, and later positions
pay a small penalty so ties go to the first figure.
"""
import logging
import re
from decimal import Decimal
from typing import List, Optional, Tuple

from .patterns import AMOUNT_PATTERNS, find_amount_candidates, first_group
from .utils import parse_amount_safe

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 90
DEBIT_WEIGHT = 5.0
CREDIT_WEIGHT = 4.0
BALANCE_WEIGHT = -6.0
POSITION_PENALTY = 0.5

DEBIT_CONTEXT = re.compile(r'\b(?:debited|spent|withdrawn|paid|purchase|sent|deducted|txn)\b', re.I)
CREDIT_CONTEXT = re.compile(r'\b(?:credited|received|deposit(?:ed)?|refund(?:ed)?|cashback)\b', re.I)
BALANCE_CONTEXT = re.compile(
    r'avl\.?\s*bal|avbl\.?\s*bal|available\s+bal(?:ance)?|closing\s+bal(?:ance)?|current\s+bal(?:ance)?'
    r'|\boutstanding\b|total\s+due|minimum\s+due|min\.?\s+due|avl\.?\s*(?:credit\s+)?limit'
    r'|available\s+(?:credit\s+)?limit|credit\s+limit|\bbal\b', re.I)


def score_candidate(text: str, start: int, end: int) -> float:
    window = text[max(0, start - CONTEXT_CHARS):min(len(text), end + CONTEXT_CHARS)]
    score = 0.0
    if DEBIT_CONTEXT.search(window):
        score += DEBIT_WEIGHT
    if CREDIT_CONTEXT.search(window):
        score += CREDIT_WEIGHT
    if BALANCE_CONTEXT.search(window):
        score += BALANCE_WEIGHT
    score -= POSITION_PENALTY * (start / max(len(text), 1))
    return score


def rank_candidates(text: str) -> List[Tuple[float, Decimal, int]]:
    """Scored (score, value, start) for every currency figure, best first."""
    ranked = [(score_candidate(text, start, end), value, start)
              for value, start, end in find_amount_candidates(text)]
    # stable sort keeps earlier figures ahead on equal scores
    ranked.sort(key=lambda item: item[0], reverse=True)
    return ranked


def extract_amount(text: str) -> Optional[Decimal]:
    """Return the transaction amount, or None when no figure parses."""
    if not text:
        return None
    candidates = find_amount_candidates(text)
    if len(candidates) == 1:
        return candidates[0][0]
    if len(candidates) > 1:
        ranked = rank_candidates(text)
        logger.debug(f"Amount candidates {[(str(v), round(s, 2)) for s, v, _ in ranked]}")
        return ranked[0][1]
    # No currency marker; fall back to "Amount: 500" / "debited by 500" styles.
    raw = first_group(AMOUNT_PATTERNS[1:], text)
    return parse_amount_safe(raw) if raw else None
