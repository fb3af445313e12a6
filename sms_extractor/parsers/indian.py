"""Indian Bank SMS dialect: debits are usually worded "deducted"."""
import re
from typing import Optional

from ..models import Direction
from .. import patterns as P
from .icici import ICICI_CHANNEL_PATTERNS
from .rules import DialectProfile, DialectRules, resolve_direction

INDIAN_SENDERS = frozenset({'INDIAN', 'INDIANB', 'INDIANBANK', 'INDBNK'})
INDIAN_DLT_PATTERNS = (re.compile(r'INDIAN[A-Z0-9]{4,}'),)

DEDUCTED_REGEX = re.compile(r'\bdeducted\b', re.IGNORECASE)


def indian_direction(body: str) -> Optional[Direction]:
    direction = resolve_direction(body)
    if direction is None and DEDUCTED_REGEX.search(body):
        return Direction.DEBIT
    return direction


INDIAN_RULES = DialectRules(
    transaction_keywords=P.BASE_TRANSACTION_KEYWORDS + ('deducted',),
    direction_resolver=indian_direction,
    channel_patterns=ICICI_CHANNEL_PATTERNS,
)

INDIAN_PROFILE = DialectProfile(
    bank_name='Indian Bank',
    senders=INDIAN_SENDERS,
    dlt_patterns=INDIAN_DLT_PATTERNS,
    rules=INDIAN_RULES,
)
