"""UPI-first wallets and neo-banks: Jio Payments Bank, Jupiter, slice.

Their alerts are almost all UPI, often phrased "UPI payment of Rs.X to Y"
with no debit verb, so a bare UPI mention counts as a debit and the
channel defaults to UPI.
"""
import re
from typing import Iterable, Optional

from ..models import Channel, Direction
from .. import patterns as P
from .rules import DialectProfile, DialectRules, resolve_direction

UPI_WORD = re.compile(r'\bUPI\b', re.IGNORECASE)


def upi_first_direction(body: str) -> Optional[Direction]:
    direction = resolve_direction(body)
    if direction is None and UPI_WORD.search(body):
        return Direction.DEBIT
    return direction


UPI_FIRST_RULES = DialectRules(
    transaction_keywords=P.BASE_TRANSACTION_KEYWORDS + ('upi', 'sent'),
    direction_resolver=upi_first_direction,
    default_channel=Channel.UPI,
)


def upi_first_profile(bank_name: str, senders: Iterable[str], dlt_prefix: str) -> DialectProfile:
    return DialectProfile(
        bank_name=bank_name,
        senders=frozenset(senders),
        dlt_patterns=(re.compile(dlt_prefix + r'[A-Z0-9]{3,}'),),
        rules=UPI_FIRST_RULES,
    )


JIO_PROFILE = upi_first_profile('Jio Payments Bank', ('JIO', 'JIOPAY', 'JIOPAYMENTS', 'JIOPBS'), 'JIOP')
JUPITER_PROFILE = upi_first_profile('Jupiter', ('JUPITER', 'JUPITERBANK', 'JUPITR'), 'JUPIT')
SLICE_PROFILE = upi_first_profile('slice', ('SLICE', 'SLICEPAY', 'SLICEIT'), 'SLICE')
