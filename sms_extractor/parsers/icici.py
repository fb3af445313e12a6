"""ICICI Bank SMS dialect."""
import re
from typing import Optional

from ..models import Channel, Direction
from .. import patterns as P
from .rules import DialectProfile, DialectRules, resolve_direction

I = re.IGNORECASE

ICICI_SENDERS = frozenset({'ICICI', 'ICICIB', 'ICICIBANK'})
ICICI_DLT_PATTERNS = (re.compile(r'ICICI[A-Z0-9]{6,}'), re.compile(r'ICICIB[A-Z0-9]{5,}'))

CARD_SPEND_REGEX = re.compile(r'spent\s+(?:using|on)\s+(?:your\s+)?(?:icici\s+bank\s+)?credit\s+card', I)
CARD_AT_REGEX = re.compile(r'\bcard\b.*?\bat\s+' + P.MERCHANT_CAPTURE, I)

# UPI first, then card, then ATM.
ICICI_CHANNEL_ORDER = (Channel.UPI, Channel.CARD, Channel.ATM, Channel.IMPS, Channel.NEFT,
                       Channel.RTGS, Channel.POS, Channel.NETBANKING)
ICICI_CHANNEL_PATTERNS = tuple(
    (channel, pattern)
    for wanted in ICICI_CHANNEL_ORDER
    for channel, pattern in P.CHANNEL_PATTERNS
    if channel == wanted
)


def is_credit_card_spend(body: str) -> bool:
    """"Spent on your ICICI Bank Credit Card" is a card spend, never a bank debit notice."""
    if P.CARD_BILL_PAYMENT.search(body) and not CARD_SPEND_REGEX.search(body):
        return False
    return bool(CARD_SPEND_REGEX.search(body))


def icici_direction(body: str) -> Optional[Direction]:
    if is_credit_card_spend(body):
        return Direction.DEBIT
    return resolve_direction(body)


def icici_merchant(body: str) -> Optional[str]:
    if re.search(r'\bATM\b', body, I) and re.search(r'\bwithdrawn\b', body, I):
        return 'ATM'
    match = CARD_AT_REGEX.search(body)
    if match:
        candidate = P.clean_merchant_name(match.group(1))
        if P.is_valid_merchant_name(candidate):
            return candidate
    return None


ICICI_RULES = DialectRules(
    direction_resolver=icici_direction,
    credit_card_spend=is_credit_card_spend,
    merchant_resolver=icici_merchant,
    channel_patterns=ICICI_CHANNEL_PATTERNS,
)

ICICI_PROFILE = DialectProfile(
    bank_name='ICICI Bank',
    senders=ICICI_SENDERS,
    dlt_patterns=ICICI_DLT_PATTERNS,
    rules=ICICI_RULES,
)
