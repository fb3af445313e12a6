"""HDFC Bank SMS dialect.

HDFC sends e-mandate and "will be debited" notices that look like debits
but move no money, card spends that carry a BLOCK CC footer, and salary
credits whose payer is buried in a dash-separated NEFT narration.
"""
import logging
import re
from typing import Optional

from ..models import Direction, MandateInfo
from .. import patterns as P
from ..utils import parse_amount_safe, parse_date_flexible
from .rules import DialectProfile, DialectRules, resolve_direction

logger = logging.getLogger(__name__)

I = re.IGNORECASE

HDFC_SENDERS = frozenset({'HDFCBK', 'HDFCBANK', 'HDFC', 'HDFCB'})
HDFC_DLT_PATTERNS = (re.compile(r'HDFC[A-Z0-9]{6,}'), re.compile(r'HDFCB[A-Z0-9]{5,}'))

SALARY_PATTERNS = [
    re.compile(r'\bfor\s+[^-\s][^-]*-[^-]+-[^-]+-[^-]+-([^-.]+)', I),
    re.compile(r'\bSALARY-([^-.]+)', I),
]
ATM_REGEX = re.compile(r'\bwithdrawn\b|\bATM\b', I)
BLOCK_CC_REGEX = re.compile(r'block\s+p?cc\b', I)
BLOCK_DC_REGEX = re.compile(r'block\s+dc\b', I)
SPENT_ON_CARD_REGEX = re.compile(r'\bspent\b.*\bcard\b', I)
SENT_FROM_HDFC_REGEX = re.compile(r'\bsent\b.*\bfrom\s+hdfc\b', I)
DEDUCTED_REGEX = re.compile(r'\bdeducted\b', I)

HDFC_ACCOUNT_PATTERNS = [re.compile(r'\bHDFC\s+Bank\s+(?:A/c\s*)?[X*]*(\d{4})\b', I)] + P.ACCOUNT_TAIL_PATTERNS
HDFC_BALANCE_PATTERNS = [
    re.compile(r'Avl\s*bal\s*:?\s*INR\s*' + P.AMOUNT_NUMBER, I),
    re.compile(r'Available\s+Balance\s*:?\s*INR\s*' + P.AMOUNT_NUMBER, I),
    re.compile(r'\bBal\s+Rs\.?\s*' + P.AMOUNT_NUMBER, I),
] + P.BALANCE_PATTERNS

MANDATE_DATE_REGEX = re.compile(r'\bon\s+(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})', I)
FUTURE_DEBIT_DATE_REGEX = re.compile(r'will\s+be\s+debited\s+on\s+(\d{1,2}[/-]\d{1,2}[/-]\d{2,4})', I)
MANDATE_MERCHANT_REGEX = re.compile(
    r'\b(?:towards|for)\s+(?!Rs\b|INR\b|₹)([A-Za-z][^.\n]*?)(?:\s+mandate\b|\s+on\s+|\s+UMN\b|\.(?:\s|$)|\n|$)', I)
UMN_REGEX = re.compile(r'\bUMN\s*:?\s*([A-Za-z0-9@.]+?)(?:\.(?:\s|$)|\s|$)', I)


def _is_card_payment_confirmation(body: str) -> bool:
    lowered = body.lower()
    if 'received towards your credit card' in lowered:
        return True
    return 'payment' in lowered and 'credited to your card' in lowered


def _is_credit_card_spend(body: str) -> bool:
    if P.CARD_BILL_PAYMENT.search(body):
        return False
    if BLOCK_CC_REGEX.search(body):
        return True
    return bool(SPENT_ON_CARD_REGEX.search(body)) and not BLOCK_DC_REGEX.search(body)


def hdfc_direction(body: str) -> Optional[Direction]:
    if P.is_investment(body):
        return Direction.INVESTMENT
    if P.CARD_BILL_PAYMENT.search(body):
        return Direction.DEBIT
    if SENT_FROM_HDFC_REGEX.search(body) or DEDUCTED_REGEX.search(body):
        return Direction.DEBIT
    return resolve_direction(body)


def hdfc_merchant(body: str) -> Optional[str]:
    if ATM_REGEX.search(body):
        return 'ATM'
    for pattern in SALARY_PATTERNS:
        match = pattern.search(body)
        if match:
            candidate = P.clean_merchant_name(match.group(1))
            if P.is_valid_merchant_name(candidate):
                return candidate
    return None


HDFC_RULES = DialectRules(
    transaction_keywords=P.BASE_TRANSACTION_KEYWORDS + ('sent', 'deducted', 'txn'),
    suppressors=(
        ('e_mandate', lambda body: 'e-mandate!' in body.lower()),
        ('future_debit', lambda body: 'will be' in body.lower()),
        ('card_payment_confirmation', _is_card_payment_confirmation),
    ),
    direction_resolver=hdfc_direction,
    credit_card_spend=_is_credit_card_spend,
    merchant_resolver=hdfc_merchant,
    account_patterns=tuple(HDFC_ACCOUNT_PATTERNS),
    balance_patterns=tuple(HDFC_BALANCE_PATTERNS),
)

HDFC_PROFILE = DialectProfile(
    bank_name='HDFC Bank',
    senders=HDFC_SENDERS,
    dlt_patterns=HDFC_DLT_PATTERNS,
    rules=HDFC_RULES,
)


def _mandate_merchant(body: str) -> str:
    match = MANDATE_MERCHANT_REGEX.search(body)
    if match:
        candidate = P.clean_merchant_name(match.group(1))
        if P.is_valid_merchant_name(candidate):
            return candidate
    return 'Unknown'


def _first_amount(body: str):
    candidates = P.find_amount_candidates(body)
    if candidates:
        return candidates[0][0]
    return None


def parse_emandate(body: str) -> Optional[MandateInfo]:
    """
    Read an HDFC e-mandate notice ("E-Mandate! Rs.649 will be deducted on ...").

    Returns:
        MandateInfo with the day-first date normalized to YYYY-MM-DD, or None
    """
    if not body or 'e-mandate' not in body.lower():
        return None
    amount = _first_amount(body)
    if amount is None:
        return None
    date_match = MANDATE_DATE_REGEX.search(body)
    umn_match = UMN_REGEX.search(body)
    return MandateInfo(
        amount=amount,
        next_deduction_date=parse_date_flexible(date_match.group(1)) if date_match else None,
        merchant=_mandate_merchant(body),
        umn=umn_match.group(1) if umn_match else None,
    )


def parse_future_debit(body: str) -> Optional[MandateInfo]:
    """Read a "will be debited on DD/MM/YYYY" notice."""
    if not body:
        return None
    date_match = FUTURE_DEBIT_DATE_REGEX.search(body)
    if not date_match:
        return None
    amount = _first_amount(body)
    if amount is None:
        raw = P.first_group([re.compile(r'\bfor\s+' + P.AMOUNT_NUMBER, I)], body)
        amount = parse_amount_safe(raw) if raw else None
    if amount is None:
        return None
    return MandateInfo(
        amount=amount,
        next_deduction_date=parse_date_flexible(date_match.group(1)),
        merchant=_mandate_merchant(body),
    )
