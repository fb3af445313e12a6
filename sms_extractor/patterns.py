"""Shared regex library for Indian bank / wallet SMS.

Every table here is data: ordered lists of compiled patterns that the
parsers walk first-match-wins. Dialect modules reuse these and only add or
reorder where a bank's templates differ.
"""
import re
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from .models import Channel
from .utils import parse_amount_safe

I = re.IGNORECASE

# --- Amounts ---
AMOUNT_NUMBER = r'(\d[\d,]*(?:\.\d{1,2})?)'
CURRENCY = r'(?:Rs\.?|INR|₹)'

# Any currency-prefixed number; used to enumerate candidates for the scorer.
AMOUNT_ANY = re.compile(CURRENCY + r'\s*:?\s*' + AMOUNT_NUMBER, I)

AMOUNT_PATTERNS = [
    re.compile(CURRENCY + r'\s*:?\s*' + AMOUNT_NUMBER, I),
    re.compile(r'Amount\s*(?:of)?\s*:?\s*' + CURRENCY + r'?\s*' + AMOUNT_NUMBER, I),
    re.compile(r'(?:Debited|Credited|Spent|Received)\s*(?:with|by|for)?\s*:?\s*' + CURRENCY + r'?\s*' + AMOUNT_NUMBER, I),
]

# --- Reference numbers ---
REFERENCE_PATTERNS = [
    re.compile(r'\bUTR\s*(?:No\.?)?\s*[:.#-]?\s*([A-Z0-9]{6,})', I),
    re.compile(r'\bRRN\s*(?:No\.?)?\s*[:.#-]?\s*([A-Z0-9]{6,})', I),
    re.compile(r'\bRef(?:erence)?\b\.?\s*(?:No\.?|Number|ID)?\s*[:.#-]?\s*([A-Z0-9]{6,})', I),
    re.compile(r'\bTransaction\s+ID\s*[:.#-]?\s*([A-Z0-9]{6,})', I),
    re.compile(r'\bTxn\s*(?:ID|No\.?)\s*[:.#-]?\s*([A-Z0-9]{6,})', I),
    re.compile(r'\bAuth\s*Code\s*[:.#-]?\s*([A-Z0-9]{4,})', I),
]

# --- Account tails ---
ACCOUNT_TAIL_PATTERNS = [
    re.compile(r'\b(?:A/c|A/C|Acct|Account|AC)\s*(?:No\.?)?\s*[:.]?\s*(?:ending\s*(?:with|in)?)?\s*[X*x#]*\s*(\d{3,})', I),
    re.compile(r'\bCard\s*(?:No\.?)?\s*(?:ending\s*(?:with|in)?)?\s*[:.]?\s*[X*x#]*\s*(\d{4})\b', I),
    re.compile(r'\bending\s*(?:with|in)?\s*[X*x]*(\d{3,4})\b', I),
    re.compile(r'\b[X*x]{2,}(\d{3,4})\b'),
]

# --- Balances ---
BALANCE_PATTERNS = [
    re.compile(r'(?:Avl\.?|Avbl\.?|Available|Current|Closing|Total|Net)\s*Bal(?:ance)?\s*(?:is)?\s*[:.-]?\s*'
               + CURRENCY + r'?\s*:?\s*' + AMOUNT_NUMBER, I),
    re.compile(r'\bBal(?:ance)?\s*(?:is)?\s*[:.-]?\s*' + CURRENCY + r'\s*:?\s*' + AMOUNT_NUMBER, I),
]

# --- Channels, in generic priority order. ATM sits ahead of CARD because ATM
# withdrawals usually also mention the card. ---
CHANNEL_PATTERNS: List[Tuple[Channel, re.Pattern]] = [
    (Channel.UPI, re.compile(r'\bUPI\b|\bVPA\b|@[a-z]{2,}\b', I)),
    (Channel.ATM, re.compile(r'\bATM\b', I)),
    (Channel.CARD, re.compile(r'\b(?:debit|credit)?\s*card\b', I)),
    (Channel.POS, re.compile(r'\bPOS\b', I)),
    (Channel.IMPS, re.compile(r'\bIMPS\b', I)),
    (Channel.NEFT, re.compile(r'\bNEFT\b', I)),
    (Channel.RTGS, re.compile(r'\bRTGS\b', I)),
    (Channel.NETBANKING, re.compile(r'\bnet\s*banking\b|\binternet\s+banking\b|\bnetbanking\b', I)),
]

# --- Direction cues ---
DEBIT_CUES = [re.compile(p, I) for p in (
    r'\bdebited\b', r'\bwithdrawn\b', r'\bspent\b', r'\bcharged\b', r'\bpaid\b', r'\bpurchase\b',
)]
CREDIT_CUES = [re.compile(p, I) for p in (
    r'\bcredited\b', r'\bdeposited\b', r'\breceived\b', r'\brefund(?:ed)?\b',
    r'(?<!earn )\bcashback\b',
)]
# A credit-card bill payment is money leaving the bank account.
CARD_BILL_PAYMENT = re.compile(r'\b(?:payment|towards)\b.*\bcredit\s*card\b', I)

# --- Merchant extraction ---
_MERCHANT_WORD = r"[A-Za-z0-9&'_*./-]+"
_MERCHANT_STOP = (r"(?=\s+(?:on|via|using|by|ref|upi|for|avl|info|from|with|thru|through|dated|at|txn|is|successful(?:ly)?|success|done|completed)\b"
                  r"|\s*[,;(]|\.(?:\s|$)|\s*$)")
MERCHANT_CAPTURE = r'(' + _MERCHANT_WORD + r'(?:\s+' + _MERCHANT_WORD + r'){0,4}?)' + _MERCHANT_STOP

MERCHANT_PATTERNS = [
    re.compile(r'\bat\s+' + MERCHANT_CAPTURE, I),
    re.compile(r'\bto\s+' + MERCHANT_CAPTURE, I),
    re.compile(r'\bInfo\s*:\s*([^.\n]+?)(?:\.(?:\s|$)|\s*$)', I),
    re.compile(r'\bVPA\s+[\w.\-]+@[\w.\-]+\s*\(([^)]+)\)', I),
    re.compile(r'\bUPI[/-]\s*(?:\d+[/-])?([A-Za-z][A-Za-z0-9 &.]+?)(?:[/-]|\s*$)', I),
]
MERCHANT_FROM_PATTERN = re.compile(r'\bfrom\s+' + MERCHANT_CAPTURE, I)

MERCHANT_CLEANUP = [
    re.compile(r'\s*\([^)]*\)\s*$'),
    re.compile(r'\s*\d{1,2}[-/]\d{1,2}[-/]\d{2,4}\s*$'),
    re.compile(r'\s*\d{1,2}:\d{2}(?::\d{2})?\s*$'),
    re.compile(r'\s*(?:UPI\s*)?Ref\s*(?:No\.?)?\s*[:.]?\s*[A-Z0-9]+\s*$', I),
    re.compile(r'\s*UPI\s*$', I),
    re.compile(r'\s*-+\s*$'),
    re.compile(r'\s+(?:PVT|PRIVATE)\.?\s+(?:LTD|LIMITED)\.?\s*$', I),
    re.compile(r'\s+(?:LTD|LIMITED)\.?\s*$', I),
    re.compile(r'[\s.,:;]+$'),
]

MERCHANT_STOPWORDS = frozenset({
    'USING', 'VIA', 'THROUGH', 'BY', 'WITH', 'FOR', 'TO', 'FROM', 'AT', 'THE',
    'YOUR', 'ON', 'A/C', 'AC', 'ACCOUNT', 'ACCT', 'CARD', 'SELF',
})

# --- Investment platforms (word-bounded so "sip" never matches "gossip") ---
INVESTMENT_KEYWORDS = (
    'indian clearing corporation', 'groww', 'zerodha', 'upstox', 'kite', 'kuvera',
    'paytm money', 'etmoney', 'coin by zerodha', 'smallcase', 'angel one', 'angel broking',
    '5paisa', 'icici securities', 'icici direct', 'hdfc securities', 'kotak securities',
    'motilal oswal', 'sharekhan', 'edelweiss', 'axis direct', 'sbi securities',
    'nse', 'bse', 'cdsl', 'nsdl', 'mutual fund', 'sip', 'elss', 'ipo', 'stockbroker', 'demat',
)
INVESTMENT_REGEX = re.compile(r'\b(?:' + '|'.join(re.escape(k) for k in INVESTMENT_KEYWORDS) + r')\b', I)

# --- Guards shared by the per-dialect transaction tests ---
OTP_REGEX = re.compile(r'\botp|\bone[\s-]?time[\s-]?password\b|\bverification\s+code\b', I)
PAYMENT_REQUEST_REGEX = re.compile(
    r'has\s+requested|payment\s+request|collect\s+request|requesting\s+payment|requests\s+rs'
    r'|ignore\s+if\s+already\s+paid|to\s+pay,\s*download', I)
SIMPLE_PROMO_REGEX = re.compile(r'\boffer\b|\bdiscount\b|cashback\s+offer|\bwin\b', I)

BASE_TRANSACTION_KEYWORDS = (
    'debited', 'credited', 'withdrawn', 'deposited', 'spent', 'received', 'transferred', 'paid',
)


def first_group(patterns: Sequence[re.Pattern], text: str) -> Optional[str]:
    """Return group(1) of the first pattern that matches, stripped."""
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return None


def find_amount_candidates(text: str) -> List[Tuple[Decimal, int, int]]:
    """All currency-prefixed amounts in order as (value, start, end)."""
    candidates = []
    for match in AMOUNT_ANY.finditer(text):
        value = parse_amount_safe(match.group(1))
        if value is not None:
            candidates.append((value, match.start(), match.end()))
    return candidates


def extract_reference(text: str, patterns: Sequence[re.Pattern] = REFERENCE_PATTERNS) -> Optional[str]:
    for pattern in patterns:
        for match in pattern.finditer(text):
            ref = match.group(1)
            # a reference always carries at least one digit
            if any(ch.isdigit() for ch in ref):
                return ref.upper()
    return None


def extract_account_tails(text: str, patterns: Sequence[re.Pattern] = ACCOUNT_TAIL_PATTERNS) -> List[str]:
    """Every distinct account/card tail mentioned, in order of appearance."""
    found = sorted(
        (match.start(), match.group(1)[-4:])
        for pattern in patterns
        for match in pattern.finditer(text)
    )
    tails: List[str] = []
    for _, tail in found:
        if tail not in tails:
            tails.append(tail)
    return tails


def extract_account_tail(text: str, patterns: Sequence[re.Pattern] = ACCOUNT_TAIL_PATTERNS) -> Optional[str]:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1)[-4:]
    return None


def extract_balance(text: str, patterns: Sequence[re.Pattern] = BALANCE_PATTERNS) -> Optional[Decimal]:
    raw = first_group(patterns, text)
    return parse_amount_safe(raw) if raw else None


def extract_channel(text: str, patterns: Sequence[Tuple[Channel, re.Pattern]] = CHANNEL_PATTERNS) -> Optional[Channel]:
    for channel, pattern in patterns:
        if pattern.search(text):
            return channel
    return None


def clean_merchant_name(raw: Optional[str]) -> Optional[str]:
    """Strip trailing refs, dates, times and company suffixes until nothing changes."""
    if raw is None:
        return None
    name = ' '.join(raw.split())
    changed = True
    while changed and name:
        changed = False
        for pattern in MERCHANT_CLEANUP:
            stripped = pattern.sub('', name)
            if stripped != name:
                name = stripped.strip()
                changed = True
    return name or None


def is_valid_merchant_name(name: Optional[str]) -> bool:
    if not name or len(name) < 2:
        return False
    if '@' in name:
        return False
    if not any(ch.isalpha() for ch in name):
        return False
    upper = name.upper()
    if upper in MERCHANT_STOPWORDS:
        return False
    if upper.split()[0] in MERCHANT_STOPWORDS:
        return False
    return True


def extract_merchant(text: str, patterns: Sequence[re.Pattern] = MERCHANT_PATTERNS) -> Optional[str]:
    """Walk the merchant patterns in order; first candidate that survives cleaning wins."""
    for pattern in patterns:
        for match in pattern.finditer(text):
            candidate = clean_merchant_name(match.group(1))
            if is_valid_merchant_name(candidate):
                return candidate
    return None


def has_any(text: str, patterns: Sequence[re.Pattern]) -> bool:
    return any(p.search(text) for p in patterns)


def is_investment(text: str) -> bool:
    return INVESTMENT_REGEX.search(text) is not None
