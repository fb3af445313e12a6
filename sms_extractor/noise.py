"""First gate of the pipeline: throws away SMS that only look like money.

OTPs, collect requests, loan and limit marketing, statement and due-date
reminders and link-heavy promotions all quote rupee amounts. Each rule
below has its own override, because promotional wording shows up inside
genuine alerts ("...Call 1800 to block. Get 5% cashback offer") and the
evidence needed to rescue a message differs by rule.
"""
import logging
import re
from typing import Callable, List, Tuple

from .models import NoiseVerdict
from .patterns import extract_account_tail, extract_reference

logger = logging.getLogger(__name__)

I = re.IGNORECASE

REASON_OTP = 'otp'
REASON_PAYMENT_REQUEST = 'payment_request'
REASON_MARKETING = 'marketing'
REASON_LOAN_PROMO = 'loan_or_limit_promo'
REASON_STATEMENT = 'statement'
REASON_DUE_REMINDER = 'due_reminder'
REASON_LINK_SPAM = 'link_spam'
REASON_BALANCE_ONLY = 'balance_only'

OTP = re.compile(r'\botp|\bone[\s-]?time[\s-]?password\b|\bverification\s+code\b', I)
PAYMENT_REQUEST = re.compile(
    r'has\s+requested|payment\s+request|collect\s+request|requesting\s+payment|requests\s+rs'
    r'|ignore\s+if\s+already\s+paid|to\s+pay,\s*download|\bapprove\b.*\bupi\s+pin\b', I)
MARKETING = re.compile(
    r'\boffers?\b|\bwin\b|\bsale\b|\bdiscount\b|congratulations|\bvoucher\b|\bgift\b'
    r'|cashback\s+(?:up\s*to|offer)|%\s*off\b|\bsubscribe\b|\bdeal\b', I)
LOAN_PROMO = re.compile(
    r'pre[-\s]?approved|\bloan\b|credit\s+limit|limit\s+(?:increase|enhancement)|increase\s+(?:your\s+)?limit'
    r'|\bemi\s+from\b|\boverdraft\b|\beligib(?:le|ility)\b|interest\s+rate', I)
STATEMENT = re.compile(r'\bstatement\b|bill\s+(?:is\s+)?generated|\be-?statement\b', I)
DUE_REMINDER = re.compile(
    r'\bdue\s+date\b|\bminimum\s+(?:amount\s+)?due\b|\btotal\s+(?:amount\s+)?due\b|\boverdue\b'
    r'|\bpast\s+due\b|\bpay\s+now\b|\blast\s+date\b|\bis\s+due\b', I)
SHORT_LINK = re.compile(
    r'\b(?:bit\.ly|tinyurl\.com|t\.co|goo\.gl|ow\.ly|is\.gd|rb\.gy|s\.id|lnkd\.in|rebrand\.ly)/\S*', I)
LINK = re.compile(r'https?://\S+', I)
SPAM_PHRASE = re.compile(
    r'\bup\s*to\b|apply\s*now|just\s*complete.*kyc|instant\s*loan|ready\s*to\s*be\s*credited|\bclick\b|\btap\s+to\b'
    r'|download\s+(?:the\s+)?app', I)
BALANCE_MENTION = re.compile(r'\bavl\.?\s*bal|\bavailable\s+balance\b|\bbalance\s+(?:in|of|is)\b', I)

EXPLICIT_TRANSACTION = re.compile(
    r'\b(?:debited|credited|spent|paid|received|success(?:ful(?:ly)?)?|txn|utr|ref\s*no|auth\s*code|neft|imps|upi)\b', I)
MOVEMENT_VERB = re.compile(
    r'\b(?:debited|credited|spent|withdrawn|deposited|paid|sent|received|transferred|deducted|purchase)\b', I)
STATEMENT_OVERRIDE = re.compile(r'payment\s+(?:of\s+.*\s+)?(?:is\s+)?received|\bpaid\b|\bcredited\b', I)
DUE_OVERRIDE = re.compile(r'payment\s+(?:of\s+.*\s+)?(?:is\s+)?received|\bpaid\b|\bcredited\b|\bdebited\b|\bspent\b', I)


def has_structural_evidence(body: str) -> bool:
    """An account tail and a reference number together mark a real alert."""
    return extract_account_tail(body) is not None and extract_reference(body) is not None


def _marketing(body: str) -> bool:
    return bool(MARKETING.search(body)) and not has_structural_evidence(body)


def _loan_promo(body: str) -> bool:
    return bool(LOAN_PROMO.search(body)) and not EXPLICIT_TRANSACTION.search(body)


def _statement(body: str) -> bool:
    return bool(STATEMENT.search(body)) and not STATEMENT_OVERRIDE.search(body)


def _due_reminder(body: str) -> bool:
    return bool(DUE_REMINDER.search(body)) and not DUE_OVERRIDE.search(body)


def _link_spam(body: str) -> bool:
    spammy = SHORT_LINK.search(body) or SPAM_PHRASE.search(body) or (LINK.search(body) and not MOVEMENT_VERB.search(body))
    return bool(spammy) and not has_structural_evidence(body)


def _balance_only(body: str) -> bool:
    return bool(BALANCE_MENTION.search(body)) and not MOVEMENT_VERB.search(body)


NOISE_RULES: List[Tuple[str, Callable[[str], bool]]] = [
    (REASON_OTP, lambda body: bool(OTP.search(body))),
    (REASON_PAYMENT_REQUEST, lambda body: bool(PAYMENT_REQUEST.search(body))),
    (REASON_MARKETING, _marketing),
    (REASON_LOAN_PROMO, _loan_promo),
    (REASON_STATEMENT, _statement),
    (REASON_DUE_REMINDER, _due_reminder),
    (REASON_LINK_SPAM, _link_spam),
    (REASON_BALANCE_ONLY, _balance_only),
]


def classify(body: str) -> NoiseVerdict:
    """Return a reject verdict with the first matching reason, or an accept verdict."""
    if not body or not body.strip():
        return NoiseVerdict(reject=True, reason='empty')
    for reason, rule in NOISE_RULES:
        if rule(body):
            logger.debug(f"Noise gate rejected message ({reason})")
            return NoiseVerdict(reject=True, reason=reason)
    return NoiseVerdict(reject=False)


def is_noise(body: str) -> bool:
    return classify(body).reject
