"""Per-dialect rule bundles.

A dialect is data: keyword sets, ordered pattern tables and a few hooks.
The shared walker in generic.py runs the same steps for every bank, so a
new bank is a new DialectRules/DialectProfile pair and nothing else.
"""
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, FrozenSet, Optional, Sequence, Tuple

from ..models import Channel, Direction
from .. import patterns as P

Predicate = Callable[[str], bool]


def resolve_direction(body: str) -> Optional[Direction]:
    """Direction from the earliest debit-like or credit-like verb.

    Credit-card bill payments are always debits from the paying account.
    """
    if P.CARD_BILL_PAYMENT.search(body):
        return Direction.DEBIT
    debit_at = _earliest(body, P.DEBIT_CUES)
    credit_at = _earliest(body, P.CREDIT_CUES)
    if debit_at is None and credit_at is None:
        return None
    if credit_at is None or (debit_at is not None and debit_at <= credit_at):
        return Direction.DEBIT
    return Direction.CREDIT


def _earliest(body: str, cues: Sequence[re.Pattern]) -> Optional[int]:
    positions = [m.start() for m in (c.search(body) for c in cues) if m]
    return min(positions) if positions else None


def _never(body: str) -> bool:
    return False


@dataclass(frozen=True)
class DialectRules:
    """Everything that differs between one bank's SMS templates and another's."""
    transaction_keywords: Tuple[str, ...] = P.BASE_TRANSACTION_KEYWORDS
    suppressors: Tuple[Tuple[str, Predicate], ...] = ()
    direction_resolver: Callable[[str], Optional[Direction]] = resolve_direction
    credit_card_spend: Predicate = _never
    merchant_resolver: Optional[Callable[[str], Optional[str]]] = None
    merchant_patterns: Sequence[re.Pattern] = tuple(P.MERCHANT_PATTERNS)
    channel_patterns: Sequence[Tuple[Channel, re.Pattern]] = tuple(P.CHANNEL_PATTERNS)
    default_channel: Optional[Channel] = None
    reference_patterns: Sequence[re.Pattern] = tuple(P.REFERENCE_PATTERNS)
    account_patterns: Sequence[re.Pattern] = tuple(P.ACCOUNT_TAIL_PATTERNS)
    balance_patterns: Sequence[re.Pattern] = tuple(P.BALANCE_PATTERNS)

    def suppression_reason(self, body: str) -> Optional[str]:
        """Name of the first guard or suppressor that rejects this body."""
        if P.OTP_REGEX.search(body):
            return 'otp'
        if P.PAYMENT_REQUEST_REGEX.search(body):
            return 'payment_request'
        if P.SIMPLE_PROMO_REGEX.search(body) and not re.search(r'\b(?:debited|credited)\b', body, re.I):
            return 'promotion'
        for name, predicate in self.suppressors:
            if predicate(body):
                return name
        return None

    def is_transaction(self, body: str) -> bool:
        if not body or self.suppression_reason(body):
            return False
        lowered = body.lower()
        return any(keyword in lowered for keyword in self.transaction_keywords)

    def direction(self, body: str) -> Optional[Direction]:
        return self.direction_resolver(body)

    def merchant(self, body: str) -> Optional[str]:
        if self.merchant_resolver is not None:
            special = self.merchant_resolver(body)
            if special:
                return special
        return P.extract_merchant(body, self.merchant_patterns)

    def channel(self, body: str) -> Optional[Channel]:
        return P.extract_channel(body, self.channel_patterns) or self.default_channel

    def reference(self, body: str) -> Optional[str]:
        return P.extract_reference(body, self.reference_patterns)

    def account_tail(self, body: str) -> Optional[str]:
        return P.extract_account_tail(body, self.account_patterns)

    def balance(self, body: str) -> Optional[Decimal]:
        return P.extract_balance(body, self.balance_patterns)


@dataclass(frozen=True)
class DialectProfile:
    """Binds a bank name and its sender ids to a rule bundle."""
    bank_name: str
    senders: FrozenSet[str]
    dlt_patterns: Tuple[re.Pattern, ...] = field(default_factory=tuple)
    rules: DialectRules = field(default_factory=DialectRules)

    def matches(self, normalized_sender: str) -> bool:
        if normalized_sender in self.senders:
            return True
        return any(p.fullmatch(normalized_sender) for p in self.dlt_patterns)


GENERIC_RULES = DialectRules()
