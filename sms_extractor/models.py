"""Data model shared by every stage of the SMS extraction pipeline.

RawMessage is the ephemeral input, ParsedTransaction the intermediate record
produced by the parsers, and SmsAnalysis the contract of the classifier adapter.
"""
import hashlib
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, Optional


class Direction(str, Enum):
    CREDIT = "CREDIT"
    DEBIT = "DEBIT"
    TRANSFER = "TRANSFER"
    # Brokerage / mutual-fund movements, kept out of plain CREDIT/DEBIT totals
    INVESTMENT = "INVESTMENT"


class Channel(str, Enum):
    UPI = "UPI"
    CARD = "CARD"
    ATM = "ATM"
    POS = "POS"
    IMPS = "IMPS"
    NEFT = "NEFT"
    RTGS = "RTGS"
    NETBANKING = "NETBANKING"
    CASH = "CASH"
    OTHER = "OTHER"


TOTALLED_DIRECTIONS = (Direction.CREDIT, Direction.DEBIT)


@dataclass(frozen=True)
class RawMessage:
    sender: str
    body: str
    timestamp_millis: int


@dataclass
class ParsedTransaction:
    """A money-movement event extracted from one SMS."""
    amount: Decimal
    direction: Direction
    source_message: RawMessage
    merchant_or_counterparty: Optional[str] = None
    reference_id: Optional[str] = None
    account_tail_digits: Optional[str] = None
    balance_after: Optional[Decimal] = None
    bank_name: Optional[str] = None
    channel: Optional[Channel] = None
    credit_card: bool = False
    ignore_for_totals: bool = False
    offset_of: Optional[RawMessage] = None
    enriched: bool = False

    def __post_init__(self):
        if self.amount is None or self.amount < 0:
            raise ValueError(f"amount must be present and non-negative, got {self.amount!r}")

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount)

    def transaction_id(self) -> str:
        """MD5 of sender, amount and timestamp, used for duplicate detection."""
        normalized = self.amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        data = f"{self.source_message.sender}|{normalized}|{self.source_message.timestamp_millis}"
        return hashlib.md5(data.encode("utf-8")).hexdigest()

    def to_record(self) -> Dict[str, Any]:
        """Convert to the storage shape (amount in paise, raw sender/body kept for audit)."""
        return {
            'ts': self.source_message.timestamp_millis,
            'amount_minor': self.amount_minor,
            'currency': 'INR',
            'type': self.direction.value,
            'channel': self.channel.value if self.channel else None,
            'merchant': normalize_merchant_name(self.merchant_or_counterparty),
            'account_tail': self.account_tail_digits,
            'bank': self.bank_name,
            'reference': self.reference_id,
            'source': 'SMS',
            'raw_sender': self.source_message.sender,
            'raw_body': self.source_message.body,
            'ignore_for_totals': self.ignore_for_totals,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'transaction_id': self.transaction_id(),
            'amount': str(self.amount),
            'direction': self.direction.value,
            'merchant': self.merchant_or_counterparty,
            'reference_id': self.reference_id,
            'account_tail': self.account_tail_digits,
            'balance_after': str(self.balance_after) if self.balance_after is not None else None,
            'bank_name': self.bank_name,
            'channel': self.channel.value if self.channel else None,
            'credit_card': self.credit_card,
            'ignore_for_totals': self.ignore_for_totals,
            'enriched': self.enriched,
            'sender': self.source_message.sender,
            'timestamp': self.source_message.timestamp_millis,
        }


@dataclass(frozen=True)
class MandateInfo:
    """Scheduled debit announced by an e-mandate or future-debit notice."""
    amount: Decimal
    next_deduction_date: Optional[str]
    merchant: str
    umn: Optional[str] = None


@dataclass(frozen=True)
class NoiseVerdict:
    reject: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class Enrichment:
    """Output of an enrichment oracle. Every field except is_transaction is a hint."""
    is_transaction: bool
    is_internal_transfer: Optional[bool] = None
    type: Optional[str] = None
    amount_minor: Optional[int] = None
    channel: Optional[str] = None
    merchant: Optional[str] = None
    account_tail: Optional[str] = None
    bank: Optional[str] = None


@dataclass(frozen=True)
class SmsAnalysis:
    is_transactional: bool
    confidence: float
    merchant: Optional[str]
    amount: Optional[Decimal]
    transaction_type: Optional[str]
    direction: Optional[Direction]
    direction_confidence: float
    from_model: bool = False


@dataclass
class ParsedRow:
    """One classified message inside a batch aggregation."""
    timestamp_millis: int
    direction: Optional[Direction]
    amount_minor: int
    account_tail: Optional[str]
    counterparty: Optional[str]
    ref_id: Optional[str]
    raw_text: str
    ignore_for_calculations: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def normalize_merchant_name(name: Optional[str]) -> Optional[str]:
    """Title-case all-caps merchant names, keep mixed case as written."""
    if not name:
        return name
    trimmed = name.strip()
    if trimmed == trimmed.upper():
        return " ".join(word[:1].upper() + word[1:].lower() for word in trimmed.split(" "))
    return trimmed
