"""Internal-transfer detection.

Moving money between two of the user's own accounts is neither income nor
spend. Two views catch it: a single SMS that says so ("self transfer",
both legs with two account tails), and a debit and credit of the same
amount arriving close together.
"""
import logging
import re
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional

from .models import Direction
from .patterns import extract_account_tails

logger = logging.getLogger(__name__)

I = re.IGNORECASE

STRONG_HINTS = re.compile(
    r'\bself[\s-]?transfer\b|\bown\s+(?:a/?c|acct|account)s?\b|\bbetween\s+your\s+accounts\b'
    r'|\binternal\s+transfer\b|\ba/c\s+to\s+a/c\b|\baccount\s+to\s+account\b', I)
WEAK_HINTS = re.compile(
    r'\bfunds?\s+transfer\b|\bib\s+funds\s+transfer\b|\bibft\b|\bintra[\s-]?bank\b|\bsame\s+bank\b'
    r'|\binternet\s+banking\s+transfer\b|\bnet\s*banking\s+transfer\b', I)
TO_YOUR_AC = re.compile(r'\bto\s+your\s+a/?c\b', I)
FROM_YOUR_AC = re.compile(r'\bfrom\s+your\s+a/?c\b', I)
CREDITED = re.compile(r'\bcredited\b', I)
DEBITED = re.compile(r'\bdebited\b', I)
POS = re.compile(r'\bPOS\b', I)
UPI = re.compile(r'\bUPI\b', I)
VPA_HANDLE = re.compile(r'[\w.\-]+@[a-z]{2,}', I)
MERCHANT_ADDRESSED = re.compile(
    r'\b(?:to|at)\s+(?!(?:your\s+)?(?:a/?c|acct|account|self|own)\b)[A-Za-z]', I)


def is_merchant_payment(body: str) -> bool:
    """POS swipes and UPI payments to a named payee are spends, not transfers."""
    if POS.search(body):
        return True
    return bool(UPI.search(body)) and bool(MERCHANT_ADDRESSED.search(body) or VPA_HANDLE.search(body))


def is_internal_transfer(body: str) -> bool:
    """True when one SMS describes a movement between the user's own accounts."""
    if not body:
        return False
    if STRONG_HINTS.search(body):
        return True
    if TO_YOUR_AC.search(body) and FROM_YOUR_AC.search(body):
        return True
    if is_merchant_payment(body):
        return False
    if WEAK_HINTS.search(body):
        return True
    if CREDITED.search(body) and DEBITED.search(body) and len(extract_account_tails(body)) >= 2:
        return True
    return False


@dataclass
class PendingLeg:
    direction: Direction
    timestamp_millis: int
    payload: Any = None


class OffsettingPairWindow:
    """Matches a debit with a credit of the same amount inside a time window.

    Legs are bucketed by amount in paise; each bucket keeps at most
    max_legs_per_amount recent legs and legs older than the window are
    dropped as new ones arrive. A matched leg leaves its bucket, so a leg
    pairs at most once.
    """

    def __init__(self, window_millis: int = 180_000, max_legs_per_amount: int = 16, max_amounts: int = 1024):
        self.window_millis = window_millis
        self.max_legs_per_amount = max_legs_per_amount
        self.max_amounts = max_amounts
        self._buckets: Dict[int, Deque[PendingLeg]] = {}
        self._lock = threading.Lock()

    def register(self, amount_minor: int, direction: Direction, timestamp_millis: int,
                 payload: Any = None) -> Optional[PendingLeg]:
        """
        Offer a new leg to the window.

        Returns:
            the opposite leg it cancels (removed from the window), or None
            after recording the new leg for later arrivals
        """
        if direction not in (Direction.CREDIT, Direction.DEBIT):
            return None
        opposite = Direction.CREDIT if direction == Direction.DEBIT else Direction.DEBIT
        with self._lock:
            if len(self._buckets) >= self.max_amounts:
                self._sweep(timestamp_millis)
            bucket = self._buckets.get(amount_minor)
            if bucket is None:
                bucket = deque(maxlen=self.max_legs_per_amount)
                self._buckets[amount_minor] = bucket
            self._evict_stale(bucket, timestamp_millis)
            for leg in bucket:
                if leg.direction == opposite and abs(leg.timestamp_millis - timestamp_millis) <= self.window_millis:
                    bucket.remove(leg)
                    if not bucket:
                        del self._buckets[amount_minor]
                    return leg
            bucket.append(PendingLeg(direction, timestamp_millis, payload))
            return None

    def _evict_stale(self, bucket: Deque[PendingLeg], now_millis: int) -> None:
        while bucket and now_millis - bucket[0].timestamp_millis > self.window_millis:
            bucket.popleft()

    def _sweep(self, now_millis: int) -> None:
        for amount_minor in list(self._buckets):
            bucket = self._buckets[amount_minor]
            self._evict_stale(bucket, now_millis)
            if not bucket:
                del self._buckets[amount_minor]

    def pending_count(self) -> int:
        with self._lock:
            return sum(len(bucket) for bucket in self._buckets.values())

    def clear(self) -> None:
        with self._lock:
            self._buckets.clear()
