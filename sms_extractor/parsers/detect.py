"""Sender-id based dialect detection.

Indian SMS sender ids arrive as "VM-HDFCBK", "AD-ICICIB-S", "JD-HDFCBANK-T".
After stripping the operator prefix and DLT suffix, a sender is matched
against each bank's exact ids first and then its DLT header patterns.
"""
import logging
from typing import Dict, List, Optional, Sequence

from ..utils import normalize_sender
from .banks import AXIS_PROFILE, KOTAK_PROFILE, SBI_PROFILE
from .fintech import JIO_PROFILE, JUPITER_PROFILE, SLICE_PROFILE
from .hdfc import HDFC_PROFILE
from .icici import ICICI_PROFILE
from .indian import INDIAN_PROFILE
from .rules import DialectProfile

logger = logging.getLogger(__name__)

DEFAULT_PROFILES: List[DialectProfile] = [
    HDFC_PROFILE,
    ICICI_PROFILE,
    INDIAN_PROFILE,
    SBI_PROFILE,
    AXIS_PROFILE,
    KOTAK_PROFILE,
    JIO_PROFILE,
    JUPITER_PROFILE,
    SLICE_PROFILE,
]

# Loose bank guesses for senders that have no dedicated dialect.
SENDER_BANK_HINTS: Dict[str, str] = {
    'YESBNK': 'Yes Bank',
    'IDFCFB': 'IDFC First Bank',
    'BOBTXN': 'Bank of Baroda',
    'PNBSMS': 'Punjab National Bank',
    'CANBNK': 'Canara Bank',
    'UNIONB': 'Union Bank of India',
    'PAYTMB': 'Paytm Payments Bank',
    'AMZPAY': 'Amazon Pay',
    'PHONPE': 'PhonePe',
}


class SenderDialectResolver:
    """Maps a raw sender id to the dialect profile that should parse it."""

    def __init__(self, profiles: Optional[Sequence[DialectProfile]] = None):
        self.profiles = list(profiles) if profiles is not None else list(DEFAULT_PROFILES)

    def resolve(self, sender: Optional[str]) -> Optional[DialectProfile]:
        normalized = normalize_sender(sender)
        if not normalized:
            return None
        for exact_only in (True, False):
            for profile in self.profiles:
                try:
                    hit = (normalized in profile.senders) if exact_only else profile.matches(normalized)
                    if hit:
                        return profile
                except Exception as e:
                    logger.warning(f"Skipping {profile.bank_name} profile for sender {normalized}: {e}",
                                   exc_info=True)
        return None

    def bank_name(self, sender: Optional[str]) -> Optional[str]:
        profile = self.resolve(sender)
        if profile:
            return profile.bank_name
        return guess_bank_from_sender(sender)


def guess_bank_from_sender(sender: Optional[str]) -> Optional[str]:
    normalized = normalize_sender(sender)
    for token, bank in SENDER_BANK_HINTS.items():
        if token in normalized:
            return bank
    return None
