"""Routes each SMS to its bank dialect, falling back to the generic parser.

A dialect that raises is logged and treated as "no match", so a single bad
template never takes the pipeline down. A dialect that cleanly returns
None has rejected the message on purpose (e-mandates, card-bill notices)
and the generic parser is not consulted.
"""
import logging
import threading
from typing import Dict, Optional

from ..models import ParsedTransaction, RawMessage
from ..utils import preview
from .detect import SenderDialectResolver, guess_bank_from_sender
from .generic import parse_generic, parse_with_rules

logger = logging.getLogger(__name__)


class SmsParserRouter:
    """Selects the dialect for a sender and runs the extraction walk."""

    def __init__(self, resolver: Optional[SenderDialectResolver] = None):
        self.resolver = resolver or SenderDialectResolver()
        self.stats: Dict[str, int] = {'dialect': 0, 'generic': 0, 'rejected': 0, 'errors': 0}
        self._stats_lock = threading.Lock()

    def _count(self, outcome: str) -> None:
        with self._stats_lock:
            self.stats[outcome] += 1

    def parse(self, message: RawMessage) -> Optional[ParsedTransaction]:
        """
        Parse one message.

        Args:
            message: the raw SMS

        Returns:
            ParsedTransaction, or None if no parser recognized a transaction
        """
        profile = self.resolver.resolve(message.sender)
        if profile is not None:
            try:
                result = parse_with_rules(message, profile.rules, profile.bank_name)
            except Exception as e:
                self._count('errors')
                logger.error(f"{profile.bank_name} parser failed on '{preview(message.body)}': {e}", exc_info=True)
            else:
                if result is None:
                    self._count('rejected')
                else:
                    self._count('dialect')
                return result

        try:
            result = parse_generic(message, guess_bank_from_sender(message.sender))
        except Exception as e:
            self._count('errors')
            logger.error(f"Generic parser failed on '{preview(message.body)}': {e}", exc_info=True)
            return None
        self._count('generic' if result else 'rejected')
        return result


def parse_with_smart_router(message: RawMessage) -> Optional[ParsedTransaction]:
    """Convenience function for one-off parsing."""
    return SmsParserRouter().parse(message)
