"""Bank SMS parsers: one dialect module per bank family plus the generic walk."""
from .detect import SenderDialectResolver, guess_bank_from_sender
from .generic import parse_generic, parse_with_rules
from .hdfc import parse_emandate, parse_future_debit
from .router import SmsParserRouter, parse_with_smart_router
from .rules import DialectProfile, DialectRules

__all__ = [
    'DialectProfile',
    'DialectRules',
    'SenderDialectResolver',
    'SmsParserRouter',
    'guess_bank_from_sender',
    'parse_emandate',
    'parse_future_debit',
    'parse_generic',
    'parse_with_rules',
    'parse_with_smart_router',
]
