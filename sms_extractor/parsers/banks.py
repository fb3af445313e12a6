"""Large banks whose alerts fit the generic walk with their own sender ids:
State Bank of India, Axis Bank and Kotak Mahindra Bank."""
import re

from .. import patterns as P
from .rules import DialectProfile, DialectRules

I = re.IGNORECASE

# SBI names the payee after "trf to" / "transfer to".
SBI_MERCHANT_PATTERNS = (
    re.compile(r'\b(?:trf|transfer(?:red)?)\s+to\s+' + P.MERCHANT_CAPTURE, I),
) + tuple(P.MERCHANT_PATTERNS)

SBI_PROFILE = DialectProfile(
    bank_name='State Bank of India',
    senders=frozenset({'SBI', 'SBIINB', 'SBIPSG', 'SBIBNK', 'SBIUPI', 'SBIN', 'ATMSBI', 'CBSSBI', 'SBICRD'}),
    dlt_patterns=(re.compile(r'SBI[A-Z0-9]{4,}'),),
    rules=DialectRules(
        transaction_keywords=P.BASE_TRANSACTION_KEYWORDS + ('trf',),
        merchant_patterns=SBI_MERCHANT_PATTERNS,
    ),
)

AXIS_PROFILE = DialectProfile(
    bank_name='Axis Bank',
    senders=frozenset({'AXIS', 'AXISBK', 'AXISB', 'AXISBANK'}),
    dlt_patterns=(re.compile(r'AXIS[A-Z0-9]{4,}'),),
    rules=DialectRules(),
)

KOTAK_PROFILE = DialectProfile(
    bank_name='Kotak Mahindra Bank',
    senders=frozenset({'KOTAK', 'KOTAKB', 'KOTAKBK', 'KOTAKBANK', 'KMBL'}),
    dlt_patterns=(re.compile(r'KOTAK[A-Z0-9]{3,}'),),
    rules=DialectRules(transaction_keywords=P.BASE_TRANSACTION_KEYWORDS + ('sent',)),
)
