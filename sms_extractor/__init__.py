"""Extracts bank transactions from Indian bank and wallet SMS."""
from .models import Channel, Direction, ParsedTransaction, RawMessage
from .pipeline import SmsExtractionPipeline, summarize_totals

__version__ = '1.0.0'

__all__ = [
    'Channel',
    'Direction',
    'ParsedTransaction',
    'RawMessage',
    'SmsExtractionPipeline',
    'summarize_totals',
]
