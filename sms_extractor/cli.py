"""Command-line entry point: extract transactions from an exported SMS inbox.

    sms-extract messages.csv
    sms-extract messages.json --json
    sms-extract messages.csv --db sqlite:///sms.db --aggregate
"""
import argparse
import json
import logging
import sys
import traceback
from typing import List, Optional

import pandas as pd

from .config import load_settings
from .models import RawMessage
from .pipeline import SmsExtractionPipeline, summarize_totals
from .transfers import OffsettingPairWindow
from .utils import setup_logging

logger = logging.getLogger(__name__)

SENDER_COLUMNS = ('sender', 'address', 'from', 'originator')
BODY_COLUMNS = ('body', 'text', 'message', 'sms')
TIME_COLUMNS = ('timestamp', 'timestamp_millis', 'ts', 'date', 'time')


def _pick_column(df: pd.DataFrame, candidates) -> Optional[str]:
    lowered = {c.lower(): c for c in df.columns}
    for name in candidates:
        if name in lowered:
            return lowered[name]
    return None


def _to_millis(value) -> Optional[int]:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, pd.Timestamp):
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)) or str(value).strip().isdigit():
        number = int(float(value))
        # epoch seconds vs milliseconds
        return number * 1000 if number < 100_000_000_000 else number
    parsed = pd.to_datetime(str(value), dayfirst=True, errors='coerce')
    if pd.isna(parsed):
        return None
    return int(parsed.timestamp() * 1000)


def load_messages(path: str) -> List[RawMessage]:
    """Read a CSV or JSON export into RawMessages, skipping rows without a body or time."""
    if path.lower().endswith('.json'):
        df = pd.read_json(path, convert_dates=False, dtype=False)
    else:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    sender_col = _pick_column(df, SENDER_COLUMNS)
    body_col = _pick_column(df, BODY_COLUMNS)
    time_col = _pick_column(df, TIME_COLUMNS)
    if body_col is None or time_col is None:
        raise ValueError(f"{path} needs a body column ({', '.join(BODY_COLUMNS)}) "
                         f"and a time column ({', '.join(TIME_COLUMNS)})")

    messages = []
    for record in df.to_dict(orient='records'):
        body = record.get(body_col)
        ts = _to_millis(record.get(time_col))
        if not body or ts is None:
            continue
        sender = str(record.get(sender_col) or '') if sender_col else ''
        messages.append(RawMessage(sender=sender, body=str(body), timestamp_millis=ts))
    logger.info(f"Loaded {len(messages)} messages from {path}")
    return messages


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Extract bank transactions from exported SMS messages.')
    parser.add_argument('messages', help='CSV or JSON file with sender, body and timestamp columns.')
    parser.add_argument('--json', dest='as_json', action='store_true', help='Print transactions as JSON.')
    parser.add_argument('--db', default=None, help='Database URI to store transactions in.')
    parser.add_argument('--aggregate', action='store_true',
                        help='Also run the classifier-based batch aggregation and print its totals.')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging.')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    setup_logging(settings.log_dir, 'DEBUG' if args.debug else settings.log_level)

    try:
        messages = load_messages(args.messages)
    except FileNotFoundError:
        print(f"Error: messages file not found at '{args.messages}'")
        return 1
    except ValueError as ve:
        print(f"Error: {ve}")
        return 1

    try:
        pipeline = SmsExtractionPipeline(pair_window=OffsettingPairWindow(settings.pair_window_millis))
        transactions = pipeline.process_batch(messages)
        credits, debits = summarize_totals(transactions)

        if args.as_json:
            print(json.dumps([t.to_dict() for t in transactions], indent=2))
        else:
            print(f"Found {len(transactions)} transactions in {len(messages)} messages.")
            for t in transactions:
                flag = ' (paired, excluded)' if t.ignore_for_totals else ''
                print(f"  {t.direction.value:<10} Rs.{t.amount:>12,.2f}  {t.merchant_or_counterparty or '-'}"
                      f"  [{t.bank_name or t.source_message.sender}]{flag}")
            print(f"\nTotal credits: Rs.{credits:,.2f}")
            print(f"Total debits:  Rs.{debits:,.2f}")

        if args.db:
            from .storage import TransactionStore, create_storage_app

            app = create_storage_app(args.db)
            with app.app_context():
                inserted = TransactionStore().insert_many(transactions)
            print(f"Stored {inserted} new transactions in {args.db}")

        if args.aggregate:
            from .aggregator import TransactionAggregator
            from .classifier import SmsMultiTaskClassifier

            aggregator = TransactionAggregator(
                SmsMultiTaskClassifier(settings.model_path, settings.vocab_path),
                window_millis=settings.aggregate_pair_window_millis,
                timeout_seconds=settings.inference_timeout_seconds,
            )
            print(aggregator.process_batch(messages).summary())
    except Exception as e:
        print(f"An unexpected error occurred: {e}")
        if args.debug:
            traceback.print_exc()
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
