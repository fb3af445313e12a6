# app.py - HTTP service for SMS transaction extraction

import os
import logging
import time
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from flask import Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from sms_extractor import __version__
from sms_extractor.analysis import analyze_recurring_debits, analyze_salary_credits
from sms_extractor.config import Settings, load_settings
from sms_extractor.enrichment import HeuristicEnrichmentOracle
from sms_extractor.models import Direction, RawMessage
from sms_extractor.parsers.hdfc import parse_emandate, parse_future_debit
from sms_extractor.pipeline import SmsExtractionPipeline
from sms_extractor.storage import TransactionStore, init_db
from sms_extractor.transfers import OffsettingPairWindow
from sms_extractor.utils import setup_logging

logger = logging.getLogger(__name__)

MAX_BATCH_SIZE = 5000


class InvalidRequest(ValueError):
    """Client sent something we cannot parse."""


def _parse_message(data: Dict[str, Any]) -> RawMessage:
    if not isinstance(data, dict):
        raise InvalidRequest('Each message must be a JSON object')
    body = data.get('body')
    if not body or not isinstance(body, str):
        raise InvalidRequest("'body' is required")
    ts = data.get('timestamp', data.get('timestamp_millis'))
    if ts is None:
        ts = int(time.time() * 1000)
    try:
        ts = int(ts)
    except (TypeError, ValueError):
        raise InvalidRequest("'timestamp' must be epoch milliseconds")
    return RawMessage(sender=str(data.get('sender') or ''), body=body, timestamp_millis=ts)


def _json_object() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest('Request body must be a JSON object')
    return data


def _messages_from_request() -> List[RawMessage]:
    data = request.get_json(silent=True)
    if data is None:
        raise InvalidRequest('Request body must be JSON')
    if isinstance(data, dict) and 'messages' in data:
        items = data['messages']
        if not isinstance(items, list):
            raise InvalidRequest("'messages' must be a list")
        if len(items) > MAX_BATCH_SIZE:
            raise InvalidRequest(f'At most {MAX_BATCH_SIZE} messages per request')
        return [_parse_message(item) for item in items]
    return [_parse_message(data)]


def _range_from_args() -> Tuple[int, int]:
    try:
        start = int(request.args.get('start', 0))
        end = int(request.args.get('end', 2 ** 62))
    except ValueError:
        raise InvalidRequest("'start' and 'end' must be epoch milliseconds")
    if end <= start:
        raise InvalidRequest("'end' must be after 'start'")
    return start, end


def create_app(settings: Optional[Settings] = None, pipeline: Optional[SmsExtractionPipeline] = None) -> Flask:
    """Application factory."""
    settings = settings or load_settings()
    setup_logging(settings.log_dir, settings.log_level, 'flask_app.log')

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = 16 * 1024 * 1024  # 16MB
    app.config['SMS_SETTINGS'] = settings
    init_db(app, settings.database_uri)

    if pipeline is None:
        oracle = HeuristicEnrichmentOracle() if settings.enable_heuristic_oracle else None
        pipeline = SmsExtractionPipeline(
            pair_window=OffsettingPairWindow(settings.pair_window_millis),
            oracle=oracle,
        )
    app.extensions['sms_pipeline'] = pipeline
    app.extensions['sms_store'] = TransactionStore()

    register_routes(app)
    logger.info(f"SMS Transaction Extractor {__version__} ready (db={settings.database_uri})")
    return app


def register_routes(app: Flask) -> None:

    @app.errorhandler(InvalidRequest)
    def handle_bad_request(e):
        return jsonify({'error': str(e)}), 400

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return jsonify({'error': e.description}), e.code
        logger.error(f"Unhandled error on {request.path}: {e}", exc_info=True)
        return jsonify({'error': 'Internal server error'}), 500

    # --- Health Check Endpoint ---
    @app.route('/health')
    def health_check():
        """Health check endpoint for Docker and load balancers."""
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.utcnow().isoformat(),
            'service': 'SMS Transaction Extractor',
            'version': __version__,
        }), 200

    @app.route('/api/parse', methods=['POST'])
    def api_parse():
        """Parse one message ({sender, body, timestamp}) or a batch ({messages: [...]}) without storing."""
        messages = _messages_from_request()
        shared: SmsExtractionPipeline = current_app.extensions['sms_pipeline']
        # Preview requests pair only among themselves, never with imported legs.
        settings: Settings = current_app.config['SMS_SETTINGS']
        pipeline = SmsExtractionPipeline(
            router=shared.router,
            pair_window=OffsettingPairWindow(settings.pair_window_millis),
            oracle=shared.oracle,
            use_default_oracle=False,
        )
        transactions = pipeline.process_batch(messages)
        return jsonify({
            'processed': len(messages),
            'transactions': [t.to_dict() for t in transactions],
        }), 200

    @app.route('/api/import', methods=['POST'])
    def api_import():
        """Parse and store messages; re-importing the same SMS is a no-op."""
        messages = _messages_from_request()
        pipeline: SmsExtractionPipeline = current_app.extensions['sms_pipeline']
        store: TransactionStore = current_app.extensions['sms_store']
        transactions = pipeline.process_batch(messages)
        inserted = store.insert_many(transactions)
        logger.info(f"Imported {inserted} new transactions from {len(messages)} messages")
        return jsonify({
            'processed': len(messages),
            'transactions': len(transactions),
            'inserted': inserted,
        }), 200

    @app.route('/api/transactions/manual', methods=['POST'])
    def api_manual_transaction():
        data = _json_object()
        try:
            amount_minor = int(data['amount_minor'])
            direction = Direction(str(data['type']).upper())
        except (KeyError, TypeError, ValueError):
            raise InvalidRequest("'amount_minor' (paise) and 'type' (CREDIT or DEBIT) are required")
        if amount_minor < 0 or direction not in (Direction.CREDIT, Direction.DEBIT):
            raise InvalidRequest("'amount_minor' must be non-negative and 'type' CREDIT or DEBIT")
        try:
            ts = int(data.get('timestamp') or time.time() * 1000)
        except (TypeError, ValueError):
            raise InvalidRequest("'timestamp' must be epoch milliseconds")
        for key in ('merchant', 'category'):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise InvalidRequest(f"'{key}' must be a string")
        store: TransactionStore = current_app.extensions['sms_store']
        store.insert_manual(amount_minor, direction, ts, data.get('merchant'), data.get('category'))
        return jsonify({'status': 'created'}), 201

    @app.route('/api/transactions')
    def api_transactions():
        start, end = _range_from_args()
        store: TransactionStore = current_app.extensions['sms_store']
        return jsonify({'transactions': [r.to_dict() for r in store.in_range(start, end)]}), 200

    @app.route('/api/summary')
    def api_summary():
        start, end = _range_from_args()
        store: TransactionStore = current_app.extensions['sms_store']
        credits = store.total_credits(start, end)
        debits = store.total_debits(start, end)
        return jsonify({
            'start': start,
            'end': end,
            'total_credits_minor': credits,
            'total_debits_minor': debits,
            'total_credits': credits / 100,
            'total_debits': debits / 100,
            'net': (credits - debits) / 100,
        }), 200

    @app.route('/api/analysis')
    def api_analysis():
        start, end = _range_from_args()
        store: TransactionStore = current_app.extensions['sms_store']
        records = [r.to_dict() for r in store.in_range(start, end)]
        return jsonify({
            'recurring_debits': analyze_recurring_debits(records),
            'salary_credits': analyze_salary_credits(records),
        }), 200

    @app.route('/api/mandate', methods=['POST'])
    def api_mandate():
        """Read an upcoming debit from an e-mandate or 'will be debited' notice."""
        body = _json_object().get('body')
        if not body or not isinstance(body, str):
            raise InvalidRequest("'body' is required")
        info = parse_emandate(body) or parse_future_debit(body)
        if info is None:
            return jsonify({'error': 'No scheduled debit found in message'}), 422
        return jsonify({
            'amount': str(info.amount),
            'next_deduction_date': info.next_deduction_date,
            'merchant': info.merchant,
            'umn': info.umn,
        }), 200


# Main execution block
if __name__ == '__main__':
    # For production, use a proper WSGI server like Gunicorn or Waitress
    # Example: gunicorn -w 4 'app:create_app()'
    port = int(os.environ.get('PORT', 5000))
    create_app().run(debug=False, port=port)
