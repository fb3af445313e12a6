"""Transaction persistence on Flask-SQLAlchemy.

Rows are keyed for idempotency on (raw_sender, raw_body, ts): importing
the same inbox twice never doubles a total. All TransactionStore calls
must run inside an application context.
"""
import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .models import Direction, ParsedTransaction, RawMessage

logger = logging.getLogger(__name__)

db = SQLAlchemy()

SOURCE_SMS = 'SMS'
SOURCE_MANUAL = 'MANUAL'


class TransactionRecord(db.Model):
    __tablename__ = 'transactions'
    __table_args__ = (
        db.UniqueConstraint('raw_sender', 'raw_body', 'ts', name='uq_transactions_raw'),
        db.Index('ix_transactions_ts', 'ts'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    ts = db.Column(db.BigInteger, nullable=False)
    amount_minor = db.Column(db.BigInteger, nullable=False)
    currency = db.Column(db.String(3), nullable=False, default='INR')
    type = db.Column(db.String(16), nullable=False)
    channel = db.Column(db.String(16), nullable=True)
    merchant = db.Column(db.String(200), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    account_tail = db.Column(db.String(4), nullable=True)
    bank = db.Column(db.String(100), nullable=True)
    reference = db.Column(db.String(64), nullable=True)
    source = db.Column(db.String(10), nullable=False, default=SOURCE_SMS)
    raw_sender = db.Column(db.String(64), nullable=True)
    raw_body = db.Column(db.Text, nullable=True)
    ignore_for_totals = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'ts': self.ts,
            'amount_minor': self.amount_minor,
            'amount': self.amount_minor / 100,
            'currency': self.currency,
            'type': self.type,
            'channel': self.channel,
            'merchant': self.merchant,
            'category': self.category,
            'account_tail': self.account_tail,
            'bank': self.bank,
            'reference': self.reference,
            'source': self.source,
            'raw_sender': self.raw_sender,
            'raw_body': self.raw_body,
            'ignore_for_totals': self.ignore_for_totals,
        }


def init_db(app: Flask, database_uri: str) -> None:
    """Bind the shared SQLAlchemy object to an app and create the tables."""
    if database_uri.startswith('sqlite:///') and database_uri != 'sqlite:///:memory:':
        db_dir = os.path.dirname(database_uri.replace('sqlite:///', ''))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)
    app.config['SQLALCHEMY_DATABASE_URI'] = database_uri
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    db.init_app(app)
    with app.app_context():
        db.create_all()
    logger.info(f"Transaction store ready at {database_uri}")


def create_storage_app(database_uri: str) -> Flask:
    """A bare Flask app carrying only the database, for CLI and batch use."""
    app = Flask('sms_extractor.storage')
    init_db(app, database_uri)
    return app


class TransactionStore:
    """Idempotent insert and range queries over TransactionRecord."""

    def insert(self, transaction: ParsedTransaction) -> bool:
        """Store one parsed transaction. Returns False when it was already stored."""
        return self._insert_row(transaction.to_record())

    def insert_many(self, transactions: Iterable[ParsedTransaction]) -> int:
        inserted = 0
        for transaction in transactions:
            if self.insert(transaction):
                inserted += 1
            if transaction.offset_of is not None:
                self.mark_ignored(transaction.offset_of)
        return inserted

    def insert_manual(self, amount_minor: int, direction: Direction, ts: int,
                      merchant: Optional[str] = None, category: Optional[str] = None) -> bool:
        """Record a transaction entered by hand (cash, missing SMS)."""
        return self._insert_row({
            'ts': ts,
            'amount_minor': amount_minor,
            'currency': 'INR',
            'type': direction.value,
            'channel': None,
            'merchant': merchant,
            'category': category,
            'source': SOURCE_MANUAL,
            'raw_sender': None,
            'raw_body': None,
            'ignore_for_totals': False,
        })

    def _insert_row(self, row: Dict[str, Any]) -> bool:
        if row.get('raw_body') is not None and self._find(row['raw_sender'], row['raw_body'], row['ts']):
            logger.debug(f"Duplicate SMS from {row['raw_sender']} at {row['ts']} skipped")
            return False
        db.session.add(TransactionRecord(**row))
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            logger.debug(f"Duplicate SMS from {row['raw_sender']} at {row['ts']} skipped (constraint)")
            return False
        return True

    def _find(self, raw_sender: Optional[str], raw_body: str, ts: int) -> Optional[TransactionRecord]:
        return TransactionRecord.query.filter_by(raw_sender=raw_sender, raw_body=raw_body, ts=ts).first()

    def mark_ignored(self, message: RawMessage) -> bool:
        """Exclude an already stored leg of an offsetting pair from totals."""
        record = self._find(message.sender, message.body, message.timestamp_millis)
        if record is None or record.ignore_for_totals:
            return False
        record.ignore_for_totals = True
        db.session.commit()
        return True

    def in_range(self, start_ts: int, end_ts: int) -> List[TransactionRecord]:
        """Records with start_ts <= ts < end_ts, oldest first."""
        return (TransactionRecord.query
                .filter(TransactionRecord.ts >= start_ts, TransactionRecord.ts < end_ts)
                .order_by(TransactionRecord.ts.asc())
                .all())

    def _total(self, direction: Direction, start_ts: int, end_ts: int) -> int:
        total = (db.session.query(func.coalesce(func.sum(TransactionRecord.amount_minor), 0))
                 .filter(TransactionRecord.type == direction.value,
                         TransactionRecord.ignore_for_totals.is_(False),
                         TransactionRecord.ts >= start_ts,
                         TransactionRecord.ts < end_ts)
                 .scalar())
        return int(total or 0)

    def total_debits(self, start_ts: int, end_ts: int) -> int:
        """Sum of DEBIT amounts in paise; transfers, investments and paired legs excluded."""
        return self._total(Direction.DEBIT, start_ts, end_ts)

    def total_credits(self, start_ts: int, end_ts: int) -> int:
        return self._total(Direction.CREDIT, start_ts, end_ts)
