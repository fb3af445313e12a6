"""End-to-end extraction: noise gate, dialect parsing, transfer detection,
offsetting-pair marking and optional enrichment."""
import gc
import logging
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from .enrichment import EnrichmentOracle, get_default_oracle
from .models import Channel, Direction, Enrichment, ParsedTransaction, RawMessage, TOTALLED_DIRECTIONS
from .noise import classify
from .parsers.router import SmsParserRouter
from .transfers import OffsettingPairWindow, is_internal_transfer
from .utils import preview

logger = logging.getLogger(__name__)


class SmsExtractionPipeline:
    """Turns raw SMS into ParsedTransactions. Safe to share between threads."""

    def __init__(self, router: Optional[SmsParserRouter] = None,
                 pair_window: Optional[OffsettingPairWindow] = None,
                 oracle: Optional[EnrichmentOracle] = None,
                 use_default_oracle: bool = True):
        self.router = router or SmsParserRouter()
        self.pair_window = pair_window or OffsettingPairWindow()
        self._oracle = oracle
        self.use_default_oracle = use_default_oracle

    @property
    def oracle(self) -> Optional[EnrichmentOracle]:
        if self._oracle is not None:
            return self._oracle
        return get_default_oracle() if self.use_default_oracle else None

    def process(self, message: RawMessage) -> Optional[ParsedTransaction]:
        """
        Extract one transaction.

        Returns:
            ParsedTransaction, or None when the message is noise, not a
            transaction, or a transfer between the user's own accounts
        """
        verdict = classify(message.body)
        if verdict.reject:
            logger.debug(f"Rejected by noise gate ({verdict.reason}): {preview(message.body)}")
            return None

        transaction = self.router.parse(message)
        if transaction is None:
            return None

        if is_internal_transfer(message.body):
            logger.info(f"Skipping internal transfer from {message.sender}: {preview(message.body)}")
            return None

        self._mark_offsetting_pair(transaction)
        self._enrich(transaction)
        return transaction

    def process_batch(self, messages: Iterable[RawMessage]) -> List[ParsedTransaction]:
        """Process messages oldest first so pairing sees them in arrival order."""
        ordered = sorted(messages, key=lambda m: m.timestamp_millis)
        results = []
        for message in ordered:
            transaction = self.process(message)
            if transaction is not None:
                results.append(transaction)
        logger.info(f"Extracted {len(results)} transactions from {len(ordered)} messages")
        return results

    def _mark_offsetting_pair(self, transaction: ParsedTransaction) -> None:
        counterpart = self.pair_window.register(
            transaction.amount_minor,
            transaction.direction,
            transaction.source_message.timestamp_millis,
            payload=transaction,
        )
        if counterpart is None:
            return
        earlier: ParsedTransaction = counterpart.payload
        transaction.ignore_for_totals = True
        transaction.offset_of = earlier.source_message
        earlier.ignore_for_totals = True
        logger.info(f"Paired {transaction.direction.value} of {transaction.amount} with "
                    f"{earlier.direction.value} from {earlier.source_message.sender}; both excluded from totals")

    def _enrich(self, transaction: ParsedTransaction) -> None:
        oracle = self.oracle
        if oracle is None:
            return
        message = transaction.source_message
        try:
            enrichment = oracle.extract(message.sender, message.body, message.timestamp_millis)
            if enrichment is None or not enrichment.is_transaction:
                return
            merge_enrichment(transaction, enrichment)
        except MemoryError:
            logger.error("Out of memory in enrichment oracle; releasing it")
            oracle.release()
            gc.collect()
        except Exception as e:
            logger.warning(f"Enrichment failed for {message.sender}: {e}", exc_info=True)


def merge_enrichment(transaction: ParsedTransaction, enrichment: Enrichment) -> None:
    """Apply oracle hints. The regex amount always stands; type, channel and
    merchant may be overridden; account tail and bank only fill gaps."""
    if enrichment.amount_minor is not None and enrichment.amount_minor != transaction.amount_minor:
        logger.warning(f"Oracle amount {enrichment.amount_minor} disagrees with parsed "
                       f"{transaction.amount_minor} paise; keeping parsed amount")

    if enrichment.type in ('CREDIT', 'DEBIT') and transaction.direction in TOTALLED_DIRECTIONS:
        transaction.direction = Direction(enrichment.type)
    if isinstance(enrichment.channel, str) and enrichment.channel:
        try:
            transaction.channel = Channel(enrichment.channel.upper())
        except ValueError:
            logger.debug(f"Ignoring unknown channel hint {enrichment.channel!r}")
    if isinstance(enrichment.merchant, str) and enrichment.merchant.strip():
        transaction.merchant_or_counterparty = enrichment.merchant.strip()
    if not transaction.account_tail_digits and isinstance(enrichment.account_tail, str) and enrichment.account_tail:
        transaction.account_tail_digits = enrichment.account_tail
    if not transaction.bank_name and isinstance(enrichment.bank, str) and enrichment.bank:
        transaction.bank_name = enrichment.bank
    transaction.enriched = True


def summarize_totals(transactions: Iterable[ParsedTransaction]) -> Tuple[Decimal, Decimal]:
    """(credits, debits) over CREDIT/DEBIT rows not excluded from totals."""
    credits = Decimal('0')
    debits = Decimal('0')
    for t in transactions:
        if t.ignore_for_totals:
            continue
        if t.direction == Direction.CREDIT:
            credits += t.amount
        elif t.direction == Direction.DEBIT:
            debits += t.amount
    return credits, debits
