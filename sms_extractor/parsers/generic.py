"""Generic SMS parser: the shared walk every dialect runs.

Steps, each first-match-wins over the dialect's tables:
transaction test, amount, direction, merchant, channel, reference,
account tail and balance. Anything short of an amount and a direction
is "not a transaction" and yields None.
"""
import logging
from typing import Optional

from ..amounts import extract_amount
from ..models import ParsedTransaction, RawMessage
from ..utils import preview
from .rules import DialectRules, GENERIC_RULES

logger = logging.getLogger(__name__)


def parse_with_rules(message: RawMessage, rules: DialectRules = GENERIC_RULES,
                     bank_name: Optional[str] = None) -> Optional[ParsedTransaction]:
    """
    Run the extraction steps for one message under one dialect.

    Args:
        message: the raw SMS
        rules: dialect rule bundle (generic rules when the sender is unknown)
        bank_name: bank to stamp on the result

    Returns:
        ParsedTransaction, or None when the body is not a transaction
    """
    body = message.body or ''
    reason = rules.suppression_reason(body)
    if reason:
        logger.debug(f"Suppressed ({reason}): {preview(body)}")
        return None
    if not rules.is_transaction(body):
        return None

    amount = extract_amount(body)
    if amount is None:
        logger.debug(f"No amount found: {preview(body)}")
        return None

    direction = rules.direction(body)
    if direction is None:
        logger.debug(f"No direction cue: {preview(body)}")
        return None

    return ParsedTransaction(
        amount=amount,
        direction=direction,
        source_message=message,
        merchant_or_counterparty=rules.merchant(body),
        reference_id=rules.reference(body),
        account_tail_digits=rules.account_tail(body),
        balance_after=rules.balance(body),
        bank_name=bank_name,
        channel=rules.channel(body),
        credit_card=rules.credit_card_spend(body),
    )


def parse_generic(message: RawMessage, bank_name: Optional[str] = None) -> Optional[ParsedTransaction]:
    return parse_with_rules(message, GENERIC_RULES, bank_name)
