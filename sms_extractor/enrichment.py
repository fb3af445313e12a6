"""Optional enrichment oracles.

An oracle looks at a message the regex pipeline already accepted and may
supply a better merchant, channel or direction. It never decides whether a
message is a transaction and never changes the amount.

The process-wide oracle lives in a write-once slot; prefer passing an
oracle to the pipeline constructor.
"""
import gc
import json
import logging
import re
import threading
from typing import Any, Callable, Dict, Optional

from .errors import ProviderAlreadySetError
from .amounts import extract_amount
from .models import Enrichment, to_minor_units
from .noise import is_noise
from .parsers.detect import SenderDialectResolver
from .parsers.rules import resolve_direction
from .patterns import extract_account_tail, extract_channel, extract_merchant
from .transfers import is_internal_transfer
from .utils import preview

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = (
    "You extract bank transactions from Indian SMS. Reply with ONE JSON object and nothing else, using keys: "
    "is_transaction (bool), is_internal_transfer (bool), type (\"CREDIT\" or \"DEBIT\" or null), "
    "amount_minor (integer paise or null), channel (UPI, CARD, ATM, POS, IMPS, NEFT, RTGS, NETBANKING or null), "
    "merchant (string or null), account_tail (last 4 digits or null), bank (string or null).\n"
    "Sender: {sender}\nSMS: {body}\nJSON:"
)
JSON_OBJECT = re.compile(r'\{.*\}', re.DOTALL)


class EnrichmentOracle:
    """Interface for enrichment providers."""

    def extract(self, sender: str, body: str, timestamp_millis: int) -> Optional[Enrichment]:
        raise NotImplementedError

    def release(self) -> None:
        """Free any heavy resources (model weights)."""


class HeuristicEnrichmentOracle(EnrichmentOracle):
    """Regex-only oracle; useful as a stand-in where no model is deployed."""

    def __init__(self, resolver: Optional[SenderDialectResolver] = None):
        self.resolver = resolver or SenderDialectResolver()

    def extract(self, sender: str, body: str, timestamp_millis: int) -> Optional[Enrichment]:
        if not body or is_noise(body):
            return Enrichment(is_transaction=False)
        amount = extract_amount(body)
        direction = resolve_direction(body)
        if amount is None or direction is None:
            return Enrichment(is_transaction=False)
        channel = extract_channel(body)
        return Enrichment(
            is_transaction=True,
            is_internal_transfer=is_internal_transfer(body),
            type=direction.value,
            amount_minor=to_minor_units(amount),
            channel=channel.value if channel else None,
            merchant=extract_merchant(body),
            account_tail=extract_account_tail(body),
            bank=self.resolver.bank_name(sender),
        )


class LlmEnrichmentOracle(EnrichmentOracle):
    """Wraps an on-device text generator behind the oracle interface.

    ``loader`` returns a ``generate(prompt) -> str`` callable. It is invoked
    once, lazily, under an init lock; generation itself is serialized by a
    separate inference lock because local runtimes are not re-entrant.
    """

    def __init__(self, loader: Callable[[], Callable[[str], str]], max_body_chars: int = 1000):
        self._loader = loader
        self._generate: Optional[Callable[[str], str]] = None
        self._init_lock = threading.Lock()
        self._inference_lock = threading.Lock()
        self.max_body_chars = max_body_chars

    def _ensure_loaded(self) -> Optional[Callable[[str], str]]:
        generate = self._generate
        if generate is not None:
            return generate
        with self._init_lock:
            if self._generate is None:
                self._generate = self._loader()
                logger.info("Enrichment generator loaded")
            return self._generate

    def build_prompt(self, sender: str, body: str) -> str:
        return PROMPT_TEMPLATE.format(sender=sender or 'UNKNOWN', body=(body or '')[:self.max_body_chars])

    def extract(self, sender: str, body: str, timestamp_millis: int) -> Optional[Enrichment]:
        prompt = self.build_prompt(sender, body)
        try:
            generate = self._ensure_loaded()
            with self._inference_lock:
                raw = generate(prompt)
        except MemoryError:
            logger.error("Out of memory during enrichment; releasing generator")
            self.release()
            return None
        except Exception as e:
            logger.warning(f"Enrichment generation failed for '{preview(body)}': {e}")
            return None
        return parse_enrichment_json(raw)

    def release(self) -> None:
        with self._init_lock:
            self._generate = None
        gc.collect()


def _text_field(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if not isinstance(value, str):
        return None
    return value.strip() or None


def parse_enrichment_json(raw: Optional[str]) -> Optional[Enrichment]:
    """Pull the first JSON object out of a generator reply."""
    if not raw:
        return None
    match = JSON_OBJECT.search(raw)
    if not match:
        logger.warning(f"Enrichment reply had no JSON object: {preview(raw)}")
        return None
    try:
        data: Dict[str, Any] = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.warning(f"Enrichment reply was not valid JSON: {e}")
        return None
    if not isinstance(data, dict):
        return None

    amount_minor = data.get('amount_minor')
    if amount_minor is not None:
        try:
            amount_minor = int(amount_minor)
        except (TypeError, ValueError):
            amount_minor = None
    tx_type = data.get('type')
    tx_type = tx_type.upper() if isinstance(tx_type, str) and tx_type.upper() in {'CREDIT', 'DEBIT'} else None
    tail = data.get('account_tail')
    tail = str(tail)[-4:] if tail not in (None, '') else None
    channel, merchant, bank = (_text_field(data, key) for key in ('channel', 'merchant', 'bank'))
    return Enrichment(
        is_transaction=bool(data.get('is_transaction', False)),
        is_internal_transfer=data.get('is_internal_transfer'),
        type=tx_type,
        amount_minor=amount_minor,
        channel=channel,
        merchant=merchant,
        account_tail=tail,
        bank=bank,
    )


# --- Process-wide oracle slot ---
_default_oracle: Optional[EnrichmentOracle] = None
_slot_lock = threading.Lock()


def set_default_oracle(oracle: EnrichmentOracle) -> None:
    """Install the process-wide oracle. Filling an occupied slot raises."""
    global _default_oracle
    with _slot_lock:
        if _default_oracle is not None and _default_oracle is not oracle:
            raise ProviderAlreadySetError(f"Enrichment oracle already set: {type(_default_oracle).__name__}")
        _default_oracle = oracle


def get_default_oracle() -> Optional[EnrichmentOracle]:
    with _slot_lock:
        return _default_oracle


def clear_default_oracle() -> None:
    """Empty the slot at shutdown; releases the oracle's resources."""
    global _default_oracle
    with _slot_lock:
        oracle, _default_oracle = _default_oracle, None
    if oracle is not None:
        oracle.release()
