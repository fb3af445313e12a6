from __future__ import annotations

from decimal import Decimal

import pytest

from sms_extractor.enrichment import (
    EnrichmentOracle,
    HeuristicEnrichmentOracle,
    LlmEnrichmentOracle,
    get_default_oracle,
    parse_enrichment_json,
    set_default_oracle,
)
from sms_extractor.errors import ProviderAlreadySetError
from sms_extractor.models import Channel, Direction, Enrichment
from sms_extractor.pipeline import SmsExtractionPipeline, merge_enrichment, summarize_totals
from tests.samples import (
    CARD_BILL_PAYMENT,
    HDFC_CARD_SPEND,
    HDFC_UPI_DEBIT,
    IMPS_CREDIT,
    IMPS_DEBIT,
    LOAN_PROMO,
    OTP,
    SELF_TRANSFER,
    UNKNOWN_BANK_UPI,
)

ORACLE_REPLY = ('Sure. {"is_transaction": true, "type": "DEBIT", "amount_minor": 99999, "channel": "card", '
                '"merchant": "Zomato Ltd", "account_tail": "XX9999", "bank": "HDFC"}')


class StaticOracle(EnrichmentOracle):
    def __init__(self, enrichment=None, error=None):
        self.enrichment = enrichment
        self.error = error
        self.released = 0

    def extract(self, sender, body, timestamp_millis):
        if self.error is not None:
            raise self.error
        return self.enrichment

    def release(self):
        self.released += 1


def test_noise_and_non_transactions_yield_nothing(pipeline, sms):
    assert pipeline.process(sms(LOAN_PROMO, sender="VM-HDFCBK")) is None
    assert pipeline.process(sms(OTP)) is None
    assert pipeline.process(sms("Your card XX1234 has been blocked")) is None


def test_internal_transfer_is_dropped(pipeline, sms):
    assert pipeline.process(sms(SELF_TRANSFER)) is None


def test_card_spend_quoting_credit_limit_is_kept(pipeline, sms):
    txn = pipeline.process(sms(HDFC_CARD_SPEND))
    assert txn.direction == Direction.DEBIT
    assert txn.amount == Decimal("1500.00")
    assert txn.credit_card


def test_unknown_sender_upi_payment_is_kept(pipeline, sms):
    txn = pipeline.process(sms(UNKNOWN_BANK_UPI, sender="VK-ABCDEF"))
    assert txn.direction == Direction.DEBIT
    assert txn.merchant_or_counterparty == "Merchant"


def test_offsetting_legs_within_window_leave_totals(pipeline, sms):
    debit = sms(IMPS_DEBIT, sender="AD-HDFCBK")
    credit = sms(IMPS_CREDIT, sender="AD-HDFCBK", offset_ms=60_000)
    results = pipeline.process_batch([credit, debit])
    assert [t.direction for t in results] == [Direction.DEBIT, Direction.CREDIT]
    assert all(t.ignore_for_totals for t in results)
    assert results[1].offset_of == debit
    assert summarize_totals(results) == (Decimal("0"), Decimal("0"))


def test_offsetting_legs_outside_window_count(pipeline, sms):
    results = pipeline.process_batch([
        sms(IMPS_DEBIT, sender="AD-HDFCBK"),
        sms(IMPS_CREDIT, sender="AD-HDFCBK", offset_ms=181_000),
    ])
    assert not any(t.ignore_for_totals for t in results)
    assert summarize_totals(results) == (Decimal("5000.00"), Decimal("5000.00"))


def test_summarize_totals_mixes_banks(pipeline, sms):
    results = pipeline.process_batch([
        sms(HDFC_UPI_DEBIT),
        sms(CARD_BILL_PAYMENT, offset_ms=1_000),
        sms("Rs.5,000.00 debited from A/c XX1234 towards ZERODHA BROKING. Ref 123456789012", offset_ms=2_000),
    ])
    assert results[2].direction == Direction.INVESTMENT
    assert summarize_totals(results) == (Decimal("0"), Decimal("5500.00"))


def test_oracle_hints_merge_but_amount_stands(sms):
    oracle = StaticOracle(parse_enrichment_json(ORACLE_REPLY))
    pipeline = SmsExtractionPipeline(oracle=oracle)
    txn = pipeline.process(sms(HDFC_UPI_DEBIT))
    assert txn.enriched
    assert txn.amount == Decimal("500.00")
    assert txn.merchant_or_counterparty == "Zomato Ltd"
    assert txn.channel == Channel.CARD
    # gaps only: the parsed tail and bank stay
    assert txn.account_tail_digits == "1234"
    assert txn.bank_name == "HDFC Bank"


def test_merge_enrichment_fills_gaps(pipeline, sms):
    txn = pipeline.process(sms(UNKNOWN_BANK_UPI, sender="VK-ABCDEF"))
    merge_enrichment(txn, Enrichment(is_transaction=True, type="CREDIT", channel="teleport", bank="Acme Bank"))
    assert txn.direction == Direction.CREDIT
    assert txn.channel == Channel.UPI
    assert txn.bank_name == "Acme Bank"


def test_oracle_failure_keeps_transaction(sms):
    oracle = StaticOracle(error=RuntimeError("model crashed"))
    txn = SmsExtractionPipeline(oracle=oracle).process(sms(HDFC_UPI_DEBIT))
    assert txn is not None
    assert not txn.enriched


def test_malformed_oracle_hints_are_ignored(pipeline, sms):
    plain = pipeline.process(sms(HDFC_UPI_DEBIT))
    oracle = StaticOracle(Enrichment(is_transaction=True, merchant=42, channel=7, account_tail=1234, bank=[]))
    txn = SmsExtractionPipeline(oracle=oracle, use_default_oracle=False).process(sms(HDFC_UPI_DEBIT))
    assert txn is not None
    assert txn.amount == Decimal("500.00")
    assert txn.merchant_or_counterparty == plain.merchant_or_counterparty == "ZOMATO"
    assert txn.channel == plain.channel
    assert txn.bank_name == "HDFC Bank"


class ExplodingEnrichment:
    is_transaction = True
    amount_minor = None
    type = None
    channel = None

    @property
    def merchant(self):
        raise RuntimeError("broken reply")


def test_merge_failure_keeps_transaction(sms):
    oracle = StaticOracle(ExplodingEnrichment())
    txn = SmsExtractionPipeline(oracle=oracle, use_default_oracle=False).process(sms(HDFC_UPI_DEBIT))
    assert txn is not None
    assert txn.amount == Decimal("500.00")
    assert not txn.enriched


def test_parse_enrichment_json_drops_non_text_fields():
    parsed = parse_enrichment_json('{"is_transaction": true, "merchant": 42, "channel": 7, "bank": " ", '
                                   '"account_tail": "XX1234"}')
    assert parsed.is_transaction
    assert parsed.merchant is None
    assert parsed.channel is None
    assert parsed.bank is None
    assert parsed.account_tail == "1234"


def test_oracle_out_of_memory_releases(sms):
    oracle = StaticOracle(error=MemoryError())
    txn = SmsExtractionPipeline(oracle=oracle).process(sms(HDFC_UPI_DEBIT))
    assert txn is not None
    assert oracle.released == 1


def test_default_oracle_slot_is_write_once(sms):
    first = StaticOracle(Enrichment(is_transaction=True, merchant="From Slot"))
    set_default_oracle(first)
    set_default_oracle(first)
    with pytest.raises(ProviderAlreadySetError):
        set_default_oracle(StaticOracle())
    assert get_default_oracle() is first

    txn = SmsExtractionPipeline().process(sms(HDFC_UPI_DEBIT))
    assert txn.merchant_or_counterparty == "From Slot"
    untouched = SmsExtractionPipeline(use_default_oracle=False).process(sms(HDFC_UPI_DEBIT, offset_ms=5))
    assert untouched.merchant_or_counterparty == "ZOMATO"


def test_llm_oracle_loads_once_and_parses():
    calls = []

    def loader():
        calls.append(1)
        return lambda prompt: ORACLE_REPLY

    oracle = LlmEnrichmentOracle(loader)
    first = oracle.extract("VM-HDFCBK", HDFC_UPI_DEBIT, 0)
    oracle.extract("VM-HDFCBK", HDFC_UPI_DEBIT, 0)
    assert len(calls) == 1
    assert first.type == "DEBIT"
    assert first.amount_minor == 99999
    assert first.account_tail == "9999"
    assert "ZOMATO" in oracle.build_prompt("VM-HDFCBK", HDFC_UPI_DEBIT)


def test_llm_oracle_releases_on_memory_error():
    calls = []

    def generate(prompt):
        raise MemoryError()

    def loader():
        calls.append(1)
        return generate

    oracle = LlmEnrichmentOracle(loader)
    assert oracle.extract("X", "body", 0) is None
    assert oracle.extract("X", "body", 0) is None
    assert len(calls) == 2


def test_parse_enrichment_json_rejects_garbage():
    assert parse_enrichment_json("no json here") is None
    assert parse_enrichment_json("{not valid}") is None
    assert parse_enrichment_json(None) is None
    parsed = parse_enrichment_json('{"is_transaction": true, "type": "refund", "amount_minor": "abc"}')
    assert parsed.type is None
    assert parsed.amount_minor is None


def test_heuristic_oracle():
    oracle = HeuristicEnrichmentOracle()
    result = oracle.extract("VM-HDFCBK", HDFC_UPI_DEBIT, 0)
    assert result.is_transaction
    assert result.type == "DEBIT"
    assert result.amount_minor == 50000
    assert result.bank == "HDFC Bank"
    assert not oracle.extract("VM-HDFCBK", OTP, 0).is_transaction
