from __future__ import annotations

from decimal import Decimal

import pytest

from sms_extractor.amounts import extract_amount, rank_candidates
from sms_extractor.models import Channel
from sms_extractor.patterns import (
    clean_merchant_name,
    extract_account_tail,
    extract_account_tails,
    extract_balance,
    extract_channel,
    extract_merchant,
    extract_reference,
    is_investment,
    is_valid_merchant_name,
)
from tests.samples import HDFC_UPI_DEBIT, ICICI_CARD_SPEND


@pytest.mark.parametrize(
    "body, expected",
    [
        ("Rs.1,234.56 debited from A/c XX1234", Decimal("1234.56")),
        ("Rs.1,00,000.00 credited to A/c XX1234", Decimal("100000.00")),
        ("Rs.0.50 credited to A/c XX1234 as interest", Decimal("0.50")),
        ("INR 349 paid to SWIGGY", Decimal("349")),
        ("₹ 75 debited for UPI txn", Decimal("75")),
        ("Amount: 1500 debited from your account", Decimal("1500")),
    ],
)
def test_extract_amount_formats(body, expected):
    assert extract_amount(body) == expected


def test_transaction_amount_wins_over_later_balance():
    assert extract_amount("Rs.500 debited from A/c XX1234. Avl Bal Rs.10,000") == Decimal("500")
    assert extract_amount(HDFC_UPI_DEBIT) == Decimal("500.00")


def test_card_spend_amount_wins_over_available_limit():
    assert extract_amount(ICICI_CARD_SPEND) == Decimal("1250.00")


def test_rank_candidates_orders_every_figure():
    ranked = rank_candidates(HDFC_UPI_DEBIT)
    assert [value for _, value, _ in ranked] == [Decimal("500.00"), Decimal("25000.00")]


# keeps the opening figure outside the cue window of the closing one
_CARRY_FORWARD = ("reward points noted for your account XX1234 this month and carried forward "
                  "to next cycle as usual. ")


@pytest.mark.parametrize(
    "body, expected",
    [
        ("Rs.50 " + _CARRY_FORWARD + "Txn of Rs.1,200.00 at CROMA", Decimal("1200.00")),
        ("Rs.20 " + _CARRY_FORWARD + "Cashback of Rs.150.00 added to wallet", Decimal("150.00")),
        ("Rs.10 " + _CARRY_FORWARD + "Cash deposit of Rs.5,000.00 at branch", Decimal("5000.00")),
    ],
)
def test_txn_cashback_and_deposit_cues_pick_the_figure(body, expected):
    ranked = rank_candidates(body)
    assert ranked[0][1] == expected
    assert ranked[0][0] > ranked[1][0]


def test_extract_amount_without_figures():
    assert extract_amount("Your card has been blocked") is None
    assert extract_amount("") is None


def test_clean_merchant_name_strips_until_stable():
    assert clean_merchant_name("AMAZON PVT LTD Ref:12345 15/08/24") == "AMAZON"
    assert clean_merchant_name("SWIGGY (UPI)") == "SWIGGY"
    assert clean_merchant_name("BIGBASKET 14:30") == "BIGBASKET"
    assert clean_merchant_name("  ") is None


def test_merchant_validation():
    assert is_valid_merchant_name("ZOMATO")
    assert not is_valid_merchant_name("A/c XX1234")
    assert not is_valid_merchant_name("rahul@okaxis")
    assert not is_valid_merchant_name("1234")
    assert not is_valid_merchant_name("X")


def test_extract_merchant_patterns():
    assert extract_merchant(HDFC_UPI_DEBIT) == "ZOMATO"
    assert extract_merchant("Paid Rs.120 to Swiggy via UPI") == "Swiggy"
    assert extract_merchant("Rs.50 debited. VPA swiggy@ybl (SWIGGY) UPI Ref 123456789") == "SWIGGY"
    assert extract_merchant("Rs.50 debited from your account") is None


def test_extract_reference():
    assert extract_reference(HDFC_UPI_DEBIT) == "123456789"
    assert extract_reference("NEFT credit. UTR No. 412345678901") == "412345678901"
    assert extract_reference("Paid. Txn ID: ab12cd34") == "AB12CD34"
    # references carry at least one digit
    assert extract_reference("Ref: ABCDEFGH") is None


def test_account_tails():
    assert extract_account_tail(HDFC_UPI_DEBIT) == "1234"
    assert extract_account_tail("Spent on Card XX4321 at AMAZON") == "4321"
    assert extract_account_tails("debited from A/c XX1111 and credited to A/c XX2222") == ["1111", "2222"]


def test_extract_balance():
    assert extract_balance(HDFC_UPI_DEBIT) == Decimal("25000.00")
    assert extract_balance("Rs.100 debited from A/c XX1234") is None


def test_channel_priority():
    assert extract_channel(HDFC_UPI_DEBIT) == Channel.UPI
    assert extract_channel("Rs.2000 withdrawn at ATM using Debit Card XX1234") == Channel.ATM
    assert extract_channel("Rs.2000 sent via NEFT") == Channel.NEFT
    assert extract_channel("Rs.2000 debited") is None


def test_investment_keywords_are_word_bounded():
    assert is_investment("Rs.5000 debited towards ZERODHA BROKING")
    assert is_investment("SIP of Rs.1000 processed")
    assert not is_investment("Paid Rs.200 at GOSSIP CAFE")
    assert not is_investment("Rs.300 spent on expense account")
