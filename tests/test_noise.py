from __future__ import annotations

import pytest

from sms_extractor import noise
from tests.samples import HDFC_CARD_SPEND, HDFC_UPI_DEBIT, ICICI_CARD_SPEND, LOAN_PROMO, OTP


@pytest.mark.parametrize(
    "body, reason",
    [
        (OTP, noise.REASON_OTP),
        ("RAHUL has requested money from you on Google Pay. On approving, Rs.500 will be debited",
         noise.REASON_PAYMENT_REQUEST),
        (LOAN_PROMO, noise.REASON_MARKETING),
        ("Your credit limit can be increased to Rs.2,00,000. Reply YES", noise.REASON_LOAN_PROMO),
        ("Your HDFC Bank Credit Card statement is generated. Total due Rs.12,345. Minimum due Rs.620",
         noise.REASON_STATEMENT),
        ("Your credit card payment of Rs.5,000 is due on 10/09. Pay now to avoid late fee",
         noise.REASON_DUE_REMINDER),
        ("Your KYC is pending. Visit bit.ly/kyc-upd to update and keep your account active",
         noise.REASON_LINK_SPAM),
        ("Avl Bal in A/c XX1234 is Rs.10,000.00 as on 15-08-2024", noise.REASON_BALANCE_ONLY),
        ("   ", "empty"),
    ],
)
def test_rejects_with_reason(body, reason):
    verdict = noise.classify(body)
    assert verdict.reject
    assert verdict.reason == reason


@pytest.mark.parametrize("body", [HDFC_UPI_DEBIT, ICICI_CARD_SPEND, HDFC_CARD_SPEND])
def test_genuine_alerts_pass(body):
    verdict = noise.classify(body)
    assert not verdict.reject
    assert verdict.reason is None


def test_marketing_tail_on_real_alert_is_kept():
    body = ("Rs.799.00 debited from A/c XX1234 at MYNTRA. UPI Ref 512345678901. "
            "Get 10% off on your next order")
    assert noise.has_structural_evidence(body)
    assert not noise.is_noise(body)


def test_card_payment_received_is_not_a_statement():
    body = "Payment of Rs.5,000 received towards your credit card statement. Thank you"
    assert noise.classify(body).reason != noise.REASON_STATEMENT


@pytest.mark.parametrize(
    "body",
    [
        "Txn of Rs.2,000 on your card. Your credit limit is now Rs.50,000",
        "Rs.300 paid via UPI to SWIGGY. Avl credit limit Rs.9,700",
        "Transfer of Rs.1,000 via IMPS successful. Loan EMI account XX4411",
    ],
)
def test_transaction_words_rescue_limit_wording(body):
    assert noise.classify(body).reason != noise.REASON_LOAN_PROMO
