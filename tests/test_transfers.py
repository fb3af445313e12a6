from __future__ import annotations

import threading

from sms_extractor.models import Direction
from sms_extractor.transfers import OffsettingPairWindow, is_internal_transfer, is_merchant_payment
from tests.samples import HDFC_UPI_DEBIT, IMPS_DEBIT, SELF_TRANSFER, T0


def test_self_transfer_wording():
    assert is_internal_transfer(SELF_TRANSFER)
    assert is_internal_transfer("Rs.2,000 moved between your accounts")


def test_two_account_tails_with_both_verbs():
    body = "Rs.2,000 debited from A/c XX1111 and credited to A/c XX2222 via IMPS Ref 998877665544"
    assert is_internal_transfer(body)


def test_merchant_upi_payment_is_not_a_transfer():
    body = "Rs.500 paid via UPI to SWIGGY. Funds transfer Ref 123456789"
    assert is_merchant_payment(body)
    assert not is_internal_transfer(body)
    assert not is_internal_transfer(HDFC_UPI_DEBIT)


def test_plain_debit_is_not_a_transfer():
    assert not is_internal_transfer(IMPS_DEBIT)
    assert not is_internal_transfer("")


def test_pair_inside_window():
    window = OffsettingPairWindow(window_millis=180_000)
    assert window.register(500000, Direction.DEBIT, T0, payload="debit") is None
    leg = window.register(500000, Direction.CREDIT, T0 + 60_000, payload="credit")
    assert leg is not None
    assert leg.payload == "debit"
    assert window.pending_count() == 0


def test_no_pair_outside_window():
    window = OffsettingPairWindow(window_millis=180_000)
    window.register(500000, Direction.DEBIT, T0)
    assert window.register(500000, Direction.CREDIT, T0 + 181_000) is None


def test_same_direction_and_other_amounts_never_pair():
    window = OffsettingPairWindow()
    window.register(500000, Direction.DEBIT, T0)
    assert window.register(500000, Direction.DEBIT, T0 + 1_000) is None
    assert window.register(499900, Direction.CREDIT, T0 + 2_000) is None
    assert window.register(500000, Direction.INVESTMENT, T0 + 3_000) is None


def test_leg_pairs_at_most_once():
    window = OffsettingPairWindow()
    window.register(100, Direction.DEBIT, T0, payload="d1")
    assert window.register(100, Direction.CREDIT, T0 + 1, payload="c1").payload == "d1"
    # d1 is spent; the second credit waits for its own debit
    assert window.register(100, Direction.CREDIT, T0 + 2, payload="c2") is None
    assert window.register(100, Direction.DEBIT, T0 + 3, payload="d2").payload == "c2"


def test_concurrent_registration_pairs_everything():
    window = OffsettingPairWindow(max_legs_per_amount=512)
    matches = []
    lock = threading.Lock()

    def worker(direction):
        for i in range(100):
            leg = window.register(100, direction, T0 + i)
            if leg is not None:
                with lock:
                    matches.append(leg)

    threads = [threading.Thread(target=worker, args=(d,)) for d in (Direction.DEBIT, Direction.CREDIT)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(matches) == 100
    assert window.pending_count() == 0


def test_sweep_drops_stale_amounts():
    window = OffsettingPairWindow(window_millis=1_000, max_amounts=2)
    window.register(1, Direction.DEBIT, T0)
    window.register(2, Direction.DEBIT, T0)
    window.register(3, Direction.DEBIT, T0 + 10_000)
    assert window.pending_count() == 1
