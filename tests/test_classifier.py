from __future__ import annotations

import json
import time
from decimal import Decimal

import numpy as np
import pytest

from sms_extractor.classifier import (
    HASH_BUCKETS,
    MAX_SEQ_LEN,
    SmsMultiTaskClassifier,
    SmsTokenizer,
    TAG_B,
    TAG_I,
    analyze_sms_with_timeout,
    decode_first_span,
)
from sms_extractor.errors import InferenceTimeoutError
from sms_extractor.models import Direction

CREDIT_SMS = "Rs.500 credited from RAHUL via UPI"


def _tags(length=MAX_SEQ_LEN, **positions):
    """[1, length, 3] one-hot tag scores, O everywhere except the given word positions."""
    scores = np.zeros((1, length, 3), dtype=np.float32)
    scores[0, :, 0] = 1.0
    for idx, tag in positions.items():
        position = int(idx.lstrip("w"))
        scores[0, position, :] = 0.0
        scores[0, position, tag] = 1.0
    return scores


class FakeEngine:
    """Stands in for the TorchScript model with fixed outputs."""

    def __init__(self, outputs=None, delay=0.0, error=None):
        self.outputs = outputs
        self.delay = delay
        self.error = error
        self.calls = 0
        self.closed = False

    def __call__(self, input_ids):
        assert input_ids.shape == (1, MAX_SEQ_LEN)
        assert input_ids.dtype == np.int32
        self.calls += 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None and self.calls > 1:
            raise self.error
        return self.outputs

    def close(self):
        self.closed = True


def _credit_outputs():
    # words: rs.500 credited from rahul via upi
    return [
        np.array([[0.1, 0.8, 0.1]], dtype=np.float32),
        _tags(w3=TAG_B),
        _tags(w0=TAG_B),
        np.array([[0.93]], dtype=np.float32),
        _tags(w5=TAG_B),
    ]


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "sms_multitask.pt"
    path.write_bytes(b"stub")
    return str(path)


def _classifier(model_file, engine):
    return SmsMultiTaskClassifier(model_file, engine_factory=lambda path: engine)


def test_missing_model_uses_regex_analysis():
    clf = SmsMultiTaskClassifier(model_path=None)
    result = clf.analyze_sms("Rs.500 debited from A/c XX1234 at ZOMATO")
    assert result is not None
    assert not result.from_model
    assert result.is_transactional
    assert result.confidence == 0.8
    assert result.amount == Decimal("500")
    assert result.direction == Direction.DEBIT
    assert result.direction_confidence == 0.7
    assert result.merchant == "ZOMATO"
    assert not clf.is_loaded


def test_fallback_rejects_noise():
    result = SmsMultiTaskClassifier().analyze_sms("Your OTP for transaction of Rs.2,000 is 123456")
    assert not result.is_transactional
    assert result.confidence == 0.3


def test_model_outputs_are_decoded(model_file):
    engine = FakeEngine(_credit_outputs())
    clf = _classifier(model_file, engine)
    result = clf.analyze_sms(CREDIT_SMS)
    assert clf.is_loaded
    assert result.from_model
    assert result.is_transactional
    assert result.direction == Direction.CREDIT
    assert result.direction_confidence == pytest.approx(0.8)
    assert result.merchant == "rahul"
    assert result.amount == Decimal("500")
    assert result.transaction_type == "upi"
    # one warm-up pass at load time, one for the message
    assert engine.calls == 2


def test_wrong_output_shapes_reject_the_model(model_file):
    outputs = _credit_outputs()[:4]
    clf = _classifier(model_file, FakeEngine(outputs))
    assert not clf.load_model()
    assert not clf.analyze_sms(CREDIT_SMS).from_model


def test_engine_factory_failure_falls_back(model_file):
    def broken(path):
        raise RuntimeError("corrupt file")

    clf = SmsMultiTaskClassifier(model_file, engine_factory=broken)
    assert not clf.analyze_sms(CREDIT_SMS).from_model


def test_out_of_memory_releases_engine(model_file):
    engine = FakeEngine(_credit_outputs(), error=MemoryError())
    clf = _classifier(model_file, engine)
    result = clf.analyze_sms(CREDIT_SMS)
    assert not result.from_model
    assert not clf.is_loaded
    assert engine.closed


def test_timeout_answers_with_regex_analysis(model_file):
    clf = _classifier(model_file, FakeEngine(_credit_outputs(), delay=0.5))
    result = analyze_sms_with_timeout(clf, CREDIT_SMS, timeout_seconds=0.05)
    assert not result.from_model
    assert result.direction == Direction.CREDIT


def test_timeout_can_raise(model_file):
    clf = _classifier(model_file, FakeEngine(_credit_outputs(), delay=0.5))
    with pytest.raises(InferenceTimeoutError):
        analyze_sms_with_timeout(clf, CREDIT_SMS, timeout_seconds=0.05, raise_on_timeout=True)


def test_decode_first_span():
    words = ["paid", "amazon", "pay", "india", "via", "upi"]
    scores = _tags(length=len(words), w1=TAG_B, w2=TAG_I, w3=TAG_I, w5=TAG_B)
    assert decode_first_span(scores[0], words) == "amazon pay india"
    # an I with no open span is ignored
    stray = _tags(length=len(words), w0=TAG_I, w4=TAG_B)
    assert decode_first_span(stray[0], words) == "via"
    assert decode_first_span(_tags(length=len(words))[0], words) is None


def test_tokenizer_pads_and_hashes():
    tokenizer = SmsTokenizer()
    ids = tokenizer.encode("Rs.500 debited")
    assert ids.shape == (1, MAX_SEQ_LEN)
    assert ids.dtype == np.int32
    assert ids[0, 2] == 0
    assert 0 <= ids[0, 0] < HASH_BUCKETS
    assert tokenizer.token_id("debited") == tokenizer.token_id("debited")
    long_ids = tokenizer.encode("word " * 500)
    assert long_ids.shape == (1, MAX_SEQ_LEN)


def test_tokenizer_vocab_files(tmp_path):
    json_vocab = tmp_path / "vocab.json"
    json_vocab.write_text(json.dumps({"debited": 7, "rs.500": 9}), encoding="utf-8")
    ids = SmsTokenizer(str(json_vocab)).encode("Rs.500 debited unknownword")
    assert list(ids[0, :4]) == [9, 7, 1, 0]

    line_vocab = tmp_path / "vocab.txt"
    line_vocab.write_text("<pad>\n<unk>\ncredited\n", encoding="utf-8")
    assert SmsTokenizer(str(line_vocab)).token_id("credited") == 2
