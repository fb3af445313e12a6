"""On-device multi-task SMS classifier adapter.

The model takes one int32 row of 200 token ids and returns five tensors:

    0  direction       [1, 3]        DEBIT, CREDIT, NONE
    1  merchant NER    [1, 200, 3]   BIO tags O=0, B=1, I=2
    2  amount NER      [1, 200, 3]
    3  classification  [1, 1]        > 0.5 means transactional
    4  type NER        [1, 200, 3]

Any model trouble (missing file, wrong shapes, out of memory, timeout)
degrades to the regex analysis, which returns the same SmsAnalysis shape.
"""
import gc
import json
import logging
import os
import re
import threading
import zlib
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .amounts import extract_amount
from .errors import InferenceTimeoutError, ModelLoadError
from .models import Direction, SmsAnalysis
from .noise import is_noise
from .parsers.rules import resolve_direction
from .patterns import extract_channel, extract_merchant
from .utils import parse_amount_safe, preview

logger = logging.getLogger(__name__)

MAX_SEQ_LEN = 200
PAD_ID = 0
UNK_ID = 1
HASH_BUCKETS = 8000
NUM_TAGS = 3
TAG_O, TAG_B, TAG_I = 0, 1, 2

EXPECTED_OUTPUT_SHAPES = [
    (1, 3),
    (1, MAX_SEQ_LEN, NUM_TAGS),
    (1, MAX_SEQ_LEN, NUM_TAGS),
    (1, 1),
    (1, MAX_SEQ_LEN, NUM_TAGS),
]
DIRECTION_LABELS = (Direction.DEBIT, Direction.CREDIT, None)
TRANSACTIONAL_THRESHOLD = 0.5

FALLBACK_CONFIDENCE = 0.8
FALLBACK_REJECT_CONFIDENCE = 0.3
FALLBACK_DIRECTION_CONFIDENCE = 0.7

TOKEN_CLEANUP = re.compile(r'[^a-z0-9.@/]+')

Engine = Callable[[np.ndarray], Sequence[np.ndarray]]


class SmsTokenizer:
    """Whitespace tokenizer with a vocab file and a CRC32 hash fallback."""

    def __init__(self, vocab_path: Optional[str] = None):
        self.vocab: Dict[str, int] = {}
        if vocab_path:
            self.vocab = self._load_vocab(vocab_path)

    @staticmethod
    def _load_vocab(path: str) -> Dict[str, int]:
        with open(path, encoding='utf-8') as f:
            if path.endswith('.json'):
                return {str(k): int(v) for k, v in json.load(f).items()}
            return {line.rstrip('\n'): idx for idx, line in enumerate(f) if line.strip()}

    @staticmethod
    def words(text: str) -> List[str]:
        return TOKEN_CLEANUP.sub(' ', (text or '').lower()).split()

    def token_id(self, word: str) -> int:
        if self.vocab:
            return self.vocab.get(word, UNK_ID)
        return zlib.crc32(word.encode('utf-8')) % HASH_BUCKETS

    def encode(self, text: str) -> np.ndarray:
        """Token ids padded or truncated to MAX_SEQ_LEN, shaped [1, MAX_SEQ_LEN]."""
        ids = [self.token_id(w) for w in self.words(text)[:MAX_SEQ_LEN]]
        ids += [PAD_ID] * (MAX_SEQ_LEN - len(ids))
        return np.asarray(ids, dtype=np.int32).reshape(1, MAX_SEQ_LEN)


def decode_first_span(tag_scores: np.ndarray, words: Sequence[str]) -> Optional[str]:
    """First B(I)* span over the words. An I with no open span is ignored."""
    tags = np.argmax(tag_scores, axis=-1)
    span: List[str] = []
    for idx, word in enumerate(words[:MAX_SEQ_LEN]):
        tag = int(tags[idx])
        if tag == TAG_B:
            if span:
                break
            span = [word]
        elif tag == TAG_I and span:
            span.append(word)
        elif span:
            break
    return ' '.join(span) if span else None


def validate_outputs(outputs: Sequence[np.ndarray]) -> None:
    if len(outputs) != len(EXPECTED_OUTPUT_SHAPES):
        raise ModelLoadError(f"Expected {len(EXPECTED_OUTPUT_SHAPES)} outputs, got {len(outputs)}")
    for idx, (tensor, expected) in enumerate(zip(outputs, EXPECTED_OUTPUT_SHAPES)):
        if tuple(np.shape(tensor)) != expected:
            raise ModelLoadError(f"Output {idx} has shape {tuple(np.shape(tensor))}, expected {expected}")


class TorchScriptEngine:
    """Runs a TorchScript export of the multi-task model on CPU."""

    def __init__(self, model_path: str):
        import torch

        self._torch = torch
        self.module = torch.jit.load(model_path, map_location='cpu')
        self.module.eval()

    def __call__(self, input_ids: np.ndarray) -> List[np.ndarray]:
        with self._torch.no_grad():
            outputs = self.module(self._torch.from_numpy(input_ids))
        return [t.detach().cpu().numpy() for t in outputs]

    def close(self) -> None:
        self.module = None


def load_torchscript_engine(model_path: str) -> Engine:
    return TorchScriptEngine(model_path)


class SmsMultiTaskClassifier:
    """Thread-safe adapter around the multi-task model.

    Loading happens under an init lock and is published with one
    assignment, so readers see either no engine or a validated one.
    Inference is serialized by a separate lock; tokenizing and decoding
    run outside it.
    """

    def __init__(self, model_path: Optional[str] = None, vocab_path: Optional[str] = None,
                 engine_factory: Callable[[str], Engine] = load_torchscript_engine):
        self.model_path = model_path
        self.tokenizer = SmsTokenizer(vocab_path)
        self.engine_factory = engine_factory
        self._engine: Optional[Engine] = None
        self._init_lock = threading.Lock()
        self._inference_lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._engine is not None

    def load_model(self) -> bool:
        """Load and validate the model once. Returns False when it cannot be used."""
        if self._engine is not None:
            return True
        with self._init_lock:
            if self._engine is not None:
                return True
            if not self.model_path or not os.path.exists(self.model_path):
                logger.debug(f"No classifier model at {self.model_path}; using regex analysis")
                return False
            try:
                engine = self.engine_factory(self.model_path)
                validate_outputs(engine(np.zeros((1, MAX_SEQ_LEN), dtype=np.int32)))
            except MemoryError:
                logger.error("Out of memory while loading classifier model")
                gc.collect()
                return False
            except ModelLoadError as e:
                logger.error(f"Classifier model rejected: {e}")
                return False
            except Exception as e:
                logger.error(f"Failed to load classifier model {self.model_path}: {e}", exc_info=True)
                return False
            self._engine = engine
            logger.info(f"Classifier model loaded from {self.model_path}")
            return True

    def analyze_sms(self, text: str) -> SmsAnalysis:
        """Model analysis when available, regex analysis otherwise. Never returns None."""
        if self._engine is None and not self.load_model():
            return self.analyze_fallback(text)
        engine = self._engine
        if engine is None:
            return self.analyze_fallback(text)

        input_ids = self.tokenizer.encode(text)
        try:
            with self._inference_lock:
                outputs = engine(input_ids)
            validate_outputs(outputs)
        except MemoryError:
            logger.error("Out of memory during classifier inference; releasing model")
            self.release()
            return self.analyze_fallback(text)
        except Exception as e:
            logger.warning(f"Classifier inference failed for '{preview(text)}': {e}")
            return self.analyze_fallback(text)
        return self._postprocess(text, outputs)

    def _postprocess(self, text: str, outputs: Sequence[np.ndarray]) -> SmsAnalysis:
        words = self.tokenizer.words(text)
        direction_scores = np.asarray(outputs[0][0], dtype=np.float32)
        direction = DIRECTION_LABELS[int(np.argmax(direction_scores))]
        classification = float(np.asarray(outputs[3]).reshape(-1)[0])

        amount = None
        amount_span = decode_first_span(outputs[2][0], words)
        if amount_span:
            amount = parse_amount_safe(re.sub(r'^(?:rs\.?|inr)', '', amount_span))
        if amount is None:
            amount = extract_amount(text)

        return SmsAnalysis(
            is_transactional=classification > TRANSACTIONAL_THRESHOLD,
            confidence=classification,
            merchant=decode_first_span(outputs[1][0], words),
            amount=amount,
            transaction_type=decode_first_span(outputs[4][0], words),
            direction=direction,
            direction_confidence=float(np.max(direction_scores)) if direction else 0.0,
            from_model=True,
        )

    def analyze_fallback(self, text: str) -> SmsAnalysis:
        """Regex-only analysis with the model's output contract."""
        text = text or ''
        amount = extract_amount(text)
        direction = resolve_direction(text) if text else None
        if direction not in (Direction.CREDIT, Direction.DEBIT):
            direction = None
        transactional = bool(text) and not is_noise(text) and amount is not None and direction is not None
        channel = extract_channel(text)
        return SmsAnalysis(
            is_transactional=transactional,
            confidence=FALLBACK_CONFIDENCE if transactional else FALLBACK_REJECT_CONFIDENCE,
            merchant=extract_merchant(text),
            amount=amount,
            transaction_type=channel.value if channel else None,
            direction=direction,
            direction_confidence=FALLBACK_DIRECTION_CONFIDENCE if direction else 0.0,
            from_model=False,
        )

    def release(self) -> None:
        """Drop the engine and reclaim memory; the next call may reload it."""
        with self._init_lock:
            engine, self._engine = self._engine, None
        close = getattr(engine, 'close', None)
        if callable(close):
            close()
        gc.collect()


_executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix='sms-classifier')


def analyze_sms_with_timeout(classifier: SmsMultiTaskClassifier, text: str,
                             timeout_seconds: float = 2.0, raise_on_timeout: bool = False) -> SmsAnalysis:
    """Run analyze_sms on a worker thread; past the deadline, answer with the regex analysis
    (or raise InferenceTimeoutError when raise_on_timeout is set)."""
    future = _executor.submit(classifier.analyze_sms, text)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeout:
        logger.warning(f"Classifier timed out after {timeout_seconds}s; using regex analysis")
        future.cancel()
        if raise_on_timeout:
            raise InferenceTimeoutError(f"Classifier did not answer within {timeout_seconds}s")
        return classifier.analyze_fallback(text)


# --- Process-wide classifier ---
_classifier: Optional[SmsMultiTaskClassifier] = None
_classifier_lock = threading.Lock()


def get_classifier(model_path: Optional[str] = None, vocab_path: Optional[str] = None) -> SmsMultiTaskClassifier:
    global _classifier
    if _classifier is None:
        with _classifier_lock:
            if _classifier is None:
                _classifier = SmsMultiTaskClassifier(model_path, vocab_path)
    return _classifier


def reload_classifier(model_path: Optional[str] = None, vocab_path: Optional[str] = None) -> SmsMultiTaskClassifier:
    global _classifier
    with _classifier_lock:
        if _classifier is not None:
            _classifier.release()
        _classifier = SmsMultiTaskClassifier(model_path, vocab_path)
    return _classifier
