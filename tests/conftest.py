from __future__ import annotations

import pytest

from sms_extractor.config import Settings
from sms_extractor.enrichment import clear_default_oracle
from sms_extractor.models import RawMessage
from sms_extractor.pipeline import SmsExtractionPipeline
from sms_extractor.transfers import OffsettingPairWindow
from tests.samples import T0


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path, monkeypatch):
    """Keep log files and env-driven settings inside the test's tmp dir."""
    monkeypatch.setenv("SMS_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("SMS_DATABASE_URI", f"sqlite:///{tmp_path / 'env.db'}")
    for name in ("SMS_MODEL_PATH", "SMS_VOCAB_PATH", "SMS_ENABLE_HEURISTIC_ORACLE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _empty_oracle_slot():
    clear_default_oracle()
    yield
    clear_default_oracle()


@pytest.fixture
def sms():
    """Factory for RawMessage with a fixed base timestamp."""

    def _make(body: str, sender: str = "VM-HDFCBK", offset_ms: int = 0) -> RawMessage:
        return RawMessage(sender=sender, body=body, timestamp_millis=T0 + offset_ms)

    return _make


@pytest.fixture
def pipeline() -> SmsExtractionPipeline:
    return SmsExtractionPipeline(pair_window=OffsettingPairWindow(180_000), use_default_oracle=False)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(database_uri=f"sqlite:///{tmp_path / 'transactions.db'}", log_dir=str(tmp_path / "logs"))


@pytest.fixture
def app(settings):
    from app import create_app

    flask_app = create_app(settings)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture
def client(app):
    return app.test_client()
