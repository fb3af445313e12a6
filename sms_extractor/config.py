"""Runtime settings, read from the environment (and a .env file when present)."""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    pair_window_seconds: int = 180
    aggregate_pair_window_seconds: int = 600
    model_path: Optional[str] = None
    vocab_path: Optional[str] = None
    inference_timeout_seconds: float = 2.0
    database_uri: str = 'sqlite:///sms_transactions.db'
    log_dir: str = 'logs'
    log_level: str = 'INFO'
    enable_heuristic_oracle: bool = False

    @property
    def pair_window_millis(self) -> int:
        return self.pair_window_seconds * 1000

    @property
    def aggregate_pair_window_millis(self) -> int:
        return self.aggregate_pair_window_seconds * 1000


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {'1', 'true', 'yes', 'on'}


def load_settings(dotenv_path: Optional[str] = None) -> Settings:
    """Build Settings from SMS_* environment variables."""
    load_dotenv(dotenv_path)
    return Settings(
        pair_window_seconds=int(os.environ.get('SMS_PAIR_WINDOW_SECONDS', 180)),
        aggregate_pair_window_seconds=int(os.environ.get('SMS_AGGREGATE_PAIR_WINDOW_SECONDS', 600)),
        model_path=os.environ.get('SMS_MODEL_PATH') or None,
        vocab_path=os.environ.get('SMS_VOCAB_PATH') or None,
        inference_timeout_seconds=float(os.environ.get('SMS_INFERENCE_TIMEOUT_SECONDS', 2.0)),
        database_uri=os.environ.get('SMS_DATABASE_URI', 'sqlite:///sms_transactions.db'),
        log_dir=os.environ.get('SMS_LOG_DIR', 'logs'),
        log_level=os.environ.get('SMS_LOG_LEVEL', 'INFO').upper(),
        enable_heuristic_oracle=_env_bool('SMS_ENABLE_HEURISTIC_ORACLE', False),
    )
