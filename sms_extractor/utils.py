import logging
import os
import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from dateutil import parser as dateparser

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
BODY_PREVIEW_CHARS = 100


def setup_logging(log_dir: str = 'logs', level: str = 'INFO', log_name: str = 'sms_extractor.log') -> logging.Logger:
    """Attach console (INFO) and file (DEBUG) handlers to the root logger once."""
    root_logger = logging.getLogger()
    if getattr(root_logger, '_sms_extractor_configured', False):
        return root_logger

    os.makedirs(log_dir, exist_ok=True)
    root_logger.setLevel(logging.DEBUG)
    log_formatter = logging.Formatter(LOG_FORMAT)

    # Console Handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(log_formatter)
    root_logger.addHandler(console_handler)

    # File Handler (DEBUG goes to file only)
    file_handler = logging.FileHandler(os.path.join(log_dir, log_name), mode='a')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(log_formatter)
    root_logger.addHandler(file_handler)

    root_logger._sms_extractor_configured = True
    return root_logger


def preview(body: Optional[str], limit: int = BODY_PREVIEW_CHARS) -> str:
    """Shorten an SMS body for log lines."""
    if not body:
        return ''
    flat = ' '.join(body.split())
    return flat if len(flat) <= limit else flat[:limit] + '...'


def parse_amount_safe(raw_value) -> Optional[Decimal]:
    """Parse currency-like strings ("1,00,000.50", "Rs 500/-") to Decimal. Returns None if not parseable."""
    if raw_value is None:
        return None
    s = str(raw_value).strip()
    if not s or s.lower() in {"nan", "none", "-"}:
        return None
    cleaned = re.sub(r"(?i)^(?:rs\.?|inr|₹)", "", s)
    cleaned = re.sub(r"[\s,₹]", "", cleaned)
    if cleaned.endswith("/-"):
        cleaned = cleaned[:-2]
    cleaned = cleaned.rstrip(".")

    if cleaned in {"", "."}:
        return None
    try:
        value = Decimal(cleaned)
    except InvalidOperation:
        return None
    if value < 0:
        return None
    return value


def parse_date_flexible(raw_value) -> Optional[str]:
    """Parse a day-first date ("05/09/2024", "5 Sep 2024") to YYYY-MM-DD, or None."""
    if raw_value is None:
        return None
    s = str(raw_value).strip()
    if not s:
        return None
    try:
        return dateparser.parse(s, dayfirst=True).strftime("%Y-%m-%d")
    except (ValueError, OverflowError):
        return None


def normalize_sender(sender: Optional[str]) -> str:
    """Uppercase a sender id and strip the operator prefix ("VM-") and DLT suffix ("-S")."""
    if not sender:
        return ''
    s = sender.strip().upper()
    s = re.sub(r'^[A-Z]{2}-', '', s)
    s = re.sub(r'-[STPG]$', '', s)
    return s
