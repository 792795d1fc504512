"""
Shared logging utilities: root logger setup, JSON formatting and redaction of
credentials and personal data.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# Sensitive patterns to filter from logs
SENSITIVE_PATTERNS = [
    # Credential-looking key/value pairs (password=..., "token": "...")
    (
        re.compile(
            r'(["\']?(?:password|passwd|token|secret|card6digits|otp)["\']?\s*[:=]\s*)'
            r'(["\']?)[^"\'\s,}]+\2',
            re.I,
        ),
        r"\1\2[REDACTED]\2",
    ),
    # Card numbers (13-19 digits, with or without spaces/dashes)
    (re.compile(r'\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{1,7}\b'), '[CARD]'),
    # Email addresses
    (re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'), '[EMAIL]'),
    # Israeli ID numbers (9 digits)
    (re.compile(r'\b\d{9}\b'), '[ID]'),
    # Phone numbers (international format)
    (re.compile(r'\+\d{1,3}[-.\s]?\(?\d{2,4}\)?[-.\s]?\d{3,4}[-.\s]?\d{4,5}'), '[PHONE]'),
]


def filter_sensitive(text: str) -> str:
    """Remove sensitive values from text using regex patterns.

    Args:
        text: Input text that may contain sensitive values

    Returns:
        Text with sensitive values replaced by placeholders
    """
    if not text:
        return text

    filtered = text
    for pattern, replacement in SENSITIVE_PATTERNS:
        filtered = pattern.sub(replacement, filtered)

    return filtered


class JSONLogFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    EXTRA_FIELDS = (
        "request_id",
        "household_id",
        "connection_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "error_code",
        "error_type",
        "client_ip",
        "transactions_found",
        "transactions_new",
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": filter_sensitive(record.getMessage()),
        }

        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = str(value) if name.endswith("_id") else value

        if record.exc_info:
            log_data["exception"] = filter_sensitive(self.formatException(record.exc_info))

        return json.dumps(log_data, default=str)


def setup_logging(
    level: str = "INFO", log_file: Optional[str] = None, json_format: bool = False
) -> None:
    """
    Configure root logger.

    Args:
        level: Log level ('DEBUG', 'INFO', 'WARNING', 'ERROR')
        log_file: Optional log file path
        json_format: Emit JSON lines instead of plain text
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Already configured (e.g. several apps built in one process)
    if any(getattr(h, "banksync_handler", False) for h in root_logger.handlers):
        return

    if json_format:
        formatter: logging.Formatter = JSONLogFormatter()
    else:
        formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    console_handler.banksync_handler = True
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        file_handler.banksync_handler = True
        root_logger.addHandler(file_handler)
