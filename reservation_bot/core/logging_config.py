"""Logging setup and redaction of credentials in log records."""

from __future__ import annotations

import logging
import re

_SENSITIVE_PATTERN = re.compile(
    r"(Authorization:?\s*Bearer\s+[\w\.\-+/=]+|access_token\"?\s*[:=]\s*\"?[^\"\s,]+|replyToken\"?\s*:\s*\"[^\"]+\")",
    re.IGNORECASE,
)

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class SensitiveFilter(logging.Filter):
    """Replace bearer tokens and LINE reply tokens with a redaction marker."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = _SENSITIVE_PATTERN.sub("**REDACTED**", record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(
                _SENSITIVE_PATTERN.sub("**REDACTED**", arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once and attach the redaction filter."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=_FORMAT)
    else:
        root.setLevel(level.upper())

    # Handler filters also see records propagated from child loggers
    targets = list(root.handlers)
    for logger_name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        targets.extend(logging.getLogger(logger_name).handlers)
    for target in targets:
        if not any(isinstance(flt, SensitiveFilter) for flt in target.filters):
            target.addFilter(SensitiveFilter())


__all__ = ["SensitiveFilter", "configure_logging"]
