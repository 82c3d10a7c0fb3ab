from __future__ import annotations

import logging
import os
import re
import sys

LOG_LEVEL = os.getenv("CONSOLE_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

SENSITIVE_KEYS = {"token", "password", "authorization", "clave_marangatu", "ords_password", "ords_token"}
_BEARER_RE = re.compile(r"(Bearer\s+)[^\s'\"]+", re.IGNORECASE)
_KEY_VALUE_RE = re.compile(
    r"(?P<key>" + "|".join(sorted(SENSITIVE_KEYS)) + r")(?P<sep>['\"]?\s*[:=]\s*['\"]?)[^\s,'\"}]+",
    re.IGNORECASE,
)
REDACTED = "***"


def redact(text: str) -> str:
    text = _BEARER_RE.sub(rf"\g<1>{REDACTED}", text)
    return _KEY_VALUE_RE.sub(rf"\g<key>\g<sep>{REDACTED}", text)


class RedactingFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        for key in list(record.__dict__):
            if key.lower() in SENSITIVE_KEYS:
                setattr(record, key, REDACTED)
        return True


def setup_logging(level: str | None = None) -> logging.Logger:
    root = logging.getLogger("console")
    root.setLevel(level or LOG_LEVEL)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RedactingFilter())
        root.addHandler(handler)
    return root
