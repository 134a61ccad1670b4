"""Process logging setup with redaction of credential material."""

import logging
import re

SENSITIVE_PATTERNS = [
    (re.compile(r"(bearer\s+)([A-Za-z0-9_\-\.]{10,})", re.IGNORECASE), r"\1***REDACTED***"),
    (
        re.compile(r"(passw(?:or)?d(?:[ _]\w+)?['\"]?\s*[:=]\s*['\"]?)([^'\"\s,}]+)", re.IGNORECASE),
        r"\1***REDACTED***",
    ),
    (
        re.compile(r"(token['\"]?\s*[:=]\s*['\"]?)([A-Za-z0-9_\-\.]{10,})", re.IGNORECASE),
        r"\1***REDACTED***",
    ),
    # bcrypt digests
    (re.compile(r"\$2[abxy]?\$\d{2}\$[./A-Za-z0-9]{53}"), "***REDACTED***"),
    # bare JWTs
    (re.compile(r"eyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+"), "***REDACTED***"),
    (re.compile(r"((?:postgresql|mysql)(?:\+\w+)?://[^:/@]+:)([^@]+)(@)"), r"\1***REDACTED***\3"),
]

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def sanitize_message(message: str) -> str:
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SensitiveDataFilter(logging.Filter):
    """Scrub passwords, hashes and tokens from formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        sanitized = sanitize_message(message)
        if sanitized != message:
            record.msg = sanitized
            record.args = None
        return True


def configure_logging(level: str = "INFO") -> None:
    """Install a redacting stream handler on the root logger."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(SensitiveDataFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper())

    # uvicorn installs its own handlers; route them through ours
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True
