"""Structured logging configuration using structlog.

JSON output for production, console output for development. Session
adapters bind ``session_id`` and ``channel`` through structlog contextvars,
so every line emitted while a session runs carries them.

Sessions handle personal data: chat users submit names, emails and phone
numbers, and voice calls carry caller and dialed numbers. Redaction is on
by default and masks both well-known keys and PII patterns found in string
values. Identifier fields are left alone, since ids such as call SIDs and
hex session ids can contain long digit runs that look like phone numbers.
"""

import logging
import re
import sys
from collections.abc import MutableMapping
from typing import Any, cast

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Credentials plus the session fields that hold caller identity
SENSITIVE_KEYS: frozenset[str] = frozenset({
    "password",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "bearer",
    "access_token",
    "credential",
    "credentials",
    "email",
    "phone",
    "from_number",
    "to_number",
    "dnis",
    "user_details",
})

IDENTIFIER_KEYS: frozenset[str] = frozenset({
    "session_id",
    "call_sid",
    "conversation_id",
    "bot_id",
    "msgid",
    "timestamp",
    "url",
    "base_url",
})

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"\+?[\d\s\-\(\)]{10,}")


class PIIRedactor:
    """Processor that redacts PII from log events.

    Keys in SENSITIVE_KEYS are replaced outright. Other string values are
    scanned for emails and phone numbers, except under IDENTIFIER_KEYS.
    """

    def __call__(
        self,
        _logger: WrappedLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        return cast(EventDict, self._redact_dict(event_dict))

    def _redact_dict(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in data.items():
            key_lower = key.lower()
            if key_lower in SENSITIVE_KEYS:
                result[key] = "[REDACTED]"
            elif key_lower in IDENTIFIER_KEYS:
                result[key] = value
            else:
                result[key] = self._redact_value(value)
        return result

    def _redact_value(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self._redact_dict(value)
        if isinstance(value, list):
            return [self._redact_value(item) for item in value]
        if isinstance(value, str):
            value = EMAIL_PATTERN.sub("[EMAIL]", value)
            return PHONE_PATTERN.sub("[PHONE]", value)
        return value


def _processors(format: str, redact_pii: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]
    if redact_pii:
        processors.append(PIIRedactor())

    if format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def setup_logging(
    level: str = "INFO",
    format: str = "json",
    redact_pii: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: "json" for production, "console" for development
        redact_pii: Whether to mask personal data before rendering
    """
    level_num = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)

    structlog.configure(
        processors=_processors(format, redact_pii),
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger bound to ``name`` (typically the module's __name__)."""
    return cast(structlog.stdlib.BoundLogger, structlog.get_logger(name))
