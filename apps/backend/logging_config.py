"""
Optima AI - Logging Configuration
=================================
structlog setup shared by the API, the streaming producers and the
third-party clients.
"""

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor


SENSITIVE_KEYS = {
    "password", "new_password", "newpassword", "api_key", "apikey", "secret",
    "token", "authorization", "email_pass", "code", "voice_url", "voiceurl",
}

# Matched as suffixes so token counters like "prompt_tokens" stay visible
SENSITIVE_SUFFIXES = ("_password", "_api_key", "_secret", "_token")

MAX_VALUE_LENGTH = 1000
DATA_URL_PATTERN = re.compile(r"^data:([\w/+.-]+);base64,")
BEARER_PATTERN = re.compile(r"(Bearer|Token)\s+[\w.~+/=-]+", re.IGNORECASE)

# Chatty at INFO; their request lines would repeat our own client logs
QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "aiosqlite")


def add_app_context(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["app"] = "optima-ai"
    event_dict["service"] = "backend"
    return event_dict


def _scrub_value(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _scrub_item(key, item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub_value(item) for item in value]
    if not isinstance(value, str):
        return value

    data_url = DATA_URL_PATTERN.match(value)
    if data_url:
        return f"data:{data_url.group(1)};base64,...[{len(value)} chars]"
    value = BEARER_PATTERN.sub(lambda m: f"{m.group(1)} ***REDACTED***", value)
    if len(value) > MAX_VALUE_LENGTH:
        return value[:100] + "...[truncated]"
    return value


def _scrub_item(key: str, value: Any) -> Any:
    key_lower = str(key).lower()
    if key_lower in SENSITIVE_KEYS or key_lower.endswith(SENSITIVE_SUFFIXES):
        return "***REDACTED***"
    return _scrub_value(value)


def sanitize_event(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Sanitize sensitive data from logs.

    Redacts credentials and reset tokens (by key, and bearer strings inside
    values), shortens base64 data URLs and truncates generated artifacts.
    """
    return {key: _scrub_item(key, value) for key, value in event_dict.items()}


def configure_logging(environment: str = "development", log_level: str = "INFO") -> None:
    """
    Configure structlog for the application.

    Args:
        environment: "production" for JSON lines, anything else for console output
        log_level: Standard library level name for the root logger
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        sanitize_event,
    ]

    if environment == "production":
        renderers: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            ),
        ]

    structlog.configure(
        processors=shared_processors + renderers,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    """Logger bound to ``name`` (typically the module's ``__name__``)."""
    return structlog.get_logger(name)
