"""
Structured logging with structlog.

Logs are rendered as JSON outside debug mode so they can be shipped as-is.
Recipient addresses are masked before rendering unless LOG_MASK_EMAILS is off.
"""

import logging
import sys

import structlog
from structlog.types import EventDict, Processor

from cafirm.core.config import settings
from cafirm.core.security import mask_email

EMAIL_KEYS = ("email", "to")


def mask_email_fields(_logger, _method_name: str, event_dict: EventDict) -> EventDict:
    for key in EMAIL_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_email(value)
    return event_dict


def build_processors(debug: bool, mask_emails: bool = True) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if mask_emails:
        processors.append(mask_email_fields)

    if debug:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        processors += [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    return processors


def setup_logging() -> None:
    """Configures structlog and the stdlib root logger from settings."""
    level = logging.DEBUG if settings.DEBUG else getattr(
        logging, settings.LOG_LEVEL.upper(), logging.INFO
    )

    structlog.configure(
        processors=build_processors(settings.DEBUG, settings.LOG_MASK_EMAILS),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # SQL echo goes through the engine flag
    for name in ("aiosqlite", "asyncio", "passlib"):
        logging.getLogger(name).setLevel(logging.WARNING)
