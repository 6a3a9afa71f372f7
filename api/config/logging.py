import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from .settings import Settings, settings as default_settings

# Libraries that log every request at INFO; verbose only in debug
_CHATTY_LOGGERS = ("httpx", "httpcore", "asyncio")

# Statement and row logs carry subscriber addresses and signup tokens
_SENSITIVE_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def _service_info(settings: Settings) -> Processor:
    """Stamp every event with the service name and environment."""

    def processor(
        logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", settings.app_name)
        event_dict.setdefault("env", settings.environment)
        return event_dict

    return processor


def _renderer(settings: Settings) -> list[Processor]:
    # Pretty console output while developing, one JSON object per line otherwise
    if settings.debug:
        return [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                parameters=[
                    structlog.processors.CallsiteParameter.MODULE,
                    structlog.processors.CallsiteParameter.FUNC_NAME,
                ]
            ),
            structlog.dev.ConsoleRenderer(),
        ]
    return [
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structlog for the API, the job workers and the admin CLI."""
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if settings.debug else logging.WARNING)
    for name in _SENSITIVE_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _service_info(settings),
            *_renderer(settings),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = __name__) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def add_request_context(request_id: str, **context: Any) -> None:
    """Replace the log context with this request's id and details."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id, **context)
