"""
Structured logging for the banking pipeline.

Every event carries the service name, version and whatever case context is
bound. Records from stdlib loggers (SQLAlchemy, aiosqlite) run through the
same processors, so one handler renders everything: JSON lines normally,
coloured console output with DEBUG on.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from banking_pipeline.config import settings

# Library loggers held at WARNING unless DB_ECHO asks for SQL
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "aiosqlite")


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("version", settings.APP_VERSION)
    return event_dict


def shared_processors() -> list:
    """Processors applied to structlog events and foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(level: Optional[str] = None) -> None:
    """Route structlog and stdlib logging through one stdout handler."""
    pre_chain = shared_processors()

    if settings.DEBUG:
        render = [structlog.dev.ConsoleRenderer()]
    else:
        # Tracebacks become a string field before JSON rendering
        render = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=[
            *pre_chain,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *render,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)


@contextmanager
def case_log_context(case_id: int, document_id: Optional[int] = None) -> Iterator[None]:
    """
    Bind case_id (and document_id) to every log line inside the block.
    Whatever was bound before is restored on exit, so nested and
    concurrent confirmations do not leak ids into each other.
    """
    ids = {"case_id": case_id}
    if document_id is not None:
        ids["document_id"] = document_id
    with structlog.contextvars.bound_contextvars(**ids):
        yield
