"""
structlog setup shared by the API process, Celery workers and scripts.

Entries carry a timestamp, level, logger name and call site, plus whatever was
bound through structlog.contextvars (request_id from the middleware, batch and
unit fields from app.services.run_context). Development renders to the console;
any other APP_ENV renders JSON lines.
"""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import Processor

from app.core.config import settings

DEV_ENVIRONMENTS = ("development", "dev", "local")

# Third-party loggers that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai")

LOG_PREVIEW_CHARS = 100


def _base_processors() -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="ISO", utc=True),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.MODULE,
                structlog.processors.CallsiteParameter.LINENO,
            ]
        ),
    ]


def _render_processors(is_development: bool) -> List[Processor]:
    if is_development:
        return [structlog.dev.set_exc_info, structlog.dev.ConsoleRenderer(colors=True)]
    return [
        structlog.processors.dict_tracebacks,
        structlog.processors.JSONRenderer(),
    ]


def configure_logging(level: Optional[str] = None) -> None:
    """Configure stdlib logging and structlog once per process."""
    log_level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    is_development = settings.APP_ENV.lower() in DEV_ENVIRONMENTS

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=_base_processors() + _render_processors(is_development),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def add_request_context(request: Any) -> Dict[str, Any]:
    """HTTP request fields for log entries."""
    try:
        return {
            "request_id": getattr(request.state, "request_id", None),
            "method": request.method,
            "path": request.url.path,
        }
    except AttributeError:
        return {}


def preview(text: Optional[str], limit: int = LOG_PREVIEW_CHARS) -> str:
    """Truncate free text before it goes into a log entry."""
    if not text:
        return ""
    return text[:limit] + "..." if len(text) > limit else text
