"""structlog setup for payhook.

Production (NODE_ENV=production) writes one JSON object per line to stdout;
anything else gets the colored console renderer. Standard-library loggers
(uvicorn, FastAPI, asyncio) are routed through the same formatter, so a
webhook delivery reads as one stream: ``payhip_webhook_received``, then
``payment_logged`` or ``payment_duplicate_ignored``, all tagged with the
request's correlation id.
"""

import logging
import logging.config

import structlog
from asgi_correlation_id.context import correlation_id

# Per-request access lines duplicate payhip_webhook_received; keep warnings only
_QUIET_LOGGERS = ("uvicorn.access",)


def add_correlation_id(logger, method, event_dict):
    cid = correlation_id.get(None)
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _renderer(json_logs: bool):
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_structlog(log_level: str = "INFO", json_logs: bool = True) -> None:
    """Install the processor chain and the stdlib bridge.

    Must run before payhook modules call ``structlog.get_logger`` for the
    first time, because loggers are cached on first use.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_correlation_id,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    loggers = {name: {"level": "WARNING"} for name in _QUIET_LOGGERS}
    loggers["payhook"] = {"level": log_level}

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "payhook": {
                "()": structlog.stdlib.ProcessorFormatter,
                "processors": [
                    structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                    _renderer(json_logs),
                ],
                "foreign_pre_chain": shared_processors,
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "payhook",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {"handlers": ["stdout"], "level": "INFO" if log_level == "DEBUG" else log_level},
        "loggers": loggers,
    })

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
