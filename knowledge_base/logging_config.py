"""
Logging configuration for the knowledge base service.
structlog on top of stdlib logging: key/value events, JSON in production.
"""

import logging
import sys

import structlog

from . import config

# Libraries that log every request or batch at INFO
NOISY_LOGGERS = ("sentence_transformers", "httpx", "httpcore", "urllib3", "openai", "pypdf")


def _add_service(logger, method_name, event_dict):
    event_dict.setdefault("service", "knowledge-base")
    return event_dict


def setup_logging(log_level: str = "INFO", json_logs: bool = False):
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_logs: JSON lines when True, colored console output otherwise

    Returns:
        A bound structlog logger
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _add_service,
        structlog.dev.set_exc_info,
    ]

    if json_logs:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback)
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )

    return structlog.get_logger()


logger = setup_logging(log_level=config.LOG_LEVEL, json_logs=config.JSON_LOGS)
