import logging
import sys

import structlog

SENSITIVE_FIELDS = ("password", "secret", "token", "auth", "NEO4J_PASSWORD")

# Tool output (indexer stderr, parser errors) can run to megabytes.
MAX_FIELD_CHARS = 2000


def filter_sensitive_data(logger, log_method, event_dict):
    """Mask credentials before rendering."""
    for field in SENSITIVE_FIELDS:
        if field in event_dict:
            event_dict[field] = "[FILTERED]"
    return event_dict


def truncate_long_fields(logger, log_method, event_dict):
    """Keep the tail of oversized string fields; the end of a tool's stderr carries the error."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_CHARS:
            event_dict[key] = f"...{value[-MAX_FIELD_CHARS:]}"
    return event_dict


def configure_logging(log_level=logging.INFO, stream=None, force_reconfigure=False):
    """Route structlog through stdlib logging and render one JSON object per line.

    Idempotent unless `force_reconfigure` is set; the app module calls it at
    import time and tests may import that module repeatedly.
    """
    if not force_reconfigure and getattr(structlog, "_code_graph_configured", False):
        return

    logging.basicConfig(format="%(message)s", stream=stream or sys.stdout, level=log_level, force=True)
    # Driver chatter would otherwise interleave with indexing events at DEBUG.
    for noisy in ("neo4j", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            filter_sensitive_data,
            truncate_long_fields,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Parse workers run on threads; never cache a logger bound before configuration.
        cache_logger_on_first_use=False,
    )

    structlog._code_graph_configured = True
