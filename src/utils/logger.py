import logging
import sys
import structlog
from fastapi import Request
from structlog.stdlib import ProcessorFormatter


def get_client_ip(request: Request) -> str:
    if "x-forwarded-for" in request.headers:
        # First hop is the client, the rest are proxies
        return request.headers["x-forwarded-for"].split(",")[0].strip()
    elif request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def add_request_info(
    logger: structlog.BoundLogger, method_name: str, event_dict: dict
) -> dict:
    context_vars = structlog.contextvars.get_contextvars()
    for key in ("ip_address", "request_id", "user_id"):
        value = context_vars.get(key)
        if value and key not in event_dict:
            event_dict[key] = value
    return event_dict


def mask_fingerprint(
    logger: structlog.BoundLogger, method_name: str, event_dict: dict
) -> dict:
    """Keep device fingerprints out of log storage in full."""
    fingerprint = event_dict.get("fingerprint")
    if isinstance(fingerprint, str) and len(fingerprint) > 8:
        event_dict["fingerprint"] = f"{fingerprint[:8]}..."
    return event_dict


def setup_logging(is_production: bool = False, log_level: int = logging.INFO):
    """Setup structlog configuration with different formats for dev/prod."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    shared_processors: list = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_request_info,
        mask_fingerprint,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.handlers = []

    if is_production:
        formatter = ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(sort_keys=False),
        )
    else:
        formatter = ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=True, pad_event=8),
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    logging.getLogger("uvicorn").handlers = []
    logging.getLogger("uvicorn.access").handlers = []

    # SQL echo is noisy; only surface problems
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = structlog.get_logger()
    return logger


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger instance with optional name."""
    return structlog.get_logger(name)
