import logging
import os
import sys
from typing import Protocol
from urllib.parse import urlsplit

from loki_logger_handler.loki_logger_handler import LokiLoggerHandler

from ipfs_retrieval.services.ray_id_service import generation_context
from ipfs_retrieval.services.ray_id_service import ray_id_context


LOG_FORMAT = "%(asctime)s - [%(ray_id)s g%(generation)s] - %(name)s - %(levelname)s - %(message)s"

# httpx logs every request line at INFO; one fetch already logs its own outcome
NOISY_LOGGERS = ("httpx", "httpcore")


class LoggingConfig(Protocol):
    log_level: str
    loki_enabled: bool
    loki_url: str
    environment: str
    ipfs_gateway_url: str


class RetrievalContextFilter(logging.Filter):
    """Stamps records with the retrieval attempt they belong to.

    ``ray_id`` and ``generation`` come from the fetch task's context unless the
    record already carries them (e.g. via RayIDLoggerAdapter). Outside a fetch
    they are 'no-ray-id' and 0.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "ray_id"):
            record.ray_id = ray_id_context.get()
        if not hasattr(record, "generation"):
            record.generation = generation_context.get()
        return True


def _gateway_host(gateway_url: str) -> str:
    return urlsplit(gateway_url).hostname or "unknown"


def setup_logging(config: LoggingConfig, service_name: str = "ipfs-retrieval") -> logging.Logger:
    """
    Configure stdout logging, plus Loki shipping when enabled.

    Loki streams are labelled with the service, environment, host and the IPFS
    gateway host the session talks to.

    Returns:
        The logger named after ``service_name``
    """
    log_level = getattr(logging, config.log_level.upper(), logging.INFO)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if config.loki_enabled and config.loki_url:
        handlers.append(
            LokiLoggerHandler(
                url=config.loki_url,
                labels={
                    "service": service_name,
                    "environment": config.environment,
                    "host": os.getenv("HOSTNAME", "unknown"),
                    "gateway": _gateway_host(config.ipfs_gateway_url),
                },
                timeout=10,
                compressed=True,
            )
        )

    context_filter = RetrievalContextFilter()
    for handler in handlers:
        handler.addFilter(context_filter)

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(service_name)
