import contextvars
import logging
import uuid
from typing import Any
from typing import MutableMapping
from typing import Optional


# Set inside each fetch task; tasks run in a copy of the submitting context.
ray_id_context: contextvars.ContextVar[str] = contextvars.ContextVar("ray_id", default="no-ray-id")
generation_context: contextvars.ContextVar[int] = contextvars.ContextVar("generation", default=0)


def generate_ray_id() -> str:
    """Generate a 16-character hex ray ID identifying one retrieval attempt.

    Returns:
        The first 64 bits of a UUID4 as lowercase hex, e.g. "a1b2c3d4e5f67890".
    """
    return uuid.uuid4().hex[:16]


class RayIDLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that stamps every record with a fixed ray_id."""

    def __init__(self, logger: logging.Logger, ray_id: Optional[str] = None):
        super().__init__(logger, {"ray_id": ray_id or "no-ray-id"})

    def process(self, msg: str, kwargs: MutableMapping[str, Any]) -> tuple[str, MutableMapping[str, Any]]:
        extra = dict(kwargs.get("extra") or {})
        extra["ray_id"] = self.extra.get("ray_id", "no-ray-id") if self.extra else "no-ray-id"
        kwargs["extra"] = extra
        return msg, kwargs


def get_logger_with_ray_id(name: str, ray_id: Optional[str] = None) -> RayIDLoggerAdapter:
    """Get a logger whose records carry the given attempt's ray_id.

    Args:
        name: The name of the logger (typically __name__)
        ray_id: The ray ID to inject. Defaults to "no-ray-id" if not provided.
    """
    return RayIDLoggerAdapter(logging.getLogger(name), ray_id)
