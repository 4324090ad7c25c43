from __future__ import annotations

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Union

from ipfs_retrieval.models.payload import Payload


class NotificationStatus(str, Enum):
    OK = "ok"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Notification:
    """A dismissible message shown to the user."""

    message: str
    status: NotificationStatus = NotificationStatus.CRITICAL

    @classmethod
    def ok(cls, message: str) -> Notification:
        return cls(message=message, status=NotificationStatus.OK)

    @classmethod
    def critical(cls, message: str) -> Notification:
        return cls(message=message, status=NotificationStatus.CRITICAL)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Loading:
    identifier: str
    ray_id: str


@dataclass(frozen=True)
class Succeeded:
    payload: Payload

    @functools.cached_property
    def image_src(self) -> str:
        """The payload as a data URI, encoded once per successful fetch."""
        return self.payload.data_uri()


@dataclass(frozen=True)
class Failed:
    message: str


RetrievalState = Union[Idle, Loading, Succeeded, Failed]
