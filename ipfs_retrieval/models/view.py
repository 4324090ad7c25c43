from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ipfs_retrieval.models.state import Notification


@dataclass(frozen=True)
class SessionView:
    """Read-only snapshot of a session for a presentation layer.

    Carries no layout; renderers decide how to show each field.
    """

    identifier: str
    is_loading: bool
    status_label: str  # "idle", "loading", "succeeded" or "failed"
    notification: Optional[Notification]
    image_src: Optional[str]
    direct_link: Optional[str]

    @property
    def identifier_label(self) -> str:
        return f"Hash: {self.identifier}" if self.identifier else ""

    @property
    def submit_label(self) -> str:
        return "Loading..." if self.is_loading else "Get it"
