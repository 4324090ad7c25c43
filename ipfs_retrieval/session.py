"""Retrieval session: the state machine behind an "enter a CID, get the file" form.

States move Idle -> Loading -> Succeeded | Failed, and any submit re-enters
Loading. Each valid submit gets a generation number; a settlement whose
generation is no longer current is dropped, and the superseded fetch task is
cancelled. ``is_loading`` stays true until the fetch task itself settles.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from pathlib import Path
from typing import Any

from ipfs_retrieval.adapters.gateway import ContentGateway
from ipfs_retrieval.errors import ExportError
from ipfs_retrieval.errors import RetrievalError
from ipfs_retrieval.errors import ValidationError
from ipfs_retrieval.export import ArtifactExporter
from ipfs_retrieval.models.payload import Payload
from ipfs_retrieval.models.state import Failed
from ipfs_retrieval.models.state import Idle
from ipfs_retrieval.models.state import Loading
from ipfs_retrieval.models.state import Notification
from ipfs_retrieval.models.state import RetrievalState
from ipfs_retrieval.models.state import Succeeded
from ipfs_retrieval.models.view import SessionView
from ipfs_retrieval.services.ray_id_service import generate_ray_id
from ipfs_retrieval.services.ray_id_service import generation_context
from ipfs_retrieval.services.ray_id_service import get_logger_with_ray_id
from ipfs_retrieval.services.ray_id_service import ray_id_context


logger = logging.getLogger(__name__)

FAILURE_PREFIX = "Error occurred: "
CANCELLED_MESSAGE = "Retrieval cancelled"


def _status_label(state: RetrievalState) -> str:
    if isinstance(state, Loading):
        return "loading"
    if isinstance(state, Succeeded):
        return "succeeded"
    if isinstance(state, Failed):
        return "failed"
    return "idle"


class RetrievalSession:
    def __init__(
        self,
        gateway: ContentGateway,
        exporter: ArtifactExporter,
        *,
        default_download_name: str = "download.png",
    ) -> None:
        self._gateway = gateway
        self._exporter = exporter
        self._default_download_name = default_download_name
        self._identifier = ""
        self._state: RetrievalState = Idle()
        self._notification: Notification | None = None
        self._generation = 0
        self._task: asyncio.Task[None] | None = None

    async def __aenter__(self) -> RetrievalSession:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    @property
    def gateway(self) -> ContentGateway:
        return self._gateway

    @property
    def identifier(self) -> str:
        return self._identifier

    @property
    def state(self) -> RetrievalState:
        return self._state

    @property
    def notification(self) -> Notification | None:
        return self._notification

    @property
    def is_loading(self) -> bool:
        return isinstance(self._state, Loading)

    @property
    def generation(self) -> int:
        return self._generation

    def update_identifier(self, value: str | None) -> None:
        self._identifier = value or ""

    def dismiss_notification(self) -> None:
        self._notification = None

    def current_payload(self) -> Payload | None:
        if isinstance(self._state, Succeeded):
            return self._state.payload
        return None

    def direct_link(self) -> str | None:
        identifier = self._identifier.strip()
        if not identifier:
            return None
        return self._gateway.direct_link(identifier)

    def view(self) -> SessionView:
        return SessionView(
            identifier=self._identifier,
            is_loading=self.is_loading,
            status_label=_status_label(self._state),
            notification=self._notification,
            image_src=self._state.image_src if isinstance(self._state, Succeeded) else None,
            direct_link=self.direct_link(),
        )

    def submit(self) -> asyncio.Task[None] | None:
        """Start a retrieval for the current identifier.

        Must be called from a running event loop. Returns the fetch task, or
        None when the identifier is empty (the gateway is not contacted).
        """
        identifier = self._identifier.strip()
        # Resolve the loop first so a submit outside of one leaves the session untouched
        loop = asyncio.get_running_loop() if identifier else None

        # Any submit, even a rejected one, supersedes the attempt in flight
        self._generation += 1
        generation = self._generation
        self._cancel_in_flight()

        if loop is None:
            error = ValidationError()
            logger.info(f"Rejected submit without identifier (generation={generation})")
            self._fail(error.message)
            return None

        ray_id = generate_ray_id()
        self._state = Loading(identifier=identifier, ray_id=ray_id)
        task = loop.create_task(
            self._fetch(generation, identifier, ray_id),
            name=f"ipfs-fetch-{ray_id}",
        )
        # Runs even when the task is cancelled before its first step
        task.add_done_callback(functools.partial(self._on_fetch_done, generation))
        self._task = task
        return task

    async def close(self) -> None:
        """Cancel the in-flight fetch, if any. Safe to call repeatedly."""
        self._generation += 1
        task = self._task
        self._cancel_in_flight()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        if isinstance(self._state, Loading):
            self._fail(CANCELLED_MESSAGE)

    async def export_as_file(self, payload: Payload | bytes, suggested_name: str | None = None) -> Path:
        """Save a payload under ``suggested_name`` in the download directory.

        Failures are surfaced as a critical notification and re-raised as
        ExportError.
        """
        if isinstance(payload, Payload):
            data = payload.data
            name = suggested_name or payload.suggested_filename()
        else:
            data = payload
            name = suggested_name or self._default_download_name

        try:
            path = await self._exporter.export(data, name)
        except ExportError as e:
            self._notification = Notification.critical(e.message)
            raise

        self._notification = Notification.ok(f"Saved {path.name}")
        return path

    async def download_current(self, suggested_name: str | None = None) -> Path:
        payload = self.current_payload()
        if payload is None:
            error = ExportError("Nothing to download")
            self._notification = Notification.critical(error.message)
            raise error
        return await self.export_as_file(payload, suggested_name)

    async def download_direct(self, suggested_name: str | None = None) -> Path:
        """Fetch the current identifier and save it, bypassing the state machine."""
        identifier = self._identifier.strip()
        if not identifier:
            error = ValidationError()
            self._notification = Notification.critical(error.message)
            raise error

        try:
            payload = await self._gateway.fetch_by_identifier(identifier)
        except RetrievalError as e:
            self._notification = Notification.critical(f"{FAILURE_PREFIX}{e.message}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected gateway error during direct download of {identifier=}")
            self._notification = Notification.critical(f"{FAILURE_PREFIX}{str(e) or type(e).__name__}")
            raise

        return await self.export_as_file(payload, suggested_name or self._default_download_name)

    def _cancel_in_flight(self) -> None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    def _fail(self, message: str) -> None:
        self._state = Failed(message=message)
        self._notification = Notification.critical(message)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _on_fetch_done(self, generation: int, task: asyncio.Task[None]) -> None:
        if task.cancelled() and self._is_current(generation) and isinstance(self._state, Loading):
            self._fail(CANCELLED_MESSAGE)

    async def _fetch(self, generation: int, identifier: str, ray_id: str) -> None:
        ray_id_context.set(ray_id)
        generation_context.set(generation)
        attempt_logger = get_logger_with_ray_id(__name__, ray_id)
        attempt_logger.info(f"Fetching {identifier=} {generation=}")

        try:
            payload = await self._gateway.fetch_by_identifier(identifier)
        except asyncio.CancelledError:
            attempt_logger.info(f"Fetch cancelled for {identifier=} {generation=}")
            raise
        except RetrievalError as e:
            self._settle_failure(generation, e.message, attempt_logger)
            return
        except Exception as e:
            # Injected gateways may not honour the GatewayError contract
            attempt_logger.exception(f"Unexpected gateway error for {identifier=}")
            self._settle_failure(generation, str(e) or type(e).__name__, attempt_logger)
            return

        if not self._is_current(generation):
            attempt_logger.info(f"Discarding stale result for {identifier=} {generation=}")
            return

        attempt_logger.info(f"Retrieved {payload.size_bytes} bytes ({payload.content_type}) for {identifier=}")
        self._state = Succeeded(payload=payload)
        self._notification = None

    def _settle_failure(self, generation: int, detail: str, attempt_logger: logging.LoggerAdapter) -> None:
        if not self._is_current(generation):
            attempt_logger.info(f"Discarding stale failure {generation=}: {detail}")
            return
        attempt_logger.warning(f"Retrieval failed {generation=}: {detail}")
        self._fail(f"{FAILURE_PREFIX}{detail}")
