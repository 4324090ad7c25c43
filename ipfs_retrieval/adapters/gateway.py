from __future__ import annotations

import asyncio
import logging
import time
from typing import Any
from typing import Protocol
from typing import runtime_checkable

import httpx

from ipfs_retrieval.errors import GatewayError
from ipfs_retrieval.errors import ValidationError
from ipfs_retrieval.models.payload import Payload


logger = logging.getLogger(__name__)

CAT_PATH = "/api/v0/cat"
CHUNK_SIZE = 8192


@runtime_checkable
class ContentGateway(Protocol):
    async def fetch_by_identifier(self, identifier: str) -> Payload: ...  # raises GatewayError

    def direct_link(self, identifier: str) -> str: ...


def _error_detail(response: httpx.Response) -> str:
    """Extract the node's error message from a failed API response.

    Kubo answers errors with ``{"Message": ..., "Code": ..., "Type": "error"}``.
    """
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("Message"):
        return str(body["Message"])

    text = response.text.strip()
    if text:
        return text
    return f"HTTP {response.status_code} {response.reason_phrase}".strip()


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class HttpContentGateway(ContentGateway):
    """Resolves identifiers through an IPFS node's HTTP API (``/api/v0/cat``)."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: httpx.Timeout | None = None,
        fetch_timeout_seconds: float = 30.0,
        max_payload_bytes: int = 50 * 1024 * 1024,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.max_payload_bytes = max_payload_bytes
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout or httpx.Timeout(10.0, read=300.0),
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> HttpContentGateway:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def direct_link(self, identifier: str) -> str:
        return f"{self.base_url}{CAT_PATH}/{identifier}"

    async def fetch_by_identifier(self, identifier: str) -> Payload:
        cid = (identifier or "").strip()
        if not cid:
            raise ValidationError()

        start_time = time.time()

        # httpx timeouts guard against stalls between reads; asyncio.timeout
        # caps the whole transfer however slowly it trickles in.
        try:
            async with asyncio.timeout(self.fetch_timeout_seconds):
                data, declared_content_type = await self._cat(cid)
        except TimeoutError:
            elapsed = time.time() - start_time
            raise GatewayError(f"IPFS download timeout after {elapsed:.1f}s for CID {cid}") from None

        elapsed = time.time() - start_time
        logger.info(f"Fetched {len(data)} bytes for {cid=} in {elapsed:.3f}s")

        return Payload.from_bytes(
            cid,
            data,
            declared_content_type=declared_content_type,
            elapsed=elapsed,
        )

    async def _cat(self, cid: str) -> tuple[bytes, str | None]:
        try:
            async with self._client.stream("POST", CAT_PATH, params={"arg": cid}) as response:
                if response.is_error:
                    await response.aread()
                    detail = _error_detail(response)
                    logger.warning(f"IPFS cat failed for {cid=}: status={response.status_code} {detail}")
                    raise GatewayError(detail, status_code=response.status_code)

                raw_data = bytearray()
                async for chunk in response.aiter_bytes(chunk_size=CHUNK_SIZE):
                    raw_data.extend(chunk)
                    if len(raw_data) > self.max_payload_bytes:
                        raise GatewayError(f"Content for CID {cid} exceeds the {self.max_payload_bytes} byte limit")

                return bytes(raw_data), response.headers.get("content-type")
        except httpx.TimeoutException as e:
            raise GatewayError(f"IPFS gateway timed out for CID {cid}: {_describe(e)}") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"IPFS gateway request failed for CID {cid}: {_describe(e)}") from e
