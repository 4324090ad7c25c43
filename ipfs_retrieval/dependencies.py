from pathlib import Path

import httpx

from ipfs_retrieval.adapters.gateway import HttpContentGateway
from ipfs_retrieval.config import Config
from ipfs_retrieval.config import get_config
from ipfs_retrieval.export import ArtifactExporter
from ipfs_retrieval.logging_config import setup_logging
from ipfs_retrieval.session import RetrievalSession


def create_gateway(config: Config, transport: httpx.AsyncBaseTransport | None = None) -> HttpContentGateway:
    return HttpContentGateway(
        config.ipfs_gateway_url,
        timeout=config.httpx_ipfs_api_timeout,
        fetch_timeout_seconds=config.fetch_timeout_seconds,
        max_payload_bytes=config.max_payload_bytes,
        transport=transport,
    )


def create_session(
    config: Config | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    *,
    configure_logging: bool = False,
) -> RetrievalSession:
    """Build a RetrievalSession wired to the configured IPFS node.

    The caller owns the gateway's HTTP client; close it with
    ``await session.gateway.aclose()`` (or use the gateway as a context manager)
    when the session is torn down. ``configure_logging`` installs the
    stdout/Loki handlers from the same config, for embedders that have none.
    """
    config = config or get_config()
    if configure_logging:
        setup_logging(config)
    return RetrievalSession(
        create_gateway(config, transport),
        ArtifactExporter(Path(config.download_dir)),
        default_download_name=config.default_download_name,
    )
