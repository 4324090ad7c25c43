import dataclasses

import dotenv
import httpx

from ipfs_retrieval.utils import env
from ipfs_retrieval.utils import env_bool


dotenv.load_dotenv()


@dataclasses.dataclass
class Config:
    """Application configuration settings."""

    # IPFS gateway
    ipfs_gateway_url: str = env("IPFS_GATEWAY_URL:https://ipfs.infura.io:5001")
    fetch_timeout_seconds: float = env("IPFS_FETCH_TIMEOUT_SECONDS:30", convert=float)
    max_payload_bytes: int = env("IPFS_MAX_PAYLOAD_BYTES:52428800", convert=int)  # 50 MiB

    # Downloads
    download_dir: str = env("DOWNLOAD_DIR:downloads")
    default_download_name: str = env("DEFAULT_DOWNLOAD_NAME:download.png")

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=env_bool)

    environment: str = env("ENVIRONMENT:development")

    # connect/write/pool at 10s, reads may stall on large unpinned content
    httpx_ipfs_api_timeout = httpx.Timeout(10.0, read=300.0)


def get_config() -> Config:
    """Get application configuration."""
    cfg = Config()

    env_value = getattr(cfg, "environment", None)
    if not env_value or not env_value.strip():
        raise ValueError("ENVIRONMENT variable is required but not set or empty")

    gateway_url = (cfg.ipfs_gateway_url or "").strip().rstrip("/")
    if not gateway_url:
        raise ValueError("IPFS_GATEWAY_URL must not be empty")
    object.__setattr__(cfg, "ipfs_gateway_url", gateway_url)

    if cfg.fetch_timeout_seconds <= 0:
        raise ValueError(f"IPFS_FETCH_TIMEOUT_SECONDS must be positive, got {cfg.fetch_timeout_seconds}")
    if cfg.max_payload_bytes <= 0:
        raise ValueError(f"IPFS_MAX_PAYLOAD_BYTES must be positive, got {cfg.max_payload_bytes}")

    if not cfg.default_download_name.strip():
        object.__setattr__(cfg, "default_download_name", "download.png")

    return cfg
