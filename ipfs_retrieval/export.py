"""Save retrieved payloads as local files.

Each export stages the payload bytes in a temporary file (the staging handle),
then the save action copies it into the download directory with an atomic
tmp + rename. The staging handle is released on every exit path once the save
action has finished.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Iterator

from ipfs_retrieval.errors import ExportError


logger = logging.getLogger(__name__)


class ArtifactExporter:
    def __init__(self, download_dir: str | Path) -> None:
        self.download_dir = Path(download_dir)
        self._handles: set[Path] = set()

    @property
    def open_handles(self) -> int:
        """Number of staging handles not yet released."""
        return len(self._handles)

    def target_path(self, suggested_name: str) -> Path:
        # Only the final component is honoured so a name cannot escape download_dir
        name = Path((suggested_name or "").strip()).name
        if name in ("", ".", ".."):
            raise ExportError("A file name is required to save the download")
        return self.download_dir / name

    @contextlib.contextmanager
    def staged(self, data: bytes) -> Iterator[Path]:
        fd, name = tempfile.mkstemp(prefix="ipfs-export-", suffix=".part")
        handle = Path(name)
        self._handles.add(handle)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
            yield handle
        finally:
            self._handles.discard(handle)
            handle.unlink(missing_ok=True)

    def _save(self, handle: Path, target: Path) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # Unique per export so concurrent saves to one name cannot collide
        fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            shutil.copyfile(handle, tmp_path)
            tmp_path.replace(target)
        except Exception:
            tmp_path.unlink(missing_ok=True)
            raise

    def _export(self, data: bytes, target: Path) -> None:
        with self.staged(data) as handle:
            self._save(handle, target)

    async def export(self, data: bytes, suggested_name: str) -> Path:
        """Write ``data`` to ``download_dir/suggested_name`` and return the path.

        Raises:
            ExportError: If the name is unusable or the filesystem write fails
        """
        target = self.target_path(suggested_name)
        try:
            await asyncio.to_thread(self._export, data, target)
        except OSError as e:
            logger.error(f"Export failed for {target}: {e}")
            raise ExportError(f"Could not save {target.name}: {e}") from e

        logger.info(f"Saved {len(data)} bytes to {target}")
        return target
