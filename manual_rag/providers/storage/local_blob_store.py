"""Filesystem blob store for development and single-host deployments."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.utils.errors import BlobStoreError

logger = structlog.get_logger(logger_name=__name__)


class LocalBlobStore(IBlobStore):
    """Writes blobs under *base_dir*.

    Public URLs use *public_base_url* when set (e.g. a static file server
    in front of the directory), otherwise ``file://`` URIs.
    """

    def __init__(self, base_dir: str | Path, public_base_url: str = "") -> None:
        self._base_dir = Path(base_dir).resolve()
        self._public_base_url = public_base_url.rstrip("/")

    async def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        try:
            await asyncio.to_thread(self._write, target, data)
        except OSError as exc:
            raise BlobStoreError(
                message=f"Could not write {path}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        logger.info("blob_stored", path=path, bytes=len(data), content_type=content_type)
        return self.public_url(path)

    def public_url(self, path: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url}/{path.lstrip('/')}"
        return self._resolve(path).as_uri()

    def get_provider_name(self) -> str:
        return "local"

    def _resolve(self, path: str) -> Path:
        target = (self._base_dir / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._base_dir):
            raise BlobStoreError(
                message=f"Blob path escapes the storage directory: {path}",
                provider_name=self.get_provider_name(),
            )
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        temporary = target.with_suffix(target.suffix + ".part")
        temporary.write_bytes(data)
        temporary.replace(target)
