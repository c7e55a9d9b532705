"""Verify and download candidate manual PDFs over HTTP.

Manufacturer sites often answer a missing document with an HTML error
page and a 200 status, so a URL only counts as a PDF when either:

* a HEAD request succeeds with a PDF-like ``Content-Type``, or
* a ``Range: bytes=0-4`` GET returns the ``%PDF-`` signature.

Downloads check the signature again, since some servers ignore Range
and HEAD.
"""

from __future__ import annotations

import httpx
import structlog

from manual_rag.utils.errors import PdfVerificationError

logger = structlog.get_logger(logger_name=__name__)

PDF_MAGIC = b"%PDF-"

_DEFAULT_HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; manual-rag/0.1)",
    "Accept": "application/pdf,*/*;q=0.8",
}


def is_pdf_bytes(data: bytes) -> bool:
    return data[: len(PDF_MAGIC)] == PDF_MAGIC


class PdfFetcher:
    """HTTP verification and download of PDF documents.

    Parameters
    ----------
    http_client:
        Shared client.  One is created (and owned) when omitted.
    verify_timeout:
        Seconds allowed for each verification request.
    download_timeout:
        Seconds allowed for a full download.
    max_bytes:
        Downloads larger than this are abandoned.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        verify_timeout: float = 8.0,
        download_timeout: float = 20.0,
        max_bytes: int = 150 * 1024 * 1024,
    ) -> None:
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(download_timeout),
            headers=_DEFAULT_HEADERS,
            follow_redirects=True,
        )
        self._verify_timeout = verify_timeout
        self._download_timeout = download_timeout
        self._max_bytes = max_bytes

    async def verify(self, url: str) -> bool:
        """Return ``True`` if *url* serves a PDF.  Network errors count as "no"."""
        if not url.lower().startswith(("https://", "http://")):
            return False

        try:
            head = await self._client.head(url, timeout=self._verify_timeout)
            content_type = head.headers.get("content-type", "").lower()
            if head.is_success and "pdf" in content_type:
                logger.debug("pdf_verified_by_head", url=url, content_type=content_type)
                return True
        except httpx.HTTPError as exc:
            logger.debug("pdf_head_failed", url=url, error=str(exc))

        try:
            prefix = await self._read_prefix(url)
        except httpx.HTTPError as exc:
            logger.info("pdf_verification_failed", url=url, error=str(exc))
            return False

        verified = is_pdf_bytes(prefix)
        logger.info("pdf_verified_by_signature" if verified else "pdf_signature_mismatch", url=url)
        return verified

    async def download(self, url: str) -> bytes:
        """Fetch the whole document.

        Raises
        ------
        httpx.HTTPError
            On network failure, timeout or an error status.
        PdfVerificationError
            If the body is too large or does not start with ``%PDF-``.
        """
        chunks: list[bytes] = []
        total = 0
        async with self._client.stream("GET", url, timeout=self._download_timeout) as response:
            response.raise_for_status()
            async for chunk in response.aiter_bytes():
                total += len(chunk)
                if total > self._max_bytes:
                    raise PdfVerificationError(
                        f"{url} exceeds the {self._max_bytes}-byte download limit"
                    )
                chunks.append(chunk)

        data = b"".join(chunks)
        if not is_pdf_bytes(data):
            raise PdfVerificationError(f"{url} did not return a PDF document")
        logger.info("pdf_downloaded", url=url, bytes=len(data))
        return data

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _read_prefix(self, url: str) -> bytes:
        prefix = b""
        async with self._client.stream(
            "GET",
            url,
            headers={"Range": f"bytes=0-{len(PDF_MAGIC) - 1}"},
            timeout=self._verify_timeout,
        ) as response:
            if not response.is_success:
                return b""
            async for chunk in response.aiter_bytes():
                prefix += chunk
                if len(prefix) >= len(PDF_MAGIC):
                    break
        return prefix
