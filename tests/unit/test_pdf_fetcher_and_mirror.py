"""Unit tests for PdfFetcher, ManualMirror and the blob stores."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from botocore.exceptions import ClientError

from manual_rag.interfaces.blob_store import IBlobStore
from manual_rag.providers.storage.local_blob_store import LocalBlobStore
from manual_rag.providers.storage.s3_blob_store import S3BlobStore
from manual_rag.services.acquisition.manual_mirror import ManualMirror, manual_blob_path
from manual_rag.services.acquisition.pdf_fetcher import PdfFetcher, is_pdf_bytes
from manual_rag.utils.errors import BlobStoreError, PdfVerificationError

_PDF = b"%PDF-1.7\n" + b"0" * 2048
_HTML = b"<html><body>Not found</body></html>"


def _fetcher(handler, **kwargs) -> PdfFetcher:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return PdfFetcher(http_client=client, **kwargs)


# ======================================================================
# PdfFetcher.verify
# ======================================================================


class TestVerify:
    @pytest.mark.asyncio
    async def test_head_with_pdf_content_type(self) -> None:
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.method)
            return httpx.Response(200, headers={"content-type": "application/pdf"})

        assert await _fetcher(handler).verify("https://oem.example/om.pdf") is True
        assert seen == ["HEAD"]

    @pytest.mark.asyncio
    async def test_falls_back_to_range_signature(self) -> None:
        ranges: list[str | None] = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "HEAD":
                return httpx.Response(405)
            ranges.append(request.headers.get("range"))
            return httpx.Response(206, content=_PDF[:5])

        assert await _fetcher(handler).verify("https://oem.example/om.pdf") is True
        assert ranges == ["bytes=0-4"]

    @pytest.mark.asyncio
    async def test_html_error_page_is_rejected(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/html"}, content=_HTML)

        assert await _fetcher(handler).verify("https://oem.example/om.pdf") is False

    @pytest.mark.asyncio
    async def test_network_error_counts_as_unverified(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        assert await _fetcher(handler).verify("https://oem.example/om.pdf") is False

    @pytest.mark.asyncio
    async def test_non_http_url(self) -> None:
        handler = MagicMock()
        assert await _fetcher(handler).verify("ftp://oem.example/om.pdf") is False
        handler.assert_not_called()


# ======================================================================
# PdfFetcher.download
# ======================================================================


class TestDownload:
    @pytest.mark.asyncio
    async def test_returns_pdf_bytes(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_PDF))
        assert await fetcher.download("https://oem.example/om.pdf") == _PDF

    @pytest.mark.asyncio
    async def test_rejects_non_pdf_body(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_HTML))
        with pytest.raises(PdfVerificationError):
            await fetcher.download("https://oem.example/om.pdf")

    @pytest.mark.asyncio
    async def test_enforces_size_limit(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_PDF), max_bytes=100)
        with pytest.raises(PdfVerificationError, match="limit"):
            await fetcher.download("https://oem.example/om.pdf")

    @pytest.mark.asyncio
    async def test_error_status_raises_http_error(self) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(503))
        with pytest.raises(httpx.HTTPStatusError):
            await fetcher.download("https://oem.example/om.pdf")

    def test_is_pdf_bytes(self) -> None:
        assert is_pdf_bytes(_PDF) is True
        assert is_pdf_bytes(b"%PD") is False


# ======================================================================
# ManualMirror
# ======================================================================


class TestManualMirror:
    def test_blob_path_is_deterministic(self, camry) -> None:
        assert manual_blob_path(camry) == "manuals/2022-toyota-camry.pdf"

    @pytest.mark.asyncio
    async def test_downloads_and_stores(self, camry, tmp_path) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_PDF))
        store = LocalBlobStore(tmp_path, public_base_url="https://cdn.example")

        outcome = await ManualMirror(fetcher, store).mirror("https://oem.example/om.pdf", camry)

        assert outcome.pdf_bytes == _PDF
        assert outcome.storage_url == "https://cdn.example/manuals/2022-toyota-camry.pdf"
        assert outcome.mirrored is True
        assert (tmp_path / "manuals" / "2022-toyota-camry.pdf").read_bytes() == _PDF

    @pytest.mark.asyncio
    async def test_network_failure_gives_empty_outcome(self, camry) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(500))
        outcome = await ManualMirror(fetcher, MagicMock(spec=IBlobStore)).mirror(
            "https://oem.example/om.pdf", camry
        )
        assert outcome.pdf_bytes is None
        assert outcome.mirrored is False

    @pytest.mark.asyncio
    async def test_upload_failure_keeps_bytes(self, camry) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_PDF))
        store = MagicMock(spec=IBlobStore)
        store.upload = AsyncMock(side_effect=BlobStoreError("bucket gone"))

        outcome = await ManualMirror(fetcher, store).mirror("https://oem.example/om.pdf", camry)

        assert outcome.pdf_bytes == _PDF
        assert outcome.storage_url is None

    @pytest.mark.asyncio
    async def test_non_pdf_body_propagates(self, camry) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_HTML))
        with pytest.raises(PdfVerificationError):
            await ManualMirror(fetcher).mirror("https://oem.example/om.pdf", camry)

    @pytest.mark.asyncio
    async def test_without_blob_store(self, camry) -> None:
        fetcher = _fetcher(lambda request: httpx.Response(200, content=_PDF))
        outcome = await ManualMirror(fetcher).mirror("https://oem.example/om.pdf", camry)
        assert outcome.pdf_bytes == _PDF
        assert outcome.mirrored is False


# ======================================================================
# Blob stores
# ======================================================================


class TestLocalBlobStore:
    @pytest.mark.asyncio
    async def test_file_uri_without_public_base(self, tmp_path) -> None:
        store = LocalBlobStore(tmp_path)
        url = await store.upload("manuals/a.pdf", _PDF, "application/pdf")
        assert url.startswith("file://")
        assert url.endswith("/manuals/a.pdf")

    @pytest.mark.asyncio
    async def test_rejects_path_escape(self, tmp_path) -> None:
        store = LocalBlobStore(tmp_path / "blobs")
        with pytest.raises(BlobStoreError):
            await store.upload("../outside.pdf", _PDF, "application/pdf")


class TestS3BlobStore:
    @pytest.mark.asyncio
    async def test_put_object_and_public_url(self) -> None:
        client = MagicMock()
        store = S3BlobStore("manual-bucket", region="us-west-2", prefix="mirror/", client=client)

        url = await store.upload("manuals/a.pdf", _PDF, "application/pdf")

        client.put_object.assert_called_once_with(
            Bucket="manual-bucket",
            Key="mirror/manuals/a.pdf",
            Body=_PDF,
            ContentType="application/pdf",
        )
        assert url == "https://manual-bucket.s3.us-west-2.amazonaws.com/mirror/manuals/a.pdf"

    @pytest.mark.asyncio
    async def test_client_error_becomes_blob_store_error(self) -> None:
        client = MagicMock()
        client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        store = S3BlobStore("manual-bucket", client=client)

        with pytest.raises(BlobStoreError) as exc_info:
            await store.upload("manuals/a.pdf", _PDF, "application/pdf")
        assert exc_info.value.provider_name == "s3"
