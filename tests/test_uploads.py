"""Tests for design image uploads."""

import asyncio

import httpx
import pytest

from storefront.exceptions import UploadError
from storefront.uploads import MAX_UPLOAD_BYTES, ImageBlob, ImageUploader


class RecordingHandler:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        return self.response


def png(size=16):
    return ImageBlob(filename="design.png", content_type="image/png", data=b"\x89PNG" + b"0" * size)


def uploader_for(settings, handler):
    return ImageUploader(settings, transport=httpx.MockTransport(handler))


def test_successful_upload_returns_secure_url(settings):
    handler = RecordingHandler(httpx.Response(200, json={"secure_url": "https://cdn.example/design.png"}))

    url = asyncio.run(uploader_for(settings, handler).upload(png()))

    assert url == "https://cdn.example/design.png"
    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1_1/demo/image/upload"
    assert b'name="upload_preset"' in request.content
    assert b"storefront" in request.content


def test_oversized_file_is_rejected_before_upload(settings):
    handler = RecordingHandler(httpx.Response(200, json={"secure_url": "x"}))
    blob = ImageBlob("big.png", "image/png", b"0" * (MAX_UPLOAD_BYTES + 1))

    with pytest.raises(UploadError) as exc:
        asyncio.run(uploader_for(settings, handler).upload(blob))

    assert exc.value.reason == UploadError.SIZE
    assert not exc.value.retryable
    assert handler.requests == []


@pytest.mark.parametrize("content_type", ["image/svg+xml", "application/pdf", ""])
def test_unsupported_type_is_rejected(settings, content_type):
    handler = RecordingHandler(httpx.Response(200, json={"secure_url": "x"}))

    with pytest.raises(UploadError) as exc:
        asyncio.run(uploader_for(settings, handler).upload(ImageBlob("d", content_type, b"0")))

    assert exc.value.reason == UploadError.TYPE
    assert handler.requests == []


def test_service_error_message_is_surfaced(settings):
    handler = RecordingHandler(httpx.Response(400, json={"error": {"message": "Upload preset not found"}}))

    with pytest.raises(UploadError) as exc:
        asyncio.run(uploader_for(settings, handler).upload(png()))

    assert exc.value.reason == UploadError.TRANSPORT
    assert exc.value.retryable
    assert str(exc.value) == "Upload preset not found"


def test_missing_secure_url_is_a_failure(settings):
    handler = RecordingHandler(httpx.Response(200, json={"public_id": "abc"}))

    with pytest.raises(UploadError) as exc:
        asyncio.run(uploader_for(settings, handler).upload(png()))

    assert exc.value.reason == UploadError.TRANSPORT


def test_network_error_is_a_transport_failure(settings):
    handler = RecordingHandler(error=lambda request: httpx.ConnectError("refused", request=request))

    with pytest.raises(UploadError) as exc:
        asyncio.run(uploader_for(settings, handler).upload(png()))

    assert exc.value.reason == UploadError.TRANSPORT
