"""
Tests for the media mirror.
"""

import asyncio

import pytest

from wagate.core.errors import (
    MixedMediaFormats,
    ProviderError,
    UnsupportedMediaType,
    ValidationError,
)
from wagate.domain.models import MediaKind
from wagate.gateway.media_mirror import MediaMirror, build_storage_key, classify_mime
from wagate.messaging.whatsapp.handlers.whatsapp_media_handler import (
    WhatsAppMediaHandler,
)

from ..factories import JPEG_BYTES, MP4_BYTES


@pytest.fixture
def handler(fake_client) -> WhatsAppMediaHandler:
    return WhatsAppMediaHandler(fake_client, "tenant-1")


class TestClassifyMime:
    @pytest.mark.parametrize(
        "mime, kind",
        [
            ("image/jpeg", MediaKind.IMAGE),
            ("video/mp4", MediaKind.VIDEO),
            ("audio/ogg; codecs=opus", MediaKind.AUDIO),
            ("application/pdf", MediaKind.DOCUMENT),
            ("text/plain", MediaKind.DOCUMENT),
        ],
    )
    def test_families(self, mime, kind):
        assert classify_mime(mime) == kind

    def test_unknown_family(self):
        with pytest.raises(UnsupportedMediaType):
            classify_mime("model/gltf+json")


def test_storage_key_layout():
    key = build_storage_key("acme", "incoming", "image/jpeg")

    prefix, direction, name = key.split("/")
    assert prefix == "acme"
    assert direction == "incoming"
    assert name.endswith(".jpg")
    assert name.split("_", 1)[0].isdigit()


class TestMirror:
    async def test_mirror_by_media_id(self, media_mirror, handler, fake_client, storage, tenant):
        fake_client.add_media("img-1", "image/jpeg", JPEG_BYTES)

        mirrored = await media_mirror.mirror(handler, tenant, media_id="img-1")

        assert mirrored.kind == MediaKind.IMAGE
        assert mirrored.provider_media_id == "img-1"
        assert mirrored.public_url == f"http://testserver/media/{mirrored.storage_key}"
        assert await storage.get_object(mirrored.storage_key) == JPEG_BYTES

    async def test_mirror_by_url_is_unauthenticated(
        self, media_mirror, handler, fake_client, tenant
    ):
        fake_client.links["https://cdn.test/clip.mp4"] = ("video/mp4", MP4_BYTES)

        mirrored = await media_mirror.mirror(
            handler, tenant, url="https://cdn.test/clip.mp4", direction="outgoing"
        )

        assert mirrored.kind == MediaKind.VIDEO
        assert mirrored.storage_key.startswith("acme/outgoing/")
        fake_client.get_request_stream.assert_awaited_once_with(
            "https://cdn.test/clip.mp4", False
        )

    async def test_unknown_media_id(self, media_mirror, handler, tenant):
        with pytest.raises(ProviderError):
            await media_mirror.mirror(handler, tenant, media_id="missing")

    async def test_timeout_becomes_provider_error(self, storage, handler, fake_client, tenant):
        fake_client.add_media("img-1", "image/jpeg", JPEG_BYTES)

        async def slow_put(key, data, content_type):
            await asyncio.sleep(1)

        storage.put_object = slow_put
        mirror = MediaMirror(storage, batch_limit=5, timeout_seconds=0.01)

        with pytest.raises(ProviderError) as exc_info:
            await mirror.mirror(handler, tenant, media_id="img-1")

        assert "timed out" in exc_info.value.message


class TestMirrorBatch:
    async def test_batch_keeps_input_order(self, media_mirror, handler, fake_client, tenant):
        fake_client.add_media("a", "image/jpeg", JPEG_BYTES)
        fake_client.add_media("b", "image/png", b"\x89PNG" + b"0" * 32)

        mirrored = await media_mirror.mirror_batch(handler, tenant, ["a", "b"])

        assert [m.provider_media_id for m in mirrored] == ["a", "b"]

    async def test_failure_rolls_back_every_stored_object(
        self, media_mirror, handler, fake_client, storage, tenant
    ):
        fake_client.add_media("a", "image/jpeg", JPEG_BYTES)
        fake_client.add_media("b", "image/jpeg", JPEG_BYTES)

        with pytest.raises(ProviderError):
            await media_mirror.mirror_batch(handler, tenant, ["a", "b", "missing"])

        assert storage.keys == []

    async def test_mixed_formats_rejected_and_rolled_back(
        self, media_mirror, handler, fake_client, storage, tenant
    ):
        fake_client.add_media("img", "image/jpeg", JPEG_BYTES)
        fake_client.add_media("vid", "video/mp4", MP4_BYTES)

        with pytest.raises(MixedMediaFormats) as exc_info:
            await media_mirror.mirror_batch(handler, tenant, ["img", "vid"])

        assert exc_info.value.details["formats"] == ["image", "video"]
        assert storage.keys == []

    async def test_empty_batch(self, media_mirror, handler, tenant):
        with pytest.raises(ValidationError):
            await media_mirror.mirror_batch(handler, tenant, [])

    async def test_batch_limit(self, media_mirror, handler, tenant):
        with pytest.raises(ValidationError) as exc_info:
            await media_mirror.mirror_batch(handler, tenant, [str(i) for i in range(6)])

        assert exc_info.value.details["limit"] == 5
