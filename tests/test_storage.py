import pytest

from adcheck.services.generation import AnthropicGenerationService
from adcheck.services.media_types import (
    EXTENSION_MIME_TYPES,
    IMAGE_MIME_TYPES,
    MIME_ALIASES,
    media_kind,
    resolve_mime_type,
)
from adcheck.services.storage import UploadRejected


def test_save_and_remove(media_store):
    asset = media_store.save_upload(original_name="Promo.MP4", data=b"\x00" * 10, content_type="video/mp4")

    assert asset.identifier.startswith("file-")
    assert asset.identifier.endswith(".mp4")
    assert asset.original_name == "Promo.MP4"
    assert asset.kind == "video"
    assert asset.size == 10
    assert asset.path.read_bytes() == b"\x00" * 10

    assert media_store.remove(asset) is True
    assert media_store.remove(asset) is False


def test_identifiers_are_unique(media_store):
    a = media_store.save_upload(original_name="a.png", data=b"1", content_type="image/png")
    b = media_store.save_upload(original_name="a.png", data=b"2", content_type="image/png")
    assert a.identifier != b.identifier


@pytest.mark.parametrize("name", ["doc.pdf", "script.sh", "noextension"])
def test_rejects_unknown_extensions(media_store, name):
    with pytest.raises(UploadRejected) as exc:
        media_store.check_upload(original_name=name, size=1)
    assert exc.value.code == "INVALID_FILE_TYPE"
    assert exc.value.status_code == 400


def test_rejects_oversized(media_store):
    with pytest.raises(UploadRejected) as exc:
        media_store.save_upload(original_name="a.png", data=b"\x00" * (1024 * 1024 + 1), content_type="image/png")
    assert exc.value.code == "FILE_TOO_LARGE"
    assert "1MB" in exc.value.message


def test_media_type_resolution():
    assert resolve_mime_type("clip.mkv", "application/octet-stream") == "video/x-matroska"
    assert resolve_mime_type("photo.jpg", "image/jpeg; charset=binary") == "image/jpeg"
    assert resolve_mime_type("file.txt", None) is None
    assert media_kind("VIDEO/MP4") == "video"
    assert media_kind("text/plain") is None


def test_rejects_type_the_summarizer_cannot_take(media_store):
    with pytest.raises(UploadRejected) as exc:
        media_store.save_upload(
            original_name="banner.bmp", data=b"BM", content_type="image/bmp", accept=lambda mt: mt == "image/png",
        )
    assert exc.value.code == "INVALID_FILE_TYPE"
    assert list(media_store.base.iterdir()) == []


def test_every_image_type_is_reachable_from_an_extension():
    assert {mt for mt in IMAGE_MIME_TYPES if mt not in MIME_ALIASES} <= set(EXTENSION_MIME_TYPES.values())
    assert resolve_mime_type("photo.jpg", "image/jpg") == "image/jpeg"


def test_anthropic_accepts_only_still_images():
    service = AnthropicGenerationService(api_key="test", model="claude-test")
    assert service.accepts("image/png") is True
    assert service.accepts("image/bmp") is False
    assert service.accepts("video/mp4") is False
