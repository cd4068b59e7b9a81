import io
import struct
import zlib

import httpx
from botocore.exceptions import ClientError
from PIL import Image

from bookmarkhub.services.image_upscaler import (
    needs_upscaling,
    read_dimensions,
    upscale_bytes,
    upscale_factor,
    upscale_image,
)


def _png(width: int, height: int) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), (200, 30, 30, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def _header_only_png(width: int, height: int) -> bytes:
    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", width, height, 8, 6, 0, 0, 0)
    return (
        b"\x89PNG\r\n\x1a\n"
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", b"")
        + chunk(b"IEND", b"")
    )


def _serving(body: bytes, status: int = 200):
    return httpx.Client(
        transport=httpx.MockTransport(
            lambda request: httpx.Response(
                status, headers={"content-type": "image/png"}, content=body
            )
        )
    )


def test_upscale_factor_is_capped():
    assert upscale_factor(32, 32, 512) == 8
    assert upscale_factor(128, 200, 512) == 4
    assert upscale_factor(600, 600, 512) == 1


def test_needs_upscaling_uses_shorter_side():
    assert needs_upscaling(_png(300, 100))
    assert not needs_upscaling(_png(256, 400))


def test_upscale_bytes_outputs_larger_png():
    enhanced = upscale_bytes(_png(64, 64), target=512)

    assert read_dimensions(enhanced) == (512, 512)
    with Image.open(io.BytesIO(enhanced)) as img:
        assert img.format == "PNG"
        assert img.mode == "RGBA"


def test_upscale_image_uploads_enhanced_logo(storage, s3_client):
    result = upscale_image(
        "https://example.com/icon.png",
        "example.com",
        storage,
        client=_serving(_png(32, 32)),
    )

    assert result.success
    assert (result.width, result.height) == (256, 256)
    assert result.s3_key.startswith("tenant/upscaled-logos/example.com-")
    assert result.upscaled_url == (
        f"https://bookmarkhub-test.s3.us-west-2.amazonaws.com/{result.s3_key}"
    )
    uploaded = s3_client.objects[result.s3_key]
    assert uploaded["ACL"] == "public-read"
    assert uploaded["ContentType"] == "image/png"


def test_upscale_image_skips_large_logos(storage, s3_client):
    result = upscale_image(
        "https://example.com/big.png",
        "example.com",
        storage,
        client=_serving(_png(600, 600)),
    )

    assert not result.success
    assert result.error == "Image already meets quality threshold (600x600)"
    assert result.upscaled_url == "https://example.com/big.png"
    assert s3_client.objects == {}


def test_upscale_image_reports_download_and_decode_failures(storage):
    result = upscale_image(
        "https://example.com/missing.png",
        "example.com",
        storage,
        client=_serving(b"", status=404),
    )
    assert result.error.startswith("Failed to download image:")

    result = upscale_image(
        "https://example.com/page.html",
        "example.com",
        storage,
        client=_serving(b"<html>not an image</html>"),
    )
    assert result.error == "Downloaded file is not a decodable image"

    assert upscale_image("", "example.com", storage).error == "No image to download"


def test_upscale_image_reports_upload_failure(storage, s3_client):
    s3_client.fail_with = ClientError(
        {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
    )

    result = upscale_image(
        "https://example.com/icon.png",
        "example.com",
        storage,
        client=_serving(_png(16, 16)),
    )

    assert not result.success
    assert result.error.startswith("Failed to upload enhanced image to S3:")


def test_upscale_image_rejects_oversized_image_headers(storage, s3_client):
    result = upscale_image(
        "https://example.com/huge.png",
        "example.com",
        storage,
        client=_serving(_header_only_png(200, 1_000_000)),
    )

    assert not result.success
    assert result.error == "Downloaded file is not a decodable image"
    assert s3_client.objects == {}
