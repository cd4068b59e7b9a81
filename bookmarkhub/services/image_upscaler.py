from __future__ import annotations

import io
import logging
import math
import time
from dataclasses import dataclass

import httpx
from PIL import Image, UnidentifiedImageError

from bookmarkhub.services.fetching import fetch_bytes, normalize_error
from bookmarkhub.services.storage import ObjectStorage, StorageError

logger = logging.getLogger(__name__)

DEFAULT_MIN_DIMENSION = 256
DEFAULT_TARGET_DIMENSION = 512
MAX_SCALE_FACTOR = 8
MAX_IMAGE_BYTES = 5_000_000


@dataclass
class UpscaleResult:
    success: bool
    upscaled_url: str | None = None
    s3_key: str | None = None
    error: str | None = None
    width: int | None = None
    height: int | None = None


def read_dimensions(image_bytes: bytes) -> tuple[int, int]:
    with Image.open(io.BytesIO(image_bytes)) as img:
        return img.size


def needs_upscaling(
    image_bytes: bytes, min_dimension: int = DEFAULT_MIN_DIMENSION
) -> bool:
    width, height = read_dimensions(image_bytes)
    return min(width, height) < min_dimension


def upscale_factor(width: int, height: int, target: int) -> int:
    shorter = max(1, min(width, height))
    if shorter >= target:
        return 1
    return min(MAX_SCALE_FACTOR, math.ceil(target / shorter))


def upscale_bytes(image_bytes: bytes, target: int = DEFAULT_TARGET_DIMENSION) -> bytes:
    with Image.open(io.BytesIO(image_bytes)) as img:
        frame = img.convert("RGBA")
    factor = upscale_factor(frame.width, frame.height, target)
    if factor > 1:
        frame = frame.resize(
            (frame.width * factor, frame.height * factor), Image.Resampling.LANCZOS
        )
    buffer = io.BytesIO()
    frame.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


def upscale_image(
    image_url: str,
    domain: str,
    storage: ObjectStorage,
    client: httpx.Client | None = None,
    min_dimension: int = DEFAULT_MIN_DIMENSION,
    target: int = DEFAULT_TARGET_DIMENSION,
    timeout: float = 10.0,
) -> UpscaleResult:
    if not image_url:
        return UpscaleResult(success=False, error="No image to download")

    try:
        image_bytes, _content_type = fetch_bytes(
            image_url, timeout=timeout, max_bytes=MAX_IMAGE_BYTES, client=client
        )
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("Logo download failed for %s: %s", domain, normalize_error(exc))
        return UpscaleResult(
            success=False,
            upscaled_url=image_url,
            error=f"Failed to download image: {normalize_error(exc)}",
        )

    try:
        width, height = read_dimensions(image_bytes)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return UpscaleResult(
            success=False,
            upscaled_url=image_url,
            error="Downloaded file is not a decodable image",
        )

    if not needs_upscaling(image_bytes, min_dimension=min_dimension):
        logger.info("Logo for %s already %sx%s, skipping upscale", domain, width, height)
        return UpscaleResult(
            success=False,
            upscaled_url=image_url,
            error=f"Image already meets quality threshold ({width}x{height})",
            width=width,
            height=height,
        )

    try:
        enhanced = upscale_bytes(image_bytes, target=target)
    except (
        UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError
    ) as exc:
        return UpscaleResult(
            success=False,
            upscaled_url=image_url,
            error=f"Upscaling failed: {normalize_error(exc)}",
        )

    file_name = f"upscaled-logos/{domain}-{int(time.time() * 1000)}.png"
    try:
        key = storage.upload_bytes(enhanced, file_name, content_type="image/png")
    except StorageError as exc:
        return UpscaleResult(
            success=False,
            upscaled_url=image_url,
            error=f"Failed to upload enhanced image to S3: {exc}",
        )

    new_width, new_height = read_dimensions(enhanced)
    logger.info(
        "Upscaled logo for %s from %sx%s to %sx%s",
        domain,
        width,
        height,
        new_width,
        new_height,
    )
    return UpscaleResult(
        success=True,
        upscaled_url=storage.public_url(key),
        s3_key=key,
        width=new_width,
        height=new_height,
    )
