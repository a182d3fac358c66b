"""Helpers that build small in-memory images for the test-suite."""
from __future__ import annotations

from io import BytesIO

from PIL import Image

EXIF_ORIENTATION = 0x0112


def make_image_bytes(
    width: int,
    height: int,
    fmt: str = "JPEG",
    *,
    mode: str = "RGB",
    color=(200, 80, 40),
    orientation: int | None = None,
) -> bytes:
    img = Image.new(mode, (width, height), color)
    buf = BytesIO()
    kwargs = {}
    if orientation is not None:
        exif = Image.Exif()
        exif[EXIF_ORIENTATION] = orientation
        kwargs["exif"] = exif.tobytes()
    img.save(buf, fmt, **kwargs)
    return buf.getvalue()


def image_size(data: bytes) -> tuple[int, int]:
    with Image.open(BytesIO(data)) as im:
        return im.size


def image_format(data: bytes) -> str:
    with Image.open(BytesIO(data)) as im:
        return im.format
