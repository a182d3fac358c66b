from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from io import BytesIO

from PIL import Image, ImageOps, UnidentifiedImageError

from api.app.core.errors import DecodeError, EncodeError

OUTPUT_FORMAT = "WEBP"
OUTPUT_CONTENT_TYPE = "image/webp"
# libwebp refuses to encode either side beyond this
WEBP_MAX_DIMENSION = 16383


class Tier(str, Enum):
    FULL = "full"
    THUMBNAIL = "thumbnail"


@dataclass(frozen=True)
class DerivativeProfile:
    name: Tier
    max_width: int
    quality: int
    allow_upscale: bool = False

    def __post_init__(self) -> None:
        if self.max_width <= 0:
            raise ValueError("max_width must be positive")
        if not 0 <= self.quality <= 100:
            raise ValueError("quality must be within [0, 100]")


FULL = DerivativeProfile(Tier.FULL, max_width=1080, quality=75)
# width-only constraint; height follows the aspect ratio
THUMBNAIL = DerivativeProfile(Tier.THUMBNAIL, max_width=300, quality=70)


@dataclass(frozen=True)
class Derivative:
    profile: DerivativeProfile
    data: bytes
    width: int
    height: int
    content_type: str = OUTPUT_CONTENT_TYPE


def _normalize_mode(img: Image.Image) -> Image.Image:
    # WEBP keeps alpha; palette/CMYK/16-bit sources are flattened to RGB(A)
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = "A" in img.getbands() or (img.mode == "P" and "transparency" in img.info)
    return img.convert("RGBA" if has_alpha else "RGB")


def target_size(width: int, height: int, profile: DerivativeProfile) -> tuple[int, int]:
    """Width bounded by profile.max_width, aspect ratio kept, never enlarged unless allowed."""
    if width == profile.max_width:
        return width, height
    if width < profile.max_width and not profile.allow_upscale:
        return width, height
    scale = profile.max_width / width
    return profile.max_width, max(1, int(round(height * scale)))


def _decode(src_bytes: bytes, max_pixels: int | None) -> Image.Image:
    try:
        with Image.open(BytesIO(src_bytes)) as im:
            if max_pixels and im.width * im.height > max_pixels:
                raise DecodeError(f"Image is too large to process ({im.width}x{im.height})")
            im.load()
            # rotate to upright before any geometry is computed
            return ImageOps.exif_transpose(im)
    except DecodeError:
        raise
    except (UnidentifiedImageError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Unable to decode image: {exc}") from exc
    except (OSError, SyntaxError, ValueError, EOFError) as exc:
        raise DecodeError(f"Corrupt or unsupported image data: {exc}") from exc


def transcode(src_bytes: bytes, profile: DerivativeProfile, *, max_pixels: int | None = None) -> Derivative:
    """
    Pipeline:
    1) Decode and apply EXIF orientation
    2) Normalize colour mode for WEBP
    3) Bound the width to profile.max_width (aspect ratio preserved)
    4) Encode lossy WEBP at profile.quality, without the source metadata
    """
    if not src_bytes:
        raise DecodeError("Unable to decode image: no data")

    im = _decode(src_bytes, max_pixels)
    size = target_size(im.width, im.height, profile)
    if max(size) > WEBP_MAX_DIMENSION:
        im.close()
        raise DecodeError(
            f"Image is too tall to encode ({size[0]}x{size[1]}, max {WEBP_MAX_DIMENSION} px per side)"
        )
    try:
        im = _normalize_mode(im)
        if size != im.size:
            im = im.resize(size, Image.Resampling.LANCZOS)
    except (OSError, ValueError) as exc:
        raise DecodeError(f"Unable to process image: {exc}") from exc

    out = BytesIO()
    try:
        im.save(out, OUTPUT_FORMAT, quality=profile.quality, method=4, lossless=False)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"WEBP encoding failed: {exc}") from exc
    finally:
        im.close()
    return Derivative(profile=profile, data=out.getvalue(), width=size[0], height=size[1])
