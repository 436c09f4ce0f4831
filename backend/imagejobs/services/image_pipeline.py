from io import BytesIO
from typing import Iterable, Optional, Tuple

from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from imagejobs.core.config import settings
from imagejobs.core.errors import TransformError
from imagejobs.core.logging_config import get_logger
from imagejobs.models import GrayscaleTransform, ResizeTransform, UnknownTransform, WatermarkTransform
from imagejobs.models.transforms import ResizeOptions, WatermarkOptions

logger = get_logger(__name__)

OUTPUT_FORMAT = "JPEG"
OUTPUT_CONTENT_TYPE = "image/jpeg"

WATERMARK_FONT_SIZE = 20
WATERMARK_OPACITY = 0.7
WATERMARK_MARGIN = 10


def apply_transformations(data: bytes, specs: Iterable, quality: Optional[int] = None) -> bytes:
    """
    decode the source, fold every spec over it in order and encode the result as jpeg

    each step receives the previous step's output, an empty list only re-encodes
    """
    specs = list(specs)
    logger.info(f"starting image processing with {len(specs)} transformation(s)")

    image = decode_image(data)
    for spec in specs:
        image = apply_one(image, spec)

    return encode_image(image, settings.OUTPUT_QUALITY if quality is None else quality)


def apply_one(image: Image.Image, spec) -> Image.Image:
    if isinstance(spec, ResizeTransform):
        return resize(image, spec.options)
    if isinstance(spec, GrayscaleTransform):
        return grayscale(image)
    if isinstance(spec, WatermarkTransform):
        return watermark(image, spec.options)
    if isinstance(spec, UnknownTransform):
        # newer clients may send types this worker does not know yet
        logger.warning(f"skipping unknown transformation type {spec.type!r}")
        return image
    raise TypeError(f"unsupported transformation spec: {spec!r}")


def decode_image(data: bytes) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise TransformError(f"Could not decode image: {e}") from e
    return image


def encode_image(image: Image.Image, quality: int) -> bytes:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")

    buffer = BytesIO()
    try:
        image.save(buffer, format=OUTPUT_FORMAT, quality=quality)
    except (OSError, ValueError) as e:
        raise TransformError(f"Could not encode image: {e}") from e
    return buffer.getvalue()


def resize(image: Image.Image, options: ResizeOptions) -> Image.Image:
    """stretch to exactly width x height, aspect ratio is not preserved"""
    logger.info(f"applying resize: {options.width}x{options.height}")
    return image.resize((options.width, options.height), Image.Resampling.LANCZOS)


def grayscale(image: Image.Image) -> Image.Image:
    logger.info("applying grayscale filter")
    return image.convert("L")


def watermark(image: Image.Image, options: WatermarkOptions) -> Image.Image:
    """render semi transparent white text anchored at the requested position"""
    logger.info(f'applying watermark: "{options.text}" at {options.position}')

    base = image.convert("RGBA")
    overlay = Image.new("RGBA", base.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    font = ImageFont.load_default(size=WATERMARK_FONT_SIZE)

    left, top, right, bottom = draw.textbbox((0, 0), options.text, font=font)
    x, y = watermark_origin(options.position, base.size, (right - left, bottom - top))

    draw.text(
        (x - left, y - top),
        options.text,
        font=font,
        fill=(255, 255, 255, int(255 * WATERMARK_OPACITY)),
    )
    return Image.alpha_composite(base, overlay)


def watermark_origin(position: str, image_size: Tuple[int, int], text_size: Tuple[int, int]) -> Tuple[int, int]:
    """top-left corner of the text box for a named anchor"""
    width, height = image_size
    text_width, text_height = text_size

    left = WATERMARK_MARGIN
    right = width - text_width - WATERMARK_MARGIN
    top = WATERMARK_MARGIN
    bottom = height - text_height - WATERMARK_MARGIN

    origins = {
        "top-left": (left, top),
        "top-right": (right, top),
        "bottom-left": (left, bottom),
        "bottom-right": (right, bottom),
        "center": ((width - text_width) // 2, (height - text_height) // 2),
    }
    x, y = origins.get(position, origins["bottom-right"])
    # text larger than the image starts at the edge and gets clipped
    return max(x, 0), max(y, 0)
