"""
Product image processing with Pillow.

Uploaded images are shrunk to fit a bounding box, re-encoded as JPEG and kept
inline on the product as a base64 data URL.
"""
import base64
import io
import logging
from typing import NamedTuple, Optional, Tuple, Union

from PIL import Image, ImageDraw, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 400
DEFAULT_MAX_HEIGHT = 400
DEFAULT_QUALITY = 0.7

VALID_IMAGE_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/webp')
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB

INVALID_TYPE_MESSAGE = 'Tipo de archivo no válido. Use JPG, PNG o WebP.'
TOO_LARGE_MESSAGE = 'El archivo es demasiado grande. Máximo 5MB.'

JPEG_DATA_URL_PREFIX = 'data:image/jpeg;base64,'


class ImageProcessingError(Exception):
    """The image could not be decoded or re-encoded"""


class CompressedImage(NamedTuple):
    data_url: str
    data: bytes
    size: int
    width: int
    height: int


def fit_dimensions(width: float, height: float, max_width: float, max_height: float) -> Tuple[float, float]:
    """
    Scale (width, height) down to the bounding box, keeping the aspect ratio.

    Landscape images are bounded by max_width, everything else by max_height.
    Images already inside the bound are returned unchanged (never enlarged).
    """
    if width > height:
        if width > max_width:
            height = height * max_width / width
            width = max_width
    else:
        if height > max_height:
            width = width * max_height / height
            height = max_height
    return width, height


def jpeg_quality(quality: float) -> int:
    """Map a 0..1 quality factor onto Pillow's JPEG quality scale"""
    if quality is None or not 0 < quality <= 1:
        raise ValueError(f'quality must be in (0, 1], got {quality!r}')
    return max(1, min(95, int(round(quality * 100))))


def _flatten(img: Image.Image) -> Image.Image:
    """Convert to RGB, compositing any transparency onto white"""
    if img.mode in ('RGBA', 'LA') or (img.mode == 'P' and 'transparency' in img.info):
        rgba = img.convert('RGBA')
        background = Image.new('RGB', rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != 'RGB':
        return img.convert('RGB')
    return img


def _to_data_url(data: bytes) -> str:
    return JPEG_DATA_URL_PREFIX + base64.b64encode(data).decode('ascii')


def compress_image(
    source: Union[bytes, io.IOBase],
    max_width: int = DEFAULT_MAX_WIDTH,
    max_height: int = DEFAULT_MAX_HEIGHT,
    quality: float = DEFAULT_QUALITY,
) -> CompressedImage:
    """
    Compress an image to reduce size while keeping reasonable quality.

    Args:
        source: Raw image bytes or a binary file object
        max_width: Bound for landscape images
        max_height: Bound for portrait and square images
        quality: JPEG quality factor in (0, 1]

    Returns:
        CompressedImage with the JPEG bytes, its data URL, approximate size
        in bytes and the final (rounded) dimensions

    Raises:
        ImageProcessingError: the image cannot be decoded or encoded
        ValueError: bounds or quality are out of range
    """
    if max_width <= 0 or max_height <= 0:
        raise ValueError('max_width and max_height must be positive')
    encoder_quality = jpeg_quality(quality)

    raw = source.read() if hasattr(source, 'read') else source
    if not raw:
        raise ImageProcessingError('Could not load image')

    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as e:
        logger.warning(f"Image decode failed: {str(e)}")
        raise ImageProcessingError('Could not load image') from e

    width, height = fit_dimensions(img.width, img.height, max_width, max_height)
    target = (max(1, int(round(width))), max(1, int(round(height))))

    try:
        img = _flatten(img)
        if target != img.size:
            img = img.resize(target, Image.Resampling.LANCZOS)
        buffer = io.BytesIO()
        img.save(buffer, format='JPEG', quality=encoder_quality, optimize=True)
    except (OSError, ValueError) as e:
        logger.error(f"Image encode failed: {str(e)}")
        raise ImageProcessingError('Could not encode image') from e

    data = buffer.getvalue()
    data_url = _to_data_url(data)
    return CompressedImage(
        data_url=data_url,
        data=data,
        size=round(len(data_url) * 3 / 4),
        width=target[0],
        height=target[1],
    )


def validate_image_file(content_type: Optional[str], size: int) -> Tuple[bool, Optional[str]]:
    """Validate image file type and size"""
    if (content_type or '').lower() not in VALID_IMAGE_TYPES:
        return False, INVALID_TYPE_MESSAGE
    if size > MAX_IMAGE_SIZE:
        return False, TOO_LARGE_MESSAGE
    return True, None


def create_placeholder_image(width: int = 200, height: int = 200) -> str:
    """Grey gradient with a package outline, as a JPEG data URL"""
    if width <= 0 or height <= 0:
        raise ValueError('width and height must be positive')

    top, bottom = (0xf3, 0xf4, 0xf6), (0xe5, 0xe7, 0xeb)
    img = Image.new('RGB', (width, height), top)
    draw = ImageDraw.Draw(img)
    for y in range(height):
        t = y / max(1, height - 1)
        color = tuple(int(round(a + (b - a) * t)) for a, b in zip(top, bottom))
        draw.line([(0, y), (width, y)], fill=color)

    # Box icon, a quarter of the smaller side
    box = min(width, height) / 4
    cx, cy = width / 2, height / 2
    outline = (0x9c, 0xa3, 0xaf)
    draw.rectangle([cx - box / 2, cy - box / 2, cx + box / 2, cy + box / 2],
                   outline=outline, width=max(1, int(box / 12)))
    draw.line([(cx - box / 2, cy - box / 6), (cx + box / 2, cy - box / 6)],
              fill=outline, width=max(1, int(box / 12)))

    buffer = io.BytesIO()
    img.save(buffer, format='JPEG', quality=jpeg_quality(0.8))
    return _to_data_url(buffer.getvalue())
