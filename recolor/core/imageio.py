"""Image codec collaborators: decode files to Bitmaps, encode Bitmaps to files.

Decoding and encoding are delegated to Pillow. Output keeps an alpha channel
whenever an active rule makes pixels transparent; formats that cannot carry
alpha losslessly are redirected to PNG.
"""

import logging
import os

from PIL import Image

from recolor.core.colour import RGB
from recolor.core.types import Bitmap, ColorRule, RuleList

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_NAME = 'color-changed-image.png'

# Pillow formats that can store an alpha channel
ALPHA_FORMATS = {'PNG', 'WEBP', 'TIFF', 'GIF'}

# Formats that store RGBA exactly with default save options (not WEBP: lossy;
# not GIF: 256-colour palette, 1-bit transparency)
LOSSLESS_ALPHA_FORMATS = {'PNG', 'TIFF'}


class ImageLoadError(OSError):
    """The file could not be read or decoded as an image."""


def bitmap_from_image(image: Image.Image) -> Bitmap:
    rgba = image.convert('RGBA')
    return Bitmap(width=rgba.width, height=rgba.height, pixels=rgba.tobytes())


def bitmap_to_image(bitmap: Bitmap) -> Image.Image:
    return Image.frombytes('RGBA', (bitmap.width, bitmap.height), bitmap.pixels)


def load_bitmap(path: str) -> Bitmap:
    """Decode an image file into an RGBA Bitmap."""
    try:
        with Image.open(path) as image:
            return bitmap_from_image(image)
    except OSError as exc:
        raise ImageLoadError(f'Cannot load image {path}: {exc}') from exc


def output_format(path: str, needs_alpha: bool) -> tuple[str, str]:
    """Return (path, Pillow format) to write to.

    Unknown extensions get PNG. The extension is swapped for .png when Pillow
    can only read its format, or when alpha is needed and the format cannot
    hold it losslessly.
    """
    root, ext = os.path.splitext(path)
    fmt = Image.registered_extensions().get(ext.lower())
    if fmt is None:
        return (path if ext else path + '.png'), 'PNG'
    if fmt not in Image.SAVE:
        return root + '.png', 'PNG'
    if needs_alpha and fmt not in LOSSLESS_ALPHA_FORMATS:
        return root + '.png', 'PNG'
    return path, fmt


def save_bitmap(bitmap: Bitmap, path: str, rules: RuleList | list[ColorRule] | None = None) -> str:
    """Encode `bitmap` to `path`. Returns the path actually written."""
    if rules is None:
        needs_alpha = False
    elif isinstance(rules, RuleList):
        needs_alpha = rules.needs_alpha()
    else:
        needs_alpha = RuleList(rules).needs_alpha()

    out_path, fmt = output_format(path, needs_alpha)
    if out_path != path:
        logger.info('Writing %s as PNG instead of %s', out_path, path)

    image = bitmap_to_image(bitmap)
    if fmt not in ALPHA_FORMATS:
        image = image.convert('RGB')

    parent = os.path.dirname(out_path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    image.save(out_path, format=fmt)
    return out_path


class BitmapPicker:
    """ColorPicker backed by a decoded bitmap."""

    def __init__(self, bitmap: Bitmap):
        self.bitmap = bitmap

    def pick_color_at(self, x: int, y: int) -> RGB:
        r, g, b, _a = self.bitmap.pixel(x, y)
        return (r, g, b)
