# stampcard/compositor/assets.py

"""
Image Asset Resolution

Loads template image references (local path, http(s) URL or raw bytes),
decodes them with Pillow and renders the fixed-size wallet images
(icon, logo) at every scale. Missing or corrupt assets raise AssetError;
callers that can substitute a default use ``resolve`` which turns the
error into a warning.
"""

import os
import logging
from io import BytesIO
from typing import Dict, List, Optional, Tuple

import requests
from PIL import Image, ImageDraw, UnidentifiedImageError

from stampcard.errors import AssetError
from stampcard.layout import SUPPORTED_SCALES
from stampcard.models import AssetRef, LogoFormat

logger = logging.getLogger(__name__)

ICON_SIZE = (29, 29)
LOGO_SIZES = {
    LogoFormat.SQUARE: (50, 50),
    LogoFormat.WIDE: (160, 50),
}
WIDE_LOGO_RATIO = 1.5


def scaled_filename(role: str, scale: int) -> str:
    """Bundle member name for an image role, e.g. ``logo@2x.png``."""
    if scale == 1:
        return f"{role}.png"
    return f"{role}@{scale}x.png"


def encode_png(image: Image.Image) -> bytes:
    output = BytesIO()
    image.save(output, format='PNG')
    return output.getvalue()


def logo_format_for(image: Image.Image) -> LogoFormat:
    """Logos wider than 1.5:1 take the full header width."""
    width, height = image.size
    if height and width / height > WIDE_LOGO_RATIO:
        return LogoFormat.WIDE
    return LogoFormat.SQUARE


def fit_contain(image: Image.Image, box: Tuple[int, int]) -> Image.Image:
    """
    Scale an image to fit inside ``box`` keeping its aspect ratio, centered
    on a transparent canvas of exactly ``box``.
    """
    box_w, box_h = box
    src_w, src_h = image.size
    ratio = min(box_w / src_w, box_h / src_h)
    target = (max(1, round(src_w * ratio)), max(1, round(src_h * ratio)))

    resized = image.convert('RGBA').resize(target, Image.Resampling.LANCZOS)
    canvas = Image.new('RGBA', box, (0, 0, 0, 0))
    canvas.paste(resized, ((box_w - target[0]) // 2, (box_h - target[1]) // 2), resized)
    return canvas


class AssetResolver:
    """
    Resolves image references for one or more generation requests.

    Stateless apart from its fetch timeout, so one instance is shared by
    every worker.
    """

    def __init__(self, timeout: float = 10):
        self.timeout = timeout

    def load_bytes(self, ref: AssetRef, role: str) -> bytes:
        """
        Fetch the raw bytes behind an asset reference.

        Args:
            ref: path, URL or bytes
            role: asset role used in error messages (e.g. 'logo')

        Returns:
            raw file bytes

        Raises:
            AssetError: if the reference is empty or cannot be read
        """
        if ref is None or ref == '' or ref == b'':
            raise AssetError(f"No {role} image configured", asset=role)

        if isinstance(ref, (bytes, bytearray)):
            return bytes(ref)

        if ref.startswith('http://') or ref.startswith('https://'):
            try:
                response = requests.get(ref, timeout=self.timeout)
            except requests.RequestException as e:
                raise AssetError(f"Could not fetch {role} image from {ref}: {e}", asset=role) from e
            if response.status_code != 200:
                raise AssetError(
                    f"Could not fetch {role} image from {ref}: HTTP {response.status_code}",
                    asset=role
                )
            return response.content

        if not os.path.exists(ref):
            raise AssetError(f"{role} image not found at {ref}", asset=role)
        try:
            with open(ref, 'rb') as f:
                return f.read()
        except OSError as e:
            raise AssetError(f"Could not read {role} image at {ref}: {e}", asset=role) from e

    def open_image(self, ref: AssetRef, role: str) -> Image.Image:
        """Load and decode an asset as an RGBA image, raising AssetError on failure."""
        data = self.load_bytes(ref, role)
        try:
            image = Image.open(BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise AssetError(f"{role} image could not be decoded: {e}", asset=role) from e
        return image.convert('RGBA')

    def resolve(self, ref: AssetRef, role: str, warnings: List[str],
                required: bool = False) -> Optional[Image.Image]:
        """
        Like open_image, but absorbs AssetError into ``warnings``.

        Optional assets that are simply not configured produce no warning.

        Returns:
            decoded image, or None when the caller should use its default
        """
        if ref is None and not required:
            return None
        try:
            return self.open_image(ref, role)
        except AssetError as e:
            logger.warning(f"Using default artwork for {role}: {e.message}")
            warnings.append(f"{role}: {e.message}; using default artwork")
            return None


def default_icon(background: Tuple[int, int, int], foreground: Tuple[int, int, int]) -> Image.Image:
    """Deterministic stand-in icon: a foreground disc on the pass background."""
    size = 116
    image = Image.new('RGBA', (size, size), background + (255,))
    draw = ImageDraw.Draw(image)
    inset = size // 5
    draw.ellipse((inset, inset, size - inset, size - inset), fill=foreground + (255,))
    return image


def default_logo(foreground: Tuple[int, int, int]) -> Image.Image:
    """Deterministic stand-in logo: an outlined disc on transparency."""
    size = 200
    image = Image.new('RGBA', (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    draw.ellipse((10, 10, size - 10, size - 10), outline=foreground + (255,), width=16)
    return image


def render_scaled_set(image: Image.Image, role: str, base_size: Tuple[int, int]) -> Dict[str, bytes]:
    """
    Render an image at every supported scale, fitted into ``base_size`` x scale.

    Returns:
        mapping of bundle filename to PNG bytes
    """
    files = {}
    for scale in SUPPORTED_SCALES:
        box = (base_size[0] * scale, base_size[1] * scale)
        files[scaled_filename(role, scale)] = encode_png(fit_contain(image, box))
    return files
