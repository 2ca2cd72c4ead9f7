# stampcard/compositor/strip.py

"""
Stamp Strip Compositor

Composes the strip image for a stamp card: background (solid color or
uploaded texture at reduced opacity), then one stamp per position on the
centered grid. The 1x strip is composed once; 2x and 3x are resampled from
it and every raster is checked against the expected strip size before it
is accepted.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from PIL import Image

from stampcard.colors import parse_color
from stampcard.compositor.assets import AssetResolver, encode_png, scaled_filename
from stampcard.compositor.stamps import StampRenderer, stamp_states
from stampcard.errors import LayoutError
from stampcard.layout import SUPPORTED_SCALES, calculate_dimensions, calculate_layout, strip_size
from stampcard.models import (
    DimensionResult, LayoutResult, PassTemplate, RuntimeContext, StampSlot,
    StampState, StripStrategy
)

logger = logging.getLogger(__name__)


@dataclass
class StripResult:
    """Rendered strip at every scale plus the geometry that produced it."""
    layout: LayoutResult
    dimensions: DimensionResult
    slots: List[StampSlot]
    images: Dict[int, Image.Image]
    files: Dict[str, bytes]
    warnings: List[str] = field(default_factory=list)


class StampCompositor:
    """
    Renders stamp strips.

    One instance can be shared across workers; every call works on its
    own images.
    """

    def __init__(self, resolver: AssetResolver = None, background_opacity: float = 0.4):
        self.resolver = resolver or AssetResolver()
        self.background_opacity = background_opacity
        self._painters = {
            StripStrategy.SOLID: self._paint_solid,
            StripStrategy.TEXTURE: self._paint_texture,
        }

    def compose(self, template: PassTemplate, runtime: RuntimeContext) -> StripResult:
        """
        Compose the strip for one recipient.

        Args:
            template: pass template (colors, stamp artwork, milestones)
            runtime: recipient progress

        Returns:
            StripResult with strip.png, strip@2x.png and strip@3x.png

        Raises:
            LayoutError: if a raster does not match its expected size
        """
        warnings = []
        required = runtime.stamps_required
        layout = calculate_layout(required)
        dimensions = calculate_dimensions(layout, 1, required)
        slots = stamp_states(required, runtime.stamps_earned, template.milestones)

        strip = self._painters[template.strip_strategy](template, dimensions, warnings)

        # Rounded cells can overhang the strip edge by a pixel; paste clips, alpha_composite does not
        renderer = StampRenderer(self._load_icons(template, warnings))
        stamps = Image.new('RGBA', strip.size, (0, 0, 0, 0))
        for slot, (x, y, diameter) in zip(slots, dimensions.pixel_cells(required)):
            stamps.paste(renderer.render(slot, diameter), (x, y))
        strip.alpha_composite(stamps)

        images = self._scale_all(strip)
        files = {scaled_filename('strip', scale): encode_png(image) for scale, image in images.items()}

        earned = sum(1 for slot in slots if slot.earned)
        logger.debug(
            f"Composed strip: {layout.rows}x{layout.cols} grid, {len(slots)} stamps, "
            f"{earned} earned, diameter {dimensions.stamp_diameter:.1f}"
        )
        return StripResult(
            layout=layout,
            dimensions=dimensions,
            slots=slots,
            images=images,
            files=files,
            warnings=warnings,
        )

    def _load_icons(self, template: PassTemplate, warnings: List[str]) -> Dict[StampState, Image.Image]:
        refs = {
            StampState.UNREDEEMED: ('stampUnredeemed', template.images.stamp_unredeemed),
            StampState.EARNED: ('stampEarned', template.images.stamp_earned),
            StampState.MILESTONE: ('stampMilestone', template.images.stamp_milestone),
        }
        icons = {}
        for state, (role, ref) in refs.items():
            image = self.resolver.resolve(ref, role, warnings)
            if image is not None:
                icons[state] = image
        return icons

    def _paint_solid(self, template: PassTemplate, dimensions: DimensionResult,
                     warnings: List[str]) -> Image.Image:
        color = parse_color(template.colors.strip_fill)
        return Image.new('RGBA', (dimensions.strip_width, dimensions.strip_height), color + (255,))

    def _paint_texture(self, template: PassTemplate, dimensions: DimensionResult,
                       warnings: List[str]) -> Image.Image:
        strip = self._paint_solid(template, dimensions, warnings)
        texture = self.resolver.resolve(
            template.images.strip_background, 'stripBackground', warnings, required=True
        )
        if texture is None:
            return strip

        size = (dimensions.strip_width, dimensions.strip_height)
        covered = _fit_cover(texture, size)
        alpha = covered.getchannel('A').point(lambda a: int(round(a * self.background_opacity)))
        covered.putalpha(alpha)
        strip.alpha_composite(covered)
        return strip

    def _scale_all(self, strip: Image.Image) -> Dict[int, Image.Image]:
        images = {}
        for scale in SUPPORTED_SCALES:
            expected = strip_size(scale)
            image = strip if scale == 1 else strip.resize(expected, Image.Resampling.LANCZOS)
            if image.size != expected:
                raise LayoutError(
                    f"Strip @{scale}x is {image.size[0]}x{image.size[1]}, "
                    f"expected {expected[0]}x{expected[1]}"
                )
            images[scale] = image
        return images


def _fit_cover(image: Image.Image, size) -> Image.Image:
    """Scale to cover ``size`` and center-crop."""
    target_w, target_h = size
    src_w, src_h = image.size
    ratio = max(target_w / src_w, target_h / src_h)
    resized = image.resize(
        (max(target_w, round(src_w * ratio)), max(target_h, round(src_h * ratio))),
        Image.Resampling.LANCZOS
    )
    left = (resized.size[0] - target_w) // 2
    top = (resized.size[1] - target_h) // 2
    return resized.crop((left, top, left + target_w, top + target_h))
