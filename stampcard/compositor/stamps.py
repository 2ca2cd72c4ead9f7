# stampcard/compositor/stamps.py

"""
Stamp State and Stamp Artwork

Derives the per-slot stamp state and renders one stamp cell. Artwork is
chosen by an explicit ArtworkKind: a template icon when one resolved,
otherwise a drawn circle glyph.
"""

import enum
import logging
from typing import Dict, Iterable, List, Optional

from PIL import Image, ImageDraw, ImageFilter

from stampcard.compositor.assets import fit_contain
from stampcard.models import StampSlot, StampState

logger = logging.getLogger(__name__)

SUPERSAMPLE = 4
UNREDEEMED_ICON_OPACITY = 0.3

EARNED_FILL = (252, 211, 77, 255)        # #FCD34D
EARNED_STROKE = (245, 158, 11, 255)      # #F59E0B
UNREDEEMED_FILL = (249, 250, 251, 255)   # #F9FAFB
UNREDEEMED_STROKE = (55, 65, 81, 255)    # #374151
MILESTONE_ACCENT = (255, 215, 0, 255)    # #FFD700
SHADOW_COLOR = (0, 0, 0, 90)


class ArtworkKind(enum.Enum):
    ICON = 'icon'
    GLYPH = 'glyph'


def stamp_states(stamps_required: int, stamps_earned: int,
                 milestones: Iterable[int] = ()) -> List[StampSlot]:
    """
    Derive the state of every stamp position.

    A position is a milestone when index + 1 is a milestone position,
    otherwise earned when index < stamps_earned, otherwise unredeemed.
    The earned flag is kept for milestones too so opacity still applies.

    Args:
        stamps_required: total stamps on the card
        stamps_earned: stamps collected (clamped to stamps_required)
        milestones: 1-based milestone positions

    Returns:
        one StampSlot per position, in order
    """
    milestone_positions = set(milestones)
    earned_count = max(0, min(stamps_earned, stamps_required))
    slots = []
    for index in range(max(0, stamps_required)):
        earned = index < earned_count
        if index + 1 in milestone_positions:
            state = StampState.MILESTONE
        elif earned:
            state = StampState.EARNED
        else:
            state = StampState.UNREDEEMED
        slots.append(StampSlot(index=index, state=state, earned=earned))
    return slots


def _with_opacity(image: Image.Image, opacity: float) -> Image.Image:
    if opacity >= 1:
        return image
    faded = image.copy()
    alpha = faded.getchannel('A').point(lambda a: int(round(a * opacity)))
    faded.putalpha(alpha)
    return faded


class StampRenderer:
    """
    Renders single stamp cells.

    Args:
        icons: decoded stamp icons keyed by state; missing states use
            the glyph
    """

    def __init__(self, icons: Optional[Dict[StampState, Image.Image]] = None):
        self.icons = icons or {}

    def artwork_for(self, slot: StampSlot):
        """
        Pick the artwork for a slot.

        Milestones use the milestone icon when one exists, otherwise the
        earned or unredeemed artwork underneath their ring.

        Returns:
            (ArtworkKind, icon image or None)
        """
        if slot.state is StampState.MILESTONE and StampState.MILESTONE in self.icons:
            return ArtworkKind.ICON, self.icons[StampState.MILESTONE]
        base_state = StampState.EARNED if slot.earned else StampState.UNREDEEMED
        icon = self.icons.get(base_state)
        if icon is not None:
            return ArtworkKind.ICON, icon
        return ArtworkKind.GLYPH, None

    def render(self, slot: StampSlot, diameter: int) -> Image.Image:
        """
        Render one stamp as a ``diameter`` x ``diameter`` RGBA image.

        Drawing happens at SUPERSAMPLE times the size and is downsampled
        with LANCZOS for smooth edges.
        """
        size = diameter * SUPERSAMPLE
        canvas = Image.new('RGBA', (size, size), (0, 0, 0, 0))

        kind, icon = self.artwork_for(slot)
        if kind is ArtworkKind.ICON:
            self._draw_icon(canvas, icon, slot.earned)
        else:
            self._draw_glyph(canvas, slot.earned)

        if slot.state is StampState.MILESTONE:
            self._draw_milestone_ring(canvas)

        return canvas.resize((diameter, diameter), Image.Resampling.LANCZOS)

    def _draw_icon(self, canvas: Image.Image, icon: Image.Image, earned: bool):
        size = canvas.size[0]
        inset = size // 10
        fitted = fit_contain(icon, (size - 2 * inset, size - 2 * inset))
        if not earned:
            fitted = _with_opacity(fitted, UNREDEEMED_ICON_OPACITY)
        canvas.alpha_composite(fitted, (inset, inset))

    def _draw_glyph(self, canvas: Image.Image, earned: bool):
        size = canvas.size[0]
        stroke = max(SUPERSAMPLE, size // 16)
        margin = stroke
        bounds = (margin, margin, size - margin - 1, size - margin - 1)

        if earned:
            shadow = Image.new('RGBA', canvas.size, (0, 0, 0, 0))
            offset = max(1, size // 40)
            ImageDraw.Draw(shadow).ellipse(
                (bounds[0], bounds[1] + offset, bounds[2], bounds[3] + offset),
                fill=SHADOW_COLOR
            )
            canvas.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(radius=offset)))
            fill, outline = EARNED_FILL, EARNED_STROKE
        else:
            fill, outline = UNREDEEMED_FILL, UNREDEEMED_STROKE

        ImageDraw.Draw(canvas).ellipse(bounds, fill=fill, outline=outline, width=stroke)

    def _draw_milestone_ring(self, canvas: Image.Image):
        size = canvas.size[0]
        ring = max(2 * SUPERSAMPLE, size // 10)
        ImageDraw.Draw(canvas).ellipse(
            (0, 0, size - 1, size - 1),
            outline=MILESTONE_ACCENT,
            width=ring
        )
