# stampcard/layout.py

"""
Stamp Grid Layout

Pure functions that turn a stamp count into a grid shape and a grid shape
into strip geometry. The interactive preview computes the same numbers
independently, so the tier tables below are literal data and must not be
rewritten as formulas.
"""

import logging
from typing import Dict, Optional

from stampcard.errors import LayoutError
from stampcard.models import LayoutResult, DimensionResult

logger = logging.getLogger(__name__)

SUPPORTED_SCALES = (1, 2, 3)

STRIP_WIDTH = 375
STRIP_HEIGHT = 144
SAFE_AREA_RATIO = 0.75
MIN_STAMP_DIAMETER = 10
MAX_STAMP_DIAMETER = 80

# (max stamp count, rows, cols); None cols means one row of exactly n stamps
LAYOUT_TIERS = (
    (1, 1, None),
    (5, 1, None),
    (10, 2, 5),
    (12, 2, 6),
    (15, 2, 8),
    (18, 2, 9),
    (20, 3, 7),
    (24, 3, 8),
    (27, 3, 9),
)
LAYOUT_OVERFLOW = (3, 10)

# (max stamp count, gap at 1x)
GAP_TIERS = (
    (10, 12),
    (20, 8),
)
GAP_OVERFLOW = 6


def calculate_layout(stamp_count: int) -> LayoutResult:
    """
    Pick the grid shape for a stamp count from the fixed tier table.

    Args:
        stamp_count: number of stamps on the card (validated upstream to 1..30)

    Returns:
        LayoutResult with rows and cols
    """
    count = max(1, int(stamp_count))
    for limit, rows, cols in LAYOUT_TIERS:
        if count <= limit:
            return LayoutResult(rows=rows, cols=cols if cols is not None else count)
    rows, cols = LAYOUT_OVERFLOW
    return LayoutResult(rows=rows, cols=cols)


def gap_for_count(stamp_count: int) -> int:
    for limit, gap in GAP_TIERS:
        if stamp_count <= limit:
            return gap
    return GAP_OVERFLOW


def strip_size(scale: int = 1):
    """Expected (width, height) of the strip raster at ``scale``."""
    _check_scale(scale)
    return STRIP_WIDTH * scale, STRIP_HEIGHT * scale


def _check_scale(scale: int):
    if scale not in SUPPORTED_SCALES:
        raise LayoutError(f"Unsupported scale factor {scale}; expected one of {SUPPORTED_SCALES}")


def _base_dimensions(layout: LayoutResult, stamp_count: int) -> DimensionResult:
    safe_area_height = STRIP_HEIGHT * SAFE_AREA_RATIO
    safe_area_top = (STRIP_HEIGHT - safe_area_height) / 2
    gap = gap_for_count(stamp_count)

    by_width = (STRIP_WIDTH - gap * (layout.cols - 1)) / layout.cols
    by_height = (safe_area_height - gap * (layout.rows - 1)) / layout.rows
    diameter = min(by_width, by_height)
    diameter = max(MIN_STAMP_DIAMETER, min(MAX_STAMP_DIAMETER, diameter))

    return DimensionResult(
        strip_width=STRIP_WIDTH,
        strip_height=STRIP_HEIGHT,
        safe_area_top=safe_area_top,
        safe_area_height=safe_area_height,
        stamp_diameter=diameter,
        gap=gap,
        scale=1,
        rows=layout.rows,
        cols=layout.cols,
    )


def calculate_dimensions(layout: LayoutResult, scale: int = 1,
                         stamp_count: Optional[int] = None) -> DimensionResult:
    """
    Compute strip geometry for a grid at one scale factor.

    Geometry is always derived at 1x and multiplied, so scale N is exactly
    N times scale 1.

    Args:
        layout: grid shape from calculate_layout
        scale: 1, 2 or 3
        stamp_count: stamps on the card, selects the gap tier
            (defaults to the grid capacity)

    Returns:
        DimensionResult at the requested scale

    Raises:
        LayoutError: for an unsupported scale or a grid that does not fit
    """
    _check_scale(scale)
    count = stamp_count if stamp_count is not None else layout.capacity
    base = _base_dimensions(layout, count)

    result = DimensionResult(
        strip_width=base.strip_width * scale,
        strip_height=base.strip_height * scale,
        safe_area_top=base.safe_area_top * scale,
        safe_area_height=base.safe_area_height * scale,
        stamp_diameter=base.stamp_diameter * scale,
        gap=base.gap * scale,
        scale=scale,
        rows=base.rows,
        cols=base.cols,
    )

    if result.grid_width > result.strip_width + 1e-9 or result.grid_height > result.safe_area_height + 1e-9:
        raise LayoutError(
            f"Grid {layout.rows}x{layout.cols} does not fit the strip at {scale}x "
            f"({result.grid_width:.2f}x{result.grid_height:.2f} in "
            f"{result.strip_width}x{result.safe_area_height:.2f})"
        )
    return result


def calculate_all_scales(stamp_count: int) -> Dict[int, DimensionResult]:
    """Layout plus geometry for every supported scale, keyed by scale."""
    layout = calculate_layout(stamp_count)
    return {scale: calculate_dimensions(layout, scale, stamp_count) for scale in SUPPORTED_SCALES}
