"""
Stamp Grid Layout Tests.

Covers the tier table, strip geometry at every scale and the integer cell
placement shared with the interactive preview.
"""
import pytest

from stampcard.errors import LayoutError
from stampcard.layout import (
    SUPPORTED_SCALES, calculate_all_scales, calculate_dimensions, calculate_layout,
    gap_for_count, strip_size
)
from stampcard.models import LayoutResult


# =============================================================================
# LAYOUT TIERS
# =============================================================================

@pytest.mark.unit
class TestCalculateLayout:
    """Test calculate_layout tier table."""

    @pytest.mark.parametrize('count,expected', [
        (1, (1, 1)),
        (3, (1, 3)),
        (5, (1, 5)),
        (6, (2, 5)),
        (10, (2, 5)),
        (11, (2, 6)),
        (12, (2, 6)),
        (13, (2, 8)),
        (15, (2, 8)),
        (16, (2, 9)),
        (18, (2, 9)),
        (19, (3, 7)),
        (20, (3, 7)),
        (21, (3, 8)),
        (24, (3, 8)),
        (25, (3, 9)),
        (27, (3, 9)),
        (28, (3, 10)),
        (30, (3, 10)),
    ])
    def test_tier_table(self, count, expected):
        """
        GIVEN a stamp count
        WHEN calculating the layout
        THEN the rows and cols come from the fixed tier table
        """
        result = calculate_layout(count)
        assert (result.rows, result.cols) == expected

    def test_capacity_covers_every_supported_count(self):
        """
        GIVEN every stamp count from 1 to 30
        WHEN calculating the layout
        THEN the grid always has room for every stamp
        """
        for count in range(1, 31):
            assert calculate_layout(count).capacity >= count

    def test_layout_is_deterministic(self):
        """
        GIVEN the same stamp count twice
        WHEN calculating the layout
        THEN the results are identical
        """
        assert [calculate_layout(n) for n in range(1, 31)] == [calculate_layout(n) for n in range(1, 31)]

    def test_non_positive_count_never_fails(self):
        """
        GIVEN a count below the supported range
        WHEN calculating the layout
        THEN a single-cell grid is returned instead of an error
        """
        assert calculate_layout(0) == LayoutResult(rows=1, cols=1)


# =============================================================================
# DIMENSIONS
# =============================================================================

@pytest.mark.unit
class TestCalculateDimensions:
    """Test calculate_dimensions geometry."""

    def test_ten_stamp_geometry_at_1x(self):
        """
        GIVEN a 10 stamp card
        WHEN calculating the 1x geometry
        THEN the strip, safe area, gap and diameter match the base constants
        """
        result = calculate_dimensions(calculate_layout(10), 1, 10)

        assert (result.strip_width, result.strip_height) == (375, 144)
        assert result.safe_area_top == 18
        assert result.safe_area_height == 108
        assert result.gap == 12
        assert result.stamp_diameter == 48

    @pytest.mark.parametrize('count,gap', [(1, 12), (10, 12), (11, 8), (20, 8), (21, 6), (30, 6)])
    def test_gap_tiers(self, count, gap):
        """
        GIVEN a stamp count
        WHEN picking the gap
        THEN the tiered gap is used
        """
        assert gap_for_count(count) == gap

    def test_diameter_is_clamped_to_maximum(self):
        """
        GIVEN a single stamp
        WHEN calculating the geometry
        THEN the diameter is clamped to 80px per scale
        """
        assert calculate_dimensions(calculate_layout(1), 1, 1).stamp_diameter == 80
        assert calculate_dimensions(calculate_layout(1), 3, 1).stamp_diameter == 240

    def test_grid_fits_strip_and_safe_area_for_all_counts_and_scales(self):
        """
        GIVEN every stamp count and every scale
        WHEN calculating the geometry
        THEN the grid fits the strip width and the safe area height
        """
        for count in range(1, 31):
            layout = calculate_layout(count)
            for scale in SUPPORTED_SCALES:
                d = calculate_dimensions(layout, scale, count)
                assert d.stamp_diameter * layout.cols + d.gap * (layout.cols - 1) <= d.strip_width + 1e-6
                assert d.stamp_diameter * layout.rows + d.gap * (layout.rows - 1) <= d.safe_area_height + 1e-6

    def test_higher_scales_are_exact_multiples_of_1x(self):
        """
        GIVEN the 1x geometry for a count
        WHEN calculating the 2x and 3x geometry
        THEN every length is exactly the 1x value times the scale
        """
        for count in range(1, 31):
            layout = calculate_layout(count)
            base = calculate_dimensions(layout, 1, count)
            for scale in (2, 3):
                scaled = calculate_dimensions(layout, scale, count)
                assert scaled.strip_width == base.strip_width * scale
                assert scaled.strip_height == base.strip_height * scale
                assert scaled.safe_area_top == base.safe_area_top * scale
                assert scaled.safe_area_height == base.safe_area_height * scale
                assert scaled.stamp_diameter == base.stamp_diameter * scale
                assert scaled.gap == base.gap * scale

    def test_unsupported_scale_raises(self):
        """
        GIVEN a scale outside 1, 2, 3
        WHEN calculating the geometry
        THEN a LayoutError is raised
        """
        with pytest.raises(LayoutError):
            calculate_dimensions(calculate_layout(10), 4, 10)

    def test_strip_size_per_scale(self):
        """
        GIVEN each supported scale
        WHEN asking for the strip size
        THEN the platform sizes are returned
        """
        assert strip_size(1) == (375, 144)
        assert strip_size(2) == (750, 288)
        assert strip_size(3) == (1125, 432)

    def test_calculate_all_scales(self):
        """
        GIVEN a stamp count
        WHEN calculating all scales at once
        THEN one result per supported scale is returned
        """
        results = calculate_all_scales(12)
        assert sorted(results) == [1, 2, 3]
        assert results[3].scale == 3
        assert (results[1].rows, results[1].cols) == (2, 6)


# =============================================================================
# GRID PLACEMENT
# =============================================================================

@pytest.mark.unit
class TestGridPlacement:
    """Test grid centering and integer cell placement."""

    def test_grid_is_centered_in_strip_and_safe_area(self):
        """
        GIVEN the 10 stamp geometry
        WHEN reading the grid origin
        THEN it is centered horizontally in the strip and vertically in the safe area
        """
        d = calculate_dimensions(calculate_layout(10), 1, 10)

        assert d.grid_width == 288
        assert d.origin_x == pytest.approx((375 - 288) / 2)
        assert d.origin_y == pytest.approx(18 + (108 - d.grid_height) / 2)

    def test_cell_origin_steps_by_diameter_plus_gap(self):
        """
        GIVEN the 10 stamp geometry
        WHEN reading cell origins
        THEN cells are laid out row-major with diameter + gap spacing
        """
        d = calculate_dimensions(calculate_layout(10), 1, 10)
        x0, y0 = d.cell_origin(0)

        assert d.cell_origin(1) == pytest.approx((x0 + 60, y0))
        assert d.cell_origin(5) == pytest.approx((x0, y0 + 60))

    def test_pixel_cells_match_preview_rounding(self):
        """
        GIVEN the 10 stamp geometry
        WHEN computing integer pixel cells
        THEN the left edge is floored, the top edge rounded and cells step by 60px
        """
        cells = calculate_dimensions(calculate_layout(10), 1, 10).pixel_cells(10)

        assert len(cells) == 10
        assert cells[0] == (43, 18, 48)
        assert cells[4] == (43 + 4 * 60, 18, 48)
        assert cells[6] == (103, 78, 48)

    def test_one_pixel_cell_per_stamp(self):
        """
        GIVEN every stamp count
        WHEN computing integer pixel cells
        THEN exactly one cell is returned per stamp and rows stay inside the strip height
        """
        for count in range(1, 31):
            d = calculate_dimensions(calculate_layout(count), 1, count)
            cells = d.pixel_cells(count)
            assert len(cells) == count
            for _, y, diameter in cells:
                assert y >= 0
                assert y + diameter <= d.strip_height

    def test_rounded_wide_grids_may_overhang_by_a_pixel(self):
        """
        GIVEN a 15 stamp card whose rounded diameter makes the grid 376px wide
        WHEN computing integer pixel cells
        THEN the left edge is floored to -1, matching the preview
        """
        cells = calculate_dimensions(calculate_layout(15), 1, 15).pixel_cells(15)
        assert cells[0][0] == -1
        assert cells[0][2] == 40

    @pytest.mark.parametrize('scale', SUPPORTED_SCALES)
    @pytest.mark.parametrize('count', range(1, 31))
    def test_pixel_cells_stay_within_one_pixel_of_strip(self, count, scale):
        """
        GIVEN every stamp count at every scale
        WHEN computing integer pixel cells
        THEN no stamp extends more than one pixel past either strip edge
        """
        d = calculate_dimensions(calculate_layout(count), scale, count)
        cells = d.pixel_cells(count)

        assert min(x for x, _, _ in cells) >= -1
        assert max(x + diameter for x, _, diameter in cells) <= d.strip_width + 1

    def test_nine_column_grid_shrinks_rounded_diameter(self):
        """
        GIVEN a 16 stamp card whose half-up diameter of 35 would make the grid 379px wide
        WHEN computing integer pixel cells
        THEN the diameter drops to 34 and the grid sits inside the strip
        """
        cells = calculate_dimensions(calculate_layout(16), 1, 16).pixel_cells(16)

        assert cells[0][2] == 34
        assert cells[0][0] == 2
        assert cells[8][0] + 34 == 372
