"""
Tests for sheet grid geometry and pagination.
"""

import math

import pytest

from sealworks.errors import LayoutError, ValidationError
from sealworks.rendering import PaperSpec, SheetLayoutEngine

LETTER = PaperSpec.resolve("letter")


class TestGridArithmetic:
    def test_letter_one_inch_fills_eight_by_ten(self):
        layout = SheetLayoutEngine().compute(1.0, LETTER, 0.25, 80)

        assert (layout.columns, layout.rows) == (8, 10)
        assert layout.per_sheet == 80
        assert layout.total_sheets == 1
        assert layout.rotation_used is False

    @pytest.mark.parametrize("count", [0, 1, 79, 80, 81, 160, 161, 999])
    def test_pagination_identities(self, count):
        layout = SheetLayoutEngine().compute(1.0, LETTER, 0.25, count)

        assert layout.per_sheet == layout.columns * layout.rows
        assert layout.total_sheets == math.ceil(count / layout.per_sheet)
        if count:
            start, end = layout.page_bounds(layout.total_sheets - 1)
            assert end == count
            assert 0 < end - start <= layout.per_sheet

    def test_zero_seals_means_zero_sheets(self):
        layout = SheetLayoutEngine().compute(1.25, LETTER, 0.25, 0)

        assert layout.total_sheets == 0
        assert layout.per_sheet > 0

    def test_exact_fit_is_not_lost_to_float_error(self):
        paper = PaperSpec.resolve("custom", 2.5, 2.5)
        layout = SheetLayoutEngine().compute(0.75, paper, 0.25, 9)

        # 2.0 / 0.75 = 2.67 -> 2, not 3; and 2.25 / 0.75 == 3 exactly
        assert layout.columns == 2
        tight = SheetLayoutEngine().compute(0.75, PaperSpec.resolve("custom", 2.75, 2.75), 0.25, 9)
        assert tight.columns == 3


class TestOrientation:
    def test_tie_keeps_unrotated_page(self):
        layout = SheetLayoutEngine().compute(1.5, LETTER, 0.25, 10)

        assert layout.rotation_used is False
        assert (layout.columns, layout.rows) == (5, 7)
        assert (layout.sheet_width_in, layout.sheet_height_in) == (8.5, 11.0)

    @pytest.mark.parametrize("paper_name", ["letter", "a4"])
    @pytest.mark.parametrize("diameter", [0.75, 1.0, 1.25, 1.5])
    @pytest.mark.parametrize("margin", [0.0, 0.25, 0.5, 0.75, 1.0])
    def test_grid_comes_from_margins_alone(self, paper_name, diameter, margin):
        paper = PaperSpec.resolve(paper_name)
        layout = SheetLayoutEngine().compute(diameter, paper, margin, 100)

        usable_width = paper.width_in - 2 * margin
        usable_height = paper.height_in - 2 * margin
        assert layout.columns == math.floor(usable_width / diameter + 1e-9)
        assert layout.rows == math.floor(usable_height / diameter + 1e-9)
        assert layout.rotation_used is False

    def test_letter_large_seals_half_inch_margin(self):
        layout = SheetLayoutEngine().compute(1.25, LETTER, 0.5, 100)

        assert (layout.columns, layout.rows) == (6, 8)
        assert layout.per_sheet == 48
        assert layout.total_sheets == 3

    def test_headers_mirror_layout(self):
        layout = SheetLayoutEngine().compute(1.5, LETTER, 0.25, 36)

        assert layout.headers() == {
            "X-Columns": "5",
            "X-Rows": "7",
            "X-Per-Sheet": "35",
            "X-Rotation-Used": "false",
            "X-Total-Sheets": "2",
        }
        assert layout.to_dict()["perSheet"] == 35


class TestPlacement:
    def test_slots_are_row_major_from_margin_corner(self):
        layout = SheetLayoutEngine().compute(1.0, LETTER, 0.25, 20)

        assert layout.slot_origin(0) == (0.25, 0.25)
        assert layout.slot_origin(1) == (1.25, 0.25)
        assert layout.slot_origin(8) == (0.25, 1.25)

    def test_page_bounds_outside_range(self):
        layout = SheetLayoutEngine().compute(1.0, LETTER, 0.25, 20)

        with pytest.raises(IndexError):
            layout.page_bounds(1)


class TestRejections:
    def test_diameter_larger_than_page(self):
        paper = PaperSpec.resolve("custom", 1.5, 1.5)

        with pytest.raises(LayoutError) as exc:
            SheetLayoutEngine().compute(1.25, paper, 0.25, 1)

        assert exc.value.code.value == "LAYOUT_ERROR"
        assert exc.value.status_code == 422

    def test_margin_consuming_page(self):
        with pytest.raises(ValidationError):
            SheetLayoutEngine().compute(1.0, LETTER, 4.5, 1)

    def test_unknown_paper(self):
        with pytest.raises(ValidationError):
            PaperSpec.resolve("tabloid")

    def test_custom_paper_needs_dimensions(self):
        with pytest.raises(ValidationError):
            PaperSpec.resolve("custom", 8.5, None)

    def test_negative_count(self):
        with pytest.raises(ValidationError):
            SheetLayoutEngine().compute(1.0, LETTER, 0.25, -1)
