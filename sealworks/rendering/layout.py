"""
layout.py - Sheet grid geometry and pagination.

For a seal diameter, paper and margin, both orientations are tried:

    columns  = floor(usable_width / diameter)
    rows     = floor(usable_height / diameter)
    per_sheet = columns * rows

Only the margins reduce the grid area. Sheet decorations (footer, marks) are
drawn inside the margins and never change capacity. The orientation with the
larger per_sheet wins; a tie always keeps the unrotated page so the same
inputs always produce the same layout.
Placement is row-major at pitch = diameter from the top-left margin corner,
with no centering or reflow, so page i is reproducible from its index alone.
"""

import math
from dataclasses import dataclass

from sealworks.errors import LayoutError, ValidationError

PAPER_SIZES = {
    "letter": (8.5, 11.0),
    "a4": (8.27, 11.69),
}
ALLOWED_DIAMETERS = (0.75, 1.0, 1.25, 1.5)
DEFAULT_DIAMETER = 1.0
DEFAULT_MARGIN = 0.25

# Keeps exact fits (8.0 / 1.0) from flooring to 7 through float error
_EPSILON = 1e-9


@dataclass(frozen=True)
class PaperSpec:
    name: str
    width_in: float
    height_in: float

    @classmethod
    def resolve(cls, name: str, width_in: float | None = None, height_in: float | None = None) -> "PaperSpec":
        key = (name or "").lower()
        if key == "custom":
            if not width_in or not height_in or width_in <= 0 or height_in <= 0:
                raise ValidationError(
                    "Custom paper needs a positive width and height",
                    {"width_in": width_in, "height_in": height_in},
                )
            return cls("custom", float(width_in), float(height_in))
        if key not in PAPER_SIZES:
            raise ValidationError(
                f"Unknown paper size: {name}",
                {"allowed": sorted(PAPER_SIZES) + ["custom"]},
            )
        width, height = PAPER_SIZES[key]
        return cls(key, width, height)


@dataclass(frozen=True)
class SheetLayout:
    columns: int
    rows: int
    per_sheet: int
    rotation_used: bool
    total_sheets: int
    seal_count: int
    diameter_in: float
    margin_in: float
    sheet_width_in: float
    sheet_height_in: float

    def to_dict(self) -> dict:
        return {
            "columns": self.columns,
            "rows": self.rows,
            "perSheet": self.per_sheet,
            "rotationUsed": self.rotation_used,
            "totalSheets": self.total_sheets,
        }

    def headers(self) -> dict[str, str]:
        return {
            "X-Columns": str(self.columns),
            "X-Rows": str(self.rows),
            "X-Per-Sheet": str(self.per_sheet),
            "X-Rotation-Used": "true" if self.rotation_used else "false",
            "X-Total-Sheets": str(self.total_sheets),
        }

    def page_bounds(self, page_index: int) -> tuple[int, int]:
        """Half-open [start, end) range of sorted seal indexes printed on a page."""
        if page_index < 0 or page_index >= self.total_sheets:
            raise IndexError(f"page {page_index} outside 0..{self.total_sheets - 1}")
        start = page_index * self.per_sheet
        return start, min(start + self.per_sheet, self.seal_count)

    def slot_origin(self, slot: int) -> tuple[float, float]:
        """Top-left corner (inches) of slot `slot` on a page, row-major."""
        row, col = divmod(slot, self.columns)
        return (
            self.margin_in + col * self.diameter_in,
            self.margin_in + row * self.diameter_in,
        )


def _grid(usable_width: float, usable_height: float, diameter: float) -> tuple[int, int]:
    columns = max(0, math.floor(usable_width / diameter + _EPSILON))
    rows = max(0, math.floor(usable_height / diameter + _EPSILON))
    return columns, rows


class SheetLayoutEngine:
    def compute(
        self,
        diameter_in: float,
        paper: PaperSpec,
        margin_in: float,
        seal_count: int,
    ) -> SheetLayout:
        """
        Raises:
            ValidationError: non-positive diameter, negative seal count, or a margin
                that leaves no printable area.
            LayoutError: the diameter does not fit in either orientation.
        """
        if diameter_in <= 0:
            raise ValidationError("Seal diameter must be positive", {"diameter_in": diameter_in})
        if seal_count < 0:
            raise ValidationError("Seal count cannot be negative", {"seal_count": seal_count})
        if margin_in < 0 or 2 * margin_in >= min(paper.width_in, paper.height_in):
            raise ValidationError(
                "Margin must be non-negative and leave a printable area",
                {"margin_in": margin_in, "paper": paper.name},
            )

        usable_width = paper.width_in - 2 * margin_in
        usable_height = paper.height_in - 2 * margin_in

        columns, rows = _grid(usable_width, usable_height, diameter_in)
        rot_columns, rot_rows = _grid(usable_height, usable_width, diameter_in)

        rotation_used = rot_columns * rot_rows > columns * rows
        if rotation_used:
            columns, rows = rot_columns, rot_rows
            sheet_width, sheet_height = paper.height_in, paper.width_in
        else:
            sheet_width, sheet_height = paper.width_in, paper.height_in

        per_sheet = columns * rows
        if per_sheet == 0:
            raise LayoutError(
                "Seal diameter exceeds the printable area in both orientations",
                {
                    "diameter_in": diameter_in,
                    "usable_width_in": round(usable_width, 4),
                    "usable_height_in": round(usable_height, 4),
                },
            )

        total_sheets = math.ceil(seal_count / per_sheet) if seal_count else 0

        return SheetLayout(
            columns=columns,
            rows=rows,
            per_sheet=per_sheet,
            rotation_used=rotation_used,
            total_sheets=total_sheets,
            seal_count=seal_count,
            diameter_in=diameter_in,
            margin_in=margin_in,
            sheet_width_in=sheet_width,
            sheet_height_in=sheet_height,
        )
