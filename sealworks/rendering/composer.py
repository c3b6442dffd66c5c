"""
composer.py - Places rendered seals onto sheet pages.

Page i holds sorted seals [i * per_sheet, (i + 1) * per_sheet), filled
row-major from the top-left margin corner at pitch = diameter. A short last
page keeps the same slot positions; nothing is centered or reflowed.
"""

from dataclasses import asdict, dataclass

from sealworks.config import settings
from .layout import SheetLayout
from .scene import Group, Line, Scene, Text
from .seal_renderer import SEAL_SIZE, RenderedSeal

FOOTER_SEPARATOR = " · "
REGISTRATION_MARK_IN = 0.125
CROSSHAIR_HALF_IN = 0.125
MARK_STROKE_IN = 0.01


@dataclass(frozen=True)
class SheetDecorations:
    show_registration_marks: bool = True
    show_center_crosshair: bool = False
    show_footer: bool = True
    title: str | None = None
    version_label: str | None = None
    footer_notes: str | None = None

    def footer_text(self, page_index: int, total_pages: int) -> str:
        parts = [self.title, self.version_label]
        if total_pages > 1:
            parts.append(f"Sheet {page_index + 1}/{total_pages}")
        parts.append(self.footer_notes)
        return FOOTER_SEPARATOR.join(p.strip() for p in parts if p and p.strip())

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ComposedSheet:
    index: int
    total: int
    tokens: tuple
    scene: Scene

    @property
    def width_in(self) -> float:
        return self.scene.width

    @property
    def height_in(self) -> float:
        return self.scene.height

    @property
    def svg(self) -> str:
        return self.scene.to_svg()


def _registration_marks(width: float, height: float, margin: float) -> list:
    inset = margin / 2
    length = REGISTRATION_MARK_IN
    marks = []
    for x, sx in ((inset, 1), (width - inset, -1)):
        for y, sy in ((inset, 1), (height - inset, -1)):
            marks.append(Line(x, y, x + sx * length, y, stroke_width=MARK_STROKE_IN))
            marks.append(Line(x, y, x, y + sy * length, stroke_width=MARK_STROKE_IN))
    return marks


def _crosshair(width: float, height: float) -> list:
    cx, cy = width / 2, height / 2
    return [
        Line(cx - CROSSHAIR_HALF_IN, cy, cx + CROSSHAIR_HALF_IN, cy, stroke_width=MARK_STROKE_IN / 2),
        Line(cx, cy - CROSSHAIR_HALF_IN, cx, cy + CROSSHAIR_HALF_IN, stroke_width=MARK_STROKE_IN / 2),
    ]


class SheetComposer:
    def __init__(self, layout_version: str | None = None, footer_font_pt: float | None = None):
        self.layout_version = layout_version or settings.SHEET_LAYOUT_VERSION
        self.footer_font_pt = footer_font_pt or settings.FOOTER_FONT_SIZE_PT

    def compose_page(
        self,
        seals: list[RenderedSeal],
        layout: SheetLayout,
        page_index: int,
        decorations: SheetDecorations,
    ) -> ComposedSheet:
        """Compose one page from the full sorted seal list."""
        start, end = layout.page_bounds(page_index)
        page_seals = seals[start:end]
        scale = layout.diameter_in / SEAL_SIZE

        scene = Scene(
            layout.sheet_width_in,
            layout.sheet_height_in,
            unit="in",
            comment=(
                f"sheet layout={self.layout_version} page={page_index + 1}/{layout.total_sheets} "
                f"grid={layout.columns}x{layout.rows} rotated={str(layout.rotation_used).lower()}"
            ),
        )
        for slot, seal in enumerate(page_seals):
            x, y = layout.slot_origin(slot)
            scene.add(Group((seal.group,), dx=x, dy=y, scale=scale, element_id=f"seal-{seal.token}"))

        if decorations.show_registration_marks:
            scene.add(*_registration_marks(scene.width, scene.height, layout.margin_in))
        if decorations.show_center_crosshair:
            scene.add(*_crosshair(scene.width, scene.height))
        if decorations.show_footer:
            text = decorations.footer_text(page_index, layout.total_sheets)
            if text:
                size = self.footer_font_pt / 72.0
                # Centered in the bottom margin, below the last grid row
                baseline = scene.height - max(layout.margin_in - size, 0.0) / 2
                scene.add(Text(scene.width / 2, baseline, text, size))

        return ComposedSheet(
            index=page_index,
            total=layout.total_sheets,
            tokens=tuple(seal.token for seal in page_seals),
            scene=scene,
        )

    def compose(
        self,
        seals: list[RenderedSeal],
        layout: SheetLayout,
        decorations: SheetDecorations | None = None,
    ) -> list[ComposedSheet]:
        decorations = decorations or SheetDecorations()
        if len(seals) != layout.seal_count:
            raise ValueError(f"layout computed for {layout.seal_count} seals, got {len(seals)}")
        return [
            self.compose_page(seals, layout, index, decorations)
            for index in range(layout.total_sheets)
        ]
