"""
seals.py - Pydantic schemas for seal generation, export and preview.
"""

from typing import Any

from pydantic import Field

from sealworks.rendering import SheetDecorations
from sealworks.rendering.layout import DEFAULT_DIAMETER, DEFAULT_MARGIN
from sealworks.services.seal_generation import RenderOptions
from .base import CamelModel


class DecorationsConfig(CamelModel):
    show_registration_marks: bool = True
    show_center_crosshair: bool = False
    show_footer: bool = True
    title: str | None = Field(None, max_length=120)
    version_label: str | None = Field(None, max_length=60)
    footer_notes: str | None = Field(None, max_length=200)


class RenderConfig(CamelModel):
    paper_size: str = "letter"
    paper_width_in: float | None = None
    paper_height_in: float | None = None
    diameter_in: float = DEFAULT_DIAMETER
    margin_in: float = DEFAULT_MARGIN
    decorations: DecorationsConfig = Field(default_factory=DecorationsConfig)
    dpi: int | None = None

    def to_options(self) -> RenderOptions:
        return RenderOptions(
            paper_size=self.paper_size,
            paper_width_in=self.paper_width_in,
            paper_height_in=self.paper_height_in,
            diameter_in=self.diameter_in,
            margin_in=self.margin_in,
            decorations=SheetDecorations(**self.decorations.model_dump()),
            dpi=self.dpi,
        )


class GenerateRequest(CamelModel):
    """Either `quantity` (mint, then render) or `tokens` (render existing)."""

    quantity: int | None = None
    product_id: int | None = None
    entity_type: str | None = None
    entity_id: str | None = None
    version_id: str | None = Field(None, max_length=100)
    tokens: list[str] | None = None
    config: RenderConfig = Field(default_factory=RenderConfig)

    def source(self) -> dict[str, Any]:
        entity_type, entity_id = self.entity_type, self.entity_id
        if self.product_id is not None:
            entity_type, entity_id = "product", str(self.product_id)
        return {
            "quantity": self.quantity,
            "tokens": self.tokens,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "version_id": self.version_id,
        }


class PreviewRequest(CamelModel):
    quantity: int
    config: RenderConfig = Field(default_factory=RenderConfig)


class LayoutInfo(CamelModel):
    columns: int
    rows: int
    per_sheet: int
    rotation_used: bool
    total_sheets: int


class SealGraphic(CamelModel):
    token: str
    svg: str


class GenerateResponse(CamelModel):
    sheet_id: str
    seal_svgs: list[SealGraphic]
    sheet_svgs: list[str]
    page_count: int
    seals_per_sheet: int
    layout: LayoutInfo
    metadata: dict[str, Any]
