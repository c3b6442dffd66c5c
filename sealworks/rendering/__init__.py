"""
rendering - Seal and sheet graphics.

Pure functions of their inputs: nothing in this package touches the
database, the clock or a random source.
"""

from .scene import Circle, Line, Text, Group, Scene
from .seal_renderer import SealRenderer, RenderedSeal
from .layout import PaperSpec, SheetLayout, SheetLayoutEngine
from .composer import SheetDecorations, ComposedSheet, SheetComposer
from .idempotency import IdempotencyGuard, RenderContract, compute_tokens_hash
from .raster_export import RasterExportPipeline

__all__ = [
    "Circle",
    "Line",
    "Text",
    "Group",
    "Scene",
    "SealRenderer",
    "RenderedSeal",
    "PaperSpec",
    "SheetLayout",
    "SheetLayoutEngine",
    "SheetDecorations",
    "ComposedSheet",
    "SheetComposer",
    "IdempotencyGuard",
    "RenderContract",
    "compute_tokens_hash",
    "RasterExportPipeline",
]
