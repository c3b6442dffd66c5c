"""
raster_export.py - Composed sheets to a paginated PDF.

Each sheet scene is rasterized with Pillow and placed full-bleed on its own
PDF page, in page order. reportlab runs in invariant mode, which pins the
creation date and document id, so identical sheets give identical bytes.

This module never computes geometry: page size comes from the composed scene.
"""

import logging
from io import BytesIO

from PIL import Image
from reportlab.lib.units import inch
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from sealworks.config import settings
from .composer import ComposedSheet

logger = logging.getLogger(__name__)


class RasterExportPipeline:
    def __init__(self, dpi: int | None = None):
        self.dpi = dpi or settings.EXPORT_DPI

    def rasterize(self, sheet: ComposedSheet) -> Image.Image:
        return sheet.scene.to_image(self.dpi)

    def export(self, sheets: list[ComposedSheet], title: str = "Seal sheets") -> bytes:
        if not sheets:
            raise ValueError("Nothing to export: no composed sheets")

        buffer = BytesIO()
        pdf = canvas.Canvas(buffer, invariant=1, pageCompression=1)
        pdf.setTitle(title)
        pdf.setCreator("sealworks")
        pdf.setAuthor("sealworks")

        for sheet in sheets:
            width, height = sheet.width_in * inch, sheet.height_in * inch
            pdf.setPageSize((width, height))
            pdf.drawImage(ImageReader(self.rasterize(sheet)), 0, 0, width=width, height=height)
            pdf.showPage()

        pdf.save()
        data = buffer.getvalue()
        logger.info("Exported %d sheet(s) at %d dpi (%d bytes)", len(sheets), self.dpi, len(data))
        return data
