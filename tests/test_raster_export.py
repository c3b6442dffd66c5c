"""
Tests for rasterizing composed sheets into a PDF.
"""

import re

import pytest

from sealworks.rendering import PaperSpec, RasterExportPipeline, SealRenderer, SheetComposer, SheetLayoutEngine


def _sheets(n):
    layout = SheetLayoutEngine().compute(1.0, PaperSpec.resolve("custom", 2.5, 2.5), 0.25, n)
    seals = [SealRenderer().render(f"qr_export{i:03d}abcdefghijklmn") for i in range(n)]
    return SheetComposer().compose(seals, layout)


class TestRasterExportPipeline:
    def test_identical_sheets_give_identical_bytes(self):
        first = RasterExportPipeline(dpi=72).export(_sheets(5))
        second = RasterExportPipeline(dpi=72).export(_sheets(5))

        assert first.startswith(b"%PDF")
        assert first == second

    def test_one_pdf_page_per_sheet(self):
        sheets = _sheets(5)
        pdf = RasterExportPipeline(dpi=72).export(sheets)

        assert len(sheets) == 2
        assert len(re.findall(rb"/Type /Page\b", pdf)) == 2

    def test_raster_matches_page_size(self):
        sheet = _sheets(1)[0]
        image = RasterExportPipeline(dpi=100).rasterize(sheet)

        assert image.size == (250, 250)

    def test_nothing_to_export(self):
        with pytest.raises(ValueError):
            RasterExportPipeline(dpi=72).export([])
