"""
seal_generation.py - Mint-or-load, render, compose and export seal sheets.

Two input modes:
- quantity: mint a fresh batch, then render it
- tokens:   render tokens that already exist

Both modes go through the IdempotencyGuard before anything is drawn, and the
PDF path reuses exactly the same preparation as the SVG path.

CRITICAL: mint + sheet creation + token linkage share the caller's
transaction; nothing here commits.
"""

import hashlib
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.orm import Session as DBSession

from sealworks.config import settings
from sealworks.errors import ConflictError, TerminalStateError, ValidationError
from sealworks.models import SealSheet, SheetStatus
from sealworks.rendering import (
    ComposedSheet,
    IdempotencyGuard,
    PaperSpec,
    RasterExportPipeline,
    RenderContract,
    SealRenderer,
    SheetComposer,
    SheetDecorations,
    SheetLayout,
    SheetLayoutEngine,
)
from sealworks.rendering.layout import ALLOWED_DIAMETERS, DEFAULT_DIAMETER, DEFAULT_MARGIN
from sealworks.rendering.seal_renderer import RenderedSeal
from sealworks.services.audit import AuditLog
from sealworks.services.seal_sheets import SealSheetService
from sealworks.services.token_issuer import TokenIssuer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderOptions:
    paper_size: str = "letter"
    paper_width_in: float | None = None
    paper_height_in: float | None = None
    diameter_in: float = DEFAULT_DIAMETER
    margin_in: float = DEFAULT_MARGIN
    decorations: SheetDecorations = field(default_factory=SheetDecorations)
    dpi: int | None = None

    def paper(self) -> PaperSpec:
        return PaperSpec.resolve(self.paper_size, self.paper_width_in, self.paper_height_in)

    def validate(self) -> None:
        if self.diameter_in not in ALLOWED_DIAMETERS:
            raise ValidationError(
                f"Unsupported seal diameter: {self.diameter_in}",
                {"allowed": list(ALLOWED_DIAMETERS)},
            )
        if self.dpi is None:
            return
        if not 72 <= self.dpi <= 600:
            raise ValidationError("dpi must be between 72 and 600", {"dpi": self.dpi})
        min_dpi = SealRenderer().min_dpi(self.diameter_in)
        if self.dpi < min_dpi:
            raise ValidationError(
                f"dpi {self.dpi} is too low to scan {self.diameter_in} in seals",
                {"dpi": self.dpi, "min_dpi": min_dpi},
            )

    def resolved_dpi(self) -> int:
        if self.dpi is not None:
            return self.dpi
        return max(settings.EXPORT_DPI, SealRenderer().min_dpi(self.diameter_in))

    def to_config(self) -> dict:
        """Everything that influences the printed bytes."""
        paper = self.paper()
        return {
            "sealVersion": settings.SEAL_VERSION,
            "sheetLayoutVersion": settings.SHEET_LAYOUT_VERSION,
            "qrUrlPrefix": settings.SEAL_QR_URL_PREFIX,
            "paper": {"name": paper.name, "widthIn": paper.width_in, "heightIn": paper.height_in},
            "diameterIn": self.diameter_in,
            "marginIn": self.margin_in,
            "decorations": self.decorations.to_dict(),
            "dpi": self.resolved_dpi(),
            "footerFontPt": settings.FOOTER_FONT_SIZE_PT,
        }


@dataclass
class GenerationResult:
    contract: RenderContract
    layout: SheetLayout
    seals: list[RenderedSeal]
    sheets: list[ComposedSheet]
    sheet: SealSheet
    reused_sheet: bool = False

    def metadata(self) -> dict:
        return {
            "sealVersion": settings.SEAL_VERSION,
            "sheetLayoutVersion": settings.SHEET_LAYOUT_VERSION,
            "tokenCount": len(self.contract.tokens),
            "tokensHash": self.contract.tokens_hash,
            "renderFingerprint": self.contract.fingerprint,
        }


class SealGenerationService:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)
        self.issuer = TokenIssuer(db)
        self.sheets = SealSheetService(db)
        self.guard = IdempotencyGuard()
        self.layout_engine = SheetLayoutEngine()
        self.renderer = SealRenderer()
        self.composer = SheetComposer()

    def preview(self, quantity: int, options: RenderOptions) -> SheetLayout:
        options.validate()
        if quantity < 0 or quantity > settings.MAX_TOKENS_PER_BATCH:
            raise ValidationError(
                f"quantity must be between 0 and {settings.MAX_TOKENS_PER_BATCH}",
                {"quantity": quantity},
            )
        return self._layout(quantity, options)

    def _layout(self, count: int, options: RenderOptions) -> SheetLayout:
        layout = self.layout_engine.compute(
            options.diameter_in,
            options.paper(),
            options.margin_in,
            count,
        )
        if layout.total_sheets > settings.MAX_PAGES_PER_REQUEST:
            raise ValidationError(
                f"Request needs {layout.total_sheets} pages; the limit is {settings.MAX_PAGES_PER_REQUEST}",
                {"total_sheets": layout.total_sheets, "max_pages": settings.MAX_PAGES_PER_REQUEST},
            )
        return layout

    def generate(
        self,
        options: RenderOptions,
        actor: str | None = None,
        quantity: int | None = None,
        tokens: list[str] | None = None,
        entity_type: str | None = None,
        entity_id: str | None = None,
        version_id: str | None = None,
    ) -> GenerationResult:
        """
        Resolve the token set, then render every seal and sheet.

        Raises:
            ValidationError: both or neither of quantity/tokens, bad config, page cap.
            LayoutError: zero-capacity geometry.
            NotFoundError / TerminalStateError / ConflictError: tokens mode only.
        """
        options.validate()
        if (quantity is None) == (tokens is None):
            raise ValidationError("Provide exactly one of quantity or tokens")

        config = options.to_config()
        if quantity is not None:
            layout = self._layout(quantity, options)
            if quantity < 1:
                raise ValidationError("quantity must be at least 1", {"quantity": quantity})
            sheet_id = str(uuid.uuid4())
            rows = self.issuer.create_token_batch(
                entity_type or "seal_sheet",
                entity_id or sheet_id,
                quantity,
                actor=actor,
                version_id=version_id,
            )
            contract = self.guard.prepare([row.token for row in rows], config)
            sheet = self.sheets.create_sheet(rows, contract, settings.SEAL_VERSION, actor, sheet_id=sheet_id)
            reused = False
        else:
            if not tokens:
                raise ValidationError("tokens must not be empty")
            if len(tokens) > settings.MAX_TOKENS_PER_BATCH:
                raise ValidationError(
                    f"At most {settings.MAX_TOKENS_PER_BATCH} tokens per request",
                    {"count": len(tokens)},
                )
            contract = self.guard.prepare(tokens, config)
            layout = self._layout(len(contract.tokens), options)
            rows = self.issuer.load_existing(list(contract.tokens))
            sheet, reused = self._sheet_for_existing(rows, contract, actor)

        seals = [self.renderer.render(value) for value in contract.tokens]
        composed = self.composer.compose(seals, layout, options.decorations)
        logger.info(
            "Generated %d seals on %d sheet(s) for sheet %s (hash %s)",
            len(seals), len(composed), sheet.id, contract.tokens_hash[:12],
        )
        return GenerationResult(contract, layout, seals, composed, sheet, reused)

    def generate_pdf(self, options: RenderOptions, actor: str | None = None, **source) -> tuple[bytes, GenerationResult]:
        result = self.generate(options, actor=actor, **source)
        pdf = RasterExportPipeline(dpi=options.resolved_dpi()).export(
            result.sheets, title=f"Seal sheet {result.sheet.id}"
        )
        metadata = result.contract.audit_metadata()
        metadata.update(
            {
                "sheetId": result.sheet.id,
                "pageCount": len(result.sheets),
                "pdfSha256": hashlib.sha256(pdf).hexdigest(),
            }
        )
        self.audit.record("seal_sheet", result.sheet.id, "seal_pdf_generated", actor, metadata)
        return pdf, result

    def _sheet_for_existing(self, rows, contract: RenderContract, actor: str | None) -> tuple[SealSheet, bool]:
        """A reprint reuses the sheet only when the token set is exactly that sheet's set."""
        sheet_ids = {row.sheet_id for row in rows}
        if sheet_ids == {None}:
            sheet = self.sheets.create_sheet(rows, contract, settings.SEAL_VERSION, actor)
            return sheet, False
        if len(sheet_ids) != 1 or None in sheet_ids:
            raise ConflictError(
                "Tokens belong to different sheets",
                {"sheet_ids": sorted(s for s in sheet_ids if s)},
            )

        sheet = self.sheets.get_sheet(sheet_ids.pop())
        if sheet.status == SheetStatus.REVOKED.value:
            raise TerminalStateError("Seal sheet is revoked", {"sheet_id": sheet.id})
        if not self.guard.check(contract, sheet.tokens_hash):
            raise ConflictError(
                "Token set is not the full set of its sheet",
                {"sheet_id": sheet.id, "sheet_tokens_hash": sheet.tokens_hash},
            )
        self.audit.record("seal_sheet", sheet.id, "seal_sheet_reprinted", actor, contract.audit_metadata())
        return sheet, True
