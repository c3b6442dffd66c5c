"""
Tests for mint-or-load generation and PDF export.
"""

import pytest

from sealworks.config import settings
from sealworks.errors import ConflictError, NotFoundError, TerminalStateError, ValidationError
from sealworks.models import AuditEntry, SealSheet, Token
from sealworks.rendering import SheetDecorations
from sealworks.services.seal_generation import RenderOptions, SealGenerationService
from sealworks.services.seal_sheets import SealSheetService

OPTIONS = RenderOptions()


class TestPreview:
    def test_preview_mints_nothing(self, db):
        layout = SealGenerationService(db).preview(100, RenderOptions())

        assert layout.per_sheet == 80
        assert layout.total_sheets == 2
        assert db.query(Token).count() == 0

    def test_footer_does_not_reduce_capacity(self, db):
        options = RenderOptions(diameter_in=1.25, margin_in=0.5, decorations=SheetDecorations(title="Lot 7"))
        layout = SealGenerationService(db).preview(100, options)

        assert layout.rotation_used is False
        assert layout.per_sheet == 48
        assert layout.total_sheets == 3

    def test_unsupported_diameter(self, db):
        with pytest.raises(ValidationError) as exc:
            SealGenerationService(db).preview(10, RenderOptions(diameter_in=2.0))

        assert 1.5 in exc.value.details["allowed"]

    def test_dpi_too_low_to_scan_is_rejected(self, db):
        with pytest.raises(ValidationError) as exc:
            SealGenerationService(db).preview(10, RenderOptions(dpi=150))

        assert exc.value.details["min_dpi"] > 150

    def test_default_dpi_rises_for_small_seals(self):
        small = RenderOptions(diameter_in=0.75)

        assert RenderOptions().resolved_dpi() == settings.EXPORT_DPI
        assert small.resolved_dpi() > settings.EXPORT_DPI
        assert small.to_config()["dpi"] == small.resolved_dpi()


class TestGenerateFromQuantity:
    def test_mints_and_creates_sheet(self, db):
        result = SealGenerationService(db).generate(OPTIONS, actor="wh-1", quantity=5)
        db.commit()

        assert len(result.seals) == 5
        assert [s.token for s in result.seals] == sorted(s.token for s in result.seals)
        assert result.sheet.token_count == 5
        assert result.sheet.tokens_hash == result.contract.tokens_hash
        assert result.reused_sheet is False

        tokens = db.query(Token).all()
        assert {t.sheet_id for t in tokens} == {result.sheet.id}
        assert {(t.entity_type, t.entity_id) for t in tokens} == {("seal_sheet", result.sheet.id)}

    def test_entity_label_is_kept(self, db):
        result = SealGenerationService(db).generate(OPTIONS, quantity=2, entity_type="product", entity_id="7")

        assert {(t.entity_type, t.entity_id) for t in db.query(Token).all()} == {("product", "7")}
        assert result.sheet.render_config["diameterIn"] == 1.0

    def test_version_label_is_kept(self, db):
        SealGenerationService(db).generate(OPTIONS, quantity=2, version_id="label-v2")

        assert {t.version_id for t in db.query(Token).all()} == {"label-v2"}

    def test_over_cap_mints_nothing(self, db):
        with pytest.raises(ValidationError):
            SealGenerationService(db).generate(OPTIONS, quantity=settings.MAX_TOKENS_PER_BATCH + 1)

        db.rollback()
        assert db.query(Token).count() == 0
        assert db.query(SealSheet).count() == 0

    def test_page_cap_checked_before_minting(self, db, monkeypatch):
        monkeypatch.setattr(settings, "MAX_PAGES_PER_REQUEST", 1)

        with pytest.raises(ValidationError) as exc:
            SealGenerationService(db).generate(OPTIONS, quantity=100)

        assert exc.value.details["total_sheets"] == 2
        db.rollback()
        assert db.query(Token).count() == 0

    def test_exactly_one_source(self, db):
        service = SealGenerationService(db)

        with pytest.raises(ValidationError):
            service.generate(OPTIONS)
        with pytest.raises(ValidationError):
            service.generate(OPTIONS, quantity=1, tokens=["qr_a"])


class TestGenerateFromTokens:
    def test_unlinked_tokens_get_a_new_sheet(self, db):
        from sealworks.services.token_issuer import TokenIssuer

        rows = TokenIssuer(db).create_token_batch("product", "7", 3)
        result = SealGenerationService(db).generate(OPTIONS, tokens=[r.token for r in rows])

        assert result.reused_sheet is False
        assert {r.sheet_id for r in rows} == {result.sheet.id}

    def test_full_sheet_reprint_reuses_sheet(self, db, make_sheet):
        sheet, tokens = make_sheet(3)

        result = SealGenerationService(db).generate(OPTIONS, tokens=[t.token for t in reversed(tokens)])

        assert result.reused_sheet is True
        assert result.sheet.id == sheet.id
        assert db.query(AuditEntry).filter(AuditEntry.action == "seal_sheet_reprinted").count() == 1

    def test_partial_sheet_is_a_conflict(self, db, make_sheet):
        _, tokens = make_sheet(3)

        with pytest.raises(ConflictError):
            SealGenerationService(db).generate(OPTIONS, tokens=[tokens[0].token])

    def test_mixed_sheets_is_a_conflict(self, db, make_sheet):
        _, first = make_sheet(2)
        _, second = make_sheet(2)

        with pytest.raises(ConflictError):
            SealGenerationService(db).generate(OPTIONS, tokens=[first[0].token, second[0].token])

    def test_revoked_sheet_cannot_be_reprinted(self, db, make_sheet):
        sheet, tokens = make_sheet(2)
        SealSheetService(db).revoke_sheet(sheet.id, "smudged")

        with pytest.raises(TerminalStateError):
            SealGenerationService(db).generate(OPTIONS, tokens=[t.token for t in tokens])

    def test_unknown_token(self, db):
        with pytest.raises(NotFoundError):
            SealGenerationService(db).generate(OPTIONS, tokens=["qr_unknown"])

    def test_duplicate_tokens(self, db, make_sheet):
        _, tokens = make_sheet(1)

        with pytest.raises(ValidationError):
            SealGenerationService(db).generate(OPTIONS, tokens=[tokens[0].token, tokens[0].token])


class TestPdfExport:
    def test_reprint_is_byte_identical(self, db):
        service = SealGenerationService(db)
        options = RenderOptions(decorations=SheetDecorations(title="Lot 7"))

        first_pdf, first = service.generate_pdf(options, actor="wh-1", quantity=4)
        db.commit()
        tokens = [s.token for s in first.seals]

        second_pdf, second = service.generate_pdf(options, actor="wh-1", tokens=tokens)
        db.commit()

        assert second.sheet.id == first.sheet.id
        assert first_pdf.startswith(b"%PDF")
        assert first_pdf == second_pdf

    def test_export_is_audited_with_digest(self, db):
        pdf, result = SealGenerationService(db).generate_pdf(OPTIONS, quantity=2)
        db.commit()

        entry = db.query(AuditEntry).filter(AuditEntry.action == "seal_pdf_generated").one()
        assert entry.entity_id == result.sheet.id
        assert entry.metadata_json["pageCount"] == 1
        assert len(entry.metadata_json["pdfSha256"]) == 64
