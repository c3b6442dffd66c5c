"""
seal_sheets.py - SealSheet lifecycle: UNASSIGNED -> ASSIGNED -> REVOKED.

CRITICAL INVARIANTS:
- A sheet is created in the same transaction that links its tokens
- tokens_hash is always recomputable from the linked tokens
- REVOKED is terminal and requires a reason
"""

import logging
from dataclasses import dataclass

from sqlalchemy.orm import Session as DBSession

from sealworks.core.clock import utcnow
from sealworks.errors import ConflictError, NotFoundError, TerminalStateError, ValidationError
from sealworks.models import Partner, SealSheet, SheetStatus, Token
from sealworks.rendering.idempotency import RenderContract, compute_tokens_hash
from sealworks.services.audit import AuditLog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntegrityReport:
    sheet_id: str
    stored_hash: str
    computed_hash: str
    stored_count: int
    linked_count: int

    @property
    def ok(self) -> bool:
        return self.stored_hash == self.computed_hash and self.stored_count == self.linked_count

    def to_dict(self) -> dict:
        return {
            "sheetId": self.sheet_id,
            "ok": self.ok,
            "storedHash": self.stored_hash,
            "computedHash": self.computed_hash,
            "storedCount": self.stored_count,
            "linkedCount": self.linked_count,
        }


class SealSheetService:
    def __init__(self, db: DBSession):
        self.db = db
        self.audit = AuditLog(db)

    def create_sheet(
        self,
        tokens: list[Token],
        contract: RenderContract,
        seal_version: str,
        actor: str | None = None,
        sheet_id: str | None = None,
    ) -> SealSheet:
        """Create the sheet row and link every token to it. Flushes; the caller commits."""
        if sorted(t.token for t in tokens) != list(contract.tokens):
            raise ValueError("token rows do not match the render contract")

        sheet = SealSheet(
            status=SheetStatus.UNASSIGNED.value,
            token_count=len(tokens),
            tokens_hash=contract.tokens_hash,
            seal_version=seal_version,
            render_config=contract.config,
            created_by=actor,
        )
        if sheet_id:
            sheet.id = sheet_id
        self.db.add(sheet)
        self.db.flush()

        for token in tokens:
            token.sheet_id = sheet.id
        self.db.flush()

        self.audit.record("seal_sheet", sheet.id, "seal_sheet_created", actor, contract.audit_metadata())
        logger.info("Seal sheet %s created with %d tokens", sheet.id, len(tokens))
        return sheet

    def get_sheet(self, sheet_id: str, lock: bool = False) -> SealSheet:
        query = self.db.query(SealSheet).filter(SealSheet.id == sheet_id)
        if lock:
            query = query.with_for_update()
        sheet = query.first()
        if sheet is None:
            raise NotFoundError("Seal sheet not found", {"sheet_id": sheet_id})
        return sheet

    def assign_sheet(self, sheet_id: str, partner_id: int, actor: str | None = None) -> SealSheet:
        sheet = self.get_sheet(sheet_id, lock=True)
        if sheet.status == SheetStatus.REVOKED.value:
            raise TerminalStateError("Seal sheet is revoked", {"sheet_id": sheet_id})
        if sheet.status == SheetStatus.ASSIGNED.value:
            raise ConflictError(
                "Seal sheet is already assigned",
                {"sheet_id": sheet_id, "partner_id": sheet.partner_id},
            )
        if self.db.get(Partner, partner_id) is None:
            raise NotFoundError("Partner not found", {"partner_id": partner_id})

        sheet.status = SheetStatus.ASSIGNED.value
        sheet.partner_id = partner_id
        sheet.assigned_at = utcnow()
        sheet.assigned_by = actor
        self.db.flush()

        self.audit.record(
            "seal_sheet", sheet.id, "seal_sheet_assigned", actor,
            {"partner_id": partner_id, "token_count": sheet.token_count},
        )
        return sheet

    def revoke_sheet(self, sheet_id: str, reason: str, actor: str | None = None) -> SealSheet:
        if not reason or not reason.strip():
            raise ValidationError("A revocation reason is required", {"sheet_id": sheet_id})

        sheet = self.get_sheet(sheet_id, lock=True)
        if sheet.status == SheetStatus.REVOKED.value:
            raise TerminalStateError("Seal sheet is already revoked", {"sheet_id": sheet_id})

        previous = sheet.status
        sheet.status = SheetStatus.REVOKED.value
        sheet.revoked_at = utcnow()
        sheet.revoked_by = actor
        sheet.revoke_reason = reason.strip()
        self.db.flush()

        self.audit.record(
            "seal_sheet", sheet.id, "seal_sheet_revoked", actor,
            {"reason": sheet.revoke_reason, "previous_status": previous},
        )
        logger.info("Seal sheet %s revoked (was %s)", sheet.id, previous)
        return sheet

    def list_unassigned(self, limit: int = 100) -> list[SealSheet]:
        return (
            self.db.query(SealSheet)
            .filter(SealSheet.status == SheetStatus.UNASSIGNED.value)
            .order_by(SealSheet.created_at.desc())
            .limit(limit)
            .all()
        )

    def list_for_partner(self, partner_id: int) -> list[SealSheet]:
        return (
            self.db.query(SealSheet)
            .filter(SealSheet.partner_id == partner_id)
            .order_by(SealSheet.assigned_at.desc())
            .all()
        )

    def verify_integrity(self, sheet_id: str) -> IntegrityReport:
        sheet = self.get_sheet(sheet_id)
        linked = [
            value
            for (value,) in self.db.query(Token.token).filter(Token.sheet_id == sheet.id).all()
        ]
        report = IntegrityReport(
            sheet_id=sheet.id,
            stored_hash=sheet.tokens_hash,
            computed_hash=compute_tokens_hash(linked),
            stored_count=sheet.token_count,
            linked_count=len(linked),
        )
        if not report.ok:
            logger.error("Seal sheet %s failed integrity check: %s", sheet.id, report.to_dict())
        return report
