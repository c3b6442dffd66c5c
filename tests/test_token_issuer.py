"""
Tests for batch minting and revocation.
"""

import pytest

from sealworks.config import settings
from sealworks.errors import NotFoundError, TerminalStateError, ValidationError
from sealworks.models import AuditEntry, Token, TokenStatus
from sealworks.services.token_issuer import BASE62_ALPHABET, TokenIssuer, extract_token, generate_token


class TestTokenFormat:
    def test_generated_token_shape(self):
        token = generate_token()

        assert token.startswith("qr_")
        assert len(token) == 25
        assert token[3:].isalnum()

    def test_alphabet_is_drawn_uniformly(self):
        chars = "".join(generate_token()[3:] for _ in range(2000))
        low = sum(chars.count(c) for c in BASE62_ALPHABET[:8])

        # uniform: 44000 * 8 / 62 ~ 5677; a modulo-reduced byte would give ~6875
        assert 5200 < low < 6200

    @pytest.mark.parametrize(
        "value",
        [
            "qr_abc",
            "  qr_abc ",
            "https://verify.sealworks.local/s/qr_abc",
            "https://verify.sealworks.local/s/qr_abc/",
            "https://verify.sealworks.local/s/qr_abc?src=label#top",
        ],
    )
    def test_extract_token(self, value):
        assert extract_token(value) == "qr_abc"

    def test_extract_blank(self):
        with pytest.raises(ValidationError):
            extract_token("   ")


class TestCreateTokenBatch:
    def test_mints_unique_unbound_tokens(self, db):
        tokens = TokenIssuer(db).create_token_batch("product", "42", 25, actor="wh-1")
        db.commit()

        values = [t.token for t in tokens]
        assert len(set(values)) == 25
        assert all(t.status == TokenStatus.UNBOUND.value for t in tokens)
        assert all((t.entity_type, t.entity_id) == ("product", "42") for t in tokens)
        assert db.query(Token).count() == 25

    def test_over_cap_persists_nothing(self, db):
        with pytest.raises(ValidationError) as exc:
            TokenIssuer(db).create_token_batch("product", "42", settings.MAX_TOKENS_PER_BATCH + 1)

        assert exc.value.details["max"] == settings.MAX_TOKENS_PER_BATCH
        db.rollback()
        assert db.query(Token).count() == 0

    def test_zero_quantity_rejected(self, db):
        with pytest.raises(ValidationError):
            TokenIssuer(db).create_token_batch("product", "42", 0)

    def test_missing_entity_rejected(self, db):
        with pytest.raises(ValidationError):
            TokenIssuer(db).create_token_batch("", "42", 1)

    def test_mint_is_audited(self, db):
        TokenIssuer(db).create_token_batch("product", "42", 3, actor="wh-1")
        db.commit()

        entry = db.query(AuditEntry).filter(AuditEntry.action == "tokens_minted").one()
        assert entry.actor == "wh-1"
        assert entry.metadata_json["quantity"] == 3

    def test_version_is_stamped_on_every_token(self, db):
        tokens = TokenIssuer(db).create_token_batch("product", "42", 2, version_id="label-v3")
        db.commit()

        assert {t.version_id for t in tokens} == {"label-v3"}
        entry = db.query(AuditEntry).filter(AuditEntry.action == "tokens_minted").one()
        assert entry.metadata_json["version_id"] == "label-v3"


class TestRevocation:
    def test_revoke_is_terminal(self, db):
        issuer = TokenIssuer(db)
        token = issuer.create_token_batch("product", "42", 1)[0]

        revoked = issuer.revoke_token(token.token, "label damaged", actor="admin-1")
        assert revoked.status == TokenStatus.REVOKED.value
        assert revoked.revoked_reason == "label damaged"

        with pytest.raises(TerminalStateError):
            issuer.revoke_token(token.token, "again")

    def test_reason_required(self, db):
        issuer = TokenIssuer(db)
        token = issuer.create_token_batch("product", "42", 1)[0]

        with pytest.raises(ValidationError):
            issuer.revoke_token(token.token, "  ")

    def test_unknown_token(self, db):
        with pytest.raises(NotFoundError):
            TokenIssuer(db).revoke_token("qr_missing", "gone")

    def test_revoke_by_entity_skips_already_revoked(self, db):
        issuer = TokenIssuer(db)
        tokens = issuer.create_token_batch("product", "42", 4)
        issuer.create_token_batch("product", "43", 2)
        issuer.revoke_token(tokens[0].token, "damaged")

        count = issuer.revoke_tokens_for_entity("product", "42", "recall")
        db.commit()

        assert count == 3
        remaining = db.query(Token).filter(Token.status != TokenStatus.REVOKED.value).count()
        assert remaining == 2

    def test_load_existing_rejects_revoked(self, db):
        issuer = TokenIssuer(db)
        tokens = issuer.create_token_batch("product", "42", 2)
        issuer.revoke_token(tokens[0].token, "damaged")

        with pytest.raises(TerminalStateError):
            issuer.load_existing([t.token for t in tokens])

    def test_load_existing_reports_missing(self, db):
        with pytest.raises(NotFoundError) as exc:
            TokenIssuer(db).load_existing(["qr_nope"])

        assert exc.value.details["missing"] == ["qr_nope"]


class TestEntityListing:
    def test_lists_newest_first_with_total(self, db):
        issuer = TokenIssuer(db)
        issuer.create_token_batch("product", "42", 3)
        issuer.create_token_batch("product", "99", 2)
        db.commit()

        rows, total = issuer.tokens_for_entity("product", "42", limit=2)

        assert total == 3
        assert len(rows) == 2
        assert {(r.entity_type, r.entity_id) for r in rows} == {("product", "42")}
        assert [r.id for r in rows] == sorted((r.id for r in rows), reverse=True)

    def test_status_filter_and_offset(self, db):
        issuer = TokenIssuer(db)
        tokens = issuer.create_token_batch("product", "42", 3)
        issuer.revoke_token(tokens[0].token, "torn")
        db.commit()

        revoked, total = issuer.tokens_for_entity("product", "42", status="REVOKED")
        assert total == 1
        assert revoked[0].token == tokens[0].token

        rest, total = issuer.tokens_for_entity("product", "42", offset=2)
        assert total == 3
        assert len(rest) == 1

    def test_unknown_status_rejected(self, db):
        with pytest.raises(ValidationError):
            TokenIssuer(db).tokens_for_entity("product", "42", status="LOST")

    def test_stats_count_every_status(self, db):
        issuer = TokenIssuer(db)
        tokens = issuer.create_token_batch("product", "42", 4)
        tokens[1].status = TokenStatus.ACTIVE.value
        tokens[1].scan_count = 5
        tokens[2].scan_count = 2
        issuer.revoke_token(tokens[3].token, "torn")
        db.commit()

        assert issuer.token_stats("product", "42") == {
            "total": 4,
            "unbound": 2,
            "active": 1,
            "revoked": 1,
            "expired": 0,
            "total_scans": 7,
        }

    def test_stats_for_unknown_entity_are_zero(self, db):
        stats = TokenIssuer(db).token_stats("product", "nope")

        assert stats["total"] == 0
        assert stats["total_scans"] == 0
