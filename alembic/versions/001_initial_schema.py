"""
001_initial_schema.py - Tokens, seal sheets, bindings, redirects and audit.

Database-level guarantees:
- tokens.token is globally unique
- at most one binding per token (unique bindings.token_id)
- at most one ACTIVE binding session per partner (partial unique index)
- at most one fallback redirect rule (partial unique index)

Revision ID: 001_initial_schema
Revises:
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "partners",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_partners_id", "partners", ["id"])

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("partners.id"), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("sku", sa.String(100), nullable=True),
    )
    op.create_index("ix_products_id", "products", ["id"])
    op.create_index("ix_products_partner_id", "products", ["partner_id"])

    op.create_table(
        "seal_sheets",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("token_count", sa.Integer(), nullable=False),
        sa.Column("tokens_hash", sa.String(64), nullable=False),
        sa.Column("seal_version", sa.String(50), nullable=False),
        sa.Column("render_config", sa.JSON(), nullable=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("partners.id"), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("assigned_by", sa.String(100), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_by", sa.String(100), nullable=True),
        sa.Column("revoke_reason", sa.String(500), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("token_count >= 0", name="seal_sheet_token_count_non_negative"),
    )
    op.create_index("ix_seal_sheets_status", "seal_sheets", ["status"])
    op.create_index("ix_seal_sheets_partner_id", "seal_sheets", ["partner_id"])

    op.create_table(
        "tokens",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("token", sa.String(64), nullable=False, unique=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("scan_count", sa.Integer(), nullable=False),
        sa.Column("last_scanned_at", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_at", sa.DateTime(), nullable=True),
        sa.Column("revoked_reason", sa.String(500), nullable=True),
        sa.Column("sheet_id", sa.String(36), sa.ForeignKey("seal_sheets.id"), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tokens_entity", "tokens", ["entity_type", "entity_id"])
    op.create_index("ix_tokens_sheet_id", "tokens", ["sheet_id"])

    op.create_table(
        "binding_sessions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("partners.id"), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("scan_count", sa.Integer(), nullable=False),
        sa.Column("started_by", sa.String(100), nullable=True),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_binding_sessions_partner_id", "binding_sessions", ["partner_id"])
    op.create_index(
        "uq_binding_sessions_active_partner",
        "binding_sessions",
        ["partner_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "bindings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("token_id", sa.Integer(), sa.ForeignKey("tokens.id"), nullable=False, unique=True),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("products.id"), nullable=False),
        sa.Column("partner_id", sa.Integer(), sa.ForeignKey("partners.id"), nullable=False),
        sa.Column("session_id", sa.String(36), sa.ForeignKey("binding_sessions.id"), nullable=True),
        sa.Column("is_rebind", sa.Boolean(), nullable=False),
        sa.Column("previous_binding_id", sa.String(36), nullable=True),
        sa.Column("bound_by", sa.String(100), nullable=True),
        sa.Column("bound_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_bindings_product_id", "bindings", ["product_id"])
    op.create_index("ix_bindings_partner_id", "bindings", ["partner_id"])
    op.create_index("ix_bindings_session_id", "bindings", ["session_id"])

    op.create_table(
        "redirect_rules",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("entity_type", sa.String(50), nullable=True),
        sa.Column("entity_id", sa.String(100), nullable=True),
        sa.Column("version_id", sa.String(100), nullable=True),
        sa.Column("is_fallback", sa.Boolean(), nullable=False),
        sa.Column("redirect_url", sa.String(2048), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column("starts_at", sa.DateTime(), nullable=True),
        sa.Column("ends_at", sa.DateTime(), nullable=True),
        sa.Column("created_by", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("deactivated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_redirect_rules_entity", "redirect_rules", ["entity_type", "entity_id"])
    op.create_index("ix_redirect_rules_version", "redirect_rules", ["version_id"])
    op.create_index(
        "uq_redirect_rules_single_fallback",
        "redirect_rules",
        ["is_fallback"],
        unique=True,
        postgresql_where=sa.text("is_fallback = true"),
        sqlite_where=sa.text("is_fallback = 1"),
    )

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(100), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor", sa.String(100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_entries_action", "audit_entries", ["action"])
    op.create_index("ix_audit_entries_entity", "audit_entries", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_table("audit_entries")
    op.drop_index("uq_redirect_rules_single_fallback", table_name="redirect_rules")
    op.drop_table("redirect_rules")
    op.drop_table("bindings")
    op.drop_index("uq_binding_sessions_active_partner", table_name="binding_sessions")
    op.drop_table("binding_sessions")
    op.drop_table("tokens")
    op.drop_table("seal_sheets")
    op.drop_table("products")
    op.drop_table("partners")
