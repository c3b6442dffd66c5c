"""
002_token_version.py - Label template version carried by each token.

Version-scoped redirect rules match tokens.version_id, which is set at mint
time and never changed afterwards.

Revision ID: 002_token_version
Revises: 001_initial_schema
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers
revision = "002_token_version"
down_revision = "001_initial_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("tokens", sa.Column("version_id", sa.String(100), nullable=True))
    op.create_index("ix_tokens_version_id", "tokens", ["version_id"])


def downgrade() -> None:
    op.drop_index("ix_tokens_version_id", table_name="tokens")
    op.drop_column("tokens", "version_id")
