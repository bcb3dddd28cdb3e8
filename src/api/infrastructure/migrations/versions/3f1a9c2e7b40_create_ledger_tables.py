"""create ledger tables

Revision ID: 3f1a9c2e7b40
Revises:Create Date: 2026-10-16 09:41:07.512230

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3f1a9c2e7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_ROW_CLAUSE = "status != 'deleted'"


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "grant_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("identity_key", sa.String(length=64), nullable=False),
        sa.Column("db_name", sa.String(length=64), nullable=False),
        sa.Column("db_user", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deletion_reason", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_grant_records"),
    )
    # At most one non-deleted row per identity key
    op.create_index(
        "ix_grant_records_identity_key_active",
        "grant_records",
        ["identity_key"],
        unique=True,
        sqlite_where=sa.text(ACTIVE_ROW_CLAUSE),
        postgresql_where=sa.text(ACTIVE_ROW_CLAUSE),
    )
    op.create_index("ix_grant_records_created_at", "grant_records", ["created_at"])
    op.create_index("ix_grant_records_status", "grant_records", ["status"])

    op.create_table(
        "allowlist_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("identity_key", sa.String(length=64), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("group_info", sa.String(length=255), nullable=True),
        sa.Column("has_applied", sa.Boolean(), nullable=False),
        sa.Column("applied_db_name", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_allowlist_entries"),
        sa.UniqueConstraint("identity_key", name="uq_allowlist_entries_identity_key"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("allowlist_entries")
    op.drop_index("ix_grant_records_status", table_name="grant_records")
    op.drop_index("ix_grant_records_created_at", table_name="grant_records")
    op.drop_index("ix_grant_records_identity_key_active", table_name="grant_records")
    op.drop_table("grant_records")
