"""SQLAlchemy ORM models for the ledger store.

``grant_records`` holds one row per provisioning attempt. A partial unique
index on ``identity_key`` over non-deleted rows lets at most one active row
exist per key, which is what resolves concurrent provisioning races.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, TimestampMixin, utc_now

ACTIVE_ROW_CLAUSE = "status != 'deleted'"
ACTIVE_KEY_INDEX = "ix_grant_records_identity_key_active"


class GrantRecordModel(Base):
    """ORM model for the grant_records table."""

    __tablename__ = "grant_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(64), nullable=False)
    db_name: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    db_user: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        insert_default=utc_now,
        nullable=False,
    )
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    deletion_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index(
            ACTIVE_KEY_INDEX,
            "identity_key",
            unique=True,
            sqlite_where=text(ACTIVE_ROW_CLAUSE),
            postgresql_where=text(ACTIVE_ROW_CLAUSE),
        ),
        Index("ix_grant_records_created_at", "created_at"),
        Index("ix_grant_records_status", "status"),
    )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<GrantRecordModel(id={self.id}, identity_key={self.identity_key}, "
            f"status={self.status})>"
        )


class AllowlistEntryModel(Base, TimestampMixin):
    """ORM model for the allowlist_entries table."""

    __tablename__ = "allowlist_entries"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    identity_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    group_info: Mapped[str | None] = mapped_column(String(255), nullable=True)
    has_applied: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    applied_db_name: Mapped[str | None] = mapped_column(String(64), nullable=True)

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<AllowlistEntryModel(id={self.id}, identity_key={self.identity_key}, "
            f"has_applied={self.has_applied})>"
        )
