"""Pydantic models for provisioning API requests and responses."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any, Generic, TypeVar

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from provisioning.application.admin_service import (
    ApplicationStats,
    PublicApplication,
    SystemStatus,
)
from provisioning.application.envelope import ApiResponse
from provisioning.application.reconciler import ReconcileEntry, ReconcileReport
from provisioning.domain.aggregates import AllowlistEntry, GrantRecord
from provisioning.domain.value_objects import AllowlistStats, Credentials, ImportResult

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Uniform response body: ``code == 0`` means success."""

    code: int = Field(..., description="0 on success, otherwise an error code")
    message: str = Field(..., description="Fixed message for the code")
    data: T | None = Field(default=None, description="Payload on success")


def envelope_response(response: ApiResponse[Any], data: Any = None) -> JSONResponse:
    """Render an application envelope with the HTTP status for its code.

    Args:
        response: Envelope returned by an application service
        data: Presentation model(s) replacing the domain payload

    Returns:
        JSONResponse carrying ``{code, message, data}``
    """
    body = {"code": int(response.code), "message": response.message, "data": data}
    return JSONResponse(
        status_code=response.code.http_status,
        content=jsonable_encoder(body),
    )


def render_envelope(
    response: ApiResponse[Any], convert: Callable[[Any], Any] | None = None
) -> JSONResponse:
    """Render a service envelope, converting its payload only on success."""
    if not response.ok or convert is None or response.data is None:
        return envelope_response(response)
    return envelope_response(response, convert(response.data))


class ProvisionRequest(BaseModel):
    """Request model for provisioning a database."""

    identity_key: str = Field(
        ...,
        description="Identity key the database is provisioned for",
        min_length=1,
        max_length=255,
    )


class CredentialsResponse(BaseModel):
    """Connection details, returned exactly once."""

    db_host: str = Field(..., description="Database host")
    db_port: int = Field(..., description="Database port")
    db_name: str = Field(..., description="Database name")
    username: str = Field(..., description="Database user")
    password: str = Field(..., description="Generated password")
    connection_string: str = Field(..., description="mysql:// URL")
    jdbc_url: str = Field(..., description="JDBC URL")

    @classmethod
    def from_domain(cls, credentials: Credentials) -> CredentialsResponse:
        """Convert domain Credentials to API response.

        Args:
            credentials: Credentials value object

        Returns:
            CredentialsResponse
        """
        return cls(
            db_host=credentials.db_host,
            db_port=credentials.db_port,
            db_name=credentials.db_name,
            username=credentials.username,
            password=credentials.password,
            connection_string=credentials.connection_string,
            jdbc_url=credentials.jdbc_url,
        )


class GrantRecordResponse(BaseModel):
    """Response model for a ledger row."""

    id: int | None
    identity_key: str
    db_name: str
    db_user: str
    status: str
    failure_reason: str | None = None
    created_at: datetime | None = None
    deleted_at: datetime | None = None
    deletion_reason: str | None = None

    @classmethod
    def from_domain(cls, record: GrantRecord) -> GrantRecordResponse:
        """Convert a GrantRecord to API response."""
        return cls(
            id=record.id,
            identity_key=record.identity_key,
            db_name=record.db_name,
            db_user=record.db_user,
            status=record.status.value,
            failure_reason=record.failure_reason,
            created_at=record.created_at,
            deleted_at=record.deleted_at,
            deletion_reason=record.deletion_reason,
        )


class PublicApplicationResponse(BaseModel):
    """Response model for a publicly listed application."""

    id: int | None
    identity_key_masked: str = Field(..., description="First four characters, then ****")
    status: str
    created_at: datetime | None = None

    @classmethod
    def from_domain(cls, application: PublicApplication) -> PublicApplicationResponse:
        """Convert a PublicApplication to API response."""
        return cls(
            id=application.id,
            identity_key_masked=application.masked_identity_key,
            status=application.status.value,
            created_at=application.created_at,
        )


class ApplicationStatsResponse(BaseModel):
    """Response model for ledger statistics."""

    total_count: int
    today_count: int
    week_count: int
    month_count: int
    successful_count: int
    failed_count: int
    deleted_count: int
    recent_applications: list[GrantRecordResponse]

    @classmethod
    def from_domain(cls, stats: ApplicationStats) -> ApplicationStatsResponse:
        """Convert ApplicationStats to API response."""
        counts = stats.counts
        return cls(
            total_count=counts.total,
            today_count=counts.today,
            week_count=counts.week,
            month_count=counts.month,
            successful_count=counts.success,
            failed_count=counts.failed,
            deleted_count=counts.deleted,
            recent_applications=[GrantRecordResponse.from_domain(r) for r in stats.recent],
        )


class SystemStatusResponse(BaseModel):
    """Response model for system status."""

    database_status: str = Field(..., description="Ledger store connectivity")
    mysql_status: str = Field(..., description="MySQL server connectivity")
    total_applications: int | None
    today_applications: int | None
    version: str

    @classmethod
    def from_domain(cls, status: SystemStatus) -> SystemStatusResponse:
        """Convert SystemStatus to API response."""
        return cls(
            database_status=status.ledger_status,
            mysql_status=status.mysql_status,
            total_applications=status.total_applications,
            today_applications=status.today_applications,
            version=status.version,
        )


class ReconcileEntryResponse(BaseModel):
    """Response model for one reconciled ledger row."""

    identity_key: str
    db_name: str
    inconsistent: bool
    repaired: bool
    db_exists: bool | None = None
    user_exists: bool | None = None
    teardown_clean: bool | None = None
    error_stage: str | None = None

    @classmethod
    def from_domain(cls, entry: ReconcileEntry) -> ReconcileEntryResponse:
        """Convert a ReconcileEntry to API response.

        The error text stays in the server logs.
        """
        return cls(
            identity_key=entry.identity_key,
            db_name=entry.db_name,
            inconsistent=entry.inconsistent,
            repaired=entry.repaired,
            db_exists=entry.db_exists,
            user_exists=entry.user_exists,
            teardown_clean=entry.teardown_clean,
            error_stage=entry.error_stage.value if entry.error_stage else None,
        )


class ReconcileReportResponse(BaseModel):
    """Response model for a reconciliation pass."""

    checked: int
    inconsistent: int
    repaired: int
    failed: int
    entries: list[ReconcileEntryResponse]

    @classmethod
    def from_domain(cls, report: ReconcileReport) -> ReconcileReportResponse:
        """Convert a ReconcileReport to API response."""
        return cls(
            checked=report.checked,
            inconsistent=report.inconsistent,
            repaired=report.repaired,
            failed=report.failed,
            entries=[ReconcileEntryResponse.from_domain(e) for e in report.entries],
        )


class DeleteUserRequest(BaseModel):
    """Request model for deleting a provisioned user."""

    identity_key: str = Field(..., min_length=1, max_length=255)
    reason: str = Field(..., description="Why the grant is removed", min_length=1, max_length=500)


class DeleteReasonRequest(BaseModel):
    """Request body carrying only a deletion reason."""

    reason: str = Field(..., min_length=1, max_length=500)


class AllowlistEntryResponse(BaseModel):
    """Response model for an allowlist entry."""

    id: int | None
    identity_key: str
    display_name: str | None = None
    group_info: str | None = None
    has_applied: bool
    applied_db_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_domain(cls, entry: AllowlistEntry) -> AllowlistEntryResponse:
        """Convert an AllowlistEntry to API response."""
        return cls(
            id=entry.id,
            identity_key=entry.identity_key,
            display_name=entry.display_name,
            group_info=entry.group_info,
            has_applied=entry.has_applied,
            applied_db_name=entry.applied_db_name,
            created_at=entry.created_at,
            updated_at=entry.updated_at,
        )


class AddAllowlistEntryRequest(BaseModel):
    """Request model for allowlisting an identity key."""

    identity_key: str = Field(..., min_length=1, max_length=255)
    display_name: str | None = Field(default=None, max_length=255)
    group_info: str | None = Field(default=None, max_length=255)


class UpdateAllowlistEntryRequest(BaseModel):
    """Request model for replacing an entry's descriptive fields."""

    display_name: str | None = Field(default=None, max_length=255)
    group_info: str | None = Field(default=None, max_length=255)


class BatchImportRequest(BaseModel):
    """Request model for a batch allowlist import."""

    data: str = Field(
        ...,
        description="One entry per line: identity_key[,display_name[,group_info]]",
    )
    overwrite_existing: bool = Field(
        default=False,
        description="Update descriptive fields of keys that already exist",
    )


class ImportResultResponse(BaseModel):
    """Response model for a batch import."""

    imported_count: int
    updated_count: int
    errors: list[str]

    @classmethod
    def from_domain(cls, result: ImportResult) -> ImportResultResponse:
        """Convert an ImportResult to API response."""
        return cls(
            imported_count=result.imported,
            updated_count=result.updated,
            errors=list(result.errors),
        )


class AllowlistStatsResponse(BaseModel):
    """Response model for allowlist statistics."""

    total_count: int
    applied_count: int
    not_applied_count: int

    @classmethod
    def from_domain(cls, stats: AllowlistStats) -> AllowlistStatsResponse:
        """Convert AllowlistStats to API response."""
        return cls(
            total_count=stats.total,
            applied_count=stats.applied,
            not_applied_count=stats.not_applied,
        )
