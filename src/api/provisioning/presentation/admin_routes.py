"""HTTP routes for administrators.

Every route here requires the admin bearer token (see ``auth.require_admin``).
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from provisioning.application.admin_service import (
    DEFAULT_PAGE_LIMIT,
    AdminService,
)
from provisioning.dependencies import get_admin_service
from provisioning.presentation.auth import require_admin
from provisioning.presentation.models import (
    AddAllowlistEntryRequest,
    AllowlistEntryResponse,
    AllowlistStatsResponse,
    ApplicationStatsResponse,
    BatchImportRequest,
    DeleteReasonRequest,
    DeleteUserRequest,
    Envelope,
    GrantRecordResponse,
    ImportResultResponse,
    ReconcileReportResponse,
    SystemStatusResponse,
    UpdateAllowlistEntryRequest,
    render_envelope,
)

AdminServiceDep = Annotated[AdminService, Depends(get_admin_service)]

router = APIRouter(
    tags=["admin"],
    dependencies=[Depends(require_admin)],
    responses={401: {"description": "Admin token missing or rejected"}},
)


def _grant_records(records: list) -> list[GrantRecordResponse]:
    return [GrantRecordResponse.from_domain(r) for r in records]


@router.get("/applicants", response_model=Envelope[list[GrantRecordResponse]])
async def get_applicants(service: AdminServiceDep) -> JSONResponse:
    """List every ledger row, newest first."""
    return render_envelope(await service.list_applicants(), _grant_records)


@router.get("/admin/status", response_model=Envelope[SystemStatusResponse])
async def get_system_status(service: AdminServiceDep) -> JSONResponse:
    """Report ledger and MySQL connectivity plus headline counters."""
    return render_envelope(await service.system_status(), SystemStatusResponse.from_domain)


@router.get("/admin/stats", response_model=Envelope[ApplicationStatsResponse])
async def get_application_stats(service: AdminServiceDep) -> JSONResponse:
    """Ledger counters and the ten most recent applications."""
    return render_envelope(
        await service.application_stats(), ApplicationStatsResponse.from_domain
    )


@router.post("/admin/repair", response_model=Envelope[ReconcileReportResponse])
async def repair_consistency(service: AdminServiceDep) -> JSONResponse:
    """Run one reconciliation pass and return its report.

    Ledger rows whose database or user no longer exists on the MySQL
    server are removed, and any remainder on the server is torn down.
    """
    return render_envelope(await service.repair(), ReconcileReportResponse.from_domain)


@router.post(
    "/admin/delete",
    response_model=Envelope[None],
    responses={
        400: {"description": "Invalid identity key or empty reason"},
        404: {"description": "No active grant for the identity key"},
        500: {"description": "Teardown incomplete; the grant stays active"},
    },
)
async def delete_user(request: DeleteUserRequest, service: AdminServiceDep) -> JSONResponse:
    """Tear down a grant and mark its ledger row deleted.

    Args:
        request: Identity key and deletion reason
        service: Admin service

    Returns:
        Envelope without data
    """
    return render_envelope(await service.delete_user(request.identity_key, request.reason))


@router.get("/admin/users", response_model=Envelope[list[GrantRecordResponse]])
async def get_users(service: AdminServiceDep) -> JSONResponse:
    """List ledger rows that claim a live grant."""
    return render_envelope(await service.list_users(), _grant_records)


@router.delete("/admin/users/{identity_key}", response_model=Envelope[None])
async def delete_user_by_identity(
    identity_key: str,
    request: DeleteReasonRequest,
    service: AdminServiceDep,
) -> JSONResponse:
    """Same as ``POST /admin/delete`` with the key in the path."""
    return render_envelope(await service.delete_user(identity_key, request.reason))


@router.get("/admin/allowlist", response_model=Envelope[list[AllowlistEntryResponse]])
async def list_allowlist(
    service: AdminServiceDep,
    limit: Annotated[int, Query(ge=1)] = DEFAULT_PAGE_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> JSONResponse:
    """List allowlist entries, newest first.

    Args:
        service: Admin service
        limit: Page size, capped at 500
        offset: Entries to skip

    Returns:
        Envelope with AllowlistEntryResponse items
    """
    return render_envelope(
        await service.list_allowlist(limit=limit, offset=offset),
        lambda entries: [AllowlistEntryResponse.from_domain(e) for e in entries],
    )


@router.post(
    "/admin/allowlist",
    response_model=Envelope[AllowlistEntryResponse],
    responses={
        400: {"description": "Invalid identity key"},
        409: {"description": "Identity key already allowlisted"},
    },
)
async def add_allowlist_entry(
    request: AddAllowlistEntryRequest, service: AdminServiceDep
) -> JSONResponse:
    """Allowlist an identity key."""
    return render_envelope(
        await service.add_allowlist_entry(
            request.identity_key, request.display_name, request.group_info
        ),
        AllowlistEntryResponse.from_domain,
    )


@router.post("/admin/allowlist/batch-import", response_model=Envelope[ImportResultResponse])
async def batch_import_allowlist(
    request: BatchImportRequest, service: AdminServiceDep
) -> JSONResponse:
    """Import allowlist entries, one ``key[,display_name[,group_info]]`` per line.

    Bad lines are reported with their line number and skipped.
    """
    return render_envelope(
        await service.batch_import(request.data, request.overwrite_existing),
        ImportResultResponse.from_domain,
    )


@router.get("/admin/allowlist/stats", response_model=Envelope[AllowlistStatsResponse])
async def get_allowlist_stats(service: AdminServiceDep) -> JSONResponse:
    """Total, applied and not-yet-applied allowlist counts."""
    return render_envelope(
        await service.allowlist_stats(), AllowlistStatsResponse.from_domain
    )


@router.put(
    "/admin/allowlist/{entry_id}",
    response_model=Envelope[AllowlistEntryResponse],
    responses={404: {"description": "Allowlist entry not found"}},
)
async def update_allowlist_entry(
    entry_id: int,
    request: UpdateAllowlistEntryRequest,
    service: AdminServiceDep,
) -> JSONResponse:
    """Replace an allowlist entry's display name and group info."""
    return render_envelope(
        await service.update_allowlist_entry(
            entry_id, request.display_name, request.group_info
        ),
        AllowlistEntryResponse.from_domain,
    )


@router.delete(
    "/admin/allowlist/{entry_id}",
    response_model=Envelope[None],
    responses={
        404: {"description": "Allowlist entry not found"},
        409: {"description": "Entry still backs an active grant"},
    },
)
async def delete_allowlist_entry(entry_id: int, service: AdminServiceDep) -> JSONResponse:
    """Delete an allowlist entry whose grant, if any, is already deleted."""
    return render_envelope(await service.delete_allowlist_entry(entry_id))
