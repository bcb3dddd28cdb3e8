"""HTTP routes open to tenants: provisioning and the public listing."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from provisioning.application.admin_service import AdminService
from provisioning.application.envelope import ApiResponse
from provisioning.application.orchestrator import ProvisioningOrchestrator
from provisioning.dependencies import get_admin_service, get_provisioning_orchestrator
from provisioning.presentation.models import (
    CredentialsResponse,
    Envelope,
    ProvisionRequest,
    PublicApplicationResponse,
    envelope_response,
    render_envelope,
)

router = APIRouter(tags=["provisioning"])


@router.post(
    "/apply",
    response_model=Envelope[CredentialsResponse],
    responses={
        400: {"description": "Identity key has an invalid format"},
        403: {"description": "Identity key is not allowlisted or already applied"},
        409: {"description": "Identity key already has a grant"},
        500: {"description": "Provisioning failed"},
    },
)
async def apply_database(
    request: ProvisionRequest,
    orchestrator: Annotated[
        ProvisioningOrchestrator, Depends(get_provisioning_orchestrator)
    ],
) -> JSONResponse:
    """Provision a database and user for an identity key.

    The password is returned only in this response.

    Args:
        request: Provisioning request (identity_key)
        orchestrator: Provisioning orchestrator

    Returns:
        Envelope with CredentialsResponse on success
    """
    outcome = await orchestrator.provision(request.identity_key)
    return render_envelope(outcome.response, CredentialsResponse.from_domain)


@router.get("/health", response_model=Envelope[dict])
async def health_check() -> JSONResponse:
    """Liveness check that touches neither store."""
    return envelope_response(ApiResponse.success(), {"status": "ok"})


@router.get(
    "/public/applications",
    response_model=Envelope[list[PublicApplicationResponse]],
)
async def get_public_applications(
    service: Annotated[AdminService, Depends(get_admin_service)],
) -> JSONResponse:
    """List recent applications with masked identity keys.

    Args:
        service: Admin service

    Returns:
        Envelope with up to 50 PublicApplicationResponse items
    """
    response = await service.public_applications()
    return render_envelope(
        response, lambda apps: [PublicApplicationResponse.from_domain(a) for a in apps]
    )
