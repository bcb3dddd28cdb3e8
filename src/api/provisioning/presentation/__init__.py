"""Provisioning presentation layer.

Public routes (apply, health, public listing) and admin routes share the
``/api/v1`` prefix. Admin auth is declared on the admin router itself.
"""

from __future__ import annotations

from fastapi import APIRouter

from provisioning.presentation import admin_routes, routes

router = APIRouter(prefix="/api/v1")

router.include_router(routes.router)
router.include_router(admin_routes.router)

__all__ = ["router"]
