"""Unit tests for the admin HTTP routes.

Tests bearer token enforcement and the rendering of admin service
envelopes.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from fastapi import status
from pydantic import SecretStr

from infrastructure.settings import AdminSettings
from provisioning.application.admin_service import ApplicationStats, SystemStatus
from provisioning.application.envelope import ApiResponse, StatusCode
from provisioning.application.reconciler import (
    ReconcileEntry,
    ReconcileReport,
    ReconcileStage,
)
from provisioning.domain.aggregates import AllowlistEntry, GrantRecord
from provisioning.domain.value_objects import (
    AllowlistStats,
    GrantStatus,
    ImportResult,
    LedgerStats,
)

CREATED = datetime(2026, 10, 16, 9, 30, tzinfo=UTC)


@pytest.fixture
def grant_record() -> GrantRecord:
    """A live ledger row."""
    return GrantRecord(
        id=1,
        identity_key="USER123",
        db_name="db_USER123",
        db_user="user_USER123",
        status=GrantStatus.SUCCESS,
        created_at=CREATED,
    )


@pytest.fixture
def allowlist_entry() -> AllowlistEntry:
    """An allowlist entry that has not applied yet."""
    return AllowlistEntry(
        id=3,
        identity_key="USER123",
        display_name="Alex Chen",
        group_info="CS-2026",
        created_at=CREATED,
        updated_at=CREATED,
    )


class TestAdminAuthentication:
    """Tests for admin bearer token enforcement."""

    def test_missing_token_is_rejected(self, test_client, mock_admin_service):
        """Requests without a token get 401 and the admin envelope code."""
        response = test_client.get("/api/v1/admin/users")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json() == {
            "code": 40101,
            "message": "Admin authentication required.",
            "data": None,
        }
        mock_admin_service.list_users.assert_not_called()

    def test_wrong_token_is_rejected(self, test_client, mock_admin_service):
        """A token that does not match is refused."""
        response = test_client.get(
            "/api/v1/admin/users", headers={"Authorization": "Bearer wrong"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        mock_admin_service.list_users.assert_not_called()

    def test_non_bearer_scheme_is_rejected(self, test_client):
        """Basic credentials are not an admin token."""
        response = test_client.get(
            "/api/v1/admin/users", headers={"Authorization": "Basic dXNlcjpwYXNz"}
        )

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_admin_disabled_without_configured_token(
        self, test_client, admin_settings, admin_headers, mock_admin_service
    ):
        """With no token configured every admin request is refused."""
        admin_settings.token = SecretStr("")

        response = test_client.get("/api/v1/admin/users", headers=admin_headers)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        mock_admin_service.list_users.assert_not_called()

    def test_applicants_listing_requires_token(self, test_client):
        """The full applicant listing is an admin route."""
        response = test_client.get("/api/v1/applicants")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_public_routes_need_no_token(self, test_client):
        """Health stays open when admin auth is enforced."""
        response = test_client.get("/api/v1/health")

        assert response.status_code == status.HTTP_200_OK


class TestDeleteUser:
    """Tests for the admin delete routes."""

    def test_delete_user_success(self, test_client, mock_admin_service, admin_headers):
        """A successful deletion returns an empty success envelope."""
        mock_admin_service.delete_user.return_value = ApiResponse.success()

        response = test_client.post(
            "/api/v1/admin/delete",
            json={"identity_key": "USER123", "reason": "policy violation"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"code": 0, "message": "Success", "data": None}
        mock_admin_service.delete_user.assert_awaited_once_with("USER123", "policy violation")

    def test_delete_unknown_user_is_not_found(
        self, test_client, mock_admin_service, admin_headers
    ):
        """No active grant maps to 404 and 40401."""
        mock_admin_service.delete_user.return_value = ApiResponse.error(StatusCode.NOT_FOUND)

        response = test_client.post(
            "/api/v1/admin/delete",
            json={"identity_key": "NOBODY", "reason": "cleanup"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["code"] == 40401

    def test_delete_requires_reason(self, test_client, mock_admin_service, admin_headers):
        """An empty reason is invalid input."""
        response = test_client.post(
            "/api/v1/admin/delete",
            json={"identity_key": "USER123", "reason": ""},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == 40001
        mock_admin_service.delete_user.assert_not_called()

    def test_delete_by_path(self, test_client, mock_admin_service, admin_headers):
        """The path variant passes the key from the URL."""
        mock_admin_service.delete_user.return_value = ApiResponse.success()

        response = test_client.request(
            "DELETE",
            "/api/v1/admin/users/USER123",
            json={"reason": "graduated"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        mock_admin_service.delete_user.assert_awaited_once_with("USER123", "graduated")


class TestListings:
    """Tests for the admin listing and reporting routes."""

    def test_list_users(self, test_client, mock_admin_service, admin_headers, grant_record):
        """Live rows are rendered without any password field."""
        mock_admin_service.list_users.return_value = ApiResponse.success([grant_record])

        response = test_client.get("/api/v1/admin/users", headers=admin_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()["data"]
        assert len(data) == 1
        assert data[0]["identity_key"] == "USER123"
        assert data[0]["db_name"] == "db_USER123"
        assert data[0]["status"] == "success"
        assert "password" not in data[0]

    def test_list_applicants(
        self, test_client, mock_admin_service, admin_headers, grant_record
    ):
        """Every ledger row is listed."""
        mock_admin_service.list_applicants.return_value = ApiResponse.success([grant_record])

        response = test_client.get("/api/v1/applicants", headers=admin_headers)

        assert response.json()["data"][0]["id"] == 1

    def test_application_stats(
        self, test_client, mock_admin_service, admin_headers, grant_record
    ):
        """Counters are flattened next to the recent rows."""
        mock_admin_service.application_stats.return_value = ApiResponse.success(
            ApplicationStats(
                counts=LedgerStats(
                    total=4, today=1, week=2, month=3, success=2, failed=1, deleted=1
                ),
                recent=[grant_record],
            )
        )

        response = test_client.get("/api/v1/admin/stats", headers=admin_headers)

        data = response.json()["data"]
        assert data["total_count"] == 4
        assert data["today_count"] == 1
        assert data["week_count"] == 2
        assert data["month_count"] == 3
        assert data["successful_count"] == 2
        assert data["failed_count"] == 1
        assert data["deleted_count"] == 1
        assert data["recent_applications"][0]["identity_key"] == "USER123"

    def test_system_status(self, test_client, mock_admin_service, admin_headers):
        """Store connectivity is reported even when one store is down."""
        mock_admin_service.system_status.return_value = ApiResponse.success(
            SystemStatus(
                ledger_status="ok",
                mysql_status="unavailable",
                total_applications=4,
                today_applications=1,
                version="1.2.3",
            )
        )

        response = test_client.get("/api/v1/admin/status", headers=admin_headers)

        assert response.json()["data"] == {
            "database_status": "ok",
            "mysql_status": "unavailable",
            "total_applications": 4,
            "today_applications": 1,
            "version": "1.2.3",
        }

    def test_repair(self, test_client, mock_admin_service, admin_headers):
        """The report lists inconsistent rows without error text."""
        mock_admin_service.repair.return_value = ApiResponse.success(
            ReconcileReport(
                checked=2,
                inconsistent=1,
                repaired=1,
                failed=1,
                entries=[
                    ReconcileEntry(
                        identity_key="USER123",
                        db_name="db_USER123",
                        inconsistent=True,
                        repaired=True,
                        db_exists=False,
                        user_exists=True,
                        teardown_clean=True,
                    ),
                    ReconcileEntry(
                        identity_key="A1",
                        db_name="db_A1",
                        inconsistent=False,
                        repaired=False,
                        error_stage=ReconcileStage.CHECK,
                        error="lost connection",
                    ),
                ],
            )
        )

        response = test_client.post("/api/v1/admin/repair", headers=admin_headers)

        data = response.json()["data"]
        assert data["checked"] == 2
        assert data["repaired"] == 1
        assert data["entries"][0]["db_exists"] is False
        assert data["entries"][1]["error_stage"] == "check"
        assert "lost connection" not in response.text


class TestAllowlistRoutes:
    """Tests for allowlist management routes."""

    def test_list_allowlist_passes_paging(
        self, test_client, mock_admin_service, admin_headers, allowlist_entry
    ):
        """Query parameters reach the service."""
        mock_admin_service.list_allowlist.return_value = ApiResponse.success([allowlist_entry])

        response = test_client.get(
            "/api/v1/admin/allowlist?limit=20&offset=40", headers=admin_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["data"][0]["display_name"] == "Alex Chen"
        mock_admin_service.list_allowlist.assert_awaited_once_with(limit=20, offset=40)

    @pytest.mark.parametrize("query", ["limit=0", "offset=-1", "limit=abc"])
    def test_list_allowlist_rejects_bad_paging(
        self, test_client, mock_admin_service, admin_headers, query
    ):
        """Bad paging values are invalid input."""
        response = test_client.get(f"/api/v1/admin/allowlist?{query}", headers=admin_headers)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == 40001
        mock_admin_service.list_allowlist.assert_not_called()

    def test_add_entry(self, test_client, mock_admin_service, admin_headers, allowlist_entry):
        """A new entry is returned."""
        mock_admin_service.add_allowlist_entry.return_value = ApiResponse.success(
            allowlist_entry
        )

        response = test_client.post(
            "/api/v1/admin/allowlist",
            json={"identity_key": "USER123", "display_name": "Alex Chen", "group_info": "CS-2026"},
            headers=admin_headers,
        )

        assert response.json()["data"]["has_applied"] is False
        mock_admin_service.add_allowlist_entry.assert_awaited_once_with(
            "USER123", "Alex Chen", "CS-2026"
        )

    def test_add_duplicate_entry(self, test_client, mock_admin_service, admin_headers):
        """A duplicate key maps to 409 and 40902."""
        mock_admin_service.add_allowlist_entry.return_value = ApiResponse.error(
            StatusCode.ALLOWLIST_ENTRY_EXISTS
        )

        response = test_client.post(
            "/api/v1/admin/allowlist",
            json={"identity_key": "USER123"},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == 40902

    def test_update_entry(
        self, test_client, mock_admin_service, admin_headers, allowlist_entry
    ):
        """The entry id comes from the path."""
        mock_admin_service.update_allowlist_entry.return_value = ApiResponse.success(
            allowlist_entry
        )

        response = test_client.put(
            "/api/v1/admin/allowlist/3",
            json={"display_name": "Alex Chen", "group_info": None},
            headers=admin_headers,
        )

        assert response.status_code == status.HTTP_200_OK
        mock_admin_service.update_allowlist_entry.assert_awaited_once_with(3, "Alex Chen", None)

    def test_delete_entry_in_use(self, test_client, mock_admin_service, admin_headers):
        """An entry backing an active grant cannot be deleted."""
        mock_admin_service.delete_allowlist_entry.return_value = ApiResponse.error(
            StatusCode.ALLOWLIST_ENTRY_IN_USE
        )

        response = test_client.delete("/api/v1/admin/allowlist/3", headers=admin_headers)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.json()["code"] == 40903

    def test_batch_import(self, test_client, mock_admin_service, admin_headers):
        """Import counts and line errors are returned."""
        mock_admin_service.batch_import.return_value = ApiResponse.success(
            ImportResult(imported=2, updated=1, errors=["line 3: invalid identity key"])
        )

        response = test_client.post(
            "/api/v1/admin/allowlist/batch-import",
            json={"data": "A1\nB2,Bo\nbad key", "overwrite_existing": True},
            headers=admin_headers,
        )

        assert response.json()["data"] == {
            "imported_count": 2,
            "updated_count": 1,
            "errors": ["line 3: invalid identity key"],
        }
        mock_admin_service.batch_import.assert_awaited_once_with("A1\nB2,Bo\nbad key", True)

    def test_allowlist_stats(self, test_client, mock_admin_service, admin_headers):
        """Not-applied is derived from the totals."""
        mock_admin_service.allowlist_stats.return_value = ApiResponse.success(
            AllowlistStats(total=5, applied=2)
        )

        response = test_client.get("/api/v1/admin/allowlist/stats", headers=admin_headers)

        assert response.json()["data"] == {
            "total_count": 5,
            "applied_count": 2,
            "not_applied_count": 3,
        }
