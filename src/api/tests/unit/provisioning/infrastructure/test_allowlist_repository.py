"""Unit tests for AllowlistRepository on an in-memory SQLite store."""

from unittest.mock import Mock

import pytest

from provisioning.infrastructure.allowlist_repository import AllowlistRepository
from provisioning.infrastructure.observability import AllowlistRepositoryProbe
from provisioning.ports.exceptions import (
    AllowlistEntryNotFoundError,
    DuplicateAllowlistEntryError,
)


@pytest.fixture
def mock_probe():
    """Mock allowlist probe."""
    return Mock(spec=AllowlistRepositoryProbe)


@pytest.fixture
def repository(ledger_session_factory, mock_probe):
    """Allowlist repository with a mock probe."""
    return AllowlistRepository(ledger_session_factory, probe=mock_probe)


class TestAddAndGet:
    """Tests for adding and fetching entries."""

    @pytest.mark.asyncio
    async def test_add_entry(self, repository, mock_probe):
        """New entries start eligible."""
        entry = await repository.add("USER123", "Alice", "Room 101")

        assert entry.id is not None
        assert entry.has_applied is False
        assert entry.display_name == "Alice"
        assert entry.group_info == "Room 101"
        mock_probe.entry_added.assert_called_once_with("USER123")

        assert await repository.get(entry.id) == entry
        assert (await repository.get_by_key("USER123")).id == entry.id

    @pytest.mark.asyncio
    async def test_duplicate_key_rejected(self, repository, mock_probe):
        """A key can be allowlisted only once."""
        await repository.add("USER123")

        with pytest.raises(DuplicateAllowlistEntryError):
            await repository.add("USER123")

        mock_probe.duplicate_entry.assert_called_once_with("USER123")

    @pytest.mark.asyncio
    async def test_missing_entries(self, repository):
        """Unknown ids and keys return None."""
        assert await repository.get(999) is None
        assert await repository.get_by_key("NOBODY") is None


class TestEligibility:
    """Tests for is_eligible and mark_applied."""

    @pytest.mark.asyncio
    async def test_unknown_key_is_not_eligible(self, repository):
        """Keys that were never allowlisted cannot provision."""
        assert await repository.is_eligible("NOBODY") is False

    @pytest.mark.asyncio
    async def test_mark_applied_flips_once(self, repository, mock_probe):
        """The flag flips exactly once and records the database."""
        await repository.add("USER123")
        assert await repository.is_eligible("USER123") is True

        assert await repository.mark_applied("USER123", "db_USER123") is True
        assert await repository.mark_applied("USER123", "db_USER123") is False

        entry = await repository.get_by_key("USER123")
        assert entry.has_applied is True
        assert entry.applied_db_name == "db_USER123"
        assert await repository.is_eligible("USER123") is False
        mock_probe.entry_marked_applied.assert_called_once_with("USER123", "db_USER123")

    @pytest.mark.asyncio
    async def test_mark_applied_unknown_key(self, repository, mock_probe):
        """Marking a key that is not allowlisted reports False."""
        assert await repository.mark_applied("NOBODY", "db_NOBODY") is False
        mock_probe.entry_not_found.assert_called_once_with("NOBODY")


class TestUpdateAndDelete:
    """Tests for changing and removing entries."""

    @pytest.mark.asyncio
    async def test_update_replaces_descriptive_fields(self, repository):
        """Update overwrites both fields, including with None."""
        entry = await repository.add("USER123", "Alice", "Room 101")

        updated = await repository.update(entry.id, "Alice B", None)

        assert updated.display_name == "Alice B"
        assert updated.group_info is None
        assert updated.identity_key == "USER123"

    @pytest.mark.asyncio
    async def test_update_by_key(self, repository):
        """Entries can be updated through their identity key."""
        await repository.add("USER123", "Alice")

        updated = await repository.update_by_key("USER123", "Bob", "Room 2")

        assert (updated.display_name, updated.group_info) == ("Bob", "Room 2")

    @pytest.mark.asyncio
    async def test_update_missing_entry(self, repository):
        """Updating an unknown entry raises."""
        with pytest.raises(AllowlistEntryNotFoundError):
            await repository.update(999, "x", None)
        with pytest.raises(AllowlistEntryNotFoundError):
            await repository.update_by_key("NOBODY", "x", None)

    @pytest.mark.asyncio
    async def test_delete(self, repository, mock_probe):
        """Deleted entries are gone; deleting again raises."""
        entry = await repository.add("USER123")

        await repository.delete(entry.id)

        assert await repository.get(entry.id) is None
        mock_probe.entry_deleted.assert_called_once_with("USER123")
        with pytest.raises(AllowlistEntryNotFoundError):
            await repository.delete(entry.id)


class TestListingAndStats:
    """Tests for list_entries and stats."""

    @pytest.mark.asyncio
    async def test_list_entries_pages(self, repository):
        """Listing honours limit and offset."""
        for key in ["A1", "B2", "C3"]:
            await repository.add(key)

        first_page = await repository.list_entries(limit=2)
        second_page = await repository.list_entries(limit=2, offset=2)

        assert len(first_page) == 2
        assert len(second_page) == 1
        keys = {e.identity_key for e in first_page + second_page}
        assert keys == {"A1", "B2", "C3"}

    @pytest.mark.asyncio
    async def test_stats(self, repository):
        """Stats count total and applied entries."""
        for key in ["A1", "B2", "C3"]:
            await repository.add(key)
        await repository.mark_applied("B2", "db_B2")

        stats = await repository.stats()

        assert stats.total == 3
        assert stats.applied == 1
        assert stats.not_applied == 2
