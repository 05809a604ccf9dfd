"""Tests for the progress stores."""

from datetime import timedelta
from pathlib import Path

import pytest

from app.pdflow.database import get_session_factory
from app.pdflow.models import ProcessStatus, utc_now
from app.pdflow.services.exceptions import NotFoundError, ValidationError
from app.pdflow.services.progress import (
    DatabaseProgressStore,
    InMemoryProgressStore,
    ProgressStore,
)


@pytest.fixture(params=["memory", "database"])
def store(request, tmp_path: Path) -> ProgressStore:
    """Run every test against both store implementations."""
    if request.param == "memory":
        return InMemoryProgressStore()
    return DatabaseProgressStore(get_session_factory(f"sqlite:///{tmp_path / 'progress.db'}"))


class TestProgressStore:
    """Behavior shared by all progress stores."""

    def test_get_unknown_returns_none(self, store: ProgressStore):
        assert store.get("missing") is None

    def test_get_or_init_creates_processing_record(self, store: ProgressStore):
        record = store.get_or_init("s1", 5)
        assert record.session_id == "s1"
        assert record.total_pages == 5
        assert record.processed_pages == 0
        assert record.status == ProcessStatus.PROCESSING
        assert record.error is None

    def test_get_or_init_keeps_existing_record(self, store: ProgressStore):
        """Test total pages is set once, on first initialization."""
        first = store.get_or_init("s1", 5)
        store.update("s1", processed_pages=2)

        again = store.get_or_init("s1", 9)

        assert again.total_pages == 5
        assert again.processed_pages == 2
        assert again.start_time == first.start_time

    def test_start_time_is_utc_aware(self, store: ProgressStore):
        """Test stored start times can be subtracted from the current UTC time."""
        store.get_or_init("s1", 2)

        start_time = store.get("s1").start_time

        assert start_time.utcoffset() == timedelta(0)
        assert timedelta(0) <= utc_now() - start_time < timedelta(minutes=1)

    def test_update_fields(self, store: ProgressStore):
        store.get_or_init("s1", 3)
        updated = store.update(
            "s1",
            processed_pages=2,
            failed_pages=[3],
            status=ProcessStatus.ERROR,
            error="Some pages failed to process",
        )

        assert updated.processed_pages == 2
        assert updated.failed_pages == [3]
        assert updated.status == ProcessStatus.ERROR
        assert store.get("s1") == updated

    def test_update_unknown_session(self, store: ProgressStore):
        with pytest.raises(NotFoundError):
            store.update("missing", processed_pages=1)

    @pytest.mark.parametrize("field", ["start_time", "pages_done"])
    def test_update_rejects_unknown_fields(self, store: ProgressStore, field: str):
        record = store.get_or_init("s1", 3)
        with pytest.raises(ValidationError, match=field):
            store.update("s1", **{field: 1})
        assert store.get("s1") == record

    def test_sessions_are_independent(self, store: ProgressStore):
        store.get_or_init("a", 1)
        store.get_or_init("b", 2)
        store.update("a", status=ProcessStatus.COMPLETED, processed_pages=1)

        assert store.get("b").status == ProcessStatus.PROCESSING
        assert store.get("b").processed_pages == 0


class TestInMemoryProgressStore:
    """Tests specific to the in-memory store."""

    def test_returned_records_are_copies(self):
        """Test callers cannot change state without update()."""
        store = InMemoryProgressStore()
        record = store.get_or_init("s1", 3)
        record.failed_pages.append(2)
        record.processed_pages = 3

        stored = store.get("s1")
        assert stored.failed_pages == []
        assert stored.processed_pages == 0

    def test_records_lost_with_instance(self):
        """Test the store is process-local and not persisted."""
        InMemoryProgressStore().get_or_init("s1", 3)
        assert InMemoryProgressStore().get("s1") is None


class TestDatabaseProgressStore:
    """Tests specific to the database store."""

    def test_records_survive_new_store_instance(self, tmp_path: Path):
        url = f"sqlite:///{tmp_path / 'durable.db'}"
        DatabaseProgressStore(get_session_factory(url)).get_or_init("s1", 4)

        reopened = DatabaseProgressStore(get_session_factory(url))
        assert reopened.get("s1").total_pages == 4
