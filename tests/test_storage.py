"""Tests for the in-memory and file-backed storage areas."""

import pytest

from genius.errors import StorageUnavailableError
from genius.storage import FileStorage, MemoryStorage, StorageEvent


class TestMemoryStorage:
    """Test the shared in-memory storage area."""

    def test_contexts_share_data(self):
        # Arrange
        first = MemoryStorage()
        second = first.open_context()

        # Act
        first.set_item("key", "value")

        # Assert
        assert second.get_item("key") == "value"

    def test_changes_notify_other_contexts_only(self):
        # Arrange
        first = MemoryStorage()
        second = first.open_context()
        seen_first: list[StorageEvent] = []
        seen_second: list[StorageEvent] = []
        first.subscribe(seen_first.append)
        second.subscribe(seen_second.append)

        # Act
        first.set_item("key", "value")
        first.remove_item("key")

        # Assert
        assert seen_first == []
        assert seen_second == [
            StorageEvent("key", None, "value"),
            StorageEvent("key", "value", None),
        ]

    def test_no_event_when_nothing_changes(self):
        first = MemoryStorage()
        second = first.open_context()
        events: list[StorageEvent] = []
        second.subscribe(events.append)

        first.remove_item("missing")
        first.set_item("key", "value")
        first.set_item("key", "value")

        assert len(events) == 1

    def test_unsubscribe_stops_notifications(self):
        first = MemoryStorage()
        second = first.open_context()
        events: list[StorageEvent] = []
        unsubscribe = second.subscribe(events.append)

        unsubscribe()
        first.set_item("key", "value")

        assert events == []

    def test_failing_listener_does_not_break_writer(self):
        first = MemoryStorage()
        second = first.open_context()

        def broken(event: StorageEvent) -> None:
            raise RuntimeError("listener bug")

        second.subscribe(broken)

        first.set_item("key", "value")

        assert first.get_item("key") == "value"


class TestFileStorage:
    """Test the durable JSON file storage area."""

    def test_persists_across_instances(self, tmp_path):
        # Arrange
        path = tmp_path / "tokens.json"

        # Act
        FileStorage(path).set_item("key", "value")

        # Assert
        assert FileStorage(path).get_item("key") == "value"

    def test_contexts_on_same_path_receive_events(self, tmp_path):
        path = tmp_path / "tokens.json"
        writer = FileStorage(path)
        reader = FileStorage(path)
        events: list[StorageEvent] = []
        unsubscribe = reader.subscribe(events.append)

        writer.set_item("key", "value")
        unsubscribe()

        assert events == [StorageEvent("key", None, "value")]

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "tokens.json"
        path.write_text("{not json", encoding="utf-8")

        assert FileStorage(path).get_item("key") is None

    def test_unreadable_path_raises_storage_unavailable(self, tmp_path):
        # A directory where the file should be cannot be read as text
        path = tmp_path / "tokens.json"
        path.mkdir()

        with pytest.raises(StorageUnavailableError):
            FileStorage(path).get_item("key")
