"""Tests for storage.py - File-backed key-value storage."""

import json

import pytest

from vetlab.storage import JsonFileStorage, StorageError


class TestJsonFileStorage:
    """Tests for JsonFileStorage class."""

    @pytest.fixture
    def storage(self, tmp_path):
        """Create storage in a not-yet-existing directory."""
        return JsonFileStorage(str(tmp_path / ".vetlab" / "storage.json"))

    def test_missing_file(self, storage):
        """Test reading before any write returns None."""
        assert storage.get_item("anything") is None

    def test_set_and_get(self, storage):
        """Test a stored blob reads back."""
        storage.set_item("key", "[1, 2]")
        assert storage.get_item("key") == "[1, 2]"

    def test_creates_parent_directory(self, storage):
        """Test the first write creates the directory."""
        storage.set_item("key", "value")
        assert storage.path.exists()

    def test_preserves_other_keys(self, storage):
        """Test writing one key keeps the others."""
        storage.set_item("a", "1")
        storage.set_item("b", "2")
        assert storage.get_item("a") == "1"
        assert storage.get_item("b") == "2"

    def test_overwrite(self, storage):
        """Test writing a key again replaces its value."""
        storage.set_item("a", "1")
        storage.set_item("a", "2")
        assert storage.get_item("a") == "2"

    def test_file_is_json_object(self, storage):
        """Test the on-disk format is a JSON object of strings."""
        storage.set_item("a", "x")
        assert json.loads(storage.path.read_text()) == {"a": "x"}

    def test_no_temp_files_left(self, storage):
        """Test writes leave only the storage file behind."""
        storage.set_item("a", "x")
        assert [p.name for p in storage.path.parent.iterdir()] == ["storage.json"]

    def test_corrupt_file_raises_on_read(self, storage):
        """Test an unparseable file raises StorageError."""
        storage.path.parent.mkdir(parents=True)
        storage.path.write_text("{not json")
        with pytest.raises(StorageError):
            storage.get_item("a")

    def test_non_object_raises_on_read(self, storage):
        """Test a JSON array at top level raises StorageError."""
        storage.path.parent.mkdir(parents=True)
        storage.path.write_text("[1, 2, 3]")
        with pytest.raises(StorageError):
            storage.get_item("a")

    def test_write_replaces_corrupt_file(self, storage):
        """Test writing over a corrupt file starts a fresh document."""
        storage.path.parent.mkdir(parents=True)
        storage.path.write_text("{not json")
        storage.set_item("a", "1")
        assert storage.get_item("a") == "1"

    def test_write_failure_raises(self, tmp_path):
        """Test an unwritable location raises StorageError."""
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        storage = JsonFileStorage(str(blocker / "storage.json"))
        with pytest.raises(StorageError):
            storage.set_item("a", "1")
