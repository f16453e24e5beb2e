"""
Tests for the golden batch registry.
"""
from dryer_records.core import ErrorKind, GoldenBatchRegistry, MemoryStorage, StorageError


class ReadOnlyStorage(MemoryStorage):
    """Storage that refuses writes."""

    def set(self, key, value):
        raise StorageError("read only")


class TestGoldenBatchRegistry:
    """Tests for GoldenBatchRegistry."""

    def setup_method(self):
        """Set up test fixtures."""
        self.storage = MemoryStorage()
        self.golden = GoldenBatchRegistry(self.storage)

    def test_unset_by_default(self):
        assert self.golden.get("vt8") is None

    def test_toggle_sets_and_unsets(self):
        result = self.golden.toggle("vt8", "rec-1")

        assert result.ok
        assert result.value == "rec-1"
        assert self.golden.get("vt8") == "rec-1"
        assert self.storage.get("goldenBatchId_vt8") == "rec-1"

        result = self.golden.toggle("vt8", "rec-1")

        assert result.value is None
        assert self.golden.get("vt8") is None

    def test_toggle_other_id_replaces(self):
        self.golden.toggle("vt8", "rec-1")

        result = self.golden.toggle("vt8", "rec-2")

        assert result.value == "rec-2"
        assert self.golden.get("vt8") == "rec-2"

    def test_models_are_independent(self):
        self.golden.toggle("VT8", "rec-1")
        self.golden.toggle("vt7", "rec-2")

        assert self.golden.get("vt8") == "rec-1"
        assert self.golden.get("vt7") == "rec-2"

        self.golden.clear("vt8")
        assert self.golden.get("vt8") is None
        assert self.golden.get("vt7") == "rec-2"

    def test_resolve_dangling(self, store, make_record):
        record = make_record()
        store.add(record)
        self.golden.toggle("vt8", record.id)

        assert self.golden.resolve("vt8", store).id == record.id

        store.delete(record.id)

        assert self.golden.resolve("vt8", store) is None
        assert self.golden.get("vt8") == record.id

    def test_empty_id(self):
        assert self.golden.toggle("vt8", "").error == ErrorKind.VALIDATION

    def test_write_failure(self):
        golden = GoldenBatchRegistry(ReadOnlyStorage())

        result = golden.toggle("vt8", "rec-1")

        assert result.error == ErrorKind.PERSISTENCE
