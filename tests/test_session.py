"""
Tests for the session controller and its signals.
"""
import json
from datetime import date

import pytest
from PySide6.QtCore import QCoreApplication

from dryer_records.config import Settings
from dryer_records.core import (
    ErrorKind,
    MemoryStorage,
    PageView,
    RawChartData,
    RecordSession,
    RecordType,
)


@pytest.fixture(scope="module")
def qt_app():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class TestRecordSession:
    """Tests for RecordSession intents."""

    @pytest.fixture(autouse=True)
    def _session(self, qt_app, registry):
        self.storage = MemoryStorage()
        self.session = RecordSession(Settings(), storage=self.storage, registry=registry)
        self.pages = []
        self.messages = []
        self.comparisons = []
        self.session.data_updated.connect(lambda page: self.pages.append(page))
        self.session.message_posted.connect(lambda level, text: self.messages.append((level, text)))
        self.session.comparison_updated.connect(lambda analysis: self.comparisons.append(analysis))

    def test_initialize(self):
        result = self.session.initialize()

        assert result.ok
        assert isinstance(self.pages[-1], PageView)
        assert self.messages[-1] == ("info", "No local data yet.")

    def test_add_and_page(self, make_record):
        self.session.initialize()

        result = self.session.add_record(make_record(date_time="2024-01-01T08:00"))

        assert result.ok
        assert [r.id for r in self.pages[-1].records] == [result.value.id]
        assert self.messages[-1] == ("success", "Record added.")

    def test_update_closes_edit(self, make_record):
        record = make_record()
        self.session.add_record(record)
        self.session.load_for_edit(record.id)
        assert self.pages[-1].editing_id == record.id

        result = self.session.update_record({"id": record.id, "remark": "edited"})

        assert result.ok
        assert self.pages[-1].editing_id is None
        assert self.session.store.get(record.id).remark == "edited"

    def test_delete_edited_and_compared_record(self, make_record):
        a, b = make_record(), make_record()
        self.session.add_record(a)
        self.session.add_record(b)
        self.session.load_for_edit(a.id)
        assert self.session.compare([a.id, b.id]).ok

        self.session.delete_record(a.id)

        assert self.session.view.editing_id is None
        assert self.session.comparison is None
        assert self.comparisons[-1] is None

    def test_failed_comparison_clears_previous(self, make_record):
        a, b = make_record(), make_record()
        self.session.add_record(a)
        self.session.add_record(b)
        self.session.compare([a.id, b.id])
        assert self.comparisons[-1] is not None

        result = self.session.compare([a.id])

        assert result.error == ErrorKind.VALIDATION
        assert self.comparisons[-1] is None
        assert self.messages[-1][0] == "error"

    def test_invalid_scope_posts_error(self):
        result = self.session.set_scope(RecordType.CONDITION_SETTING, "vt9")

        assert not result.ok
        assert self.messages[-1][0] == "error"

    def test_golden_batch_in_page(self, make_record):
        record = make_record()
        self.session.add_record(record)

        self.session.toggle_golden_batch(record.id)
        assert self.pages[-1].golden_batch_id == record.id

        self.session.toggle_golden_batch(record.id)
        assert self.pages[-1].golden_batch_id is None

    def test_toggle_golden_batch_unknown(self):
        assert self.session.toggle_golden_batch("ghost").error == ErrorKind.NOT_FOUND

    def test_clear_all(self, make_record):
        vt8, vt7 = make_record(), make_record(dryer_model="vt7")
        self.session.add_record(vt8)
        self.session.add_record(vt7)
        self.session.toggle_golden_batch(vt8.id)
        self.session.toggle_golden_batch(vt7.id)

        result = self.session.clear_all()

        assert result.ok
        assert self.pages[-1].total_records == 0
        assert self.pages[-1].golden_batch_id is None
        assert self.session.golden_batches.get("vt8") is None
        assert self.session.golden_batches.get("vt7") is None
        assert self.storage.get("goldenBatchId_vt8") is None


class TestSessionFiles:
    """Tests for import and export intents."""

    @pytest.fixture(autouse=True)
    def _session(self, qt_app, registry, tmp_path):
        self.out = tmp_path / "out"
        self.session = RecordSession(Settings(), storage=MemoryStorage(), registry=registry)
        self.messages = []
        self.session.message_posted.connect(lambda level, text: self.messages.append((level, text)))

    def test_import_csv(self, tmp_path):
        path = tmp_path / "import.csv"
        path.write_text(
            "類型,機台型號,日期時間,備註\n"
            "評價TEAM用,VT8,2024-01-01 08:00,a\n"
            "???,VT8,2024-01-01 09:00,b\n",
            encoding="utf-8-sig"
        )

        result = self.session.import_csv(path)

        assert result.ok
        assert len(self.session.store) == 1
        assert not self.session.store.records[0].is_synced
        assert "1 rows skipped" in result.message

    def test_import_missing_csv(self, tmp_path):
        result = self.session.import_csv(tmp_path / "missing.csv")

        assert result.error == ErrorKind.VALIDATION
        assert self.messages[-1][0] == "error"

    def test_replace_all_from_json(self, tmp_path, make_record):
        path = tmp_path / "all_records.json"
        path.write_text(json.dumps([make_record().to_dict(), make_record().to_dict()]), encoding="utf-8")

        result = self.session.replace_all_from_json(path)

        assert result.ok
        assert len(self.session.store) == 2
        assert all(r.is_synced for r in self.session.store.records)

    def test_replace_all_switches_view(self, tmp_path, make_record):
        first = make_record(RecordType.CONDITION_SETTING, dryer_model="vt7")
        path = tmp_path / "all_records.json"
        path.write_text(json.dumps([first.to_dict(), make_record().to_dict()]), encoding="utf-8")
        pages = []
        self.session.data_updated.connect(lambda page: pages.append(page))

        assert self.session.replace_all_from_json(path).ok

        assert self.session.view.scope.record_type == RecordType.CONDITION_SETTING
        assert self.session.view.scope.dryer_model == "vt7"
        assert [r.id for r in pages[-1].records] == [first.id]

    def test_replace_all_empty_keeps_view(self, tmp_path):
        path = tmp_path / "all_records.json"
        path.write_text("[]", encoding="utf-8")

        assert self.session.replace_all_from_json(path).ok

        assert self.session.view.scope.record_type == RecordType.EVALUATION_TEAM
        assert self.session.view.scope.dryer_model == "vt8"

    def test_export_daily_json_marks_synced(self, make_record):
        record = make_record(date_time="2024-05-01T10:00")
        self.session.add_record(record)

        result = self.session.export_daily_json(self.out, day=date(2024, 5, 1))

        assert result.ok
        assert result.value.name == "tablet-data-2024-05-01.json"
        assert json.loads(result.value.read_text(encoding="utf-8"))[0]["id"] == record.id
        assert self.session.store.get(record.id).is_synced

        again = self.session.export_daily_json(self.out, day=date(2024, 5, 1))
        assert again.level.value == "info"

    def test_export_current_csv(self, make_record):
        self.session.add_record(make_record(date_time="2024-01-01T08:00"))
        self.session.add_record(make_record(RecordType.CONDITION_SETTING))

        result = self.session.export_current_csv(self.out)

        assert result.ok
        content = result.value.read_bytes()
        assert content.startswith(b"\xef\xbb\xbf")
        assert result.message == "Exported 1 records."

    def test_export_nothing(self):
        result = self.session.export_current_csv(self.out)

        assert result.ok
        assert result.level.value == "info"
        assert not self.out.exists()

    def test_export_full_csv(self, make_record):
        self.session.add_record(make_record(dryer_model="vt1"))
        self.session.add_record(make_record(dryer_model="vt8"))

        result = self.session.export_full_csv(self.out)

        assert result.ok
        assert result.value.name == "power_bi_export_full.csv"

    def test_build_master_database(self, tmp_path):
        path = tmp_path / "day.csv"
        path.write_text("類型,機台型號,日期時間\n評價TEAM用,VT8,2024-01-01 08:00\n", encoding="utf-8-sig")

        result = self.session.build_master_database([path], self.out)

        assert result.ok
        assert result.value.name == "all_records.json"
        assert len(json.loads(result.value.read_text(encoding="utf-8"))) == 1

    def test_merge_snapshot_files(self, tmp_path, make_record):
        master = tmp_path / "all_records.json"
        daily = tmp_path / "daily.json"
        master.write_text(json.dumps([make_record(id="m").to_dict()]), encoding="utf-8")
        daily.write_text(json.dumps([make_record(id="d").to_dict()]), encoding="utf-8")

        result = self.session.merge_snapshot_files(master, daily, self.out)

        assert result.ok
        assert result.value.name == "all_records_updated.json"
        merged = json.loads(result.value.read_text(encoding="utf-8"))
        assert {r["id"] for r in merged} == {"m", "d"}
        assert all(r["isSynced"] for r in merged)
        assert len(self.session.store) == 0

    def test_raw_chart_frame(self, make_record):
        record = make_record(raw_chart_data=RawChartData({"data": [{"t": 0, "v": 1.5}]}))
        plain = make_record()
        self.session.add_record(record)
        self.session.add_record(plain)

        result = self.session.raw_chart_frame(record.id)

        assert result.ok
        assert list(result.value.columns) == ["t", "v"]
        assert self.session.raw_chart_frame(plain.id).value is None
        assert self.session.raw_chart_frame("ghost").error == ErrorKind.NOT_FOUND
