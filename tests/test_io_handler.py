"""
Tests for CSV projection, header diff, file IO and export frames.
"""
import pytest

from dryer_records.core import (
    BatchRejectedError,
    CsvRecordParser,
    FileReader,
    RecordType,
    UnrecognizedTypePolicy,
    apply_header_mapping,
    build_export_frame,
    build_full_export_frame,
    compute_header_diff,
)

SPEED = "7F 排氣 風速(m/s)"
TEMP = "7F 排氣 溫度(℃)"
VOLUME = "7F 排氣 風量(Nm³/分)"


def _row(**overrides):
    row = {
        "類型": "評價TEAM用",
        "機台型號": "VT8",
        "日期時間": "2024-01-01 08:00",
        "RTO啟用狀態": "有",
        "升溫狀態": "無",
        SPEED: "10",
        TEMP: "0",
        VOLUME: "999",
        "備註": "ok",
    }
    row.update(overrides)
    return row


class TestHeaderDiff:
    """Tests for compute_header_diff function."""

    def test_exact_match(self):
        """Test headers that match exactly."""
        schema_headers = ["日期時間", "備註"]
        file_headers = ["類型", "日期時間", "備註"]

        diff = compute_header_diff(schema_headers, file_headers)

        assert not diff.has_differences
        assert set(diff.matched) == {"類型", "日期時間", "備註"}
        assert diff.get_summary() == "Headers match exactly"

    def test_missing_and_extra(self):
        schema_headers = ["日期時間", "備註", SPEED]
        file_headers = ["日期時間", "Voltage"]

        diff = compute_header_diff(schema_headers, file_headers)

        assert diff.has_differences
        assert diff.missing == sorted(["備註", SPEED])
        assert diff.extra == ["Voltage"]

    def test_fuzzy_rename_suggestion(self):
        schema_headers = ["Speed_Main", "備註"]
        file_headers = ["speed_main2", "備註"]

        diff = compute_header_diff(schema_headers, file_headers, fuzzy_threshold=80)

        assert diff.fuzzy_matches == {"speed_main2": "Speed_Main"}

    def test_no_fuzzy_match_below_threshold(self):
        diff = compute_header_diff(["Pressure"], ["Voltage"], fuzzy_threshold=80)
        assert diff.fuzzy_matches == {}

    def test_apply_header_mapping(self):
        rows = [{" speed_main2 ": "1", "備註": "x"}]

        renamed = apply_header_mapping(rows, {"speed_main2": "Speed_Main"})

        assert renamed == [{"Speed_Main": "1", "備註": "x"}]
        assert rows[0][" speed_main2 "] == "1"


class TestCsvRecordParser:
    """Tests for CSV row to record projection."""

    def test_evaluation_team_row(self, registry):
        area = registry.get("vt8").get_point("vt8_7f_exhaust").area
        rows = [_row(**{
            "技術溫測實溫_入口_1": "null",
            "技術溫測實溫_入口_2": "  ",
            "技術溫測實溫_入口_3": "abc",
            "技術溫測實溫_入口_4": "20",
        })]

        report = CsvRecordParser(registry).parse_rows(rows, source="day1.csv")

        assert not report.failed
        assert report.skipped == []
        record = report.records[0]
        assert record.record_type == RecordType.EVALUATION_TEAM
        assert record.dryer_model == "vt8"
        assert record.date_time == "2024-01-01T08:00"
        assert record.rto_status == "yes"
        assert record.heating_status == "no"
        assert record.remark == "ok"
        assert record.is_synced is True

        reading = record.air_volumes["vt8_7f_exhaust"]
        assert reading.speed == 10.0
        assert reading.computed_volume == pytest.approx(10.0 * area * 60)

        temps = record.actual_temps["P1"]
        assert temps.values == [None, None, None, 20.0, None]

    def test_unrecognized_type_is_skipped(self, registry):
        rows = [_row(), _row(**{"類型": "unknown"})]

        report = CsvRecordParser(registry).parse_rows(rows)

        assert len(report.records) == 1
        assert report.skipped[0].index == 1
        assert "record type" in report.skipped[0].reason

    def test_unrecognized_type_rejects_batch(self, registry):
        parser = CsvRecordParser(registry, type_policy=UnrecognizedTypePolicy.REJECT)

        with pytest.raises(BatchRejectedError):
            parser.parse_rows([_row(), _row(**{"類型": "unknown"})])

    def test_model_default_and_unsupported(self, registry):
        rows = [_row(**{"機台型號": ""}), _row(**{"機台型號": "VT9"})]

        report = CsvRecordParser(registry).parse_rows(rows)

        assert [r.dryer_model for r in report.records] == ["vt8"]
        assert "vt9" in report.skipped[0].reason

    def test_restricted_supported_models(self, registry):
        parser = CsvRecordParser(registry, supported_models=["vt8"])

        report = parser.parse_rows([_row(**{"機台型號": "vt7"})])

        assert report.records == []
        assert len(report.skipped) == 1

    def test_condition_setting_row(self, registry):
        rows = [_row(**{
            "類型": "條件設定用",
            "技術溫測實溫_入口_1": "25",
            "HMI_monitor1_FT C-1(CCM)": "12.5",
        })]

        record = CsvRecordParser(registry).parse_rows(rows).records[0]

        assert record.record_type == RecordType.CONDITION_SETTING
        assert record.actual_temps == {}
        assert record.hmi_data["monitor_FT_C1"] == 12.5

    def test_header_diff_reported(self, registry):
        rows = [_row(Unknown="1")]

        report = CsvRecordParser(registry).parse_rows(rows, headers=list(rows[0]))

        assert "Unknown" in report.header_diffs["vt8"].extra


class TestFileReader:
    """Tests for file IO."""

    def setup_method(self):
        """Set up test fixtures."""
        self.reader = FileReader()

    def test_read_csv_rows(self, tmp_path):
        path = tmp_path / "export.csv"
        path.write_text(
            f"類型,機台型號,{SPEED},備註\n評價TEAM用,VT8,10,\n條件設定用,,,note\n",
            encoding="utf-8-sig"
        )

        headers, rows = self.reader.read_csv_rows(path)

        assert headers == ["類型", "機台型號", SPEED, "備註"]
        assert rows[0][SPEED] == "10"
        assert rows[0]["備註"] == ""
        assert rows[1]["機台型號"] == ""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            self.reader.read_csv_rows(tmp_path / "missing.csv")

    def test_json_records(self, tmp_path, make_record):
        record = make_record(remark="備註")

        path = self.reader.write_json_records([record], tmp_path / "out" / "all_records.json")
        payload = self.reader.read_json_records(path)

        assert payload[0]["id"] == record.id
        assert payload[0]["remark"] == "備註"


class TestExportFrames:
    """Tests for CSV export frames."""

    def test_export_labels(self, registry, make_record):
        schema = registry.get("vt8")
        record = make_record(
            date_time="2024-01-01T08:00",
            rto_status="yes",
            speeds={"vt8_7f_exhaust": (10.0, 0.0)},
        )

        frame = build_export_frame([record], schema)

        assert list(frame.columns) == [d.header for d in schema.table_fields(RecordType.EVALUATION_TEAM)]
        row = frame.iloc[0]
        assert row["類型"] == "評價TEAM用"
        assert row["機台型號"] == "VT8"
        assert row["RTO啟用狀態"] == "有"
        assert row["升溫狀態"] == ""
        assert row[SPEED] == 10.0

    def test_empty_export(self, registry):
        assert build_export_frame([], registry.get("vt8")).empty

    def test_export_reimport(self, tmp_path, registry, make_record):
        record = make_record(
            date_time="2024-01-01T08:00",
            heating_status="no",
            speeds={"vt8_7f_exhaust": (10.0, 25.0)},
            temps={"P2": (20.0, None, 22.0, None, 24.0)},
        )
        reader = FileReader()
        path = reader.write_csv(build_export_frame([record], registry.get("vt8")), tmp_path / "x.csv")

        headers, rows = reader.read_csv_rows(path)
        imported = CsvRecordParser(registry).parse_rows(rows, headers).records[0]

        assert imported.date_time == record.date_time
        assert imported.heating_status == "no"
        assert imported.air_volumes["vt8_7f_exhaust"].computed_volume == pytest.approx(
            record.air_volumes["vt8_7f_exhaust"].computed_volume
        )
        assert imported.actual_temps["P2"].diff == pytest.approx(4.0)

    def test_full_export_reads_own_model(self, registry, make_record):
        vt8 = make_record(dryer_model="vt8", speeds={"vt8_3f_fresh_air": (5.0, 20.0)})
        vt7 = make_record(dryer_model="vt7", speeds={"vt7_3f_fresh_air": (7.0, 20.0)})

        frame = build_full_export_frame([vt8, vt7], registry)

        assert list(frame["3F 外氣 風速(m/s)"]) == [5.0, 7.0]
        assert frame.columns[0] == "類型"
        assert frame["類型"][1] == "evaluationTeam"
