"""
Tests for two-record comparative analysis.
"""
import pytest

from dryer_records.core import ErrorKind, RecordComparer

EXHAUST = "vt8_7f_exhaust"
SUPPLY = "vt8_6f_supply"


class TestRecordComparer:
    """Tests for RecordComparer."""

    def setup_method(self):
        """Set up test fixtures."""
        self.records = {}

    def _lookup(self, record_id):
        return self.records.get(record_id)

    def _add(self, record):
        self.records[record.id] = record
        return record

    def test_requires_exactly_two(self, registry, make_record):
        a = self._add(make_record())
        comparer = RecordComparer(registry)

        for ids in (None, [], [a.id], [a.id, a.id, a.id]):
            result = comparer.compare(ids, self._lookup)
            assert not result.ok
            assert result.error == ErrorKind.VALIDATION
            assert result.value is None

    def test_unknown_id(self, registry, make_record):
        a = self._add(make_record())

        result = RecordComparer(registry).compare([a.id, "ghost"], self._lookup)

        assert result.error == ErrorKind.NOT_FOUND
        assert result.value is None

    def test_missing_reading_on_one_side(self, registry, make_record):
        """Temperature gaps stay null while air volume gaps plot as zero."""
        a = self._add(make_record(
            date_time="2024-01-01T08:00",
            speeds={EXHAUST: (10.0, 0.0)},
            temps={"P3": (30.0, 31.0, 32.0, 33.0, 34.0)},
        ))
        b = self._add(make_record(date_time=None))

        analysis = RecordComparer(registry).compare([a.id, b.id], self._lookup).value

        temp = analysis.temperature
        p3 = temp.keys.index("P3")
        b_line1 = [d for d in temp.datasets_for(2) if d.line == 1][0]
        a_line1 = [d for d in temp.datasets_for(1) if d.line == 1][0]
        assert b_line1.data[p3] is None
        assert a_line1.data[p3] == 30.0

        air = analysis.air_volume
        assert air.keys == [EXHAUST]
        assert air.labels == ["7F 排氣"]
        assert air.datasets_for(2)[0].data == [0.0]
        assert air.datasets_for(1)[0].data[0] > 0

    def test_labels(self, registry, make_record):
        a = self._add(make_record(date_time="2024-01-01T08:00", rto_status="yes"))
        b = self._add(make_record(date_time=None))

        analysis = RecordComparer(registry).compare([a.id, b.id], self._lookup).value

        assert analysis.record_a_label == "Record 1: 2024-01-01 08:00"
        assert analysis.record_b_label == "Record 2: No time"
        info = analysis.to_dict()["recordInfo"]
        assert info["rtoA"] == "yes"
        assert info["rtoB"] is None

    def test_no_air_volume_data(self, registry, make_record):
        a = self._add(make_record())
        b = self._add(make_record(speeds={EXHAUST: (None, 20.0)}))

        analysis = RecordComparer(registry).compare([a.id, b.id], self._lookup).value

        assert analysis.air_volume is None
        assert analysis.to_dict()["airVolumeData"] is None

    def test_temperature_series_shape(self, registry, make_record):
        a = self._add(make_record())
        b = self._add(make_record())

        temp = RecordComparer(registry).compare([a.id, b.id], self._lookup).value.temperature

        assert len(temp.labels) == 8
        assert temp.labels[0] == "入口"
        assert len(temp.datasets) == 10
        assert temp.datasets[0].label == "Record 1 - 1 (right)"
        assert temp.datasets[-1].label == "Record 2 - 5 (left)"

    def test_symmetry(self, registry, make_record):
        a = self._add(make_record(speeds={EXHAUST: (10.0, 20.0)}))
        b = self._add(make_record(speeds={SUPPLY: (8.0, 30.0), EXHAUST: (4.0, 20.0)}))
        comparer = RecordComparer(registry)

        ab = comparer.compare([a.id, b.id], self._lookup).value.air_volume
        ba = comparer.compare([b.id, a.id], self._lookup).value.air_volume

        assert set(ab.keys) == set(ba.keys)
        for key in ab.keys:
            i, j = ab.keys.index(key), ba.keys.index(key)
            assert ab.datasets_for(1)[0].data[i] == pytest.approx(ba.datasets_for(2)[0].data[j])
            assert ab.datasets_for(2)[0].data[i] == pytest.approx(ba.datasets_for(1)[0].data[j])

    def test_cross_model_labels(self, registry, make_record):
        a = self._add(make_record(dryer_model="vt8", speeds={EXHAUST: (10.0, 20.0)}))
        b = self._add(make_record(dryer_model="vt1", speeds={"vt1_3f_exhaust": (6.0, 20.0)}))

        air = RecordComparer(registry).compare([a.id, b.id], self._lookup).value.air_volume

        assert air.labels == ["7F 排氣", "3F 排氣"]
        assert air.datasets_for(1)[0].data[1] == 0.0
