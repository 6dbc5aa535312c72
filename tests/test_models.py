from datetime import timezone

import pytest

from conftest import BASE_TIME, make_result
from errors import MalformedPersistedRecord
from models import AssetRef, DeviceInfo, ScanEdit, ScanResult, next_scan_id, parse_iso, to_iso


def test_iso_timestamps_use_z_suffix():
    assert to_iso(BASE_TIME) == "2026-10-01T09:00:00Z"
    assert parse_iso("2026-10-01T09:00:00Z") == BASE_TIME
    assert parse_iso("2026-10-01T09:00:00.250Z").microsecond == 250000


def test_naive_iso_is_read_as_utc():
    assert parse_iso("2026-10-01T09:00:00").tzinfo == timezone.utc


def test_record_round_trip_keeps_enrichment():
    asset = AssetRef(id=3, asset_code="LAP3", name="ThinkPad")
    result = make_result("100", serial="SN1", asset=asset)
    record = result.to_record()
    assert record["timestamp"] == "2026-10-01T09:00:00Z"
    assert record["deviceInfo"] == {"type": "Laptop", "status": "Active", "serial": "SN1"}
    assert record["assetInfo"]["assetCode"] == "LAP3"
    assert ScanResult.from_record(record) == result


@pytest.mark.parametrize("record", [
    None,
    "text",
    {"data": "x", "id": "1", "location": "Dock1"},
    {"data": "x", "id": "1", "location": "", "timestamp": "2026-10-01T09:00:00Z"},
    {"data": "x", "id": "1", "location": "Dock1", "timestamp": "yesterday"},
    {"data": 5, "id": "1", "location": "Dock1", "timestamp": "2026-10-01T09:00:00Z"},
    {"data": "x", "id": "1", "location": "Dock1", "timestamp": "2026-10-01T09:00:00Z", "deviceInfo": "laptop"},
])
def test_malformed_records_are_rejected(record):
    with pytest.raises(MalformedPersistedRecord):
        ScanResult.from_record(record)


def test_next_scan_id_is_strictly_increasing():
    first = next_scan_id()
    second = next_scan_id(first)
    assert int(second) > int(first)
    assert int(next_scan_id("99999999999999")) == 100000000000000


def test_asset_ref_from_wire_and_snake_keys():
    wire = AssetRef.from_dict({"id": 1, "assetCode": "A1", "serialNumber": "S"})
    snake = AssetRef.from_dict({"id": 1, "asset_code": "A1", "serial_number": "S"})
    assert wire == snake
    assert wire.assetCode == "A1"
    assert AssetRef.from_dict({"id": 2, "name": "Desk"}, code="D2").asset_code == "D2"


def test_scan_edit_replaces_device_info():
    result = make_result("1", serial="OLD")
    edit = ScanEdit.from_result(result)
    assert edit.device_serial == "OLD"

    edit.device_serial = "NEW"
    edit.location = " Dock2 "
    updated = edit.apply(result)
    assert updated.device_info == DeviceInfo(type="Laptop", serial="NEW", status="Active")
    assert updated.location == "Dock2"
    assert updated.id == result.id
    assert updated.timestamp == result.timestamp


def test_scan_edit_without_type_drops_device_info():
    result = make_result("1", serial="OLD")
    edit = ScanEdit.from_result(result)
    edit.device_type = ""
    assert edit.apply(result).device_info is None


def test_display_prefers_asset_over_device():
    asset = AssetRef(id=1, asset_code="A1", name="Printer")
    assert make_result("1", serial="S1", asset=asset).display_name() == "Printer"
    assert make_result("1", serial="S1").display_name() == "Laptop - S1"
