import json

import pytest

import config
from conftest import MemoryStorage, make_result
from database import LocalStorage
from errors import LocationMissing
from store import LocationBook, ScanRecordStore


def test_append_writes_through_and_reloads(storage):
    store = ScanRecordStore(storage)
    store.append(make_result("1", location="Dock1", minutes=0))
    store.append(make_result("2", location="Office", serial="S2", minutes=5))

    persisted = json.loads(storage.get(config.SCAN_RESULTS_KEY))
    assert [r["id"] for r in persisted] == ["2", "1"]

    restarted = ScanRecordStore(storage)
    assert restarted.load_persisted() == store.results
    assert len(restarted) == 2


def test_ledger_is_newest_first(storage):
    store = ScanRecordStore(storage)
    for i in range(3):
        store.append(make_result(str(i), minutes=i))
    assert [r.id for r in store.results] == ["2", "1", "0"]


def test_replace_existing_keeps_position(storage):
    store = ScanRecordStore(storage)
    store.append(make_result("1"))
    store.append(make_result("2"))
    store.replace("1", make_result("1", location="Office"))
    assert [(r.id, r.location) for r in store.results] == [("2", "Warehouse"), ("1", "Office")]


def test_replace_unknown_id_inserts(storage):
    store = ScanRecordStore(storage)
    store.append(make_result("1"))
    store.replace("9", make_result("9"))
    assert [r.id for r in store.results] == ["9", "1"]
    assert store.get("9").id == "9"


def test_empty_location_is_rejected(storage):
    store = ScanRecordStore(storage)
    with pytest.raises(LocationMissing):
        store.append(make_result("1", location="  "))
    assert storage.get(config.SCAN_RESULTS_KEY) is None


def test_clear_all_empties_storage(storage):
    store = ScanRecordStore(storage)
    store.append(make_result("1"))
    store.clear_all()
    assert store.results == []
    assert storage.get(config.SCAN_RESULTS_KEY) is None
    assert ScanRecordStore(storage).load_persisted() == []


def test_malformed_entries_are_skipped_individually():
    good = make_result("1").to_record()
    raw = json.dumps([good, {"id": "2"}, "junk", dict(good, id="3", timestamp="not-a-date")])
    store = ScanRecordStore(MemoryStorage({config.SCAN_RESULTS_KEY: raw}))
    loaded = store.load_persisted()
    assert [r.id for r in loaded] == ["1"]


@pytest.mark.parametrize("raw", ["{not json", '{"data": "x"}', ""])
def test_unreadable_ledger_loads_empty(raw):
    store = ScanRecordStore(MemoryStorage({config.SCAN_RESULTS_KEY: raw}))
    assert store.load_persisted() == []


def test_filter_and_locations(storage):
    store = ScanRecordStore(storage)
    store.append(make_result("1", location="Dock1"))
    store.append(make_result("2", location="Office"))
    store.append(make_result("3", location="Dock1"))
    assert [r.id for r in store.filter_by_location("Dock1")] == ["3", "1"]
    assert len(store.filter_by_location("all")) == 3
    assert store.locations() == ["Dock1", "Office"]


def test_store_on_database_storage(db):
    store = ScanRecordStore(LocalStorage(db))
    store.append(make_result("1", location="Dock1", serial="S1"))
    assert ScanRecordStore(LocalStorage(db)).load_persisted() == store.results


def test_location_book_defaults_and_add(storage):
    book = LocationBook(storage)
    assert book.load() == config.DEFAULT_LOCATIONS
    assert book.add("  Dock 1 ") == "Dock 1"
    assert book.add("Warehouse") == "Warehouse"
    assert book.add("   ") == ""
    assert LocationBook(storage).load() == config.DEFAULT_LOCATIONS + ["Dock 1"]


def test_location_book_ignores_malformed_list():
    book = LocationBook(MemoryStorage({config.LOCATIONS_KEY: '{"a": 1}'}))
    assert book.load() == config.DEFAULT_LOCATIONS
