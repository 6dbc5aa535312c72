import pytest
import requests

from conftest import BASE_TIME, make_result
from errors import LookupFailure, PersistenceFailure
from models import AssetRef
from services import (
    DatabaseAssetLookup, DatabaseScanPersistence, RestAssetLookup, RestScanPersistence,
    build_services, scan_payload,
)


class StubResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body

    def json(self):
        if self.body is None:
            raise ValueError("no body")
        return self.body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class StubHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def get(self, url, timeout=None):
        self.requests.append(("GET", url, None))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, json=None, timeout=None):
        self.requests.append(("POST", url, json))
        if self.error:
            raise self.error
        return self.response


def test_rest_lookup_found():
    http = StubHttp(StubResponse(200, {"id": 7, "assetCode": "ASSET007", "name": "Dell"}))
    lookup = RestAssetLookup("http://inv.local/api/", session=http)
    asset = lookup.lookup_by_code("ASSET007")
    assert asset == AssetRef(id=7, asset_code="ASSET007", name="Dell")
    assert http.requests[0][1] == "http://inv.local/api/assets/code/ASSET007"


def test_rest_lookup_quotes_code():
    http = StubHttp(StubResponse(404))
    RestAssetLookup("http://inv.local/api", session=http).lookup_by_code("A/B 1")
    assert http.requests[0][1] == "http://inv.local/api/assets/code/A%2FB%201"


def test_rest_lookup_not_found_is_none():
    lookup = RestAssetLookup("http://inv.local/api", session=StubHttp(StubResponse(404)))
    assert lookup.lookup_by_code("NOPE") is None


@pytest.mark.parametrize("http", [
    StubHttp(error=requests.ConnectionError("refused")),
    StubHttp(StubResponse(500, {})),
    StubHttp(StubResponse(200, None)),
])
def test_rest_lookup_failures(http):
    with pytest.raises(LookupFailure):
        RestAssetLookup("http://inv.local/api", session=http).lookup_by_code("ASSET007")


def test_scan_payload_shape():
    result = make_result("1", location="Dock1", asset=AssetRef(id=7, asset_code="ASSET007"))
    assert scan_payload(result, 11) == {
        "assetId": 7,
        "scanDate": "2026-10-01T09:00:00Z",
        "scanLocation": "Dock1",
        "userId": 11,
    }
    assert "assetId" not in scan_payload(make_result("2"), 11)


def test_rest_persistence_posts_scan():
    http = StubHttp(StubResponse(201, {"id": 99}))
    persistence = RestScanPersistence("http://inv.local/api", session=http)
    assert persistence.save_scan(make_result("1", location="Dock1"), 5) == {"id": 99}
    method, url, body = http.requests[0]
    assert (method, url) == ("POST", "http://inv.local/api/scans")
    assert body["scanLocation"] == "Dock1"
    assert body["userId"] == 5


@pytest.mark.parametrize("http", [
    StubHttp(error=requests.Timeout("slow")),
    StubHttp(StubResponse(500)),
])
def test_rest_persistence_failures(http):
    with pytest.raises(PersistenceFailure):
        RestScanPersistence("http://inv.local/api", session=http).save_scan(make_result("1"))


def test_database_lookup_by_code_then_serial(db):
    db.add_asset({"assetCode": "LAP1", "name": "ThinkPad", "serialNumber": "PF-1"})
    lookup = DatabaseAssetLookup(db)
    assert lookup.lookup_by_code("LAP1").name == "ThinkPad"
    assert lookup.lookup_by_code("PF-1").asset_code == "LAP1"
    assert lookup.lookup_by_code("NOPE") is None


def test_database_persistence_records_scan_and_stamps_asset(db):
    asset_id = db.add_asset({"assetCode": "LAP1"})
    result = make_result("1", location="Dock1", asset=AssetRef(id=asset_id, asset_code="LAP1"))
    saved = DatabaseScanPersistence(db).save_scan(result, 3)
    assert saved["assetId"] == asset_id

    (scan,) = db.get_all_scans()
    assert scan["scanLocation"] == "Dock1"
    assert scan["userId"] == 3
    assert scan["scanDate"] == BASE_TIME.replace(tzinfo=None)


def test_build_services_selects_backend(db):
    lookup, persistence = build_services(db, "rest")
    assert isinstance(lookup, RestAssetLookup)
    assert isinstance(persistence, RestScanPersistence)
    lookup, persistence = build_services(db, "local")
    assert isinstance(lookup, DatabaseAssetLookup)
