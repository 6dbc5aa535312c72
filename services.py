"""Asset lookup and scan persistence collaborators.

Each concern has a REST implementation for the inventory API and a local
implementation backed by the SQLite ``Database``. Both raise the scanner
error taxonomy, never raw ``requests`` or SQLAlchemy exceptions.
"""
import logging
from datetime import timezone
from urllib.parse import quote

import requests
from sqlalchemy.exc import SQLAlchemyError

import config
from errors import LookupFailure, PersistenceFailure
from models import AssetRef, to_iso

logger = logging.getLogger(__name__)


def scan_payload(result, user_id=None):
    payload = {
        "scanDate": to_iso(result.timestamp),
        "scanLocation": result.location,
        "userId": user_id,
    }
    if result.asset_info is not None and result.asset_info.id is not None:
        payload["assetId"] = result.asset_info.id
    return payload


# --- ASSET LOOKUP ---
class RestAssetLookup:
    def __init__(self, base_url=None, timeout=None, session=None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.timeout = timeout or config.API_TIMEOUT
        self.http = session or requests.Session()

    def lookup_by_code(self, code):
        url = f"{self.base_url}/assets/code/{quote(code, safe='')}"
        try:
            response = self.http.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise LookupFailure(f"Asset lookup for {code!r} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise LookupFailure(f"Asset lookup for {code!r} returned HTTP {response.status_code}")
        try:
            return AssetRef.from_dict(response.json(), code=code)
        except ValueError as e:
            raise LookupFailure(f"Asset lookup for {code!r} returned an unreadable body") from e


class DatabaseAssetLookup:
    def __init__(self, db):
        self.db = db

    def lookup_by_code(self, code):
        try:
            asset = self.db.get_asset_by_code(code)
        except SQLAlchemyError as e:
            raise LookupFailure(f"Asset lookup for {code!r} failed: {e}") from e
        return AssetRef.from_dict(asset, code=code) if asset else None


# --- SCAN PERSISTENCE ---
class RestScanPersistence:
    def __init__(self, base_url=None, timeout=None, session=None):
        self.base_url = (base_url or config.API_BASE_URL).rstrip("/")
        self.timeout = timeout or config.API_TIMEOUT
        self.http = session or requests.Session()

    def save_scan(self, result, user_id=None):
        try:
            response = self.http.post(f"{self.base_url}/scans", json=scan_payload(result, user_id), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise PersistenceFailure(f"Failed to save scan data: {e}") from e
        try:
            return response.json()
        except ValueError:
            return None


class DatabaseScanPersistence:
    def __init__(self, db):
        self.db = db

    def save_scan(self, result, user_id=None):
        asset_id = result.asset_info.id if result.asset_info is not None else None
        # SQLite DateTime columns hold naive UTC
        scan_date = result.timestamp
        if scan_date.tzinfo is not None:
            scan_date = scan_date.astimezone(timezone.utc).replace(tzinfo=None)
        try:
            scan_id = self.db.add_scan(asset_id, scan_date, result.location, user_id)
        except SQLAlchemyError as e:
            raise PersistenceFailure(f"Failed to save scan data: {e}") from e
        return {"id": scan_id, **scan_payload(result, user_id)}


def build_services(db, backend=None):
    """Return ``(lookup, persistence)`` for the configured backend."""
    backend = backend or config.BACKEND
    if backend == "rest":
        return RestAssetLookup(), RestScanPersistence()
    return DatabaseAssetLookup(db), DatabaseScanPersistence(db)
