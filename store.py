import json
import logging
import threading

import config
from errors import LocationMissing, MalformedPersistedRecord
from models import ScanResult

logger = logging.getLogger(__name__)


class ScanRecordStore:
    """Ordered scan ledger, newest first, written through to durable storage.

    ``storage`` is any object with ``get(key)``, ``set(key, value)`` and
    ``remove(key)`` over strings.
    """

    def __init__(self, storage, key=config.SCAN_RESULTS_KEY):
        self.storage = storage
        self.key = key
        self._results = []
        self._lock = threading.RLock()

    @property
    def results(self):
        with self._lock:
            return list(self._results)

    def __len__(self):
        return len(self._results)

    def __iter__(self):
        return iter(self.results)

    def get(self, scan_id):
        with self._lock:
            for result in self._results:
                if result.id == scan_id:
                    return result
        return None

    def append(self, result):
        self._check(result)
        with self._lock:
            self._commit([result] + self._results)

    def replace(self, scan_id, updated):
        self._check(updated)
        with self._lock:
            results = list(self._results)
            for index, existing in enumerate(results):
                if existing.id == scan_id:
                    results[index] = updated
                    break
            else:
                results.insert(0, updated)
            self._commit(results)

    def clear_all(self):
        with self._lock:
            self.storage.remove(self.key)
            self._results = []
        logger.info("Scan ledger cleared")

    def load_persisted(self):
        raw = self.storage.get(self.key)
        loaded = []
        if raw:
            try:
                records = json.loads(raw)
            except ValueError:
                logger.warning("Stored scan ledger is not valid JSON; starting empty")
                records = []
            if not isinstance(records, list):
                logger.warning("Stored scan ledger is not a list; starting empty")
                records = []
            for record in records:
                try:
                    loaded.append(ScanResult.from_record(record))
                except MalformedPersistedRecord as e:
                    logger.warning(e.message)
        with self._lock:
            self._results = loaded
        return list(loaded)

    def filter_by_location(self, location):
        if not location or location == "all":
            return self.results
        return [r for r in self.results if r.location == location]

    def locations(self):
        seen = []
        for result in self.results:
            if result.location not in seen:
                seen.append(result.location)
        return seen

    # --- INTERNALS ---
    def _check(self, result):
        if not result.location or not result.location.strip():
            raise LocationMissing("A scan cannot be stored without a location.")

    def _commit(self, results):
        payload = json.dumps([r.to_record() for r in results])
        self.storage.set(self.key, payload)
        self._results = results


class LocationBook:
    """Operator's saved scanning locations."""

    def __init__(self, storage, key=config.LOCATIONS_KEY, defaults=None):
        self.storage = storage
        self.key = key
        self.defaults = list(defaults if defaults is not None else config.DEFAULT_LOCATIONS)
        self.locations = list(self.defaults)

    def load(self):
        raw = self.storage.get(self.key)
        if raw:
            try:
                parsed = json.loads(raw)
            except ValueError:
                parsed = None
            if isinstance(parsed, list) and all(isinstance(x, str) for x in parsed):
                self.locations = parsed
            else:
                logger.warning("Stored location list is malformed; using defaults")
                self.locations = list(self.defaults)
        return list(self.locations)

    def add(self, location):
        location = (location or "").strip()
        if location and location not in self.locations:
            self.locations.append(location)
            self.storage.set(self.key, json.dumps(self.locations))
        return location
