"""Shared fixtures: temporary database, in-memory storage and fake collaborators."""
from datetime import datetime, timedelta, timezone

import pytest

from database import Database
from errors import LookupFailure, PersistenceFailure
from models import AssetRef, CaptureDevice, DeviceInfo, ScanResult

BASE_TIME = datetime(2026, 10, 1, 9, 0, 0, tzinfo=timezone.utc)


class MemoryStorage:
    def __init__(self, initial=None):
        self.values = dict(initial or {})

    def get(self, key):
        return self.values.get(key)

    def set(self, key, value):
        self.values[key] = value

    def remove(self, key):
        self.values.pop(key, None)


class FakeHandle:
    def __init__(self, device_id, on_decode, on_error):
        self.device_id = device_id
        self.on_decode = on_decode
        self.on_error = on_error
        self.stopped = False


class FakeCapture:
    def __init__(self, devices=None, start_error=None, list_error=None):
        self.devices = devices if devices is not None else [CaptureDevice(id="cam0", label="Integrated Camera")]
        self.start_error = start_error
        self.list_error = list_error
        self.handles = []
        self.stop_calls = 0

    def list_devices(self):
        if self.list_error is not None:
            raise self.list_error
        return list(self.devices)

    def start(self, device_id, on_decode, on_error):
        if self.start_error is not None:
            raise self.start_error
        handle = FakeHandle(device_id, on_decode, on_error)
        self.handles.append(handle)
        return handle

    def stop(self, handle):
        self.stop_calls += 1
        handle.stopped = True

    @property
    def active(self):
        return [h for h in self.handles if not h.stopped]

    def emit(self, text):
        """Deliver a decode from the most recently started handle, live or not."""
        return self.handles[-1].on_decode(text)


class FakeLookup:
    def __init__(self, assets=None, fail=False):
        self.assets = dict(assets or {})
        self.fail = fail
        self.calls = []

    def lookup_by_code(self, code):
        self.calls.append(code)
        if self.fail:
            raise LookupFailure("network down")
        return self.assets.get(code)


class FakePersistence:
    def __init__(self, fail=False):
        self.fail = fail
        self.saved = []

    def save_scan(self, result, user_id=None):
        if self.fail:
            raise PersistenceFailure("backend unavailable")
        self.saved.append((result, user_id))
        return {"id": len(self.saved)}


class FakeScheduler:
    def __init__(self):
        self.calls = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.calls.append(timer)
        return timer

    def run_pending(self):
        for timer in list(self.calls):
            if not timer.cancelled and not timer.fired:
                timer.fired = True
                timer.callback()


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


def make_result(scan_id, location="Warehouse", data="ASSET007", serial=None, minutes=0, asset=None):
    device = DeviceInfo(type="Laptop", serial=serial) if serial is not None else None
    return ScanResult(
        data=data,
        timestamp=BASE_TIME + timedelta(minutes=minutes),
        id=str(scan_id),
        location=location,
        device_info=device,
        asset_info=asset,
    )


@pytest.fixture
def db(tmp_path):
    database = Database(f"sqlite:///{tmp_path / 'test.db'}")
    yield database
    database.dispose()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def capture():
    return FakeCapture()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def asset007():
    return AssetRef(id=7, asset_code="ASSET007", name="Dell Latitude", category="Laptop", location="Dock1")
