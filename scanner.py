"""Scan session controller.

States::

    IDLE -> REQUESTING -> SCANNING -> PAUSED (pending review) -> SCANNING | IDLE

The capture device is stopped synchronously on the first decode, so at most
one decode is ever live. The scan is offered for review only once its asset
lookup has finished. After the operator saves the pending scan the
session restarts itself after ``restart_delay`` seconds.

All transitions happen under one re-entrant lock because the OpenCV capture
delivers decodes on its own worker thread.
"""
import logging
import threading
from dataclasses import replace
from enum import Enum

import config
import resolver
from database import LocalStorage
from errors import (
    DeviceUnavailable, LocationMissing, NotAuthorized, PersistenceFailure,
    ScannerError, classify_capture_error,
)
from models import next_scan_id, utcnow, ScanResult
from permissions import has_permission, normalize_role
from services import build_services
from store import LocationBook, ScanRecordStore

logger = logging.getLogger(__name__)


class SessionState(Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    SCANNING = "scanning"
    PAUSED = "paused"


def choose_device(devices):
    """Prefer a back-facing camera, otherwise the first one listed."""
    if not devices:
        raise DeviceUnavailable()
    for device in devices:
        if device.is_back_facing:
            return device
    return devices[0]


def threading_scheduler(delay, callback):
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()
    return timer


class ScanSession:
    def __init__(self, capture, store, lookup=None, persistence=None, role=config.ROLE_USER,
                 user_id=None, restart_delay=config.RESTART_DELAY, scheduler=threading_scheduler,
                 resolve=resolver.resolve, clock=utcnow):
        self.capture = capture
        self.store = store
        self.lookup = lookup
        self.persistence = persistence
        self.role = normalize_role(role)
        self.user_id = user_id
        self.restart_delay = restart_delay
        self.scheduler = scheduler
        self.resolve = resolve
        self.clock = clock

        self.state = SessionState.IDLE
        self.location = ""
        self.has_camera = False
        self.error = None
        self.pending = None
        self.pending_resolution = None

        self.on_pending = None
        self.on_state_change = None

        self._handle = None
        self._in_flight = None
        self._restart = None
        self._last_id = None
        self._lock = threading.RLock()

    # --- PRECONDITIONS ---
    def set_location(self, location):
        with self._lock:
            self.location = (location or "").strip()

    def check_camera_support(self):
        try:
            devices = self.capture.list_devices()
        except Exception as e:
            self.error = classify_capture_error(e)
            logger.warning("Camera check failed: %s", e)
            self.has_camera = False
            return False

        self.has_camera = bool(devices)
        self.error = None if self.has_camera else DeviceUnavailable()
        return self.has_camera

    @property
    def is_scanning(self):
        return self.state is SessionState.SCANNING

    @property
    def is_resolving(self):
        """A code was decoded and its asset lookup has not finished yet."""
        return self._in_flight is not None

    def can(self, permission):
        return has_permission(self.role, permission)

    def _require(self, permission):
        if not self.can(permission):
            raise NotAuthorized(permission)

    # --- LIFECYCLE ---
    def start(self):
        self._require("use_qr_scanner")
        with self._lock:
            if self.state in (SessionState.REQUESTING, SessionState.SCANNING):
                return self.state
            if self.pending is not None or self._in_flight is not None:
                raise ScannerError("Save or cancel the pending scan before scanning again.")
            if not self.location:
                raise LocationMissing()
            if not self.has_camera:
                raise DeviceUnavailable()

            self._cancel_restart()
            self._transition(SessionState.REQUESTING)
            try:
                device = choose_device(self.capture.list_devices())
                self._handle = self.capture.start(device.id, self._on_decode, self._on_error)
            except Exception as e:
                error = classify_capture_error(e)
                logger.warning("Failed to start camera: %s", e)
                self._release_device()
                if isinstance(error, DeviceUnavailable):
                    self.has_camera = False
                self.error = error
                self._transition(SessionState.IDLE)
                raise error from e

            self.error = None
            self._transition(SessionState.SCANNING)
            return self.state

    def stop(self):
        with self._lock:
            self._cancel_restart()
            handle = self._detach_device()
            if self.pending is not None:
                logger.info("Discarding pending scan %s", self.pending.id)
            self._discard_pending()
            self._transition(SessionState.IDLE)
        # The worker may be waiting on the lock inside a decode callback.
        self._stop_device(handle)

    # --- DECODE ---
    def _on_decode(self, text):
        with self._lock:
            if self.state is not SessionState.SCANNING:
                logger.debug("Ignoring decode while %s", self.state.value)
                return None
            self._release_device()
            self._transition(SessionState.PAUSED)

            resolution = self.resolve(text)
            self._last_id = next_scan_id(self._last_id)
            staged = ScanResult(
                data=text,
                timestamp=self.clock(),
                id=self._last_id,
                location=self.location,
                device_info=resolution.device_info,
            )
            self._in_flight = staged

        asset = self._enrich(resolution)

        with self._lock:
            # stop() or cancel() voided the scan while the lookup ran.
            if self._in_flight is not staged:
                logger.info("Dropping scan %s; the session moved on during lookup", staged.id)
                return None
            self._in_flight = None
            pending = replace(staged, asset_info=asset) if asset is not None else staged
            self.pending = pending
            self.pending_resolution = resolution

        if self.on_pending is not None:
            self.on_pending(pending)
        return pending

    def _enrich(self, resolution):
        if not resolution.ok:
            logger.info("No asset code in scanned data; skipping lookup")
            return None
        if self.lookup is None:
            return None
        try:
            return self.lookup.lookup_by_code(resolution.code)
        except Exception as e:
            # Lookup never blocks the scan; the operator still gets the device details.
            logger.warning("Asset lookup for %r failed: %s", resolution.code, e)
            return None

    def _on_error(self, exc):
        with self._lock:
            if self.state is not SessionState.SCANNING:
                return
            self.error = classify_capture_error(exc)
            logger.warning("Camera error while scanning: %s", exc)
            self._release_device()
            self._transition(SessionState.IDLE)

    # --- REVIEW ---
    def edit_pending(self, edit):
        self._require("use_qr_scanner")
        with self._lock:
            if self.pending is None:
                raise ScannerError("There is no pending scan to edit.")
            self.pending = edit.apply(self.pending)
            return self.pending

    def confirm(self):
        """Persist the pending scan, add it to the ledger and schedule the restart.

        On a backend failure the pending scan is kept so the operator can retry.
        """
        self._require("use_qr_scanner")
        with self._lock:
            pending = self.pending
            if pending is None or self.state is not SessionState.PAUSED:
                raise ScannerError("There is no pending scan to save.")
        if not pending.location.strip():
            raise LocationMissing()

        try:
            if self.persistence is not None:
                self.persistence.save_scan(pending, self.user_id)
            self.store.replace(pending.id, pending)
        except ScannerError as e:
            self.error = e
            logger.error("Saving scan %s failed: %s", pending.id, e)
            raise
        except Exception as e:
            self.error = PersistenceFailure(f"Failed to save scan data: {e}")
            logger.error("Saving scan %s failed: %s", pending.id, e)
            raise self.error from e

        with self._lock:
            if self.pending is pending:
                self.pending = None
                self.pending_resolution = None
            self.error = None
            if self.location and self.has_camera:
                self._restart = self.scheduler(self.restart_delay, self._auto_restart)
            else:
                self._transition(SessionState.IDLE)
        logger.info("Scan %s saved at %s", pending.id, pending.location)
        return pending

    def cancel(self):
        with self._lock:
            if self.pending is not None:
                logger.info("Scan %s cancelled", self.pending.id)
            self._discard_pending()
            self._cancel_restart()
            handle = self._detach_device()
            self._transition(SessionState.IDLE)
        self._stop_device(handle)

    def _auto_restart(self):
        with self._lock:
            self._restart = None
            if self.state is not SessionState.PAUSED or self.pending is not None or self._in_flight is not None:
                return
            if not self.location or not self.has_camera:
                self._transition(SessionState.IDLE)
                return
            try:
                self.start()
            except ScannerError as e:
                logger.warning("Automatic restart failed: %s", e.message)
                self.error = e
                self._transition(SessionState.IDLE)

    # --- LEDGER ---
    def edit_existing(self, scan_id, edit):
        self._require("edit_qr_data")
        existing = self.store.get(scan_id)
        if existing is None:
            raise ScannerError(f"Scan {scan_id} not found.")
        updated = edit.apply(existing)
        if not updated.location:
            raise LocationMissing()
        self.store.replace(scan_id, updated)
        return updated

    def clear_ledger(self):
        self._require("edit_qr_data")
        self.store.clear_all()

    # --- INTERNALS ---
    def _release_device(self):
        self._stop_device(self._detach_device())

    def _detach_device(self):
        handle, self._handle = self._handle, None
        return handle

    def _stop_device(self, handle):
        if handle is None:
            return
        try:
            self.capture.stop(handle)
        except Exception as e:
            logger.warning("Error stopping camera: %s", e)

    def _discard_pending(self):
        self.pending = None
        self.pending_resolution = None
        self._in_flight = None

    def _cancel_restart(self):
        restart, self._restart = self._restart, None
        if restart is not None and hasattr(restart, "cancel"):
            restart.cancel()

    def _transition(self, state):
        if state is self.state:
            return
        logger.info("Scan session %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_state_change is not None:
            self.on_state_change(state)


class ScannerFeature:
    """Owns the scan ledger, saved locations and the session for one operator."""

    def __init__(self, db, capture, role=config.ROLE_USER, user_id=None, backend=None, **session_options):
        self.storage = LocalStorage(db)
        self.store = ScanRecordStore(self.storage)
        self.locations = LocationBook(self.storage)
        lookup, persistence = build_services(db, backend)
        self.session = ScanSession(
            capture, self.store, lookup=lookup, persistence=persistence,
            role=role, user_id=user_id, **session_options
        )

    def load(self):
        self.store.load_persisted()
        self.locations.load()
        self.session.check_camera_support()
        return self
