"""OpenCV camera capture with pyzbar decoding.

Implements the capture-device API used by ``ScanSession``:
``list_devices()``, ``start(device_id, on_decode, on_error)`` and ``stop(handle)``.
Frames are read and decoded on a worker thread; callbacks run on that thread.
"""
import logging
import threading
import time

import cv2
from pyzbar.pyzbar import decode

import config
from models import CaptureDevice

logger = logging.getLogger(__name__)

MAX_READ_FAILURES = 30


def decode_frame(frame):
    """Return the text of every QR/barcode found in a BGR frame."""
    texts = []
    for obj in decode(frame):
        try:
            texts.append(obj.data.decode("utf-8"))
        except UnicodeDecodeError:
            texts.append(obj.data.decode("latin-1"))
    return texts


class CameraHandle:
    def __init__(self, device_id, capture, on_decode, on_error, fps):
        self.device_id = device_id
        self.capture = capture
        self.on_decode = on_decode
        self.on_error = on_error
        self.interval = 1.0 / fps if fps else 0
        self._stop = threading.Event()
        self.thread = threading.Thread(target=self._run, name=f"camera-{device_id}", daemon=True)

    @property
    def running(self):
        return self.thread.is_alive() and not self._stop.is_set()

    def start(self):
        self.thread.start()

    def stop(self, timeout=2.0):
        self._stop.set()
        # Called from inside a decode callback: the loop exits as soon as it returns.
        if threading.current_thread() is not self.thread and self.thread.is_alive():
            self.thread.join(timeout)

    def wait_released(self, timeout=2.0):
        if threading.current_thread() is not self.thread and self.thread.is_alive():
            self.thread.join(timeout)

    def _run(self):
        failures = 0
        try:
            while not self._stop.is_set():
                ok, frame = self.capture.read()
                if not ok:
                    failures += 1
                    if failures >= MAX_READ_FAILURES:
                        self.on_error(OSError("Camera stream lost; the device may be in use elsewhere"))
                        break
                    time.sleep(self.interval)
                    continue
                failures = 0
                for text in decode_frame(frame):
                    if self._stop.is_set():
                        break
                    self.on_decode(text)
                if self.interval:
                    self._stop.wait(self.interval)
        except Exception as e:
            logger.warning("Camera %s worker failed: %s", self.device_id, e)
            self.on_error(e)
        finally:
            self.capture.release()
            logger.debug("Camera %s released", self.device_id)


class OpenCVCamera:
    def __init__(self, indexes=None, fps=config.SCAN_FPS):
        self.indexes = list(indexes if indexes is not None else config.CAMERA_INDEXES)
        self.fps = fps
        self._handles = {}

    def list_devices(self):
        devices = []
        for index in self.indexes:
            handle = self._handles.get(str(index))
            if handle is not None and handle.running:
                devices.append(CaptureDevice(id=str(index), label=f"Camera {index}"))
                continue
            cap = cv2.VideoCapture(index)
            try:
                if cap.isOpened():
                    devices.append(CaptureDevice(id=str(index), label=f"Camera {index}"))
            finally:
                cap.release()
        return devices

    def start(self, device_id, on_decode, on_error):
        # A handle stopped from its own decode callback may still be unwinding.
        previous = self._handles.pop(device_id, None)
        if previous is not None:
            previous.stop()
            previous.wait_released()

        cap = cv2.VideoCapture(int(device_id))
        if not cap.isOpened():
            cap.release()
            raise OSError(f"Camera {device_id} could not be opened; it may be in use by another application")

        handle = CameraHandle(device_id, cap, on_decode, on_error, self.fps)
        self._handles[device_id] = handle
        handle.start()
        logger.info("Camera %s started", device_id)
        return handle

    def stop(self, handle):
        handle.stop()
        if not handle.thread.is_alive() and self._handles.get(handle.device_id) is handle:
            del self._handles[handle.device_id]
