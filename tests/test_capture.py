import threading

import pytest

np = pytest.importorskip("numpy")
pytest.importorskip("cv2")
pytest.importorskip("pyzbar.pyzbar")

import capture
from export import generate_qr


class FakeVideo:
    def __init__(self, frames):
        self.frames = list(frames)
        self.released = threading.Event()

    def read(self):
        if self.frames:
            return True, self.frames.pop(0)
        return True, None

    def release(self):
        self.released.set()


def test_decode_frame_reads_generated_qr():
    frame = np.array(generate_qr('{"assetCode":"ASSET007"}').get_image().convert("RGB"))
    assert capture.decode_frame(frame) == ['{"assetCode":"ASSET007"}']


def test_handle_stops_from_inside_decode_callback(monkeypatch):
    monkeypatch.setattr(capture, "decode_frame", lambda frame: ["ASSET007"] if frame is not None else [])
    video = FakeVideo(["frame", "frame", "frame"])
    decoded = []
    holder = {}

    def on_decode(text):
        decoded.append(text)
        holder["handle"].stop()

    handle = capture.CameraHandle("0", video, on_decode, lambda e: None, fps=100)
    holder["handle"] = handle
    handle.start()

    assert video.released.wait(2)
    handle.thread.join(2)
    assert decoded == ["ASSET007"]
    assert not handle.running


def test_handle_reports_lost_stream(monkeypatch):
    monkeypatch.setattr(capture, "MAX_READ_FAILURES", 2)

    class DeadVideo(FakeVideo):
        def read(self):
            return False, None

    errors = []
    video = DeadVideo([])
    handle = capture.CameraHandle("0", video, lambda t: None, errors.append, fps=100)
    handle.start()
    assert video.released.wait(2)
    handle.thread.join(2)
    assert len(errors) == 1
    assert isinstance(errors[0], OSError)
