"""Scanner error taxonomy.

Capture-device and network failures are converted into one of these
categories at the boundary, so the UI only ever handles ``ScannerError``.
"""


class ScannerError(Exception):
    default_message = "Scanner error."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class DeviceUnavailable(ScannerError):
    default_message = "No camera found on this device. Please connect a camera and refresh."


class PermissionDenied(ScannerError):
    default_message = "Camera permission denied. Please allow camera access and try again."


class DeviceBusy(ScannerError):
    default_message = "Camera is already in use by another application. Close it and press Start again."


class LocationMissing(ScannerError):
    default_message = "Please select or enter a location before scanning."


class ResolutionFailure(ScannerError):
    default_message = "Could not read an asset code from the scanned data."


class LookupFailure(ScannerError):
    default_message = "Asset lookup failed."


class PersistenceFailure(ScannerError):
    default_message = "Failed to save scan data."


class MalformedPersistedRecord(ScannerError):
    default_message = "Stored scan record is malformed."


class NotAuthorized(ScannerError):
    default_message = "Your role does not allow this action."

    def __init__(self, permission=None, message=None):
        self.permission = permission
        if message is None and permission:
            message = f"Denied: '{permission}' permission required."
        super().__init__(message)


def classify_capture_error(exc):
    if isinstance(exc, ScannerError):
        return exc
    if isinstance(exc, PermissionError):
        return PermissionDenied()
    text = str(exc).lower()
    if "permission" in text or "denied" in text or "not allowed" in text:
        return PermissionDenied()
    if "not found" in text or "no camera" in text or "no device" in text:
        return DeviceUnavailable()
    return DeviceBusy()
