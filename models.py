import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional

from errors import MalformedPersistedRecord


def utcnow():
    return datetime.now(timezone.utc)


def to_iso(value):
    return value.isoformat().replace("+00:00", "Z")


def parse_iso(value):
    if not isinstance(value, str) or not value:
        raise ValueError(f"not an ISO-8601 string: {value!r}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def next_scan_id(previous=None):
    """Millisecond timestamp id, bumped past ``previous`` when the clock has not moved."""
    candidate = int(time.time() * 1000)
    if previous is not None:
        try:
            candidate = max(candidate, int(previous) + 1)
        except (TypeError, ValueError):
            pass
    return str(candidate)


# --- DEVICE / ASSET ---
@dataclass(frozen=True)
class DeviceInfo:
    type: str
    model: Optional[str] = None
    serial: Optional[str] = None
    status: Optional[str] = "Active"

    def to_dict(self):
        data = {"type": self.type, "status": self.status}
        if self.model:
            data["model"] = self.model
        if self.serial:
            data["serial"] = self.serial
        return data

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise ValueError("deviceInfo must be an object")
        return cls(
            type=str(data.get("type") or "Device"),
            model=data.get("model") or None,
            serial=data.get("serial") or None,
            status=data.get("status") or "Active",
        )

    def describe(self):
        text = self.type
        if self.model:
            text += f" ({self.model})"
        if self.serial:
            text += f" - {self.serial}"
        return text


@dataclass(frozen=True)
class AssetRef:
    id: Optional[int]
    asset_code: str
    name: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None
    location: Optional[str] = None
    serial_number: Optional[str] = None
    model: Optional[str] = None
    manufacturer: Optional[str] = None

    # camelCase keys used on the wire -> attribute names
    WIRE_KEYS = {
        "id": "id",
        "assetCode": "asset_code",
        "name": "name",
        "category": "category",
        "status": "status",
        "location": "location",
        "serialNumber": "serial_number",
        "model": "model",
        "manufacturer": "manufacturer",
    }

    @property
    def assetCode(self):
        return self.asset_code

    def to_dict(self):
        data = {}
        for wire_key, attr in self.WIRE_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                data[wire_key] = value
        return data

    @classmethod
    def from_dict(cls, data, code=None):
        if not isinstance(data, dict):
            raise ValueError("assetInfo must be an object")
        values = {}
        for wire_key, attr in cls.WIRE_KEYS.items():
            if wire_key in data:
                values[attr] = data[wire_key]
            elif attr in data:
                values[attr] = data[attr]
        values.setdefault("id", None)
        if not values.get("asset_code"):
            values["asset_code"] = code or ""
        return cls(**values)

    def describe(self):
        parts = [self.name or self.asset_code]
        if self.category:
            parts.append(self.category)
        if self.location:
            parts.append(f"@ {self.location}")
        return " ".join(parts)


# --- SCAN RESULT ---
@dataclass(frozen=True)
class ScanResult:
    data: str
    timestamp: datetime
    id: str
    location: str
    device_info: Optional[DeviceInfo] = None
    asset_info: Optional[AssetRef] = None

    def to_record(self):
        record = {
            "data": self.data,
            "timestamp": to_iso(self.timestamp),
            "id": self.id,
            "location": self.location,
        }
        if self.device_info is not None:
            record["deviceInfo"] = self.device_info.to_dict()
        if self.asset_info is not None:
            record["assetInfo"] = self.asset_info.to_dict()
        return record

    @classmethod
    def from_record(cls, record):
        """Rebuild a result from its persisted form, raising MalformedPersistedRecord on bad input."""
        try:
            if not isinstance(record, dict):
                raise ValueError("record must be an object")
            data = record["data"]
            record_id = record["id"]
            location = record["location"]
            if not isinstance(data, str) or not isinstance(location, str) or not location.strip():
                raise ValueError("data and location must be strings, location non-empty")
            device_info = record.get("deviceInfo")
            asset_info = record.get("assetInfo")
            return cls(
                data=data,
                timestamp=parse_iso(record["timestamp"]),
                id=str(record_id),
                location=location,
                device_info=DeviceInfo.from_dict(device_info) if device_info else None,
                asset_info=AssetRef.from_dict(asset_info) if asset_info else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedPersistedRecord(f"Skipping malformed scan record: {e}") from e

    def display_name(self):
        # Asset details take display priority over the parsed device guess.
        if self.asset_info is not None:
            return self.asset_info.describe()
        if self.device_info is not None:
            return self.device_info.describe()
        return self.data


@dataclass
class ScanEdit:
    """Form values of the review dialog for a pending or stored scan."""
    qr_data: str = ""
    location: str = ""
    device_type: str = ""
    device_model: str = ""
    device_serial: str = ""
    device_status: str = "Active"

    @classmethod
    def from_result(cls, result):
        device = result.device_info
        return cls(
            qr_data=result.data,
            location=result.location,
            device_type=device.type if device else "",
            device_model=(device.model or "") if device else "",
            device_serial=(device.serial or "") if device else "",
            device_status=(device.status or "Active") if device else "Active",
        )

    def apply(self, result):
        device_info = None
        if self.device_type.strip():
            device_info = DeviceInfo(
                type=self.device_type.strip(),
                model=self.device_model.strip() or None,
                serial=self.device_serial.strip() or None,
                status=self.device_status or "Active",
            )
        return replace(
            result,
            data=self.qr_data,
            location=self.location.strip(),
            device_info=device_info,
        )


# --- DERIVED ---
@dataclass
class LocationStat:
    location: str
    count: int
    last_scan: datetime
    distinct_devices: List[DeviceInfo] = field(default_factory=list)

    def to_dict(self):
        return {
            "location": self.location,
            "count": self.count,
            "devices": [d.to_dict() for d in self.distinct_devices],
            "lastScan": to_iso(self.last_scan),
        }


@dataclass(frozen=True)
class CaptureDevice:
    id: str
    label: str = ""

    @property
    def is_back_facing(self):
        return "back" in (self.label or "").lower()
