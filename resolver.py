"""Turn raw scanner text into an asset code and an optional device guess.

The code chain is ordered, first match wins:

1. a JSON object carrying ``assetCode`` / ``asset_code``  -> ``Structured``
   (any other JSON object resolves to an empty ``Raw``)
2. a labelled ``assetCode: XYZ`` fragment (non-JSON text only), else the
   first alphanumeric token of three or more characters   -> ``PatternMatched``
3. the text itself                                        -> ``Raw``

Device extraction runs its own independent chain and never affects the code.
"""
import json
import re
from dataclasses import dataclass
from typing import Optional

from models import DeviceInfo

CODE_FIELDS = ("assetCode", "asset_code")

LABELED_CODE_PATTERN = re.compile(r"[\"']?asset_?code[\"']?\s*[:=]\s*[\"']?([A-Z0-9-]+)", re.IGNORECASE)
TOKEN_PATTERN = re.compile(r"[A-Z0-9]{3,}", re.IGNORECASE)

DEVICE_PATTERNS = {
    "serial": re.compile(r"(?:SN|Serial|S/N):?\s*([A-Z0-9-]+)", re.IGNORECASE),
    "model": re.compile(r"(?:Model|MOD):?\s*([A-Z0-9-]+(?:\s[A-Z0-9-]+)*?)(?=\s+(?:SN|Serial|S/N|Type|Device)\b|$)", re.IGNORECASE),
    "type": re.compile(r"(?:Type|Device):?\s*([A-Z0-9-]+(?:\s[A-Z0-9-]+)*?)(?=\s+(?:SN|Serial|S/N|Model|MOD)\b|$)", re.IGNORECASE),
}
DEVICE_TOKEN_PATTERN = re.compile(r"^[A-Z0-9-]{6,}$", re.IGNORECASE)


# --- TAGGED VARIANTS ---
@dataclass(frozen=True)
class ResolvedCode:
    code: str
    kind = "raw"

    @property
    def ok(self):
        return bool(self.code)


@dataclass(frozen=True)
class Structured(ResolvedCode):
    kind = "structured"


@dataclass(frozen=True)
class PatternMatched(ResolvedCode):
    kind = "pattern"


@dataclass(frozen=True)
class Raw(ResolvedCode):
    kind = "raw"


@dataclass(frozen=True)
class Resolution:
    payload: str
    resolved: ResolvedCode
    device_info: Optional[DeviceInfo] = None

    @property
    def code(self):
        return self.resolved.code

    @property
    def ok(self):
        return self.resolved.ok


def _load_json(text):
    try:
        return json.loads(text), True
    except (TypeError, ValueError):
        return None, False


def _parse_object(text):
    parsed, _ = _load_json(text)
    return parsed if isinstance(parsed, dict) else None


def resolve_code(text):
    text = text or ""
    parsed, is_json = _load_json(text)
    if isinstance(parsed, dict):
        for key in CODE_FIELDS:
            value = parsed.get(key)
            if value not in (None, ""):
                return Structured(str(value))
        # A structured payload without a code field carries no code at all.
        return Raw("")

    if not is_json:
        labeled = LABELED_CODE_PATTERN.search(text)
        if labeled:
            return PatternMatched(labeled.group(1))

    match = TOKEN_PATTERN.search(text)
    if match:
        return PatternMatched(match.group(0))
    return Raw(text)


def parse_device_info(text):
    text = text or ""
    parsed = _parse_object(text)
    if parsed is not None:
        if parsed.get("type") or parsed.get("model") or parsed.get("serial"):
            return DeviceInfo(
                type=str(parsed.get("type") or "Unknown Device"),
                model=_optional_str(parsed.get("model")),
                serial=_optional_str(parsed.get("serial")),
                status=str(parsed.get("status") or "Active"),
            )
    else:
        found = {}
        for key, pattern in DEVICE_PATTERNS.items():
            match = pattern.search(text)
            if match:
                found[key] = match.group(1).strip()
        if found:
            return DeviceInfo(
                type=found.get("type") or "Device",
                model=found.get("model"),
                serial=found.get("serial"),
                status="Active",
            )

    lowered = text.lower()
    if DEVICE_TOKEN_PATTERN.match(text) or "device" in lowered or "equipment" in lowered:
        return DeviceInfo(type="Device", serial=text, status="Active")
    return None


def _optional_str(value):
    if value in (None, ""):
        return None
    return str(value)


def resolve(text):
    return Resolution(payload=text or "", resolved=resolve_code(text), device_info=parse_device_info(text))
