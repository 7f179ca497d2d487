"""
Vehicle type labels.

Spreadsheets and older records spell vehicle types many ways ("3.5t",
"3.5 ton wide", "5축"); everything is normalized to the canonical labels below.
"""

import re
from typing import Iterable, Optional

from logiops.core.config import TonnageBand

VEHICLE_TYPES: list[str] = [
    "1톤",
    "1.4톤",
    "2.5톤",
    "3.5톤",
    "3.5톤광폭",
    "5톤",
    "5톤축",
    "8톤",
    "11톤",
    "14톤",
]

OVERSIZE_VEHICLE_TYPE = "대형"

_ALIASES: dict[str, str] = {
    "1.0톤": "1톤",
    "1 ton": "1톤",
    "3.5광": "3.5톤광폭",
    "3.5광폭": "3.5톤광폭",
    "3.5톤광": "3.5톤광폭",
    "3.5 ton wide": "3.5톤광폭",
    "3.5와이드": "3.5톤광폭",
    "3.5톤 와이드": "3.5톤광폭",
    "3.5wide": "3.5톤광폭",
    "5축": "5톤축",
    "5 ton axle": "5톤축",
    "5ton축": "5톤축",
    "5t축": "5톤축",
}


def _sanitize(value: str) -> str:
    key = value.strip().lower().replace("﹒", ".")
    key = key.replace("ton", "톤").replace("wide", "광폭").replace("와이드", "광폭")
    key = key.replace("axle", "축").replace("축차", "축")
    key = re.sub(r"[\s_\-/]+", "", key)
    key = re.sub(r"(\d+)\.0톤", r"\1톤", key)
    key = re.sub(r"(\d+)\.0(?=톤|광폭|축|$)", r"\1", key)
    key = key.replace("t", "톤")
    key = key.replace("톤톤", "톤").replace("광폭폭", "광폭")
    key = key.replace("톤광폭광폭", "톤광폭").replace("톤축축", "톤축")
    return key


def _build_lookup() -> dict[str, str]:
    lookup: dict[str, str] = {}
    for label in VEHICLE_TYPES:
        lookup[_sanitize(label)] = label
        # bare tonnage ("5") and the latin spelling ("5t") resolve too
        if label.endswith("톤"):
            lookup[_sanitize(label[:-1])] = label
    for alias, label in _ALIASES.items():
        lookup[_sanitize(alias)] = label
    return lookup


_LOOKUP = _build_lookup()


def normalize_vehicle_type(raw: Optional[str]) -> Optional[str]:
    """
    Resolve a free-form vehicle type to its canonical label.

    Args:
        raw: Label as typed, e.g. "3.5t", "5 ton axle", "11.0톤"

    Returns:
        Canonical label, or None when unrecognized
    """
    if not raw:
        return None
    key = _sanitize(str(raw))
    if not key:
        return None
    return _LOOKUP.get(key)


def is_known_vehicle_type(raw: Optional[str]) -> bool:
    return normalize_vehicle_type(raw) is not None


def vehicle_type_for_tonnage(
    ton: float,
    bands: Iterable[TonnageBand],
    oversize_label: str = OVERSIZE_VEHICLE_TYPE,
) -> str:
    """
    Pick the vehicle type for a tonnage: the first band with ``ton <= max_ton``.

    Tonnage above every band maps to ``oversize_label``.
    """
    for band in sorted(bands, key=lambda b: b.max_ton):
        if ton <= band.max_ton:
            return band.vehicle_type
    return oversize_label
