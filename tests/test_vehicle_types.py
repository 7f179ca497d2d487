import pytest

from logiops.core.config import TonnageBand
from logiops.tools.vehicle_types import is_known_vehicle_type, normalize_vehicle_type, vehicle_type_for_tonnage

BANDS = [
    TonnageBand(max_ton=1.0, vehicle_type="1톤"),
    TonnageBand(max_ton=2.5, vehicle_type="2.5톤"),
    TonnageBand(max_ton=5.0, vehicle_type="5톤"),
    TonnageBand(max_ton=11.0, vehicle_type="11톤"),
]


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("5톤", "5톤"),
        ("5t", "5톤"),
        ("5", "5톤"),
        ("11.0톤", "11톤"),
        ("3.5t", "3.5톤"),
        ("3.5광폭", "3.5톤광폭"),
        ("3.5 ton wide", "3.5톤광폭"),
        ("5축", "5톤축"),
        ("5 ton axle", "5톤축"),
        ("1.0톤", "1톤"),
    ],
)
def test_normalize_vehicle_type(raw, expected):
    assert normalize_vehicle_type(raw) == expected


def test_unknown_vehicle_type():
    assert normalize_vehicle_type("트레일러") is None
    assert normalize_vehicle_type("") is None
    assert not is_known_vehicle_type("99톤")


@pytest.mark.parametrize(
    "ton,expected",
    [(0.5, "1톤"), (1.0, "1톤"), (2.0, "2.5톤"), (4.5, "5톤"), (11.0, "11톤"), (25.0, "대형")],
)
def test_vehicle_type_for_tonnage(ton, expected):
    assert vehicle_type_for_tonnage(ton, BANDS) == expected


def test_band_order_does_not_matter():
    assert vehicle_type_for_tonnage(2.0, list(reversed(BANDS))) == "2.5톤"
