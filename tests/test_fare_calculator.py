import datetime as dt

import pytest

from logiops.core.errors import InvalidInputError, NotFoundError, RateNotFoundError
from logiops.data.models.center_fare import CenterFareCreate, CenterFareUpdate, FareType
from logiops.data.models.charter import FareQuoteInput
from logiops.services.center_fares import CenterFareService
from logiops.services.fare_calculator import FareCalculator, tonnage_from_vehicle_type, unique_regions


def _quote(session, config, center, **kwargs):
    data = {"loading_point_id": center.id, "vehicle_type": "5톤", "regions": ["화성시"]}
    data.update(kwargs)
    return FareCalculator(session, config).calculate(FareQuoteInput(**data))


def test_helpers():
    assert tonnage_from_vehicle_type("3.5톤광폭") == 3.5
    assert tonnage_from_vehicle_type("대형") is None
    assert unique_regions(["화성시", "오산시", "화성시"]) == ["화성시", "오산시"]


def test_base_fare_only(session, config, center, basic_rate):
    quote = _quote(session, config, center)
    assert quote.base_fare == 100000
    assert quote.extra_region_count == 0
    assert quote.extra_stop_count == 0
    assert quote.total_fare == 100000
    assert quote.applied_rate.id == basic_rate.id
    assert quote.is_fallback is False
    assert quote.breakdown[0].startswith("기본운임: 100,000원")


def test_extra_regions_and_stops(session, config, center, basic_rate):
    quote = _quote(session, config, center, regions=["화성시", "오산시", "평택시"], stops=4)
    assert quote.extra_region_count == 2
    assert quote.region_fare == 40000
    assert quote.extra_stop_count == 3
    assert quote.stop_fare == 30000
    assert quote.subtotal == 170000
    assert quote.total_fare == 170000


def test_repeated_region_counts_once(session, config, center, basic_rate):
    quote = _quote(session, config, center, regions=["화성시", "화성시", "오산시"])
    assert quote.extra_region_count == 1


def test_manual_adjustment_floors_at_zero(session, config, center, basic_rate):
    assert _quote(session, config, center, manual_adjustment=15000).total_fare == 115000
    assert _quote(session, config, center, manual_adjustment=-500000).total_fare == 0


def test_region_specific_rate_wins(session, config, center, basic_rate):
    specific = CenterFareService(session, config).create(
        CenterFareCreate(loading_point_id=center.id, vehicle_type="5톤", region="평택시", base_fare=150000)
    )
    quote = _quote(session, config, center, regions=["평택시"])
    assert quote.applied_rate.id == specific.id
    assert quote.base_fare == 150000

    # other regions still use the general row
    assert _quote(session, config, center, regions=["오산시"]).base_fare == 100000


def test_stop_fee_row_overrides_stop_fee(session, config, center, basic_rate):
    stop_rate = CenterFareService(session, config).create(
        CenterFareCreate(
            loading_point_id=center.id, vehicle_type="5톤", fare_type=FareType.STOP_FEE, extra_stop_fee=25000
        )
    )
    quote = _quote(session, config, center, stops=3)
    assert quote.extra_stop_fee == 25000
    assert quote.stop_fare == 50000
    assert quote.applied_rate.stop_fee_rate_id == stop_rate.id


def test_vehicle_type_is_normalized(session, config, center, basic_rate):
    assert _quote(session, config, center, vehicle_type="5t").vehicle_type == "5톤"


def test_tonnage_only_uses_bands(session, config, center, basic_rate):
    quote = _quote(session, config, center, vehicle_type=None, vehicle_ton=4.2)
    assert quote.vehicle_type == "5톤"
    assert quote.base_fare == 100000


@pytest.mark.parametrize(
    "ton,vehicle_type,base_fare",
    [(1.4, "1.4톤", 90000), (14, "14톤", 900000)],
)
def test_tonnage_reaches_every_rate_row(session, config, center, ton, vehicle_type, base_fare):
    rate = CenterFareService(session, config).create(
        CenterFareCreate(loading_point_id=center.id, vehicle_type=vehicle_type, base_fare=base_fare)
    )
    quote = _quote(session, config, center, vehicle_type=None, vehicle_ton=ton)
    assert quote.vehicle_type == vehicle_type
    assert quote.applied_rate.id == rate.id
    assert quote.base_fare == base_fare
    assert quote.is_fallback is False


def test_unknown_vehicle_type(session, config, center):
    with pytest.raises(InvalidInputError):
        _quote(session, config, center, vehicle_type="트레일러")


def test_unknown_center(session, config):
    with pytest.raises(NotFoundError):
        FareCalculator(session, config).calculate(
            FareQuoteInput(loading_point_id="missing", vehicle_type="5톤", regions=["화성시"])
        )


def test_fallback_estimate(session, config, center):
    quote = _quote(session, config, center, vehicle_type="2.5톤", regions=["화성시", "오산시"], stops=2)
    assert quote.is_fallback is True
    assert quote.applied_rate is None
    assert quote.base_fare == 120000
    assert quote.region_fare == 20000
    assert quote.stop_fare == 15000
    assert quote.total_fare == 155000
    assert quote.warnings


def test_fallback_estimate_by_tonnage(session, config, center):
    assert _quote(session, config, center, vehicle_type="11톤").base_fare == 350000
    assert _quote(session, config, center, vehicle_type="14톤").base_fare == 380000

    oversize = _quote(session, config, center, vehicle_type=None, vehicle_ton=20)
    assert oversize.vehicle_type == "대형"
    assert oversize.base_fare == 400000


def test_missing_rate_without_fallback(session, make_config, center):
    config = make_config({"fares": {"fallback": {"enabled": False}}})
    with pytest.raises(RateNotFoundError) as exc:
        _quote(session, config, center)
    assert exc.value.code == "RATE_NOT_FOUND"
    assert exc.value.details["vehicle_type"] == "5톤"


def test_negotiated_fare_replaces_total(session, config, center, basic_rate):
    quote = _quote(
        session, config, center, regions=["화성시", "오산시"], is_negotiated=True, negotiated_fare=90000
    )
    assert quote.subtotal == 120000
    assert quote.total_fare == 90000
    assert quote.is_negotiated is True


def test_negotiated_fare_without_any_rate(session, make_config, center):
    config = make_config({"fares": {"fallback": {"enabled": False}}})
    quote = _quote(session, config, center, is_negotiated=True, negotiated_fare=80000)
    assert quote.base_fare == 0
    assert quote.total_fare == 80000
    assert quote.warnings


def test_inactive_rates_are_ignored(session, config, center, basic_rate):
    CenterFareService(session, config).delete(basic_rate.id)
    assert _quote(session, config, center).is_fallback is True


def test_recalculate_charters(session, config, center, basic_rate, make_charter):
    charter = make_charter(dt.date(2025, 3, 3))
    assert charter.total_fare == 100000

    CenterFareService(session, config).update(basic_rate.id, CenterFareUpdate(base_fare=130000))
    result = FareCalculator(session, config).recalculate_charters([charter.id, "missing"])
    assert result.success == 1
    assert result.failed == 1
    assert charter.total_fare == 130000
