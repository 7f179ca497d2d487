import pytest

from logiops.core.errors import BusinessRuleError, DuplicateError
from logiops.data.models.center_fare import (
    CenterFareCreate,
    CenterFareUpdate,
    CenterFareValidateRequest,
    FareType,
)
from logiops.data.models.loading_point import LoadingPointCreate
from logiops.services.center_fares import CenterFareService, parse_fare_type
from logiops.services.loading_points import LoadingPointService

CSV_HEADER = "센터명,차량톤수,지역,요율종류,기본운임,경유운임,지역운임\n"


def _csv(*lines):
    return (CSV_HEADER + "\n".join(lines) + "\n").encode("utf-8")


def test_parse_fare_type():
    assert parse_fare_type("") is FareType.BASIC
    assert parse_fare_type("기본운임") is FareType.BASIC
    assert parse_fare_type("경유운임") is FareType.STOP_FEE
    assert parse_fare_type("stop_fee") is FareType.STOP_FEE
    assert parse_fare_type("할증") is None


def test_vehicle_type_is_normalized_on_create(session, config, center):
    fare = CenterFareService(session, config).create(
        CenterFareCreate(loading_point_id=center.id, vehicle_type="3.5t", region=" ", base_fare=80000)
    )
    assert fare.vehicle_type == "3.5톤"
    assert fare.region is None


def test_duplicate_active_key(session, config, center, basic_rate):
    service = CenterFareService(session, config)
    with pytest.raises(DuplicateError):
        service.create(CenterFareCreate(loading_point_id=center.id, vehicle_type="5톤", base_fare=1))

    # inactive rows do not block
    service.delete(basic_rate.id)
    replacement = service.create(CenterFareCreate(loading_point_id=center.id, vehicle_type="5톤", base_fare=1))
    assert replacement.is_active

    # and cannot be re-activated while the replacement exists
    with pytest.raises(DuplicateError):
        service.toggle(basic_rate.id)


def test_validate_reports_duplicate(session, config, center, basic_rate):
    service = CenterFareService(session, config)
    request = CenterFareValidateRequest(loading_point_id=center.id, vehicle_type="5t")
    validation = service.validate(request)
    assert validation.is_valid is False
    assert validation.duplicate_id == basic_rate.id

    request.exclude_id = basic_rate.id
    assert service.validate(request).is_valid is True


def test_inactive_center_is_rejected(session, config):
    points = LoadingPointService(session, config)
    point = points.create(LoadingPointCreate(center_name="닫힌센터", loading_point_name="A"))
    points.delete(point.id)
    with pytest.raises(BusinessRuleError):
        CenterFareService(session, config).create(
            CenterFareCreate(loading_point_id=point.id, vehicle_type="5톤", base_fare=1)
        )


def test_update_can_clear_region(session, config, center):
    service = CenterFareService(session, config)
    fare = service.create(
        CenterFareCreate(loading_point_id=center.id, vehicle_type="1톤", region="화성시", base_fare=50000)
    )
    service.update(fare.id, CenterFareUpdate(region=None, base_fare=None))
    assert fare.region is None
    assert fare.base_fare == 50000


def test_bulk_delete_and_stats(session, config, center, basic_rate):
    service = CenterFareService(session, config)
    other = service.create(CenterFareCreate(loading_point_id=center.id, vehicle_type="1톤", base_fare=50000))

    stats = service.stats()
    assert stats.total == 2
    assert stats.by_vehicle_type == {"1톤": 1, "5톤": 1}

    result = service.bulk_delete([other.id, "missing"])
    assert result.success == 1
    assert result.failed == 1
    assert service.stats().inactive == 1


def test_list_filters(session, config, center, basic_rate):
    service = CenterFareService(session, config)
    service.create(CenterFareCreate(loading_point_id=center.id, vehicle_type="1톤", base_fare=50000))

    items, pagination = service.list_center_fares(vehicle_type="5톤")
    assert [f.id for f in items] == [basic_rate.id]

    items, _ = service.list_center_fares(search="동탄", sort_by="base_fare", sort_order="asc")
    assert [f.base_fare for f in items] == [50000, 100000]


def test_import_simulate_and_commit(session, config, center, basic_rate):
    content = _csv(
        "쿠팡 동탄,5톤,,기본운임,120000,,25000",
        "쿠팡 동탄,5톤,오산시,기본운임,140000,,",
        "쿠팡 동탄,5톤,,경유운임,,12000,",
        "없는센터,5톤,,기본운임,100000,,",
        "쿠팡 동탄,5톤,오산시,기본운임,150000,,",
        "쿠팡 동탄,트레일러,,기본운임,100000,,",
        "쿠팡 동탄,1톤,,기본운임,,,",
    )
    service = CenterFareService(session, config)

    simulated = service.import_rows("rates.csv", content, "simulate")
    assert simulated.total == 7
    assert simulated.valid == 3
    assert [e.row for e in simulated.errors] == [5, 6, 7, 8]
    assert "not found" in simulated.errors[0].error
    assert "Duplicate rate in file" in simulated.errors[1].error
    assert "needs a base fare" in simulated.errors[3].error

    committed = service.import_rows("rates.csv", content, "commit")
    assert committed.imported == 2
    assert committed.updated == 1
    assert basic_rate.base_fare == 120000
    assert basic_rate.extra_region_fee == 25000


def test_export_csv(session, config, center, basic_rate):
    export = CenterFareService(session, config).export("csv")
    text = export.content.decode("utf-8")
    assert "쿠팡 동탄,5톤,,기본운임,100000,10000,20000" in text
