import datetime as dt

import pytest

from logiops.core.errors import BusinessRuleError, NotFoundError, RateNotFoundError
from logiops.data.models.charter import CharterCreate, CharterUpdate, DestinationIn
from logiops.data.tables import AuditLog
from logiops.services.charters import CharterService, parse_regions
from logiops.services.drivers import DriverService

DAY = dt.date(2025, 3, 3)


def test_create_prices_from_rate_table(session, basic_rate, make_charter):
    charter = make_charter(DAY, regions=("화성시", "오산시"))
    assert charter.base_fare == 100000
    assert charter.region_fare == 20000
    assert charter.stop_fare == 10000
    assert charter.total_fare == 130000
    assert [d.region for d in charter.destinations] == ["화성시", "오산시"]
    assert charter.created_by == "dispatcher"

    entry = session.query(AuditLog).filter_by(entity_id=charter.id, action="CREATE").one()
    assert entry.actor == "dispatcher"
    assert entry.extra["total_fare"] == 130000


def test_extra_fare_is_added_to_total(basic_rate, make_charter):
    charter = make_charter(DAY, extra_fare=15000)
    assert charter.total_fare == 115000
    assert charter.extra_fare == 15000


def test_negotiated_charter_keeps_agreed_amount(basic_rate, make_charter):
    charter = make_charter(DAY, regions=("화성시", "오산시"), is_negotiated=True, negotiated_fare=150000)
    assert charter.total_fare == 150000
    assert charter.base_fare == 100000


def test_negotiated_fare_is_required():
    with pytest.raises(ValueError):
        CharterCreate(
            loading_point_id="lp",
            vehicle_type="5톤",
            date=DAY,
            destinations=[DestinationIn(region="화성시", order=1)],
            driver_id="d",
            driver_fare=1,
            is_negotiated=True,
        )


def test_destination_order_must_be_contiguous():
    with pytest.raises(ValueError):
        CharterCreate(
            loading_point_id="lp",
            vehicle_type="5톤",
            date=DAY,
            destinations=[DestinationIn(region="화성시", order=1), DestinationIn(region="오산시", order=3)],
            driver_id="d",
            driver_fare=1,
        )


def test_inactive_driver_is_rejected(session, config, driver, basic_rate, make_charter):
    DriverService(session, config).toggle(driver.id)
    with pytest.raises(BusinessRuleError):
        make_charter(DAY)


def test_unknown_center_is_rejected(basic_rate, make_charter):
    with pytest.raises(NotFoundError):
        make_charter(DAY, loading_point_id="missing")


def test_no_rate_without_fallback(session, make_config, center, driver):
    config = make_config({"fares": {"fallback": {"enabled": False}}})
    data = CharterCreate(
        loading_point_id=center.id,
        vehicle_type="5톤",
        date=DAY,
        destinations=[DestinationIn(region="화성시", order=1)],
        driver_id=driver.id,
        driver_fare=90000,
    )
    with pytest.raises(RateNotFoundError):
        CharterService(session, config).create(data)


def test_routing_change_recalculates(session, config, basic_rate, make_charter):
    charter = make_charter(DAY)
    service = CharterService(session, config, actor="manager")

    service.update(
        charter.id,
        CharterUpdate(destinations=[DestinationIn(region="화성시", order=1), DestinationIn(region="오산시", order=2)]),
    )
    assert charter.total_fare == 130000

    entry = session.query(AuditLog).filter_by(entity_id=charter.id, action="UPDATE").one()
    assert entry.actor == "manager"
    assert entry.changes["total_fare"] == {"from": 100000, "to": 130000}
    assert entry.changes["destinations"]["to"] == ["화성시", "오산시"]


def test_driver_fare_change_keeps_center_fare(session, config, basic_rate, make_charter):
    charter = make_charter(DAY)
    CharterService(session, config).update(charter.id, CharterUpdate(driver_fare=95000))
    assert charter.driver_fare == 95000
    assert charter.total_fare == 100000


def test_switching_to_negotiated_requires_amount(session, config, basic_rate, make_charter):
    charter = make_charter(DAY)
    with pytest.raises(BusinessRuleError):
        CharterService(session, config).update(charter.id, CharterUpdate(is_negotiated=True))


def test_list_search_and_dates(session, config, basic_rate, make_charter):
    make_charter(dt.date(2025, 3, 3), regions=("화성시",))
    make_charter(dt.date(2025, 3, 10), regions=("오산시",))
    service = CharterService(session, config)

    items, pagination = service.list_charters()
    assert pagination.total_count == 2
    assert items[0].date == dt.date(2025, 3, 10)

    items, _ = service.list_charters(search="오산")
    assert [c.date for c in items] == [dt.date(2025, 3, 10)]

    items, _ = service.list_charters(date_from=dt.date(2025, 3, 1), date_to=dt.date(2025, 3, 5))
    assert [c.date for c in items] == [dt.date(2025, 3, 3)]

    items, _ = service.list_charters(search="김기사", limit=1)
    assert len(items) == 1


def test_delete(session, config, basic_rate, make_charter):
    charter = make_charter(DAY)
    service = CharterService(session, config)
    service.delete(charter.id)
    with pytest.raises(NotFoundError):
        service.get(charter.id)
    assert session.query(AuditLog).filter_by(entity_id=charter.id, action="DELETE").count() == 1


IMPORT_HEADER = "센터명,운행일자,차량톤수,지역,기사명,연락처,기사운임,추가운임,협의운임,비고"


def _csv(*rows):
    return "\n".join([IMPORT_HEADER, *rows]).encode("utf-8")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("화성시, 오산시", ["화성시", "오산시"]),
        ("화성시 → 오산시 > 평택시", ["화성시", "오산시", "평택시"]),
        ("화성시", ["화성시"]),
        ("", []),
    ],
)
def test_parse_regions(text, expected):
    assert parse_regions(text) == expected


def test_import_simulate_reports_row_errors(session, config, center, driver):
    content = _csv(
        '쿠팡 동탄,2025-03-03,5t,"화성시, 오산시",김기사,,90000,,,',
        "쿠팡 동탄,2025-13-01,5톤,화성시,김기사,,90000,,,",
        "쿠팡 동탄,2025-03-04,트레일러,화성시,김기사,,90000,,,",
        "쿠팡 동탄,2025-03-04,5톤,,김기사,,90000,,,",
        "쿠팡 동탄,2025-03-05,5톤,화성시,,,90000,,,",
    )
    result = CharterService(session, config).import_rows("dispatch.csv", content, "simulate")

    assert result.total == 5
    assert result.valid == 1
    assert [e.row for e in result.errors] == [3, 4, 5, 6]
    assert "Invalid or missing date" in result.errors[0].error
    assert "Unknown vehicle type" in result.errors[1].error
    assert "driver_name" in result.errors[3].error
    assert result.preview[0]["vehicle_type"] == "5톤"
    assert result.preview[0]["regions"] == ["화성시", "오산시"]
    assert result.imported == 0


def test_import_commit_prices_each_row(session, config, basic_rate, driver):
    content = _csv(
        '쿠팡 동탄,2025-03-03,5톤,"화성시, 오산시",김기사,,90000,,,',
        "쿠팡 동탄,2025-03-04,5톤,화성시,김철수,010-1111-2222,80000,,,",
        "없는센터,2025-03-04,5톤,화성시,김기사,,80000,,,",
        "쿠팡 동탄,2025-03-05,5톤,화성시,박기사,,80000,,,",
        "쿠팡 동탄,2025-03-06,5톤,화성시,김기사,,80000,,150000,협의 완료",
    )
    service = CharterService(session, config, actor="importer")
    result = service.import_rows("dispatch.csv", content, "commit")

    assert result.imported == 3
    assert [e.row for e in result.errors] == [4, 5]
    assert "Center '없는센터' not found" in result.errors[0].error
    assert "Driver '박기사' not found" in result.errors[1].error

    items, _ = service.list_charters()
    assert sorted(c.total_fare for c in items) == [100000, 130000, 150000]
    assert {c.driver_id for c in items} == {driver.id}
    negotiated = [c for c in items if c.is_negotiated]
    assert negotiated[0].notes == "협의 완료"
    audit = session.query(AuditLog).filter_by(entity_type="CharterRequest", action="IMPORT").one()
    assert audit.extra["imported"] == 3
