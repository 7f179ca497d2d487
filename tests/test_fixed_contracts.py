import datetime as dt

import pytest

from logiops.core.errors import BusinessRuleError, DuplicateError
from logiops.data.models.fixed_contract import ContractType, FixedContractCreate, FixedContractUpdate
from logiops.services.fixed_contracts import (
    FixedContractService,
    parse_contract_type,
    parse_operating_days,
    row_to_contract,
)
from logiops.services.loading_points import LoadingPointService

CSV_HEADER = "센터명,노선명,기사명,차량번호,연락처,운행요일,센터계약,센터금액,기사계약,기사금액,시작일자,종료일자,비고\n"


def _csv(*lines):
    return (CSV_HEADER + "\n".join(lines) + "\n").encode("utf-8")


def _contract(center, **kwargs):
    data = {
        "loading_point_id": center.id,
        "route_name": "새벽 A코스",
        "operating_days": [1, 3, 5],
        "center_contract_type": ContractType.FIXED_DAILY,
        "center_amount": 450000,
    }
    data.update(kwargs)
    return FixedContractCreate(**data)


@pytest.mark.parametrize(
    "text,expected",
    [
        ("월,수,금", [1, 3, 5]),
        ("월요일 수요일", [1, 3]),
        ("토, 일", [0, 6]),
        ("월,월,화", [1, 2]),
        ("월,휴무", [1]),
        ("", []),
    ],
)
def test_parse_operating_days(text, expected):
    assert parse_operating_days(text) == expected


def test_parse_contract_type():
    assert parse_contract_type("고정(일대)") is ContractType.FIXED_DAILY
    assert parse_contract_type("월고정") is ContractType.FIXED_MONTHLY
    assert parse_contract_type("고정지입") is ContractType.CONSIGNED_MONTHLY
    assert parse_contract_type("CHARTER_PER_RIDE") is ContractType.CHARTER_PER_RIDE
    assert parse_contract_type("모름") is None
    assert parse_contract_type(None) is None


def test_row_to_contract_defaults_driver_terms():
    row = row_to_contract(
        {"센터명": "쿠팡 동탄", "노선명": "A코스", "운행요일": "월,수", "센터계약": "고정(월대)", "센터금액": "3,000,000"}
    )
    assert row.center_contract_type is ContractType.FIXED_MONTHLY
    assert row.driver_contract_type is ContractType.FIXED_MONTHLY
    assert row.center_amount == 3000000
    assert row.driver_name is None


@pytest.mark.parametrize(
    "row,message",
    [
        ({"센터명": "", "노선명": "A", "운행요일": "월", "센터계약": "고정(일대)"}, "Center name is required"),
        ({"센터명": "C", "노선명": "A", "운행요일": "휴무", "센터계약": "고정(일대)"}, "operating day"),
        ({"센터명": "C", "노선명": "A", "운행요일": "월", "센터계약": "모름"}, "Unknown center contract type"),
        (
            {"센터명": "C", "노선명": "A", "운행요일": "월", "센터계약": "고정(일대)", "기사계약": "모름"},
            "Unknown driver contract type",
        ),
    ],
)
def test_row_to_contract_errors(row, message):
    with pytest.raises(ValueError, match=message):
        row_to_contract(row)


def test_create_and_duplicate_route(session, config, center, driver):
    service = FixedContractService(session, config, actor="manager")
    contract = service.create(_contract(center, driver_id=driver.id))
    assert contract.driver_contract_type == "FIXED_DAILY"
    assert contract.created_by == "manager"

    with pytest.raises(DuplicateError):
        service.create(_contract(center))

    service.delete(contract.id)
    again = service.create(_contract(center))
    assert again.is_active

    # reactivating the first one would create a second active contract for the route
    with pytest.raises(DuplicateError):
        service.toggle(contract.id)


def test_update_checks_period(session, config, center):
    service = FixedContractService(session, config)
    contract = service.create(_contract(center, start_date=dt.date(2025, 1, 1)))
    with pytest.raises(BusinessRuleError):
        service.update(contract.id, FixedContractUpdate(end_date=dt.date(2024, 12, 31)))

    service.update(contract.id, FixedContractUpdate(route_name="새벽 B코스", center_amount=None))
    assert contract.route_name == "새벽 B코스"
    assert contract.center_amount == 450000


def test_loading_point_with_active_contract_cannot_be_deactivated(session, config, center):
    FixedContractService(session, config).create(_contract(center))
    with pytest.raises(BusinessRuleError):
        LoadingPointService(session, config).delete(center.id)


def test_stats(session, config, center):
    service = FixedContractService(session, config)
    service.create(_contract(center))
    service.create(_contract(center, route_name="B", center_contract_type=ContractType.FIXED_MONTHLY))
    stats = service.stats()
    assert stats.total == 2
    assert stats.active == 2
    assert stats.by_contract_type["FIXED_DAILY"] == 1
    assert stats.by_contract_type["FIXED_MONTHLY"] == 1


def test_import_simulate_then_commit(session, config, center, driver):
    content = _csv(
        "쿠팡 동탄,새벽 A코스,김기사,,,\"월,수,금\",고정(일대),450000,고정지입,350000,2025-01-01,,",
        "쿠팡 동탄,새벽 B코스,,,010-1111-2222,화 목,고정월대,3000000,,,,,",
        "쿠팡 동탄,새벽 C코스,없는기사,,,월,고정(일대),100000,,,,,",
        "없는센터,새벽 D코스,,,,월,고정(일대),100000,,,,,",
        "쿠팡 동탄,새벽 E코스,,,,휴무,고정(일대),100000,,,,,",
    )
    service = FixedContractService(session, config)

    simulated = service.import_rows("contracts.csv", content, "simulate")
    assert simulated.total == 5
    assert simulated.valid == 4
    assert [e.row for e in simulated.errors] == [6]
    assert len(simulated.preview) == 4

    committed = service.import_rows("contracts.csv", content, "commit")
    assert committed.imported == 2
    assert sorted(e.row for e in committed.errors) == [4, 5, 6]

    items, _ = service.list_fixed_contracts(driver_id=driver.id)
    assert sorted(c.route_name for c in items) == ["새벽 A코스", "새벽 B코스"]
    first = next(c for c in items if c.route_name == "새벽 A코스")
    assert first.operating_days == [1, 3, 5]
    assert first.driver_contract_type == "CONSIGNED_MONTHLY"
    assert first.start_date == dt.date(2025, 1, 1)
