import datetime as dt

import pytest

from logiops.core.errors import BusinessRuleError, DuplicateError, ImportFileError
from logiops.data.models.driver import DriverCreate, DriverUpdate
from logiops.data.tables import AuditLog
from logiops.services.drivers import DriverService

CSV_HEADER = "성함,연락처,차량번호,사업상호,대표자,사업번호,계좌은행,계좌번호,특이사항\n"


def _csv(*lines):
    return (CSV_HEADER + "\n".join(lines) + "\n").encode("utf-8")


def test_create_stores_digits_only(session, config):
    driver = DriverService(session, config).create(
        DriverCreate(
            name=" 박기사 ",
            phone="010-3333-4444",
            vehicle_number="서울12가3456",
            account_number="123456-78-901234",
        )
    )
    assert driver.name == "박기사"
    assert driver.phone == "01033334444"
    assert driver.account_number == "12345678901234"
    assert driver.business_name is None


def test_duplicate_phone_is_rejected(session, config, driver):
    with pytest.raises(DuplicateError) as exc:
        DriverService(session, config).create(
            DriverCreate(name="다른기사", phone="01011112222", vehicle_number="12나3456")
        )
    assert exc.value.details["field"] == "phone"


def test_update_records_changes(session, config, driver):
    service = DriverService(session, config, actor="manager")
    service.update(driver.id, DriverUpdate(vehicle_number="경기99가9999", name=None))

    assert driver.vehicle_number == "경기99가9999"
    assert driver.name == "김기사"
    entry = session.query(AuditLog).filter_by(entity_id=driver.id, action="UPDATE").one()
    assert entry.actor == "manager"
    assert entry.changes["vehicle_number"]["to"] == "경기99가9999"


def test_delete_refused_with_history(session, config, driver, basic_rate, make_charter):
    make_charter(dt.date(2025, 3, 3))
    service = DriverService(session, config)
    with pytest.raises(BusinessRuleError):
        service.delete(driver.id)
    assert service.counts(driver.id).charters == 1


def test_delete_without_history(session, config, driver):
    DriverService(session, config).delete(driver.id)
    assert session.get(type(driver), driver.id) is None


def test_list_search_and_toggle(session, config, driver):
    service = DriverService(session, config)
    items, pagination = service.list_drivers(search="1111")
    assert [d.id for d in items] == [driver.id]
    assert pagination.total_count == 1

    service.toggle(driver.id)
    items, _ = service.list_drivers(is_active=True)
    assert items == []
    assert service.search("김") == []

    service.activate(driver.id)
    assert [d.id for d in service.search("김")] == [driver.id]


def test_bulk_set_active(session, config, driver):
    service = DriverService(session, config)
    other = service.create(DriverCreate(name="이기사", phone="01055556666", vehicle_number="12다3456"))
    assert service.bulk_set_active([driver.id, other.id], False) == 2
    assert service.bulk_set_active([driver.id, other.id], False) == 0


def test_import_simulate_reports_row_errors(session, config, driver):
    content = _csv(
        "최기사,010-7777-8888,12라3456,,,,,,",
        "중복기사,010-1111-2222,12마3456,,,,,,",
        ",010-9999-0000,12바3456,,,,,,",
        "같은번호,010-7777-8888,12사3456,,,,,,",
    )
    result = DriverService(session, config).import_rows("drivers.csv", content, "simulate")

    assert result.total == 4
    assert result.valid == 1
    assert result.invalid == 3
    assert [e.row for e in result.errors] == [3, 4, 5]
    assert "already registered" in result.errors[0].error
    assert "Duplicate phone number in file" in result.errors[2].error
    assert result.preview[0]["name"] == "최기사"
    assert result.imported == 0


def test_import_commit_writes_valid_rows(session, config):
    content = _csv("최기사,010-7777-8888,12라3456,최운수,최기사,123-45-67890,신한은행,110-123-456789,")
    service = DriverService(session, config, actor="importer")
    result = service.import_rows("drivers.csv", content, "commit")

    assert result.imported == 1
    items, _ = service.list_drivers()
    assert items[0].bank_name == "신한은행"
    assert session.query(AuditLog).filter_by(entity_type="Driver", action="IMPORT").count() == 1


def test_import_without_valid_rows(session, config):
    with pytest.raises(ImportFileError) as exc:
        DriverService(session, config).import_rows("drivers.csv", _csv("x,1,,,,,,,"), "commit")
    assert exc.value.code == "NO_VALID_DATA"


def test_import_file_errors(session, config):
    service = DriverService(session, config)
    with pytest.raises(ImportFileError) as exc:
        service.import_rows("drivers.csv", "이름,주소\n김기사,서울\n".encode("utf-8"))
    assert exc.value.code == "INVALID_HEADERS"

    with pytest.raises(ImportFileError) as exc:
        service.import_rows("drivers.csv", CSV_HEADER.encode("utf-8"))
    assert exc.value.code == "EMPTY_FILE"

    with pytest.raises(ImportFileError) as exc:
        service.import_rows("drivers.csv", _csv("a,01012345678,b"), "upsert")
    assert exc.value.code == "INVALID_MODE"


def test_template_is_csv(session, config):
    template = DriverService(session, config).template()
    assert template.filename == "driver_template.csv"
    assert template.content.decode("utf-8").lstrip("\ufeff").startswith("성함,연락처,차량번호")
