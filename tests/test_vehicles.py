import pytest

from logiops.core.errors import BusinessRuleError, DuplicateError
from logiops.data.models.vehicle import VehicleCreate, VehicleOwnership, VehicleUpdate
from logiops.data.tables import AuditLog
from logiops.services.drivers import DriverService
from logiops.services.vehicles import VehicleService


def test_create_normalizes_plate_and_type(session, config):
    vehicle = VehicleService(session, config).create(VehicleCreate(plate_number="경기 12가 3456", vehicle_type="5t"))
    assert vehicle.plate_number == "경기12가3456"
    assert vehicle.vehicle_type == "5톤"
    assert vehicle.ownership == "OWNED"


def test_invalid_plate_and_year():
    with pytest.raises(ValueError):
        VehicleCreate(plate_number="AB-1234", vehicle_type="5톤")
    with pytest.raises(ValueError):
        VehicleCreate(plate_number="12가3456", vehicle_type="5톤", year=1970)


def test_duplicate_plate(session, config):
    service = VehicleService(session, config)
    service.create(VehicleCreate(plate_number="12가3456", vehicle_type="1톤"))
    with pytest.raises(DuplicateError):
        service.create(VehicleCreate(plate_number="12가3456", vehicle_type="5톤"))


def test_assign_and_unassign(session, config, driver):
    service = VehicleService(session, config, actor="manager")
    vehicle = service.create(VehicleCreate(plate_number="12가3456", vehicle_type="1톤"))

    service.assign_driver(vehicle.id, driver.id)
    assert vehicle.driver_id == driver.id
    items, _ = service.list_vehicles(search="김기사")
    assert [v.id for v in items] == [vehicle.id]

    service.unassign_driver(vehicle.id)
    assert vehicle.driver_id is None
    actions = [row.action for row in session.query(AuditLog).filter_by(entity_id=vehicle.id)]
    assert sorted(actions) == ["ASSIGN", "CREATE", "UNASSIGN"]


def test_inactive_driver_cannot_be_assigned(session, config, driver):
    DriverService(session, config).toggle(driver.id)
    service = VehicleService(session, config)
    vehicle = service.create(VehicleCreate(plate_number="12가3456", vehicle_type="1톤"))
    with pytest.raises(BusinessRuleError):
        service.assign_driver(vehicle.id, driver.id)


def test_update_filters_and_toggle(session, config):
    service = VehicleService(session, config)
    vehicle = service.create(VehicleCreate(plate_number="12가3456", vehicle_type="1톤"))
    service.create(VehicleCreate(plate_number="34나5678", vehicle_type="5톤", ownership=VehicleOwnership.LEASED))

    service.update(vehicle.id, VehicleUpdate(ownership=VehicleOwnership.CONTRACTED, vehicle_type=None))
    assert vehicle.ownership == "CONTRACTED"
    assert vehicle.vehicle_type == "1톤"

    items, _ = service.list_vehicles(ownership="LEASED")
    assert [v.plate_number for v in items] == ["34나5678"]

    service.toggle(vehicle.id)
    assert not vehicle.is_active
    assert [v.plate_number for v in service.search("가")] == []
    assert [v.plate_number for v in service.search("나")] == ["34나5678"]
