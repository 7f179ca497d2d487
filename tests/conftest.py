import datetime as dt
import itertools
from pathlib import Path
from typing import Any, Callable, Optional

import pytest
import yaml
from fastapi.testclient import TestClient

from logiops.api.app import create_app
from logiops.core.config import ConfigManager, EnvironmentSettings
from logiops.data.database import create_engine_from_url, create_session_factory, init_db
from logiops.data.models.center_fare import CenterFareCreate
from logiops.data.models.charter import CharterCreate, DestinationIn
from logiops.data.models.driver import DriverCreate
from logiops.data.models.loading_point import LoadingPointCreate
from logiops.services.center_fares import CenterFareService
from logiops.services.charters import CharterService
from logiops.services.drivers import DriverService
from logiops.services.loading_points import LoadingPointService

REPO_CONFIG_DIR = Path(__file__).resolve().parent.parent / "config"


def _merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture()
def settings() -> EnvironmentSettings:
    return EnvironmentSettings(
        database_url="sqlite+pysqlite:///:memory:",
        app_env="test",
        log_level="WARNING",
        log_json=False,
    )


@pytest.fixture()
def make_config(tmp_path, settings) -> Callable[..., ConfigManager]:
    """
    Build a ConfigManager from the repository config.yaml with overrides.

    Example: make_config({"fares": {"fallback": {"enabled": False}}})
    """
    counter = itertools.count()

    def _make(overrides: Optional[dict[str, Any]] = None) -> ConfigManager:
        with open(REPO_CONFIG_DIR / "config.yaml", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        config_dir = tmp_path / f"config{next(counter)}"
        config_dir.mkdir()
        with open(config_dir / "config.yaml", "w", encoding="utf-8") as f:
            yaml.safe_dump(_merge(data, overrides or {}), f, allow_unicode=True)
        return ConfigManager(config_dir=config_dir, env_settings=settings)

    return _make


@pytest.fixture()
def config(make_config) -> ConfigManager:
    return make_config()


@pytest.fixture()
def engine():
    engine = create_engine_from_url("sqlite+pysqlite:///:memory:")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture()
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture()
def client(settings, session_factory, config):
    app = create_app(settings=settings, session_factory=session_factory, config_manager=config)
    return TestClient(app)


@pytest.fixture()
def center(session, config):
    return LoadingPointService(session, config).create(
        LoadingPointCreate(center_name="쿠팡 동탄", loading_point_name="1번 도크", road_address="경기 화성시 동탄")
    )


@pytest.fixture()
def driver(session, config):
    return DriverService(session, config).create(
        DriverCreate(name="김기사", phone="010-1111-2222", vehicle_number="경기12가3456", bank_name="국민은행")
    )


@pytest.fixture()
def basic_rate(session, config, center):
    """5톤 general rate: 100,000 base, 20,000 per extra region, 10,000 per extra stop."""
    return CenterFareService(session, config).create(
        CenterFareCreate(
            loading_point_id=center.id,
            vehicle_type="5톤",
            base_fare=100000,
            extra_region_fee=20000,
            extra_stop_fee=10000,
        )
    )


@pytest.fixture()
def make_charter(session, config, center, driver):
    def _make(day: dt.date, regions: tuple[str, ...] = ("화성시",), driver_fare: int = 90000, **kwargs: Any):
        data = CharterCreate(
            loading_point_id=kwargs.pop("loading_point_id", center.id),
            vehicle_type=kwargs.pop("vehicle_type", "5톤"),
            date=day,
            destinations=[DestinationIn(region=r, order=i) for i, r in enumerate(regions, start=1)],
            driver_id=kwargs.pop("driver_id", driver.id),
            driver_fare=driver_fare,
            **kwargs,
        )
        return CharterService(session, config, actor="dispatcher").create(data)

    return _make
