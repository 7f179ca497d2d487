import uvicorn

from logiops.__main__ import main
from logiops.core.config import ConfigManager, EnvironmentSettings, get_config, set_config
from logiops.services.base import BaseService
from logiops.tools.vehicle_types import normalize_vehicle_type


def test_repository_config_loads(config):
    policy = config.get_fare_policy()
    assert [band.vehicle_type for band in policy.tonnage_bands][:3] == ["1톤", "1.4톤", "2.5톤"]
    assert policy.oversize_vehicle_type == "대형"
    assert policy.fallback.enabled is True
    assert policy.fallback.default_base_fare == 400000

    assert config.get_settlement_policy().block_future_months is True
    assert config.get_import_limits().max_file_size_bytes == 10 * 1024 * 1024
    assert config.get_pagination().max_limit == 100
    assert config.get_company_info()["currency"] == "KRW"


def test_overrides(make_config):
    config = make_config({"fares": {"fallback": {"enabled": False}}, "pagination": {"default_limit": 5}})
    assert config.get_fare_policy().fallback.enabled is False
    assert config.get_fare_policy().fallback.extra_stop_fee == 15000
    assert config.get_pagination().default_limit == 5


def test_missing_config_uses_defaults(tmp_path, settings):
    config = ConfigManager(config_dir=tmp_path, env_settings=settings)
    assert config.business_config == {}
    assert config.get_fare_policy().fallback.default_base_fare == 400000
    assert config.get_import_limits().allowed_extensions == [".csv", ".xlsx"]


def test_environment_settings(monkeypatch):
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    settings = EnvironmentSettings(_env_file=None)
    assert settings.is_production
    assert settings.database_url == "sqlite:///:memory:"


def test_set_config_replaces_global(config):
    previous = get_config()
    try:
        set_config(config)
        assert get_config() is config
    finally:
        set_config(previous)


def test_clamp_limit(session, make_config):
    service = BaseService(session, make_config({"pagination": {"default_limit": 5, "max_limit": 50}}))
    assert service.clamp_limit(None) == 5
    assert service.clamp_limit(0) == 5
    assert service.clamp_limit(30) == 30
    assert service.clamp_limit(500) == 50


def test_tonnage_bands_use_canonical_vehicle_types(config):
    policy = config.get_fare_policy()
    for band in policy.tonnage_bands:
        assert normalize_vehicle_type(band.vehicle_type) == band.vehicle_type
    assert {band.max_ton for band in policy.fallback.by_tonnage} >= {band.max_ton for band in policy.tonnage_bands}


def test_env_file_sets_config_dir(tmp_path, monkeypatch):
    config_dir = tmp_path / "business"
    config_dir.mkdir()
    (config_dir / "config.yaml").write_text("pagination:\n  default_limit: 7\n", encoding="utf-8")
    (tmp_path / ".env").write_text(f"CONFIG_DIR={config_dir}\nLOGIOPS_PORT=9000\n", encoding="utf-8")
    monkeypatch.delenv("CONFIG_DIR", raising=False)
    monkeypatch.delenv("LOGIOPS_PORT", raising=False)
    monkeypatch.chdir(tmp_path)

    config = ConfigManager()
    assert config.config_dir == config_dir
    assert config.get_pagination().default_limit == 7
    assert config.env.port == 9000


def test_explicit_config_dir_wins(tmp_path):
    settings = EnvironmentSettings(_env_file=None, config_dir="/elsewhere")
    assert ConfigManager(config_dir=tmp_path, env_settings=settings).config_dir == tmp_path


def test_main_runs_uvicorn_with_settings(monkeypatch):
    calls = {}
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.update(app=app, **kwargs))
    settings = EnvironmentSettings(_env_file=None, host="0.0.0.0", port=9000, reload=True)

    previous = get_config()
    try:
        set_config(ConfigManager(env_settings=settings))
        main()
    finally:
        set_config(previous)

    assert calls["app"] == "logiops.api.app:create_app"
    assert calls["factory"] is True
    assert (calls["host"], calls["port"], calls["reload"]) == ("0.0.0.0", 9000, True)
