"""
Configuration management for the logistics back-office.

Handles loading and accessing:
- Business configuration (config.yaml)
- Environment variables (.env)
"""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class TonnageBand(BaseModel):
    """Upper tonnage bound mapped to a vehicle type label."""

    max_ton: float
    vehicle_type: str


class FallbackBand(BaseModel):
    """Upper tonnage bound mapped to an estimated base fare."""

    max_ton: float
    base_fare: int


class FallbackFarePolicy(BaseModel):
    """Estimate used when no center fare row matches a quote."""

    enabled: bool = True
    default_base_fare: int = 400000
    by_tonnage: list[FallbackBand] = Field(default_factory=list)
    extra_region_fee: int = 20000
    extra_stop_fee: int = 15000


class FarePolicy(BaseModel):
    """Fare calculation rules."""

    tonnage_bands: list[TonnageBand] = Field(default_factory=list)
    oversize_vehicle_type: str = "대형"
    fallback: FallbackFarePolicy = Field(default_factory=FallbackFarePolicy)


class SettlementPolicy(BaseModel):
    """Settlement workflow rules."""

    block_future_months: bool = True


class ImportLimits(BaseModel):
    """Upload limits for CSV/Excel imports."""

    max_file_size_mb: int = 10
    allowed_extensions: list[str] = Field(default_factory=lambda: [".csv", ".xlsx"])

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


class PaginationConfig(BaseModel):
    """List endpoint defaults."""

    default_limit: int = 20
    max_limit: int = 100


class EnvironmentSettings(BaseSettings):
    """Environment variables configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Database
    database_url: str = Field("sqlite:///./logiops.db", alias="DATABASE_URL")

    # Runtime
    app_env: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(True, alias="LOG_JSON")

    # Optional override of the config/ directory
    config_dir: Optional[str] = Field(None, alias="CONFIG_DIR")

    # Server (python -m logiops)
    host: str = Field("127.0.0.1", alias="LOGIOPS_HOST")
    port: int = Field(8000, alias="LOGIOPS_PORT")
    reload: bool = Field(False, alias="LOGIOPS_RELOAD")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() in ("prod", "production")


class ConfigManager:
    """
    Central configuration manager for the back-office service.

    Loads and provides access to:
    - Business configuration from config/config.yaml
    - Environment variables from .env
    """

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        env_settings: Optional[EnvironmentSettings] = None,
    ) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_dir: Optional path to config directory. Defaults to CONFIG_DIR
                or project root/config.
            env_settings: Optional pre-built environment settings.
        """
        self._env_settings = env_settings

        if config_dir is None:
            override = self.env.config_dir
            if override:
                config_dir = Path(override)
            else:
                # Default to config/ directory in project root
                project_root = Path(__file__).parent.parent.parent
                config_dir = project_root / "config"

        self.config_dir = Path(config_dir)
        self._business_config: Optional[dict[str, Any]] = None

    @property
    def business_config(self) -> dict[str, Any]:
        """Load and return business configuration from config.yaml."""
        if self._business_config is None:
            config_path = self.config_dir / "config.yaml"
            if config_path.exists():
                with open(config_path, "r", encoding="utf-8") as f:
                    self._business_config = yaml.safe_load(f) or {}
            else:
                self._business_config = {}
        return self._business_config

    @property
    def env(self) -> EnvironmentSettings:
        """Load and return environment settings."""
        if self._env_settings is None:
            self._env_settings = EnvironmentSettings()
        return self._env_settings

    def get_company_info(self) -> dict[str, Any]:
        """Get company information from business config."""
        return self.business_config.get("company", {})

    def get_fare_policy(self) -> FarePolicy:
        """Get fare calculation rules from business config."""
        return FarePolicy(**self.business_config.get("fares", {}))

    def get_settlement_policy(self) -> SettlementPolicy:
        """Get settlement workflow rules from business config."""
        return SettlementPolicy(**self.business_config.get("settlements", {}))

    def get_import_limits(self) -> ImportLimits:
        """Get upload limits from business config."""
        return ImportLimits(**self.business_config.get("imports", {}))

    def get_pagination(self) -> PaginationConfig:
        """Get list endpoint defaults from business config."""
        return PaginationConfig(**self.business_config.get("pagination", {}))


# Global config instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """
    Get the global configuration manager instance.

    Returns:
        ConfigManager singleton instance
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def set_config(config_manager: Optional[ConfigManager]) -> None:
    """Replace the global configuration manager (used by tests and scripts)."""
    global _config_manager
    _config_manager = config_manager
