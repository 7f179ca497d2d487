#!/usr/bin/env python3
"""
Initialize the logistics back-office.

This script sets up the project by:
- Checking the Python version and the .env file
- Validating config/config.yaml against the policy models
- Creating data directories
- Creating the database tables
"""

import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from logiops.core.config import ConfigManager, EnvironmentSettings
from logiops.data.database import create_engine_from_settings, init_db


def check_python_version() -> bool:
    """Verify Python version is 3.11 or higher."""
    if sys.version_info < (3, 11):
        print(f"❌ Python 3.11+ required. Current version: {sys.version}")
        return False
    print(f"✅ Python version: {sys.version_info.major}.{sys.version_info.minor}")
    return True


def check_env_file() -> bool:
    """Check if .env file exists; defaults are used otherwise."""
    env_path = Path(".env")
    if not env_path.exists():
        print("⚠️  .env file not found, using defaults")
        print("   Run: cp .env.example .env")
        return True
    load_dotenv()
    print("✅ .env file exists")
    return True


def check_config_files() -> bool:
    """Validate config.yaml parses and matches the policy models."""
    path = Path("config/config.yaml")
    if not path.exists():
        print(f"❌ Main configuration not found: {path}")
        return False

    try:
        with open(path, encoding="utf-8") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        print(f"❌ Error parsing config.yaml: {e}")
        return False
    if not config:
        print("❌ config.yaml is empty")
        return False

    manager = ConfigManager(config_dir=path.parent)
    try:
        policy = manager.get_fare_policy()
        manager.get_settlement_policy()
        manager.get_import_limits()
        manager.get_pagination()
    except ValidationError as e:
        print(f"❌ Invalid config.yaml: {e}")
        return False

    print(f"✅ config.yaml is valid ({len(policy.tonnage_bands)} tonnage bands)")
    return True


def create_data_directories() -> bool:
    """Create necessary data directories."""
    directories = [
        "data",
        "data/exports",
        "logs",
    ]

    for directory in directories:
        Path(directory).mkdir(parents=True, exist_ok=True)

    print(f"✅ Created {len(directories)} data directories")
    return True


def setup_database() -> bool:
    """Create all tables in DATABASE_URL."""
    settings = EnvironmentSettings()
    try:
        init_db(create_engine_from_settings(settings))
    except SQLAlchemyError as e:
        print(f"❌ Database setup failed: {e}")
        return False
    print(f"✅ Database ready: {settings.database_url}")
    return True


def display_next_steps():
    """Show user what to do next."""
    print("\n" + "=" * 60)
    print("🎉 Project initialization complete!")
    print("=" * 60)
    print("\nNext steps:")
    print("\n1. Review config/config.yaml (tonnage bands, fallback fares)")
    print("2. Load a rate table:")
    print("   python scripts/seed_rates.py rates.csv")
    print("3. Start the API:")
    print("   python -m logiops")
    print("\n" + "=" * 60)


def main():
    """Run all initialization checks."""
    print("=" * 60)
    print("LogiOps - Initialization")
    print("=" * 60)
    print()

    checks = [
        ("Python version", check_python_version),
        (".env file", check_env_file),
        ("Configuration files", check_config_files),
        ("Data directories", create_data_directories),
        ("Database", setup_database),
    ]

    passed = 0
    failed = 0

    for name, check_func in checks:
        print(f"\nChecking {name}...")
        if check_func():
            passed += 1
        else:
            failed += 1

    print("\n" + "=" * 60)
    print(f"Results: {passed} passed, {failed} failed")
    print("=" * 60)

    if failed == 0:
        display_next_steps()
        return 0
    else:
        print("\n❌ Some checks failed. Please fix the issues above.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
