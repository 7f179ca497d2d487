"""
Persistence layer: SQLAlchemy tables and pydantic schemas.
"""

from .database import (
    Base,
    create_engine_from_settings,
    create_engine_from_url,
    create_session_factory,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "create_engine_from_settings",
    "create_engine_from_url",
    "create_session_factory",
    "init_db",
    "session_scope",
]
