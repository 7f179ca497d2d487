"""
Request dependencies: database session, acting user and services.
"""

from collections.abc import Iterator
from typing import Callable, Optional, TypeVar

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from logiops.core.config import ConfigManager
from logiops.services.base import BaseService

S = TypeVar("S", bound=BaseService)


def get_session(request: Request) -> Iterator[Session]:
    """One session per request: committed on success, rolled back on error."""
    session: Session = request.app.state.session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_config_manager(request: Request) -> ConfigManager:
    return request.app.state.config_manager


def get_actor(x_user: Optional[str] = Header(default=None, alias="X-User")) -> str:
    """User name recorded in audit entries; no authentication is performed."""
    return (x_user or "").strip() or "system"


def provide(service_cls: type[S]) -> Callable[..., S]:
    """Dependency that builds ``service_cls`` for the current request."""

    def _dependency(
        session: Session = Depends(get_session),
        config_manager: ConfigManager = Depends(get_config_manager),
        actor: str = Depends(get_actor),
    ) -> S:
        return service_cls(session, config_manager, actor=actor)

    return _dependency
