"""
Base service class for all back-office services.

Provides common functionality:
- Session and configuration access
- Structured logging bound to the service name
- Audit trail for every mutating operation
- Pagination and lookup helpers
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, TypeVar

import structlog
from pydantic import BaseModel, Field
from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from logiops.core.config import ConfigManager, get_config
from logiops.core.errors import NotFoundError
from logiops.data.models.common import Pagination
from logiops.data.tables import AuditLog

T = TypeVar("T")


class AuditEntry(BaseModel):
    """
    Structured record of a change.

    Persisted to the audit log and echoed to the structured log.
    """

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    actor: str
    action: str  # CREATE, UPDATE, DELETE, IMPORT, CONFIRM, ...
    entity_type: str
    entity_id: str
    changes: Optional[dict[str, Any]] = None
    metadata: Optional[dict[str, Any]] = None


class BaseService:
    """
    Base class for all back-office services.

    Provides:
    - Database session (owned by the caller)
    - Configuration loading
    - Audit logging
    - Pagination helpers
    """

    service_name = "base"

    def __init__(
        self,
        session: Session,
        config_manager: Optional[ConfigManager] = None,
        logger: Optional[structlog.BoundLogger] = None,
        actor: str = "system",
    ) -> None:
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session; the caller commits or rolls back
            config_manager: Optional config manager (defaults to global instance)
            logger: Optional structured logger
            actor: User name recorded in audit entries
        """
        self.session = session
        self.config_manager = config_manager or get_config()
        self.logger = logger or structlog.get_logger(service=self.service_name)
        self.actor = actor or "system"

    def log_audit(self, entry: AuditEntry) -> AuditLog:
        """
        Record an audit entry.

        Args:
            entry: AuditEntry describing the change

        Returns:
            The AuditLog row (flushed, not committed)
        """
        row = AuditLog(
            actor=entry.actor,
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            changes=entry.changes,
            extra=entry.metadata,
            created_at=entry.timestamp,
        )
        self.session.add(row)
        self.session.flush()

        self.logger.info(
            "audit_recorded",
            action=entry.action,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            actor=entry.actor,
        )
        return row

    def audit(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        changes: Optional[dict[str, Any]] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """Shorthand for ``log_audit`` with the service's actor."""
        return self.log_audit(
            AuditEntry(
                actor=self.actor,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                changes=changes,
                metadata=metadata,
            )
        )

    def get_or_404(self, model: type[T], entity_id: str, resource: str) -> T:
        obj = self.session.get(model, entity_id)
        if obj is None:
            raise NotFoundError(resource, entity_id)
        return obj

    def clamp_limit(self, limit: Optional[int]) -> int:
        pagination = self.config_manager.get_pagination()
        if not limit or limit < 1:
            return pagination.default_limit
        return min(limit, pagination.max_limit)

    def paginate(self, stmt: Select, page: int = 1, limit: Optional[int] = None) -> tuple[list[Any], Pagination]:
        """
        Run a select with offset/limit and a matching count query.

        Returns:
            (items, pagination)
        """
        page = max(page or 1, 1)
        limit = self.clamp_limit(limit)

        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = self.session.execute(count_stmt).scalar_one()

        items = list(self.session.execute(stmt.offset((page - 1) * limit).limit(limit)).scalars().unique())
        return items, Pagination.build(page, limit, total)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(actor='{self.actor}')"


def changed_fields(obj: Any, values: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """
    Apply ``values`` to ``obj`` and return ``{field: {"from", "to"}}`` for real changes.
    """
    changes: dict[str, dict[str, Any]] = {}
    for key, value in values.items():
        current = getattr(obj, key)
        if current != value:
            changes[key] = {"from": _jsonable(current), "to": _jsonable(value)}
            setattr(obj, key, value)
    return changes


def _jsonable(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def column_values(model: BaseModel, exclude_unset: bool = False) -> dict[str, Any]:
    """Dump a schema for assignment to ORM columns (enum members become their values)."""
    data = model.model_dump(exclude_unset=exclude_unset)
    return {key: value.value if isinstance(value, Enum) else value for key, value in data.items()}
