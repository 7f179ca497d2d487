"""
Shared schema types: pagination and import results.
"""

import math
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImportMode(str, Enum):
    """Two-phase import: dry run, then write."""

    SIMULATE = "simulate"
    COMMIT = "commit"


class ExportFormat(str, Enum):
    XLSX = "xlsx"
    CSV = "csv"


class ORMModel(BaseModel):
    """Base for response models read from ORM objects."""

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    """Page metadata returned with every list."""

    page: int
    limit: int
    total_count: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total_count: int) -> "Pagination":
        total_pages = math.ceil(total_count / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total_count=total_count,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class ImportRowError(BaseModel):
    """One rejected import row (Excel style row number)."""

    row: int
    error: str
    data: Optional[dict[str, Any]] = None


class ImportResult(BaseModel):
    """Summary of a simulate or commit import run."""

    total: int = 0
    valid: int = 0
    invalid: int = 0
    imported: int = 0
    updated: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)
    preview: Optional[list[dict[str, Any]]] = None


class BulkResult(BaseModel):
    """Per-item outcome of a bulk operation."""

    success: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)


def blank_to_none(value: Any) -> Any:
    """Strip strings and turn empty ones into None."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value
