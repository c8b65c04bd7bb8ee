"""Data models for the migration reconciler.

This module defines the Pydantic model for a single migration. Migrations
are identified and ordered by their ``id`` alone; the ``up`` and ``down``
payloads are opaque to the reconciler and handed to the database adapter
as-is.
"""

from datetime import datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class Migration(BaseModel, Generic[T]):
    """A single schema change.

    Attributes:
        id: Totally ordered identifier (sequence number, timestamp, ...).
        name: Optional display name.
        up: Action that applies the migration.
        down: Action that rolls the migration back.
        applied_at: When the migration was applied, set by the migrator.

    Example:
        ```python
        create_users = Migration(
            id=1,
            name="create_users",
            up="CREATE TABLE users (id INTEGER PRIMARY KEY)",
            down="DROP TABLE users",
        )
        ```
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    id: Any = Field(..., description="Totally ordered migration id")
    name: str | None = Field(default=None, description="Display name")
    up: T = Field(..., description="Forward action")
    down: T = Field(..., description="Backward action")
    applied_at: datetime | None = Field(default=None, description="When the migration was applied")

    @property
    def human_readable_id(self) -> str:
        """Label used in log messages; never used for comparison."""
        if self.name:
            return f"{self.id}_{self.name}"
        return str(self.id)

    def mark_applied(self, applied_at: datetime) -> "Migration[T]":
        """Return a copy of this migration stamped with ``applied_at``."""
        return self.model_copy(update={"applied_at": applied_at})

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Migration):
            return NotImplemented
        return bool(self.id == other.id)

    def __hash__(self) -> int:
        return hash(self.id)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Migration):
            return NotImplemented
        return bool(self.id < other.id)

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Migration):
            return NotImplemented
        return bool(self.id <= other.id)

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Migration):
            return NotImplemented
        return bool(self.id > other.id)

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Migration):
            return NotImplemented
        return bool(self.id >= other.id)

    def __str__(self) -> str:
        return f"Migration({self.human_readable_id})"
