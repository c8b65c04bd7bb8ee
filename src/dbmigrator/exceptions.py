"""Exceptions raised by the migration reconciler."""

from typing import Any


class MigrationError(Exception):
    """Base class for all dbmigrator errors."""


class MigrationOrderError(MigrationError):
    """A migration sequence is not strictly ascending by id.

    Attributes:
        label: Which sequence was being traversed ("Defined" or "Applied").
        previous: The migration seen before the offending one.
        current: The migration that does not come after ``previous``.
    """

    def __init__(self, label: str, previous: Any, current: Any) -> None:
        self.label = label
        self.previous = previous
        self.current = current
        super().__init__(
            f"{label} migrations are not in ascending order: "
            f"{previous} should not come before {current}."
        )


class MigratorBusyError(MigrationError):
    """An async migrator was called while a reconciliation is in progress."""

    def __init__(self, migrator: Any) -> None:
        self.migrator = migrator
        super().__init__(
            f"{type(migrator).__name__} is already working; "
            "wait for the running reconciliation to finish"
        )


class MigrationLoadError(MigrationError):
    """A migration definition file could not be loaded."""
