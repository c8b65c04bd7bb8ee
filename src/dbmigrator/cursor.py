"""Peekable, order-validating cursors over migration sequences.

A cursor exposes the migration it currently points at and advances one step
at a time. Every step checks that the new migration sorts strictly after the
previous one, so ordering errors surface at the point they are reached instead
of requiring the whole sequence up front.
"""

from collections.abc import AsyncIterable, Iterable
from typing import Generic, TypeVar

from dbmigrator.exceptions import MigrationOrderError
from dbmigrator.models import Migration

T = TypeVar("T")


class _OrderedCursor(Generic[T]):
    """State and order validation shared by the sync and async cursors."""

    def __init__(self, label: str) -> None:
        self.label = label
        self.has_more = False
        self.previous: Migration[T] | None = None
        self._current: Migration[T] | None = None

    @property
    def current(self) -> Migration[T]:
        """The migration the cursor points at. Only valid while ``has_more``."""
        if self._current is None:
            raise LookupError(f"{self.label} cursor has no current migration")
        return self._current

    def _step(self, migration: Migration[T] | None) -> bool:
        self.previous = self._current
        self._current = migration
        self.has_more = migration is not None
        if migration is not None and self.previous is not None and self.previous >= migration:
            raise MigrationOrderError(self.label, self.previous, migration)
        return self.has_more


class MigrationCursor(_OrderedCursor[T]):
    """Cursor over a blocking iterable of migrations.

    Example:
        ```python
        cursor = MigrationCursor(migrations, "Defined")
        while cursor.advance():
            print(cursor.current.human_readable_id)
        ```
    """

    def __init__(self, migrations: Iterable[Migration[T]], label: str) -> None:
        super().__init__(label)
        self._iterator = iter(migrations)

    def advance(self) -> bool:
        """Move to the next migration.

        Returns:
            Whether the cursor now points at a migration.

        Raises:
            MigrationOrderError: If the next migration does not sort after the current one.
        """
        return self._step(next(self._iterator, None))

    def drain(self) -> list[Migration[T]]:
        """Collect the current migration and every one after it."""
        drained: list[Migration[T]] = []
        while self.has_more:
            drained.append(self.current)
            self.advance()
        return drained


class AsyncMigrationCursor(_OrderedCursor[T]):
    """Cursor over an async iterable of migrations, such as an async generator."""

    def __init__(self, migrations: AsyncIterable[Migration[T]], label: str) -> None:
        super().__init__(label)
        self._iterator = aiter(migrations)

    async def advance(self) -> bool:
        """Move to the next migration, awaiting the underlying iterator.

        Returns:
            Whether the cursor now points at a migration.

        Raises:
            MigrationOrderError: If the next migration does not sort after the current one.
        """
        return self._step(await anext(self._iterator, None))

    async def drain(self) -> list[Migration[T]]:
        """Collect the current migration and every one after it."""
        drained: list[Migration[T]] = []
        while self.has_more:
            drained.append(self.current)
            await self.advance()
        return drained
