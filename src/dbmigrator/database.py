"""Database adapter contracts consumed by the migrators.

The reconciler never talks to a database directly. Storage backends implement
one of the two abstract classes below: ``SyncDatabase`` for blocking drivers
and ``AsyncDatabase`` for asyncio drivers. ``T`` is the payload type carried
by ``Migration.up`` / ``Migration.down`` (an SQL string, a callable, ...).
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Generic, TypeVar

from dbmigrator.models import Migration

T = TypeVar("T")


class SyncDatabase(ABC, Generic[T]):
    """Blocking storage adapter.

    Example:
        ```python
        class SqliteDatabase(SyncDatabase[str]):
            ...

        SqliteDatabase(conn).migrate(migrations)
        ```
    """

    @abstractmethod
    def begin_transaction(self) -> None:
        """Start the transaction that wraps a whole reconciliation."""

    @abstractmethod
    def commit_transaction(self) -> None:
        """Commit the reconciliation transaction."""

    @abstractmethod
    def rollback_transaction(self) -> None:
        """Roll back the reconciliation transaction."""

    @abstractmethod
    def is_migrations_table_initialized(self) -> bool:
        """Whether the bookkeeping table for applied migrations exists."""

    @abstractmethod
    def initialize_migrations_table(self) -> None:
        """Create the bookkeeping table for applied migrations."""

    @abstractmethod
    def retrieve_all_migrations(self) -> Iterable[Migration[T]]:
        """Return the applied migrations in ascending id order."""

    @abstractmethod
    def perform_migration(self, action: T) -> None:
        """Execute a single ``up`` or ``down`` action."""

    @abstractmethod
    def store_migrations(self, migrations: Sequence[Migration[T]]) -> None:
        """Record newly applied migrations (with ``applied_at`` set)."""

    @abstractmethod
    def remove_migrations(self, migrations: Sequence[Migration[T]]) -> None:
        """Delete the records of rolled back migrations."""

    def migrate(self, migrations: Sequence[Migration[T]]) -> None:
        """Reconcile this database with ``migrations`` using a fresh SyncMigrator."""
        from dbmigrator.migrator import SyncMigrator

        SyncMigrator()(self, migrations)


class AsyncDatabase(ABC, Generic[T]):
    """Asyncio storage adapter.

    Every operation may suspend; the migrator awaits each one before issuing
    the next, so implementations never see overlapping calls from a single
    reconciliation.
    """

    @abstractmethod
    async def begin_transaction(self) -> None:
        """Start the transaction that wraps a whole reconciliation."""

    @abstractmethod
    async def commit_transaction(self) -> None:
        """Commit the reconciliation transaction."""

    @abstractmethod
    async def rollback_transaction(self) -> None:
        """Roll back the reconciliation transaction."""

    @abstractmethod
    async def is_migrations_table_initialized(self) -> bool:
        """Whether the bookkeeping table for applied migrations exists."""

    @abstractmethod
    async def initialize_migrations_table(self) -> None:
        """Create the bookkeeping table for applied migrations."""

    @abstractmethod
    def retrieve_all_migrations(self) -> AsyncIterator[Migration[T]]:
        """Return the applied migrations in ascending id order.

        Usually implemented as an async generator.
        """

    @abstractmethod
    async def perform_migration(self, action: T) -> None:
        """Execute a single ``up`` or ``down`` action."""

    @abstractmethod
    async def store_migrations(self, migrations: Sequence[Migration[T]]) -> None:
        """Record newly applied migrations (with ``applied_at`` set)."""

    @abstractmethod
    async def remove_migrations(self, migrations: Sequence[Migration[T]]) -> None:
        """Delete the records of rolled back migrations."""

    async def migrate(self, migrations: Sequence[Migration[T]]) -> None:
        """Reconcile this database with ``migrations`` using a fresh AsyncMigrator."""
        from dbmigrator.migrator import AsyncMigrator

        await AsyncMigrator()(self, migrations)
