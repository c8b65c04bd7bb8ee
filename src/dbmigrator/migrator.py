"""Migrators that reconcile a database with the migrations defined in code.

Both migrators run the same protocol inside a single database transaction:

1. Walk the defined and applied migrations in lock-step to find the last
   migration they have in common.
2. Roll back every applied migration after that point, newest first.
3. Apply every defined migration after that point, oldest first.

Any failure rolls the transaction back and re-raises the original error.
``SyncMigrator`` drives a blocking ``SyncDatabase``; ``AsyncMigrator`` awaits
an ``AsyncDatabase``. Step selection, timestamps, logging and reset live in
``_BaseMigrator`` so the two only differ in how adapter calls are made.

Example usage:
    ```python
    from dbmigrator import SyncMigrator

    migrator = SyncMigrator()
    migrator(database, migrations)
    ```
"""

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from dbmigrator.cursor import AsyncMigrationCursor, MigrationCursor
from dbmigrator.database import AsyncDatabase, SyncDatabase
from dbmigrator.exceptions import MigratorBusyError
from dbmigrator.models import Migration

T = TypeVar("T")

DEFINED = "Defined"
APPLIED = "Applied"


class ReconcileStep(str, Enum):
    """Next action of the reconciliation loop."""

    DONE = "done"
    APPLY = "apply"
    ROLLBACK = "rollback"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _BaseMigrator(Generic[T]):
    """State and bookkeeping shared by SyncMigrator and AsyncMigrator.

    Attributes:
        log: Logger receiving progress and diagnostic messages.
        clock: Returns the timestamp stamped on each applied batch.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the migrator.

        Args:
            logger: Logger to use. Defaults to the ``dbmigrator.migrator`` logger.
            clock: Zero-argument callable returning the current time.
                Defaults to ``datetime.now(timezone.utc)``.
        """
        self.log = logger or logging.getLogger(__name__)
        self.clock = clock or _utcnow
        self._on_progress: Callable[[str], None] | None = None
        self._db: Any = None
        self._defined: Any = None
        self._applied: Any = None

    @property
    def working(self) -> bool:
        """Whether a database is bound, i.e. a reconciliation is in progress."""
        return self._db is not None

    @property
    def has_defined(self) -> bool:
        """Whether defined migrations remain past the cursor."""
        return self._defined is not None and self._defined.has_more

    @property
    def has_applied(self) -> bool:
        """Whether applied migrations remain past the cursor."""
        return self._applied is not None and self._applied.has_more

    def set_progress_callback(self, callback: Callable[[str], None] | None) -> None:
        """Receive the migrator's INFO-level messages as they are logged.

        The callback gets table provisioning, the size of each rollback and
        apply batch, and completion of the reconciliation.

        Args:
            callback: Called with each message, or None to stop reporting.
        """
        self._on_progress = callback

    def _progress(self, message: str) -> None:
        """Log a reconciliation milestone at INFO and forward it to the callback."""
        self.log.info(message)
        if self._on_progress:
            self._on_progress(message)

    def _next_step(self) -> ReconcileStep:
        # Rollback first so the database is back at the common prefix
        # before anything new is applied.
        if self.has_applied:
            return ReconcileStep.ROLLBACK
        if self.has_defined:
            return ReconcileStep.APPLY
        return ReconcileStep.DONE

    def _ensure_idle(self) -> None:
        if self.working:
            raise MigratorBusyError(self)

    def _log_last_common(self, last_common: Migration[T] | None) -> None:
        if last_common is not None:
            self.log.debug(f"last common migration: {last_common.human_readable_id}")
        else:
            self.log.debug("no common migrations found")

    def _stamp(self, migrations: list[Migration[T]]) -> list[Migration[T]]:
        now = self.clock()
        return [migration.mark_applied(now) for migration in migrations]

    def reset(self) -> None:
        """Reset the migrator to its initial state, allowing it to be used again."""
        self._db = None
        self._defined = None
        self._applied = None
        self.log.debug("migrator reset")


class SyncMigrator(_BaseMigrator[T]):
    """Reconciles a blocking ``SyncDatabase`` with defined migrations.

    The step methods (``initialize``, ``find_last_common_migration``,
    ``rollback_remaining_applied_migrations``,
    ``apply_remaining_defined_migrations``, ``reset``) are public so they can
    be exercised one at a time; production code only needs ``call``.

    Example:
        ```python
        migrator = SyncMigrator(logger=logging.getLogger("app.db"))
        migrator(database, migrations)
        ```
    """

    def call(self, db: SyncDatabase[T], defined: Iterable[Migration[T]]) -> None:
        """Make ``db`` match the ``defined`` migrations in one transaction.

        Args:
            db: Database adapter to reconcile.
            defined: Migrations defined in code, ascending by id.

        Raises:
            MigrationOrderError: If either sequence is not strictly ascending.
            Exception: Any adapter error, unchanged, after the transaction is rolled back.
                A failing rollback is logged and does not replace this error.
        """
        try:
            self.initialize(db, defined)

            db.begin_transaction()
            try:
                self.find_last_common_migration()

                while True:
                    step = self._next_step()
                    if step is ReconcileStep.DONE:
                        break
                    if step is ReconcileStep.ROLLBACK:
                        self.rollback_remaining_applied_migrations()
                    else:
                        self.apply_remaining_defined_migrations()

                db.commit_transaction()
            except BaseException as e:  # interrupts abort the transaction too
                self.log.error(f"Migration failed, rolling back transaction: {e!r}")
                try:
                    db.rollback_transaction()
                except Exception:
                    self.log.exception("Rolling back the transaction failed")
                raise

            self._progress("migration complete")
        finally:
            self.reset()

    __call__ = call

    def initialize(self, db: SyncDatabase[T], defined: Iterable[Migration[T]]) -> None:
        """Bind ``db`` and position both cursors on their first migration.

        Creates the migrations table first if the database reports it missing.
        """
        self.log.debug("initializing migrator...")
        self._db = db
        self._defined = MigrationCursor(defined, DEFINED)

        if not db.is_migrations_table_initialized():
            self._progress("initializing migrations table")
            db.initialize_migrations_table()

        self._applied = MigrationCursor(db.retrieve_all_migrations(), APPLIED)
        self._defined.advance()
        self._applied.advance()

    def find_last_common_migration(self) -> Migration[T] | None:
        """Advance both cursors past the migrations they have in common.

        Returns:
            The last migration present in both sequences, or None.
        """
        self.log.debug("finding last common migration...")
        last_common: Migration[T] | None = None
        while self.has_defined and self.has_applied and self._defined.current == self._applied.current:
            last_common = self._defined.current
            self._defined.advance()
            self._applied.advance()

        self._log_last_common(last_common)
        return last_common

    def rollback_remaining_applied_migrations(self) -> None:
        """Roll back every remaining applied migration, newest first.

        The rolled back migrations are then removed from the migrations table
        in a single call.
        """
        if not self.has_applied:
            self.log.debug("no migrations to roll back")
            return

        to_rollback = list(reversed(self._applied.drain()))
        self._progress(f"rolling back {len(to_rollback)} applied migration(s)")

        for migration in to_rollback:
            self.log.debug(f"|_ - migration {migration.human_readable_id}")
            self._db.perform_migration(migration.down)

        self.log.debug("updating applied migrations table...")
        self._db.remove_migrations(to_rollback)

    def apply_remaining_defined_migrations(self) -> None:
        """Apply every remaining defined migration, oldest first.

        All migrations of the batch share one ``applied_at`` timestamp and are
        stored in the migrations table in a single call.
        """
        if not self.has_defined:
            self.log.debug("no migrations to apply")
            return

        to_apply = self._stamp(self._defined.drain())
        self._progress(f"applying {len(to_apply)} defined migration(s)")

        for migration in to_apply:
            self.log.debug(f"|_ + migration {migration.human_readable_id}")
            self._db.perform_migration(migration.up)

        self.log.debug("updating applied migrations table...")
        self._db.store_migrations(to_apply)


class AsyncMigrator(_BaseMigrator[T]):
    """Reconciles an ``AsyncDatabase`` with defined migrations.

    Behaves exactly like ``SyncMigrator`` but awaits every adapter call. An
    instance runs one reconciliation at a time: calling it while ``working``
    raises ``MigratorBusyError`` without touching the running one.
    """

    async def call(self, db: AsyncDatabase[T], defined: Iterable[Migration[T]]) -> None:
        """Make ``db`` match the ``defined`` migrations in one transaction.

        Args:
            db: Database adapter to reconcile.
            defined: Migrations defined in code, ascending by id.

        Raises:
            MigratorBusyError: If a reconciliation is already running on this instance.
            MigrationOrderError: If either sequence is not strictly ascending.
            Exception: Any adapter error, unchanged, after the transaction is rolled back.
                A failing rollback is logged and does not replace this error.
        """
        # Checked outside the try block: a rejected call must not reset the
        # reconciliation that is already running.
        self._ensure_idle()

        try:
            await self.initialize(db, defined)

            await db.begin_transaction()
            try:
                await self.find_last_common_migration()

                while True:
                    step = self._next_step()
                    if step is ReconcileStep.DONE:
                        break
                    if step is ReconcileStep.ROLLBACK:
                        await self.rollback_remaining_applied_migrations()
                    else:
                        await self.apply_remaining_defined_migrations()

                await db.commit_transaction()
            except BaseException as e:  # cancellation aborts the transaction too
                self.log.error(f"Migration failed, rolling back transaction: {e!r}")
                try:
                    await db.rollback_transaction()
                except Exception:
                    self.log.exception("Rolling back the transaction failed")
                raise

            self._progress("migration complete")
        finally:
            self.reset()

    __call__ = call

    async def initialize(self, db: AsyncDatabase[T], defined: Iterable[Migration[T]]) -> None:
        """Bind ``db`` and position both cursors on their first migration.

        Raises:
            MigratorBusyError: If a database is already bound.
        """
        self._ensure_idle()

        self.log.debug("initializing migrator...")
        self._db = db
        self._defined = MigrationCursor(defined, DEFINED)

        if not await db.is_migrations_table_initialized():
            self._progress("initializing migrations table")
            await db.initialize_migrations_table()

        self._applied = AsyncMigrationCursor(db.retrieve_all_migrations(), APPLIED)
        self._defined.advance()
        await self._applied.advance()

    async def find_last_common_migration(self) -> Migration[T] | None:
        """Advance both cursors past the migrations they have in common.

        Returns:
            The last migration present in both sequences, or None.
        """
        self.log.debug("finding last common migration...")
        last_common: Migration[T] | None = None
        while self.has_defined and self.has_applied and self._defined.current == self._applied.current:
            last_common = self._defined.current
            self._defined.advance()
            await self._applied.advance()

        self._log_last_common(last_common)
        return last_common

    async def rollback_remaining_applied_migrations(self) -> None:
        """Roll back every remaining applied migration, newest first."""
        if not self.has_applied:
            self.log.debug("no migrations to roll back")
            return

        to_rollback = list(reversed(await self._applied.drain()))
        self._progress(f"rolling back {len(to_rollback)} applied migration(s)")

        for migration in to_rollback:
            self.log.debug(f"|_ - migration {migration.human_readable_id}")
            await self._db.perform_migration(migration.down)

        self.log.debug("updating applied migrations table...")
        await self._db.remove_migrations(to_rollback)

    async def apply_remaining_defined_migrations(self) -> None:
        """Apply every remaining defined migration, oldest first."""
        if not self.has_defined:
            self.log.debug("no migrations to apply")
            return

        to_apply = self._stamp(self._defined.drain())
        self._progress(f"applying {len(to_apply)} defined migration(s)")

        for migration in to_apply:
            self.log.debug(f"|_ + migration {migration.human_readable_id}")
            await self._db.perform_migration(migration.up)

        self.log.debug("updating applied migrations table...")
        await self._db.store_migrations(to_apply)


def migrate(db: SyncDatabase[T], migrations: Sequence[Migration[T]]) -> None:
    """Reconcile a blocking database with ``migrations``."""
    SyncMigrator()(db, migrations)


async def migrate_async(db: AsyncDatabase[T], migrations: Sequence[Migration[T]]) -> None:
    """Reconcile an asyncio database with ``migrations``."""
    await AsyncMigrator()(db, migrations)
