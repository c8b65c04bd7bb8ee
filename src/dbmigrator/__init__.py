"""Reconcile a database's applied migrations with the migrations defined in code.

The migrators compare the migrations recorded in the database with the ones
defined in code, roll back whatever was applied past their common prefix and
apply the rest, all in a single transaction.

Example usage:
    ```python
    from dbmigrator import Migration, SyncMigrator

    migrations = [
        Migration(id=1, name="create_users", up="CREATE TABLE users (...)", down="DROP TABLE users"),
        Migration(id=2, name="add_email", up="ALTER TABLE ...", down="ALTER TABLE ..."),
    ]

    # Any SyncDatabase implementation
    database.migrate(migrations)

    # Or with a configured migrator
    SyncMigrator(logger=logging.getLogger("app.db"))(database, migrations)
    ```
"""

from dbmigrator.__version__ import __version__
from dbmigrator.cursor import AsyncMigrationCursor, MigrationCursor
from dbmigrator.database import AsyncDatabase, SyncDatabase
from dbmigrator.exceptions import (
    MigrationError,
    MigrationLoadError,
    MigrationOrderError,
    MigratorBusyError,
)
from dbmigrator.loader import load_migration, load_migrations
from dbmigrator.migrator import AsyncMigrator, ReconcileStep, SyncMigrator, migrate, migrate_async
from dbmigrator.models import Migration

__all__ = [
    "__version__",
    "AsyncDatabase",
    "AsyncMigrationCursor",
    "AsyncMigrator",
    "Migration",
    "MigrationCursor",
    "MigrationError",
    "MigrationLoadError",
    "MigrationOrderError",
    "MigratorBusyError",
    "ReconcileStep",
    "SyncDatabase",
    "SyncMigrator",
    "load_migration",
    "load_migrations",
    "migrate",
    "migrate_async",
]
