"""Shared pytest fixtures for dbmigrator tests.

This module provides in-memory database adapters for both execution models.
Each adapter records every call it receives so tests can assert on the exact
sequence of adapter operations a reconciliation performs.
"""

import asyncio
from collections.abc import AsyncIterator, Callable, Iterator, Sequence
from datetime import datetime, timezone
from typing import Any

import pytest

from dbmigrator.database import AsyncDatabase, SyncDatabase
from dbmigrator.models import Migration

FIXED_NOW = datetime(2026, 2, 13, 15, 30, 0, tzinfo=timezone.utc)


def _make_migration(id: int, name: str | None = None) -> Migration[str]:
    return Migration(id=id, name=name, up=f"up {id}", down=f"down {id}")


# =============================================================================
# In-memory Database Adapters
# =============================================================================


class InMemoryDatabase(SyncDatabase[str]):
    """Blocking adapter keeping applied migrations in a list.

    Attributes:
        applied: Applied migrations, in the order they are returned.
        calls: Every adapter call as a tuple of (operation, argument).
        fail_on: Actions whose ``perform_migration`` raises RuntimeError.
    """

    def __init__(
        self,
        applied: Sequence[Migration[str]] = (),
        initialized: bool = True,
        fail_on: Sequence[str] = (),
    ) -> None:
        self.applied = list(applied)
        self.initialized = initialized
        self.fail_on = set(fail_on)
        self.fail_store = False
        self.fail_rollback = False
        self.calls: list[tuple[str, Any]] = []
        self._snapshot: list[Migration[str]] | None = None

    @property
    def applied_ids(self) -> list[Any]:
        return [m.id for m in self.applied]

    def operations(self, *names: str) -> list[tuple[str, Any]]:
        """Calls filtered to the given operation names."""
        return [call for call in self.calls if call[0] in names]

    def begin_transaction(self) -> None:
        self.calls.append(("begin", None))
        self._snapshot = list(self.applied)

    def commit_transaction(self) -> None:
        self.calls.append(("commit", None))
        self._snapshot = None

    def rollback_transaction(self) -> None:
        self.calls.append(("rollback", None))
        if self.fail_rollback:
            raise ConnectionError("rollback failed")
        if self._snapshot is not None:
            self.applied = self._snapshot
        self._snapshot = None

    def is_migrations_table_initialized(self) -> bool:
        self.calls.append(("is_initialized", None))
        return self.initialized

    def initialize_migrations_table(self) -> None:
        self.calls.append(("initialize", None))
        self.initialized = True

    def retrieve_all_migrations(self) -> Iterator[Migration[str]]:
        self.calls.append(("retrieve", None))
        yield from list(self.applied)

    def perform_migration(self, action: str) -> None:
        self.calls.append(("perform", action))
        if action in self.fail_on:
            raise RuntimeError(f"failed to perform {action}")

    def store_migrations(self, migrations: Sequence[Migration[str]]) -> None:
        self.calls.append(("store", [m.id for m in migrations]))
        if self.fail_store:
            raise RuntimeError("failed to store migrations")
        self.applied = sorted([*self.applied, *migrations], key=lambda m: m.id)

    def remove_migrations(self, migrations: Sequence[Migration[str]]) -> None:
        self.calls.append(("remove", [m.id for m in migrations]))
        removed = {m.id for m in migrations}
        self.applied = [m for m in self.applied if m.id not in removed]


class AsyncInMemoryDatabase(AsyncDatabase[str]):
    """Asyncio adapter delegating to an InMemoryDatabase.

    Every operation yields to the event loop first. When ``gate`` is set,
    ``perform_migration`` waits on it, which keeps a reconciliation suspended
    mid-flight.
    """

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        self.inner = InMemoryDatabase(*args, **kwargs)
        self.gate: asyncio.Event | None = None

    @property
    def calls(self) -> list[tuple[str, Any]]:
        return self.inner.calls

    @property
    def applied(self) -> list[Migration[str]]:
        return self.inner.applied

    @property
    def applied_ids(self) -> list[Any]:
        return self.inner.applied_ids

    def operations(self, *names: str) -> list[tuple[str, Any]]:
        return self.inner.operations(*names)

    async def begin_transaction(self) -> None:
        await asyncio.sleep(0)
        self.inner.begin_transaction()

    async def commit_transaction(self) -> None:
        await asyncio.sleep(0)
        self.inner.commit_transaction()

    async def rollback_transaction(self) -> None:
        await asyncio.sleep(0)
        self.inner.rollback_transaction()

    async def is_migrations_table_initialized(self) -> bool:
        await asyncio.sleep(0)
        return self.inner.is_migrations_table_initialized()

    async def initialize_migrations_table(self) -> None:
        await asyncio.sleep(0)
        self.inner.initialize_migrations_table()

    async def retrieve_all_migrations(self) -> AsyncIterator[Migration[str]]:
        for migration in self.inner.retrieve_all_migrations():
            await asyncio.sleep(0)
            yield migration

    async def perform_migration(self, action: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        await asyncio.sleep(0)
        self.inner.perform_migration(action)

    async def store_migrations(self, migrations: Sequence[Migration[str]]) -> None:
        await asyncio.sleep(0)
        self.inner.store_migrations(migrations)

    async def remove_migrations(self, migrations: Sequence[Migration[str]]) -> None:
        await asyncio.sleep(0)
        self.inner.remove_migrations(migrations)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def make_migration() -> Callable[..., Migration[str]]:
    """Factory for migrations whose actions are ``"up <id>"`` / ``"down <id>"``."""
    return _make_migration


@pytest.fixture
def migrations() -> dict[str, Migration[str]]:
    """Migrations A(1), B(2), C(3), D(4)."""
    return {
        "A": _make_migration(1, "a"),
        "B": _make_migration(2, "b"),
        "C": _make_migration(3, "c"),
        "D": _make_migration(4, "d"),
    }


@pytest.fixture
def make_db() -> Callable[..., InMemoryDatabase]:
    """Factory for blocking in-memory databases."""
    return InMemoryDatabase


@pytest.fixture
def make_async_db() -> Callable[..., AsyncInMemoryDatabase]:
    """Factory for asyncio in-memory databases."""
    return AsyncInMemoryDatabase


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    """Clock that always returns FIXED_NOW."""
    return lambda: FIXED_NOW
