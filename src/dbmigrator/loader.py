"""Load migration definitions from YAML files.

Each migration lives in its own file named with a numeric prefix, e.g.
``0001_create_users.yaml``:

```yaml
id: 1
name: create_users
up: |
  CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT NOT NULL);
down: |
  DROP TABLE users;
```

Write integer ids without leading zeros: YAML reads ``id: 0010`` as the
octal number 8. An integer id must equal the numeric filename prefix, which
catches that mistake. Quote ids that are meant to be strings
(``id: "0010"``); all files in one directory must use the same id type.
"""

import logging
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from dbmigrator.exceptions import MigrationLoadError
from dbmigrator.models import Migration

logger = logging.getLogger(__name__)

# Numeric prefix of a migration filename, e.g. "0001" in 0001_create_users.yaml
PREFIX_PATTERN = re.compile(r"^(\d+)")


def load_migration(yaml_file: Path) -> Migration[str]:
    """Load a single migration definition.

    Args:
        yaml_file: Path to the YAML file.

    Returns:
        The parsed migration.

    Raises:
        MigrationLoadError: If the file is not valid YAML, not a valid migration,
            has no id, or has an integer id that differs from its filename prefix.
    """
    try:
        data = yaml.safe_load(yaml_file.read_text())
    except yaml.YAMLError as e:
        raise MigrationLoadError(f"Invalid YAML in migration {yaml_file}: {e}") from e

    if not isinstance(data, dict):
        raise MigrationLoadError(f"Migration {yaml_file} must be a mapping")

    try:
        migration = Migration[str].model_validate(data)
    except ValidationError as e:
        raise MigrationLoadError(f"Invalid migration {yaml_file}: {e}") from e

    if migration.id is None:
        raise MigrationLoadError(f"Migration {yaml_file} has no id")

    match = PREFIX_PATTERN.match(yaml_file.stem)
    if match and isinstance(migration.id, int) and int(match.group(1)) != migration.id:
        raise MigrationLoadError(
            f"Migration {yaml_file} has id {migration.id}, expected {int(match.group(1))} "
            "from its filename (write integer ids without leading zeros)"
        )

    return migration


def load_migrations(migrations_dir: Path) -> list[Migration[str]]:
    """Load all migration YAML files from a directory.

    Files whose name does not start with a digit are skipped. A file that
    cannot be loaded is an error rather than being skipped: a missing
    definition would cause its applied migration to be rolled back.

    Args:
        migrations_dir: Directory containing migration YAML files.

    Returns:
        List of Migration objects, sorted by ID.

    Raises:
        MigrationLoadError: If any migration file is invalid, or the ids
            cannot be compared with each other.
    """
    migrations: list[Migration[str]] = []

    for yaml_file in migrations_dir.glob("*.yaml"):
        # Skip non-migration files
        if not yaml_file.stem[:1].isdigit():
            logger.warning(f"Skipping non-migration file {yaml_file.name}")
            continue

        migrations.append(load_migration(yaml_file))

    logger.debug(f"Loaded {len(migrations)} migration(s) from {migrations_dir}")
    try:
        return sorted(migrations, key=lambda m: m.id)
    except TypeError as e:
        raise MigrationLoadError(
            f"Migration ids in {migrations_dir} cannot be ordered; use one id type: {e}"
        ) from e
