from __future__ import annotations

import logging
from pathlib import Path

from database.base import Database

LOGGER = logging.getLogger(__name__)


MIGRATION_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS schema_migrations (
    id TEXT PRIMARY KEY,
    applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
);
"""


def split_statements(sql: str) -> list[str]:
    # Migrations are plain DDL; no procedural bodies with embedded semicolons.
    return [statement.strip() for statement in sql.split(";") if statement.strip()]


async def run_migrations(database: Database, migrations_path: Path) -> int:
    await database.executescript(MIGRATION_TABLE_SQL)
    applied = await database.fetchall("SELECT id FROM schema_migrations;")
    applied_ids = {row["id"] for row in applied}

    count = 0
    for migration_file in sorted(migrations_path.glob("*.sql")):
        migration_id = migration_file.name
        if migration_id in applied_ids:
            continue
        statements = split_statements(migration_file.read_text(encoding="utf-8"))
        LOGGER.info("Applying migration %s (%s statements)", migration_id, len(statements))
        async with database.transaction() as tx:
            for statement in statements:
                await tx.execute(statement)
            await tx.execute("INSERT INTO schema_migrations(id) VALUES (?);", [migration_id])
        count += 1
    return count
