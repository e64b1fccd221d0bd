from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from core.errors import ConcurrentModificationError
from database.base import Database
from database.models import Document, GuildTicketConfig, TicketCategory, TicketRecord, ticket_key
from utils.constants import DEFAULT_CATEGORIES, TICKET_STATUS_CLOSED

LOGGER = logging.getLogger(__name__)

GUILD_SETTINGS = "guild_settings"
TICKETS_ACTIVE = "tickets.active"
TICKETS_CLOSED = "tickets.closed"
TICKET_COUNTERS = "ticket_counters"

MAX_WRITE_ATTEMPTS = 5


def _json_load(value: str | None, default: Any) -> Any:
    if value is None:
        return default
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        LOGGER.warning("Discarding undecodable document body")
        return default


def _json_dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _row_to_document(row: dict[str, Any]) -> Document:
    guild_id = row.get("guild_id")
    return Document(
        collection=row["collection"],
        key=row["doc_key"],
        guild_id=int(guild_id) if guild_id is not None else None,
        body=_json_load(row.get("body"), {}),
        version=int(row["version"]),
    )


class DuplicateDocumentError(ValueError):
    pass


class DocumentStore:
    """Flat JSON documents grouped by collection, each stamped with a version for compare-and-swap writes."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def get(self, collection: str, key: str) -> Document | None:
        row = await self.db.fetchone(
            "SELECT * FROM documents WHERE collection = ? AND doc_key = ?;",
            [collection, key],
        )
        return _row_to_document(row) if row else None

    async def list(self, collection: str, guild_id: int | None = None) -> list[Document]:
        if guild_id is None:
            rows = await self.db.fetchall(
                "SELECT * FROM documents WHERE collection = ? ORDER BY doc_key ASC;",
                [collection],
            )
        else:
            rows = await self.db.fetchall(
                "SELECT * FROM documents WHERE collection = ? AND guild_id = ? ORDER BY doc_key ASC;",
                [collection, guild_id],
            )
        return [_row_to_document(row) for row in rows]

    async def count(self, collection: str, guild_id: int | None = None) -> int:
        if guild_id is None:
            row = await self.db.fetchone("SELECT COUNT(*) AS total FROM documents WHERE collection = ?;", [collection])
        else:
            row = await self.db.fetchone(
                "SELECT COUNT(*) AS total FROM documents WHERE collection = ? AND guild_id = ?;",
                [collection, guild_id],
            )
        return int(row["total"]) if row else 0

    async def insert(self, collection: str, key: str, guild_id: int | None, body: dict[str, Any]) -> Document:
        affected = await self.db.execute(
            """
            INSERT INTO documents(collection, doc_key, guild_id, body, version)
            VALUES (?, ?, ?, ?, 1)
            ON CONFLICT(collection, doc_key) DO NOTHING;
            """,
            [collection, key, guild_id, _json_dump(body)],
        )
        if affected != 1:
            raise DuplicateDocumentError(f"{collection}/{key} already exists")
        return Document(collection=collection, key=key, guild_id=guild_id, body=body, version=1)

    async def replace(self, document: Document, body: dict[str, Any]) -> Document:
        """Write ``body`` only if the stored version still matches ``document.version``."""
        affected = await self.db.execute(
            """
            UPDATE documents
            SET body = ?, version = version + 1, updated_at = CURRENT_TIMESTAMP
            WHERE collection = ? AND doc_key = ? AND version = ?;
            """,
            [_json_dump(body), document.collection, document.key, document.version],
        )
        if affected != 1:
            raise ConcurrentModificationError()
        return Document(
            collection=document.collection,
            key=document.key,
            guild_id=document.guild_id,
            body=body,
            version=document.version + 1,
        )

    async def delete(self, collection: str, key: str) -> bool:
        affected = await self.db.execute(
            "DELETE FROM documents WHERE collection = ? AND doc_key = ?;",
            [collection, key],
        )
        return affected > 0

    async def move(
        self,
        document: Document,
        target_collection: str,
        body: dict[str, Any],
    ) -> Document:
        """Delete ``document`` and insert ``body`` under ``target_collection`` in one transaction."""
        async with self.db.transaction() as tx:
            removed = await tx.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_key = ? AND version = ?;",
                [document.collection, document.key, document.version],
            )
            if removed != 1:
                raise ConcurrentModificationError()
            inserted = await tx.execute(
                """
                INSERT INTO documents(collection, doc_key, guild_id, body, version)
                VALUES (?, ?, ?, ?, 1)
                ON CONFLICT(collection, doc_key) DO NOTHING;
                """,
                [target_collection, document.key, document.guild_id, _json_dump(body)],
            )
            if inserted != 1:
                raise DuplicateDocumentError(f"{target_collection}/{document.key} already exists")
        return Document(
            collection=target_collection,
            key=document.key,
            guild_id=document.guild_id,
            body=body,
            version=1,
        )


def default_categories() -> list[TicketCategory]:
    return [TicketCategory.from_dict(dict(row)) for row in DEFAULT_CATEGORIES]


class GuildSettingsRepository:
    def __init__(self, store: DocumentStore, default_max_tickets: int = 3) -> None:
        self.store = store
        self.default_max_tickets = default_max_tickets

    async def get(self, guild_id: int) -> GuildTicketConfig | None:
        document = await self.store.get(GUILD_SETTINGS, str(guild_id))
        if document is None:
            return None
        return GuildTicketConfig.from_document(guild_id, document.body, document.version)

    async def get_or_create(self, guild_id: int) -> GuildTicketConfig:
        existing = await self.get(guild_id)
        if existing is not None:
            return existing
        config = GuildTicketConfig(
            guild_id=guild_id,
            categories=default_categories(),
            max_tickets_per_user=self.default_max_tickets,
        )
        try:
            document = await self.store.insert(GUILD_SETTINGS, str(guild_id), guild_id, config.to_document())
        except DuplicateDocumentError:
            # Created concurrently by another handler.
            created = await self.get(guild_id)
            assert created is not None
            return created
        LOGGER.info("Created ticket settings for guild %s", guild_id, extra={"guild_id": guild_id})
        config.version = document.version
        return config

    async def update(
        self, guild_id: int, mutate: Callable[[GuildTicketConfig], None]
    ) -> GuildTicketConfig:
        """Apply ``mutate`` to a fresh copy and write it back, retrying on version conflicts."""
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            config = await self.get_or_create(guild_id)
            mutate(config)
            document = Document(GUILD_SETTINGS, str(guild_id), guild_id, {}, config.version)
            try:
                written = await self.store.replace(document, config.to_document())
            except ConcurrentModificationError:
                LOGGER.debug("Settings write conflict guild=%s attempt=%s", guild_id, attempt)
                continue
            config.version = written.version
            return config
        raise ConcurrentModificationError()

    async def list_all(self) -> list[GuildTicketConfig]:
        documents = await self.store.list(GUILD_SETTINGS)
        return [GuildTicketConfig.from_document(int(doc.key), doc.body, doc.version) for doc in documents]


class TicketRepository:
    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    async def next_ticket_id(self, guild_id: int) -> str:
        key = str(guild_id)
        for _ in range(MAX_WRITE_ATTEMPTS):
            counter = await self.store.get(TICKET_COUNTERS, key)
            try:
                if counter is None:
                    await self.store.insert(TICKET_COUNTERS, key, guild_id, {"value": 1})
                    value = 1
                else:
                    value = int(counter.body.get("value", 0)) + 1
                    await self.store.replace(counter, {"value": value})
            except (ConcurrentModificationError, DuplicateDocumentError):
                continue
            return f"{value:04d}"
        raise ConcurrentModificationError()

    async def create(self, record: TicketRecord) -> TicketRecord:
        try:
            document = await self.store.insert(TICKETS_ACTIVE, record.key, record.guild_id, record.to_document())
        except DuplicateDocumentError as exc:
            raise ConcurrentModificationError() from exc
        record.version = document.version
        return record

    async def get(self, guild_id: int, ticket_id: str) -> TicketRecord | None:
        document = await self.store.get(TICKETS_ACTIVE, ticket_key(guild_id, ticket_id))
        return TicketRecord.from_document(document.body, document.version) if document else None

    async def _find_by_channel(self, collection: str, guild_id: int, channel_id: int) -> TicketRecord | None:
        for document in await self.store.list(collection, guild_id):
            if int(document.body.get("channelId", 0)) == channel_id:
                return TicketRecord.from_document(document.body, document.version)
        return None

    async def get_by_channel(self, guild_id: int, channel_id: int) -> TicketRecord | None:
        return await self._find_by_channel(TICKETS_ACTIVE, guild_id, channel_id)

    async def get_closed_by_channel(self, guild_id: int, channel_id: int) -> TicketRecord | None:
        return await self._find_by_channel(TICKETS_CLOSED, guild_id, channel_id)

    async def list_active(self, guild_id: int) -> list[TicketRecord]:
        documents = await self.store.list(TICKETS_ACTIVE, guild_id)
        return [TicketRecord.from_document(doc.body, doc.version) for doc in documents]

    async def list_closed(self, guild_id: int) -> list[TicketRecord]:
        documents = await self.store.list(TICKETS_CLOSED, guild_id)
        return [TicketRecord.from_document(doc.body, doc.version) for doc in documents]

    async def list_open_by_user(
        self, guild_id: int, user_id: int, parent_channel_id: int | None = None
    ) -> list[TicketRecord]:
        return [
            record
            for record in await self.list_active(guild_id)
            if record.user_id == user_id and record.parent_channel_id == parent_channel_id
        ]

    async def count_active(self, guild_id: int | None = None) -> int:
        return await self.store.count(TICKETS_ACTIVE, guild_id)

    async def count_closed(self, guild_id: int | None = None) -> int:
        return await self.store.count(TICKETS_CLOSED, guild_id)

    async def update(self, record: TicketRecord, mutate: Callable[[TicketRecord], None]) -> TicketRecord:
        """Apply ``mutate`` to the stored active record, retrying when another writer got there first."""
        current = record
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            mutate(current)
            document = Document(TICKETS_ACTIVE, current.key, current.guild_id, {}, current.version)
            try:
                written = await self.store.replace(document, current.to_document())
            except ConcurrentModificationError:
                LOGGER.debug("Ticket write conflict key=%s attempt=%s", current.key, attempt)
                refreshed = await self.get(record.guild_id, record.id)
                if refreshed is None:
                    raise
                current = refreshed
                continue
            current.version = written.version
            return current
        raise ConcurrentModificationError()

    async def close(self, record: TicketRecord) -> TicketRecord:
        """Move an active record into the closed collection. ``record`` already carries the closure fields."""
        record.status = TICKET_STATUS_CLOSED
        document = Document(TICKETS_ACTIVE, record.key, record.guild_id, {}, record.version)
        try:
            moved = await self.store.move(document, TICKETS_CLOSED, record.to_document())
        except DuplicateDocumentError as exc:
            raise ConcurrentModificationError() from exc
        record.version = moved.version
        return record
