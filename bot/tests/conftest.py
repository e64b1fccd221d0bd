from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta
from itertools import count
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
import pytest_asyncio

from core.config import TicketsConfig
from database.base import Database
from database.migrations.runner import run_migrations
from database.repositories import DocumentStore, GuildSettingsRepository, TicketRepository
from services.ticket_service import TicketService, TicketServiceDeps
from services.transcript_service import TranscriptService

MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "database" / "migrations"

_ids = count(10_000)


def _perms(**granted: bool) -> SimpleNamespace:
    base = {"administrator": False, "manage_channels": False, "manage_guild": False}
    base.update(granted)
    return SimpleNamespace(**base)


class FakeSnowflake:
    def __init__(self, snowflake_id: int, name: str) -> None:
        self.id = snowflake_id
        self.name = name


class FakeRole(FakeSnowflake):
    def __init__(self, role_id: int, **perms: bool) -> None:
        super().__init__(role_id, f"role-{role_id}")
        self.permissions = _perms(**perms)
        self.mention = f"<@&{role_id}>"

    def is_default(self) -> bool:
        return False


class FakeUser:
    def __init__(self, user_id: int, name: str) -> None:
        self.id = user_id
        self.name = name

    def __str__(self) -> str:
        return self.name


class FakeTextChannel:
    """Ticket channel double recording the Discord calls made on it."""

    def __init__(self, guild: FakeGuild, name: str, category: object | None = None) -> None:
        self.id = next(_ids)
        self.guild = guild
        self.name = name
        self.category = category
        self.members: list[object] = []
        self.mention = f"<#{self.id}>"
        self.messages: list[SimpleNamespace] = []
        self.sent: list[dict[str, object]] = []
        self.overwrites: dict[object, object] = {}
        self.deleted = False
        self.edit = AsyncMock(side_effect=self._edit)
        self.set_permissions = AsyncMock(side_effect=self._set_permissions)
        self.delete = AsyncMock(side_effect=self._delete)

    async def _edit(self, *, name: str, reason: str | None = None) -> None:
        self.name = name

    async def _set_permissions(self, target: object, *, overwrite: object, reason: str | None = None) -> None:
        if overwrite is None:
            self.overwrites.pop(target, None)
        else:
            self.overwrites[target] = overwrite

    async def _delete(self, *, reason: str | None = None) -> None:
        self.deleted = True

    async def send(self, content: str | None = None, **kwargs: object) -> MagicMock:
        self.sent.append({"content": content, **kwargs})
        message = MagicMock()
        message.id = next(_ids)
        message.pin = AsyncMock()
        return message

    def add_message(
        self, author: FakeUser, content: str, *, embeds: int = 0, attachments: int = 0, system: bool = False
    ) -> None:
        created = datetime(2024, 1, 1, 12, 0, tzinfo=UTC) + timedelta(minutes=len(self.messages))
        self.messages.append(
            SimpleNamespace(
                author=author,
                content=content,
                created_at=created,
                embeds=[object()] * embeds,
                attachments=[
                    SimpleNamespace(filename=f"file{i}.png", url=f"https://cdn.example/file{i}.png")
                    for i in range(attachments)
                ],
                is_system=lambda: system,
            )
        )

    async def history(self, limit: int | None = None) -> AsyncIterator[SimpleNamespace]:
        newest_first = list(reversed(self.messages))
        for message in newest_first[:limit]:
            yield message


class FakeGuild:
    def __init__(self, guild_id: int = 123) -> None:
        self.id = guild_id
        self.name = "Test Guild"
        self.default_role = FakeSnowflake(guild_id, "@everyone")
        self.me = FakeSnowflake(1, "ticket-bot")
        self.roles: list[object] = []
        self.channels: dict[int, object] = {}
        self.created_channels: list[FakeTextChannel] = []
        self.create_category = AsyncMock(side_effect=self._create_category)
        self.create_text_channel = AsyncMock(side_effect=self._create_text_channel)

    def get_channel(self, channel_id: int) -> object | None:
        return self.channels.get(channel_id)

    def get_role(self, role_id: int) -> object | None:
        return next((role for role in self.roles if getattr(role, "id", None) == role_id), None)

    async def _create_category(self, name: str, **kwargs: object) -> MagicMock:
        category = MagicMock(spec=discord.CategoryChannel)
        category.id = next(_ids)
        category.name = name
        self.channels[category.id] = category
        return category

    async def _create_text_channel(self, name: str, **kwargs: object) -> FakeTextChannel:
        channel = FakeTextChannel(self, name, kwargs.get("category"))
        channel.creation_kwargs = kwargs
        self.channels[channel.id] = channel
        self.created_channels.append(channel)
        return channel

    def add_log_channel(self) -> MagicMock:
        channel = MagicMock(spec=discord.TextChannel)
        channel.id = next(_ids)
        channel.send = AsyncMock()
        self.channels[channel.id] = channel
        return channel


def make_member(guild: FakeGuild, name: str, *, roles: list[object] | None = None, **perms: bool) -> MagicMock:
    member = MagicMock()
    member.id = next(_ids)
    member.name = name
    member.display_name = name
    member.mention = f"<@{member.id}>"
    member.guild = guild
    member.roles = roles or []
    member.guild_permissions = _perms(**perms)
    member.__str__ = MagicMock(return_value=name)
    return member


def make_role(role_id: int, **perms: bool) -> FakeRole:
    return FakeRole(role_id, **perms)


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(url=f"sqlite:///{tmp_path / 'tickets.db'}")
    await db.connect()
    await run_migrations(db, MIGRATIONS_DIR)
    yield db
    await db.close()


@pytest.fixture
def store(database: Database) -> DocumentStore:
    return DocumentStore(database)


@pytest.fixture
def tickets_config() -> TicketsConfig:
    return TicketsConfig(close_delay_seconds=0)


@pytest.fixture
def service(store: DocumentStore, tickets_config: TicketsConfig) -> TicketService:
    deps = TicketServiceDeps(
        settings_repo=GuildSettingsRepository(store),
        ticket_repo=TicketRepository(store),
        transcripts=TranscriptService(tickets_config),
    )
    return TicketService(tickets_config, deps)


@pytest.fixture
def guild() -> FakeGuild:
    return FakeGuild()
