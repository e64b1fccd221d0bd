from __future__ import annotations

import logging
from pathlib import Path

import discord
from discord.ext import commands

from core.config import AppConfig
from core.errors import handle_app_command_error, handle_prefix_command_error
from database.base import Database
from database.migrations.runner import run_migrations
from database.repositories import DocumentStore, GuildSettingsRepository, TicketRepository
from services.ticket_service import TicketService, TicketServiceDeps
from services.transcript_service import TranscriptService

LOGGER = logging.getLogger(__name__)


class TicketBot(commands.Bot):
    def __init__(self, config: AppConfig) -> None:
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True
        intents.messages = True
        intents.message_content = True

        super().__init__(
            command_prefix=config.discord.prefix,
            intents=intents,
            application_id=config.discord.application_id,
            allowed_mentions=discord.AllowedMentions(
                everyone=config.discord.allowed_mentions_everyone,
                roles=True,
                users=True,
                replied_user=False,
            ),
            help_command=None,
            max_ratelimit_timeout=config.discord.max_ratelimit_timeout,
        )
        self.config = config
        self.root_dir = Path(__file__).resolve().parent.parent
        self.database = Database(
            url=config.database.url,
            timeout_seconds=config.database.timeout_seconds,
            pool_min_size=config.database.pool_min_size,
            pool_max_size=config.database.pool_max_size,
        )

        # Repositories and services are initialized during setup_hook.
        self.document_store: DocumentStore
        self.settings_repo: GuildSettingsRepository
        self.ticket_repo: TicketRepository
        self.transcript_service: TranscriptService
        self.ticket_service: TicketService

    async def setup_hook(self) -> None:
        await self.database.connect()
        applied = await run_migrations(self.database, self.root_dir / "database" / "migrations")
        LOGGER.info("Database ready (%s new migrations)", applied)

        self.document_store = DocumentStore(self.database)
        self.settings_repo = GuildSettingsRepository(
            self.document_store, default_max_tickets=self.config.tickets.default_max_tickets_per_user
        )
        self.ticket_repo = TicketRepository(self.document_store)
        self.transcript_service = TranscriptService(self.config.tickets)
        self.ticket_service = TicketService(
            self.config.tickets,
            TicketServiceDeps(
                settings_repo=self.settings_repo,
                ticket_repo=self.ticket_repo,
                transcripts=self.transcript_service,
            ),
        )

        await self._load_extensions()

        if self.config.discord.sync_commands_on_start:
            synced = await self.tree.sync()
            LOGGER.info("Synced %s application commands", len(synced))

        self.tree.on_error = handle_app_command_error  # type: ignore[assignment]

    async def _load_extensions(self) -> None:
        for ext in self.config.enabled_extensions:
            try:
                await self.load_extension(ext)
                LOGGER.info("Loaded extension: %s", ext)
            except commands.ExtensionAlreadyLoaded:
                LOGGER.warning("Extension already loaded: %s", ext)
            except commands.ExtensionError:
                LOGGER.exception("Failed to load extension: %s", ext)

    async def on_ready(self) -> None:
        LOGGER.info("Bot ready as %s (%s)", self.user, self.user.id if self.user else "n/a")
        activity_type = self.config.discord.activity_type.lower()
        if activity_type == "playing":
            activity = discord.Game(name=self.config.discord.status_text)
        elif activity_type == "listening":
            activity = discord.Activity(
                type=discord.ActivityType.listening, name=self.config.discord.status_text
            )
        else:
            activity = discord.Activity(
                type=discord.ActivityType.watching, name=self.config.discord.status_text
            )
        await self.change_presence(status=discord.Status.online, activity=activity)

    async def on_command_error(self, ctx: commands.Context[commands.Bot], error: commands.CommandError) -> None:
        if ctx.command and ctx.command.has_error_handler():
            return
        await handle_prefix_command_error(ctx, error)

    async def close(self) -> None:
        if hasattr(self, "ticket_service"):
            await self.ticket_service.shutdown()
        await super().close()
        await self.database.close()
