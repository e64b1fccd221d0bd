from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

import discord

from core.config import TicketsConfig
from core.errors import (
    CategoryNotFoundError,
    ExternalCallFailedError,
    PermissionDeniedError,
    TicketLimitReachedError,
    TicketNotFoundError,
    TicketStateError,
    ValidationError,
)
from database.models import GuildTicketConfig, TicketCategory, TicketRecord
from database.repositories import GuildSettingsRepository, TicketRepository
from services.transcript_service import Transcript, TranscriptService
from utils.constants import (
    MAX_PANEL_CATEGORIES,
    MAX_TICKETS_PER_USER,
    MIN_TICKETS_PER_USER,
    PRIORITY_LEVELS,
)
from utils.embeds import (
    ticket_closed_embed,
    ticket_closed_log_embed,
    ticket_created_log_embed,
    welcome_embed,
)
from utils.naming import (
    claimed_channel_name,
    current_claim_suffix,
    renamed_channel_name,
    slugify_category,
    ticket_channel_name,
    unclaimed_channel_name,
)
from utils.time import to_iso, utc_now

LOGGER = logging.getLogger(__name__)

CHANNEL_DELETED_REASON = "Channel deleted"


def participant_overwrite() -> discord.PermissionOverwrite:
    return discord.PermissionOverwrite(
        view_channel=True,
        send_messages=True,
        read_message_history=True,
        attach_files=True,
        embed_links=True,
    )


def staff_overwrite() -> discord.PermissionOverwrite:
    return discord.PermissionOverwrite(
        view_channel=True,
        send_messages=True,
        read_message_history=True,
        attach_files=True,
        embed_links=True,
        manage_messages=True,
    )


def bot_overwrite() -> discord.PermissionOverwrite:
    return discord.PermissionOverwrite(
        view_channel=True,
        send_messages=True,
        read_message_history=True,
        attach_files=True,
        embed_links=True,
        manage_channels=True,
        manage_messages=True,
    )


def is_staff(member: discord.Member, config: GuildTicketConfig) -> bool:
    permissions = member.guild_permissions
    if permissions.administrator or permissions.manage_channels:
        return True
    return any(role.id in config.staff_role_ids for role in member.roles)


def is_admin(member: discord.Member) -> bool:
    permissions = member.guild_permissions
    return permissions.administrator or permissions.manage_guild


@dataclass(slots=True)
class TicketServiceDeps:
    settings_repo: GuildSettingsRepository
    ticket_repo: TicketRepository
    transcripts: TranscriptService


@dataclass(slots=True)
class CreatedTicket:
    ticket: TicketRecord
    channel: discord.TextChannel
    category: TicketCategory


@dataclass(slots=True)
class CloseOutcome:
    ticket: TicketRecord
    transcript: Transcript | None
    already_closed: bool = False


class TicketService:
    def __init__(self, config: TicketsConfig, deps: TicketServiceDeps) -> None:
        self.config = config
        self.deps = deps
        self._locks: dict[int, asyncio.Lock] = {}
        self._channel_locks: dict[int, asyncio.Lock] = {}
        self._locks_guard = asyncio.Lock()
        self._pending_deletions: dict[int, asyncio.Task[None]] = {}

    async def _lock_for(self, locks: dict[int, asyncio.Lock], key: int) -> asyncio.Lock:
        lock = locks.get(key)
        if lock is not None:
            return lock
        async with self._locks_guard:
            lock = locks.get(key)
            if lock is None:
                lock = asyncio.Lock()
                locks[key] = lock
            return lock

    async def _get_lock(self, guild_id: int) -> asyncio.Lock:
        """Guild-wide lock for limit checks, archiving and settings writes."""
        return await self._lock_for(self._locks, guild_id)

    async def _get_channel_lock(self, channel_id: int) -> asyncio.Lock:
        """Per-ticket lock for channel renames. Discord may hold a rename for minutes, so these stay off the guild lock."""
        return await self._lock_for(self._channel_locks, channel_id)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_config(self, guild_id: int) -> GuildTicketConfig:
        """Stored settings, or unsaved defaults when the guild was never configured."""
        config = await self.deps.settings_repo.get(guild_id)
        if config is None:
            return GuildTicketConfig(guild_id=guild_id, max_tickets_per_user=self.deps.settings_repo.default_max_tickets)
        return config

    async def ensure_config(self, guild_id: int) -> GuildTicketConfig:
        return await self.deps.settings_repo.get_or_create(guild_id)

    async def get_ticket_for_channel(self, guild_id: int, channel_id: int) -> TicketRecord:
        ticket = await self.deps.ticket_repo.get_by_channel(guild_id, channel_id)
        if ticket is None:
            raise TicketNotFoundError()
        return ticket

    async def require_staff(self, member: discord.Member) -> GuildTicketConfig:
        config = await self.get_config(member.guild.id)
        if not is_staff(member, config):
            raise PermissionDeniedError("Only staff members can do this.")
        return config

    @staticmethod
    def require_admin(member: discord.Member) -> None:
        if not is_admin(member):
            raise PermissionDeniedError("You need the Administrator or Manage Server permission.")

    async def list_open_tickets(self, member: discord.Member) -> list[TicketRecord]:
        await self.require_staff(member)
        tickets = await self.deps.ticket_repo.list_active(member.guild.id)
        return sorted(tickets, key=lambda ticket: ticket.id)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def _ensure_container(self, guild: discord.Guild, config: GuildTicketConfig) -> discord.CategoryChannel:
        if config.ticket_parent_channel_id:
            existing = guild.get_channel(config.ticket_parent_channel_id)
            if isinstance(existing, discord.CategoryChannel):
                return existing
        try:
            container = await guild.create_category(
                self.config.container_name,
                overwrites={
                    guild.default_role: discord.PermissionOverwrite(view_channel=False),
                    guild.me: bot_overwrite(),
                },
                reason="Ticket container",
            )
        except discord.HTTPException as exc:
            raise ExternalCallFailedError.from_http("create the ticket category", exc) from exc

        def apply(target: GuildTicketConfig) -> None:
            target.ticket_parent_channel_id = container.id

        updated = await self.deps.settings_repo.update(guild.id, apply)
        config.ticket_parent_channel_id = container.id
        config.version = updated.version
        LOGGER.info("Created ticket container %s", container.id, extra={"guild_id": guild.id})
        return container

    def _build_overwrites(
        self, guild: discord.Guild, requester: discord.Member, config: GuildTicketConfig
    ) -> dict[discord.abc.Snowflake, discord.PermissionOverwrite]:
        overwrites: dict[discord.abc.Snowflake, discord.PermissionOverwrite] = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            requester: participant_overwrite(),
            guild.me: bot_overwrite(),
        }
        for role_id in config.staff_role_ids:
            role = guild.get_role(role_id)
            if role:
                overwrites[role] = staff_overwrite()
        for role in guild.roles:
            if role.is_default():
                continue
            if role.permissions.administrator or role.permissions.manage_channels:
                overwrites[role] = staff_overwrite()
        return overwrites

    async def create_ticket(
        self, guild: discord.Guild, requester: discord.Member, category_id: str
    ) -> CreatedTicket:
        lock = await self._get_lock(guild.id)
        async with lock:
            config = await self.deps.settings_repo.get(guild.id)
            if config is None or not config.enabled:
                raise TicketStateError("The ticket system is not enabled on this server.")
            category = config.get_category(category_id)
            if category is None:
                raise CategoryNotFoundError()

            open_tickets = await self.deps.ticket_repo.list_open_by_user(
                guild.id, requester.id, parent_channel_id=config.ticket_parent_channel_id
            )
            if len(open_tickets) >= config.max_tickets_per_user:
                raise TicketLimitReachedError(
                    limit=config.max_tickets_per_user,
                    open_channel_ids=[ticket.channel_id for ticket in open_tickets],
                )

            container = await self._ensure_container(guild, config)
            ticket_id = await self.deps.ticket_repo.next_ticket_id(guild.id)
            try:
                channel = await guild.create_text_channel(
                    name=ticket_channel_name(requester.id, category.id, ticket_id),
                    category=container,
                    overwrites=self._build_overwrites(guild, requester, config),
                    topic=f"Ticket {ticket_id} by {requester} | {category.name}",
                    reason=f"Ticket created by {requester} ({requester.id})",
                )
            except discord.HTTPException as exc:
                raise ExternalCallFailedError.from_http("create the ticket channel", exc) from exc

            record = TicketRecord(
                id=ticket_id,
                guild_id=guild.id,
                channel_id=channel.id,
                user_id=requester.id,
                category_id=category.id,
                category_name=category.name,
                parent_channel_id=container.id,
                created_at=to_iso(utc_now()),
            )
            try:
                record = await self.deps.ticket_repo.create(record)
            except Exception:
                LOGGER.exception("Ticket record insert failed, removing channel %s", channel.id)
                await self._delete_channel_quietly(channel, "Ticket record could not be saved")
                raise

        LOGGER.info(
            "Ticket %s created by %s in %s",
            record.id,
            requester.id,
            channel.id,
            extra={"guild_id": guild.id, "ticket_id": record.id},
        )
        return CreatedTicket(ticket=record, channel=channel, category=category)

    async def post_welcome(
        self, created: CreatedTicket, requester: discord.Member, view: discord.ui.View
    ) -> discord.Message:
        config = await self.get_config(created.ticket.guild_id)
        mentions = [requester.mention, *(f"<@&{role_id}>" for role_id in sorted(config.staff_role_ids))]
        message = await created.channel.send(
            content=" ".join(mentions),
            embed=welcome_embed(created.ticket, created.category, requester),
            view=view,
        )
        try:
            await message.pin(reason="Ticket welcome message")
        except discord.HTTPException:
            LOGGER.warning(
                "Could not pin welcome message in %s",
                created.channel.id,
                extra={"ticket_id": created.ticket.id},
            )

        def apply(target: TicketRecord) -> None:
            target.welcome_message_id = message.id

        created.ticket = await self.deps.ticket_repo.update(created.ticket, apply)
        return message

    async def announce_created(self, guild: discord.Guild, created: CreatedTicket, requester: discord.Member) -> None:
        config = await self.get_config(guild.id)
        await self.post_log(
            guild,
            config,
            embed=ticket_created_log_embed(created.ticket, requester, created.category.emoji),
        )

    async def post_log(
        self,
        guild: discord.Guild,
        config: GuildTicketConfig,
        embed: discord.Embed,
        file: discord.File | None = None,
    ) -> None:
        if not config.log_channel_id:
            return
        channel = guild.get_channel(config.log_channel_id)
        if not isinstance(channel, discord.TextChannel):
            LOGGER.warning("Log channel %s is missing", config.log_channel_id, extra={"guild_id": guild.id})
            return
        try:
            if file is not None:
                await channel.send(embed=embed, file=file)
            else:
                await channel.send(embed=embed)
        except discord.HTTPException:
            LOGGER.warning("Failed to post to log channel %s", channel.id, extra={"guild_id": guild.id})

    # ------------------------------------------------------------------
    # Claiming
    # ------------------------------------------------------------------

    async def _mutate_ticket(
        self, ticket: TicketRecord, mutate: Callable[[TicketRecord], None]
    ) -> TicketRecord:
        return await self.deps.ticket_repo.update(ticket, mutate)

    async def _rename_channel(self, channel: discord.TextChannel, name: str, reason: str) -> None:
        try:
            await channel.edit(name=name, reason=reason)
        except discord.RateLimited as exc:
            raise ExternalCallFailedError.from_rate_limit("rename the channel", exc) from exc
        except discord.HTTPException as exc:
            raise ExternalCallFailedError.from_http("rename the channel", exc) from exc

    async def claim(self, channel: discord.TextChannel, actor: discord.Member) -> TicketRecord:
        lock = await self._get_channel_lock(channel.id)
        async with lock:
            config = await self.get_config(channel.guild.id)
            if not is_staff(actor, config):
                raise PermissionDeniedError("Only staff members can claim tickets.")
            ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
            if ticket.claimed_by is not None:
                raise TicketStateError(f"This ticket is already claimed by <@{ticket.claimed_by}>.")

            await self._rename_channel(
                channel, claimed_channel_name(channel.name, actor.name), f"Ticket claimed by {actor}"
            )

            def apply(target: TicketRecord) -> None:
                target.claimed_by = actor.id

            ticket = await self._mutate_ticket(ticket, apply)
        LOGGER.info(
            "Ticket %s claimed by %s", ticket.id, actor.id, extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id}
        )
        return ticket

    async def unclaim(self, channel: discord.TextChannel, actor: discord.Member) -> TicketRecord:
        lock = await self._get_channel_lock(channel.id)
        async with lock:
            config = await self.get_config(channel.guild.id)
            if not is_staff(actor, config):
                raise PermissionDeniedError("Only staff members can unclaim tickets.")
            ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
            if ticket.claimed_by is None:
                raise TicketStateError("This ticket is not claimed.")

            await self._rename_channel(
                channel, unclaimed_channel_name(channel.name), f"Ticket unclaimed by {actor}"
            )

            def apply(target: TicketRecord) -> None:
                target.claimed_by = None

            ticket = await self._mutate_ticket(ticket, apply)
        LOGGER.info(
            "Ticket %s unclaimed by %s", ticket.id, actor.id, extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id}
        )
        return ticket

    # ------------------------------------------------------------------
    # Closing
    # ------------------------------------------------------------------

    def _assert_can_close(self, ticket: TicketRecord, actor: discord.Member, config: GuildTicketConfig) -> None:
        if ticket.user_id != actor.id and not is_staff(actor, config):
            raise PermissionDeniedError("Only the ticket creator or staff can close this ticket.")

    async def check_close(self, channel: discord.TextChannel, actor: discord.Member) -> TicketRecord:
        """Resolve the ticket behind ``channel`` and verify ``actor`` may close it.

        Returns the closed record when a previous close already persisted but the
        channel survived, so callers can skip the confirmation prompt.
        """
        config = await self.get_config(channel.guild.id)
        ticket = await self.deps.ticket_repo.get_by_channel(channel.guild.id, channel.id)
        if ticket is None:
            ticket = await self.deps.ticket_repo.get_closed_by_channel(channel.guild.id, channel.id)
        if ticket is None:
            raise TicketNotFoundError()
        self._assert_can_close(ticket, actor, config)
        return ticket

    async def _render_for_close(self, channel: discord.TextChannel, actor: discord.Member) -> Transcript:
        try:
            return await self.deps.transcripts.render(channel, actor)
        except discord.DiscordException:
            LOGGER.exception("Transcript generation failed for %s", channel.id, extra={"channel_id": channel.id})
            return Transcript(channel_name=channel.name, text="", message_count=0)

    async def close_ticket(
        self, channel: discord.TextChannel, actor: discord.Member, reason: str | None
    ) -> CloseOutcome:
        guild = channel.guild
        lock = await self._get_lock(guild.id)
        async with lock:
            config = await self.get_config(guild.id)
            ticket = await self.deps.ticket_repo.get_by_channel(guild.id, channel.id)
            if ticket is None:
                closed = await self.deps.ticket_repo.get_closed_by_channel(guild.id, channel.id)
                if closed is None:
                    raise TicketNotFoundError()
                self._assert_can_close(closed, actor, config)
                LOGGER.info(
                    "Ticket %s already closed, rescheduling deletion",
                    closed.id,
                    extra={"guild_id": guild.id, "ticket_id": closed.id},
                )
                self.schedule_channel_deletion(channel, closed)
                return CloseOutcome(ticket=closed, transcript=None, already_closed=True)

            self._assert_can_close(ticket, actor, config)
            transcript = await self._render_for_close(channel, actor)
            ticket.closed_at = to_iso(utc_now())
            ticket.closed_by = actor.id
            ticket.close_reason = (reason or "").strip() or None
            ticket.transcript = transcript.text
            # A failure here leaves the ticket active so the close can be retried.
            ticket = await self.deps.ticket_repo.close(ticket)

        LOGGER.info(
            "Ticket %s closed by %s", ticket.id, actor.id, extra={"guild_id": guild.id, "ticket_id": ticket.id}
        )
        await self.post_log(
            guild,
            config,
            embed=ticket_closed_log_embed(ticket, channel.name, actor),
            file=transcript.as_file(),
        )
        try:
            await channel.send(embed=ticket_closed_embed(actor, self.config.close_delay_seconds))
        except discord.HTTPException:
            LOGGER.warning("Could not announce closure in %s", channel.id, extra={"ticket_id": ticket.id})
        self.schedule_channel_deletion(channel, ticket)
        return CloseOutcome(ticket=ticket, transcript=transcript)

    async def _delete_channel_quietly(self, channel: discord.abc.GuildChannel, reason: str) -> None:
        try:
            await channel.delete(reason=reason)
        except discord.NotFound:
            pass
        except discord.HTTPException:
            LOGGER.exception("Failed to delete channel %s", channel.id, extra={"channel_id": channel.id})

    def schedule_channel_deletion(self, channel: discord.TextChannel, ticket: TicketRecord) -> None:
        existing = self._pending_deletions.pop(channel.id, None)
        if existing and not existing.done():
            existing.cancel()

        delay = self.config.close_delay_seconds

        async def delete_after_delay() -> None:
            try:
                await asyncio.sleep(delay)
                await self._delete_channel_quietly(channel, f"Ticket {ticket.id} closed")
                LOGGER.info(
                    "Deleted channel of ticket %s",
                    ticket.id,
                    extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id},
                )
            finally:
                if self._pending_deletions.get(channel.id) is task:
                    self._pending_deletions.pop(channel.id, None)
                    self._channel_locks.pop(channel.id, None)

        task = asyncio.create_task(delete_after_delay(), name=f"ticket-delete-{channel.id}")
        self._pending_deletions[channel.id] = task
        LOGGER.info(
            "Channel deletion scheduled in %ss",
            delay,
            extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id, "channel_id": channel.id},
        )

    def pending_deletions(self) -> list[asyncio.Task[None]]:
        return list(self._pending_deletions.values())

    async def shutdown(self) -> None:
        tasks = list(self._pending_deletions.values())
        self._pending_deletions.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            LOGGER.info("Cancelled %s pending channel deletions", len(tasks))

    async def handle_channel_deleted(self, channel: discord.abc.GuildChannel) -> TicketRecord | None:
        guild = channel.guild
        lock = await self._get_lock(guild.id)
        async with lock:
            ticket = await self.deps.ticket_repo.get_by_channel(guild.id, channel.id)
            if ticket is None:
                return None
            ticket.closed_at = to_iso(utc_now())
            ticket.close_reason = CHANNEL_DELETED_REASON
            ticket = await self.deps.ticket_repo.close(ticket)
        self._channel_locks.pop(channel.id, None)
        LOGGER.info(
            "Ticket %s closed after its channel was deleted",
            ticket.id,
            extra={"guild_id": guild.id, "ticket_id": ticket.id},
        )
        return ticket

    # ------------------------------------------------------------------
    # Staff actions
    # ------------------------------------------------------------------

    async def export_transcript(self, channel: discord.TextChannel, actor: discord.Member) -> Transcript:
        await self.require_staff(actor)
        await self.get_ticket_for_channel(channel.guild.id, channel.id)
        try:
            return await self.deps.transcripts.render(channel, actor)
        except discord.HTTPException as exc:
            raise ExternalCallFailedError.from_http("read the channel history", exc) from exc

    async def rename(self, channel: discord.TextChannel, actor: discord.Member, new_name: str) -> str:
        await self.require_staff(actor)
        name = renamed_channel_name(new_name)
        if not name:
            raise ValidationError("The new name cannot be empty.")
        lock = await self._get_channel_lock(channel.id)
        async with lock:
            ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
            if ticket.claimed_by is not None:
                # Unclaim strips the last segment, so a claimed ticket keeps its claimer suffix.
                name = claimed_channel_name(name, current_claim_suffix(channel.name))
            await self._rename_channel(channel, name, f"Ticket renamed by {actor}")
        LOGGER.info("Ticket %s renamed to %s", ticket.id, name, extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id})
        return name

    async def set_priority(self, channel: discord.TextChannel, actor: discord.Member, level: str) -> TicketRecord:
        level = level.lower()
        if level not in PRIORITY_LEVELS:
            raise ValidationError(f"Invalid priority. Use: {', '.join(PRIORITY_LEVELS)}")
        lock = await self._get_lock(channel.guild.id)
        async with lock:
            await self.require_staff(actor)
            ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)

            def apply(target: TicketRecord) -> None:
                target.priority = level

            ticket = await self._mutate_ticket(ticket, apply)
        LOGGER.info(
            "Ticket %s priority set to %s", ticket.id, level, extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id}
        )
        return ticket

    async def add_member(
        self, channel: discord.TextChannel, actor: discord.Member, target: discord.Member
    ) -> TicketRecord:
        await self.require_staff(actor)
        ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
        try:
            await channel.set_permissions(target, overwrite=participant_overwrite(), reason=f"Added by {actor}")
        except discord.HTTPException as exc:
            raise ExternalCallFailedError.from_http("add the member", exc) from exc
        LOGGER.info(
            "Member %s added to ticket %s", target.id, ticket.id, extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id}
        )
        return ticket

    async def remove_member(
        self, channel: discord.TextChannel, actor: discord.Member, target: discord.Member
    ) -> TicketRecord:
        await self.require_staff(actor)
        ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
        if target.id == ticket.user_id:
            raise PermissionDeniedError("You cannot remove the ticket creator.")
        try:
            await channel.set_permissions(target, overwrite=None, reason=f"Removed by {actor}")
        except discord.HTTPException as exc:
            raise ExternalCallFailedError.from_http("remove the member", exc) from exc
        LOGGER.info(
            "Member %s removed from ticket %s",
            target.id,
            ticket.id,
            extra={"guild_id": ticket.guild_id, "ticket_id": ticket.id},
        )
        return ticket

    async def info(self, channel: discord.TextChannel) -> tuple[TicketRecord, int]:
        ticket = await self.get_ticket_for_channel(channel.guild.id, channel.id)
        return ticket, len(channel.members)

    # ------------------------------------------------------------------
    # Guild configuration
    # ------------------------------------------------------------------

    async def list_categories(self, guild_id: int) -> list[TicketCategory]:
        config = await self.ensure_config(guild_id)
        return list(config.categories)

    async def add_category(self, guild_id: int, name: str, emoji: str, description: str) -> TicketCategory:
        name, emoji, description = name.strip(), emoji.strip(), description.strip()
        if not name or not emoji or not description:
            raise ValidationError("Name, emoji and description are all required.")
        category = TicketCategory(id=slugify_category(name), name=name, emoji=emoji, description=description)

        def apply(config: GuildTicketConfig) -> None:
            if config.get_category(category.id) is not None:
                raise ValidationError(f"A category with id `{category.id}` already exists.")
            if len(config.categories) >= MAX_PANEL_CATEGORIES:
                raise ValidationError(f"A panel holds at most {MAX_PANEL_CATEGORIES} categories.")
            config.categories.append(category)

        lock = await self._get_lock(guild_id)
        async with lock:
            await self.deps.settings_repo.update(guild_id, apply)
        LOGGER.info("Category %s added", category.id, extra={"guild_id": guild_id})
        return category

    async def remove_category(self, guild_id: int, name: str) -> TicketCategory:
        category_id = slugify_category(name)
        removed: list[TicketCategory] = []

        def apply(config: GuildTicketConfig) -> None:
            category = config.get_category(category_id)
            if category is None:
                raise CategoryNotFoundError(f"No category with id `{category_id}` exists.")
            config.categories = [cat for cat in config.categories if cat.id != category_id]
            removed[:] = [category]

        lock = await self._get_lock(guild_id)
        async with lock:
            await self.deps.settings_repo.update(guild_id, apply)
        LOGGER.info("Category %s removed", category_id, extra={"guild_id": guild_id})
        return removed[0]

    async def configure(
        self,
        guild_id: int,
        container: discord.CategoryChannel | None = None,
        log_channel: discord.TextChannel | None = None,
        staff_role: discord.Role | None = None,
        max_tickets: int | None = None,
    ) -> list[str]:
        """Apply the given options and describe each change. No options means no write."""
        if max_tickets is not None and not MIN_TICKETS_PER_USER <= max_tickets <= MAX_TICKETS_PER_USER:
            raise ValidationError(
                f"Max tickets must be between {MIN_TICKETS_PER_USER} and {MAX_TICKETS_PER_USER}."
            )
        changes: list[str] = []
        if container is not None:
            changes.append(f"🎫 Ticket category: {container.mention}")
        if log_channel is not None:
            changes.append(f"📝 Log channel: {log_channel.mention}")
        if staff_role is not None:
            changes.append(f"👥 Staff role added: {staff_role.mention}")
        if max_tickets is not None:
            changes.append(f"🔢 Max tickets per user: {max_tickets}")
        if not changes:
            return changes

        def apply(config: GuildTicketConfig) -> None:
            if container is not None:
                config.ticket_parent_channel_id = container.id
            if log_channel is not None:
                config.log_channel_id = log_channel.id
            if staff_role is not None:
                config.staff_role_ids.add(staff_role.id)
            if max_tickets is not None:
                config.max_tickets_per_user = max_tickets

        lock = await self._get_lock(guild_id)
        async with lock:
            await self.deps.settings_repo.update(guild_id, apply)
        LOGGER.info("Ticket settings updated: %s", len(changes), extra={"guild_id": guild_id})
        return changes

    async def record_panel(self, guild_id: int, channel_id: int) -> GuildTicketConfig:
        def apply(config: GuildTicketConfig) -> None:
            config.panel_channel_id = channel_id

        lock = await self._get_lock(guild_id)
        async with lock:
            return await self.deps.settings_repo.update(guild_id, apply)

    async def stats(self) -> dict[str, int]:
        guilds = await self.deps.settings_repo.list_all()
        return {
            "guilds": len(guilds),
            "open_tickets": await self.deps.ticket_repo.count_active(),
            "closed_tickets": await self.deps.ticket_repo.count_closed(),
            "pending_deletions": len(self._pending_deletions),
        }
