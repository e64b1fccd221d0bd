from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

import discord

from utils.constants import PRIORITY_DISPLAY, STATUS_DISPLAY
from utils.time import discord_timestamp

if TYPE_CHECKING:
    from database.models import GuildTicketConfig, TicketCategory, TicketRecord

PANEL_COLOR = discord.Color.from_str("#8B5CF6")


def make_embed(
    title: str,
    description: str,
    color: discord.Color | None = None,
    footer: str | None = None,
) -> discord.Embed:
    resolved_color = color if color is not None else discord.Color.blurple()
    embed = discord.Embed(
        title=title,
        description=description,
        color=resolved_color,
        timestamp=datetime.now(UTC),
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def staff_embed(title: str, description: str) -> discord.Embed:
    return make_embed(title=title, description=description, color=discord.Color.gold())


def success_embed(message: str, title: str = "Success") -> discord.Embed:
    return make_embed(title=title, description=message, color=discord.Color.green())


def warning_embed(title: str, message: str) -> discord.Embed:
    return make_embed(title=title, description=message, color=discord.Color.orange())


def error_embed(message: str) -> discord.Embed:
    return make_embed(title="Error", description=message, color=discord.Color.red())


def panel_embed(title: str, description: str, categories: list[TicketCategory]) -> discord.Embed:
    embed = make_embed(title=title, description=description, color=PANEL_COLOR)
    embed.add_field(
        name="Categories",
        value="\n".join(f"{cat.emoji} **{cat.name}** · {cat.description}" for cat in categories)[:1024]
        or "None configured",
        inline=False,
    )
    embed.set_footer(text="Select a category below to open a private ticket.")
    return embed


def welcome_embed(ticket: TicketRecord, category: TicketCategory, opener: discord.abc.User) -> discord.Embed:
    embed = make_embed(
        title=f"{category.emoji} {category.name} • Ticket #{ticket.id}",
        description=(
            f"Hello {opener.mention}!\n\n"
            f"Your ticket was created.\n"
            f"**Category:** {category.name}\n"
            f"**ID:** `{ticket.id}`\n"
            f"**Created:** {discord_timestamp(ticket.created_at)}\n\n"
            "**Describe your request in detail below.** The team will answer as soon as possible."
        ),
        color=PANEL_COLOR,
    )
    embed.add_field(
        name="Status",
        value=(
            f"**Priority:** {PRIORITY_DISPLAY[ticket.priority]}\n"
            f"**Status:** {STATUS_DISPLAY[ticket.status]}\n"
            "**Claimed by:** nobody"
        ),
        inline=True,
    )
    embed.add_field(
        name="Actions",
        value="🔒 Close the ticket\n✋ Claim it (staff)\n📄 Export a transcript",
        inline=True,
    )
    return embed


def ticket_info_embed(ticket: TicketRecord, member_count: int | None = None) -> discord.Embed:
    embed = make_embed(title="🎫 Ticket information", description=f"<#{ticket.channel_id}>")
    embed.add_field(name="ID", value=f"`{ticket.id}`", inline=True)
    embed.add_field(name="Category", value=ticket.category_name, inline=True)
    embed.add_field(name="Created by", value=f"<@{ticket.user_id}>", inline=True)
    embed.add_field(name="Created", value=discord_timestamp(ticket.created_at), inline=True)
    embed.add_field(name="Priority", value=PRIORITY_DISPLAY.get(ticket.priority, ticket.priority), inline=True)
    embed.add_field(name="Status", value=STATUS_DISPLAY.get(ticket.status, ticket.status), inline=True)
    embed.add_field(
        name="Claimed by",
        value=f"<@{ticket.claimed_by}>" if ticket.claimed_by else "Nobody",
        inline=True,
    )
    if member_count is not None:
        embed.add_field(name="Members", value=str(member_count), inline=True)
    return embed


def ticket_created_log_embed(ticket: TicketRecord, opener: discord.abc.User, emoji: str) -> discord.Embed:
    embed = make_embed(
        title="🎫 Ticket opened",
        description=(
            f"**User:** {opener.mention} ({opener})\n"
            f"**Category:** {emoji} {ticket.category_name}\n"
            f"**Channel:** <#{ticket.channel_id}>\n"
            f"**ID:** `{ticket.id}`\n"
            f"**Created:** {discord_timestamp(ticket.created_at)}"
        ),
        color=discord.Color.green(),
    )
    embed.set_thumbnail(url=opener.display_avatar.url)
    return embed


def ticket_closed_log_embed(ticket: TicketRecord, channel_name: str, closer: discord.abc.User) -> discord.Embed:
    return make_embed(
        title="🔒 Ticket closed",
        description=(
            f"**Channel:** {channel_name}\n"
            f"**Closed by:** {closer.mention} ({closer})\n"
            f"**ID:** `{ticket.id}`\n"
            f"**Category:** {ticket.category_name}\n"
            f"**Reason:** {ticket.close_reason or 'No reason given'}\n"
            f"**Closed:** {discord_timestamp(ticket.closed_at)}"
        ),
        color=discord.Color.from_str("#FF6B6B"),
    )


def close_prompt_embed(actor: discord.abc.User, reason: str) -> discord.Embed:
    return warning_embed(
        "🔒 Close this ticket?",
        (
            "**Are you sure you want to close this ticket?**\n\n"
            f"**Closed by:** {actor.mention}\n"
            f"**Reason:** {reason}\n\n"
            "⚠️ The channel will be deleted. This cannot be undone."
        ),
    )


def ticket_closed_embed(actor: discord.abc.User, delay_seconds: int) -> discord.Embed:
    return success_embed(
        (
            f"**Closed by:** {actor.mention}\n"
            "The transcript was saved.\n\n"
            f"**This channel will be deleted in {delay_seconds} seconds...**"
        ),
        title="🔒 Ticket closed",
    )


def config_summary(config: GuildTicketConfig) -> str:
    return (
        f"🎫 **Ticket container:** {f'<#{config.ticket_parent_channel_id}>' if config.ticket_parent_channel_id else 'Not set'}\n"
        f"📝 **Log channel:** {f'<#{config.log_channel_id}>' if config.log_channel_id else 'Not set'}\n"
        f"👥 **Staff roles:** {' '.join(f'<@&{role_id}>' for role_id in config.staff_role_ids) or 'None'}\n"
        f"🔢 **Max tickets per user:** {config.max_tickets_per_user}\n"
        f"📋 **Categories:** {len(config.categories)}"
    )
