from __future__ import annotations

import logging
from typing import Literal

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import TicketStateError, ValidationError
from utils.embeds import config_summary, make_embed, panel_embed, success_embed
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)

DEFAULT_PANEL_TITLE = "🎫 Support Center"
DEFAULT_PANEL_DESCRIPTION = (
    "Need help? Open a private ticket and the team will get back to you.\n\n"
    "Pick the category that best matches your request."
)


class SetupCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    def _assert_admin(self, ctx: commands.Context[TicketBot]) -> discord.Guild:
        if not ctx.guild or not isinstance(ctx.author, discord.Member):
            raise TicketStateError("Setup commands only work inside a server.")
        self.bot.ticket_service.require_admin(ctx.author)
        return ctx.guild

    @commands.hybrid_group(name="ticket-setup", with_app_command=True, description="Configure the ticket system.")
    async def ticket_setup(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Setup",
                    "`/ticket-setup panel <channel> [title] [description]`\n"
                    "`/ticket-setup config [category] [logs] [staff] [max_tickets]`\n"
                    "`/ticket-setup categories <add|remove|list> [name] [emoji] [description]`",
                ),
                mention_author=False,
            )

    @ticket_setup.command(name="panel", description="Post the ticket panel in a channel.")
    async def setup_panel(
        self,
        ctx: commands.Context[TicketBot],
        channel: discord.TextChannel,
        title: str | None = None,
        description: str | None = None,
    ) -> None:
        guild = self._assert_admin(ctx)
        categories = await self.bot.ticket_service.list_categories(guild.id)
        embed = panel_embed(title or DEFAULT_PANEL_TITLE, description or DEFAULT_PANEL_DESCRIPTION, categories)
        await channel.send(embed=embed, view=TicketPanelView(self.bot, categories))
        await self.bot.ticket_service.record_panel(guild.id, channel.id)
        LOGGER.info("Ticket panel posted in %s", channel.id, extra={"guild_id": guild.id})
        await ctx.reply(
            embed=success_embed(f"Ticket panel posted in {channel.mention}.", title="Panel created"),
            mention_author=False,
            ephemeral=True,
        )

    @ticket_setup.command(name="config", description="Configure the ticket system.")
    async def setup_config(
        self,
        ctx: commands.Context[TicketBot],
        category: discord.CategoryChannel | None = None,
        logs: discord.TextChannel | None = None,
        staff: discord.Role | None = None,
        max_tickets: int | None = None,
    ) -> None:
        guild = self._assert_admin(ctx)
        await self.bot.ticket_service.ensure_config(guild.id)
        changes = await self.bot.ticket_service.configure(
            guild.id,
            container=category,
            log_channel=logs,
            staff_role=staff,
            max_tickets=max_tickets,
        )
        config = await self.bot.ticket_service.get_config(guild.id)
        if not changes:
            await ctx.reply(
                embed=make_embed("⚙️ Ticket configuration", f"No changes.\n\n{config_summary(config)}"),
                mention_author=False,
                ephemeral=True,
            )
            return
        await ctx.reply(
            embed=success_embed(
                "\n".join(changes) + f"\n\n**Current configuration**\n{config_summary(config)}",
                title="⚙️ Configuration updated",
            ),
            mention_author=False,
            ephemeral=True,
        )

    @ticket_setup.command(name="categories", description="Add, remove or list ticket categories.")
    async def setup_categories(
        self,
        ctx: commands.Context[TicketBot],
        action: Literal["add", "remove", "list"],
        name: str | None = None,
        emoji: str | None = None,
        description: str | None = None,
    ) -> None:
        guild = self._assert_admin(ctx)
        service = self.bot.ticket_service

        if action == "list":
            categories = await service.list_categories(guild.id)
            lines = [f"{cat.emoji} **{cat.name}** (`{cat.id}`)\n└ {cat.description}" for cat in categories]
            await ctx.reply(
                embed=make_embed(
                    f"📋 Ticket categories ({len(categories)})",
                    "\n\n".join(lines) or "No categories configured.",
                ),
                mention_author=False,
                ephemeral=True,
            )
            return

        if action == "add":
            if not name or not emoji or not description:
                raise ValidationError("Adding a category needs a name, an emoji and a description.")
            category = await service.add_category(guild.id, name, emoji, description)
            await ctx.reply(
                embed=success_embed(
                    f"{category.emoji} **{category.name}** (`{category.id}`)\n{category.description}",
                    title="Category added",
                ),
                mention_author=False,
                ephemeral=True,
            )
            return

        if not name:
            raise ValidationError("Removing a category needs its name.")
        removed = await service.remove_category(guild.id, name)
        await ctx.reply(
            embed=success_embed(f"{removed.emoji} **{removed.name}** was removed.", title="Category removed"),
            mention_author=False,
            ephemeral=True,
        )


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(SetupCog(bot))
