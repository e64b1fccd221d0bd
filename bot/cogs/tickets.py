from __future__ import annotations

import logging
from typing import Literal

import discord
from discord.ext import commands

from core.bot import TicketBot
from core.errors import TicketStateError
from utils.constants import PRIORITY_DISPLAY, TICKET_STATUS_CLOSED
from utils.embeds import close_prompt_embed, make_embed, staff_embed, success_embed, ticket_info_embed
from views.ticket_controls import CloseConfirmView, TicketControlsView, start_close
from views.ticket_panel import TicketPanelView

LOGGER = logging.getLogger(__name__)

PriorityLevel = Literal["low", "normal", "high", "critical"]


class TicketsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        # Persistent views route clicks on messages posted before a restart.
        self.bot.add_view(TicketPanelView(self.bot))
        self.bot.add_view(TicketControlsView(self.bot))

    def _ticket_context(self, ctx: commands.Context[TicketBot]) -> tuple[discord.TextChannel, discord.Member]:
        if not ctx.guild or not isinstance(ctx.author, discord.Member):
            raise TicketStateError("Ticket commands only work inside a server.")
        if not isinstance(ctx.channel, discord.TextChannel):
            raise TicketStateError("Ticket commands require a text channel.")
        return ctx.channel, ctx.author

    @commands.hybrid_group(name="ticket", with_app_command=True, description="Ticket command group.")
    async def ticket(self, ctx: commands.Context[TicketBot]) -> None:
        if ctx.invoked_subcommand is None:
            await ctx.reply(
                embed=make_embed(
                    "Ticket Commands",
                    "`/ticket close [reason]` to close\n"
                    "`/ticket claim` / `/ticket unclaim`\n"
                    "`/ticket add <member>` / `/ticket remove <member>`\n"
                    "`/ticket rename <name>`\n"
                    "`/ticket priority <level>`\n"
                    "`/ticket transcript`\n"
                    "`/ticket info`\n"
                    "`/ticket list`",
                ),
                mention_author=False,
            )

    @ticket.command(name="close", description="Close the current ticket.")
    async def ticket_close(self, ctx: commands.Context[TicketBot], *, reason: str | None = None) -> None:
        if ctx.interaction is not None:
            await start_close(self.bot, ctx.interaction, reason)
            return

        channel, member = self._ticket_context(ctx)
        ticket = await self.bot.ticket_service.check_close(channel, member)
        if ticket.status == TICKET_STATUS_CLOSED:
            await self.bot.ticket_service.close_ticket(channel, member, reason)
            return
        view = CloseConfirmView(
            self.bot, member, reason, timeout=self.bot.config.tickets.confirmation_timeout_seconds
        )
        view.message = await ctx.reply(
            embed=close_prompt_embed(member, reason or "No reason given"), view=view, mention_author=False
        )

    @ticket.command(name="add", description="Give a member access to the current ticket.")
    async def ticket_add(self, ctx: commands.Context[TicketBot], member: discord.Member) -> None:
        channel, actor = self._ticket_context(ctx)
        await self.bot.ticket_service.add_member(channel, actor, member)
        await ctx.reply(
            embed=success_embed(f"{member.mention} was added to the ticket.", title="➕ Member added"),
            mention_author=False,
        )

    @ticket.command(name="remove", description="Remove a member from the current ticket.")
    async def ticket_remove(self, ctx: commands.Context[TicketBot], member: discord.Member) -> None:
        channel, actor = self._ticket_context(ctx)
        await self.bot.ticket_service.remove_member(channel, actor, member)
        await ctx.reply(
            embed=success_embed(f"{member.mention} was removed from the ticket.", title="➖ Member removed"),
            mention_author=False,
        )

    @ticket.command(name="claim", description="Claim the current ticket.")
    async def ticket_claim(self, ctx: commands.Context[TicketBot]) -> None:
        channel, actor = self._ticket_context(ctx)
        await ctx.defer()
        await self.bot.ticket_service.claim(channel, actor)
        await ctx.reply(
            embed=staff_embed("✋ Ticket claimed", f"{actor.mention} is now handling this ticket."),
            mention_author=False,
        )

    @ticket.command(name="unclaim", description="Release the current ticket.")
    async def ticket_unclaim(self, ctx: commands.Context[TicketBot]) -> None:
        channel, actor = self._ticket_context(ctx)
        await ctx.defer()
        await self.bot.ticket_service.unclaim(channel, actor)
        await ctx.reply(
            embed=staff_embed("📤 Ticket released", f"{actor.mention} released this ticket."),
            mention_author=False,
        )

    @ticket.command(name="rename", description="Rename the current ticket channel.")
    async def ticket_rename(self, ctx: commands.Context[TicketBot], *, name: str) -> None:
        channel, actor = self._ticket_context(ctx)
        await ctx.defer()
        new_name = await self.bot.ticket_service.rename(channel, actor, name)
        await ctx.reply(embed=success_embed(f"Channel renamed to `{new_name}`."), mention_author=False)

    @ticket.command(name="priority", description="Set the priority of the current ticket.")
    async def ticket_priority(self, ctx: commands.Context[TicketBot], level: PriorityLevel) -> None:
        channel, actor = self._ticket_context(ctx)
        ticket = await self.bot.ticket_service.set_priority(channel, actor, level)
        await ctx.reply(
            embed=staff_embed(
                "🎯 Priority changed",
                f"{actor.mention} set the priority to **{PRIORITY_DISPLAY[ticket.priority]}**.",
            ),
            mention_author=False,
        )

    @ticket.command(name="transcript", description="Export the current ticket as a text file.")
    async def ticket_transcript(self, ctx: commands.Context[TicketBot]) -> None:
        channel, actor = self._ticket_context(ctx)
        await ctx.defer(ephemeral=True)
        transcript = await self.bot.ticket_service.export_transcript(channel, actor)
        await ctx.reply(
            embed=success_embed(f"Transcript of {transcript.message_count} messages.", title="📄 Transcript"),
            file=transcript.as_file(),
            mention_author=False,
            ephemeral=True,
        )

    @ticket.command(name="info", description="Show details about the current ticket.")
    async def ticket_info(self, ctx: commands.Context[TicketBot]) -> None:
        channel, _ = self._ticket_context(ctx)
        ticket, member_count = await self.bot.ticket_service.info(channel)
        await ctx.reply(embed=ticket_info_embed(ticket, member_count), mention_author=False, ephemeral=True)

    @ticket.command(name="list", description="List open tickets in this server.")
    async def ticket_list(self, ctx: commands.Context[TicketBot]) -> None:
        _, actor = self._ticket_context(ctx)
        tickets = await self.bot.ticket_service.list_open_tickets(actor)
        if not tickets:
            await ctx.reply(embed=make_embed("🎫 Open tickets", "No open tickets."), mention_author=False, ephemeral=True)
            return
        lines = [
            f"`{ticket.id}` <#{ticket.channel_id}> · <@{ticket.user_id}> · "
            f"{PRIORITY_DISPLAY.get(ticket.priority, ticket.priority)}"
            + (f" · ✋ <@{ticket.claimed_by}>" if ticket.claimed_by else "")
            for ticket in tickets[:25]
        ]
        embed = make_embed(f"🎫 Open tickets ({len(tickets)})", "\n".join(lines))
        await ctx.reply(embed=embed, mention_author=False, ephemeral=True)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(TicketsCog(bot))
