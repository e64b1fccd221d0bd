from __future__ import annotations

import logging
from typing import TYPE_CHECKING, cast

import discord

from core.errors import TicketStateError, handle_view_error
from utils.constants import (
    CUSTOM_ID_ADD_USER,
    CUSTOM_ID_CLAIM,
    CUSTOM_ID_CLOSE,
    CUSTOM_ID_INFO,
    CUSTOM_ID_PRIORITY,
    CUSTOM_ID_TRANSCRIPT,
    PRIORITY_DESCRIPTIONS,
    PRIORITY_DISPLAY,
    PRIORITY_LEVELS,
    TICKET_STATUS_CLOSED,
)
from utils.embeds import (
    close_prompt_embed,
    error_embed,
    make_embed,
    staff_embed,
    success_embed,
    ticket_info_embed,
)

if TYPE_CHECKING:
    from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


def _ticket_context(interaction: discord.Interaction) -> tuple[discord.TextChannel, discord.Member]:
    if not isinstance(interaction.channel, discord.TextChannel) or not isinstance(interaction.user, discord.Member):
        raise TicketStateError("This action only works inside a ticket channel.")
    return interaction.channel, interaction.user


async def start_close(
    bot: TicketBot, interaction: discord.Interaction, reason: str | None = None
) -> None:
    """Show the confirmation prompt, or re-run deletion for a ticket that is already closed."""
    channel, member = _ticket_context(interaction)
    ticket = await bot.ticket_service.check_close(channel, member)
    if ticket.status == TICKET_STATUS_CLOSED:
        await interaction.response.defer(ephemeral=True, thinking=True)
        await bot.ticket_service.close_ticket(channel, member, reason)
        await interaction.followup.send(
            embed=success_embed("This ticket was already closed. Channel deletion was scheduled again."),
            ephemeral=True,
        )
        return

    view = CloseConfirmView(bot, member, reason, timeout=bot.config.tickets.confirmation_timeout_seconds)
    await interaction.response.send_message(
        embed=close_prompt_embed(member, reason or "No reason given"),
        view=view,
        ephemeral=True,
    )
    view.message = await interaction.original_response()


class CloseConfirmView(discord.ui.View):
    def __init__(self, bot: TicketBot, actor: discord.Member, reason: str | None, timeout: float = 60) -> None:
        super().__init__(timeout=timeout)
        self.bot = bot
        self.actor = actor
        self.reason = reason
        self.message: discord.Message | None = None

    async def interaction_check(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id != self.actor.id:
            await interaction.response.send_message(
                embed=error_embed("Only the person who asked to close can confirm."), ephemeral=True
            )
            return False
        return True

    @discord.ui.button(label="Confirm", style=discord.ButtonStyle.danger, emoji="✅")
    async def confirm_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        channel, member = _ticket_context(interaction)
        self.stop()
        await interaction.response.edit_message(
            embed=make_embed("🔒 Closing ticket", "Saving the transcript..."), view=None
        )
        await self.bot.ticket_service.close_ticket(channel, member, self.reason)

    @discord.ui.button(label="Cancel", style=discord.ButtonStyle.secondary, emoji="❌")
    async def cancel_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        self.stop()
        await interaction.response.edit_message(embed=success_embed("Close cancelled.", title="Cancelled"), view=None)

    async def on_timeout(self) -> None:
        if self.message is None:
            return
        try:
            await self.message.edit(embed=make_embed("⏱️ Timed out", "The ticket stays open."), view=None)
        except discord.HTTPException:
            LOGGER.debug("Close prompt already gone when it timed out")

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[discord.ui.View]
    ) -> None:
        await handle_view_error(interaction, error, getattr(item, "label", None) or "close-confirm")


class PrioritySelect(discord.ui.Select["PrioritySelectView"]):
    def __init__(self, bot: TicketBot) -> None:
        options = [
            discord.SelectOption(
                label=PRIORITY_DISPLAY[level],
                value=level,
                description=PRIORITY_DESCRIPTIONS[level],
            )
            for level in PRIORITY_LEVELS
        ]
        super().__init__(placeholder="Choose a priority", options=options, min_values=1, max_values=1)
        self.bot = bot

    async def callback(self, interaction: discord.Interaction) -> None:
        channel, member = _ticket_context(interaction)
        ticket = await self.bot.ticket_service.set_priority(channel, member, self.values[0])
        await interaction.response.edit_message(
            embed=success_embed(f"Priority set to {PRIORITY_DISPLAY[ticket.priority]}."), view=None
        )
        await channel.send(
            embed=staff_embed(
                "🎯 Priority changed",
                f"{member.mention} set the priority to **{PRIORITY_DISPLAY[ticket.priority]}**.",
            )
        )


class PrioritySelectView(discord.ui.View):
    def __init__(self, bot: TicketBot) -> None:
        super().__init__(timeout=120)
        self.add_item(PrioritySelect(bot))

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[discord.ui.View]
    ) -> None:
        await handle_view_error(interaction, error, "priority-select")


class AddMemberSelect(discord.ui.UserSelect["AddMemberView"]):
    def __init__(self, bot: TicketBot) -> None:
        super().__init__(placeholder="Pick a member to add", min_values=1, max_values=1)
        self.bot = bot

    async def callback(self, interaction: discord.Interaction) -> None:
        channel, member = _ticket_context(interaction)
        target = self.values[0]
        if not isinstance(target, discord.Member):
            raise TicketStateError("That user is not a member of this server.")
        await self.bot.ticket_service.add_member(channel, member, target)
        await interaction.response.edit_message(
            embed=success_embed(f"{target.mention} can now see this ticket."), view=None
        )
        await channel.send(embed=staff_embed("➕ Member added", f"{member.mention} added {target.mention}."))


class AddMemberView(discord.ui.View):
    def __init__(self, bot: TicketBot) -> None:
        super().__init__(timeout=120)
        self.add_item(AddMemberSelect(bot))

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[discord.ui.View]
    ) -> None:
        await handle_view_error(interaction, error, "add-member-select")


class TicketControlsView(discord.ui.View):
    """Buttons under the pinned welcome message. Persistent; the ticket is resolved from the channel."""

    def __init__(self, bot: TicketBot) -> None:
        super().__init__(timeout=None)
        self.bot = bot

    @discord.ui.button(label="Close", style=discord.ButtonStyle.danger, emoji="🔒", custom_id=CUSTOM_ID_CLOSE)
    async def close_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        await start_close(self.bot, interaction)

    @discord.ui.button(label="Claim", style=discord.ButtonStyle.primary, emoji="✋", custom_id=CUSTOM_ID_CLAIM)
    async def claim_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        channel, member = _ticket_context(interaction)
        # The rename can wait on Discord's rate limit longer than the interaction token allows.
        await interaction.response.defer(thinking=True)
        await self.bot.ticket_service.claim(channel, member)
        await interaction.followup.send(
            embed=staff_embed("✋ Ticket claimed", f"{member.mention} is now handling this ticket.")
        )

    @discord.ui.button(
        label="Transcript", style=discord.ButtonStyle.secondary, emoji="📄", custom_id=CUSTOM_ID_TRANSCRIPT
    )
    async def transcript_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        channel, member = _ticket_context(interaction)
        await interaction.response.defer(ephemeral=True, thinking=True)
        transcript = await self.bot.ticket_service.export_transcript(channel, member)
        await interaction.followup.send(
            embed=success_embed(f"Transcript of {transcript.message_count} messages.", title="📄 Transcript"),
            file=transcript.as_file(),
            ephemeral=True,
        )

    @discord.ui.button(label="Priority", style=discord.ButtonStyle.secondary, emoji="🎯", custom_id=CUSTOM_ID_PRIORITY)
    async def priority_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        _, member = _ticket_context(interaction)
        await self.bot.ticket_service.require_staff(member)
        await interaction.response.send_message(
            embed=make_embed("🎯 Priority", "Pick the new priority for this ticket."),
            view=PrioritySelectView(self.bot),
            ephemeral=True,
        )

    @discord.ui.button(label="Add member", style=discord.ButtonStyle.success, emoji="➕", custom_id=CUSTOM_ID_ADD_USER)
    async def add_user_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        _, member = _ticket_context(interaction)
        await self.bot.ticket_service.require_staff(member)
        await interaction.response.send_message(
            embed=make_embed("➕ Add a member", "Pick who should get access to this ticket."),
            view=AddMemberView(self.bot),
            ephemeral=True,
        )

    @discord.ui.button(label="Info", style=discord.ButtonStyle.secondary, emoji="ℹ️", custom_id=CUSTOM_ID_INFO)
    async def info_button(self, interaction: discord.Interaction, _: discord.ui.Button) -> None:
        channel = cast(discord.TextChannel, interaction.channel)
        ticket, member_count = await self.bot.ticket_service.info(channel)
        await interaction.response.send_message(embed=ticket_info_embed(ticket, member_count), ephemeral=True)

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[discord.ui.View]
    ) -> None:
        await handle_view_error(interaction, error, getattr(item, "custom_id", None) or "ticket-controls")
