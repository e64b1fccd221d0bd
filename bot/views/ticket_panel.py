from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from core.errors import TicketStateError, handle_view_error
from utils.constants import CUSTOM_ID_CATEGORY_SELECT, MAX_PANEL_CATEGORIES
from utils.embeds import success_embed
from views.ticket_controls import TicketControlsView

if TYPE_CHECKING:
    from core.bot import TicketBot
    from database.models import TicketCategory

# Placeholder value used when a view is rebuilt without category data (persistent registration).
NO_CATEGORY_VALUE = "none"


class TicketCategorySelect(discord.ui.Select["TicketPanelView"]):
    def __init__(self, bot: TicketBot, categories: list[TicketCategory]) -> None:
        options = [
            discord.SelectOption(
                label=cat.name[:100],
                value=cat.id,
                description=cat.description[:100] or None,
                emoji=cat.emoji or None,
            )
            for cat in categories[:MAX_PANEL_CATEGORIES]
        ]
        if not options:
            options = [discord.SelectOption(label="No categories configured", value=NO_CATEGORY_VALUE)]
        super().__init__(
            placeholder="📋 Choose a ticket category...",
            options=options,
            min_values=1,
            max_values=1,
            custom_id=CUSTOM_ID_CATEGORY_SELECT,
        )
        self.bot = bot

    async def callback(self, interaction: discord.Interaction) -> None:
        if not interaction.guild or not isinstance(interaction.user, discord.Member):
            raise TicketStateError("Tickets can only be opened inside a server.")
        await interaction.response.defer(ephemeral=True, thinking=True)

        service = self.bot.ticket_service
        created = await service.create_ticket(interaction.guild, interaction.user, self.values[0])
        await service.post_welcome(created, interaction.user, TicketControlsView(self.bot))
        await service.announce_created(interaction.guild, created, interaction.user)

        await interaction.followup.send(
            embed=success_embed(
                f"Your ticket was created: {created.channel.mention}\n**ID:** `{created.ticket.id}`",
                title="🎫 Ticket created",
            ),
            ephemeral=True,
        )


class TicketPanelView(discord.ui.View):
    """Category selector posted by the panel command. The select's options only matter when posting;
    a persistent instance built without categories still routes every panel's selection here."""

    def __init__(self, bot: TicketBot, categories: list[TicketCategory] | None = None) -> None:
        super().__init__(timeout=None)
        self.bot = bot
        self.add_item(TicketCategorySelect(bot, categories or []))

    async def on_error(
        self, interaction: discord.Interaction, error: Exception, item: discord.ui.Item[discord.ui.View]
    ) -> None:
        await handle_view_error(interaction, error, CUSTOM_ID_CATEGORY_SELECT)
