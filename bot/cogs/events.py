from __future__ import annotations

import logging

import discord
from discord.ext import commands

from core.bot import TicketBot

LOGGER = logging.getLogger(__name__)


class EventsCog(commands.Cog):
    def __init__(self, bot: TicketBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_guild_join(self, guild: discord.Guild) -> None:
        LOGGER.info("Joined guild %s (%s)", guild.name, guild.id, extra={"guild_id": guild.id})

    @commands.Cog.listener()
    async def on_guild_channel_delete(self, channel: discord.abc.GuildChannel) -> None:
        if not isinstance(channel, discord.TextChannel):
            return
        await self.bot.ticket_service.handle_channel_deleted(channel)


async def setup(bot: TicketBot) -> None:
    await bot.add_cog(EventsCog(bot))
