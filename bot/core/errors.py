from __future__ import annotations

import logging
from dataclasses import dataclass, field

import discord
from discord import app_commands
from discord.ext import commands

from utils.embeds import error_embed

LOGGER = logging.getLogger(__name__)


class BotError(RuntimeError):
    user_message: str = "An unexpected error occurred."


@dataclass(slots=True)
class PermissionDeniedError(BotError):
    user_message: str = "You do not have permission to run this action."


@dataclass(slots=True)
class TicketNotFoundError(BotError):
    user_message: str = "This channel is not an open ticket."


@dataclass(slots=True)
class CategoryNotFoundError(BotError):
    user_message: str = "That ticket category does not exist."


@dataclass(slots=True)
class TicketLimitReachedError(BotError):
    limit: int = 0
    open_channel_ids: list[int] = field(default_factory=list)
    user_message: str = ""

    def __post_init__(self) -> None:
        if self.user_message:
            return
        listing = "\n".join(f"• <#{channel_id}>" for channel_id in self.open_channel_ids) or "• none"
        self.user_message = (
            f"You reached the limit of **{self.limit}** open ticket(s).\n\n"
            f"**Your open tickets:**\n{listing}\n\n"
            "Close one of them before opening a new ticket."
        )


@dataclass(slots=True)
class TicketStateError(BotError):
    user_message: str = "The ticket is not in a valid state for this action."


@dataclass(slots=True)
class ValidationError(BotError):
    user_message: str = "The provided input is not valid."


@dataclass(slots=True)
class ExternalCallFailedError(BotError):
    user_message: str = "Discord rejected the request."

    @classmethod
    def from_http(cls, action: str, exc: discord.HTTPException) -> ExternalCallFailedError:
        detail = exc.text or str(exc)
        return cls(f"Could not {action}.\n\n**Error:** `{detail}`")

    @classmethod
    def from_rate_limit(cls, action: str, exc: discord.RateLimited) -> ExternalCallFailedError:
        return cls(
            f"Could not {action}.\n\n**Error:** `Rate limited by Discord, retry in {exc.retry_after:.0f} seconds`"
        )


@dataclass(slots=True)
class ConcurrentModificationError(BotError):
    user_message: str = "The ticket data changed while processing. Please try again."


# Short names matching the ticket error taxonomy.
Forbidden = PermissionDeniedError
NotFound = TicketNotFoundError
LimitReached = TicketLimitReachedError
ExternalCallFailed = ExternalCallFailedError


def unwrap_error(error: BaseException) -> BaseException:
    while isinstance(
        error,
        (commands.CommandInvokeError, commands.HybridCommandError, app_commands.CommandInvokeError),
    ):
        original = getattr(error, "original", None)
        if original is None:
            break
        error = original
    return error


async def send_error_response(
    target: commands.Context[commands.Bot] | discord.Interaction[commands.Bot], message: str
) -> None:
    embed = error_embed(message)
    if isinstance(target, commands.Context):
        await target.reply(embed=embed, mention_author=False, ephemeral=True)
        return
    if target.response.is_done():
        await target.followup.send(embed=embed, ephemeral=True)
    else:
        await target.response.send_message(embed=embed, ephemeral=True)


def humanize_error(error: BaseException) -> str:
    error = unwrap_error(error)
    if isinstance(error, BotError):
        return error.user_message
    if isinstance(error, (commands.CommandOnCooldown, app_commands.CommandOnCooldown)):
        return f"Cooldown active. Retry in {error.retry_after:.1f} seconds."
    if isinstance(error, (commands.MissingPermissions, app_commands.MissingPermissions)):
        return "You are missing required Discord permissions."
    if isinstance(error, commands.NoPrivateMessage):
        return "This command can only be used inside a server."
    if isinstance(error, (commands.CheckFailure, app_commands.CheckFailure)):
        return "You are not authorized for this command."
    if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
        return "Command argument was invalid."
    if isinstance(error, discord.HTTPException):
        return f"Discord rejected the request.\n\n**Error:** `{error.text or error}`"
    return "An unexpected command error occurred."


def _log_failure(kind: str, command: str | None, guild_id: int | None, user_id: int | None, error: BaseException) -> None:
    original = unwrap_error(error)
    if isinstance(original, BotError):
        LOGGER.info(
            "%s rejected. command=%s guild=%s user=%s reason=%s",
            kind,
            command,
            guild_id,
            user_id,
            type(original).__name__,
        )
        return
    LOGGER.exception(
        "%s failed. command=%s guild=%s user=%s",
        kind,
        command,
        guild_id,
        user_id,
        exc_info=original,
    )


async def handle_prefix_command_error(
    ctx: commands.Context[commands.Bot], error: commands.CommandError
) -> None:
    if isinstance(error, commands.CommandNotFound):
        return
    _log_failure(
        "Command",
        getattr(ctx.command, "qualified_name", None),
        getattr(ctx.guild, "id", None),
        ctx.author.id,
        error,
    )
    await send_error_response(ctx, humanize_error(error))


async def handle_app_command_error(
    interaction: discord.Interaction[commands.Bot], error: app_commands.AppCommandError
) -> None:
    _log_failure(
        "Slash command",
        getattr(interaction.command, "qualified_name", None),
        getattr(interaction.guild, "id", None),
        interaction.user.id if interaction.user else None,
        error,
    )
    await send_error_response(interaction, humanize_error(error))


async def handle_view_error(interaction: discord.Interaction, error: Exception, item_label: str) -> None:
    _log_failure(
        "Component",
        item_label,
        getattr(interaction.guild, "id", None),
        interaction.user.id if interaction.user else None,
        error,
    )
    message = humanize_error(error)
    if isinstance(unwrap_error(error), BotError) or isinstance(error, discord.HTTPException):
        await send_error_response(interaction, message)
        return
    await send_error_response(interaction, "Action failed due to an unexpected error.")
