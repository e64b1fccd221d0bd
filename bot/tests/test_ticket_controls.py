from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

from conftest import FakeGuild, make_member
from core.config import TicketsConfig
from services.ticket_service import TicketService
from views.ticket_controls import CloseConfirmView, start_close


def _bot(ticket_service: object) -> SimpleNamespace:
    return SimpleNamespace(
        ticket_service=ticket_service,
        config=SimpleNamespace(tickets=TicketsConfig(confirmation_timeout_seconds=30)),
    )


def _interaction(user: object, channel: object | None = None) -> MagicMock:
    interaction = MagicMock()
    interaction.user = user
    interaction.channel = channel
    interaction.response.send_message = AsyncMock()
    interaction.response.edit_message = AsyncMock()
    interaction.response.defer = AsyncMock()
    interaction.followup.send = AsyncMock()
    interaction.original_response = AsyncMock(return_value=MagicMock(edit=AsyncMock()))
    return interaction


def _discord_member(member_id: int) -> MagicMock:
    member = MagicMock(spec=discord.Member)
    member.id = member_id
    member.mention = f"<@{member_id}>"
    return member


async def _open_ticket(service: TicketService, guild: FakeGuild):
    await service.ensure_config(guild.id)
    owner = make_member(guild, "alice")
    created = await service.create_ticket(guild, owner, "support")
    return owner, created


@pytest.mark.asyncio
async def test_cancel_leaves_ticket_open(service: TicketService, guild: FakeGuild) -> None:
    owner, created = await _open_ticket(service, guild)
    view = CloseConfirmView(_bot(service), owner, "done", timeout=30)
    interaction = _interaction(owner, created.channel)

    await view.cancel_button.callback(interaction)

    assert view.is_finished()
    interaction.response.edit_message.assert_awaited_once()
    assert interaction.response.edit_message.await_args.kwargs["view"] is None
    assert await service.deps.ticket_repo.count_active(guild.id) == 1
    assert await service.deps.ticket_repo.count_closed(guild.id) == 0
    assert created.channel.deleted is False
    assert service.pending_deletions() == []


@pytest.mark.asyncio
async def test_timeout_clears_prompt_and_leaves_ticket_open(service: TicketService, guild: FakeGuild) -> None:
    owner, created = await _open_ticket(service, guild)
    view = CloseConfirmView(_bot(service), owner, None, timeout=30)
    view.message = MagicMock(edit=AsyncMock())

    await view.on_timeout()

    view.message.edit.assert_awaited_once()
    assert view.message.edit.await_args.kwargs["view"] is None
    assert await service.deps.ticket_repo.count_active(guild.id) == 1
    assert service.pending_deletions() == []


@pytest.mark.asyncio
async def test_timeout_tolerates_deleted_prompt(service: TicketService, guild: FakeGuild) -> None:
    owner, _ = await _open_ticket(service, guild)
    view = CloseConfirmView(_bot(service), owner, None, timeout=30)
    response = MagicMock(status=404, reason="Not Found")
    view.message = MagicMock(edit=AsyncMock(side_effect=discord.NotFound(response, "Unknown Message")))

    await view.on_timeout()

    assert await service.deps.ticket_repo.count_active(guild.id) == 1


@pytest.mark.asyncio
async def test_only_requesting_member_can_answer_prompt(service: TicketService, guild: FakeGuild) -> None:
    owner, created = await _open_ticket(service, guild)
    view = CloseConfirmView(_bot(service), owner, None, timeout=30)
    stranger = make_member(guild, "bob")

    assert await view.interaction_check(_interaction(owner, created.channel)) is True

    interaction = _interaction(stranger, created.channel)
    assert await view.interaction_check(interaction) is False
    interaction.response.send_message.assert_awaited_once()
    assert interaction.response.send_message.await_args.kwargs["ephemeral"] is True


@pytest.mark.asyncio
async def test_confirm_closes_ticket() -> None:
    ticket_service = MagicMock(close_ticket=AsyncMock())
    member = _discord_member(7)
    channel = MagicMock(spec=discord.TextChannel)
    view = CloseConfirmView(_bot(ticket_service), member, "resolved", timeout=30)
    interaction = _interaction(member, channel)

    await view.confirm_button.callback(interaction)

    assert view.is_finished()
    assert interaction.response.edit_message.await_args.kwargs["view"] is None
    ticket_service.close_ticket.assert_awaited_once_with(channel, member, "resolved")


@pytest.mark.asyncio
async def test_start_close_prompts_before_closing() -> None:
    ticket_service = MagicMock(
        check_close=AsyncMock(return_value=SimpleNamespace(status="open")),
        close_ticket=AsyncMock(),
    )
    member = _discord_member(7)
    channel = MagicMock(spec=discord.TextChannel)
    interaction = _interaction(member, channel)

    await start_close(_bot(ticket_service), interaction, "resolved")

    ticket_service.close_ticket.assert_not_awaited()
    kwargs = interaction.response.send_message.await_args.kwargs
    view = kwargs["view"]
    assert isinstance(view, CloseConfirmView)
    assert view.timeout == 30
    assert view.reason == "resolved"
    assert kwargs["ephemeral"] is True
    assert view.message is interaction.original_response.return_value


@pytest.mark.asyncio
async def test_start_close_on_archived_ticket_skips_prompt() -> None:
    ticket_service = MagicMock(
        check_close=AsyncMock(return_value=SimpleNamespace(status="closed")),
        close_ticket=AsyncMock(),
    )
    member = _discord_member(7)
    channel = MagicMock(spec=discord.TextChannel)
    interaction = _interaction(member, channel)

    await start_close(_bot(ticket_service), interaction)

    interaction.response.send_message.assert_not_awaited()
    ticket_service.close_ticket.assert_awaited_once_with(channel, member, None)
    interaction.followup.send.assert_awaited_once()
