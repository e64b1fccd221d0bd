from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Header, HTTPException

if TYPE_CHECKING:
    from core.bot import TicketBot
    from database.models import GuildTicketConfig, TicketRecord


def _auth(x_api_key: str | None, expected: str) -> None:
    if not expected:
        return
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized")


def _snowflake(value: int | None) -> str | None:
    # Discord ids exceed JavaScript's safe integer range; send them as strings like Discord's API does.
    return None if value is None else str(value)


def _ticket_payload(ticket: TicketRecord) -> dict[str, Any]:
    return {
        "id": ticket.id,
        "channel_id": _snowflake(ticket.channel_id),
        "user_id": _snowflake(ticket.user_id),
        "category_id": ticket.category_id,
        "priority": ticket.priority,
        "status": ticket.status,
        "claimed_by": _snowflake(ticket.claimed_by),
        "created_at": ticket.created_at,
    }


def _config_payload(config: GuildTicketConfig) -> dict[str, Any]:
    document = config.to_document()
    document["staffRoleIds"] = [_snowflake(role_id) for role_id in document["staffRoleIds"]]
    for key in ("logChannelId", "ticketParentChannelId", "panelChannelId"):
        document[key] = _snowflake(document[key])
    return {"guild_id": _snowflake(config.guild_id), "version": config.version, **document}


def create_api_app(bot: TicketBot) -> FastAPI:
    """Read-only status endpoints served next to the gateway connection."""
    app = FastAPI(title="Ticket Desk API", version="1.0.0")

    @app.get("/health")
    async def health() -> dict[str, object]:
        return {"status": "ok", "ready": bot.is_ready(), "guilds": len(bot.guilds)}

    @app.get("/api/stats")
    async def stats(x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.status_api.api_key)
        return await bot.ticket_service.stats()

    @app.get("/api/guilds/{guild_id}/tickets")
    async def guild_tickets(guild_id: int, x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.status_api.api_key)
        active = await bot.ticket_repo.list_active(guild_id)
        closed_count = await bot.ticket_repo.count_closed(guild_id)
        return {
            "open": len(active),
            "closed": closed_count,
            "items": [_ticket_payload(row) for row in active],
        }

    @app.get("/api/guilds/{guild_id}/config")
    async def guild_config(guild_id: int, x_api_key: str | None = Header(default=None)) -> dict[str, object]:
        _auth(x_api_key, bot.config.status_api.api_key)
        config = await bot.settings_repo.get(guild_id)
        if config is None:
            raise HTTPException(status_code=404, detail="Guild is not configured")
        return _config_payload(config)

    return app
