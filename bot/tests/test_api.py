from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from core.api import create_api_app
from core.config import StatusApiConfig
from database.models import GuildTicketConfig, TicketRecord


def _bot(api_key: str = "") -> SimpleNamespace:
    ticket = TicketRecord(
        id="0001",
        guild_id=5,
        channel_id=900,
        user_id=7,
        category_id="support",
        category_name="Technical Support",
        parent_channel_id=800,
        created_at="2024-01-01T00:00:00+00:00",
    )
    return SimpleNamespace(
        is_ready=lambda: True,
        guilds=[object(), object()],
        config=SimpleNamespace(status_api=StatusApiConfig(api_key=api_key)),
        ticket_service=SimpleNamespace(
            stats=AsyncMock(
                return_value={"guilds": 1, "open_tickets": 1, "closed_tickets": 4, "pending_deletions": 0}
            )
        ),
        ticket_repo=SimpleNamespace(
            list_active=AsyncMock(return_value=[ticket]),
            count_closed=AsyncMock(return_value=4),
        ),
        settings_repo=SimpleNamespace(get=AsyncMock(return_value=None)),
    )


def test_health_is_public() -> None:
    client = TestClient(create_api_app(_bot(api_key="secret")))
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "ready": True, "guilds": 2}


@pytest.mark.parametrize("headers, expected", [({}, 401), ({"x-api-key": "wrong"}, 401), ({"x-api-key": "secret"}, 200)])
def test_stats_requires_api_key(headers: dict[str, str], expected: int) -> None:
    client = TestClient(create_api_app(_bot(api_key="secret")))
    response = client.get("/api/stats", headers=headers)
    assert response.status_code == expected


def test_guild_tickets_lists_open_items() -> None:
    bot = _bot()
    client = TestClient(create_api_app(bot))

    body = client.get("/api/guilds/5/tickets").json()

    assert body["open"] == 1
    assert body["closed"] == 4
    assert body["items"][0]["id"] == "0001"
    assert body["items"][0]["status"] == "open"
    assert body["items"][0]["channel_id"] == "900"
    assert body["items"][0]["user_id"] == "7"
    assert body["items"][0]["claimed_by"] is None
    bot.ticket_repo.list_active.assert_awaited_once_with(5)


def test_guild_config_missing_returns_404() -> None:
    client = TestClient(create_api_app(_bot()))
    assert client.get("/api/guilds/5/config").status_code == 404


def test_guild_config_returns_document() -> None:
    bot = _bot()
    config = GuildTicketConfig(guild_id=5, log_channel_id=99, staff_role_ids={2**60}, version=3)
    bot.settings_repo.get = AsyncMock(return_value=config)
    client = TestClient(create_api_app(bot))

    body = client.get("/api/guilds/5/config").json()

    assert body["version"] == 3
    assert body["guild_id"] == "5"
    assert body["logChannelId"] == "99"
    assert body["staffRoleIds"] == [str(2**60)]
    assert body["panelChannelId"] is None
