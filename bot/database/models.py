from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from utils.constants import DEFAULT_PRIORITY, TICKET_STATUS_OPEN


def _opt_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


@dataclass(slots=True)
class Document:
    collection: str
    key: str
    guild_id: int | None
    body: dict[str, Any]
    version: int


@dataclass(slots=True)
class TicketCategory:
    id: str
    name: str
    emoji: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "emoji": self.emoji, "description": self.description}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TicketCategory:
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", data["id"])),
            emoji=str(data.get("emoji", "🎫")),
            description=str(data.get("description", "")),
        )


@dataclass(slots=True)
class GuildTicketConfig:
    guild_id: int
    enabled: bool = True
    categories: list[TicketCategory] = field(default_factory=list)
    max_tickets_per_user: int = 3
    staff_role_ids: set[int] = field(default_factory=set)
    log_channel_id: int | None = None
    ticket_parent_channel_id: int | None = None
    panel_channel_id: int | None = None
    version: int = 0

    def get_category(self, category_id: str) -> TicketCategory | None:
        return next((cat for cat in self.categories if cat.id == category_id), None)

    def to_document(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "categories": [cat.to_dict() for cat in self.categories],
            "maxTicketsPerUser": self.max_tickets_per_user,
            "staffRoleIds": sorted(self.staff_role_ids),
            "logChannelId": self.log_channel_id,
            "ticketParentChannelId": self.ticket_parent_channel_id,
            "panelChannelId": self.panel_channel_id,
        }

    @classmethod
    def from_document(cls, guild_id: int, body: dict[str, Any], version: int) -> GuildTicketConfig:
        return cls(
            guild_id=guild_id,
            enabled=bool(body.get("enabled", True)),
            categories=[TicketCategory.from_dict(row) for row in body.get("categories", [])],
            max_tickets_per_user=int(body.get("maxTicketsPerUser", 3)),
            staff_role_ids={int(role_id) for role_id in body.get("staffRoleIds", [])},
            log_channel_id=_opt_int(body.get("logChannelId")),
            ticket_parent_channel_id=_opt_int(body.get("ticketParentChannelId")),
            panel_channel_id=_opt_int(body.get("panelChannelId")),
            version=version,
        )


@dataclass(slots=True)
class TicketRecord:
    id: str
    guild_id: int
    channel_id: int
    user_id: int
    category_id: str
    category_name: str
    parent_channel_id: int | None = None
    priority: str = DEFAULT_PRIORITY
    status: str = TICKET_STATUS_OPEN
    claimed_by: int | None = None
    created_at: str | None = None
    closed_at: str | None = None
    closed_by: int | None = None
    close_reason: str | None = None
    transcript: str | None = None
    welcome_message_id: int | None = None
    version: int = 0

    @property
    def key(self) -> str:
        return ticket_key(self.guild_id, self.id)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "guildId": self.guild_id,
            "channelId": self.channel_id,
            "userId": self.user_id,
            "categoryId": self.category_id,
            "categoryName": self.category_name,
            "parentChannelId": self.parent_channel_id,
            "priority": self.priority,
            "status": self.status,
            "claimedBy": self.claimed_by,
            "createdAt": self.created_at,
            "closedAt": self.closed_at,
            "closedBy": self.closed_by,
            "closeReason": self.close_reason,
            "transcript": self.transcript,
            "welcomeMessageId": self.welcome_message_id,
        }

    @classmethod
    def from_document(cls, body: dict[str, Any], version: int) -> TicketRecord:
        return cls(
            id=str(body["id"]),
            guild_id=int(body["guildId"]),
            channel_id=int(body["channelId"]),
            user_id=int(body["userId"]),
            category_id=str(body.get("categoryId", "")),
            category_name=str(body.get("categoryName", "")),
            parent_channel_id=_opt_int(body.get("parentChannelId")),
            priority=str(body.get("priority", DEFAULT_PRIORITY)),
            status=str(body.get("status", TICKET_STATUS_OPEN)),
            claimed_by=_opt_int(body.get("claimedBy")),
            created_at=body.get("createdAt"),
            closed_at=body.get("closedAt"),
            closed_by=_opt_int(body.get("closedBy")),
            close_reason=body.get("closeReason"),
            transcript=body.get("transcript"),
            welcome_message_id=_opt_int(body.get("welcomeMessageId")),
            version=version,
        )


def ticket_key(guild_id: int, ticket_id: str) -> str:
    return f"{guild_id}:{ticket_id}"
