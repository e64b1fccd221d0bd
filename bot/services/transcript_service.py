from __future__ import annotations

import html
import io
from collections.abc import Iterable
from dataclasses import dataclass

import discord

from core.config import TicketsConfig
from utils.time import utc_now

RULE = "=" * 60


@dataclass(slots=True)
class Transcript:
    channel_name: str
    text: str
    message_count: int
    html: str | None = None

    @property
    def filename(self) -> str:
        return f"transcript-{self.channel_name}.txt"

    def as_file(self) -> discord.File:
        return discord.File(io.BytesIO(self.text.encode("utf-8")), filename=self.filename)

    def as_html_file(self) -> discord.File | None:
        if self.html is None:
            return None
        return discord.File(
            io.BytesIO(self.html.encode("utf-8")),
            filename=f"transcript-{self.channel_name}.html",
        )


class TranscriptService:
    def __init__(self, config: TicketsConfig) -> None:
        self.config = config

    async def fetch_messages(self, channel: discord.TextChannel) -> list[discord.Message]:
        # history() walks newest first; keep the most recent window and flip it for reading order.
        # System notices such as "pinned a message" carry no conversation and are left out.
        messages = [
            message
            async for message in channel.history(limit=self.config.transcript_message_limit)
            if not message.is_system()
        ]
        messages.reverse()
        return messages

    async def render(self, channel: discord.TextChannel, actor: discord.abc.User) -> Transcript:
        messages = await self.fetch_messages(channel)
        text = self._build_text(channel, actor, messages)
        rendered_html = self._build_html(channel, messages) if self.config.html_transcripts else None
        return Transcript(channel_name=channel.name, text=text, message_count=len(messages), html=rendered_html)

    @staticmethod
    def _build_text(
        channel: discord.TextChannel, actor: discord.abc.User, messages: list[discord.Message]
    ) -> str:
        lines: list[str] = [
            f"TICKET TRANSCRIPT - {channel.name}",
            RULE,
            f"Generated: {utc_now().strftime('%Y-%m-%d %H:%M:%S UTC')}",
            f"Channel: #{channel.name} ({channel.id})",
            f"Server: {channel.guild.name} ({channel.guild.id})",
            f"Requested by: {actor} ({actor.id})",
            "",
            RULE,
            "",
        ]
        for msg in messages:
            lines.append(f"[{msg.created_at.strftime('%Y-%m-%d %H:%M:%S')}] {msg.author} ({msg.author.id}):")
            if msg.content:
                lines.append(msg.content)
            if msg.embeds:
                lines.append(f"[EMBED: {len(msg.embeds)} embed(s)]")
            if msg.attachments:
                lines.append(f"[FILES: {len(msg.attachments)} file(s)]")
                for attach in msg.attachments:
                    lines.append(f"  - {attach.filename} ({attach.url})")
            lines.append("")
        lines.extend(["", RULE, f"End of transcript - {len(messages)} messages"])
        return "\n".join(lines) + "\n"

    @staticmethod
    def _build_html(channel: discord.TextChannel, messages: Iterable[discord.Message]) -> str:
        rows: list[str] = []
        for msg in messages:
            escaped_content = html.escape(msg.content or "")
            attachment_html = ""
            if msg.attachments:
                links = "".join(
                    f'<li><a href="{html.escape(a.url)}">{html.escape(a.filename)}</a></li>'
                    for a in msg.attachments
                )
                attachment_html = f"<ul>{links}</ul>"
            embed_html = f"<div class='meta'>{len(msg.embeds)} embed(s)</div>" if msg.embeds else ""
            rows.append(
                "<div class='msg'>"
                f"<div class='meta'>{html.escape(str(msg.author))} | {msg.created_at.isoformat()}</div>"
                f"<div class='content'>{escaped_content}</div>"
                f"{embed_html}{attachment_html}"
                "</div>"
            )

        return (
            "<!doctype html><html><head><meta charset='utf-8'>"
            "<style>"
            "body{font-family:Arial,sans-serif;background:#f5f7fb;color:#1f2937;padding:16px;}"
            ".msg{background:white;border:1px solid #e5e7eb;border-radius:8px;padding:10px;margin-bottom:8px;}"
            ".meta{font-size:12px;color:#6b7280;margin-bottom:6px;}"
            ".content{white-space:pre-wrap;}"
            "</style></head><body>"
            f"<h1>Transcript - #{html.escape(channel.name)}</h1>"
            + "".join(rows)
            + "</body></html>"
        )
