from __future__ import annotations

import pytest

from conftest import FakeGuild, FakeTextChannel, FakeUser
from core.config import TicketsConfig
from services.transcript_service import TranscriptService


@pytest.fixture
def channel() -> FakeTextChannel:
    return FakeTextChannel(FakeGuild(), "ticket-7-support-0001")


@pytest.mark.asyncio
async def test_transcript_lists_messages_oldest_first(channel: FakeTextChannel) -> None:
    alice = FakeUser(7, "alice")
    mod = FakeUser(8, "mod")
    channel.add_message(alice, "first")
    channel.add_message(mod, "second", embeds=2)
    channel.add_message(alice, "third", attachments=1)

    transcript = await TranscriptService(TicketsConfig()).render(channel, mod)

    text = transcript.text
    assert transcript.message_count == 3
    assert text.index("first") < text.index("second") < text.index("third")
    assert "[2024-01-01 12:00:00] alice (7):" in text
    assert "[EMBED: 2 embed(s)]" in text
    assert "[FILES: 1 file(s)]" in text
    assert "  - file0.png (https://cdn.example/file0.png)" in text
    assert "Requested by: mod (8)" in text
    assert text.rstrip().endswith("End of transcript - 3 messages")
    assert transcript.html is None


@pytest.mark.asyncio
async def test_transcript_keeps_most_recent_window(channel: FakeTextChannel) -> None:
    author = FakeUser(7, "alice")
    for index in range(5):
        channel.add_message(author, f"message-{index}")

    transcript = await TranscriptService(TicketsConfig(transcript_message_limit=2)).render(channel, author)

    assert transcript.message_count == 2
    assert "message-2" not in transcript.text
    assert transcript.text.index("message-3") < transcript.text.index("message-4")


@pytest.mark.asyncio
async def test_empty_channel_still_renders_header(channel: FakeTextChannel) -> None:
    transcript = await TranscriptService(TicketsConfig()).render(channel, FakeUser(1, "mod"))

    assert transcript.message_count == 0
    assert "TICKET TRANSCRIPT - ticket-7-support-0001" in transcript.text
    assert transcript.filename == "transcript-ticket-7-support-0001.txt"
    assert transcript.as_file().filename == transcript.filename


@pytest.mark.asyncio
async def test_html_output_escapes_content(channel: FakeTextChannel) -> None:
    author = FakeUser(7, "alice")
    channel.add_message(author, "<script>alert(1)</script>")

    transcript = await TranscriptService(TicketsConfig(html_transcripts=True)).render(channel, author)

    assert transcript.html is not None
    assert "&lt;script&gt;" in transcript.html
    html_file = transcript.as_html_file()
    assert html_file is not None
    assert html_file.filename == "transcript-ticket-7-support-0001.html"


@pytest.mark.asyncio
async def test_system_messages_are_left_out(channel: FakeTextChannel) -> None:
    bot_user = FakeUser(1, "ticket-bot")
    author = FakeUser(7, "alice")
    channel.add_message(bot_user, "Welcome")
    channel.add_message(bot_user, "", system=True)
    channel.add_message(author, "hello")

    transcript = await TranscriptService(TicketsConfig()).render(channel, author)

    assert transcript.message_count == 2
    assert transcript.text.count("ticket-bot (1):") == 1
    assert "End of transcript - 2 messages" in transcript.text
