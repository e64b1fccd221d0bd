from __future__ import annotations

from utils.naming import (
    claim_suffix,
    claimed_channel_name,
    current_claim_suffix,
    renamed_channel_name,
    slugify_category,
    ticket_channel_name,
    unclaimed_channel_name,
)


def test_ticket_channel_name() -> None:
    assert ticket_channel_name(42, "support", "0007") == "ticket-42-support-0007"


def test_category_slug_collapses_whitespace() -> None:
    assert slugify_category("  Billing   Issues ") == "billing-issues"


def test_claim_suffix_is_a_single_segment() -> None:
    assert claim_suffix("Mod-Bob.99") == "modbob99"
    assert claim_suffix("---") == "staff"


def test_claim_then_unclaim_restores_name() -> None:
    original = "ticket-42-support-0007"
    claimed = claimed_channel_name(original, "Jane Doe")
    assert claimed == "ticket-42-support-0007-janedoe"
    assert unclaimed_channel_name(claimed) == original


def test_claimed_name_fits_channel_limit() -> None:
    claimed = claimed_channel_name("ticket-" + "x" * 93, "moderator")
    assert len(claimed) == 100
    assert claimed.endswith("-moderator")


def test_renamed_channel_name() -> None:
    assert renamed_channel_name("Printer  Fire ") == "ticket-printer-fire"
    assert renamed_channel_name("   ") == ""


def test_current_claim_suffix_reads_last_segment() -> None:
    assert current_claim_suffix("ticket-billing-issue-janedoe") == "janedoe"
    assert current_claim_suffix("ticket") == "staff"
