from __future__ import annotations

import re

TICKET_PREFIX = "ticket-"
MAX_CHANNEL_NAME = 100

_WHITESPACE = re.compile(r"\s+")
_CLAIM_SUFFIX_INVALID = re.compile(r"[^a-z0-9_]+")


def slugify_category(name: str) -> str:
    """Category ids are the lowercased display name with whitespace runs turned into hyphens."""
    return _WHITESPACE.sub("-", name.strip().lower())


def ticket_channel_name(user_id: int, category_id: str, ticket_id: str) -> str:
    return f"{TICKET_PREFIX}{user_id}-{category_id}-{ticket_id}"[:MAX_CHANNEL_NAME]


def claim_suffix(username: str) -> str:
    # Must stay a single hyphen-free segment so unclaiming can strip it again.
    cleaned = _CLAIM_SUFFIX_INVALID.sub("", username.lower())
    return cleaned[:32] or "staff"


def claimed_channel_name(current: str, username: str) -> str:
    suffix = claim_suffix(username)
    base = current[: MAX_CHANNEL_NAME - len(suffix) - 1]
    return f"{base}-{suffix}"


def current_claim_suffix(current: str) -> str:
    """Suffix a claim appended to ``current``, as stripped again by ``unclaimed_channel_name``."""
    _, sep, suffix = current.rpartition("-")
    return suffix if sep else claim_suffix("")


def unclaimed_channel_name(current: str) -> str:
    head, sep, _ = current.rpartition("-")
    return head if sep else current


def renamed_channel_name(new_name: str) -> str:
    fragment = _WHITESPACE.sub("-", new_name.strip().lower())
    return f"{TICKET_PREFIX}{fragment}"[:MAX_CHANNEL_NAME] if fragment else ""
