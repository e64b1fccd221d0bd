from __future__ import annotations

TICKET_STATUS_OPEN = "open"
TICKET_STATUS_CLOSED = "closed"

PRIORITY_LEVELS = ("low", "normal", "high", "critical")
DEFAULT_PRIORITY = "normal"

PRIORITY_DISPLAY = {
    "low": "🟢 Low",
    "normal": "🟡 Normal",
    "high": "🟠 High",
    "critical": "🔴 Critical",
}

PRIORITY_DESCRIPTIONS = {
    "low": "Not urgent",
    "normal": "Standard handling",
    "high": "Important",
    "critical": "Urgent, needs attention now",
}

STATUS_DISPLAY = {
    TICKET_STATUS_OPEN: "🟢 Open",
    TICKET_STATUS_CLOSED: "🔴 Closed",
}

MIN_TICKETS_PER_USER = 1
MAX_TICKETS_PER_USER = 5

# Discord caps select menus at 25 options.
MAX_PANEL_CATEGORIES = 25

DEFAULT_CATEGORIES = [
    {"id": "support", "name": "Technical Support", "emoji": "🛠️", "description": "Technical problems and bugs"},
    {"id": "question", "name": "General Question", "emoji": "❓", "description": "Any other question"},
    {"id": "report", "name": "Report", "emoji": "🚨", "description": "Report a problem or a member"},
    {"id": "suggestion", "name": "Suggestion", "emoji": "💡", "description": "Suggest an improvement"},
    {"id": "other", "name": "Other", "emoji": "📝", "description": "Anything else"},
]

CUSTOM_ID_CATEGORY_SELECT = "ticket:category_select"
CUSTOM_ID_CLOSE = "ticket:close"
CUSTOM_ID_CLAIM = "ticket:claim"
CUSTOM_ID_TRANSCRIPT = "ticket:transcript"
CUSTOM_ID_PRIORITY = "ticket:priority"
CUSTOM_ID_ADD_USER = "ticket:add_user"
CUSTOM_ID_INFO = "ticket:info"
