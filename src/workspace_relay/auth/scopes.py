"""
Google OAuth Scopes for Workspace Relay.

This module defines the read-only scopes requested for every Workspace API
the local agent's tools talk to.
"""

from typing import List

# Base scopes required for user identification (the id_token carries "hd")
OPENID_SCOPE = "openid"
EMAIL_SCOPE = "email"

BASE_SCOPES = [OPENID_SCOPE, EMAIL_SCOPE]

GMAIL_READONLY_SCOPE = "https://www.googleapis.com/auth/gmail.readonly"
DRIVE_READONLY_SCOPE = "https://www.googleapis.com/auth/drive.readonly"
DOCS_READONLY_SCOPE = "https://www.googleapis.com/auth/documents.readonly"
SHEETS_READONLY_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
SLIDES_READONLY_SCOPE = "https://www.googleapis.com/auth/presentations.readonly"
CALENDAR_READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"
CONTACTS_READONLY_SCOPE = "https://www.googleapis.com/auth/contacts.readonly"
TASKS_READONLY_SCOPE = "https://www.googleapis.com/auth/tasks.readonly"
FORMS_BODY_READONLY_SCOPE = "https://www.googleapis.com/auth/forms.body.readonly"
FORMS_RESPONSES_READONLY_SCOPE = (
    "https://www.googleapis.com/auth/forms.responses.readonly"
)
CHAT_SPACES_READONLY_SCOPE = "https://www.googleapis.com/auth/chat.spaces.readonly"
CHAT_MESSAGES_READONLY_SCOPE = (
    "https://www.googleapis.com/auth/chat.messages.readonly"
)

WORKSPACE_SCOPES = [
    GMAIL_READONLY_SCOPE,
    DRIVE_READONLY_SCOPE,
    DOCS_READONLY_SCOPE,
    SHEETS_READONLY_SCOPE,
    SLIDES_READONLY_SCOPE,
    CALENDAR_READONLY_SCOPE,
    CONTACTS_READONLY_SCOPE,
    TASKS_READONLY_SCOPE,
    FORMS_BODY_READONLY_SCOPE,
    FORMS_RESPONSES_READONLY_SCOPE,
    CHAT_SPACES_READONLY_SCOPE,
    CHAT_MESSAGES_READONLY_SCOPE,
]

SCOPES = BASE_SCOPES + WORKSPACE_SCOPES


def get_scopes() -> List[str]:
    """
    Get the ordered list of OAuth scopes requested at sign-in.

    Returns:
        List of unique OAuth scopes, base scopes first.
    """
    return list(dict.fromkeys(SCOPES))


def get_scope_string() -> str:
    """Get the scopes as the space-separated string the provider expects."""
    return " ".join(get_scopes())
