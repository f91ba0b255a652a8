"""Board service client and card helpers.

Wraps the Trello REST API and provides the filtering and batch-update
logic shared by the card commands.
"""

from src.trello.api_logging import clear_logs, get_log_directory, is_api_logging_enabled
from src.trello.client import TrelloClient
from src.trello.models import Action, Attachment, Card, Checklist, Member, TrelloList

__all__ = [
    "Action",
    "Attachment",
    "Card",
    "Checklist",
    "Member",
    "TrelloClient",
    "TrelloList",
    "clear_logs",
    "get_log_directory",
    "is_api_logging_enabled",
]
