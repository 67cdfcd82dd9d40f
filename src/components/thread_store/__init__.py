"""In-memory conversation thread store."""

from src.components.thread_store.models import ConversationThread, ThreadMessage
from src.components.thread_store.store import ThreadStore

__all__ = [
    "ConversationThread",
    "ThreadMessage",
    "ThreadStore",
]
