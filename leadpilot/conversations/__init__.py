from .store import ConversationStore, title_from_text

__all__ = ["ConversationStore", "title_from_text"]
