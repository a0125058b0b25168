"""Direct messaging service."""

from autotrade.messages.service import ConversationSummary, MessageService

__all__ = ["ConversationSummary", "MessageService"]
