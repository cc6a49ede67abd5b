import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)


def _role(item: Any):
    if isinstance(item, dict):
        return item.get("role")
    return getattr(item, "role", None)


class ChatMemory:
    """In-process conversation history, one message window per conversation id."""

    def __init__(self, max_messages: int = 20):
        if max_messages < 1:
            raise ValueError("max_messages must be positive")
        self.max_messages = max_messages
        self.conversations: Dict[str, List[Any]] = {}

    def add(self, conversation_id: str, items: List[Any]) -> None:
        """Append items to a conversation and trim it to the window."""
        history = self.conversations.setdefault(conversation_id, [])
        history.extend(items)
        self._trim(conversation_id, history)

    def get(self, conversation_id: str) -> List[Any]:
        """Return a copy of the conversation's items, oldest first."""
        return list(self.conversations.get(conversation_id, []))

    def clear(self, conversation_id: str) -> None:
        self.conversations.pop(conversation_id, None)

    def _trim(self, conversation_id: str, history: List[Any]) -> None:
        if len(history) <= self.max_messages:
            return

        start = len(history) - self.max_messages
        # Window must open on a user turn so tool calls keep their outputs
        while start < len(history) and _role(history[start]) != "user":
            start += 1

        if start == len(history):
            # Current turn alone overflows the window: keep it whole
            user_turns = [i for i, item in enumerate(history) if _role(item) == "user"]
            start = user_turns[-1] if user_turns else 0

        del history[:start]
        logger.debug(f"Trimmed {start} items from conversation {conversation_id}")
