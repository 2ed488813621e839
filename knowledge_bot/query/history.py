"""Bounded per-conversation chat history."""

import threading
from collections import OrderedDict, deque

from knowledge_bot.llm.models import Message, Role


class ConversationHistory:
    """Recent question/answer turns keyed by reply target.

    Each conversation keeps its last ``max_messages`` messages. At most
    ``max_conversations`` conversations are kept; the least recently active
    one is dropped first. Nothing is persisted.
    """

    def __init__(self, max_messages: int = 20, max_conversations: int = 1000) -> None:
        if max_messages < 0:
            raise ValueError("max_messages must be >= 0")
        if max_conversations < 1:
            raise ValueError("max_conversations must be >= 1")
        self.max_messages = max_messages
        self.max_conversations = max_conversations
        self._conversations: OrderedDict[str, deque[Message]] = OrderedDict()
        self._lock = threading.Lock()

    def messages(self, target: str) -> list[Message]:
        """Messages of a conversation, oldest first."""
        with self._lock:
            conversation = self._conversations.get(target)
            if conversation is None:
                return []
            return [message.model_copy() for message in conversation]

    def record(self, target: str, question: str, answer: str) -> None:
        """Append a question and the reply that was sent for it."""
        if self.max_messages == 0:
            return
        with self._lock:
            conversation = self._conversations.get(target)
            if conversation is None:
                conversation = deque(maxlen=self.max_messages)
                self._conversations[target] = conversation
                if len(self._conversations) > self.max_conversations:
                    self._conversations.popitem(last=False)
            else:
                self._conversations.move_to_end(target)
            conversation.append(Message(role=Role.USER, content=question))
            conversation.append(Message(role=Role.ASSISTANT, content=answer))
