"""
Conversation Timeline - Ordered messages shown on a surface

Step messages carry the session id and step number they belong to; only
those can receive feedback, and only once.
"""

import itertools
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, List, Optional

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class Sender(Enum):
    USER = "user"
    BOT = "bot"


class FeedbackPolarity(Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass
class Message:
    """One entry of the conversation timeline"""

    text: str
    sender: Sender
    is_voice: bool = False
    session_id: Optional[str] = None
    step_number: Optional[int] = None
    feedback: Optional[FeedbackPolarity] = None
    pending_feedback: Optional[FeedbackPolarity] = None
    is_processing: bool = False
    id: int = field(default_factory=lambda: next(_ids))

    @property
    def is_trackable(self) -> bool:
        return self.session_id is not None and self.step_number is not None

    @property
    def can_receive_feedback(self) -> bool:
        return (self.sender is Sender.BOT and self.is_trackable
                and self.feedback is None and self.pending_feedback is None)


class Timeline:
    """Append-only list of messages with in-place replacement of placeholders"""

    def __init__(self):
        self._messages: List[Message] = []

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def add_user(self, text: str, is_voice: bool = False) -> Message:
        return self.append(Message(text=text, sender=Sender.USER, is_voice=is_voice))

    def add_bot(self, text: str, session_id: Optional[str] = None,
                step_number: Optional[int] = None) -> Message:
        return self.append(Message(text=text, sender=Sender.BOT,
                                   session_id=session_id, step_number=step_number))

    def add_placeholder(self, text: str = "🤔 Thinking...") -> Message:
        return self.append(Message(text=text, sender=Sender.BOT, is_processing=True))

    def replace(self, message_id: int, text: str, session_id: Optional[str] = None,
                step_number: Optional[int] = None) -> Message:
        """Swap a placeholder for its final content, keeping its position"""
        for index, existing in enumerate(self._messages):
            if existing.id == message_id:
                updated = replace(existing, text=text, is_processing=False,
                                  session_id=session_id, step_number=step_number)
                self._messages[index] = updated
                return updated
        logger.debug(f"Placeholder {message_id} no longer on the timeline, appending")
        return self.add_bot(text, session_id=session_id, step_number=step_number)

    def remove(self, message_id: int) -> bool:
        for index, existing in enumerate(self._messages):
            if existing.id == message_id:
                del self._messages[index]
                return True
        return False

    def get(self, message_id: int) -> Optional[Message]:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def clear(self) -> None:
        self._messages.clear()

    @property
    def last(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def trackable(self) -> List[Message]:
        return [m for m in self._messages if m.is_trackable]

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __len__(self) -> int:
        return len(self._messages)
