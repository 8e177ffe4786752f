"""
Conversation log: the ordered, append-only context sent to the model.
"""

from __future__ import annotations
from typing import List, Dict, Iterator, Optional, Sequence

from .types import Message, Role, Step


class ConversationLog:
    """
    Role-tagged messages for one agent session.

    The first entry is always the system prompt. Entries are never removed
    or rewritten.

    Example:
        log = ConversationLog(SYSTEM_PROMPT)
        log.add_user("What is the weather of Patiala?")
        log.add_assistant('{"step": "THINK", "content": "..."}')
        llm.chat(log.to_list())
    """

    def __init__(self, system_prompt: str, messages: Optional[Sequence[Message]] = None):
        self._messages: List[Message] = [Message(Role.ASSISTANT, system_prompt)]
        for message in messages or []:
            self.append(message)

    @property
    def system_prompt(self) -> str:
        return self._messages[0].content

    @property
    def messages(self) -> List[Message]:
        """A copy of the entries."""
        return list(self._messages)

    def append(self, message: Message) -> None:
        self._messages.append(message)

    def add_user(self, content: str) -> None:
        self.append(Message(Role.USER, content))

    def add_assistant(self, content: str) -> None:
        self.append(Message(Role.ASSISTANT, content))

    def add_step(self, step: Step) -> None:
        """Append a step as an assistant-authored JSON message."""
        self.add_assistant(step.to_json())

    def to_list(self) -> List[Dict[str, str]]:
        """Messages in chat-completions shape."""
        return [m.to_dict() for m in self._messages]

    def fork(self) -> ConversationLog:
        """An independent copy, e.g. to replay a prefix in a fresh session."""
        return ConversationLog(self.system_prompt, self._messages[1:])

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    def __getitem__(self, index: int) -> Message:
        return self._messages[index]
