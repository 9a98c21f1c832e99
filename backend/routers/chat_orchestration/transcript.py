"""
Conversation Transcript - ordered message history for one orchestration run.

Append-only. Every tool message must answer a call id that an earlier
assistant message in the same transcript emitted, and each call id may be
answered once.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from errors import TranscriptError
from services.chat_provider import ToolInvocation

USER = "user"
ASSISTANT = "assistant"
TOOL = "tool"


@dataclass(frozen=True)
class Message:
    """One transcript entry.

    Attributes:
        role: user, assistant or tool
        content: Text body (may be empty)
        tool_invocations: Calls carried by an assistant message
        tool_call_id: Correlating id carried by a tool message
    """

    role: str
    content: str = ""
    tool_invocations: Tuple[ToolInvocation, ...] = ()
    tool_call_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_invocations:
            data["tool_calls"] = [
                {
                    "id": invocation.call_id,
                    "function": {"name": invocation.name, "arguments": invocation.flatten()},
                }
                for invocation in self.tool_invocations
            ]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data


@dataclass
class Transcript:
    """Messages in causal order, replayed in full to the chat endpoint."""

    _messages: List[Message] = field(default_factory=list)
    _issued: Set[str] = field(default_factory=set, repr=False)
    _answered: Set[str] = field(default_factory=set, repr=False)

    @classmethod
    def start(cls, prompt: str) -> "Transcript":
        transcript = cls()
        transcript.add_user(prompt)
        return transcript

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages)

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def add_user(self, content: str) -> Message:
        return self._append(Message(role=USER, content=content))

    def add_tool_request(self, invocation: ToolInvocation, content: str = "") -> Message:
        """Record an assistant turn carrying exactly one invocation."""
        if invocation.call_id in self._issued:
            raise TranscriptError(f"Duplicate tool call id: {invocation.call_id}")
        message = self._append(Message(role=ASSISTANT, content=content, tool_invocations=(invocation,)))
        self._issued.add(invocation.call_id)
        return message

    def add_tool_result(self, call_id: str, content: str) -> Message:
        """Record a tool response; call_id must answer an earlier, unanswered invocation."""
        if call_id not in self._issued:
            raise TranscriptError(f"Tool result for unknown call id: {call_id}")
        if call_id in self._answered:
            raise TranscriptError(f"Tool call already answered: {call_id}")
        message = self._append(Message(role=TOOL, content=content, tool_call_id=call_id))
        self._answered.add(call_id)
        return message

    def add_assistant(self, content: str) -> Message:
        return self._append(Message(role=ASSISTANT, content=content))

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def has_call(self, call_id: str) -> bool:
        return call_id in self._issued

    @property
    def pending_call_ids(self) -> List[str]:
        return sorted(self._issued - self._answered)

    def to_dicts(self) -> List[Dict[str, Any]]:
        """Wire form for ChatRequest.messages."""
        return [message.to_dict() for message in self._messages]
