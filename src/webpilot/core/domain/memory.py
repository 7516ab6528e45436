"""
Conversation Memory

Ordered message log forming the navigator's LLM context window. Messages are
plain role/content records tagged with a kind so the log can be edited
in place: plans are inserted at caller-chosen positions, the transient
browser-state message is replaced each turn, and old turns are trimmed while
the system prompt and the original task survive.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import structlog


class MessageKind(str, Enum):
    SYSTEM = "system"
    TASK = "task"
    STATE = "state"
    PLAN = "plan"
    STEP = "step"
    MODEL_OUTPUT = "model_output"


_ROLES = {
    MessageKind.SYSTEM: "system",
    MessageKind.TASK: "user",
    MessageKind.STATE: "user",
    MessageKind.PLAN: "assistant",
    MessageKind.STEP: "user",
    MessageKind.MODEL_OUTPUT: "assistant",
}


@dataclass(frozen=True)
class ManagedMessage:
    kind: MessageKind
    content: str

    @property
    def role(self) -> str:
        return _ROLES[self.kind]

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": self.content}


class ConversationMemory:
    """
    Mutable LLM context for one session.

    Args:
        max_messages: Upper bound on stored messages; exceeding it drops the
            oldest trimmable messages (everything except the system prompt
            and task messages)
    """

    def __init__(self, max_messages: int = 60):
        self.max_messages = max_messages
        self._messages: list[ManagedMessage] = []
        self.logger = structlog.get_logger().bind(component="conversation_memory")

    def init_task_messages(self, system_message: str, task: str) -> None:
        """Reset memory to the system prompt followed by the task."""
        self._messages = [
            ManagedMessage(MessageKind.SYSTEM, system_message),
            ManagedMessage(MessageKind.TASK, self._wrap_task(task)),
        ]

    def add_new_task(self, task: str) -> None:
        """Append a follow-up instruction without resetting history."""
        content = (
            "Now, here is a new task for you. Build on the results of the "
            "previous tasks where useful.\n" + self._wrap_task(task)
        )
        self._append(ManagedMessage(MessageKind.TASK, content))

    def add_plan(self, plan_json: str, position: int | None = None) -> None:
        """
        Insert a plan message.

        Args:
            plan_json: Serialized planner output
            position: Index to insert at; None or out-of-range appends
        """
        message = ManagedMessage(MessageKind.PLAN, f"<plan>\n{plan_json}\n</plan>")
        if position is None or position >= len(self._messages):
            self._append(message)
        else:
            self._messages.insert(max(position, 0), message)
            self._trim()

    def add_state_message(self, content: str) -> None:
        self._append(ManagedMessage(MessageKind.STATE, content))

    def add_step_directive(self, step: str) -> None:
        self._append(ManagedMessage(MessageKind.STEP, f"Current step: {step}"))

    def remove_last_state_message(self) -> bool:
        """Drop the most recent browser-state message, if any."""
        return self._remove_last(MessageKind.STATE)

    def remove_last_step_directive(self) -> bool:
        return self._remove_last(MessageKind.STEP)

    def _remove_last(self, kind: MessageKind) -> bool:
        for index in range(len(self._messages) - 1, -1, -1):
            if self._messages[index].kind is kind:
                del self._messages[index]
                return True
        return False

    def add_model_output(self, content: str) -> None:
        self._append(ManagedMessage(MessageKind.MODEL_OUTPUT, content))

    def length(self) -> int:
        return len(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def get_messages(self) -> tuple[ManagedMessage, ...]:
        """Read-only snapshot of the message log."""
        return tuple(self._messages)

    def to_llm_messages(self) -> list[dict[str, Any]]:
        return [message.to_dict() for message in self._messages]

    def _append(self, message: ManagedMessage) -> None:
        self._messages.append(message)
        self._trim()

    def _trim(self) -> None:
        overflow = len(self._messages) - self.max_messages
        if overflow <= 0:
            return

        kept: list[ManagedMessage] = []
        dropped = 0
        for message in self._messages:
            if (
                dropped < overflow
                and message.kind not in (MessageKind.SYSTEM, MessageKind.TASK)
            ):
                dropped += 1
                continue
            kept.append(message)
        self._messages = kept
        if dropped:
            self.logger.debug("memory_trimmed", dropped=dropped, remaining=len(kept))

    @staticmethod
    def _wrap_task(task: str) -> str:
        return f"<user_request>\n{task}\n</user_request>"
