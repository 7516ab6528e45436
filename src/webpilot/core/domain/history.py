"""
Agent step history.

Every navigator turn of a live run is recorded as a HistoryItem: the step
text, the model's reasoning state, and the executed action calls with their
results. The whole list serializes to JSON text (`{"history": [...]}`) so a
HistoryStore can persist it keyed by task id and a later session can replay
it without calling the LLM.
"""

import json
from dataclasses import dataclass, field
from typing import Any

from webpilot.core.domain.models import ActionResult


@dataclass
class ToolCallRecord:
    """
    One executed action.

    Attributes:
        name: Action name
        args: Validated arguments the action ran with
        result: Outcome of the action
        element_xpath: XPath of the element addressed by `args["index"]`,
            used to re-resolve the index when replaying on a changed page
    """

    name: str
    args: dict[str, Any] = field(default_factory=dict)
    result: ActionResult = field(default_factory=ActionResult)
    element_xpath: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "args": self.args,
            "result": self.result.to_dict(),
            "element_xpath": self.element_xpath,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCallRecord":
        return cls(
            name=data["name"],
            args=dict(data.get("args") or {}),
            result=ActionResult.from_dict(data.get("result") or {}),
            element_xpath=data.get("element_xpath"),
        )


@dataclass
class HistoryItem:
    step: str
    model_output: dict[str, Any] | None = None
    tool_calls: list[ToolCallRecord] = field(default_factory=list)
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "model_output": self.model_output,
            "tool_calls": [call.to_dict() for call in self.tool_calls],
            "url": self.url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryItem":
        return cls(
            step=data.get("step", ""),
            model_output=data.get("model_output"),
            tool_calls=[ToolCallRecord.from_dict(c) for c in data.get("tool_calls", [])],
            url=data.get("url"),
        )


@dataclass
class AgentStepHistory:
    history: list[HistoryItem] = field(default_factory=list)

    def append(self, item: HistoryItem) -> None:
        self.history.append(item)

    def __len__(self) -> int:
        return len(self.history)

    def to_json(self) -> str:
        return json.dumps({"history": [item.to_dict() for item in self.history]})

    @classmethod
    def from_json(cls, text: str) -> "AgentStepHistory":
        """
        Parse serialized history.

        Raises:
            ValueError: If text is not a JSON object with a `history` list
        """
        data = json.loads(text)
        if not isinstance(data, dict) or not isinstance(data.get("history"), list):
            raise ValueError("History must be an object with a 'history' list")
        return cls(history=[HistoryItem.from_dict(item) for item in data["history"]])
