"""
Protocol definition for step-history persistence.

Histories are stored as serialized text keyed by task id, together with the
task that produced them.
"""

from dataclasses import dataclass
from typing import Protocol


@dataclass
class StoredHistory:
    task_id: str
    task: str
    history: str
    created_at: str = ""


class HistoryStoreProtocol(Protocol):
    async def store_agent_step_history(self, task_id: str, task: str, history: str) -> None:
        ...

    async def load_agent_step_history(self, task_id: str) -> StoredHistory | None:
        ...

    async def list_histories(self) -> list[StoredHistory]:
        ...

    async def delete_agent_step_history(self, task_id: str) -> bool:
        ...
