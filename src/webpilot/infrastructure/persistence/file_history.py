"""
File-based step-history store.

One JSON document per task id under `history_dir`:

    {"task_id": ..., "task": ..., "history": "<serialized AgentStepHistory>",
     "created_at": ...}

Writes are serialized per task id with an asyncio.Lock.
"""

import asyncio
import json
import re
from datetime import datetime
from pathlib import Path

import aiofiles
import structlog

from webpilot.core.interfaces.history import StoredHistory

_SAFE_ID = re.compile(r"[^A-Za-z0-9_.-]")


class FileHistoryStore:
    """HistoryStoreProtocol implementation backed by JSON files."""

    def __init__(self, history_dir: str | Path = ".webpilot/history"):
        self.history_dir = Path(history_dir)
        self.history_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        self.logger = structlog.get_logger().bind(component="file_history_store")

    def _get_lock(self, task_id: str) -> asyncio.Lock:
        if task_id not in self._locks:
            self._locks[task_id] = asyncio.Lock()
        return self._locks[task_id]

    def _path(self, task_id: str) -> Path:
        return self.history_dir / f"{_SAFE_ID.sub('_', task_id)}.json"

    async def store_agent_step_history(self, task_id: str, task: str, history: str) -> None:
        record = {
            "task_id": task_id,
            "task": task,
            "history": history,
            "created_at": datetime.now().isoformat(),
        }
        async with self._get_lock(task_id):
            async with aiofiles.open(self._path(task_id), "w", encoding="utf-8") as f:
                await f.write(json.dumps(record, indent=2))
        self.logger.info("history_saved", task_id=task_id, size=len(history))

    async def load_agent_step_history(self, task_id: str) -> StoredHistory | None:
        path = self._path(task_id)
        if not path.exists():
            return None

        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            record = json.loads(await f.read())
        self.logger.debug("history_loaded", task_id=task_id)
        return _to_stored(record)

    async def list_histories(self) -> list[StoredHistory]:
        histories = []
        for path in sorted(self.history_dir.glob("*.json")):
            try:
                async with aiofiles.open(path, "r", encoding="utf-8") as f:
                    histories.append(_to_stored(json.loads(await f.read())))
            except (OSError, ValueError, KeyError) as e:
                self.logger.warning("history_file_unreadable", file=path.name, error=str(e))
        return histories

    async def delete_agent_step_history(self, task_id: str) -> bool:
        path = self._path(task_id)
        async with self._get_lock(task_id):
            if not path.exists():
                return False
            path.unlink()
        self.logger.info("history_deleted", task_id=task_id)
        return True


def _to_stored(record: dict) -> StoredHistory:
    return StoredHistory(
        task_id=record["task_id"],
        task=record.get("task", ""),
        history=record["history"],
        created_at=record.get("created_at", ""),
    )
