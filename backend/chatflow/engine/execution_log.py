# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Log - bounded per-workflow run history.

Newest first, capped at `limit` entries per workflow. When a storage
directory is configured each workflow's log is mirrored to
`{storage_dir}/{workflow_id}.json` so it is inspectable with `cat`/`jq`.

Async-locked per workflow to prevent interleaved writes.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles

from chatflow.core.logging import get_logger
from .models import ExecutionLogEntry, ExecutionResult, RunStatus


logger = get_logger("chatflow.engine.execution_log")

DEFAULT_LIMIT = 50


class ExecutionLogStore:
    """
    Store and query recent workflow runs.

    Storage structure (optional):
        {storage_dir}/
        ├── wf_support.json
        └── wf_orders.json
    """

    def __init__(self, limit: int = DEFAULT_LIMIT, storage_dir: Optional[str] = None):
        if limit < 1:
            raise ValueError("Execution log limit must be at least 1")
        self.limit = limit
        self.storage_dir = Path(storage_dir) if storage_dir else None
        if self.storage_dir:
            self.storage_dir.mkdir(parents=True, exist_ok=True)

        self._logs: Dict[str, List[ExecutionLogEntry]] = {}
        self._results: Dict[str, ExecutionResult] = {}
        self._loaded: set = set()
        self._locks: Dict[str, asyncio.Lock] = {}

    def _get_lock(self, workflow_id: str) -> asyncio.Lock:
        if workflow_id not in self._locks:
            self._locks[workflow_id] = asyncio.Lock()
        return self._locks[workflow_id]

    def _file_for(self, workflow_id: str) -> Path:
        return self.storage_dir / f"{workflow_id}.json"

    async def _ensure_loaded(self, workflow_id: str) -> None:
        if self.storage_dir is None or workflow_id in self._loaded:
            return
        self._loaded.add(workflow_id)

        log_file = self._file_for(workflow_id)
        if not log_file.exists():
            return
        async with aiofiles.open(log_file, "r") as f:
            content = await f.read()
        try:
            raw_entries = json.loads(content) if content.strip() else []
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable execution log {log_file.name}: {e}")
            return

        entries = [ExecutionLogEntry.model_validate(item) for item in raw_entries]
        # Entries recorded before the load stay in front
        existing = self._logs.get(workflow_id, [])
        known = {entry.execution_id for entry in existing}
        merged = existing + [entry for entry in entries if entry.execution_id not in known]
        self._logs[workflow_id] = merged[:self.limit]

    async def _persist(self, workflow_id: str) -> None:
        if self.storage_dir is None:
            return
        entries = [entry.model_dump(mode="json") for entry in self._logs.get(workflow_id, [])]
        log_file = self._file_for(workflow_id)
        tmp_file = log_file.with_suffix(".tmp")
        async with aiofiles.open(tmp_file, "w") as f:
            await f.write(json.dumps(entries, indent=2))
        tmp_file.replace(log_file)

    async def record(self, result: ExecutionResult) -> ExecutionLogEntry:
        """Prepend a run summary and drop everything past the cap"""
        entry = ExecutionLogEntry.from_result(result)
        workflow_id = result.workflow_id

        async with self._get_lock(workflow_id):
            await self._ensure_loaded(workflow_id)
            entries = self._logs.setdefault(workflow_id, [])
            entries.insert(0, entry)
            self._results[result.execution_id] = result

            for dropped in entries[self.limit:]:
                self._results.pop(dropped.execution_id, None)
            del entries[self.limit:]

            await self._persist(workflow_id)

        return entry

    async def history(self, workflow_id: str, limit: Optional[int] = None) -> List[ExecutionLogEntry]:
        async with self._get_lock(workflow_id):
            await self._ensure_loaded(workflow_id)
            entries = list(self._logs.get(workflow_id, []))
        return entries[:limit] if limit else entries

    async def latest(self, workflow_id: str) -> Optional[ExecutionLogEntry]:
        entries = await self.history(workflow_id, limit=1)
        return entries[0] if entries else None

    def get(self, execution_id: str) -> Optional[ExecutionResult]:
        """Full result of a run still inside the window (in-memory only)"""
        return self._results.get(execution_id)

    async def stats(self, workflow_id: str) -> Dict[str, Any]:
        entries = await self.history(workflow_id)
        counts = {status.value: 0 for status in RunStatus}
        durations = []
        for entry in entries:
            counts[entry.status.value] += 1
            if entry.duration_ms is not None:
                durations.append(entry.duration_ms)
        return {
            "workflowId": workflow_id,
            "total": len(entries),
            "byStatus": counts,
            "averageDurationMs": round(sum(durations) / len(durations), 2) if durations else None,
            "lastRunAt": entries[0].timestamp if entries else None,
        }

    async def clear(self, workflow_id: str) -> None:
        async with self._get_lock(workflow_id):
            for entry in self._logs.pop(workflow_id, []):
                self._results.pop(entry.execution_id, None)
            self._loaded.add(workflow_id)
            await self._persist(workflow_id)
