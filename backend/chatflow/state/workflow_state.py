# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow State

Persists which workflows were activated so an operator can inspect them and
explicitly re-register them after a restart. The executor registry is never
changed behind the operator's back: differences between the two are reported
as drift.

File format ({state_file}):
    {
      "wf_support": {
        "workflowId": "wf_support",
        "workflow": {...},
        "triggerUrls": [...],
        "activatedAt": "2025-01-01T00:00:00+00:00",
        "status": "active"
      }
    }
"""

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
from pydantic import BaseModel, Field

from chatflow.core.logging import get_service_logger, log_event
from chatflow.engine.exceptions import WorkflowEngineError
from chatflow.engine.models import WorkflowDefinition


logger = get_service_logger("workflow-state")

STATUS_ACTIVE = "active"
STATUS_FAILED = "failed"


class RegistryDrift(BaseModel):
    """Differences between the executor registry and persisted state"""
    executor_only: List[str] = Field(default_factory=list)
    persisted_only: List[str] = Field(default_factory=list)
    inactive_in_executor: List[str] = Field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.executor_only or self.persisted_only or self.inactive_in_executor)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "executorOnly": self.executor_only,
            "persistedOnly": self.persisted_only,
            "inactiveInExecutor": self.inactive_in_executor,
            "inSync": self.in_sync,
        }


class WorkflowStateStore:
    """JSON-file backed store of activation records"""

    def __init__(self, state_file: str):
        self.state_file = Path(state_file)
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def _read(self) -> Dict[str, Dict[str, Any]]:
        if not self.state_file.exists():
            return {}
        async with aiofiles.open(self.state_file, "r") as f:
            content = await f.read()
        if not content.strip():
            return {}
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Workflow state file {self.state_file} is corrupt: {e}")
            return {}

    async def _write(self, records: Dict[str, Dict[str, Any]]) -> None:
        tmp_file = self.state_file.with_suffix(".tmp")
        async with aiofiles.open(tmp_file, "w") as f:
            await f.write(json.dumps(records, indent=2))
        tmp_file.replace(self.state_file)

    async def store_active_workflow(
        self,
        workflow_id: str,
        workflow: Dict[str, Any],
        trigger_urls: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        record = {
            "workflowId": workflow_id,
            "workflow": workflow,
            "triggerUrls": list(trigger_urls or []),
            "activatedAt": datetime.now(timezone.utc).isoformat(),
            "status": STATUS_ACTIVE,
        }
        async with self._lock:
            records = await self._read()
            records[workflow_id] = record
            await self._write(records)
        log_event(logger, "workflow_state_stored", workflow_id=workflow_id)
        return record

    async def remove_active_workflow(self, workflow_id: str) -> bool:
        async with self._lock:
            records = await self._read()
            if records.pop(workflow_id, None) is None:
                return False
            await self._write(records)
        log_event(logger, "workflow_state_removed", workflow_id=workflow_id)
        return True

    async def get_active_workflows(self) -> List[Dict[str, Any]]:
        async with self._lock:
            records = await self._read()
        return [r for r in records.values() if r.get("status") == STATUS_ACTIVE]

    async def get_record(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            records = await self._read()
        return records.get(workflow_id)

    async def update_workflow_status(self, workflow_id: str, status: str) -> bool:
        async with self._lock:
            records = await self._read()
            if workflow_id not in records:
                return False
            records[workflow_id]["status"] = status
            await self._write(records)
        log_event(logger, "workflow_state_status", workflow_id=workflow_id, status=status)
        return True

    async def get_workflow_stats(self) -> Dict[str, int]:
        async with self._lock:
            records = await self._read()
        stats: Dict[str, int] = {}
        for record in records.values():
            status = record.get("status", STATUS_ACTIVE)
            stats[status] = stats.get(status, 0) + 1
        return stats

    async def cleanup_failed_workflows(self, max_age_hours: int = 24) -> int:
        """Drop failed records activated more than `max_age_hours` ago"""
        cutoff = datetime.now(timezone.utc) - timedelta(hours=max_age_hours)
        async with self._lock:
            records = await self._read()
            stale = [
                workflow_id for workflow_id, record in records.items()
                if record.get("status") == STATUS_FAILED
                and datetime.fromisoformat(record["activatedAt"]) < cutoff
            ]
            for workflow_id in stale:
                del records[workflow_id]
            if stale:
                await self._write(records)
        if stale:
            logger.info(f"Cleaned up {len(stale)} failed workflows")
        return len(stale)

    async def clear(self) -> int:
        async with self._lock:
            records = await self._read()
            await self._write({})
        return len(records)

    async def restore_active_workflows(self, executor) -> Dict[str, Any]:
        """
        Re-register every persisted active workflow with `executor`.

        Records that no longer validate are marked failed and left in place.
        """
        restored: List[str] = []
        failed: Dict[str, str] = {}

        for record in await self.get_active_workflows():
            workflow_id = record["workflowId"]
            try:
                definition = WorkflowDefinition.model_validate(record["workflow"])
                executor.register_workflow(definition, trigger_urls=record.get("triggerUrls"))
                restored.append(workflow_id)
            except (WorkflowEngineError, ValueError) as e:
                logger.error(f"Failed to restore workflow {workflow_id}: {e}")
                failed[workflow_id] = str(e)
                await self.update_workflow_status(workflow_id, STATUS_FAILED)

        log_event(logger, "workflows_restored", restored=len(restored), failed=len(failed))
        return {"restored": restored, "failed": failed}

    async def detect_drift(self, executor) -> RegistryDrift:
        persisted = {r["workflowId"] for r in await self.get_active_workflows()}
        registrations = {r.workflow_id: r for r in executor.list_registrations()}
        active_ids = {wid for wid, r in registrations.items() if r.is_active}

        return RegistryDrift(
            executor_only=sorted(active_ids - persisted),
            persisted_only=sorted(persisted - set(registrations)),
            inactive_in_executor=sorted(
                wid for wid, r in registrations.items() if not r.is_active and wid in persisted
            ),
        )
