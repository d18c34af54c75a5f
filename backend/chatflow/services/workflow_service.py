# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Service

Manages workflow definitions and their activation.
"""

import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from chatflow.core.config import Config
from chatflow.core.errors import ConflictError, NotFoundError, ValidationError
from chatflow.core.logging import get_service_logger
from chatflow.engine.exceptions import WorkflowValidationError
from chatflow.engine.executor import WorkflowExecutor
from chatflow.engine.models import ExecutionResult, WorkflowDefinition
from chatflow.state.workflow_state import WorkflowStateStore

logger = get_service_logger("workflow")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkflowService:
    """
    Manages workflow definitions and activation.

    Responsibilities:
    - CRUD operations for workflow definitions (one JSON file per workflow)
    - Activation: executor registration plus persisted active flag
    - Manual runs and execution history
    """

    def __init__(
        self,
        workflows_dir: Path,
        executor: WorkflowExecutor,
        state_store: WorkflowStateStore,
        config: Config,
    ):
        self.workflows_dir = Path(workflows_dir)
        self.workflows_dir.mkdir(parents=True, exist_ok=True)
        self.executor = executor
        self.state_store = state_store
        self.config = config

    def _file_for(self, workflow_id: str) -> Path:
        if not workflow_id or "/" in workflow_id or "\\" in workflow_id or workflow_id.startswith("."):
            raise ValidationError(f"Invalid workflow id '{workflow_id}'", field="id")
        return self.workflows_dir / f"{workflow_id}.json"

    def _parse(self, workflow_data: Dict[str, Any]) -> WorkflowDefinition:
        try:
            return WorkflowDefinition.model_validate(workflow_data)
        except PydanticValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            raise ValidationError("Invalid workflow definition", details={"errors": errors})

    def _save(self, workflow: WorkflowDefinition) -> None:
        file_path = self._file_for(workflow.id)
        file_path.write_text(json.dumps(workflow.model_dump(mode="json"), indent=2))

    def trigger_urls(self, workflow: WorkflowDefinition) -> List[str]:
        """
        Public URLs that start `workflow`.

        Chat triggers share the widget webhook; every other trigger node gets
        its own raw-body route.
        """
        urls = []
        base = self.config.public_base_url.rstrip("/")
        for node in workflow.nodes:
            if not self.executor.registry.is_trigger(node.type):
                continue
            if self.executor.registry.get(node.type).type == "chatTrigger":
                url = self.config.chat_webhook_url_pattern.format(workflow_id=workflow.id)
            else:
                url = f"{base}/api/webhooks/{workflow.id}/{node.id}"
            if url not in urls:
                urls.append(url)
        return urls

    # =========================================================================
    # CRUD
    # =========================================================================

    async def list_workflows(self) -> List[Dict[str, Any]]:
        """List all workflow definitions"""
        workflows = []

        for file in sorted(self.workflows_dir.glob("*.json")):
            try:
                workflow = WorkflowDefinition.model_validate(json.loads(file.read_text()))
            except (ValueError, PydanticValidationError) as e:
                logger.warning(f"Skipping invalid workflow file {file.name}: {e}")
                continue
            workflows.append({
                "id": workflow.id,
                "name": workflow.name,
                "description": workflow.description,
                "nodeCount": len(workflow.nodes),
                "active": self.executor.is_active(workflow.id),
                "updatedAt": workflow.updated_at,
            })

        logger.info(f"Listed {len(workflows)} workflows")
        return workflows

    async def get_workflow(self, workflow_id: str) -> WorkflowDefinition:
        file_path = self._file_for(workflow_id)
        if not file_path.exists():
            raise NotFoundError("Workflow", workflow_id)
        return self._parse(json.loads(file_path.read_text()))

    async def create_workflow(self, workflow_data: Dict[str, Any]) -> WorkflowDefinition:
        workflow_data = dict(workflow_data)
        if not any(workflow_data.get(key) for key in ("id", "workflow_id", "workflowId")):
            workflow_data["id"] = f"wf_{uuid.uuid4().hex[:12]}"

        workflow = self._parse(workflow_data)
        if self._file_for(workflow.id).exists():
            raise ConflictError(f"Workflow '{workflow.id}' already exists")

        timestamp = _utcnow()
        workflow.created_at = workflow.created_at or timestamp
        workflow.updated_at = timestamp
        workflow.active = False
        self._save(workflow)

        logger.info(f"Created workflow: {workflow.id}")
        return workflow

    async def update_workflow(self, workflow_id: str, workflow_data: Dict[str, Any]) -> WorkflowDefinition:
        """Replace a definition. An active registration keeps its snapshot until re-activated."""
        existing = await self.get_workflow(workflow_id)

        workflow_data = {k: v for k, v in workflow_data.items() if k not in ("workflow_id", "workflowId")}
        workflow_data["id"] = workflow_id
        workflow = self._parse(workflow_data)
        workflow.created_at = existing.created_at
        workflow.updated_at = _utcnow()
        workflow.active = existing.active
        self._save(workflow)

        logger.info(f"Updated workflow: {workflow_id}")
        return workflow

    async def delete_workflow(self, workflow_id: str) -> Dict[str, str]:
        file_path = self._file_for(workflow_id)
        if not file_path.exists():
            raise NotFoundError("Workflow", workflow_id)

        self.executor.remove_workflow(workflow_id)
        await self.state_store.remove_active_workflow(workflow_id)
        file_path.unlink()

        logger.info(f"Deleted workflow: {workflow_id}")
        return {"message": f"Workflow '{workflow_id}' deleted"}

    # =========================================================================
    # ACTIVATION
    # =========================================================================

    async def activate(self, workflow_id: str) -> Dict[str, Any]:
        workflow = await self.get_workflow(workflow_id)
        trigger_urls = self.trigger_urls(workflow)

        try:
            registration = self.executor.register_workflow(workflow, trigger_urls=trigger_urls)
        except WorkflowValidationError as e:
            raise ValidationError(str(e), field=e.field)

        workflow.active = True
        workflow.updated_at = _utcnow()
        self._save(workflow)
        await self.state_store.store_active_workflow(
            workflow_id, workflow.model_dump(mode="json"), trigger_urls
        )

        logger.info(f"Activated workflow: {workflow_id}")
        return {
            "workflowId": workflow_id,
            "active": True,
            "triggerUrls": trigger_urls,
            "registeredAt": registration.registered_at,
        }

    async def deactivate(self, workflow_id: str) -> Dict[str, Any]:
        workflow = await self.get_workflow(workflow_id)

        was_active = self.executor.deactivate_workflow(workflow_id)
        await self.state_store.remove_active_workflow(workflow_id)
        if workflow.active:
            workflow.active = False
            workflow.updated_at = _utcnow()
            self._save(workflow)

        logger.info(f"Deactivated workflow: {workflow_id} (was active: {was_active})")
        return {"workflowId": workflow_id, "active": False, "wasActive": was_active}

    async def status(self, workflow_id: str) -> Dict[str, Any]:
        workflow = await self.get_workflow(workflow_id)
        registration = self.executor.get_registration(workflow_id)
        record = await self.state_store.get_record(workflow_id)
        latest = await self.executor.execution_log.latest(workflow_id)

        return {
            "workflowId": workflow_id,
            "name": workflow.name,
            "isActive": self.executor.is_active(workflow_id),
            "registration": registration.summary() if registration else None,
            "persisted": {
                "exists": record is not None,
                "status": record.get("status") if record else None,
                "activatedAt": record.get("activatedAt") if record else None,
            },
            "lastExecution": latest.model_dump(mode="json") if latest else None,
        }

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def run(
        self,
        workflow_id: str,
        trigger_data: Dict[str, Any],
        trigger_node_id: Optional[str] = None,
    ) -> ExecutionResult:
        logger.info(f"Executing workflow: {workflow_id}")
        result = await self.executor.execute_workflow(workflow_id, trigger_data, trigger_node_id)
        logger.info(f"Workflow execution {result.execution_id} finished: {result.status.value}")
        return result

    async def executions(self, workflow_id: str, limit: Optional[int] = None) -> Dict[str, Any]:
        entries = await self.executor.execution_log.history(workflow_id, limit=limit)
        return {
            "executions": [entry.model_dump(mode="json") for entry in entries],
            "stats": await self.executor.execution_log.stats(workflow_id),
        }
