# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow API Routes

CRUD operations, activation and execution for workflows.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from chatflow.core.dependencies import get_workflow_service
from chatflow.engine.models import ExecutionResult, WorkflowRunRequest
from chatflow.services.workflow_service import WorkflowService

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


@router.get("")
async def list_workflows(
    service: WorkflowService = Depends(get_workflow_service)
) -> List[Dict[str, Any]]:
    """List all workflows"""
    return await service.list_workflows()


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Get a specific workflow definition"""
    workflow = await service.get_workflow(workflow_id)
    return workflow.model_dump(mode="json")


@router.post("", status_code=201)
async def create_workflow(
    workflow_data: Dict[str, Any],
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Create a new workflow definition"""
    workflow = await service.create_workflow(workflow_data)
    return workflow.model_dump(mode="json")


@router.put("/{workflow_id}")
async def update_workflow(
    workflow_id: str,
    workflow_data: Dict[str, Any],
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Update an existing workflow definition"""
    workflow = await service.update_workflow(workflow_id, workflow_data)
    return workflow.model_dump(mode="json")


@router.delete("/{workflow_id}")
async def delete_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, str]:
    """Delete a workflow definition"""
    return await service.delete_workflow(workflow_id)


@router.post("/{workflow_id}/activate")
async def activate_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Validate and register a workflow so its triggers start runs"""
    return {"success": True, **await service.activate(workflow_id)}


@router.post("/{workflow_id}/deactivate")
async def deactivate_workflow(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    return {"success": True, **await service.deactivate(workflow_id)}


@router.get("/{workflow_id}/status")
async def workflow_status(
    workflow_id: str,
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    return {"success": True, **await service.status(workflow_id)}


@router.get("/{workflow_id}/executions")
async def list_executions(
    workflow_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Recent runs, newest first"""
    return {"success": True, "workflowId": workflow_id, **await service.executions(workflow_id, limit)}


@router.post("/{workflow_id}/run", response_model=ExecutionResult)
async def run_workflow(
    workflow_id: str,
    request: WorkflowRunRequest,
    service: WorkflowService = Depends(get_workflow_service)
) -> ExecutionResult:
    """Execute an active workflow with a manual trigger payload"""
    return await service.run(workflow_id, request.trigger_data, request.trigger_node_id)
