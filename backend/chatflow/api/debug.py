# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Debug API routes.

Compare the executor registry with persisted workflow state and trigger
explicit recovery.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query

from chatflow.core.dependencies import get_executor, get_state_store
from chatflow.core.logging import get_api_logger

router = APIRouter(prefix="/api/debug", tags=["debug"])
logger = get_api_logger()


@router.get("/workflows")
async def debug_workflows(
    executor=Depends(get_executor),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    registrations = executor.list_registrations()
    persisted = await state_store.get_active_workflows()
    drift = await state_store.detect_drift(executor)

    return {
        "success": True,
        "executor": {
            "count": len(registrations),
            "workflowIds": [r.workflow_id for r in registrations],
        },
        "persisted": {
            "count": len(persisted),
            "workflowIds": [r["workflowId"] for r in persisted],
        },
        "stats": await state_store.get_workflow_stats(),
        "drift": drift.to_dict(),
        "details": {
            "executorWorkflows": {r.workflow_id: r.summary() for r in registrations},
            "persistedWorkflows": [
                {
                    "workflowId": r["workflowId"],
                    "status": r.get("status"),
                    "activatedAt": r.get("activatedAt"),
                    "triggerUrls": r.get("triggerUrls", []),
                }
                for r in persisted
            ],
        },
    }


@router.get("/workflow/{workflow_id}")
async def debug_workflow(
    workflow_id: str,
    executor=Depends(get_executor),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    registration = executor.get_registration(workflow_id)
    record = await state_store.get_record(workflow_id)

    return {
        "success": True,
        "workflowId": workflow_id,
        "executor": {
            "exists": registration is not None,
            "isActive": registration.is_active if registration else False,
            "registeredAt": registration.registered_at if registration else None,
            "nodeCount": len(registration.workflow.nodes) if registration else 0,
            "edgeCount": len(registration.workflow.edges) if registration else 0,
        },
        "persisted": {
            "exists": record is not None,
            "status": record.get("status") if record else None,
            "activatedAt": record.get("activatedAt") if record else None,
            "triggerUrls": record.get("triggerUrls", []) if record else [],
        },
    }


@router.post("/workflow/{workflow_id}/test-activation")
async def test_activation(
    workflow_id: str,
    executor=Depends(get_executor),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    in_executor = executor.is_active(workflow_id)
    record = await state_store.get_record(workflow_id)
    persisted = record is not None and record.get("status") == "active"

    return {
        "success": True,
        "workflowId": workflow_id,
        "test": "activation-status-check",
        "before": {"executor": in_executor, "persisted": persisted},
        "message": (
            f"Workflow {workflow_id} - Executor: {'ACTIVE' if in_executor else 'NOT ACTIVE'}, "
            f"Persisted: {'FOUND' if persisted else 'NOT FOUND'}"
        ),
    }


@router.post("/workflows/restore")
async def restore_workflows(
    executor=Depends(get_executor),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    """Re-register every persisted active workflow"""
    outcome = await state_store.restore_active_workflows(executor)
    drift = await state_store.detect_drift(executor)
    logger.info(f"Restore requested: {len(outcome['restored'])} restored, {len(outcome['failed'])} failed")
    return {"success": True, **outcome, "drift": drift.to_dict()}


@router.post("/workflows/cleanup")
async def cleanup_failed(
    hours: int = Query(default=24, ge=0),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    """Drop persisted records that failed to restore more than `hours` ago"""
    removed = await state_store.cleanup_failed_workflows(hours)
    return {"success": True, "removed": removed, "stats": await state_store.get_workflow_stats()}


@router.post("/workflows/clear-all")
async def clear_all(
    executor=Depends(get_executor),
    state_store=Depends(get_state_store),
) -> Dict[str, Any]:
    executor_count = executor.clear()
    persisted_count = await state_store.clear()
    logger.warning(f"Cleared {executor_count} registrations and {persisted_count} persisted records")
    return {
        "success": True,
        "message": "All workflows cleared",
        "cleared": {"executor": executor_count, "persisted": persisted_count},
    }
