# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Platform webhook routes.

Telegram updates and generic webhook bodies arrive here unchanged and become
the trigger payload of the addressed trigger node.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends

from chatflow.core.dependencies import get_workflow_service
from chatflow.services.workflow_service import WorkflowService

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])


@router.post("/{workflow_id}/{node_id}")
async def receive_webhook(
    workflow_id: str,
    node_id: str,
    payload: Dict[str, Any] = {},
    service: WorkflowService = Depends(get_workflow_service)
) -> Dict[str, Any]:
    """Run an active workflow from `node_id` with the request body as trigger data"""
    result = await service.run(workflow_id, payload, node_id)
    return {
        "ok": True,
        "workflowId": workflow_id,
        "executionId": result.execution_id,
        "status": result.status.value,
    }
