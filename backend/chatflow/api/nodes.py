# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node catalog API routes.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends

from chatflow.core.dependencies import get_registry
from chatflow.core.errors import NotFoundError

router = APIRouter(prefix="/api/nodes", tags=["nodes"])


def _node_class(registry, node_type: str):
    if not registry.has(node_type):
        raise NotFoundError("Node type", node_type)
    return registry.get(node_type)


@router.get("")
async def list_node_types(
    category: Optional[str] = None,
    registry=Depends(get_registry)
) -> Dict[str, Any]:
    """All node types with their parameter schemas"""
    nodes = registry.describe()
    if category:
        nodes = [n for n in nodes if n["category"] == category]
    return {"success": True, "count": len(nodes), "nodes": nodes}


@router.get("/{node_type}")
async def get_node_type(node_type: str, registry=Depends(get_registry)) -> Dict[str, Any]:
    return {"success": True, "node": _node_class(registry, node_type).describe()}


@router.post("/{node_type}/validate")
async def validate_node_config(
    node_type: str,
    config: Dict[str, Any] = Body(default_factory=dict),
    registry=Depends(get_registry)
) -> Dict[str, Any]:
    """Editor-time validation; template placeholders count as filled"""
    node = _node_class(registry, node_type)()
    result = node.validate_config(config, resolved=False)
    return {"success": True, "nodeType": node.type, **result.model_dump()}
