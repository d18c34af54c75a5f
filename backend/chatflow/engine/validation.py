# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Validation

DAG validation using topological sort (Kahn's algorithm).
"""

from collections import deque
from typing import Callable, Dict, List, Optional

from .models import WorkflowDefinition
from .exceptions import WorkflowValidationError


def validate_workflow(
    workflow_def: WorkflowDefinition,
    is_trigger: Optional[Callable[[str], bool]] = None,
    is_known_type: Optional[Callable[[str], bool]] = None,
) -> List[str]:
    """
    Validate workflow structure.

    Returns topological order of nodes.

    Raises WorkflowValidationError if validation fails.
    """
    # 1. Empty workflow check
    if len(workflow_def.nodes) == 0:
        raise WorkflowValidationError("Workflow must have at least one node", field="nodes")

    # 2. Duplicate node IDs
    node_ids = [node.id for node in workflow_def.nodes]
    if len(node_ids) != len(set(node_ids)):
        duplicates = {nid for nid in node_ids if node_ids.count(nid) > 1}
        raise WorkflowValidationError(f"Duplicate node IDs found: {duplicates}", field="nodes")

    # 3. Unknown node types
    if is_known_type is not None:
        for node in workflow_def.nodes:
            if not is_known_type(node.type):
                raise WorkflowValidationError(
                    f"Unknown node type '{node.type}' on node {node.id}",
                    field=f"nodes[{node.id}].type"
                )

    # 4. Invalid edge references
    node_id_set = set(node_ids)
    for edge in workflow_def.edges:
        for endpoint in (edge.source, edge.target):
            if endpoint not in node_id_set:
                raise WorkflowValidationError(
                    f"Edge references non-existent node: {endpoint}",
                    field="edges"
                )

    # 5. At least one trigger
    if is_trigger is not None and not any(is_trigger(node.type) for node in workflow_def.nodes):
        raise WorkflowValidationError("Workflow must contain a trigger node", field="nodes")

    # 6. DAG validation (topological sort)
    return topological_sort(workflow_def)


def topological_sort(workflow_def: WorkflowDefinition) -> List[str]:
    """
    Perform topological sort using Kahn's algorithm.

    Detects self-loops and cycles. Disconnected nodes are allowed; they
    simply never run because they are unreachable from the trigger.

    Returns list of node IDs in topological order.
    """
    graph: Dict[str, List[str]] = {node.id: [] for node in workflow_def.nodes}
    in_degree: Dict[str, int] = {node.id: 0 for node in workflow_def.nodes}

    for edge in workflow_def.edges:
        if edge.source == edge.target:
            raise WorkflowValidationError(
                f"Self-loop not allowed: {edge.source} -> {edge.target}",
                field="edges"
            )
        graph[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque([node_id for node_id, degree in in_degree.items() if degree == 0])
    if not queue:
        raise WorkflowValidationError(
            "No start nodes found (all nodes have incoming edges - cycle detected)",
            field="edges"
        )

    topological_order = []
    while queue:
        node_id = queue.popleft()
        topological_order.append(node_id)
        for neighbor in graph[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(topological_order) != len(workflow_def.nodes):
        unprocessed = sorted(set(graph) - set(topological_order))
        raise WorkflowValidationError(
            f"Cycle detected in workflow graph involving nodes: {unprocessed}",
            field="edges"
        )

    return topological_order


def reachable_from(workflow_def: WorkflowDefinition, start_node_id: str) -> List[str]:
    """Node ids reachable from `start_node_id` (inclusive), BFS order"""
    children: Dict[str, List[str]] = {node.id: [] for node in workflow_def.nodes}
    for edge in workflow_def.edges:
        children[edge.source].append(edge.target)

    visited = []
    seen = set()
    queue = deque([start_node_id])
    while queue:
        node_id = queue.popleft()
        if node_id in seen:
            continue
        seen.add(node_id)
        visited.append(node_id)
        queue.extend(children.get(node_id, []))
    return visited
