# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine Models

Pydantic models for workflow definitions, cascading node input and
execution results.
"""

from enum import Enum
from typing import List, Dict, Any, Optional, Union, Literal, Annotated
from pydantic import BaseModel, Field, ConfigDict, AliasChoices, model_validator


class NodeCategory(str, Enum):
    TRIGGER = "trigger"
    ACTION = "action"
    LOGIC = "logic"


class RunStatus(str, Enum):
    """Lifecycle of one workflow run"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    PARTIAL = "partial"


class NodeStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


# =============================================================================
# WORKFLOW DEFINITION
# =============================================================================

class WorkflowNode(BaseModel):
    """
    Graph node.

    Accepts the editor shape `{id, data: {type, label, ...config}}` as well
    as the flat `{id, type, label, config}` shape.
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    type: str
    label: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize_editor_shape(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "data" not in values:
            return values
        data = dict(values.get("data") or {})
        normalized = {k: v for k, v in values.items() if k != "data"}
        normalized.setdefault("type", data.pop("type", None) or values.get("type"))
        normalized.setdefault("label", data.pop("label", None))
        nested_config = data.pop("config", None)
        config = dict(nested_config) if isinstance(nested_config, dict) else {}
        config.update(data)
        normalized.setdefault("config", config)
        return normalized

    @property
    def display_name(self) -> str:
        return self.label or self.type


class WorkflowEdge(BaseModel):
    """Directed edge. `source_handle` names the output port (e.g. 'true')."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Optional[str] = None
    source: str = Field(validation_alias=AliasChoices("source", "from"))
    target: str = Field(validation_alias=AliasChoices("target", "to"))
    source_handle: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("source_handle", "sourceHandle")
    )


class WorkflowDefinition(BaseModel):
    """Workflow graph as stored on disk and registered with the executor"""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "workflow_id", "workflowId"))
    name: str = "Untitled workflow"
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    edges: List[WorkflowEdge] = Field(default_factory=list)
    active: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None


# =============================================================================
# CASCADING INPUT
# =============================================================================

class NodeOutput(BaseModel):
    """One upstream node's output as seen by downstream nodes"""
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(alias="nodeId")
    node_label: Optional[str] = Field(default=None, alias="nodeLabel")
    node_type: str = Field(alias="nodeType")
    order: int
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def key(self) -> str:
        """Key used to address this output from templates, e.g. '1. AI Agent'"""
        return f"{self.order}. {self.node_label or self.node_type}"


class NodeOutputList(BaseModel):
    kind: Literal["cascading"] = "cascading"
    entries: List[NodeOutput] = Field(default_factory=list)


class FlatInput(BaseModel):
    kind: Literal["flat"] = "flat"
    data: Dict[str, Any] = Field(default_factory=dict)


CascadingInput = Annotated[Union[NodeOutputList, FlatInput], Field(discriminator="kind")]


def normalize_input(raw: Any) -> Union[NodeOutputList, FlatInput]:
    """
    Convert raw node input into a CascadingInput variant.

    Lists of `{nodeId, nodeType, order, data}` records become a
    NodeOutputList, dictionaries become FlatInput, None becomes an empty
    FlatInput.
    """
    if isinstance(raw, (NodeOutputList, FlatInput)):
        return raw
    if raw is None:
        return FlatInput()
    if isinstance(raw, list):
        entries = []
        for position, item in enumerate(raw, start=1):
            if isinstance(item, NodeOutput):
                entries.append(item)
            elif isinstance(item, dict) and ("nodeId" in item or "node_id" in item):
                item = dict(item)
                item.setdefault("order", position)
                entries.append(NodeOutput.model_validate(item))
            else:
                entries.append(NodeOutput(
                    node_id=f"item_{position}",
                    node_type="data",
                    order=position,
                    data=item if isinstance(item, dict) else {"value": item}
                ))
        return NodeOutputList(entries=entries)
    if isinstance(raw, dict):
        return FlatInput(data=raw)
    return FlatInput(data={"value": raw})


# =============================================================================
# EXECUTION RESULTS
# =============================================================================

class NodeExecutionResult(BaseModel):
    """
    Outcome of one node invocation.

    routes: None fires every outgoing edge. A list fires only edges whose
    source_handle is listed; edges without a handle fire unless the list is
    empty.
    """
    node_id: Optional[str] = None
    node_type: Optional[str] = None
    success: bool
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    message: Optional[str] = None
    routes: Optional[List[str]] = None
    status: NodeStatus = NodeStatus.COMPLETED
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None

    @classmethod
    def ok(cls, node_type: str, data: Dict[str, Any], message: str = None,
           routes: Optional[List[str]] = None) -> "NodeExecutionResult":
        return cls(node_type=node_type, success=True, data=data, message=message, routes=routes)

    @classmethod
    def fail(cls, node_type: str, error: str, data: Dict[str, Any] = None) -> "NodeExecutionResult":
        return cls(
            node_type=node_type,
            success=False,
            error=error,
            data=data or {},
            status=NodeStatus.FAILED,
        )

    @classmethod
    def skipped(cls, node_id: str, node_type: str, reason: str) -> "NodeExecutionResult":
        return cls(
            node_id=node_id,
            node_type=node_type,
            success=False,
            message=reason,
            status=NodeStatus.SKIPPED,
        )


class ExecutionResult(BaseModel):
    """Result of one workflow run"""
    execution_id: str
    workflow_id: str
    status: RunStatus = RunStatus.PENDING
    trigger_node_id: Optional[str] = None
    node_results: Dict[str, NodeExecutionResult] = Field(default_factory=dict)
    execution_order: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    duration_ms: Optional[float] = None
    message: Optional[str] = None


class ExecutionLogEntry(BaseModel):
    """Summary of a run kept in the bounded per-workflow log"""
    execution_id: str
    workflow_id: str
    status: RunStatus
    message: Optional[str] = None
    duration_ms: Optional[float] = None
    timestamp: str
    node_count: int = 0
    error_count: int = 0

    @classmethod
    def from_result(cls, result: ExecutionResult) -> "ExecutionLogEntry":
        return cls(
            execution_id=result.execution_id,
            workflow_id=result.workflow_id,
            status=result.status,
            message=result.message,
            duration_ms=result.duration_ms,
            timestamp=result.completed_at or result.started_at or "",
            node_count=len(result.execution_order),
            error_count=len(result.errors),
        )


class ActiveWorkflowRegistration(BaseModel):
    """Executor-side snapshot of an activated workflow"""
    workflow_id: str
    name: str
    is_active: bool = True
    registered_at: str
    deactivated_at: Optional[str] = None
    trigger_node_ids: List[str] = Field(default_factory=list)
    trigger_urls: List[str] = Field(default_factory=list)
    workflow: WorkflowDefinition

    def summary(self) -> Dict[str, Any]:
        return {
            "workflowId": self.workflow_id,
            "name": self.name,
            "isActive": self.is_active,
            "registeredAt": self.registered_at,
            "deactivatedAt": self.deactivated_at,
            "triggerNodeIds": self.trigger_node_ids,
            "triggerUrls": self.trigger_urls,
            "nodeCount": len(self.workflow.nodes),
            "edgeCount": len(self.workflow.edges),
        }


class WorkflowRunRequest(BaseModel):
    """Manual run payload"""
    trigger_data: Dict[str, Any] = Field(default_factory=dict)
    trigger_node_id: Optional[str] = None
