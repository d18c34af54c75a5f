# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Executor

Holds the registry of active workflows and runs them.

A run starts at a trigger node and walks the nodes reachable from it in
waves. A node becomes ready once every reachable parent is resolved; it runs
when at least one parent completed and routed to it, and is skipped
otherwise. Nodes of one wave run concurrently. Each node is isolated: an
exception, timeout or success=False result fails that node only.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from chatflow.core.errors import ValidationError, WorkflowNotActiveError, sanitize_error_for_user
from chatflow.core.logging import get_engine_logger, log_event
from .context import ExecutionContext, ExecutionServices
from .exceptions import NodeTimeoutException, WorkflowValidationError
from .execution_log import ExecutionLogStore
from .models import (
    ActiveWorkflowRegistration,
    ExecutionResult,
    NodeExecutionResult,
    NodeOutput,
    NodeOutputList,
    NodeStatus,
    RunStatus,
    WorkflowDefinition,
    WorkflowEdge,
    WorkflowNode,
)
from .templates import UnresolvedPolicy
from .validation import validate_workflow, reachable_from


logger = get_engine_logger("executor")


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_execution_id() -> str:
    return f"exec_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def edge_is_active(edge: WorkflowEdge, parent_result: Optional[NodeExecutionResult]) -> bool:
    """Whether `edge` carries control out of a resolved parent"""
    if parent_result is None or not parent_result.success or parent_result.status != NodeStatus.COMPLETED:
        return False
    routes = parent_result.routes
    if routes is None:
        return True
    if not routes:
        return False
    return edge.source_handle is None or edge.source_handle in routes


class _RunState:
    """Mutable bookkeeping for one run"""

    def __init__(self, workflow: WorkflowDefinition, trigger_id: str):
        self.workflow = workflow
        self.reachable: List[str] = reachable_from(workflow, trigger_id)
        reachable_set = set(self.reachable)

        self.incoming: Dict[str, List[WorkflowEdge]] = {node.id: [] for node in workflow.nodes}
        for edge in workflow.edges:
            self.incoming[edge.target].append(edge)
        self.reachable_incoming = {
            node_id: [e for e in edges if e.source in reachable_set]
            for node_id, edges in self.incoming.items()
        }

        self.resolved: Dict[str, NodeExecutionResult] = {}
        self.outputs: List[NodeOutput] = []

    def ancestors(self, node_id: str) -> Set[str]:
        seen: Set[str] = set()
        stack = [node_id]
        while stack:
            current = stack.pop()
            for edge in self.incoming.get(current, []):
                if edge.source not in seen:
                    seen.add(edge.source)
                    stack.append(edge.source)
        return seen

    def cascading_input(self, node_id: str) -> NodeOutputList:
        ancestors = self.ancestors(node_id)
        return NodeOutputList(entries=[o for o in self.outputs if o.node_id in ancestors])


class WorkflowExecutor:
    """
    Active-workflow registry plus the run state machine.

    PENDING -> RUNNING -> COMPLETED | FAILED | PARTIAL
    """

    def __init__(
        self,
        registry,
        services: Optional[ExecutionServices] = None,
        execution_log: Optional[ExecutionLogStore] = None,
        node_timeout: float = 60.0,
        policy: UnresolvedPolicy = UnresolvedPolicy.KEEP_LITERAL,
    ):
        self.registry = registry
        self.services = services or ExecutionServices()
        self.execution_log = execution_log or ExecutionLogStore()
        self.node_timeout = node_timeout
        self.policy = UnresolvedPolicy(policy)
        self._registrations: Dict[str, ActiveWorkflowRegistration] = {}

    # =========================================================================
    # REGISTRY
    # =========================================================================

    def validate(self, workflow_def: WorkflowDefinition) -> List[str]:
        return validate_workflow(
            workflow_def,
            is_trigger=self.registry.is_trigger,
            is_known_type=self.registry.has,
        )

    def register_workflow(
        self,
        workflow_def: WorkflowDefinition,
        trigger_urls: Optional[List[str]] = None,
    ) -> ActiveWorkflowRegistration:
        """Validate and activate. Re-registering replaces the previous snapshot."""
        self.validate(workflow_def)

        snapshot = workflow_def.model_copy(deep=True)
        snapshot.active = True
        registration = ActiveWorkflowRegistration(
            workflow_id=workflow_def.id,
            name=workflow_def.name,
            is_active=True,
            registered_at=_utcnow(),
            trigger_node_ids=[n.id for n in workflow_def.nodes if self.registry.is_trigger(n.type)],
            trigger_urls=list(trigger_urls or []),
            workflow=snapshot,
        )
        self._registrations[workflow_def.id] = registration

        log_event(logger, "workflow_registered", workflow_id=workflow_def.id,
                  trigger_nodes=registration.trigger_node_ids)
        return registration

    def deactivate_workflow(self, workflow_id: str) -> bool:
        registration = self._registrations.get(workflow_id)
        if registration is None or not registration.is_active:
            return False
        registration.is_active = False
        registration.deactivated_at = _utcnow()
        log_event(logger, "workflow_deactivated", workflow_id=workflow_id)
        return True

    def remove_workflow(self, workflow_id: str) -> bool:
        return self._registrations.pop(workflow_id, None) is not None

    def get_registration(self, workflow_id: str) -> Optional[ActiveWorkflowRegistration]:
        return self._registrations.get(workflow_id)

    def is_active(self, workflow_id: str) -> bool:
        registration = self._registrations.get(workflow_id)
        return registration is not None and registration.is_active

    def list_registrations(self) -> List[ActiveWorkflowRegistration]:
        return list(self._registrations.values())

    def clear(self) -> int:
        count = len(self._registrations)
        self._registrations.clear()
        log_event(logger, "registry_cleared", count=count)
        return count

    # =========================================================================
    # RUN
    # =========================================================================

    def _select_trigger(self, registration: ActiveWorkflowRegistration, trigger_node_id: Optional[str]) -> WorkflowNode:
        workflow = registration.workflow
        if trigger_node_id:
            node = workflow.get_node(trigger_node_id)
            if node is None or not self.registry.is_trigger(node.type):
                raise ValidationError(
                    f"Node '{trigger_node_id}' is not a trigger of workflow {workflow.id}",
                    field="trigger_node_id"
                )
            return node
        for node in workflow.nodes:
            if self.registry.is_trigger(node.type):
                return node
        raise WorkflowValidationError("Workflow must contain a trigger node", field="nodes")

    def find_trigger(self, workflow_id: str, node_type: str) -> Optional[WorkflowNode]:
        """First node of `node_type` in an active workflow"""
        registration = self._registrations.get(workflow_id)
        if registration is None or not registration.is_active:
            return None
        for node in registration.workflow.nodes:
            if self.registry.has(node.type) and self.registry.get(node.type).type == node_type:
                return node
        return None

    async def execute_workflow(
        self,
        workflow_id: str,
        trigger_data: Dict[str, Any],
        trigger_node_id: Optional[str] = None,
    ) -> ExecutionResult:
        """
        Run an active workflow from its trigger.

        Raises WorkflowNotActiveError for unknown or deactivated workflows.
        Node failures never raise; they are reported in the result.
        """
        registration = self._registrations.get(workflow_id)
        if registration is None or not registration.is_active:
            raise WorkflowNotActiveError(workflow_id)

        workflow = registration.workflow
        trigger = self._select_trigger(registration, trigger_node_id)

        result = ExecutionResult(
            execution_id=new_execution_id(),
            workflow_id=workflow_id,
            trigger_node_id=trigger.id,
        )
        result.status = RunStatus.RUNNING
        result.started_at = _utcnow()
        started = time.monotonic()
        log_event(logger, "run_started", workflow_id=workflow_id,
                  execution_id=result.execution_id, trigger_node=trigger.id)

        nodes_map: Dict[str, Dict[str, Any]] = {
            node.id: {
                "id": node.id,
                "type": node.type,
                "label": node.label,
                "config": node.config,
                "input_data": None,
                "output_data": None,
            }
            for node in workflow.nodes
        }
        workflow_data = {"id": workflow.id, "name": workflow.name, "active": registration.is_active}
        state = _RunState(workflow, trigger.id)

        trigger_result = await self._run_node(trigger, trigger_data or {}, [], result, nodes_map, workflow_data)
        self._complete(trigger, trigger_result, state, result, nodes_map)

        if not trigger_result.success:
            result.status = RunStatus.FAILED
            result.message = f"Trigger {trigger.id} failed: {trigger_result.error}"
        else:
            await self._walk(trigger.id, state, result, nodes_map, workflow_data)
            result.status = self._final_status(result)
            result.message = self._summary(result)

        result.completed_at = _utcnow()
        result.duration_ms = round((time.monotonic() - started) * 1000, 2)

        await self.execution_log.record(result)
        log_event(logger, "run_completed", workflow_id=workflow_id, execution_id=result.execution_id,
                  status=result.status.value, duration_ms=result.duration_ms, errors=len(result.errors))
        return result

    async def _walk(self, trigger_id: str, state: _RunState, result: ExecutionResult,
                    nodes_map: Dict[str, Dict[str, Any]], workflow_data: Dict[str, Any]) -> None:
        pending = [node_id for node_id in state.reachable if node_id != trigger_id]

        while pending:
            ready = [
                node_id for node_id in pending
                if all(edge.source in state.resolved for edge in state.reachable_incoming[node_id])
            ]
            if not ready:
                # Graph was validated as a DAG; guard against a corrupted snapshot
                for node_id in pending:
                    node = state.workflow.get_node(node_id)
                    result.node_results[node_id] = NodeExecutionResult.skipped(
                        node_id, node.type, "Unresolvable dependencies"
                    )
                break

            wave: List[WorkflowNode] = []
            for node_id in ready:
                node = state.workflow.get_node(node_id)
                edges = state.reachable_incoming[node_id]
                if any(edge_is_active(edge, state.resolved.get(edge.source)) for edge in edges):
                    wave.append(node)
                else:
                    skipped = NodeExecutionResult.skipped(node_id, node.type, "No active input")
                    state.resolved[node_id] = skipped
                    result.node_results[node_id] = skipped

            outcomes = await asyncio.gather(*[
                self._run_node(
                    node,
                    state.cascading_input(node.id),
                    self._connected_nodes(node.id, state, nodes_map),
                    result,
                    nodes_map,
                    workflow_data,
                )
                for node in wave
            ])
            for node, outcome in zip(wave, outcomes):
                self._complete(node, outcome, state, result, nodes_map)

            pending = [node_id for node_id in pending if node_id not in ready]

    def _connected_nodes(self, node_id: str, state: _RunState,
                         nodes_map: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        connected = []
        for edge in state.incoming.get(node_id, []):
            parent = nodes_map[edge.source]
            connected.append({
                "id": parent["id"],
                "type": parent["type"],
                "label": parent["label"],
                "config": parent["config"],
                "output": parent["output_data"],
                "sourceHandle": edge.source_handle,
            })
        return connected

    def _complete(self, node: WorkflowNode, outcome: NodeExecutionResult, state: _RunState,
                  result: ExecutionResult, nodes_map: Dict[str, Dict[str, Any]]) -> None:
        state.resolved[node.id] = outcome
        result.node_results[node.id] = outcome
        result.execution_order.append(node.id)

        if outcome.success:
            nodes_map[node.id]["output_data"] = outcome.data
            state.outputs.append(NodeOutput(
                node_id=node.id,
                node_label=node.label,
                node_type=node.type,
                order=len(state.outputs) + 1,
                data=outcome.data,
            ))
        else:
            result.errors.append(f"{node.id}: {outcome.error}")

    async def _run_node(
        self,
        node: WorkflowNode,
        input_data: Any,
        connected_nodes: List[Dict[str, Any]],
        result: ExecutionResult,
        nodes_map: Dict[str, Dict[str, Any]],
        workflow_data: Dict[str, Any],
    ) -> NodeExecutionResult:
        """Execute one node with timeout and failure isolation"""
        nodes_map[node.id]["input_data"] = input_data
        context = ExecutionContext(
            result.execution_id,
            workflow_data,
            node.id,
            nodes_map,
            services=self.services,
            policy=self.policy,
        )

        started_at = _utcnow()
        started = time.monotonic()
        log_event(logger, "node_started", execution_id=result.execution_id,
                  node_id=node.id, node_type=node.type)

        try:
            implementation = self.registry.create(node.type)
            outcome = await asyncio.wait_for(
                implementation.execute(node.config, input_data, connected_nodes, context),
                timeout=self.node_timeout,
            )
        except asyncio.TimeoutError:
            outcome = NodeExecutionResult.fail(
                node.type, str(NodeTimeoutException(node.id, self.node_timeout))
            )
        except Exception as e:
            logger.warning(f"Node {node.id} ({node.type}) raised: {e}", exc_info=True)
            outcome = NodeExecutionResult.fail(node.type, sanitize_error_for_user(e))

        if not outcome.success and outcome.status == NodeStatus.COMPLETED:
            outcome.status = NodeStatus.FAILED
        outcome.node_id = node.id
        outcome.node_type = outcome.node_type or node.type
        outcome.started_at = started_at
        outcome.completed_at = _utcnow()
        outcome.duration_ms = round((time.monotonic() - started) * 1000, 2)

        if outcome.success:
            log_event(logger, "node_completed", execution_id=result.execution_id,
                      node_id=node.id, node_type=node.type, duration_ms=outcome.duration_ms)
        else:
            log_event(logger, "node_failed", level="WARNING", execution_id=result.execution_id,
                      node_id=node.id, node_type=node.type, error=outcome.error)
        return outcome

    @staticmethod
    def _final_status(result: ExecutionResult) -> RunStatus:
        executed = [result.node_results[node_id] for node_id in result.execution_order]
        if any(not r.success for r in executed):
            return RunStatus.PARTIAL
        return RunStatus.COMPLETED

    @staticmethod
    def _summary(result: ExecutionResult) -> str:
        executed = len(result.execution_order)
        failed = sum(1 for node_id in result.execution_order if not result.node_results[node_id].success)
        skipped = sum(1 for r in result.node_results.values() if r.status == NodeStatus.SKIPPED)
        return f"Executed {executed} nodes, {failed} failed, {skipped} skipped"
