# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node contract.

Every node type declares a parameter schema, validates a config without
side effects, and executes against cascading input and an ExecutionContext.
"""

import re
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field

from chatflow.core.errors import sanitize_error_for_user
from chatflow.core.logging import get_logger
from chatflow.engine.context import ExecutionContext
from chatflow.engine.exceptions import ExternalAPIError
from chatflow.engine.models import NodeCategory, NodeExecutionResult


logger = get_logger("chatflow.engine.nodes")

UNRESOLVED_TEMPLATE = re.compile(r"^\s*\{\{.*\}\}\s*$")


class NodeParameter(BaseModel):
    """One entry of a node's parameter schema"""
    type: str = "string"  # string | number | boolean | options | json | array
    label: Optional[str] = None
    default: Any = None
    required: bool = False
    description: str = ""
    options: Optional[List[str]] = None
    min: Optional[float] = None
    max: Optional[float] = None


class ValidationResult(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


def is_blank(value: Any) -> bool:
    """Empty, whitespace-only, or a template that never resolved"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip() or bool(UNRESOLVED_TEMPLATE.match(value))
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _is_template(value: Any) -> bool:
    return isinstance(value, str) and "{{" in value


class BaseNode:
    """Base class for trigger, action and logic nodes"""

    type: str = ""
    display_name: str = ""
    category: NodeCategory = NodeCategory.ACTION
    description: str = ""
    parameters: Dict[str, NodeParameter] = {}

    # -- Schema ---------------------------------------------------------------

    @classmethod
    def get_parameters(cls) -> Dict[str, Dict[str, Any]]:
        return {name: param.model_dump(exclude_none=True) for name, param in cls.parameters.items()}

    @classmethod
    def required_fields(cls) -> List[str]:
        return [name for name, param in cls.parameters.items() if param.required]

    @classmethod
    def describe(cls) -> Dict[str, Any]:
        return {
            "type": cls.type,
            "name": cls.display_name or cls.type,
            "category": cls.category.value,
            "description": cls.description,
            "parameters": cls.get_parameters(),
            "required": cls.required_fields(),
        }

    def apply_defaults(self, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        merged = {name: param.default for name, param in self.parameters.items() if param.default is not None}
        merged.update({k: v for k, v in (config or {}).items() if v is not None})
        return merged

    # -- Validation -----------------------------------------------------------

    def validate_config(self, config: Dict[str, Any], resolved: bool = False) -> ValidationResult:
        """
        Check a config against the schema. Pure.

        With resolved=False (editor save) template strings are accepted as
        placeholders. With resolved=True (execution) a template that is still
        literal counts as missing.
        """
        config = config or {}
        errors: List[str] = []

        for name, param in self.parameters.items():
            value = config.get(name)
            label = param.label or name

            if param.required:
                if resolved:
                    missing = is_blank(value)
                else:
                    missing = value is None or (isinstance(value, str) and not value.strip())
                if missing:
                    errors.append(f"{label} is required")
                    continue

            if value is None or _is_template(value):
                continue

            if param.options and param.type == "options" and value not in param.options:
                errors.append(f"{label} must be one of: {', '.join(param.options)}")

            if param.type == "number" and value != "":
                try:
                    number = float(value)
                except (TypeError, ValueError):
                    errors.append(f"{label} must be a number")
                    continue
                if param.min is not None and number < param.min:
                    errors.append(f"{label} must be at least {param.min:g}")
                if param.max is not None and number > param.max:
                    errors.append(f"{label} must be at most {param.max:g}")

        errors.extend(self.check_config(config, resolved))
        return ValidationResult(valid=not errors, errors=errors)

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        """Node-specific invariants. Override in subclasses."""
        return []

    # -- Execution ------------------------------------------------------------

    async def execute(
        self,
        config: Dict[str, Any],
        input_data: Any,
        connected_nodes: List[Dict[str, Any]],
        context: ExecutionContext,
    ) -> NodeExecutionResult:
        """
        Resolve templates, validate, then run the node's effect.

        Validation failures return success=False before any side effect.
        Platform errors are mapped to a failed result with a one-line message.
        """
        resolved_config = context.process_templates(self.apply_defaults(config), input_data=input_data)

        validation = self.validate_config(resolved_config, resolved=True)
        if not validation.valid:
            logger.info(
                f"Node {context.current_node_id} ({self.type}) rejected config: {validation.errors}"
            )
            return NodeExecutionResult.fail(self.type, validation.errors[0], data={"errors": validation.errors})

        try:
            return await self.run(resolved_config, input_data, connected_nodes, context)
        except ExternalAPIError as e:
            return NodeExecutionResult.fail(self.type, sanitize_error_for_user(e, include_type=False))
        except httpx.HTTPError as e:
            return NodeExecutionResult.fail(
                self.type,
                f"Request failed: {sanitize_error_for_user(e)}"
            )

    async def run(
        self,
        config: Dict[str, Any],
        input_data: Any,
        connected_nodes: List[Dict[str, Any]],
        context: ExecutionContext,
    ) -> NodeExecutionResult:
        raise NotImplementedError(f"Node type '{self.type}' does not implement run()")


def _platform_error_message(payload: Any, response: httpx.Response) -> str:
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
        for key in ("description", "message"):
            if payload.get(key):
                return str(payload[key])
    return response.text or f"HTTP {response.status_code}"


def ensure_ok_json(platform: str, response: httpx.Response) -> Dict[str, Any]:
    """Decode a platform response, raising ExternalAPIError on HTTP errors"""
    try:
        payload = response.json()
    except ValueError:
        payload = {}

    if response.status_code >= 400:
        raise ExternalAPIError(
            platform,
            _platform_error_message(payload, response),
            status_code=response.status_code
        )

    return payload if isinstance(payload, dict) else {"result": payload}
