# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Logic nodes: IF, Switch, Filter, Merge.

No external I/O. Branching is expressed through `routes`, matched against
the `source_handle` of outgoing edges.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeCategory, NodeExecutionResult
from chatflow.engine.templates import build_search_map, format_value
from .base import BaseNode, NodeParameter


OPERATORS = [
    "is_equal_to",
    "is_not_equal_to",
    "contains",
    "not_contains",
    "starts_with",
    "ends_with",
    "greater_than",
    "less_than",
    "greater_than_or_equal",
    "less_than_or_equal",
    "regex_match",
    "is_empty",
    "is_not_empty",
]


def _to_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_text(value: Any, ignore_case: bool) -> str:
    text = format_value(value)
    return text.lower() if ignore_case else text


def compare(value1: Any, operator: str, value2: Any = None, ignore_case: bool = False) -> bool:
    """
    Evaluate one condition.

    Equality is numeric when both sides parse as numbers, textual otherwise.
    Ordering operators are numeric only and false when either side is not a
    number. An invalid regex never matches.
    """
    if operator in ("is_empty", "is_not_empty"):
        empty = value1 is None or (isinstance(value1, (str, list, dict)) and len(value1) == 0)
        if isinstance(value1, str):
            empty = not value1.strip()
        return empty if operator == "is_empty" else not empty

    if operator in ("is_equal_to", "is_not_equal_to"):
        n1, n2 = _to_float(value1), _to_float(value2)
        if n1 is not None and n2 is not None:
            equal = n1 == n2
        else:
            equal = _as_text(value1, ignore_case) == _as_text(value2, ignore_case)
        return equal if operator == "is_equal_to" else not equal

    if operator in ("greater_than", "less_than", "greater_than_or_equal", "less_than_or_equal"):
        n1, n2 = _to_float(value1), _to_float(value2)
        if n1 is None or n2 is None:
            return False
        return {
            "greater_than": n1 > n2,
            "less_than": n1 < n2,
            "greater_than_or_equal": n1 >= n2,
            "less_than_or_equal": n1 <= n2,
        }[operator]

    text1 = _as_text(value1, ignore_case)
    text2 = _as_text(value2, ignore_case)

    if operator == "contains":
        return text2 in text1
    if operator == "not_contains":
        return text2 not in text1
    if operator == "starts_with":
        return text1.startswith(text2)
    if operator == "ends_with":
        return text1.endswith(text2)
    if operator == "regex_match":
        try:
            return re.search(format_value(value2), format_value(value1),
                             re.IGNORECASE if ignore_case else 0) is not None
        except re.error:
            return False

    raise ValueError(f"Unsupported operator: {operator}")


def parse_conditions(value: Any) -> List[Dict[str, Any]]:
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else []
        except ValueError:
            return []
    if isinstance(value, dict):
        value = [value]
    return [c for c in (value or []) if isinstance(c, dict)]


def _check_conditions(conditions: List[Dict[str, Any]], field_label: str = "condition") -> List[str]:
    errors = []
    if not conditions:
        errors.append(f"At least one {field_label} is required")
    for index, condition in enumerate(conditions, start=1):
        operator = condition.get("operator", "is_equal_to")
        if operator not in OPERATORS:
            errors.append(f"{field_label.capitalize()} {index}: unsupported operator '{operator}'")
    return errors


def evaluate_conditions(conditions: List[Dict[str, Any]], combinator: str = "AND",
                        ignore_case: bool = False) -> Dict[str, Any]:
    results = [
        compare(c.get("value1"), c.get("operator", "is_equal_to"), c.get("value2"), ignore_case)
        for c in conditions
    ]
    if str(combinator).upper() == "OR":
        final = any(results)
    else:
        final = all(results)
    return {
        "result": final,
        "evaluatedConditions": [
            {"condition": condition, "result": result}
            for condition, result in zip(conditions, results)
        ],
    }


class IfNode(BaseNode):
    type = "if"
    display_name = "IF"
    category = NodeCategory.LOGIC
    description = "Route items true/false based on conditions."
    parameters = {
        "conditions": NodeParameter(
            type="array",
            label="Conditions",
            required=True,
            description="List of {value1, operator, value2}"
        ),
        "combinator": NodeParameter(type="options", label="Combinator", default="AND", options=["AND", "OR"]),
        "ignoreCase": NodeParameter(type="boolean", label="Ignore Case", default=False),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        if config.get("conditions") in (None, "", []):
            return []
        return _check_conditions(parse_conditions(config.get("conditions")))

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        evaluation = evaluate_conditions(
            parse_conditions(config["conditions"]),
            config.get("combinator", "AND"),
            bool(config.get("ignoreCase")),
        )
        branch = "true" if evaluation["result"] else "false"
        return NodeExecutionResult.ok(
            self.type,
            {
                **evaluation,
                "conditionsMet": evaluation["result"],
                "route": branch,
                "combinator": config.get("combinator", "AND"),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            },
            message=f"Condition evaluated to {branch}",
            routes=[branch],
        )


class SwitchNode(BaseNode):
    type = "switch"
    display_name = "Switch"
    category = NodeCategory.LOGIC
    description = "Route to the first output whose rule matches."
    parameters = {
        "rules": NodeParameter(
            type="array",
            label="Rules",
            required=True,
            description="Ordered list of {value1, operator, value2}; rule i routes to output_i"
        ),
        "fallbackOutput": NodeParameter(type="boolean", label="Fallback Output", default=True),
        "ignoreCase": NodeParameter(type="boolean", label="Ignore Case", default=False),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        if config.get("rules") in (None, "", []):
            return []
        return _check_conditions(parse_conditions(config.get("rules")), "rule")

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        ignore_case = bool(config.get("ignoreCase"))
        rules = parse_conditions(config["rules"])

        for index, rule in enumerate(rules):
            if compare(rule.get("value1"), rule.get("operator", "is_equal_to"), rule.get("value2"), ignore_case):
                output = rule.get("output") or f"output_{index}"
                return NodeExecutionResult.ok(
                    self.type,
                    {"matchedRule": index, "route": output},
                    message=f"Rule {index} matched",
                    routes=[output],
                )

        if config.get("fallbackOutput", True):
            return NodeExecutionResult.ok(
                self.type, {"matchedRule": None, "route": "fallback"},
                message="No rule matched, using fallback", routes=["fallback"],
            )
        return NodeExecutionResult.ok(
            self.type, {"matchedRule": None, "route": None},
            message="No rule matched", routes=[],
        )


class FilterNode(BaseNode):
    type = "filter"
    display_name = "Filter"
    category = NodeCategory.LOGIC
    description = "Stop the branch unless the conditions hold."
    parameters = IfNode.parameters

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        if config.get("conditions") in (None, "", []):
            return []
        return _check_conditions(parse_conditions(config.get("conditions")))

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        evaluation = evaluate_conditions(
            parse_conditions(config["conditions"]),
            config.get("combinator", "AND"),
            bool(config.get("ignoreCase")),
        )
        if evaluation["result"]:
            return NodeExecutionResult.ok(
                self.type, {**evaluation, "passed": True}, message="Item passed filter"
            )
        return NodeExecutionResult.ok(
            self.type, {**evaluation, "passed": False, "filtered": True},
            message="Item filtered out", routes=[],
        )


class MergeNode(BaseNode):
    type = "merge"
    display_name = "Merge"
    category = NodeCategory.LOGIC
    description = "Combine the outputs of the incoming branches."
    parameters = {
        "mergeMode": NodeParameter(
            type="options",
            label="Merge Mode",
            default="append",
            options=["append", "override", "combineKeys"],
        ),
    }

    @staticmethod
    def _branch_outputs(input_data: Any, connected_nodes: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        outputs = [
            node["output"] for node in connected_nodes
            if isinstance(node.get("output"), dict)
        ]
        if outputs:
            return outputs
        return [build_search_map(input_data)]

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        mode = config.get("mergeMode", "append")
        outputs = self._branch_outputs(input_data, connected_nodes)

        if mode == "override":
            merged: Dict[str, Any] = {}
            for output in outputs:
                merged.update(output)
            data = {"merged": merged}
        elif mode == "combineKeys":
            combined: Dict[str, List[Any]] = {}
            for output in outputs:
                for key, value in output.items():
                    combined.setdefault(key, []).append(value)
            data = {"merged": {k: v[0] if len(v) == 1 else v for k, v in combined.items()}}
        else:
            data = {"items": outputs}

        data.update({"mergeMode": mode, "inputCount": len(outputs)})
        return NodeExecutionResult.ok(self.type, data, message=f"Merged {len(outputs)} inputs")
