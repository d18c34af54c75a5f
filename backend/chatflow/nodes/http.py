# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Generic HTTP Request node and the Data Storage node.
"""

import json
from typing import Any, Dict, List

from chatflow.engine.context import ExecutionContext
from chatflow.engine.models import NodeExecutionResult
from .base import BaseNode, NodeParameter


HTTP_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def _as_dict(value: Any, what: str) -> Dict[str, Any]:
    if not value:
        return {}
    if isinstance(value, dict):
        return value
    parsed = json.loads(value)
    if not isinstance(parsed, dict):
        raise ValueError(f"{what} must be a JSON object")
    return parsed


class HttpRequestNode(BaseNode):
    type = "httpRequest"
    display_name = "HTTP Request"
    description = "Call an arbitrary HTTP endpoint"
    parameters = {
        "method": NodeParameter(type="options", label="Method", default="GET", options=HTTP_METHODS),
        "url": NodeParameter(type="string", label="URL", required=True),
        "headers": NodeParameter(type="json", label="Headers"),
        "queryParameters": NodeParameter(type="json", label="Query Parameters"),
        "body": NodeParameter(type="json", label="Body"),
        "failOnError": NodeParameter(type="boolean", label="Fail On HTTP Error", default=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        url = config.get("url")
        if resolved and isinstance(url, str) and url and not url.startswith(("http://", "https://")):
            return ["URL must start with http:// or https://"]
        errors = []
        for field_name in ("headers", "queryParameters"):
            value = config.get(field_name)
            if resolved and isinstance(value, str) and value.strip():
                try:
                    _as_dict(value, field_name)
                except ValueError as e:
                    errors.append(f"{field_name}: {e}")
        return errors

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        method = config.get("method", "GET").upper()
        body = config.get("body")
        request_kwargs: Dict[str, Any] = {
            "headers": _as_dict(config.get("headers"), "headers"),
            "params": _as_dict(config.get("queryParameters"), "queryParameters"),
        }
        if body not in (None, "") and method != "GET":
            if isinstance(body, str):
                try:
                    request_kwargs["json"] = json.loads(body)
                except ValueError:
                    request_kwargs["content"] = body
            else:
                request_kwargs["json"] = body

        async with context.services.http() as client:
            response = await client.request(method, config["url"], **request_kwargs)

        try:
            payload: Any = response.json()
        except ValueError:
            payload = response.text

        data = {"statusCode": response.status_code, "headers": dict(response.headers), "body": payload}
        if response.status_code >= 400 and config.get("failOnError", True):
            return NodeExecutionResult.fail(
                self.type,
                f"HTTP {response.status_code} from {config['url']}",
                data=data,
            )
        return NodeExecutionResult.ok(self.type, data, message=f"{method} {response.status_code}")


class DataStorageNode(BaseNode):
    type = "dataStorage"
    display_name = "Data Storage"
    description = "Static key/value data made available to connected nodes (e.g. AI Agent knowledge)"
    parameters = {
        "data": NodeParameter(type="json", label="Data", required=True),
    }

    def check_config(self, config: Dict[str, Any], resolved: bool) -> List[str]:
        value = config.get("data")
        if isinstance(value, str) and value.strip() and "{{" not in value:
            try:
                json.loads(value)
            except ValueError:
                return ["Data must be valid JSON"]
        return []

    async def run(self, config, input_data, connected_nodes, context: ExecutionContext) -> NodeExecutionResult:
        value = config["data"]
        if isinstance(value, str):
            value = json.loads(value)
        return NodeExecutionResult.ok(self.type, {"data": value}, message="Data loaded")
