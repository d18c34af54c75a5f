# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Workflow Engine Exceptions
"""


class WorkflowEngineError(Exception):
    """Base exception for the workflow engine"""
    pass


class WorkflowValidationError(WorkflowEngineError):
    """Workflow graph rejected at registration"""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class TemplateResolutionError(WorkflowEngineError):
    """Template expression could not be resolved under the 'error' policy"""
    def __init__(self, expression: str):
        self.expression = expression
        super().__init__(f"Unresolved template expression: {{{{{expression}}}}}")


class UnknownNodeTypeError(WorkflowEngineError):
    """Node type tag is not in the registry"""
    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"Unknown node type: {node_type}")


class NodeTimeoutException(WorkflowEngineError):
    """A node ran past the per-node timeout; fails that node only"""
    def __init__(self, node_id: str, timeout: float):
        self.node_id = node_id
        self.timeout = timeout
        super().__init__(f"Execution exceeded timeout ({timeout}s)")


class ExternalAPIError(WorkflowEngineError):
    """Outbound platform call returned an error"""
    def __init__(self, platform: str, message: str, status_code: int = None):
        self.platform = platform
        self.status_code = status_code
        super().__init__(f"{platform} API error: {message}")
