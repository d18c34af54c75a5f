# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from .workflow_state import RegistryDrift, WorkflowStateStore

__all__ = ["RegistryDrift", "WorkflowStateStore"]
