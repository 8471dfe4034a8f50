"""Flow engine machinery.

This module provides the base class for flow templates, the task decorator
and the template registry.
"""

from __future__ import annotations

from litestar_flows.engine.base import BaseFlow, flow_task
from litestar_flows.engine.registry import FlowRegistry

__all__ = [
    "BaseFlow",
    "FlowRegistry",
    "flow_task",
]
