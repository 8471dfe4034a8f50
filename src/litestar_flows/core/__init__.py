"""Core domain module for litestar-flows.

This module exports the building blocks shared by every flow template:
types, definitions, caller context, data snapshots, events and protocols.
"""

from __future__ import annotations

from litestar_flows.core.context import ActorContext, TransitionOptions
from litestar_flows.core.definition import FlowDefinition, StateDefinition, StepDefinition
from litestar_flows.core.events import FlowEvent, FlowStarted, FlowTransitioned
from litestar_flows.core.models import FlowExtInfo, FlowInstanceData, FlowRecordData
from litestar_flows.core.protocols import EventBus, TaskHandler, UnitOfWork
from litestar_flows.core.types import FlowOperation, FlowTemplateKind, Role, WFResult, WFStatus

__all__ = [
    "ActorContext",
    "EventBus",
    "FlowDefinition",
    "FlowEvent",
    "FlowExtInfo",
    "FlowInstanceData",
    "FlowOperation",
    "FlowRecordData",
    "FlowStarted",
    "FlowTemplateKind",
    "FlowTransitioned",
    "Role",
    "StateDefinition",
    "StepDefinition",
    "TaskHandler",
    "TransitionOptions",
    "UnitOfWork",
    "WFResult",
    "WFStatus",
]
