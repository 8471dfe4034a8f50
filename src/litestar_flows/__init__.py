"""Litestar Flows - role-gated state-machine flows for Litestar.

A flow template is declared as an ordered table of states, each listing the
steps that may leave it. The engine runs one step at a time: it checks the
step is declared on the instance's current state, checks the caller holds one
of the step's roles, and runs the step's task handler inside a single database
transaction together with everything the handler touches.

Key Features:
    - Declarative state tables validated when a template is loaded
    - Role-based step authorization with an owner-relative ``self`` role
    - Atomic task handlers with a transaction-scoped unit of work
    - Row locks and version checks against concurrent transitions
    - Litestar plugin for dependency injection

Example:
    >>> from litestar_flows import ActorContext, FlowEngine, FlowRegistry, WorkOrderFlow
    >>>
    >>> registry = FlowRegistry()
    >>> registry.register(WorkOrderFlow)
    >>> engine = FlowEngine(registry, session_maker)
    >>> flow = await engine.start("WORK_ORDER", ActorContext(identity=user_id), target_id=service_id)
"""

from __future__ import annotations

from litestar_flows.__metadata__ import __project__, __version__
from litestar_flows.config import FlowEngineConfig, FlowPluginConfig
from litestar_flows.core import (
    ActorContext,
    FlowDefinition,
    FlowExtInfo,
    FlowInstanceData,
    FlowOperation,
    FlowRecordData,
    FlowTemplateKind,
    Role,
    StateDefinition,
    StepDefinition,
    TransitionOptions,
    WFResult,
    WFStatus,
)
from litestar_flows.db.engine import FlowEngine
from litestar_flows.engine import BaseFlow, FlowRegistry, flow_task
from litestar_flows.exceptions import (
    ConflictError,
    DefinitionError,
    FlowInstanceNotFoundError,
    FlowsError,
    FlowTemplateNotFoundError,
    InvalidStepError,
    TaskExecutionError,
    TransitionTimeoutError,
    UnauthorizedError,
    UnknownStateError,
)
from litestar_flows.flows import WorkOrderFlow
from litestar_flows.plugin import FlowPlugin

__all__ = (
    "ActorContext",
    "BaseFlow",
    "ConflictError",
    "DefinitionError",
    "FlowDefinition",
    "FlowEngine",
    "FlowEngineConfig",
    "FlowExtInfo",
    "FlowInstanceData",
    "FlowInstanceNotFoundError",
    "FlowOperation",
    "FlowPlugin",
    "FlowPluginConfig",
    "FlowRecordData",
    "FlowRegistry",
    "FlowTemplateKind",
    "FlowTemplateNotFoundError",
    "FlowsError",
    "InvalidStepError",
    "Role",
    "StateDefinition",
    "StepDefinition",
    "TaskExecutionError",
    "TransitionOptions",
    "TransitionTimeoutError",
    "UnauthorizedError",
    "UnknownStateError",
    "WFResult",
    "WFStatus",
    "WorkOrderFlow",
    "__project__",
    "__version__",
    "flow_task",
)
