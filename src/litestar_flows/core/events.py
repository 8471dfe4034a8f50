"""Domain events for the flow lifecycle.

Events are emitted by the engine only after the transaction that produced them
has committed, so a listener never observes a change that was rolled back.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

__all__ = ["FlowEvent", "FlowStarted", "FlowTransitioned"]


@dataclass(frozen=True)
class FlowEvent:
    """Base class for all flow events.

    Attributes:
        instance_id: Unique identifier of the flow instance.
        timestamp: When the event occurred.
    """

    instance_id: UUID
    timestamp: datetime


@dataclass(frozen=True)
class FlowStarted(FlowEvent):
    """Event emitted when a flow instance is created.

    Attributes:
        template: Key of the flow template.
        state: State the instance is in once started.
        user_id: Owner of the new instance.
    """

    template: str
    state: str
    user_id: UUID


@dataclass(frozen=True)
class FlowTransitioned(FlowEvent):
    """Event emitted when a step has been committed.

    Attributes:
        template: Key of the flow template.
        step_name: The step that ran.
        from_state: State before the step.
        to_state: State after the step.
        actor_id: Identity that invoked the step.
        operation: Classification tag of the step, if any.

    Example:
        >>> event = FlowTransitioned(
        ...     instance_id=flow_id,
        ...     timestamp=datetime.now(timezone.utc),
        ...     template="WORK_ORDER",
        ...     step_name="派单",
        ...     from_state="待派单",
        ...     to_state="待接单",
        ...     actor_id=admin_id,
        ...     operation="ALLOCATION",
        ... )
    """

    template: str
    step_name: str
    from_state: str
    to_state: str
    actor_id: UUID
    operation: str | None = None
