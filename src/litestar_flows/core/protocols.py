"""Core protocols for litestar-flows.

These structural interfaces describe the collaborators the engine talks to:
the transaction-scoped unit of work handed to task handlers, the task handlers
themselves, and an optional event bus.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

if TYPE_CHECKING:
    from litestar_flows.core.context import TransitionOptions
    from litestar_flows.core.definition import StepDefinition
    from litestar_flows.db.models import FlowModel


__all__ = ["EventBus", "TaskHandler", "UnitOfWork"]

ModelT = TypeVar("ModelT")


@runtime_checkable
class UnitOfWork(Protocol):
    """Repository access bound to the transaction of one transition.

    Everything a handler reads or writes through this object commits or rolls
    back together with the instance's state change.
    """

    async def find(self, model_type: type[ModelT], **criteria: Any) -> ModelT | None:
        """Return the single entity of ``model_type`` matching ``criteria`` or ``None``."""
        ...

    async def save(self, entity: ModelT) -> ModelT:
        """Stage ``entity`` and flush it to the open transaction."""
        ...


class TaskHandler(Protocol):
    """Signature of a bound task handler method."""

    async def __call__(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: UnitOfWork,
    ) -> None:
        """Apply the step to ``flow``.

        The handler must set ``flow.state = step.next_state``, apply its own
        mutation and persist through ``uow``. Raising aborts the transition.
        """
        ...


@runtime_checkable
class EventBus(Protocol):
    """Minimal event sink the engine can publish to."""

    async def emit(self, event_name: str, **kwargs: Any) -> None:
        """Publish ``event_name`` with keyword payload."""
        ...
