"""Generic machinery shared by every flow template.

A concrete flow subclasses :class:`BaseFlow`, declares its state table as data
and implements one ``async`` method per task, marked with :func:`flow_task`.
Steps refer to tasks by identifier, so the state table never holds references
to bound methods and can be declared before any of them exist.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, ClassVar, TypeVar, overload

from litestar_flows.core.definition import FlowDefinition, StateDefinition, StepDefinition
from litestar_flows.exceptions import (
    DefinitionError,
    FlowsError,
    InvalidStepError,
    TaskExecutionError,
    UnauthorizedError,
    UnknownStateError,
)

if TYPE_CHECKING:
    from litestar_flows.core.context import ActorContext, TransitionOptions
    from litestar_flows.core.protocols import TaskHandler, UnitOfWork
    from litestar_flows.db.models import FlowModel

__all__ = ["BaseFlow", "flow_task"]

logger = logging.getLogger(__name__)

_TASK_ATTR = "__flow_task__"

FuncT = TypeVar("FuncT", bound=Callable[..., Any])


@overload
def flow_task(name: FuncT) -> FuncT: ...


@overload
def flow_task(name: str | None = None) -> Callable[[FuncT], FuncT]: ...


def flow_task(name: str | FuncT | None = None) -> FuncT | Callable[[FuncT], FuncT]:
    """Mark a :class:`BaseFlow` method as the handler for a task identifier.

    Args:
        name: Task identifier referenced by :attr:`StepDefinition.task`.
            Defaults to the method name.

    Example:
        >>> class LeaveFlow(BaseFlow):
        ...     @flow_task
        ...     async def submit(self, step, flow, options, uow): ...
        ...
        ...     @flow_task("approve")
        ...     async def approve_request(self, step, flow, options, uow): ...
    """
    if callable(name):
        setattr(name, _TASK_ATTR, name.__name__)
        return name

    def decorator(func: FuncT) -> FuncT:
        setattr(func, _TASK_ATTR, name or func.__name__)
        return func

    return decorator


class BaseFlow:
    """Base class for flow templates.

    Subclasses set :attr:`key`, :attr:`name` and :attr:`states`. The definition
    and the task table are validated when the flow is instantiated, which is
    when it gets registered with a :class:`~litestar_flows.engine.registry.FlowRegistry`.

    Raises:
        DefinitionError: If the state table is malformed or a step names a task
            without a handler.
    """

    key: ClassVar[str]
    """Template identifier; stored on every instance of this flow."""

    name: ClassVar[str]
    """Human-readable template name."""

    states: ClassVar[Sequence[StateDefinition]] = ()
    """Ordered state table. The first state is the entry state."""

    _task_methods: ClassVar[dict[str, str]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        tasks: dict[str, str] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                task = getattr(value, _TASK_ATTR, None)
                if isinstance(task, str):
                    tasks[task] = attr
        cls._task_methods = tasks

    def __init__(self) -> None:
        self._definition = self.get_definition()
        missing = sorted(self._definition.tasks - self._task_methods.keys())
        if missing:
            raise DefinitionError(
                [f"Task '{task}' has no handler on {type(self).__name__}" for task in missing],
            )
        self._handlers: dict[str, TaskHandler] = {
            task: getattr(self, attr) for task, attr in self._task_methods.items()
        }
        logger.debug("Loaded flow template %s with tasks %s", self.key, sorted(self._handlers))

    @classmethod
    def get_definition(cls) -> FlowDefinition:
        """Build the validated definition from the class' state table."""
        return FlowDefinition(key=str(cls.key), name=cls.name, states=tuple(cls.states))

    @property
    def definition(self) -> FlowDefinition:
        return self._definition

    def get_handler(self, task: str) -> TaskHandler:
        """Return the bound handler registered for ``task``.

        Raises:
            DefinitionError: If no handler is registered under ``task``.
        """
        try:
            return self._handlers[task]
        except KeyError:
            raise DefinitionError([f"Task '{task}' has no handler on {type(self).__name__}"]) from None

    @property
    def task_names(self) -> list[str]:
        return sorted(self._handlers)

    def get_state(self, state: str) -> StateDefinition:
        """Resolve ``state`` against the definition.

        Raises:
            UnknownStateError: If the state is not declared.
        """
        definition = self._definition.get_state(state)
        if definition is None:
            raise UnknownStateError(self.key, state)
        return definition

    def find_step(self, state: str, step_name: str) -> StepDefinition:
        """Find the step called ``step_name`` among the steps of ``state``.

        Raises:
            UnknownStateError: If the state is not declared.
            InvalidStepError: If the step is not available from the state.
        """
        state_definition = self.get_state(state)
        step = state_definition.get_step(step_name)
        if step is None:
            raise InvalidStepError(state, step_name, state_definition.step_names)
        return step

    def can_perform(self, step: StepDefinition, flow: FlowModel, actor: ActorContext) -> bool:
        """Whether ``actor`` holds at least one role of ``step`` for this instance."""
        return not actor.effective_roles(flow.user_id).isdisjoint(step.roles)

    def authorize(self, step: StepDefinition, flow: FlowModel, actor: ActorContext) -> None:
        """Check that ``actor`` may invoke ``step`` on ``flow``.

        Raises:
            UnauthorizedError: If the actor's roles do not intersect the step's roles.
        """
        if not self.can_perform(step, flow, actor):
            raise UnauthorizedError(step.name, actor.identity, step.roles)

    def resolve_step(self, flow: FlowModel, step_name: str, actor: ActorContext) -> StepDefinition:
        """Validate a requested step against the instance's current state and the actor.

        The checks run in order: state lookup, step lookup, authorization.

        Returns:
            The step definition to execute.
        """
        step = self.find_step(flow.state, step_name)
        self.authorize(step, flow, actor)
        return step

    def available_steps(self, flow: FlowModel, actor: ActorContext) -> list[StepDefinition]:
        """List the steps ``actor`` could invoke from the instance's current state."""
        state = self.get_state(flow.state)
        return [step for step in state.steps if self.can_perform(step, flow, actor)]

    async def run_task(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: UnitOfWork,
    ) -> None:
        """Dispatch ``step`` to its task handler.

        Library errors raised by the handler propagate as they are; anything
        else is wrapped in :class:`TaskExecutionError`. The handler must leave
        the instance in ``step.next_state``.

        Raises:
            TaskExecutionError: If the handler fails or does not advance the state.
        """
        handler = self.get_handler(step.task)
        instance_id = flow.id
        try:
            await handler(step, flow, options, uow)
        except FlowsError:
            raise
        except Exception as exc:
            raise TaskExecutionError(step.name, instance_id=instance_id, cause=exc) from exc

        if flow.state != step.next_state:
            raise TaskExecutionError(
                step.name,
                f"handler left the instance in '{flow.state}' instead of '{step.next_state}'",
                instance_id=flow.id,
            )
