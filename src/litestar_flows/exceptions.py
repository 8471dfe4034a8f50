"""Exception hierarchy for litestar-flows.

Every error the engine raises derives from :class:`FlowsError` and carries the
structured context (template, state, step, instance) needed to diagnose it.
A transition that raises any of these has been rolled back in full.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

__all__ = (
    "ConflictError",
    "DefinitionError",
    "FlowInstanceNotFoundError",
    "FlowTemplateNotFoundError",
    "FlowsError",
    "InvalidStepError",
    "TaskExecutionError",
    "TransitionTimeoutError",
    "UnauthorizedError",
    "UnknownStateError",
)


class FlowsError(Exception):
    """Base exception for all litestar-flows errors.

    Catch this to handle every engine failure with a single except clause.
    """


class DefinitionError(FlowsError):
    """Raised when a flow definition is malformed.

    Raised while a template is being loaded (definition construction or flow
    registration), never while a transition runs.

    Attributes:
        errors: Every problem found in the definition.
    """

    def __init__(self, errors: list[str]) -> None:
        """Initialize the exception with validation errors.

        Args:
            errors: List of validation error messages.
        """
        self.errors = errors
        super().__init__(f"Flow definition is invalid: {'; '.join(errors)}")


class FlowTemplateNotFoundError(FlowsError):
    """Raised when no flow template is registered under a key.

    Attributes:
        key: The template key that was looked up.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Flow template '{key}' not found")


class FlowInstanceNotFoundError(FlowsError):
    """Raised when a flow instance does not exist in storage.

    Attributes:
        instance_id: The ID of the flow instance that was not found.
    """

    def __init__(self, instance_id: str | UUID) -> None:
        self.instance_id = instance_id
        super().__init__(f"Flow instance '{instance_id}' not found")


class UnknownStateError(FlowsError):
    """Raised when an instance's state is not declared by its template.

    This indicates corrupted data: the engine never writes an undeclared state.

    Attributes:
        template: Key of the owning template.
        state: The undeclared state name.
    """

    def __init__(self, template: str, state: str) -> None:
        self.template = template
        self.state = state
        super().__init__(f"State '{state}' is not declared by flow template '{template}'")


class InvalidStepError(FlowsError):
    """Raised when a step is not available from the instance's current state.

    Covers both an unknown step name and a step that exists elsewhere in the
    template but not on the current state (including terminal states).

    Attributes:
        state: The instance's current state.
        step_name: The requested step.
        available: Step names that are valid from ``state``.
    """

    def __init__(self, state: str, step_name: str, available: list[str] | None = None) -> None:
        self.state = state
        self.step_name = step_name
        self.available = available or []
        msg = f"Step '{step_name}' is not available from state '{state}'"
        if self.available:
            msg += f" (available: {', '.join(self.available)})"
        super().__init__(msg)


class UnauthorizedError(FlowsError):
    """Raised when the actor holds none of the roles a step requires.

    Attributes:
        step_name: The step that was refused.
        actor_id: Identity of the refused actor.
        required: Roles that would have authorized the step.
    """

    def __init__(self, step_name: str, actor_id: str | UUID, required: tuple[str, ...]) -> None:
        self.step_name = step_name
        self.actor_id = actor_id
        self.required = required
        super().__init__(
            f"Actor '{actor_id}' is not authorized to perform step '{step_name}' "
            f"(requires one of: {', '.join(required)})"
        )


class ConflictError(FlowsError):
    """Raised when a concurrent transition changed the instance first.

    The losing transition has been rolled back; the caller may reload and retry.

    Attributes:
        instance_id: The contended flow instance.
    """

    def __init__(self, instance_id: str | UUID | None) -> None:
        self.instance_id = instance_id
        super().__init__(f"Flow instance '{instance_id}' was modified by a concurrent transition")


class TaskExecutionError(FlowsError):
    """Raised when a step's task handler fails.

    Attributes:
        step_name: The step whose task failed.
        instance_id: The flow instance the task ran against.
        reason: Human readable description of the failed precondition.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        step_name: str,
        reason: str | None = None,
        *,
        instance_id: str | UUID | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.step_name = step_name
        self.reason = reason
        self.instance_id = instance_id
        self.cause = cause
        msg = f"Task for step '{step_name}' failed"
        if instance_id is not None:
            msg += f" on flow instance '{instance_id}'"
        if reason:
            msg += f": {reason}"
        elif cause is not None:
            msg += f": {cause!r}"
        super().__init__(msg)


class TransitionTimeoutError(FlowsError):
    """Raised when a transition does not finish within the configured deadline.

    Attributes:
        instance_id: The flow instance of the abandoned transition.
        timeout: The deadline in seconds.
    """

    def __init__(self, instance_id: str | UUID | None, timeout: float) -> None:
        self.instance_id = instance_id
        self.timeout = timeout
        super().__init__(f"Transition on flow instance '{instance_id}' timed out after {timeout}s")
