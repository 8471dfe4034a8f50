"""Flow definition structures.

A flow definition is an ordered sequence of states. Each state lists the steps
that may be invoked while an instance sits in it; a state without steps is
terminal. Definitions are validated on construction so a malformed template
fails when it is loaded rather than when a transition runs.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from litestar_flows.exceptions import DefinitionError

__all__ = ["FlowDefinition", "StateDefinition", "StepDefinition"]


@dataclass(frozen=True)
class StepDefinition:
    """A named, role-gated edge from one state to another.

    Attributes:
        name: Display name, unique within its state.
        next_state: Name of the state the instance moves to.
        task: Identifier of the task handler that performs the step.
        roles: Role tags allowed to invoke the step. ``"self"`` means the
            actor who owns the instance.
        operation: Optional classification tag, opaque to the engine.

    Example:
        >>> StepDefinition(
        ...     name="dispatch",
        ...     next_state="awaiting_acceptance",
        ...     task="allocation",
        ...     roles=("admin",),
        ...     operation=FlowOperation.ALLOCATION,
        ... )
    """

    name: str
    next_state: str
    task: str
    roles: tuple[str, ...]
    operation: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", tuple(self.roles))

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "next_state": self.next_state,
            "task": self.task,
            "roles": list(self.roles),
            "operation": str(self.operation) if self.operation is not None else None,
        }


@dataclass(frozen=True)
class StateDefinition:
    """A state of a flow and the steps that leave it.

    Attributes:
        name: State name, unique within the definition.
        steps: Steps available from this state, in display order.
    """

    name: str
    steps: tuple[StepDefinition, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def is_terminal(self) -> bool:
        """Whether no step can be invoked from this state."""
        return not self.steps

    def get_step(self, name: str) -> StepDefinition | None:
        """Return the step called ``name`` or ``None``."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    @property
    def step_names(self) -> list[str]:
        return [step.name for step in self.steps]


@dataclass(frozen=True)
class FlowDefinition:
    """Declarative state graph of a flow template.

    The first declared state is the entry state of every new instance.

    Attributes:
        key: Template identifier the definition is registered under.
        name: Human-readable template name.
        states: Ordered states of the flow.

    Raises:
        DefinitionError: If the definition is malformed.

    Example:
        >>> definition = FlowDefinition(
        ...     key="leave_request",
        ...     name="Leave request",
        ...     states=(
        ...         StateDefinition("draft", (StepDefinition("submit", "done", "submit", ("self",)),)),
        ...         StateDefinition("done"),
        ...     ),
        ... )
        >>> definition.initial_state
        'draft'
    """

    key: str
    name: str
    states: tuple[StateDefinition, ...]
    _index: dict[str, StateDefinition] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "states", tuple(self.states))
        errors = self.validate()
        if errors:
            raise DefinitionError(errors)
        object.__setattr__(self, "_index", {state.name: state for state in self.states})

    def validate(self) -> list[str]:
        """Collect every structural problem of the definition.

        Returns:
            List of validation error messages. Empty list if valid.
        """
        errors: list[str] = []

        if not self.states:
            return [f"Flow '{self.key}' declares no states"]

        counts = Counter(state.name for state in self.states)
        for name, count in counts.items():
            if count > 1:
                errors.append(f"State '{name}' is declared {count} times")

        if self.states[0].is_terminal:
            errors.append(f"Entry state '{self.states[0].name}' has no steps")

        for state in self.states:
            step_counts = Counter(step.name for step in state.steps)
            for name, count in step_counts.items():
                if count > 1:
                    errors.append(f"State '{state.name}': step '{name}' is declared {count} times")

            for step in state.steps:
                if step.next_state not in counts:
                    errors.append(
                        f"State '{state.name}': step '{step.name}' targets undeclared state '{step.next_state}'"
                    )
                if not step.roles:
                    errors.append(f"State '{state.name}': step '{step.name}' allows no roles")
                if not step.task:
                    errors.append(f"State '{state.name}': step '{step.name}' names no task")

        return errors

    @property
    def initial_state(self) -> str:
        """Name of the entry state."""
        return self.states[0].name

    @property
    def terminal_states(self) -> set[str]:
        return {state.name for state in self.states if state.is_terminal}

    @property
    def tasks(self) -> set[str]:
        """Every task identifier referenced by a step."""
        return {step.task for state in self.states for step in state.steps}

    def get_state(self, name: str) -> StateDefinition | None:
        """Return the state called ``name`` or ``None``."""
        return self._index.get(name)

    def has_state(self, name: str) -> bool:
        return name in self._index

    def to_dict(self) -> dict[str, Any]:
        """Serialize the definition to a JSON-compatible dict."""
        return {
            "key": self.key,
            "name": self.name,
            "initial_state": self.initial_state,
            "states": [
                {"name": state.name, "steps": [step.to_dict() for step in state.steps]} for state in self.states
            ],
        }
