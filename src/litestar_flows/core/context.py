"""Caller context passed into a transition.

The engine does not authenticate anyone. The host application resolves the
caller into an :class:`ActorContext` and supplies the step payload as
:class:`TransitionOptions`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from litestar_flows.core.types import Role

__all__ = ["ActorContext", "TransitionOptions"]


@dataclass(frozen=True)
class ActorContext:
    """An already authenticated caller.

    Attributes:
        identity: ID of the calling user.
        roles: Static roles held by the caller. ``"self"`` is never stored here;
            it is derived per instance by :meth:`effective_roles`.

    Example:
        >>> actor = ActorContext(identity=admin_id, roles=frozenset({"admin"}))
        >>> "self" in actor.effective_roles(owner_id=admin_id)
        True
    """

    identity: UUID
    roles: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        roles = frozenset(str(role) for role in self.roles)
        object.__setattr__(self, "roles", roles - {Role.SELF.value})

    def effective_roles(self, owner_id: UUID | None) -> frozenset[str]:
        """Return the caller's roles as seen by a specific instance.

        Args:
            owner_id: The user owning the instance.

        Returns:
            The static roles, plus ``"self"`` when the caller owns the instance.
        """
        if owner_id is not None and owner_id == self.identity:
            return self.roles | {Role.SELF.value}
        return self.roles

    def has_role(self, role: str) -> bool:
        return str(role) in self.roles


@dataclass
class TransitionOptions:
    """Caller-supplied payload for a step's task handler.

    Attributes:
        operator_id: User recorded as having performed the step. Defaults to the
            acting identity when the engine is configured to do so.
        executor_id: User assigned to carry out the work (allocation steps).
        remarks: Free-text remark appended to the instance's remarks.
        data: Additional handler-specific values.
    """

    operator_id: UUID | None = None
    executor_id: UUID | None = None
    remarks: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Retrieve a value from the handler-specific data dictionary."""
        return self.data.get(key, default)
