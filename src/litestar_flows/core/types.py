"""Core type definitions for litestar-flows.

This module defines the enums and role constants shared by flow definitions,
persisted instances and the engine.
"""

from __future__ import annotations

import sys
from enum import Enum

# StrEnum backport for Python < 3.11
if sys.version_info >= (3, 11):
    from enum import StrEnum
else:

    class StrEnum(str, Enum):
        """String enumeration compatibility for Python < 3.11."""

        def __str__(self) -> str:
            return str(self.value)


__all__ = [
    "FlowOperation",
    "FlowTemplateKind",
    "Role",
    "StrEnum",
    "WFResult",
    "WFStatus",
]


class WFResult(StrEnum):
    """Outcome classification of a flow instance.

    Attributes:
        RUNNING: No outcome yet.
        SUCCESS: The flow reached its goal.
        FAILURE: The flow ended without reaching its goal.
    """

    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class WFStatus(StrEnum):
    """Lifecycle phase of a flow instance, independent of :class:`WFResult`.

    Attributes:
        RUNNING: The flow is in progress.
        OVER: The flow finished normally.
        CANCELED: The flow was voided.
    """

    RUNNING = "RUNNING"
    OVER = "OVER"
    CANCELED = "CANCELED"


class FlowOperation(StrEnum):
    """Classification tag attached to a step for auditing and UI hints.

    The engine stores it on transition records but never interprets it.

    Attributes:
        ALLOCATION: The step assigns the flow to an executor.
        REMARKS: The step accepts free-text remarks.
    """

    ALLOCATION = "ALLOCATION"
    REMARKS = "REMARKS"


class FlowTemplateKind(StrEnum):
    """Keys of the flow templates shipped with the library."""

    WORK_ORDER = "WORK_ORDER"


class Role(StrEnum):
    """Well-known role tags used in step role lists.

    Attributes:
        SELF: Resolved at authorization time; held by the actor who owns the instance.
        ADMIN: Back-office administrator.
        EXECUTOR: User who carries out assigned work.
    """

    SELF = "self"
    ADMIN = "admin"
    EXECUTOR = "executor"
