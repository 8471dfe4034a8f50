"""Concrete data models for litestar-flows.

This module provides the typed view of a flow's extension bag and the
immutable snapshot the engine hands back to callers.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

if TYPE_CHECKING:
    from litestar_flows.core.types import WFResult, WFStatus
    from litestar_flows.db.models import FlowModel, FlowRecordModel


__all__ = ["FlowExtInfo", "FlowInstanceData", "FlowRecordData"]


@dataclass(frozen=True)
class FlowExtInfo:
    """Typed view over a flow instance's ``ex_info`` bag.

    Known keys:
        remarks: Remarks accumulated across transitions, oldest first.

    Keys this class does not know about are carried through untouched in
    ``extra`` so that other writers of the bag are not clobbered.
    """

    remarks: tuple[str, ...] = ()
    extra: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> FlowExtInfo:
        if not data:
            return cls()
        extra = {key: value for key, value in data.items() if key != "remarks"}
        remarks = data.get("remarks") or ()
        if isinstance(remarks, str):
            remarks = (remarks,)
        return cls(remarks=tuple(str(remark) for remark in remarks), extra=extra)

    def with_remark(self, remark: str) -> FlowExtInfo:
        """Return a copy with ``remark`` appended after the existing remarks."""
        return FlowExtInfo(remarks=(*self.remarks, remark), extra=self.extra)

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        if self.remarks:
            data["remarks"] = list(self.remarks)
        return data


@dataclass(frozen=True)
class FlowInstanceData:
    """Detached snapshot of a persisted flow instance.

    Attributes:
        id: Unique identifier of the instance.
        template: Key of the owning flow template.
        state: Current state name.
        wf_result: Outcome classification, ``None`` before the entry step ran.
        wf_status: Lifecycle phase, ``None`` before the entry step ran.
        user_id: Owner of the instance (the ``"self"`` role).
        operator_id: User who performed the most recent transition.
        executor_id: User assigned to carry out the work.
        target_id: Subject entity the flow is about.
        ex_info: Extension bag.
        version: Optimistic concurrency version.
        created_at: When the instance was created.
        updated_at: When the instance was last written.
    """

    id: UUID
    template: str
    state: str
    wf_result: WFResult | None
    wf_status: WFStatus | None
    user_id: UUID | None
    operator_id: UUID | None
    executor_id: UUID | None
    target_id: UUID | None
    ex_info: FlowExtInfo
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_model(cls, model: FlowModel, template: str) -> FlowInstanceData:
        return cls(
            id=model.id,
            template=template,
            state=model.state,
            wf_result=model.wf_result,
            wf_status=model.wf_status,
            user_id=model.user_id,
            operator_id=model.operator_id,
            executor_id=model.executor_id,
            target_id=model.target_id,
            ex_info=FlowExtInfo.from_dict(model.ex_info),
            version=model.version,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @property
    def remarks(self) -> tuple[str, ...]:
        return self.ex_info.remarks


@dataclass(frozen=True)
class FlowRecordData:
    """One committed transition in a flow's history."""

    step_name: str
    from_state: str
    to_state: str
    actor_id: UUID
    operator_id: UUID | None
    operation: str | None
    remarks: str | None
    created_at: datetime | None

    @classmethod
    def from_model(cls, model: FlowRecordModel) -> FlowRecordData:
        return cls(
            step_name=model.step_name,
            from_state=model.from_state,
            to_state=model.to_state,
            actor_id=model.actor_id,
            operator_id=model.operator_id,
            operation=model.operation,
            remarks=model.remarks,
            created_at=model.created_at,
        )
