"""SQLAlchemy models for flow persistence.

This module defines the database models the engine reads and writes:
- FlowTemplateModel: One row per registered flow template
- FlowModel: A flow instance and its current state
- FlowRecordModel: Append-only log of committed transitions
- UserModel: Minimal user reference carrying a points balance
- ServiceModel: Subject entity of a work order, worth a points reward
- DetailModel: Append-only points ledger entry
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from advanced_alchemy.base import UUIDAuditBase
from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from litestar_flows.core.types import WFResult, WFStatus

__all__ = [
    "DetailModel",
    "FlowModel",
    "FlowRecordModel",
    "FlowTemplateModel",
    "ServiceModel",
    "UserModel",
]


# Cross-database JSON type: uses JSONB for PostgreSQL, JSON for others (SQLite, MySQL, etc.)
JSONType = JSON().with_variant(JSONB, "postgresql")


class UserModel(UUIDAuditBase):
    """A user that can own, operate or execute flows.

    Attributes:
        name: Display name.
        points: Points balance, credited when work orders are settled.
        details: Ledger entries recording every points adjustment.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255))
    points: Mapped[int] = mapped_column(Integer, default=0)

    details: Mapped[list[DetailModel]] = relationship(
        back_populates="user",
        lazy="noload",
        order_by="DetailModel.created_at",
    )


class ServiceModel(UUIDAuditBase):
    """A service request that a work order is about.

    Attributes:
        title: Short description of the service.
        description: Optional long description.
        points: Reward credited to the executor when the work order is settled.
    """

    __tablename__ = "services"

    title: Mapped[str] = mapped_column(String(500))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    points: Mapped[int] = mapped_column(Integer, default=0)


class DetailModel(UUIDAuditBase):
    """Immutable points ledger entry.

    Attributes:
        title: Reason for the adjustment.
        value: Signed number of points added to the user's balance.
        user_id: Foreign key to the credited user.
    """

    __tablename__ = "details"
    __table_args__ = (Index("ix_details_user_id", "user_id"),)

    title: Mapped[str] = mapped_column(String(255))
    value: Mapped[int] = mapped_column(Integer)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"))

    user: Mapped[UserModel] = relationship(back_populates="details", lazy="noload")


class FlowTemplateModel(UUIDAuditBase):
    """Persisted flow template.

    The executable definition lives in code; this row anchors instances to a
    template key and keeps a JSON snapshot of the state graph for auditing.

    Attributes:
        key: Template key the flow is registered under.
        name: Human-readable template name.
        definition_json: Serialized state graph.
        is_active: Whether new instances may be started.
    """

    __tablename__ = "flow_templates"
    __table_args__ = (Index("ix_flow_templates_key", "key", unique=True),)

    key: Mapped[str] = mapped_column(String(100))
    name: Mapped[str] = mapped_column(String(255))
    definition_json: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    is_active: Mapped[bool] = mapped_column(default=True)

    flows: Mapped[list[FlowModel]] = relationship(back_populates="template", lazy="noload")


class FlowModel(UUIDAuditBase):
    """One execution of a flow template.

    ``version`` is SQLAlchemy's version counter: every UPDATE is issued with
    ``WHERE version = <loaded value>``, so a write based on a stale read fails
    instead of overwriting a concurrent transition.

    Attributes:
        template_id: Foreign key to the flow template.
        state: Current state name, always declared by the template.
        wf_result: Outcome classification; ``None`` until the entry step ran.
        wf_status: Lifecycle phase; ``None`` until the entry step ran.
        user_id: Owner of the instance, matched by the ``"self"`` role.
        operator_id: User who performed the most recent transition.
        executor_id: User assigned to carry out the work.
        target_id: Subject entity the flow is about.
        ex_info: Extension bag, see :class:`~litestar_flows.core.models.FlowExtInfo`.
        version: Optimistic concurrency counter.
    """

    __tablename__ = "flows"
    __table_args__ = (
        Index("ix_flows_template_id", "template_id"),
        Index("ix_flows_state", "state"),
        Index("ix_flows_wf_status", "wf_status"),
        Index("ix_flows_user_id", "user_id"),
        Index("ix_flows_executor_id", "executor_id"),
    )

    template_id: Mapped[UUID] = mapped_column(ForeignKey("flow_templates.id", ondelete="RESTRICT"))
    state: Mapped[str] = mapped_column(String(255))
    wf_result: Mapped[WFResult | None] = mapped_column(
        Enum(WFResult, native_enum=False, length=50),
        nullable=True,
    )
    wf_status: Mapped[WFStatus | None] = mapped_column(
        Enum(WFStatus, native_enum=False, length=50),
        nullable=True,
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"))
    operator_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    executor_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    target_id: Mapped[UUID | None] = mapped_column(nullable=True)
    ex_info: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    template: Mapped[FlowTemplateModel] = relationship(
        back_populates="flows",
        lazy="joined",
        innerjoin=True,
    )
    user: Mapped[UserModel] = relationship(foreign_keys=[user_id], lazy="noload")
    operator: Mapped[UserModel | None] = relationship(foreign_keys=[operator_id], lazy="noload")
    executor: Mapped[UserModel | None] = relationship(foreign_keys=[executor_id], lazy="noload")
    records: Mapped[list[FlowRecordModel]] = relationship(
        back_populates="flow",
        lazy="noload",
        order_by="FlowRecordModel.created_at",
    )


class FlowRecordModel(UUIDAuditBase):
    """Record of one committed transition.

    Written in the same transaction as the state change it describes.

    Attributes:
        flow_id: Foreign key to the flow instance.
        step_name: The step that ran.
        from_state: State before the step.
        to_state: State after the step.
        operation: The step's classification tag, if any.
        actor_id: Identity that invoked the step.
        operator_id: Operator recorded on the instance by the step.
        remarks: Remark supplied with the step, if any.
    """

    __tablename__ = "flow_records"
    __table_args__ = (Index("ix_flow_records_flow_id", "flow_id"),)

    flow_id: Mapped[UUID] = mapped_column(ForeignKey("flows.id", ondelete="CASCADE"))
    step_name: Mapped[str] = mapped_column(String(255))
    from_state: Mapped[str] = mapped_column(String(255))
    to_state: Mapped[str] = mapped_column(String(255))
    operation: Mapped[str | None] = mapped_column(String(50), nullable=True)
    actor_id: Mapped[UUID] = mapped_column()
    operator_id: Mapped[UUID | None] = mapped_column(nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    flow: Mapped[FlowModel] = relationship(back_populates="records", lazy="noload")
