"""Repository implementations for flow persistence.

This module provides async repositories for the flow models using
advanced-alchemy's repository pattern. They are always bound to the session
of the transition that uses them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from advanced_alchemy.filters import LimitOffset, OrderBy
from advanced_alchemy.repository import SQLAlchemyAsyncRepository
from sqlalchemy import and_, select
from sqlalchemy.orm import selectinload

from litestar_flows.db.models import (
    DetailModel,
    FlowModel,
    FlowRecordModel,
    FlowTemplateModel,
    ServiceModel,
    UserModel,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from litestar_flows.core.types import WFStatus

__all__ = [
    "DetailRepository",
    "FlowRecordRepository",
    "FlowRepository",
    "FlowTemplateRepository",
    "ServiceRepository",
    "UserRepository",
]


class FlowTemplateRepository(SQLAlchemyAsyncRepository[FlowTemplateModel]):
    """Repository for persisted flow templates."""

    model_type = FlowTemplateModel

    async def get_by_key(self, key: str) -> FlowTemplateModel | None:
        """Get a template row by its key.

        Args:
            key: The template key.

        Returns:
            The template or None if it was never persisted.
        """
        stmt = select(FlowTemplateModel).where(FlowTemplateModel.key == key)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> Sequence[FlowTemplateModel]:
        """List all active templates ordered by key."""
        stmt = (
            select(FlowTemplateModel)
            .where(FlowTemplateModel.is_active == True)  # noqa: E712
            .order_by(FlowTemplateModel.key)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class FlowRepository(SQLAlchemyAsyncRepository[FlowModel]):
    """Repository for flow instances.

    Provides the locking read used by transitions as well as the usual
    queries by owner, executor and lifecycle phase.
    """

    model_type = FlowModel

    async def get_for_update(self, flow_id: UUID, *, lock: bool = True) -> FlowModel | None:
        """Load an instance for a transition.

        The row is re-read from the database even if the session already holds
        it. With ``lock`` the read takes a row-level exclusive lock
        (``SELECT ... FOR UPDATE``) on backends that support it; the version
        check on write applies either way.

        Args:
            flow_id: The instance ID.
            lock: Whether to lock the row until the transaction ends.

        Returns:
            The instance or None if not found.
        """
        stmt = select(FlowModel).where(FlowModel.id == flow_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update(of=FlowModel)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_with_relations(self, flow_id: UUID) -> FlowModel | None:
        """Re-read an instance together with its owner, operator and executor.

        Args:
            flow_id: The instance ID.

        Returns:
            The instance with user relations loaded, or None.
        """
        stmt = (
            select(FlowModel)
            .where(FlowModel.id == flow_id)
            .options(
                selectinload(FlowModel.user),
                selectinload(FlowModel.operator),
                selectinload(FlowModel.executor),
            )
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_by_user(
        self,
        user_id: UUID,
        status: WFStatus | None = None,
    ) -> Sequence[FlowModel]:
        """Find instances owned by a user.

        Args:
            user_id: The owner ID.
            status: Optional lifecycle filter.

        Returns:
            Instances, newest first.
        """
        conditions = [FlowModel.user_id == user_id]

        if status:
            conditions.append(FlowModel.wf_status == status)

        stmt = select(FlowModel).where(and_(*conditions)).order_by(FlowModel.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_by_executor(
        self,
        executor_id: UUID,
        status: WFStatus | None = None,
    ) -> Sequence[FlowModel]:
        """Find instances currently assigned to an executor.

        Args:
            executor_id: The executor ID.
            status: Optional lifecycle filter.

        Returns:
            Instances, newest first.
        """
        conditions = [FlowModel.executor_id == executor_id]

        if status:
            conditions.append(FlowModel.wf_status == status)

        stmt = select(FlowModel).where(and_(*conditions)).order_by(FlowModel.created_at.desc())
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_by_status(
        self,
        status: WFStatus,
        limit: int = 100,
        offset: int = 0,
    ) -> tuple[Sequence[FlowModel], int]:
        """Find instances in a lifecycle phase.

        Args:
            status: The lifecycle phase.
            limit: Maximum number of results.
            offset: Number of results to skip.

        Returns:
            Tuple of (instances, total_count).
        """
        return await self.list_and_count(
            FlowModel.wf_status == status,
            LimitOffset(limit=limit, offset=offset),
            OrderBy(field_name="created_at", sort_order="desc"),
        )


class FlowRecordRepository(SQLAlchemyAsyncRepository[FlowRecordModel]):
    """Repository for transition records."""

    model_type = FlowRecordModel

    async def find_by_flow(self, flow_id: UUID) -> Sequence[FlowRecordModel]:
        """Find all records of an instance, oldest first.

        Args:
            flow_id: The flow instance ID.

        Returns:
            Transition records in commit order.
        """
        stmt = (
            select(FlowRecordModel)
            .where(FlowRecordModel.flow_id == flow_id)
            .order_by(FlowRecordModel.created_at, FlowRecordModel.id)
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()


class UserRepository(SQLAlchemyAsyncRepository[UserModel]):
    """Repository for users."""

    model_type = UserModel


class ServiceRepository(SQLAlchemyAsyncRepository[ServiceModel]):
    """Repository for service requests."""

    model_type = ServiceModel


class DetailRepository(SQLAlchemyAsyncRepository[DetailModel]):
    """Repository for points ledger entries."""

    model_type = DetailModel

    async def find_by_user(self, user_id: UUID) -> Sequence[DetailModel]:
        """Find the ledger entries of a user, oldest first."""
        stmt = select(DetailModel).where(DetailModel.user_id == user_id).order_by(DetailModel.created_at)
        result = await self.session.execute(stmt)
        return result.scalars().all()
