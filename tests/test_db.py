"""Integration tests for the database persistence layer.

Tests the SQLAlchemy models, the repositories and the unit of work using an
async SQLite database.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy.orm.exc import StaleDataError

from litestar_flows.core.types import WFResult, WFStatus
from litestar_flows.db.models import (
    DetailModel,
    FlowModel,
    FlowRecordModel,
    FlowTemplateModel,
    ServiceModel,
    UserModel,
)
from litestar_flows.db.repositories import FlowRepository, FlowTemplateRepository
from litestar_flows.db.uow import SQLAlchemyUnitOfWork, is_stale_data_error
from litestar_flows.exceptions import ConflictError
from litestar_flows.flows.work_order import WorkOrderFlow, WorkOrderState

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def template(session_maker: async_sessionmaker[AsyncSession]) -> FlowTemplateModel:
    """A committed work order template row.

    Committed up front so that tests can write through ``async_session``
    without holding the SQLite write lock while other fixtures insert.
    """
    async with session_maker() as session, session.begin():
        model = FlowTemplateModel(
            key=WorkOrderFlow.key,
            name=WorkOrderFlow.name,
            definition_json=WorkOrderFlow.get_definition().to_dict(),
        )
        session.add(model)
    return model


async def _add_flow(
    session: AsyncSession,
    template: FlowTemplateModel,
    owner: UserModel,
    *,
    executor: UserModel | None = None,
    status: WFStatus | None = WFStatus.RUNNING,
) -> FlowModel:
    flow = FlowModel(
        template_id=template.id,
        state=WorkOrderState.PENDING_DISPATCH,
        wf_result=WFResult.RUNNING if status else None,
        wf_status=status,
        user_id=owner.id,
        executor_id=executor.id if executor else None,
        ex_info={},
    )
    session.add(flow)
    await session.flush()
    return flow


# =============================================================================
# Model Tests
# =============================================================================


@pytest.mark.integration
class TestFlowModel:
    """Tests for FlowModel."""

    async def test_create_flow(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
    ) -> None:
        flow = await _add_flow(async_session, template, owner)

        assert flow.id is not None
        assert flow.version == 1
        assert flow.created_at is not None
        assert flow.target_id is None

    async def test_version_bumps_on_update(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
    ) -> None:
        flow = await _add_flow(async_session, template, owner)

        flow.state = WorkOrderState.PENDING_ACCEPT
        await async_session.flush()

        assert flow.version == 2

    async def test_template_loads_with_flow(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        owner: UserModel,
    ) -> None:
        async with session_maker() as session, session.begin():
            template = FlowTemplateModel(key="K", name="K", definition_json={})
            session.add(template)
            await session.flush()
            flow = await _add_flow(session, template, owner)

        async with session_maker() as session:
            loaded = await session.get(FlowModel, flow.id)

        assert loaded is not None
        assert loaded.template.key == "K"

    async def test_nullable_workflow_fields(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
    ) -> None:
        flow = await _add_flow(async_session, template, owner, status=None)

        assert flow.wf_result is None
        assert flow.wf_status is None


# =============================================================================
# Repository Tests
# =============================================================================


@pytest.mark.integration
class TestFlowTemplateRepository:
    """Tests for FlowTemplateRepository."""

    async def test_get_by_key(self, async_session: AsyncSession, template: FlowTemplateModel) -> None:
        repo = FlowTemplateRepository(session=async_session)

        found = await repo.get_by_key(WorkOrderFlow.key)

        assert found is not None
        assert found.id == template.id
        assert await repo.get_by_key("MISSING") is None

    async def test_list_active(self, async_session: AsyncSession, template: FlowTemplateModel) -> None:
        async_session.add(FlowTemplateModel(key="ARCHIVED", name="Archived", is_active=False))
        async_session.add(FlowTemplateModel(key="APPROVAL", name="Approval", is_active=True))
        await async_session.flush()
        repo = FlowTemplateRepository(session=async_session)

        active = await repo.list_active()

        assert [model.key for model in active] == ["APPROVAL", WorkOrderFlow.key]


@pytest.mark.integration
class TestFlowRepository:
    """Tests for FlowRepository."""

    async def test_get_for_update(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
    ) -> None:
        flow = await _add_flow(async_session, template, owner)
        repo = FlowRepository(session=async_session)

        assert await repo.get_for_update(flow.id) is flow
        assert await repo.get_for_update(flow.id, lock=False) is flow
        assert await repo.get_for_update(uuid4()) is None

    async def test_get_with_relations(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
        worker: UserModel,
    ) -> None:
        flow = await _add_flow(async_session, template, owner, executor=worker)
        repo = FlowRepository(session=async_session)

        loaded = await repo.get_with_relations(flow.id)

        assert loaded is not None
        assert loaded.user.name == "owner"
        assert loaded.executor is not None
        assert loaded.executor.name == "worker"
        assert loaded.operator is None

    async def test_find_by_user(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
        admin: UserModel,
    ) -> None:
        await _add_flow(async_session, template, owner)
        await _add_flow(async_session, template, owner, status=WFStatus.OVER)
        await _add_flow(async_session, template, admin)
        repo = FlowRepository(session=async_session)

        assert len(await repo.find_by_user(owner.id)) == 2
        assert len(await repo.find_by_user(owner.id, status=WFStatus.OVER)) == 1

    async def test_find_by_executor(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
        worker: UserModel,
    ) -> None:
        assigned = await _add_flow(async_session, template, owner, executor=worker)
        await _add_flow(async_session, template, owner)
        repo = FlowRepository(session=async_session)

        assert list(await repo.find_by_executor(worker.id)) == [assigned]

    async def test_find_by_status(
        self,
        async_session: AsyncSession,
        template: FlowTemplateModel,
        owner: UserModel,
    ) -> None:
        for _ in range(3):
            await _add_flow(async_session, template, owner)
        await _add_flow(async_session, template, owner, status=WFStatus.CANCELED)
        repo = FlowRepository(session=async_session)

        flows, total = await repo.find_by_status(WFStatus.RUNNING, limit=2)

        assert total == 3
        assert len(flows) == 2


# =============================================================================
# Unit of Work Tests
# =============================================================================


@pytest.mark.integration
class TestUnitOfWork:
    """Tests for SQLAlchemyUnitOfWork."""

    async def test_find_by_model_type(self, async_session: AsyncSession, service: ServiceModel) -> None:
        uow = SQLAlchemyUnitOfWork(async_session)

        found = await uow.find(ServiceModel, id=service.id)

        assert found is not None
        assert found.points == 50
        assert await uow.find(ServiceModel, id=uuid4()) is None

    async def test_repository_for_unknown_model(self, async_session: AsyncSession) -> None:
        uow = SQLAlchemyUnitOfWork(async_session)

        with pytest.raises(KeyError, match="No repository registered for int"):
            uow.repository_for(int)

    async def test_repository_for(self, async_session: AsyncSession) -> None:
        uow = SQLAlchemyUnitOfWork(async_session)

        assert uow.repository_for(FlowModel) is uow.flows
        assert uow.repository_for(FlowRecordModel) is uow.records
        assert uow.repository_for(DetailModel) is uow.details

    async def test_save_flushes(self, async_session: AsyncSession, worker: UserModel) -> None:
        uow = SQLAlchemyUnitOfWork(async_session)

        detail = await uow.save(DetailModel(title="bonus", value=5, user_id=worker.id))

        assert detail.id is not None
        assert [d.id for d in await uow.details.find_by_user(worker.id)] == [detail.id]

    async def test_save_stale_flow_raises_conflict(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        owner: UserModel,
    ) -> None:
        async with session_maker() as session, session.begin():
            template = FlowTemplateModel(key="K", name="K", definition_json={})
            session.add(template)
            await session.flush()
            flow = await _add_flow(session, template, owner)

        async with session_maker() as stale_session:
            stale = await stale_session.get(FlowModel, flow.id)
            assert stale is not None

            async with session_maker() as other, other.begin():
                fresh = await other.get(FlowModel, flow.id)
                assert fresh is not None
                fresh.state = WorkOrderState.PENDING_ACCEPT

            stale.state = WorkOrderState.VOIDED
            with pytest.raises(ConflictError) as exc_info:
                await SQLAlchemyUnitOfWork(stale_session).save(stale)

        assert exc_info.value.instance_id == flow.id
        assert is_stale_data_error(exc_info.value)


@pytest.mark.unit
class TestIsStaleDataError:
    """Tests for is_stale_data_error."""

    def test_direct(self) -> None:
        assert is_stale_data_error(StaleDataError("stale")) is True

    def test_chained(self) -> None:
        outer = RuntimeError("wrapped")
        outer.__cause__ = StaleDataError("stale")

        assert is_stale_data_error(outer) is True

    def test_unrelated(self) -> None:
        assert is_stale_data_error(ValueError("nope")) is False
