"""Shared test fixtures for litestar-flows test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import uuid4

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from litestar_flows.core.context import ActorContext, TransitionOptions
from litestar_flows.core.types import Role
from litestar_flows.db.engine import FlowEngine
from litestar_flows.db.models import FlowTemplateModel, ServiceModel, UserModel
from litestar_flows.engine.registry import FlowRegistry
from litestar_flows.flows.work_order import WorkOrderFlow, WorkOrderState, WorkOrderStep

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

    from litestar_flows.core.models import FlowInstanceData


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture
async def async_engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """Create an async SQLite engine on a per-test database file.

    A file (rather than ``:memory:``) lets concurrent sessions use separate
    connections against the same data.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'flows.db'}", echo=False)

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(FlowTemplateModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory the engine runs transitions in."""
    return async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Create a standalone session for arranging and inspecting data."""
    async with session_maker() as session:
        yield session
        await session.rollback()


# =============================================================================
# Engine Fixtures
# =============================================================================


class MockEventBus:
    """Mock event bus for testing."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    async def emit(self, event_name: str, **kwargs: Any) -> None:
        self.events.append((event_name, kwargs))

    @property
    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture
def registry() -> FlowRegistry:
    """Create a registry with the work order template loaded."""
    registry = FlowRegistry()
    registry.register(WorkOrderFlow)
    return registry


@pytest.fixture
def event_bus() -> MockEventBus:
    return MockEventBus()


@pytest.fixture
def flow_engine(
    registry: FlowRegistry,
    session_maker: async_sessionmaker[AsyncSession],
    event_bus: MockEventBus,
) -> FlowEngine:
    """Create a flow engine backed by the test database."""
    return FlowEngine(registry=registry, session_maker=session_maker, event_bus=event_bus)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


async def _add_user(session_maker: async_sessionmaker[AsyncSession], name: str, points: int = 0) -> UserModel:
    async with session_maker() as session, session.begin():
        user = UserModel(id=uuid4(), name=name, points=points)
        session.add(user)
    return user


@pytest.fixture
async def owner(session_maker: async_sessionmaker[AsyncSession]) -> UserModel:
    """The user who applies for work orders."""
    return await _add_user(session_maker, "owner")


@pytest.fixture
async def admin(session_maker: async_sessionmaker[AsyncSession]) -> UserModel:
    return await _add_user(session_maker, "admin")


@pytest.fixture
async def worker(session_maker: async_sessionmaker[AsyncSession]) -> UserModel:
    """An executor with an empty points balance."""
    return await _add_user(session_maker, "worker")


@pytest.fixture
async def other_worker(session_maker: async_sessionmaker[AsyncSession]) -> UserModel:
    return await _add_user(session_maker, "other worker")


@pytest.fixture
async def service(session_maker: async_sessionmaker[AsyncSession]) -> ServiceModel:
    """A service request worth 50 points."""
    async with session_maker() as session, session.begin():
        model = ServiceModel(id=uuid4(), title="Fix the boiler", points=50)
        session.add(model)
    return model


@pytest.fixture
def owner_actor(owner: UserModel) -> ActorContext:
    return ActorContext(identity=owner.id)


@pytest.fixture
def admin_actor(admin: UserModel) -> ActorContext:
    return ActorContext(identity=admin.id, roles=frozenset({Role.ADMIN.value}))


@pytest.fixture
def worker_actor(worker: UserModel) -> ActorContext:
    return ActorContext(identity=worker.id, roles=frozenset({Role.EXECUTOR.value}))


@pytest.fixture
def stranger_actor() -> ActorContext:
    """An authenticated caller that neither owns nor administers anything."""
    return ActorContext(identity=uuid4(), roles=frozenset({"viewer"}))


# =============================================================================
# Work Order Helpers
# =============================================================================


class WorkOrderDriver:
    """Moves a work order through its states with the right actors."""

    def __init__(
        self,
        engine: FlowEngine,
        owner: ActorContext,
        admin: ActorContext,
        worker: ActorContext,
        service: ServiceModel,
    ) -> None:
        self.engine = engine
        self.owner = owner
        self.admin = admin
        self.worker = worker
        self.service = service

    async def pending_dispatch(self) -> FlowInstanceData:
        return await self.engine.start(WorkOrderFlow.key, self.owner, target_id=self.service.id)

    async def pending_accept(self) -> FlowInstanceData:
        flow = await self.pending_dispatch()
        return await self.engine.transition(
            flow.id,
            WorkOrderStep.DISPATCH,
            self.admin,
            TransitionOptions(executor_id=self.worker.identity),
        )

    async def refused(self) -> FlowInstanceData:
        flow = await self.pending_accept()
        return await self.engine.transition(flow.id, WorkOrderStep.REFUSE, self.worker)

    async def pending_execute(self) -> FlowInstanceData:
        flow = await self.pending_accept()
        return await self.engine.transition(flow.id, WorkOrderStep.ACCEPT, self.worker)

    async def pending_settle(self) -> FlowInstanceData:
        flow = await self.pending_execute()
        return await self.engine.transition(flow.id, WorkOrderStep.COMPLETE, self.worker)

    async def in_state(self, state: str) -> FlowInstanceData:
        builders = {
            WorkOrderState.PENDING_DISPATCH: self.pending_dispatch,
            WorkOrderState.PENDING_ACCEPT: self.pending_accept,
            WorkOrderState.REFUSED: self.refused,
            WorkOrderState.PENDING_EXECUTE: self.pending_execute,
            WorkOrderState.PENDING_SETTLE: self.pending_settle,
        }
        return await builders[state]()


@pytest.fixture
def driver(
    flow_engine: FlowEngine,
    owner_actor: ActorContext,
    admin_actor: ActorContext,
    worker_actor: ActorContext,
    service: ServiceModel,
) -> WorkOrderDriver:
    return WorkOrderDriver(flow_engine, owner_actor, admin_actor, worker_actor, service)
