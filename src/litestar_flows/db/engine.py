"""Persistent flow engine.

This module provides the engine that executes transitions against a
database. Every call runs in its own session and transaction: the instance
is read with a row lock, the step is validated and authorized, the task
handler mutates the instance (and anything else it needs) through a
transaction-scoped unit of work, and the whole lot commits or rolls back
together.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, TypeVar

from litestar_flows.config import FlowEngineConfig
from litestar_flows.core.context import TransitionOptions
from litestar_flows.core.events import FlowEvent, FlowStarted, FlowTransitioned
from litestar_flows.core.models import FlowExtInfo, FlowInstanceData, FlowRecordData
from litestar_flows.db.models import FlowModel, FlowRecordModel, FlowTemplateModel
from litestar_flows.db.uow import SQLAlchemyUnitOfWork, is_stale_data_error
from litestar_flows.exceptions import (
    ConflictError,
    FlowInstanceNotFoundError,
    FlowsError,
    FlowTemplateNotFoundError,
    TransitionTimeoutError,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from litestar_flows.core.context import ActorContext
    from litestar_flows.core.definition import StepDefinition
    from litestar_flows.core.protocols import EventBus
    from litestar_flows.engine.base import BaseFlow
    from litestar_flows.engine.registry import FlowRegistry

__all__ = ["FlowEngine"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

_Events = list[tuple[str, FlowEvent]]


class FlowEngine:
    """Execution engine for flow transitions with database persistence.

    Attributes:
        registry: The template registry queried on every transition.
        session_maker: Factory for the per-call sessions.
        config: Runtime options.
        event_bus: Optional event bus notified after each commit.

    Example:
        >>> engine = FlowEngine(registry, session_maker)
        >>> flow = await engine.start(FlowTemplateKind.WORK_ORDER, owner, target_id=service.id)
        >>> flow = await engine.transition(flow.id, "派单", admin, TransitionOptions(executor_id=worker.id))
    """

    def __init__(
        self,
        registry: FlowRegistry,
        session_maker: async_sessionmaker[AsyncSession],
        config: FlowEngineConfig | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the flow engine.

        Args:
            registry: The template registry.
            session_maker: Factory producing the sessions transitions run in.
            config: Runtime options; defaults to :class:`FlowEngineConfig`.
            event_bus: Optional event bus for lifecycle events.
        """
        self.registry = registry
        self.session_maker = session_maker
        self.config = config or FlowEngineConfig()
        self.event_bus = event_bus

    async def transition(
        self,
        instance_id: UUID,
        step_name: str,
        actor: ActorContext,
        options: TransitionOptions | None = None,
    ) -> FlowInstanceData:
        """Apply a step to a flow instance.

        Args:
            instance_id: The flow instance to advance.
            step_name: Name of a step declared on the instance's current state.
            actor: The authenticated caller.
            options: Payload for the step's task handler.

        Returns:
            Snapshot of the instance after the committed step.

        Raises:
            FlowInstanceNotFoundError: If the instance does not exist.
            UnknownStateError: If the stored state is not declared by the template.
            InvalidStepError: If the step is not available from the current state.
            UnauthorizedError: If the actor holds none of the step's roles.
            TaskExecutionError: If the task handler fails.
            ConflictError: If a concurrent transition changed the instance first.
            TransitionTimeoutError: If the configured deadline expires.
        """
        prepared = self._prepare_options(options, actor)

        async def work(uow: SQLAlchemyUnitOfWork) -> tuple[FlowInstanceData, _Events]:
            model = await uow.flows.get_for_update(instance_id, lock=self.config.lock_for_update)
            if model is None:
                raise FlowInstanceNotFoundError(instance_id)

            flow = self.registry.get_flow(model.template.key)
            event = await self._execute(uow, flow, model, step_name, actor, prepared)
            return FlowInstanceData.from_model(model, flow.key), [("flow.transitioned", event)]

        return await self._run(instance_id, work)

    async def start(
        self,
        template: str,
        actor: ActorContext,
        *,
        target_id: UUID | None = None,
        step_name: str | None = None,
        options: TransitionOptions | None = None,
        ex_info: Mapping[str, Any] | None = None,
    ) -> FlowInstanceData:
        """Create a flow instance owned by ``actor`` and run its entry step.

        Creation and the entry step share one transaction, so a failing entry
        step leaves no instance behind.

        Args:
            template: Key of a registered template.
            actor: The caller; becomes the instance's owner.
            target_id: Subject entity of the flow.
            step_name: Entry step to run. Defaults to the first step of the
                entry state.
            options: Payload for the entry step's task handler.
            ex_info: Initial content of the extension bag.

        Returns:
            Snapshot of the started instance.
        """
        flow = self.registry.get_flow(template)
        definition = flow.definition
        entry = step_name or definition.states[0].steps[0].name
        prepared = self._prepare_options(options, actor)

        async def work(uow: SQLAlchemyUnitOfWork) -> tuple[FlowInstanceData, _Events]:
            model = await self._new_instance(uow, flow, actor, target_id, ex_info)
            transitioned = await self._execute(uow, flow, model, entry, actor, prepared)
            started = FlowStarted(
                instance_id=model.id,
                timestamp=datetime.now(timezone.utc),
                template=flow.key,
                state=model.state,
                user_id=actor.identity,
            )
            logger.info("Started flow %s (%s) for user %s", model.id, flow.key, actor.identity)
            return FlowInstanceData.from_model(model, flow.key), [
                ("flow.started", started),
                ("flow.transitioned", transitioned),
            ]

        return await self._run(None, work)

    async def create(
        self,
        template: str,
        actor: ActorContext,
        *,
        target_id: UUID | None = None,
        ex_info: Mapping[str, Any] | None = None,
    ) -> FlowInstanceData:
        """Create a draft instance in the entry state without running a step.

        The owner applies it later with an ordinary :meth:`transition`.

        Args:
            template: Key of a registered template.
            actor: The caller; becomes the instance's owner.
            target_id: Subject entity of the flow.
            ex_info: Initial content of the extension bag.

        Returns:
            Snapshot of the draft instance.
        """
        flow = self.registry.get_flow(template)

        async def work(uow: SQLAlchemyUnitOfWork) -> tuple[FlowInstanceData, _Events]:
            model = await self._new_instance(uow, flow, actor, target_id, ex_info)
            started = FlowStarted(
                instance_id=model.id,
                timestamp=datetime.now(timezone.utc),
                template=flow.key,
                state=model.state,
                user_id=actor.identity,
            )
            logger.info("Created draft flow %s (%s) for user %s", model.id, flow.key, actor.identity)
            return FlowInstanceData.from_model(model, flow.key), [("flow.started", started)]

        return await self._run(None, work)

    async def get_instance(self, instance_id: UUID) -> FlowInstanceData:
        """Load a snapshot of a flow instance.

        Raises:
            FlowInstanceNotFoundError: If the instance does not exist.
        """
        async with self.session_maker() as session:
            model = await SQLAlchemyUnitOfWork(session).flows.get_one_or_none(id=instance_id)
            if model is None:
                raise FlowInstanceNotFoundError(instance_id)
            return FlowInstanceData.from_model(model, model.template.key)

    async def available_steps(self, instance_id: UUID, actor: ActorContext) -> list[StepDefinition]:
        """List the steps ``actor`` may invoke on an instance right now.

        Raises:
            FlowInstanceNotFoundError: If the instance does not exist.
        """
        async with self.session_maker() as session:
            model = await SQLAlchemyUnitOfWork(session).flows.get_one_or_none(id=instance_id)
            if model is None:
                raise FlowInstanceNotFoundError(instance_id)
            return self.registry.get_flow(model.template.key).available_steps(model, actor)

    async def history(self, instance_id: UUID) -> list[FlowRecordData]:
        """Return the committed transitions of an instance, oldest first."""
        async with self.session_maker() as session:
            records = await SQLAlchemyUnitOfWork(session).records.find_by_flow(instance_id)
            return [FlowRecordData.from_model(record) for record in records]

    async def sync_templates(self) -> list[str]:
        """Persist a template row for every registered flow.

        Returns:
            Keys of the synchronized templates.
        """
        async with self.session_maker() as session, session.begin():
            uow = SQLAlchemyUnitOfWork(session)
            keys = []
            for definition in self.registry.list_definitions():
                await self._get_or_create_template(uow, self.registry.get_flow(definition.key))
                keys.append(definition.key)
        return keys

    def _prepare_options(self, options: TransitionOptions | None, actor: ActorContext) -> TransitionOptions:
        options = options or TransitionOptions()
        if options.operator_id is None and self.config.operator_defaults_to_actor:
            options = replace(options, operator_id=actor.identity)
        return options

    async def _run(
        self,
        instance_id: UUID | None,
        work: Callable[[SQLAlchemyUnitOfWork], Awaitable[tuple[T, _Events]]],
    ) -> T:
        """Run ``work`` in a fresh transaction, bounded by the configured timeout.

        Events returned by ``work`` are emitted only once the commit succeeded.
        """
        timeout = self.config.transition_timeout
        if timeout is None:
            result, events = await self._in_transaction(instance_id, work)
        else:
            try:
                result, events = await asyncio.wait_for(self._in_transaction(instance_id, work), timeout=timeout)
            except asyncio.TimeoutError as exc:
                logger.warning("Transition on flow %s timed out after %ss", instance_id, timeout)
                raise TransitionTimeoutError(instance_id, timeout) from exc

        await self._emit(events)
        return result

    async def _in_transaction(
        self,
        instance_id: UUID | None,
        work: Callable[[SQLAlchemyUnitOfWork], Awaitable[tuple[T, _Events]]],
    ) -> tuple[T, _Events]:
        try:
            async with self.session_maker() as session, session.begin():
                return await work(SQLAlchemyUnitOfWork(session))
        except Exception as exc:
            if is_stale_data_error(exc):
                logger.warning("Transition on flow %s lost to a concurrent update", instance_id)
                raise ConflictError(instance_id) from exc
            raise

    async def _execute(
        self,
        uow: SQLAlchemyUnitOfWork,
        flow: BaseFlow,
        model: FlowModel,
        step_name: str,
        actor: ActorContext,
        options: TransitionOptions,
    ) -> FlowTransitioned:
        instance_id, from_state = model.id, model.state
        try:
            step = flow.resolve_step(model, step_name, actor)
            await flow.run_task(step, model, options, uow)
        except FlowsError as exc:
            logger.warning("Step %r on flow %s in state %r failed: %s", step_name, instance_id, from_state, exc)
            raise

        if self.config.record_history:
            await uow.save(
                FlowRecordModel(
                    flow_id=model.id,
                    step_name=step.name,
                    from_state=from_state,
                    to_state=model.state,
                    operation=str(step.operation) if step.operation is not None else None,
                    actor_id=actor.identity,
                    operator_id=model.operator_id,
                    remarks=options.remarks,
                )
            )

        logger.info("Flow %s: %r -> %r via %r by %s", model.id, from_state, model.state, step.name, actor.identity)
        return FlowTransitioned(
            instance_id=model.id,
            timestamp=datetime.now(timezone.utc),
            template=flow.key,
            step_name=step.name,
            from_state=from_state,
            to_state=model.state,
            actor_id=actor.identity,
            operation=str(step.operation) if step.operation is not None else None,
        )

    async def _new_instance(
        self,
        uow: SQLAlchemyUnitOfWork,
        flow: BaseFlow,
        actor: ActorContext,
        target_id: UUID | None,
        ex_info: Mapping[str, Any] | None,
    ) -> FlowModel:
        template = await self._get_or_create_template(uow, flow)
        if not template.is_active:
            raise FlowTemplateNotFoundError(template.key)

        model = FlowModel(
            template_id=template.id,
            state=flow.definition.initial_state,
            user_id=actor.identity,
            target_id=target_id,
            ex_info=FlowExtInfo.from_dict(ex_info).to_dict(),
        )
        return await uow.save(model)

    async def _get_or_create_template(self, uow: SQLAlchemyUnitOfWork, flow: BaseFlow) -> FlowTemplateModel:
        """Get the template row of ``flow``, creating or refreshing it as needed."""
        snapshot = flow.definition.to_dict()
        template = await uow.templates.get_by_key(flow.key)

        if template is None:
            logger.debug("Persisting flow template %s", flow.key)
            template = FlowTemplateModel(key=flow.key, name=flow.name, definition_json=snapshot, is_active=True)
            return await uow.save(template)

        if template.definition_json != snapshot or template.name != flow.name:
            logger.debug("Refreshing stored definition of flow template %s", flow.key)
            template.definition_json = snapshot
            template.name = flow.name
            await uow.save(template)
        return template

    async def _emit(self, events: _Events) -> None:
        if self.event_bus is None:
            return
        for name, event in events:
            await self.event_bus.emit(name, event=event)
