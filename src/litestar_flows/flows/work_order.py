"""Service work order flow.

A user applies for a work order about a service request; an administrator
dispatches it to an executor, who accepts or refuses it, carries it out and
marks it complete; an administrator then settles it, which credits the
service's reward points to the executor. The owner or an administrator may
void it while it is still open.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, ClassVar

from litestar_flows.core.definition import StateDefinition, StepDefinition
from litestar_flows.core.models import FlowExtInfo
from litestar_flows.core.types import FlowOperation, FlowTemplateKind, Role, WFResult, WFStatus
from litestar_flows.db.models import DetailModel, ServiceModel, UserModel
from litestar_flows.engine.base import BaseFlow, flow_task
from litestar_flows.exceptions import ConflictError, TaskExecutionError

if TYPE_CHECKING:
    from collections.abc import Sequence

    from litestar_flows.core.context import TransitionOptions
    from litestar_flows.db.models import FlowModel
    from litestar_flows.db.uow import SQLAlchemyUnitOfWork

__all__ = ["POINTS_DETAIL_TITLE", "WorkOrderFlow", "WorkOrderState", "WorkOrderStep"]

logger = logging.getLogger(__name__)

POINTS_DETAIL_TITLE = "完成任务加积分"
"""Ledger title of the points credited when a work order is settled."""


class WorkOrderState:
    """State names of the work order flow."""

    PENDING_APPLY = "待申请"
    PENDING_DISPATCH = "待派单"
    REFUSED = "已拒绝"
    PENDING_ACCEPT = "待接单"
    PENDING_EXECUTE = "待执行"
    PENDING_SETTLE = "待结单"
    SETTLED = "已结单"
    VOIDED = "已作废"


class WorkOrderStep:
    """Step names of the work order flow."""

    APPLY = "申请"
    DISPATCH = "派单"
    REDISPATCH = "重新派单"
    VOID = "作废"
    ACCEPT = "接单"
    REFUSE = "拒绝"
    COMPLETE = "完成"
    SETTLE = "结单"


_S = WorkOrderState
_T = WorkOrderStep
_SELF, _ADMIN, _EXECUTOR = Role.SELF.value, Role.ADMIN.value, Role.EXECUTOR.value


class WorkOrderFlow(BaseFlow):
    """The service work order template."""

    key = FlowTemplateKind.WORK_ORDER.value
    name = "服务工单"
    states: ClassVar[Sequence[StateDefinition]] = (
        StateDefinition(
            _S.PENDING_APPLY,
            (StepDefinition(_T.APPLY, _S.PENDING_DISPATCH, "apply", (_SELF,)),),
        ),
        StateDefinition(
            _S.PENDING_DISPATCH,
            (
                StepDefinition(_T.DISPATCH, _S.PENDING_ACCEPT, "allocation", (_ADMIN,), FlowOperation.ALLOCATION),
                StepDefinition(_T.VOID, _S.VOIDED, "cancel", (_SELF, _ADMIN), FlowOperation.REMARKS),
            ),
        ),
        StateDefinition(
            _S.REFUSED,
            (
                StepDefinition(_T.REDISPATCH, _S.PENDING_ACCEPT, "allocation", (_ADMIN,), FlowOperation.ALLOCATION),
                StepDefinition(_T.VOID, _S.VOIDED, "cancel", (_SELF, _ADMIN), FlowOperation.REMARKS),
            ),
        ),
        StateDefinition(
            _S.PENDING_ACCEPT,
            (
                StepDefinition(_T.ACCEPT, _S.PENDING_EXECUTE, "receipt", (_EXECUTOR,)),
                StepDefinition(_T.REFUSE, _S.REFUSED, "refuse", (_EXECUTOR,), FlowOperation.REMARKS),
                StepDefinition(_T.VOID, _S.VOIDED, "cancel", (_SELF, _ADMIN), FlowOperation.REMARKS),
            ),
        ),
        StateDefinition(
            _S.PENDING_EXECUTE,
            (StepDefinition(_T.COMPLETE, _S.PENDING_SETTLE, "complete", (_EXECUTOR,)),),
        ),
        StateDefinition(
            _S.PENDING_SETTLE,
            (
                StepDefinition(_T.SETTLE, _S.SETTLED, "statement", (_ADMIN,)),
                StepDefinition(_T.VOID, _S.VOIDED, "cancel", (_ADMIN,), FlowOperation.REMARKS),
            ),
        ),
        StateDefinition(_S.SETTLED),
        StateDefinition(_S.VOIDED),
    )

    @flow_task
    async def apply(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        flow.state = step.next_state
        flow.wf_result = WFResult.RUNNING
        flow.wf_status = WFStatus.RUNNING
        await uow.save(flow)

    @flow_task
    async def allocation(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        """Assign the work order to an executor (initial dispatch or re-dispatch)."""
        if options.executor_id is None:
            raise TaskExecutionError(step.name, "no executor given", instance_id=flow.id)
        if await uow.find(UserModel, id=options.executor_id) is None:
            raise TaskExecutionError(step.name, f"executor '{options.executor_id}' not found", instance_id=flow.id)

        flow.state = step.next_state
        flow.operator_id = options.operator_id
        flow.executor_id = options.executor_id
        await uow.save(flow)

    @flow_task
    async def refuse(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        flow.state = step.next_state
        flow.operator_id = options.operator_id
        flow.executor_id = None
        await uow.save(flow)

    @flow_task
    async def receipt(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        flow.state = step.next_state
        flow.operator_id = options.operator_id
        await uow.save(flow)

    @flow_task
    async def complete(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        flow.state = step.next_state
        flow.operator_id = options.operator_id
        await uow.save(flow)

    @flow_task
    async def statement(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        """Settle the work order and credit the service's points to the executor.

        The instance, the executor's balance and the new ledger entry are all
        written in the transition's transaction.
        """
        version = flow.version
        reloaded = await uow.flows.get_with_relations(flow.id)
        if reloaded is None or reloaded.version != version:
            raise ConflictError(flow.id)
        flow = reloaded

        flow.state = step.next_state
        flow.wf_result = WFResult.SUCCESS
        flow.wf_status = WFStatus.OVER
        flow.operator_id = options.operator_id
        await uow.save(flow)

        service = await uow.find(ServiceModel, id=flow.target_id) if flow.target_id is not None else None
        if service is None:
            raise TaskExecutionError(step.name, f"service '{flow.target_id}' not found", instance_id=flow.id)

        if flow.executor_id is None:
            raise TaskExecutionError(step.name, "work order has no executor", instance_id=flow.id)
        user = await uow.find(UserModel, id=flow.executor_id)
        if user is None:
            raise TaskExecutionError(step.name, f"executor '{flow.executor_id}' not found", instance_id=flow.id)

        user.points += service.points
        await uow.save(user)

        await uow.save(DetailModel(title=POINTS_DETAIL_TITLE, value=service.points, user_id=user.id))
        logger.info("Credited %s points to user %s for flow %s", service.points, user.id, flow.id)

    @flow_task
    async def cancel(
        self,
        step: StepDefinition,
        flow: FlowModel,
        options: TransitionOptions,
        uow: SQLAlchemyUnitOfWork,
    ) -> None:
        """Void the work order, appending the caller's remark if one was given."""
        flow.state = step.next_state
        flow.wf_result = WFResult.FAILURE
        flow.wf_status = WFStatus.CANCELED
        flow.operator_id = options.operator_id

        if options.remarks:
            flow.ex_info = FlowExtInfo.from_dict(flow.ex_info).with_remark(options.remarks).to_dict()

        await uow.save(flow)
