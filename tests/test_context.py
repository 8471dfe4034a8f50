"""Tests for caller context, options and the extension bag."""

from __future__ import annotations

from uuid import uuid4

import pytest

from litestar_flows.core.context import ActorContext, TransitionOptions
from litestar_flows.core.models import FlowExtInfo, FlowInstanceData
from litestar_flows.core.types import Role, WFResult, WFStatus
from litestar_flows.db.models import FlowModel


@pytest.mark.unit
class TestActorContext:
    """Tests for ActorContext."""

    def test_self_added_for_owner(self) -> None:
        """Test the owner of an instance gains the self role."""
        actor = ActorContext(identity=uuid4(), roles=frozenset({"admin"}))

        assert actor.effective_roles(actor.identity) == {"admin", "self"}

    def test_self_not_added_for_others(self) -> None:
        actor = ActorContext(identity=uuid4(), roles=frozenset({"admin"}))

        assert actor.effective_roles(uuid4()) == {"admin"}
        assert actor.effective_roles(None) == {"admin"}

    def test_static_self_role_is_dropped(self) -> None:
        """Test self can only be derived, never claimed."""
        actor = ActorContext(identity=uuid4(), roles=frozenset({"self", "executor"}))

        assert actor.roles == {"executor"}
        assert not actor.has_role(Role.SELF)

    def test_enum_roles_are_normalized(self) -> None:
        actor = ActorContext(identity=uuid4(), roles=frozenset({Role.ADMIN}))

        assert actor.roles == {"admin"}
        assert actor.has_role("admin")
        assert actor.has_role(Role.ADMIN)

    def test_default_roles(self) -> None:
        actor = ActorContext(identity=uuid4())

        assert actor.roles == frozenset()

    def test_is_immutable(self) -> None:
        actor = ActorContext(identity=uuid4())

        with pytest.raises(AttributeError):
            actor.identity = uuid4()  # type: ignore[misc]


@pytest.mark.unit
class TestTransitionOptions:
    """Tests for TransitionOptions."""

    def test_defaults(self) -> None:
        options = TransitionOptions()

        assert options.operator_id is None
        assert options.executor_id is None
        assert options.remarks is None
        assert options.data == {}

    def test_get(self) -> None:
        options = TransitionOptions(data={"priority": "high"})

        assert options.get("priority") == "high"
        assert options.get("missing") is None
        assert options.get("missing", 3) == 3


@pytest.mark.unit
class TestFlowExtInfo:
    """Tests for FlowExtInfo."""

    def test_empty(self) -> None:
        assert FlowExtInfo.from_dict(None) == FlowExtInfo()
        assert FlowExtInfo.from_dict({}).to_dict() == {}

    def test_with_remark_appends(self) -> None:
        """Test remarks accumulate oldest first without mutating the original."""
        original = FlowExtInfo.from_dict({"remarks": ["first"]})

        updated = original.with_remark("second")

        assert updated.remarks == ("first", "second")
        assert original.remarks == ("first",)

    def test_unknown_keys_pass_through(self) -> None:
        info = FlowExtInfo.from_dict({"channel": "web", "priority": 2})

        data = info.with_remark("note").to_dict()

        assert data == {"channel": "web", "priority": 2, "remarks": ["note"]}

    def test_single_string_remark(self) -> None:
        assert FlowExtInfo.from_dict({"remarks": "legacy"}).remarks == ("legacy",)


@pytest.mark.unit
class TestFlowInstanceData:
    """Tests for FlowInstanceData."""

    def test_from_model(self) -> None:
        owner, executor, target = uuid4(), uuid4(), uuid4()
        model = FlowModel(
            id=uuid4(),
            state="待接单",
            wf_result=WFResult.RUNNING,
            wf_status=WFStatus.RUNNING,
            user_id=owner,
            operator_id=owner,
            executor_id=executor,
            target_id=target,
            ex_info={"remarks": ["urgent"]},
            version=3,
        )

        data = FlowInstanceData.from_model(model, "WORK_ORDER")

        assert data.id == model.id
        assert data.template == "WORK_ORDER"
        assert data.state == "待接单"
        assert data.user_id == owner
        assert data.executor_id == executor
        assert data.target_id == target
        assert data.remarks == ("urgent",)
        assert data.version == 3
