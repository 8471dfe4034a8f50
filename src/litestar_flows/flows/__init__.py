"""Flow templates shipped with litestar-flows."""

from __future__ import annotations

from litestar_flows.flows.work_order import WorkOrderFlow, WorkOrderState, WorkOrderStep

__all__ = ["WorkOrderFlow", "WorkOrderState", "WorkOrderStep"]
