"""Database persistence layer for litestar-flows.

This module provides SQLAlchemy models, repositories, the transaction-scoped
unit of work and the persistent flow engine.
"""

from __future__ import annotations

from litestar_flows.db.engine import FlowEngine
from litestar_flows.db.models import (
    DetailModel,
    FlowModel,
    FlowRecordModel,
    FlowTemplateModel,
    ServiceModel,
    UserModel,
)
from litestar_flows.db.repositories import (
    DetailRepository,
    FlowRecordRepository,
    FlowRepository,
    FlowTemplateRepository,
    ServiceRepository,
    UserRepository,
)
from litestar_flows.db.uow import SQLAlchemyUnitOfWork

__all__ = [
    "DetailModel",
    "DetailRepository",
    "FlowEngine",
    "FlowModel",
    "FlowRecordModel",
    "FlowRecordRepository",
    "FlowRepository",
    "FlowTemplateModel",
    "FlowTemplateRepository",
    "SQLAlchemyUnitOfWork",
    "ServiceModel",
    "ServiceRepository",
    "UserModel",
    "UserRepository",
]
