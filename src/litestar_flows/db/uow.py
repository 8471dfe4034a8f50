"""Transaction-scoped unit of work.

One :class:`SQLAlchemyUnitOfWork` is created per transition, bound to the
session whose transaction the engine opened. Task handlers receive it as an
explicit argument and do all of their reads and writes through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import inspect
from sqlalchemy.orm.exc import StaleDataError

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
from litestar_flows.exceptions import ConflictError

if TYPE_CHECKING:
    from advanced_alchemy.repository import SQLAlchemyAsyncRepository
    from sqlalchemy.ext.asyncio import AsyncSession

__all__ = ["SQLAlchemyUnitOfWork", "is_stale_data_error"]

ModelT = TypeVar("ModelT")


def is_stale_data_error(exc: BaseException) -> bool:
    """Whether ``exc`` was caused by a failed optimistic version check.

    Walks the ``__cause__``/``__context__`` chain because repository layers
    re-raise driver errors wrapped in their own exception types.
    """
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        if isinstance(current, StaleDataError):
            return True
        seen.add(id(current))
        current = current.__cause__ or current.__context__
    return False


class SQLAlchemyUnitOfWork:
    """Repository access bound to one open transaction.

    Attributes:
        session: The session whose transaction the engine controls.
        templates: Flow template repository.
        flows: Flow instance repository.
        records: Transition record repository.
        users: User repository.
        services: Service repository.
        details: Points ledger repository.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self.templates = FlowTemplateRepository(session=session)
        self.flows = FlowRepository(session=session)
        self.records = FlowRecordRepository(session=session)
        self.users = UserRepository(session=session)
        self.services = ServiceRepository(session=session)
        self.details = DetailRepository(session=session)
        self._repositories: dict[type[Any], SQLAlchemyAsyncRepository[Any]] = {
            FlowTemplateModel: self.templates,
            FlowModel: self.flows,
            FlowRecordModel: self.records,
            UserModel: self.users,
            ServiceModel: self.services,
            DetailModel: self.details,
        }

    def repository_for(self, model_type: type[ModelT]) -> SQLAlchemyAsyncRepository[Any]:
        """Return the repository that manages ``model_type``.

        Raises:
            KeyError: If the model type is not managed by this unit of work.
        """
        try:
            return self._repositories[model_type]
        except KeyError:
            msg = f"No repository registered for {model_type.__name__}"
            raise KeyError(msg) from None

    async def find(self, model_type: type[ModelT], **criteria: Any) -> ModelT | None:
        """Return the single entity matching ``criteria`` or ``None``.

        Args:
            model_type: The model class to query.
            **criteria: Column equality filters, e.g. ``id=user_id``.

        Example:
            >>> user = await uow.find(UserModel, id=flow.executor_id)
        """
        return await self.repository_for(model_type).get_one_or_none(**criteria)

    async def save(self, entity: ModelT) -> ModelT:
        """Stage ``entity`` and flush it to the open transaction.

        Raises:
            ConflictError: If ``entity`` is a flow instance that was changed by
                a concurrent transition since it was read.
        """
        # A failed flush expires the entity, so its key is read beforehand.
        identity = inspect(entity).identity
        self.session.add(entity)
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConflictError(identity[0] if identity else None) from exc
        return entity
