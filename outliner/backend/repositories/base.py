"""
Base Repository.

Primary-key lookups and transaction scoping shared by the SQLAlchemy
repositories. A subclass names its model:

    class NodeRepository(BaseRepository[Node]):
        model = Node

Reads refresh rows already in the session (populate_existing). A long-lived
request session would otherwise answer from its identity map, and miss
writes that other sessions committed while this one waited on a lock.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from outliner.backend.core.logging import get_logger
from outliner.backend.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._transaction_depth = 0

    def _select(self, *entities: Any) -> Select:
        return select(*(entities or (self.model,))).execution_options(populate_existing=True)

    async def get_by_id_or_none(self, id: str) -> ModelType | None:
        return await self.session.get(self.model, id, populate_existing=True)

    async def exists(self, id: str) -> bool:
        found = await self.session.scalar(select(self.model.id).where(self.model.id == id))
        return found is not None

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """
        Group several writes so they land together or not at all.

        The outermost block commits when it exits cleanly, so callers that
        hold a lock around it release the lock only after their writes are
        visible to other sessions. If the block raises, the session is
        rolled back and the exception propagates. Nested blocks join the
        outer one and neither commit nor roll back on their own.
        """
        outermost = self._transaction_depth == 0
        self._transaction_depth += 1
        try:
            yield
            if outermost:
                await self.session.commit()
        except Exception:
            if outermost:
                logger.warning(
                    "Rolling back store transaction", extra={"model": self.model.__name__},
                )
                await self.session.rollback()
            raise
        finally:
            self._transaction_depth -= 1
