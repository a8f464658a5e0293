"""
Base Service.

Shared plumbing for services: store error translation, required-field
checks and logging with the service name attached.

    class NodeService(BaseService):
        async def get_node(self, node_id: str) -> Node:
            return await self._execute_db_operation(
                "get_node", self.tree.require(node_id),
            )
"""

from collections.abc import Awaitable
from typing import Any, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from outliner.backend.core.exceptions import (
    ConflictError,
    StoreFailure,
    ValidationError,
)
from outliner.backend.core.logging import get_logger

T = TypeVar("T")


class BaseService:
    """
    Base class for services.

    The session is optional: a service running on a non-SQL store is
    constructed with None.
    """

    def __init__(self, session: AsyncSession | None) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession | None:
        return self._session

    async def _execute_db_operation(self, operation: str, coro: Awaitable[T]) -> T:
        """
        Await a store call, translating SQLAlchemy failures.

        Unique-key violations become ConflictError and every other
        SQLAlchemy error becomes StoreFailure. ApplicationErrors raised by
        the engine are not touched.
        """
        try:
            return await coro
        except IntegrityError as e:
            self._logger.warning(
                "Database integrity error",
                extra={"operation": operation, "error": str(e)},
            )
            message = str(e).lower()
            if "unique" in message or "duplicate" in message:
                raise ConflictError("Resource already exists") from e
            raise StoreFailure(f"Database constraint violation: {operation}") from e
        except SQLAlchemyError as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise StoreFailure(f"Database operation failed: {operation}") from e

    def _validate_required(self, fields: dict[str, Any], field_names: list[str]) -> None:
        """
        Reject None and blank strings.

        Raises:
            ValidationError: details["missing_fields"] lists every offender
        """
        missing = [
            name for name in field_names
            if fields.get(name) is None
            or (isinstance(fields[name], str) and not fields[name].strip())
        ]
        if missing:
            raise ValidationError(
                "Required fields missing",
                details={"missing_fields": missing},
            )

    def _log_operation(self, operation: str, **context: Any) -> None:
        self._logger.info(operation, extra={"service": self.__class__.__name__, **context})

    def _log_debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, extra={"service": self.__class__.__name__, **context})
