"""
Annotated dependencies for endpoint signatures.

    async def get_node(node_id: str, db: DbSession, request_id: RequestId): ...
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from outliner.backend.core.database import get_db_session


async def get_request_id(x_request_id: str | None = Header(None)) -> str:
    """The caller's X-Request-ID, or a new UUID when absent."""
    return x_request_id or str(uuid.uuid4())


DbSession = Annotated[AsyncSession, Depends(get_db_session)]
RequestId = Annotated[str, Depends(get_request_id)]
