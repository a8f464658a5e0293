"""
Node Repository.

SQLAlchemy implementation of the NodeStore protocol. Sibling queries are
ordered by (position, id) so ties left by raw position writes resolve the
same way on every read.
"""

from sqlalchemy import func, select

from outliner.backend.core.exceptions import NodeNotFoundError
from outliner.backend.core.utils import utc_now
from outliner.backend.models.node import Node
from outliner.backend.repositories.base import BaseRepository


def _sibling_order() -> tuple:
    return (Node.position.asc(), Node.id.asc())


class NodeRepository(BaseRepository[Node]):
    """
    Repository for the Node model.

    Inherits standard lookups from BaseRepository and adds the
    parent-indexed and search queries the tree engine relies on.
    """

    model = Node

    async def get(self, node_id: str) -> Node | None:
        return await self.get_by_id_or_none(node_id)

    async def list_roots(self) -> list[Node]:
        return await self.list_children(None)

    async def list_children(self, parent_id: str | None) -> list[Node]:
        """
        Get the sibling group under parent_id.

        Args:
            parent_id: Parent node id, or None for the root group

        Returns:
            Nodes ordered by position, ties broken by id
        """
        if parent_id is None:
            condition = Node.parent_id.is_(None)
        else:
            condition = Node.parent_id == parent_id
        result = await self.session.execute(
            self._select().where(condition).order_by(*_sibling_order())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[Node]:
        result = await self.session.execute(
            self._select().order_by(*_sibling_order())
        )
        return list(result.scalars().all())

    async def max_position(self, parent_id: str | None) -> int | None:
        """Highest position among parent_id's children, None when empty."""
        if parent_id is None:
            condition = Node.parent_id.is_(None)
        else:
            condition = Node.parent_id == parent_id
        result = await self.session.execute(
            select(func.max(Node.position)).where(condition)
        )
        return result.scalar_one_or_none()

    async def save(self, node: Node) -> Node:
        """
        Insert or update a node.

        updated_at is stamped on every save, including saves that change
        no other column.
        """
        node.updated_at = utc_now()
        self.session.add(node)
        await self.session.flush()
        return node

    async def delete(self, node_id: str) -> None:
        """
        Delete a node by id.

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        node = await self.get_by_id_or_none(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        await self.session.delete(node)
        await self.session.flush()

    async def search_by_content(self, text: str) -> list[Node]:
        """
        Search node content (case-insensitive substring).

        Args:
            text: Substring to look for; LIKE wildcards are matched literally

        Returns:
            Matching nodes, oldest first
        """
        stmt = (
            self._select()
            .where(Node.content.icontains(text, autoescape=True))
            .order_by(Node.created_at.asc(), Node.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def search_by_tag(self, text: str) -> list[Node]:
        """
        Search tags (case-insensitive substring against any tag).

        Tags are stored as a JSON list, which has no portable element
        query, so the match runs over the loaded rows.
        """
        needle = text.lower()
        result = await self.session.execute(
            self._select().order_by(Node.created_at.asc(), Node.id.asc())
        )
        return [
            node for node in result.scalars().all()
            if any(needle in tag.lower() for tag in node.tags or [])
        ]

    async def list_by_completed(self, completed: bool) -> list[Node]:
        stmt = (
            self._select()
            .where(Node.is_completed == completed)
            .order_by(*_sibling_order())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_starred(self) -> list[Node]:
        result = await self.session.execute(
            self._select()
            .where(Node.is_starred == True)  # noqa: E712
            .order_by(*_sibling_order())
        )
        return list(result.scalars().all())
