"""
Store Protocols.

The tree engine and node service depend on this protocol rather than on
SQLAlchemy, so any backend (relational, document, in-memory) can hold the
nodes as long as it honours the ordering and transaction contract.
"""

from contextlib import AbstractAsyncContextManager
from typing import Protocol, runtime_checkable

from outliner.backend.models.node import Node


@runtime_checkable
class NodeStore(Protocol):
    """Durable storage of node records keyed by id."""

    async def get(self, node_id: str) -> Node | None:
        """Return the node, or None when absent."""
        ...

    async def exists(self, node_id: str) -> bool:
        """Return whether a node with this id exists."""
        ...

    async def list_roots(self) -> list[Node]:
        """Root nodes ordered by position, then id."""
        ...

    async def list_children(self, parent_id: str | None) -> list[Node]:
        """Children of parent_id ordered by position, then id. None lists roots."""
        ...

    async def list_all(self) -> list[Node]:
        """Every node, ordered by position, then id."""
        ...

    async def max_position(self, parent_id: str | None) -> int | None:
        """Highest position in the group, or None when it has no members."""
        ...

    async def save(self, node: Node) -> Node:
        """Insert or update by id, refreshing updated_at."""
        ...

    async def delete(self, node_id: str) -> None:
        """Remove a node. Raises NodeNotFoundError when absent."""
        ...

    async def search_by_content(self, text: str) -> list[Node]:
        """Case-insensitive substring match on content."""
        ...

    async def search_by_tag(self, text: str) -> list[Node]:
        """Case-insensitive substring match against any tag."""
        ...

    async def list_by_completed(self, completed: bool) -> list[Node]:
        """Nodes whose completion flag equals `completed`."""
        ...

    async def list_starred(self) -> list[Node]:
        """Starred nodes ordered by position, then id."""
        ...

    def transaction(self) -> AbstractAsyncContextManager[None]:
        """All-or-nothing write scope. Any exception undoes its writes."""
        ...
