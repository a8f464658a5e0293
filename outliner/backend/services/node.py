"""
Node Service.

Business logic layer for outline nodes. Structural changes (create,
move, delete) go through the TreeEngine; field-only changes are
read-modify-write under the node's parent-group lock.
"""

from collections import Counter
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from outliner.backend.core.concurrency import ParentGroupLocks, get_group_locks
from outliner.backend.core.config import get_app_config
from outliner.backend.core.config_schema import TreeSchema
from outliner.backend.core.exceptions import NodeNotFoundError
from outliner.backend.core.utils import utc_now
from outliner.backend.models.node import Node
from outliner.backend.repositories.node import NodeRepository
from outliner.backend.repositories.protocols import NodeStore
from outliner.backend.schemas.node import (
    ExportFormat,
    NodeBatchItem,
    NodeCreate,
    NodeUpdate,
    TagCount,
)
from outliner.backend.services.base import BaseService
from outliner.backend.services.outline_import import OutlineParser
from outliner.backend.services.tree import TreeEngine


class NodeService(BaseService):
    """
    Service for node business logic.

    Args:
        session: Request database session
        store: Node store; defaults to a NodeRepository on the session
        locks: Parent-group locks; defaults to the process-wide registry
        tree_config: Engine bounds; defaults to tree.yaml
    """

    def __init__(
        self,
        session: AsyncSession | None,
        store: NodeStore | None = None,
        locks: ParentGroupLocks | None = None,
        tree_config: TreeSchema | None = None,
    ) -> None:
        super().__init__(session)
        self.store = store if store is not None else NodeRepository(session)
        self.config = tree_config if tree_config is not None else get_app_config().tree
        self.tree = TreeEngine(
            self.store,
            locks if locks is not None else get_group_locks(),
            max_depth=self.config.max_depth,
            lock_retries=self.config.delete_lock_retries,
        )

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_node(self, node_id: str) -> Node:
        """
        Get a node by ID.

        Raises:
            NodeNotFoundError: If node not found
        """
        return await self._execute_db_operation("get_node", self.tree.require(node_id))

    async def list_roots(self) -> list[Node]:
        return await self._execute_db_operation("list_roots", self.store.list_roots())

    async def list_children(self, parent_id: str) -> list[Node]:
        """
        List the children of a node in position order.

        Raises:
            NodeNotFoundError: If the parent does not exist
        """
        if not await self._execute_db_operation(
            "list_children", self.store.exists(parent_id)
        ):
            raise NodeNotFoundError(parent_id)
        return await self._execute_db_operation(
            "list_children", self.store.list_children(parent_id)
        )

    async def list_starred(self) -> list[Node]:
        return await self._execute_db_operation("list_starred", self.store.list_starred())

    async def list_all(self) -> list[Node]:
        return await self._execute_db_operation("list_all", self.store.list_all())

    # -------------------------------------------------------------------------
    # Structural mutations
    # -------------------------------------------------------------------------

    async def create_node(self, data: NodeCreate) -> Node:
        """
        Create a new node.

        Without a position the node is appended after the highest sibling
        position; with one, later siblings shift to make room.

        Raises:
            ValidationError: If content is blank
            ParentNotFoundError: If parent_id names a missing node
        """
        self._validate_required({"content": data.content}, ["content"])
        self._log_operation(
            "Creating node", parent_id=data.parent_id, position=data.position
        )

        node = Node(
            id=str(uuid4()),
            content=data.content,
            parent_id=data.parent_id,
            position=0,
            is_completed=data.is_completed,
            is_expanded=data.is_expanded,
            is_starred=data.is_starred,
            tags=list(data.tags),
            notes=data.notes,
            mirror_id=data.mirror_id,
            created_at=utc_now(),
        )
        node = await self._execute_db_operation(
            "create_node", self.tree.create(node, data.position)
        )

        self._log_debug("Node created", node_id=node.id, position=node.position)
        return node

    async def import_outline(
        self,
        text: str,
        fmt: ExportFormat,
        parent_id: str | None = None,
    ) -> list[Node]:
        """
        Create the nodes described by an exported document.

        Imported top-level nodes are appended under parent_id (the root
        group when None) and nested nodes keep their outline order. Every
        node gets a new id; a mirror_id pointing inside the document is
        carried over, any other is dropped. Nothing is written unless the
        whole document is stored.

        Returns:
            The created nodes, each parent ahead of its children

        Raises:
            ValidationError: If the document cannot be parsed
            ParentNotFoundError: If parent_id names a missing node
        """
        items = OutlineParser(self.config.max_depth).parse(text, fmt)
        self._log_operation(
            "Importing outline", format=fmt.value, parent_id=parent_id, count=len(items)
        )

        new_ids = {item.id: str(uuid4()) for item in items}
        created_at = utc_now()
        nodes = [
            Node(
                id=new_ids[item.id],
                content=item.content,
                parent_id=parent_id if item.parent_id is None else new_ids[item.parent_id],
                position=0,
                is_completed=item.is_completed,
                is_expanded=item.is_expanded,
                is_starred=item.is_starred,
                tags=list(item.tags),
                notes=item.notes,
                mirror_id=new_ids.get(item.mirror_id),
                created_at=created_at,
            )
            for item in items
        ]
        return await self._execute_db_operation(
            "import_outline", self.tree.create_many(parent_id, nodes)
        )

    async def move_node(
        self,
        node_id: str,
        parent_id: str | None,
        position: int | None,
    ) -> Node:
        """
        Move a node under a new parent and/or to a new position.

        Raises:
            NodeNotFoundError: If the node does not exist
            ParentNotFoundError: If parent_id names a missing node
            CycleError: If parent_id is the node or one of its descendants
        """
        self._log_operation(
            "Moving node", node_id=node_id, parent_id=parent_id, position=position
        )
        return await self._execute_db_operation(
            "move_node", self.tree.move(node_id, parent_id, position)
        )

    async def delete_node(self, node_id: str) -> int:
        """
        Delete a node and its whole subtree.

        Returns:
            Number of nodes removed

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        self._log_operation("Deleting node", node_id=node_id)
        removed = await self._execute_db_operation(
            "delete_node", self.tree.delete_subtree(node_id)
        )
        self._log_debug("Subtree removed", node_id=node_id, removed=removed)
        return removed

    # -------------------------------------------------------------------------
    # Field mutations
    # -------------------------------------------------------------------------

    async def update_node(self, node_id: str, data: NodeUpdate) -> Node:
        """
        Update content and/or position in place.

        position is a raw write; siblings are not renumbered.

        Raises:
            ValidationError: If content is blank
            NodeNotFoundError: If node not found
        """
        update_data = data.model_dump(exclude_unset=True, exclude_none=True)
        if "content" in update_data:
            self._validate_required(update_data, ["content"])

        if not update_data:
            return await self.get_node(node_id)

        self._log_operation(
            "Updating node", node_id=node_id, fields=list(update_data.keys())
        )

        async def write() -> Node:
            async with self.tree.hold_nodes([node_id]) as (node,), self.store.transaction():
                for field, value in update_data.items():
                    setattr(node, field, value)
                return await self.store.save(node)

        return await self._execute_db_operation("update_node", write())

    async def _flip(self, node_id: str, field: str) -> Node:
        async def write() -> Node:
            async with self.tree.hold_nodes([node_id]) as (node,), self.store.transaction():
                setattr(node, field, not getattr(node, field))
                return await self.store.save(node)

        node = await self._execute_db_operation(f"toggle_{field}", write())
        self._log_debug("Flag toggled", node_id=node_id, field=field, value=getattr(node, field))
        return node

    async def toggle_complete(self, node_id: str) -> Node:
        return await self._flip(node_id, "is_completed")

    async def toggle_expand(self, node_id: str) -> Node:
        return await self._flip(node_id, "is_expanded")

    async def toggle_star(self, node_id: str) -> Node:
        return await self._flip(node_id, "is_starred")

    async def update_notes(self, node_id: str, notes: str | None) -> Node:
        """Replace a node's notes. None clears them."""
        self._log_operation("Updating notes", node_id=node_id, cleared=notes is None)

        async def write() -> Node:
            async with self.tree.hold_nodes([node_id]) as (node,), self.store.transaction():
                node.notes = notes
                return await self.store.save(node)

        return await self._execute_db_operation("update_notes", write())

    async def batch_update(self, items: list[NodeBatchItem]) -> list[Node]:
        """
        Apply field updates to several nodes at once.

        Every id is checked before anything is written. Fields left out of
        an item are untouched.

        Returns:
            Updated nodes in request order

        Raises:
            ValidationError: If an item sets blank content
            NodeNotFoundError: If any id does not exist; nothing is written
        """
        if not items:
            return []
        for item in items:
            if item.content is not None:
                self._validate_required({"content": item.content}, ["content"])

        self._log_operation("Batch updating nodes", count=len(items))

        async def write() -> list[Node]:
            async with self.tree.hold_nodes([item.id for item in items]) as nodes:
                async with self.store.transaction():
                    updated = []
                    for node, item in zip(nodes, items):
                        changes = item.model_dump(exclude_unset=True, exclude={"id"})
                        for field, value in changes.items():
                            # Only notes may be cleared with an explicit null.
                            if value is None and field != "notes":
                                continue
                            setattr(node, field, list(value) if field == "tags" else value)
                        updated.append(await self.store.save(node))
                    return updated

        return await self._execute_db_operation("batch_update", write())

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def search(
        self,
        query: str | None = None,
        tag: str | None = None,
        completed: bool | None = None,
    ) -> list[Node]:
        """
        Search nodes by content, tag and completion state.

        Supplied filters are combined with AND. query and tag are matched
        as given, surrounding whitespace included; an empty string counts
        as not supplied. With no filter at all the result is empty. Results
        keep the order of the first filter and are capped at tree.search_limit.
        """
        lookups = []
        if query:
            lookups.append(("content", self.store.search_by_content, query))
        if tag:
            lookups.append(("tag", self.store.search_by_tag, tag))
        if completed is not None:
            lookups.append(("completed", self.store.list_by_completed, completed))

        if not lookups:
            return []

        self._log_debug("Searching nodes", filters=[name for name, _, _ in lookups])

        results = []
        for name, lookup, arg in lookups:
            results.append(
                await self._execute_db_operation(f"search_{name}", lookup(arg))
            )

        first, *rest = results
        allowed = [{node.id for node in matches} for matches in rest]
        matches = [
            node for node in first
            if all(node.id in ids for ids in allowed)
        ]
        return matches[: self.config.search_limit]

    async def tag_counts(self) -> list[TagCount]:
        """Every distinct tag with its node count, most used first."""
        nodes = await self.list_all()
        counts = Counter(tag for node in nodes for tag in set(node.tags or []))
        return [
            TagCount(tag=tag, count=count)
            for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        ]
