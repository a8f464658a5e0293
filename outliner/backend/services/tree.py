"""
Tree Invariant Engine.

Owns the structural rules of the node forest:

- Sibling positions under every parent (the root group included) are
  zero-based and contiguous after each operation.
- The parent graph stays acyclic; a node is never its own parent.
- Deleting a node removes its whole subtree, children before parents.

Every read-then-write of a sibling group happens while holding that
group's lock, and every multi-step write runs inside a single store
transaction, so a failure part way through leaves nothing behind.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Hashable, Sequence
from contextlib import asynccontextmanager
from typing import TypeVar

from outliner.backend.core.concurrency import ROOT_GROUP, ParentGroupLocks
from outliner.backend.core.exceptions import (
    CycleError,
    LockTimeoutError,
    NodeNotFoundError,
    ParentNotFoundError,
    TreeCorruptError,
)
from outliner.backend.core.logging import get_logger
from outliner.backend.models.node import Node
from outliner.backend.repositories.protocols import NodeStore

logger = get_logger(__name__)

StateT = TypeVar("StateT")

GroupResolver = Callable[[], Awaitable[tuple[set[Hashable], StateT]]]


def effective_index(requested: int | None, sibling_count: int) -> int:
    """
    Index at which a node lands when inserted among sibling_count others.

    Absent, negative or past-the-end requests append.
    """
    if requested is None or requested < 0 or requested > sibling_count:
        return sibling_count
    return requested


class TreeEngine:
    """
    Position, ancestry and cascade rules over a NodeStore.

    Args:
        store: Node persistence
        locks: Parent-group lock registry
        max_depth: Bound on ancestor walks and subtree depth
        lock_retries: Attempts to settle a lock set that keeps changing
    """

    def __init__(
        self,
        store: NodeStore,
        locks: ParentGroupLocks,
        max_depth: int,
        lock_retries: int = 3,
    ) -> None:
        self.store = store
        self.locks = locks
        self.max_depth = max_depth
        self.lock_retries = lock_retries

    async def require(self, node_id: str) -> Node:
        """Load a node or raise NodeNotFoundError."""
        node = await self.store.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _locked(self, resolve: GroupResolver) -> AsyncIterator[StateT]:
        """
        Hold the groups reported by resolve and yield its state.

        The groups are resolved once without locks to learn what to take,
        then again under the locks. If the second answer needs a group we
        do not hold, the locks are dropped and the cycle repeats.
        """
        for attempt in range(1, self.lock_retries + 1):
            wanted, _ = await resolve()
            async with self.locks.hold(*wanted):
                needed, state = await resolve()
                if needed <= wanted:
                    yield state
                    return
            logger.debug(
                "Sibling groups changed while locking, retrying",
                extra={"attempt": attempt},
            )
        raise LockTimeoutError(
            f"Sibling groups kept changing after {self.lock_retries} attempts"
        )

    @asynccontextmanager
    async def hold_nodes(self, node_ids: Sequence[str]) -> AsyncIterator[list[Node]]:
        """
        Lock the parent groups of the given nodes and yield them in order.

        Every id is checked before anything is yielded, so a caller that
        writes inside the block never sees a partially valid request.

        Raises:
            NodeNotFoundError: If any id does not exist
        """
        async def resolve() -> tuple[set[Hashable], list[Node]]:
            nodes = [await self.store.get(node_id) for node_id in node_ids]
            missing = [
                node_id for node_id, node in zip(node_ids, nodes) if node is None
            ]
            if len(missing) == 1:
                raise NodeNotFoundError(missing[0])
            if missing:
                raise NodeNotFoundError(
                    message=f"Nodes not found with ids: {', '.join(missing)}",
                )
            return {node.parent_id for node in nodes}, nodes

        async with self._locked(resolve) as nodes:
            yield nodes

    # -------------------------------------------------------------------------
    # Position maintenance
    # -------------------------------------------------------------------------

    async def _renumber(self, ordered: Sequence[Node]) -> int:
        changed = 0
        for index, member in enumerate(ordered):
            if member.position != index:
                member.position = index
                await self.store.save(member)
                changed += 1
        return changed

    async def resequence(
        self,
        parent_id: str | None,
        exclude_id: str | None = None,
    ) -> list[Node]:
        """
        Rewrite a sibling group's positions to 0..n-1 in current order.

        Only nodes whose position actually changes are saved. Callers
        must hold the group's lock.

        Args:
            parent_id: Group to renumber (None for roots)
            exclude_id: Node to leave out, e.g. one being moved away

        Returns:
            The group in its new order
        """
        siblings = await self.store.list_children(parent_id)
        ordered = [member for member in siblings if member.id != exclude_id]
        changed = await self._renumber(ordered)
        if changed:
            logger.debug(
                "Sibling group resequenced",
                extra={"parent_id": parent_id, "changed": changed},
            )
        return ordered

    async def insert_at(
        self,
        node: Node,
        parent_id: str | None,
        requested_position: int | None,
    ) -> Node:
        """
        Place node into parent_id's group at the effective index.

        Siblings at or after the index move one slot later; the rest of
        the group is renumbered so it comes out contiguous. The node is
        always saved. Callers must hold the group's lock.
        """
        siblings = [
            member for member in await self.store.list_children(parent_id)
            if member.id != node.id
        ]
        index = effective_index(requested_position, len(siblings))

        await self._renumber(siblings[:index])
        for offset, member in enumerate(siblings[index:], start=index + 1):
            if member.position != offset:
                member.position = offset
                await self.store.save(member)

        node.parent_id = parent_id
        node.position = index
        return await self.store.save(node)

    # -------------------------------------------------------------------------
    # Structural operations
    # -------------------------------------------------------------------------

    async def _attach(self, node: Node, position: int | None) -> Node:
        parent_id = node.parent_id
        if position is None:
            highest = await self.store.max_position(parent_id)
            node.position = 0 if highest is None else highest + 1
            return await self.store.save(node)
        return await self.insert_at(node, parent_id, position)

    async def create(self, node: Node, position: int | None) -> Node:
        """
        Attach a new node to its parent group.

        Without a position the node goes after the current maximum
        (position 0 in an empty group). With one, insert_at rules apply.

        Raises:
            ParentNotFoundError: If node.parent_id names a missing node
        """
        parent_id = node.parent_id
        async with self.locks.hold(parent_id):
            if parent_id is not None and not await self.store.exists(parent_id):
                raise ParentNotFoundError(parent_id)

            async with self.store.transaction():
                return await self._attach(node, position)

    async def create_many(self, parent_id: str | None, nodes: Sequence[Node]) -> list[Node]:
        """
        Append a batch of new nodes under parent_id in one transaction.

        Each node's parent_id is either parent_id or the id of a node that
        comes earlier in the batch. Nodes are appended in batch order, so
        siblings keep the order they are given in. Only parent_id's group
        is locked; the other groups belong to nodes nobody else can see yet.

        Raises:
            ParentNotFoundError: If parent_id, or a node's parent, is unknown
        """
        async with self.locks.hold(parent_id):
            if parent_id is not None and not await self.store.exists(parent_id):
                raise ParentNotFoundError(parent_id)

            placed: set[str] = set()
            created: list[Node] = []
            async with self.store.transaction():
                for node in nodes:
                    if node.parent_id != parent_id and node.parent_id not in placed:
                        raise ParentNotFoundError(node.parent_id)
                    created.append(await self._attach(node, None))
                    placed.add(node.id)

        logger.debug("Nodes grafted", extra={"parent_id": parent_id, "count": len(created)})
        return created

    async def ancestor_chain(self, start_id: str | None) -> list[str]:
        """
        Ids from start_id up to its root, start_id first.

        A dangling parent reference ends the chain like a root would.

        Raises:
            TreeCorruptError: If the chain loops or is longer than max_depth
        """
        chain: list[str] = []
        current = start_id
        while current is not None:
            if current in chain:
                raise TreeCorruptError(f"Parent loop through {current} above {start_id}")
            chain.append(current)
            if len(chain) > self.max_depth:
                raise TreeCorruptError(
                    f"Ancestor chain of {start_id} exceeds {self.max_depth} levels"
                )
            ancestor = await self.store.get(current)
            if ancestor is None:
                break
            current = ancestor.parent_id
        return chain

    async def move(
        self,
        node_id: str,
        new_parent_id: str | None,
        new_position: int | None,
    ) -> Node:
        """
        Relocate a node, within its group or into another one.

        Holds the old and new parent groups, plus every group on the new
        parent's ancestor chain, for the whole operation. Two moves whose
        chains overlap therefore run one after the other, and the cycle
        check sees the chain the write will commit against. The node is
        re-saved even when nothing changes, so repeating a move is
        harmless.

        Raises:
            NodeNotFoundError: If the node does not exist
            ParentNotFoundError: If new_parent_id names a missing node
            CycleError: If new_parent_id is the node or a descendant
        """
        async def resolve() -> tuple[set[Hashable], tuple[Node, list[str]]]:
            node = await self.require(node_id)
            # The parent_id of each chain member lives in the group of the
            # next member up, and the topmost one in the root group.
            chain = await self.ancestor_chain(new_parent_id)
            return {node.parent_id, ROOT_GROUP, *chain}, (node, chain)

        async with self._locked(resolve) as (node, chain):
            if new_parent_id is not None and not await self.store.exists(new_parent_id):
                raise ParentNotFoundError(new_parent_id)
            if node_id in chain:
                raise CycleError(node_id, new_parent_id)

            old_parent_id = node.parent_id
            async with self.store.transaction():
                if old_parent_id != new_parent_id:
                    await self.resequence(old_parent_id, exclude_id=node_id)
                moved = await self.insert_at(node, new_parent_id, new_position)

        logger.debug(
            "Node moved",
            extra={
                "node_id": node_id,
                "from_parent": old_parent_id,
                "to_parent": new_parent_id,
                "position": moved.position,
            },
        )
        return moved

    async def collect_subtree(self, node_id: str) -> list[str]:
        """
        Ids of node_id and all its descendants, every child before its parent.

        Uses an explicit stack. Reversing a depth-first pre-order puts each
        node after all of its descendants.

        Raises:
            TreeCorruptError: If a node is reached twice or depth exceeds max_depth
        """
        preorder: list[str] = []
        seen: set[str] = set()
        stack: list[tuple[str, int]] = [(node_id, 0)]
        while stack:
            current, depth = stack.pop()
            if current in seen:
                raise TreeCorruptError(f"Node {current} reached twice during subtree walk")
            if depth > self.max_depth:
                raise TreeCorruptError(
                    f"Subtree of {node_id} exceeds {self.max_depth} levels"
                )
            seen.add(current)
            preorder.append(current)
            for child in await self.store.list_children(current):
                stack.append((child.id, depth + 1))
        preorder.reverse()
        return preorder

    async def delete_subtree(self, node_id: str) -> int:
        """
        Delete a node together with every descendant.

        Locks the node's sibling group and every group inside the subtree
        for the whole walk, deletes post-order in one transaction, then
        closes the gap in the former sibling group.

        Returns:
            Number of records removed (descendants + 1)

        Raises:
            NodeNotFoundError: If the node does not exist
        """
        async def resolve() -> tuple[set[Hashable], tuple[Node, list[str]]]:
            node = await self.require(node_id)
            doomed = await self.collect_subtree(node_id)
            return {node.parent_id, *doomed}, (node, doomed)

        async with self._locked(resolve) as (node, doomed):
            parent_id = node.parent_id
            async with self.store.transaction():
                for doomed_id in doomed:
                    await self.store.delete(doomed_id)
                await self.resequence(parent_id)

        logger.debug(
            "Subtree deleted",
            extra={"node_id": node_id, "parent_id": parent_id, "removed": len(doomed)},
        )
        return len(doomed)
