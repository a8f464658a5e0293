"""
Unit fixtures. The tree runs on FakeNodeStore; nothing here opens a database.
"""

from unittest.mock import MagicMock

import pytest

from outliner.backend.core.concurrency import ParentGroupLocks
from outliner.backend.core.config_schema import TreeSchema
from outliner.backend.services.node import NodeService
from outliner.backend.services.tree import TreeEngine
from tests.unit.fakes import FakeNodeStore, make_node


@pytest.fixture
def store() -> FakeNodeStore:
    """
    In-memory store holding a small forest:

        r0
          a
            a1
              a1x
            a2
          b
          c
        r1
        r2
    """
    return FakeNodeStore([
        make_node("r0", position=0),
        make_node("r1", position=1),
        make_node("r2", position=2),
        make_node("a", parent_id="r0", position=0),
        make_node("b", parent_id="r0", position=1),
        make_node("c", parent_id="r0", position=2),
        make_node("a1", parent_id="a", position=0),
        make_node("a2", parent_id="a", position=1),
        make_node("a1x", parent_id="a1", position=0),
    ])


@pytest.fixture
def locks() -> ParentGroupLocks:
    return ParentGroupLocks(timeout=0.5)


@pytest.fixture
def engine(store: FakeNodeStore, locks: ParentGroupLocks, tree_config: TreeSchema) -> TreeEngine:
    return TreeEngine(
        store,
        locks,
        max_depth=tree_config.max_depth,
        lock_retries=tree_config.delete_lock_retries,
    )


@pytest.fixture
def service(
    store: FakeNodeStore,
    locks: ParentGroupLocks,
    tree_config: TreeSchema,
) -> NodeService:
    """NodeService wired to the fake store; no database session."""
    return NodeService(None, store=store, locks=locks, tree_config=tree_config)


@pytest.fixture
def mock_logger() -> MagicMock:
    """Stand-in for a module logger; patch it over `module.logger`."""
    return MagicMock()
