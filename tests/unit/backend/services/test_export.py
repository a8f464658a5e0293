"""
Unit Tests for Outline Export.

Renders hand-built forests; no store involved.
"""

import json
from datetime import datetime

import pytest

from outliner.backend.schemas.node import ExportFormat
from outliner.backend.services.export import MEDIA_TYPES, TreeExporter
from tests.unit.fakes import make_node

EXPORTED_AT = datetime(2025, 3, 14, 9, 30)


@pytest.fixture
def forest():
    # Listed out of order on purpose; the exporter sorts by position.
    return [
        make_node("r1", content="Work", position=1, tags=["job"]),
        make_node("r0", content="Home", position=0),
        make_node("k1", content="Paint fence", parent_id="r0", position=1),
        make_node("k0", content="Fix sink", parent_id="r0", position=0, is_completed=True),
        make_node("g0", content="Buy washer", parent_id="k0", position=0, tags=["shop", "diy"]),
    ]


class TestWalk:
    """Tests for outline ordering."""

    def test_depth_first_in_position_order(self, forest):
        order = [(node.id, depth) for node, depth in TreeExporter(forest).walk()]

        assert order == [("r0", 0), ("k0", 1), ("g0", 2), ("k1", 1), ("r1", 0)]

    def test_orphans_are_treated_as_roots(self):
        nodes = [
            make_node("a", position=0),
            make_node("lost", parent_id="deleted-parent", position=1),
        ]

        order = [(node.id, depth) for node, depth in TreeExporter(nodes).walk()]

        assert order == [("a", 0), ("lost", 0)]

    def test_empty_forest(self):
        assert list(TreeExporter([]).walk()) == []

    def test_deep_chain_does_not_recurse(self):
        nodes = [make_node("n0")]
        nodes += [make_node(f"n{i}", parent_id=f"n{i - 1}") for i in range(1, 2000)]

        depths = [depth for _, depth in TreeExporter(nodes).walk()]

        assert depths == list(range(2000))


class TestMarkdown:
    """Tests for the Markdown checklist."""

    def test_renders_checklist(self, forest):
        text = TreeExporter(forest, exported_at=EXPORTED_AT).to_markdown()

        assert text == (
            "# Outline Export\n"
            "\n"
            "Exported on: 2025-03-14\n"
            "\n"
            "- [ ] Home\n"
            "  - [x] Fix sink\n"
            "    - [ ] Buy washer #shop #diy\n"
            "  - [ ] Paint fence\n"
            "- [ ] Work #job\n"
        )

    def test_empty_content_is_untitled(self):
        text = TreeExporter([make_node("x", content="")], exported_at=EXPORTED_AT).to_markdown()

        assert text.endswith("- [ ] Untitled\n")


class TestText:
    """Tests for the plain-text outline."""

    def test_renders_markers(self, forest):
        lines = TreeExporter(forest, exported_at=EXPORTED_AT).to_text().splitlines()

        assert lines == [
            "Outline Export",
            "Exported on: 2025-03-14",
            "",
            "○ Home",
            "  ✓ Fix sink",
            "    ○ Buy washer #shop #diy",
            "  ○ Paint fence",
            "○ Work #job",
        ]


class TestJson:
    """Tests for the JSON document."""

    def test_document_shape(self, forest):
        document = json.loads(TreeExporter(forest, exported_at=EXPORTED_AT).to_json())

        assert document["version"] == "1.0"
        assert document["exported_at"] == "2025-03-14T09:30:00"
        assert [n["id"] for n in document["nodes"]] == ["r1", "r0", "k1", "k0", "g0"]
        assert document["nodes"][4]["tags"] == ["shop", "diy"]


class TestRender:
    """Tests for format dispatch."""

    @pytest.mark.parametrize(
        "fmt,prefix",
        [
            (ExportFormat.JSON, "{"),
            (ExportFormat.MARKDOWN, "# Outline Export"),
            (ExportFormat.TEXT, "Outline Export"),
        ],
    )
    def test_dispatches_on_format(self, forest, fmt, prefix):
        assert TreeExporter(forest).render(fmt).startswith(prefix)

    def test_every_format_has_media_type(self):
        assert set(MEDIA_TYPES) == set(ExportFormat)
