"""
Outline Export.

Renders the node forest as a JSON document, a Markdown checklist or an
indented plain-text outline. Nodes whose parent is missing are treated as
roots so nothing is lost from an export.
"""

from collections import defaultdict
from collections.abc import Iterator, Sequence
from datetime import datetime

from outliner.backend.core.logging import get_logger
from outliner.backend.core.utils import utc_now
from outliner.backend.models.node import Node
from outliner.backend.schemas.node import ExportDocument, ExportFormat, NodeResponse

logger = get_logger(__name__)

MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.MARKDOWN: "text/markdown",
    ExportFormat.TEXT: "text/plain",
}


class TreeExporter:
    """Render a flat node list as a document in one of the export formats."""

    def __init__(self, nodes: Sequence[Node], exported_at: datetime | None = None) -> None:
        self.nodes = list(nodes)
        self.exported_at = exported_at or utc_now()

    def render(self, fmt: ExportFormat) -> str:
        logger.debug("Rendering export", extra={"format": fmt.value, "nodes": len(self.nodes)})
        if fmt is ExportFormat.JSON:
            return self.to_json()
        if fmt is ExportFormat.MARKDOWN:
            return self.to_markdown()
        return self.to_text()

    def to_json(self) -> str:
        document = ExportDocument(
            exported_at=self.exported_at,
            nodes=[NodeResponse.model_validate(node) for node in self.nodes],
        )
        return document.model_dump_json(indent=2)

    def to_markdown(self) -> str:
        lines = ["# Outline Export", "", self._exported_on(), ""]
        for node, depth in self.walk():
            checkbox = "[x]" if node.is_completed else "[ ]"
            lines.append(f"{'  ' * depth}- {checkbox} {self._label(node)}")
        return "\n".join(lines) + "\n"

    def to_text(self) -> str:
        lines = ["Outline Export", self._exported_on(), ""]
        for node, depth in self.walk():
            marker = "✓" if node.is_completed else "○"
            lines.append(f"{'  ' * depth}{marker} {self._label(node)}")
        return "\n".join(lines) + "\n"

    def walk(self) -> Iterator[tuple[Node, int]]:
        """
        Yield (node, depth) in outline order.

        Depth-first with an explicit stack; siblings in position order.
        """
        known = {node.id for node in self.nodes}
        children: dict[str | None, list[Node]] = defaultdict(list)
        for node in self.nodes:
            parent = node.parent_id if node.parent_id in known else None
            children[parent].append(node)
        for group in children.values():
            group.sort(key=lambda n: (n.position, n.id))

        stack = [(node, 0) for node in reversed(children[None])]
        visited: set[str] = set()
        while stack:
            node, depth = stack.pop()
            if node.id in visited:
                continue
            visited.add(node.id)
            yield node, depth
            stack.extend((child, depth + 1) for child in reversed(children[node.id]))

    def _exported_on(self) -> str:
        return f"Exported on: {self.exported_at.date().isoformat()}"

    @staticmethod
    def _label(node: Node) -> str:
        label = node.content or "Untitled"
        if node.tags:
            label += " " + " ".join(f"#{tag}" for tag in node.tags)
        return label
