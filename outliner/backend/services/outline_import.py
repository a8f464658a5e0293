"""
Outline Import.

Parses documents in the export formats back into nodes:

- json: the JSON export document (or any {"nodes": [...]} payload)
- markdown: "- [ ] text #tag" checklist lines, two spaces per level
- text: "○ text" / "✓ text" lines, two spaces per level

Markdown and text lines that are not items (headers, the export date,
blank lines) are skipped. Words starting with # become tags and are cut
from the content.

The parser returns ImportedNode entries with every parent ahead of its
children and siblings in outline order, ready to be attached one by one.
"""

import re
from collections import defaultdict
from collections.abc import Sequence

from pydantic import ValidationError as PydanticValidationError

from outliner.backend.core.exceptions import ValidationError
from outliner.backend.core.logging import get_logger
from outliner.backend.schemas.node import ExportFormat, ImportDocument, ImportedNode

logger = get_logger(__name__)

MARKDOWN_ITEM = re.compile(r"^[-*]\s*\[([ xX])\]\s*(.+)$")
TEXT_ITEM = re.compile(r"^([○✓])\s*(.+)$")
TAG = re.compile(r"#[\w-]+")

INDENT_WIDTH = 2
UNTITLED = "Untitled"


def split_tags(text: str) -> tuple[str, list[str]]:
    """Split "Buy milk #errands" into ("Buy milk", ["errands"])."""
    tags = [match[1:] for match in TAG.findall(text)]
    content = TAG.sub("", text).strip()
    return content or UNTITLED, tags


class OutlineParser:
    """
    Turn an exported document back into an ordered list of nodes.

    Args:
        max_depth: Deepest nesting accepted, counting roots as depth 0
    """

    def __init__(self, max_depth: int) -> None:
        self.max_depth = max_depth

    def parse(self, text: str, fmt: ExportFormat) -> list[ImportedNode]:
        """
        Parse text in the given format.

        Raises:
            ValidationError: If the document is malformed or nests too deep
        """
        if fmt is ExportFormat.JSON:
            items = self.ordered(self.from_json(text))
        elif fmt is ExportFormat.MARKDOWN:
            items = self.from_lines(text, MARKDOWN_ITEM, done_marks={"x", "X"})
        else:
            items = self.from_lines(text, TEXT_ITEM, done_marks={"✓"})
        logger.debug("Outline parsed", extra={"format": fmt.value, "nodes": len(items)})
        return items

    def from_json(self, text: str) -> list[ImportedNode]:
        try:
            document = ImportDocument.model_validate_json(text)
        except PydanticValidationError as exc:
            raise ValidationError(
                "Invalid JSON outline",
                details={
                    "errors": [
                        {
                            "field": ".".join(str(part) for part in error["loc"]),
                            "message": error["msg"],
                        }
                        for error in exc.errors()
                    ]
                },
            ) from exc

        blank = [item.id for item in document.nodes if not item.content.strip()]
        if blank:
            raise ValidationError("Imported nodes need content", details={"blank_ids": blank})
        return document.nodes

    def from_lines(
        self,
        text: str,
        pattern: re.Pattern[str],
        done_marks: set[str],
    ) -> list[ImportedNode]:
        """
        Parse indented item lines. Nesting follows indentation.

        An item's parent is the closest earlier item indented less than it.
        """
        items: list[ImportedNode] = []
        open_items: list[tuple[int, str]] = []
        group_sizes: dict[str | None, int] = defaultdict(int)

        for number, raw in enumerate(text.splitlines(), start=1):
            line = raw.expandtabs(INDENT_WIDTH)
            match = pattern.match(line.strip())
            if match is None:
                continue

            depth = (len(line) - len(line.lstrip())) // INDENT_WIDTH
            while open_items and open_items[-1][0] >= depth:
                open_items.pop()
            if len(open_items) > self.max_depth:
                raise ValidationError(
                    f"Line {number} nests deeper than {self.max_depth} levels",
                    details={"line": number},
                )

            parent_id = open_items[-1][1] if open_items else None
            content, tags = split_tags(match.group(2))
            item = ImportedNode(
                id=str(number),
                parent_id=parent_id,
                position=group_sizes[parent_id],
                content=content,
                is_completed=match.group(1) in done_marks,
                tags=tags,
            )
            group_sizes[parent_id] += 1
            items.append(item)
            open_items.append((depth, item.id))
        return items

    def ordered(self, items: Sequence[ImportedNode]) -> list[ImportedNode]:
        """
        Put parents ahead of children, siblings by (position, id).

        Entries whose parent is not in the document become roots.

        Raises:
            ValidationError: On duplicate ids, parent loops or excess depth
        """
        by_id: dict[str, ImportedNode] = {}
        duplicates = []
        for item in items:
            if item.id in by_id:
                duplicates.append(item.id)
            by_id[item.id] = item
        if duplicates:
            raise ValidationError(
                "Duplicate node ids in import", details={"duplicate_ids": sorted(set(duplicates))}
            )

        children: dict[str | None, list[ImportedNode]] = defaultdict(list)
        for item in items:
            parent = item.parent_id if item.parent_id in by_id else None
            children[parent].append(item)
        for group in children.values():
            group.sort(key=lambda entry: (entry.position, entry.id))

        result: list[ImportedNode] = []
        stack = [(item, 0) for item in reversed(children[None])]
        while stack:
            item, depth = stack.pop()
            if depth > self.max_depth:
                raise ValidationError(
                    f"Import nests deeper than {self.max_depth} levels",
                    details={"node_id": item.id},
                )
            if item.parent_id not in by_id and item.parent_id is not None:
                item = item.model_copy(update={"parent_id": None})
            result.append(item)
            stack.extend((child, depth + 1) for child in reversed(children[item.id]))

        if len(result) != len(items):
            stranded = sorted(set(by_id) - {item.id for item in result})
            raise ValidationError(
                "Import contains a parent loop", details={"node_ids": stranded}
            )
        return result
