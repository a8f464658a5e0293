"""
Node Schemas.

Pydantic schemas for node API request/response validation.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class NodeCreate(BaseModel):
    """Schema for creating a new node."""

    content: str = Field(
        ...,
        min_length=1,
        description="Node text",
        examples=["Buy groceries"],
    )
    parent_id: str | None = Field(
        default=None,
        description="Parent node id; omit for a root node",
    )
    position: int | None = Field(
        default=None,
        description="Index among siblings; omit to append",
    )
    is_completed: bool = False
    is_expanded: bool = True
    is_starred: bool = False
    tags: list[str] = Field(default_factory=list, examples=[["home", "errands"]])
    notes: str | None = None
    mirror_id: str | None = None


class NodeUpdate(BaseModel):
    """
    Schema for updating a node in place.

    position is written as given, without touching siblings. Use the move
    endpoint to reorder.
    """

    content: str | None = Field(default=None, min_length=1)
    position: int | None = Field(default=None, ge=0)


class NodeMove(BaseModel):
    """Schema for moving a node to a new parent and/or position."""

    parent_id: str | None = Field(
        default=None,
        description="New parent id; null moves the node to the root group",
    )
    position: int | None = Field(
        default=None,
        description="Index in the target group; omit to append",
    )


class NotesUpdate(BaseModel):
    """Schema for replacing a node's notes. Null clears them."""

    notes: str | None = None


class NodeBatchItem(BaseModel):
    """One entry of a batch update. Only fields that are sent are written."""

    id: str
    content: str | None = Field(default=None, min_length=1)
    is_completed: bool | None = None
    is_expanded: bool | None = None
    is_starred: bool | None = None
    notes: str | None = None
    tags: list[str] | None = None


class NodeResponse(BaseModel):
    """Schema for node in API responses."""

    id: str = Field(description="Node unique identifier")
    content: str
    parent_id: str | None
    position: int
    is_completed: bool
    is_expanded: bool
    is_starred: bool
    tags: list[str]
    notes: str | None
    mirror_id: str | None
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")

    model_config = ConfigDict(from_attributes=True)


class TagCount(BaseModel):
    """A tag and the number of nodes carrying it."""

    tag: str
    count: int


class ExportFormat(str, Enum):
    """Supported export formats."""

    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"


class ExportDocument(BaseModel):
    """JSON export payload: a flat list of every node."""

    version: str = "1.0"
    exported_at: datetime
    nodes: list[NodeResponse]


class ImportedNode(BaseModel):
    """
    One node of an imported outline.

    id and parent_id only link entries within the document; stored nodes
    get fresh ids. A parent_id that names no entry makes the node a root
    of the import.
    """

    id: str
    parent_id: str | None = None
    position: int = 0
    content: str = Field(..., min_length=1)
    is_completed: bool = False
    is_expanded: bool = True
    is_starred: bool = False
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    mirror_id: str | None = None


class ImportDocument(BaseModel):
    """JSON import payload. Accepts what the JSON export produces."""

    version: str | None = None
    nodes: list[ImportedNode]
