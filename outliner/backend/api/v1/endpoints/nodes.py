"""
Nodes API Endpoints.

REST API endpoints for the outline tree. Static paths are declared ahead
of the /{node_id} routes so they are not captured as ids.
"""

from fastapi import APIRouter, Query, Request
from fastapi.responses import Response

from outliner.backend.core.dependencies import DbSession, RequestId
from outliner.backend.core.exceptions import ValidationError
from outliner.backend.schemas.base import ApiResponse, ResponseMetadata
from outliner.backend.schemas.node import (
    ExportFormat,
    NodeBatchItem,
    NodeCreate,
    NodeMove,
    NodeResponse,
    NodeUpdate,
    NotesUpdate,
    TagCount,
)
from outliner.backend.services.export import MEDIA_TYPES, TreeExporter
from outliner.backend.services.node import NodeService

router = APIRouter()


def _many(nodes, request_id: str) -> ApiResponse[list[NodeResponse]]:
    return ApiResponse(
        data=[NodeResponse.model_validate(node) for node in nodes],
        metadata=ResponseMetadata(request_id=request_id),
    )


def _one(node, request_id: str) -> ApiResponse[NodeResponse]:
    return ApiResponse(
        data=NodeResponse.model_validate(node),
        metadata=ResponseMetadata(request_id=request_id),
    )


@router.get(
    "",
    response_model=ApiResponse[list[NodeResponse]],
    summary="List root nodes",
    description="Get the top-level nodes in position order.",
)
async def list_roots(
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[NodeResponse]]:
    """List root nodes."""
    service = NodeService(db)
    return _many(await service.list_roots(), request_id)


@router.post(
    "",
    response_model=ApiResponse[NodeResponse],
    status_code=201,
    summary="Create a node",
    description=(
        "Create a node under an optional parent. Without a position it is "
        "appended; with one, later siblings shift down."
    ),
)
async def create_node(
    data: NodeCreate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    """Create a new node."""
    service = NodeService(db)
    node = await service.create_node(data)
    return _one(node, request_id)


@router.get(
    "/search",
    response_model=ApiResponse[list[NodeResponse]],
    summary="Search nodes",
    description=(
        "Filter by content, tag and completion. Filters are combined with AND. "
        "q and tag are matched as sent, whitespace included."
    ),
)
async def search_nodes(
    db: DbSession,
    request_id: RequestId,
    q: str | None = Query(default=None, max_length=200, description="Content substring"),
    tag: str | None = Query(default=None, max_length=100, description="Tag substring"),
    completed: bool | None = Query(default=None, description="Completion state"),
) -> ApiResponse[list[NodeResponse]]:
    """Search nodes."""
    service = NodeService(db)
    nodes = await service.search(query=q, tag=tag, completed=completed)
    return _many(nodes, request_id)


@router.get(
    "/starred",
    response_model=ApiResponse[list[NodeResponse]],
    summary="List starred nodes",
)
async def list_starred(
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[NodeResponse]]:
    service = NodeService(db)
    return _many(await service.list_starred(), request_id)


@router.get(
    "/tags",
    response_model=ApiResponse[list[TagCount]],
    summary="Tag usage",
    description="Every tag in use with the number of nodes carrying it.",
)
async def list_tags(
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[TagCount]]:
    service = NodeService(db)
    return ApiResponse(
        data=await service.tag_counts(),
        metadata=ResponseMetadata(request_id=request_id),
    )


@router.get(
    "/export",
    summary="Export the outline",
    description="Download every node as JSON, a Markdown checklist or plain text.",
    response_class=Response,
)
async def export_nodes(
    db: DbSession,
    fmt: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
) -> Response:
    """Export the whole forest."""
    service = NodeService(db)
    body = TreeExporter(await service.list_all()).render(fmt)
    return Response(content=body, media_type=MEDIA_TYPES[fmt])


@router.post(
    "/import",
    response_model=ApiResponse[list[NodeResponse]],
    status_code=201,
    summary="Import an outline",
    description=(
        "Create nodes from a document in one of the export formats, sent as the "
        "raw request body. Top-level items are appended under parent_id, or to "
        "the root group. All nodes are created or none are."
    ),
)
async def import_nodes(
    request: Request,
    db: DbSession,
    request_id: RequestId,
    fmt: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
    parent_id: str | None = Query(default=None, description="Node to import under"),
) -> ApiResponse[list[NodeResponse]]:
    """Import an exported outline."""
    try:
        text = (await request.body()).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ValidationError("Import body must be UTF-8 text") from exc

    service = NodeService(db)
    nodes = await service.import_outline(text, fmt, parent_id=parent_id)
    return _many(nodes, request_id)


@router.post(
    "/batch",
    response_model=ApiResponse[list[NodeResponse]],
    summary="Batch update nodes",
    description="Apply field updates to several nodes. Fails without writing if any id is unknown.",
)
async def batch_update(
    items: list[NodeBatchItem],
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[NodeResponse]]:
    service = NodeService(db)
    nodes = await service.batch_update(items)
    return _many(nodes, request_id)


@router.get(
    "/{node_id}",
    response_model=ApiResponse[NodeResponse],
    summary="Get a node",
)
async def get_node(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    """Get a node by ID."""
    service = NodeService(db)
    return _one(await service.get_node(node_id), request_id)


@router.get(
    "/{node_id}/children",
    response_model=ApiResponse[list[NodeResponse]],
    summary="List children",
)
async def list_children(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[list[NodeResponse]]:
    service = NodeService(db)
    return _many(await service.list_children(node_id), request_id)


@router.put(
    "/{node_id}",
    response_model=ApiResponse[NodeResponse],
    summary="Update a node",
    description="Update content and/or position in place. Siblings are not renumbered.",
)
async def update_node(
    node_id: str,
    data: NodeUpdate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    """Update a node."""
    service = NodeService(db)
    node = await service.update_node(node_id, data)
    return _one(node, request_id)


@router.delete(
    "/{node_id}",
    status_code=204,
    summary="Delete a node",
    description="Permanently delete a node and all of its descendants.",
)
async def delete_node(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> None:
    """Delete a node."""
    service = NodeService(db)
    await service.delete_node(node_id)


@router.put(
    "/{node_id}/move",
    response_model=ApiResponse[NodeResponse],
    summary="Move a node",
    description="Re-parent and/or reorder a node. Moving under a descendant is rejected.",
)
async def move_node(
    node_id: str,
    data: NodeMove,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    service = NodeService(db)
    node = await service.move_node(node_id, data.parent_id, data.position)
    return _one(node, request_id)


@router.patch(
    "/{node_id}/complete",
    response_model=ApiResponse[NodeResponse],
    summary="Toggle completion",
)
async def toggle_complete(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    service = NodeService(db)
    return _one(await service.toggle_complete(node_id), request_id)


@router.patch(
    "/{node_id}/expand",
    response_model=ApiResponse[NodeResponse],
    summary="Toggle expansion",
)
async def toggle_expand(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    service = NodeService(db)
    return _one(await service.toggle_expand(node_id), request_id)


@router.patch(
    "/{node_id}/star",
    response_model=ApiResponse[NodeResponse],
    summary="Toggle star",
)
async def toggle_star(
    node_id: str,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    service = NodeService(db)
    return _one(await service.toggle_star(node_id), request_id)


@router.patch(
    "/{node_id}/notes",
    response_model=ApiResponse[NodeResponse],
    summary="Update notes",
    description="Replace the node's notes; null clears them.",
)
async def update_notes(
    node_id: str,
    data: NotesUpdate,
    db: DbSession,
    request_id: RequestId,
) -> ApiResponse[NodeResponse]:
    service = NodeService(db)
    return _one(await service.update_notes(node_id, data.notes), request_id)
