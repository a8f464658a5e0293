# Request and response models
from outliner.backend.schemas.base import ApiResponse, ErrorDetail, ErrorResponse
from outliner.backend.schemas.node import (
    ExportFormat,
    NodeCreate,
    NodeMove,
    NodeResponse,
    NodeUpdate,
)

__all__ = [
    "ApiResponse",
    "ErrorDetail",
    "ErrorResponse",
    "ExportFormat",
    "NodeCreate",
    "NodeMove",
    "NodeResponse",
    "NodeUpdate",
]
