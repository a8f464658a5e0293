"""
Custom Exceptions.

Application-specific exception classes for consistent error handling.

Tree errors:
    NodeNotFoundError   - referenced node id does not exist
    ParentNotFoundError - supplied parent id does not reference a node
    CycleError          - a move would make a node its own ancestor
    TreeCorruptError    - ancestor walk or subtree walk exceeded its bound

Store errors (retryable):
    StoreFailure        - persistence operation failed, work rolled back
    LockTimeoutError    - a parent-group lock could not be acquired in time
"""


class ApplicationError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: str = "SYS_INTERNAL_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


class NotFoundError(ApplicationError):
    """Raised when a resource cannot be found."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, code="RES_NOT_FOUND")


class NodeNotFoundError(NotFoundError):
    """Raised when a node id does not exist."""

    def __init__(self, node_id: str | None = None, message: str | None = None) -> None:
        self.node_id = node_id
        super().__init__(message or f"Node not found with id: {node_id}")


class ValidationError(ApplicationError):
    """Raised when validation fails."""

    def __init__(self, message: str = "Validation failed", details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message, code="VAL_VALIDATION_ERROR")


class ParentNotFoundError(ApplicationError):
    """Raised when a supplied parent id does not reference an existing node."""

    def __init__(self, parent_id: str) -> None:
        self.parent_id = parent_id
        super().__init__(
            f"Parent node not found with id: {parent_id}",
            code="TREE_PARENT_NOT_FOUND",
        )


class CycleError(ApplicationError):
    """Raised when a move would place a node beneath its own descendant."""

    def __init__(self, node_id: str, parent_id: str) -> None:
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(
            f"Cannot move node {node_id} under {parent_id}: circular reference",
            code="TREE_CYCLE",
        )


class TreeCorruptError(ApplicationError):
    """Raised when a tree walk exceeds its bound or revisits a node."""

    def __init__(self, message: str = "Tree structure is corrupt") -> None:
        super().__init__(message, code="TREE_CORRUPT")


class ConflictError(ApplicationError):
    """Raised when there is a state conflict."""

    def __init__(self, message: str = "Resource conflict") -> None:
        super().__init__(message, code="RES_CONFLICT")


class StoreFailure(ApplicationError):
    """Raised when a persistence operation fails. Safe to retry."""

    def __init__(self, message: str = "Store operation failed", code: str = "SYS_STORE_FAILURE") -> None:
        super().__init__(message, code=code)


class LockTimeoutError(StoreFailure):
    """Raised when a parent-group lock is not acquired within the timeout."""

    def __init__(self, message: str = "Timed out waiting for tree lock") -> None:
        super().__init__(message, code="SYS_LOCK_TIMEOUT")
