"""
Configuration Schemas.

One pydantic model per file in config/settings/. AppConfig validates each
file against its model when it loads, so a missing key, a wrong type or a
stray field stops startup with a readable message naming the file.

    ApplicationSchema  application.yaml
    DatabaseSchema     database.yaml
    LoggingSchema      logging.yaml
    TreeSchema         tree.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Rejects keys the schema does not declare."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int = Field(ge=1, le=65535)


class CorsSchema(_StrictBase):
    origins: list[str] = Field(default_factory=list)


class TimeoutsSchema(_StrictBase):
    """Seconds to wait on external dependencies."""

    database: float = Field(gt=0)
    health: float = Field(gt=0)


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    api_prefix: str = Field(pattern=r"^/")
    docs_enabled: bool
    server: ServerSchema
    cors: CorsSchema
    timeouts: TimeoutsSchema


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    """
    Connection settings.

    SQLite drivers read `name` as a file path; the host, port, user and pool
    fields only apply to server databases.
    """

    driver: str
    host: str
    port: int = Field(ge=1, le=65535)
    name: str
    user: str
    pool_size: int = Field(ge=1)
    max_overflow: int = Field(ge=0)
    pool_timeout: int = Field(gt=0)
    pool_recycle: int
    echo: bool
    create_tables_on_startup: bool


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int = Field(gt=0)
    backup_count: int = Field(ge=0)


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    format: Literal["json", "console"]
    handlers: HandlersSchema


# =============================================================================
# tree.yaml
# =============================================================================


class TreeSchema(_StrictBase):
    """Tree engine bounds and lock timing."""

    max_depth: int = Field(gt=0)
    lock_timeout_seconds: float = Field(gt=0)
    delete_lock_retries: int = Field(ge=1)
    search_limit: int = Field(gt=0)
