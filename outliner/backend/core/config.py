"""
Configuration Management.

Two sources, both under config/ at the project root:

    settings/*.yaml   application, database, logging and tree settings
    .env              secrets (DB_PASSWORD), read by pydantic-settings

Nothing is hardcoded in code. The project root is the nearest ancestor of
the working directory that holds a .project_root marker.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from outliner.backend.core.config_schema import (
    ApplicationSchema,
    DatabaseSchema,
    LoggingSchema,
    TreeSchema,
)

SchemaT = TypeVar("SchemaT", bound=BaseModel)

PROJECT_MARKER = ".project_root"


def find_project_root() -> Path:
    """Walk up from the working directory to the .project_root marker."""
    for candidate in (Path.cwd(), *Path.cwd().parents):
        if (candidate / PROJECT_MARKER).exists():
            return candidate
    raise RuntimeError(f"Project root not found. Ensure {PROJECT_MARKER} file exists.")


def validate_project_root() -> Path:
    """
    Like find_project_root(), but exits with a message instead of raising.

    For entry scripts, before anything reads configuration.
    """
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Parse config/settings/<filename>. An empty file gives {}."""
    config_path = find_project_root() / "config" / "settings" / filename
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def _load_section(schema_cls: type[SchemaT], filename: str) -> SchemaT:
    try:
        return schema_cls(**load_yaml_config(filename))
    except ValidationError as e:
        raise ValueError(f"Invalid configuration in {filename}:\n{e}") from e


class Settings(BaseSettings):
    """Secrets only. Everything else belongs in YAML."""

    db_password: str = ""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class AppConfig:
    """
    Typed view over the YAML settings.

    All four files are loaded and validated in the constructor, so a bad
    file fails at startup rather than on first use.
    """

    def __init__(self) -> None:
        self._application = _load_section(ApplicationSchema, "application.yaml")
        self._database = _load_section(DatabaseSchema, "database.yaml")
        self._logging = _load_section(LoggingSchema, "logging.yaml")
        self._tree = _load_section(TreeSchema, "tree.yaml")

    @property
    def application(self) -> ApplicationSchema:
        return self._application

    @property
    def database(self) -> DatabaseSchema:
        return self._database

    @property
    def logging(self) -> LoggingSchema:
        return self._logging

    @property
    def tree(self) -> TreeSchema:
        """Depth bound, lock timing and search cap for the tree engine."""
        return self._tree


@lru_cache
def get_settings() -> Settings:
    env_path = find_project_root() / "config" / ".env"
    if env_path.exists():
        return Settings(_env_file=str(env_path))
    return Settings()


@lru_cache
def get_app_config() -> AppConfig:
    return AppConfig()


def get_database_url() -> str:
    """
    Build the SQLAlchemy URL.

    SQLite drivers use `name` as the database path (":memory:" works);
    server drivers combine user, password, host, port and name.
    """
    db = get_app_config().database
    if db.driver.startswith("sqlite"):
        return f"{db.driver}:///{db.name}"
    password = get_settings().db_password
    return f"{db.driver}://{db.user}:{password}@{db.host}:{db.port}/{db.name}"
