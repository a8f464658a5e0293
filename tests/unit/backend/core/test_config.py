"""
Tests for core/config.py.

The happy paths read the project's own config/ directory; failure cases
build a throwaway project under tmp_path and chdir into it.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError as PydanticValidationError

from outliner.backend.core.config import (
    AppConfig,
    Settings,
    find_project_root,
    get_app_config,
    get_database_url,
    get_settings,
    load_yaml_config,
    validate_project_root,
)
from outliner.backend.core.config_schema import (
    ApplicationSchema,
    DatabaseSchema,
    LoggingSchema,
    TreeSchema,
)

REPO_SETTINGS = Path(__file__).resolve().parents[4] / "config" / "settings"
SETTINGS_FILES = ["application.yaml", "database.yaml", "logging.yaml", "tree.yaml"]

POSTGRES_YAML = """\
driver: postgresql+asyncpg
host: db.internal
port: 5432
name: outliner
user: outliner
pool_size: 5
max_overflow: 10
pool_timeout: 30
pool_recycle: 1800
echo: false
create_tables_on_startup: false
"""


@pytest.fixture(autouse=True)
def _reset_cached_config():
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


@pytest.fixture
def scratch_project(tmp_path, monkeypatch):
    """Empty project (marker plus config/settings) as the working directory."""
    (tmp_path / ".project_root").touch()
    (tmp_path / "config" / "settings").mkdir(parents=True)
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DB_PASSWORD", raising=False)
    return tmp_path


def _write(project, name: str, body: str) -> None:
    (project / "config" / "settings" / name).write_text(body)


class TestProjectRoot:

    def test_found_from_repository(self):
        root = find_project_root()
        assert (root / ".project_root").exists()
        assert (root / "config" / "settings").is_dir()

    def test_found_from_subdirectory(self, scratch_project, monkeypatch):
        nested = scratch_project / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert find_project_root() == scratch_project

    def test_missing_marker_raises(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()

    def test_validate_returns_root(self):
        assert validate_project_root() == find_project_root()

    def test_validate_exits_without_marker(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            validate_project_root()


class TestLoadYamlConfig:

    @pytest.mark.parametrize("filename", SETTINGS_FILES)
    def test_project_files_are_non_empty_mappings(self, filename):
        data = load_yaml_config(filename)
        assert isinstance(data, dict) and data

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError, match="Configuration file not found"):
            load_yaml_config("does_not_exist.yaml")

    def test_empty_file_is_empty_dict(self, scratch_project):
        _write(scratch_project, "empty.yaml", "")
        assert load_yaml_config("empty.yaml") == {}


class TestAppConfig:

    def test_each_section_has_its_schema(self):
        config = AppConfig()
        assert isinstance(config.application, ApplicationSchema)
        assert isinstance(config.database, DatabaseSchema)
        assert isinstance(config.logging, LoggingSchema)
        assert isinstance(config.tree, TreeSchema)

    def test_shipped_tree_bounds_are_usable(self):
        tree = AppConfig().tree
        assert tree.max_depth > 0
        assert tree.lock_timeout_seconds > 0
        assert tree.delete_lock_retries >= 1
        assert tree.search_limit > 0

    def test_api_prefix(self):
        assert AppConfig().application.api_prefix == "/api/v1"

    def test_incomplete_file_names_the_file(self, scratch_project):
        _write(scratch_project, "application.yaml", "name: 'Incomplete'")

        with pytest.raises(ValueError, match="Invalid configuration in application.yaml"):
            AppConfig()

    def test_unknown_key_rejected(self):
        data = load_yaml_config("tree.yaml")
        data["max_width"] = 3
        with pytest.raises(PydanticValidationError, match="Extra inputs are not permitted"):
            TreeSchema(**data)

    @pytest.mark.parametrize(
        "field,value",
        [
            ("max_depth", 0),
            ("lock_timeout_seconds", 0),
            ("delete_lock_retries", 0),
            ("search_limit", -1),
        ],
    )
    def test_tree_bounds_must_be_positive(self, field, value):
        data = {**load_yaml_config("tree.yaml"), field: value}
        with pytest.raises(PydanticValidationError):
            TreeSchema(**data)

    def test_log_level_must_be_known(self):
        data = {**load_yaml_config("logging.yaml"), "level": "LOUD"}
        with pytest.raises(PydanticValidationError):
            LoggingSchema(**data)


class TestCachedAccessors:

    def test_settings_cached(self):
        assert isinstance(get_settings(), Settings)
        assert get_settings() is get_settings()

    def test_app_config_cached(self):
        assert isinstance(get_app_config(), AppConfig)
        assert get_app_config() is get_app_config()

    def test_password_read_from_env_file(self, scratch_project):
        (scratch_project / "config" / ".env").write_text("DB_PASSWORD=s3cret\n")

        assert get_settings().db_password == "s3cret"


class TestGetDatabaseUrl:

    def test_sqlite_uses_name_as_path(self):
        db = get_app_config().database
        if not db.driver.startswith("sqlite"):
            pytest.skip("project database is not SQLite")
        assert get_database_url() == f"{db.driver}:///{db.name}"

    def test_server_url_includes_password(self, scratch_project):
        for name in ("application.yaml", "logging.yaml", "tree.yaml"):
            _write(scratch_project, name, (REPO_SETTINGS / name).read_text())
        _write(scratch_project, "database.yaml", POSTGRES_YAML)
        (scratch_project / "config" / ".env").write_text("DB_PASSWORD=pw\n")

        assert get_database_url() == "postgresql+asyncpg://outliner:pw@db.internal:5432/outliner"

