#!/usr/bin/env python3
"""
Outliner command-line entry point.

    python run.py --action server --reload -v
    python run.py --action health
    python run.py --action config
    python run.py --action test --test-type unit --coverage
    python run.py --action export --format markdown -o outline.md
"""

import asyncio
import subprocess
import sys
from pathlib import Path
from typing import Any

import click

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from outliner.backend.core.logging import get_logger, log_with_source, setup_logging


def validate_project_root() -> Path:
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--action",
    type=click.Choice(["server", "health", "config", "test", "info", "export"]),
    default="info",
    help="Action to perform.",
)
@click.option("--verbose", "-v", is_flag=True, help="Log at INFO level.")
@click.option("--debug", "-d", is_flag=True, help="Log at DEBUG level.")
@click.option("--host", default=None, help="Bind address (server).")
@click.option("--port", default=None, type=int, help="Bind port (server).")
@click.option("--reload", is_flag=True, help="Restart on code changes (server).")
@click.option(
    "--test-type",
    type=click.Choice(["all", "unit", "integration"]),
    default="all",
    help="Which suite to run (test).",
)
@click.option("--coverage", is_flag=True, help="Collect coverage (test).")
@click.option(
    "--format", "export_format",
    type=click.Choice(["json", "markdown", "text"]),
    default="markdown",
    help="Document format (export).",
)
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write to this file instead of stdout (export).",
)
def main(
    action: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
    test_type: str,
    coverage: bool,
    export_format: str,
    output: Path | None,
) -> None:
    """
    Outliner Backend Entry Point.

    Serve the API, check that the configuration and database are usable,
    run the test suite, or export the outline as JSON, Markdown or text.
    """
    validate_project_root()

    log_level = "DEBUG" if debug else "INFO" if verbose else "WARNING"
    setup_logging(level=log_level, format_type="console")
    logger = get_logger(__name__)
    logger.debug("Running action", extra={"action": action, "log_level": log_level})

    if action == "server":
        run_server(logger, host, port, reload)
    elif action == "health":
        check_health(logger)
    elif action == "config":
        show_config(logger)
    elif action == "test":
        run_tests(logger, test_type, coverage)
    elif action == "export":
        export_outline(logger, export_format, output)
    else:
        show_info(logger)


def run_server(logger: Any, host: str | None, port: int | None, reload: bool) -> None:
    """Start uvicorn on the configured (or overridden) address."""
    from outliner.backend.core.config import get_app_config

    server = get_app_config().application.server
    bind_host = host or server.host
    bind_port = port or server.port

    cmd = [
        sys.executable, "-m", "uvicorn",
        "outliner.backend.main:app",
        "--host", bind_host,
        "--port", str(bind_port),
    ]
    if reload:
        cmd.append("--reload")

    logger.info("Starting server", extra={"host": bind_host, "port": bind_port, "reload": reload})
    click.echo(f"Serving on http://{bind_host}:{bind_port} (Ctrl+C to stop)\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Server exited with an error", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def _check_config() -> str:
    from outliner.backend.core.config import get_app_config

    config = get_app_config()
    return f"{config.application.name}, max_depth={config.tree.max_depth}"


def _check_settings() -> None:
    from outliner.backend.core.config import get_settings

    get_settings()


def _check_app() -> str:
    from outliner.backend.main import get_app

    return f"{len(get_app().routes)} routes"


def _check_database() -> str:
    from outliner.backend.api.health import check_database

    result = asyncio.run(check_database())
    if result["status"] != "healthy":
        raise RuntimeError(result.get("error", "unhealthy"))
    return f"{result['latency_ms']}ms"


HEALTH_CHECKS = (
    ("YAML configuration", _check_config),
    ("Environment settings", _check_settings),
    ("FastAPI application", _check_app),
    ("Database", _check_database),
)


def check_health(logger: Any) -> None:
    """Run each startup dependency and report PASS/FAIL."""
    click.echo("Health Check Results:")
    click.echo("-" * 50)

    failures = 0
    for name, check in HEALTH_CHECKS:
        try:
            detail = check()
        except Exception as e:
            failures += 1
            logger.error("Health check failed", extra={"check": name, "error": str(e)})
            click.echo(f"  {click.style('✗ FAIL', fg='red')}  {name} ({e})")
            continue
        suffix = f" ({detail})" if detail else ""
        click.echo(f"  {click.style('✓ PASS', fg='green')}  {name}{suffix}")

    click.echo("-" * 50)
    if failures:
        click.echo(click.style(f"\n{failures} check(s) failed.", fg="yellow"))
        sys.exit(1)
    click.echo(click.style("\nAll checks passed!", fg="green"))


def show_config(logger: Any) -> None:
    """Print every YAML section as loaded and validated."""
    from outliner.backend.core.config import get_app_config

    try:
        config = get_app_config()
    except (FileNotFoundError, ValueError) as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)

    sections = {
        "Application": config.application,
        "Database": config.database,
        "Logging": config.logging,
        "Tree": config.tree,
    }
    for title, section in sections.items():
        click.echo(f"{title} Settings:")
        click.echo("-" * 40)
        for key, value in section.model_dump().items():
            if isinstance(value, dict):
                click.echo(f"  {key}:")
                for sub_key, sub_value in value.items():
                    click.echo(f"    {sub_key}: {sub_value}")
            else:
                click.echo(f"  {key}: {value}")
        click.echo()


def run_tests(logger: Any, test_type: str, coverage: bool) -> None:
    """Run pytest on the chosen suite and exit with its status."""
    target = {"unit": "tests/unit", "integration": "tests/integration"}.get(test_type, "tests/")
    cmd = [sys.executable, "-m", "pytest", target, "-v"]
    if coverage:
        cmd.extend(["--cov=outliner/backend", "--cov-report=term-missing"])

    logger.info("Running tests", extra={"type": test_type, "coverage": coverage})
    click.echo(f"Running: {' '.join(cmd)}\n")
    sys.exit(subprocess.run(cmd).returncode)


async def _load_export(export_format: str) -> str:
    from outliner.backend.core.config import get_app_config
    from outliner.backend.core.database import create_tables, dispose_engine, get_session_factory
    from outliner.backend.schemas.node import ExportFormat
    from outliner.backend.services.export import TreeExporter
    from outliner.backend.services.node import NodeService

    try:
        if get_app_config().database.create_tables_on_startup:
            await create_tables()
        async with get_session_factory()() as session:
            nodes = await NodeService(session).list_all()
        return TreeExporter(nodes).render(ExportFormat(export_format))
    finally:
        await dispose_engine()


def export_outline(logger: Any, export_format: str, output: Path | None) -> None:
    """Export every node in the configured database."""
    try:
        body = asyncio.run(_load_export(export_format))
    except Exception as e:
        logger.error("Export failed", extra={"error": str(e)})
        click.echo(click.style(f"Export failed: {e}", fg="red"), err=True)
        sys.exit(1)

    if output is None:
        click.echo(body, nl=False)
        return

    output.write_text(body, encoding="utf-8")
    log_with_source(logger, "cli", "info", "Outline exported", format=export_format, path=str(output))
    click.echo(f"Exported to {output}")


def show_info(logger: Any) -> None:
    from outliner.backend.core.config import get_app_config

    click.echo("Outliner Backend")
    click.echo("=" * 40)
    try:
        app_settings = get_app_config().application
        click.echo(f"Name: {app_settings.name}")
        click.echo(f"Version: {app_settings.version}")
        click.echo(f"Description: {app_settings.description}")
    except (FileNotFoundError, ValueError) as e:
        click.echo(click.style(f"Configuration unavailable: {e}", fg="yellow"))

    click.echo()
    click.echo("Actions:")
    click.echo("  --action server   Start the API server")
    click.echo("  --action health   Check configuration and database")
    click.echo("  --action config   Show loaded settings")
    click.echo("  --action test     Run the test suite")
    click.echo("  --action export   Export the outline (json, markdown, text)")
    click.echo("  --action info     Show this information")
    logger.debug("Info displayed")


if __name__ == "__main__":
    main()
