"""CLI commands for managing Forest projects and their task trees."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, NoReturn, Optional

import typer

from .config import (
    DEFAULT_CONFIG_NAME,
    ConfigError,
    default_path_name,
    load_config,
    lock_timeout,
    write_config,
)
from .errors import ForestError, ProjectNotFoundError
from .ingest.pipeline import IngestionPipeline, IngestResult
from .memory.metrics import compute_hierarchy_metadata, find_orphaned_tasks
from .memory.store import DocumentStore
from .models import (
    HttpIntelligenceClient,
    IntelligenceUnavailableError,
    OfflineIntelligenceClient,
    SupportsIntelligence,
)
from .projects import ProjectManager
from .telemetry import configure_logging

APP_HELP = "Forest CLI: project storage and task-tree ingestion."

app = typer.Typer(help=APP_HELP)

CONFIG_OPTION = typer.Option(
    DEFAULT_CONFIG_NAME,
    "--config",
    "-c",
    help="Path to the Forest configuration file.",
)
PATH_OPTION = typer.Option(
    None,
    "--path",
    "-p",
    help="Learning path name (defaults to paths.default from the config).",
)


def _load_cli_config(config_path: Path) -> Dict[str, Any]:
    """Load configuration for a command, exiting with a message when it is invalid."""
    try:
        return load_config(config_path)
    except ConfigError as error:
        typer.echo(f"Failed to parse config: {error}", err=True)
        raise typer.Exit(code=1) from error


def _bootstrap(ctx: typer.Context, config: str) -> Dict[str, Any]:
    config_data = _load_cli_config(Path(config))
    logging_cfg = config_data.get("logging") or {}
    level_override = (ctx.obj or {}).get("log_level") if ctx is not None else None
    configure_logging(level_override or logging_cfg.get("level") or "WARNING", logging_cfg.get("file"))
    return config_data


def _open_store(config_data: Dict[str, Any]) -> DocumentStore:
    return DocumentStore.from_config(config_data)


def _fail(error: Exception) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(code=1) from error


def _build_client(config: Dict[str, Any], *, use_remote: bool) -> Optional[SupportsIntelligence]:
    """Select the HTTP collaborator or the offline stub.

    Returns ``None`` when the remote client cannot be configured; the pipeline
    then synthesizes the tree instead.
    """
    section = config.get("intelligence") or {}
    provider = str(section.get("provider") or "offline").strip().lower()
    if use_remote or provider == "http":
        try:
            client = HttpIntelligenceClient.from_config(config)
        except IntelligenceUnavailableError as error:
            typer.echo(f"Remote collaborator unavailable ({error}); using a synthesized tree.")
            return None
        typer.echo(f"Using remote collaborator ({client.model}).")
        return client
    typer.echo("Using offline stub client.")
    return OfflineIntelligenceClient()


def _collaborator_timeout(config: Dict[str, Any]) -> Optional[float]:
    value = (config.get("intelligence") or {}).get("timeout")
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    return float(value)


def _read_response(response_file: Path) -> Any:
    """Return the decoded JSON body of ``response_file``, or its raw text."""
    try:
        text = response_file.read_text(encoding="utf-8")
    except OSError as error:
        raise typer.BadParameter(f"Cannot read {response_file}: {error}") from error
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _report(result: IngestResult) -> None:
    typer.echo(json.dumps(result.to_dict()))
    if result.used_fallback and result.fallback_reason:
        typer.echo(f"Fallback reason: {result.fallback_reason}")


@app.callback()
def main(
    ctx: typer.Context,
    log_level: Optional[str] = typer.Option(
        None,
        "--log-level",
        help="Override logging.level from the config (DEBUG, INFO, WARNING, ...).",
    ),
) -> None:
    ctx.obj = {"log_level": log_level}


@app.command("init-config")
def init_config(
    config: str = CONFIG_OPTION,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing configuration file."),
) -> None:
    """Write the default configuration template."""
    config_path = Path(config)
    if config_path.exists() and not force:
        typer.echo(f"Configuration already exists at {config_path}; pass --force to overwrite.")
        raise typer.Exit(code=1)
    write_config(config_path)
    typer.echo(f"Created configuration at {config_path}.")


@app.command("create-project")
def create_project(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Identifier for the new project."),
    goal: str = typer.Option(..., "--goal", "-g", help="What the project is working towards."),
    context: str = typer.Option("", "--context", help="Free-form background for the goal."),
    wake_time: Optional[str] = typer.Option(None, "--wake-time"),
    sleep_time: Optional[str] = typer.Option(None, "--sleep-time"),
    focus_duration: Optional[str] = typer.Option(None, "--focus-duration"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace an existing project config."),
    config: str = CONFIG_OPTION,
) -> None:
    """Create a project and make it the active one."""
    config_data = _bootstrap(ctx, config)
    preferences = {
        "wake_time": wake_time,
        "sleep_time": sleep_time,
        "focus_duration": focus_duration,
    }
    with _open_store(config_data) as store:
        manager = ProjectManager(
            store,
            lock_timeout=lock_timeout(config_data),
            default_path=default_path_name(config_data),
        )
        try:
            document = manager.create_project(
                project_id,
                goal,
                context,
                {key: value for key, value in preferences.items() if value},
                overwrite=overwrite,
            )
        except ForestError as error:
            _fail(error)
    typer.echo(f"Created project {document['project_id']}: {document['goal']}")


@app.command("list-projects")
def list_projects(ctx: typer.Context, config: str = CONFIG_OPTION) -> None:
    """List known projects, marking the active one."""
    config_data = _bootstrap(ctx, config)
    with _open_store(config_data) as store:
        try:
            summaries = ProjectManager(store).list_projects()
        except ForestError as error:
            _fail(error)
    if not summaries:
        typer.echo("No projects found.")
        return
    for summary in summaries:
        marker = "*" if summary["active"] else "-"
        paths = ", ".join(summary["paths"]) or "no trees"
        typer.echo(f"{marker} {summary['project_id']}: {summary['goal'] or 'unknown goal'} [{paths}]")


@app.command()
def ingest(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project that owns the tree."),
    response_file: Path = typer.Argument(..., help="Stored collaborator response (JSON or text)."),
    path: Optional[str] = PATH_OPTION,
    goal: Optional[str] = typer.Option(None, "--goal", help="Goal used when synthesizing a fallback."),
    context: Optional[str] = typer.Option(None, "--context", help="Context used when synthesizing a fallback."),
    config: str = CONFIG_OPTION,
) -> None:
    """Feed a stored collaborator response through the ingestion pipeline."""
    config_data = _bootstrap(ctx, config)
    response = _read_response(response_file)
    path_name = path or default_path_name(config_data)
    with _open_store(config_data) as store:
        manager = ProjectManager(store, lock_timeout=lock_timeout(config_data))
        project: Dict[str, Any] = {}
        try:
            project = manager.get_project(project_id)
        except ProjectNotFoundError:
            project = {}
        except ForestError as error:
            _fail(error)

        pipeline = IngestionPipeline(store, lock_timeout=lock_timeout(config_data))
        try:
            result = pipeline.ingest(
                project_id,
                path_name,
                goal if goal is not None else str(project.get("goal") or ""),
                context if context is not None else str(project.get("context") or ""),
                response,
            )
            if project:
                manager.register_path(project_id, path_name)
        except ForestError as error:
            _fail(error)
    _report(result)


@app.command("build-tree")
def build_tree(
    ctx: typer.Context,
    project_id: str = typer.Argument(..., help="Project to build a tree for."),
    path: Optional[str] = PATH_OPTION,
    use_remote: bool = typer.Option(
        False,
        "--use-remote/--no-use-remote",
        help="Call the configured HTTP collaborator instead of the offline stub.",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for the collaborator (defaults to intelligence.timeout).",
    ),
    config: str = CONFIG_OPTION,
) -> None:
    """Request a task tree for a project and persist it, falling back on any failure."""
    config_data = _bootstrap(ctx, config)
    path_name = path or default_path_name(config_data)
    with _open_store(config_data) as store:
        manager = ProjectManager(store, lock_timeout=lock_timeout(config_data))
        try:
            project = manager.get_project(project_id)
        except ForestError as error:
            _fail(error)

        client = _build_client(config_data, use_remote=use_remote)
        pipeline = IngestionPipeline(
            store,
            lock_timeout=lock_timeout(config_data),
            collaborator_timeout=_collaborator_timeout(config_data),
        )
        preferences = project.get("life_structure_preferences")
        try:
            result = pipeline.build_tree(
                project_id,
                path_name,
                str(project.get("goal") or ""),
                str(project.get("context") or ""),
                client,
                timeout=timeout,
                preferences=preferences if isinstance(preferences, dict) else None,
            )
            manager.register_path(project_id, path_name)
        except ForestError as error:
            _fail(error)
    _report(result)


@app.command("show-tree")
def show_tree(
    ctx: typer.Context,
    project_id: str = typer.Argument(...),
    path: Optional[str] = PATH_OPTION,
    config: str = CONFIG_OPTION,
) -> None:
    """Print the (structurally repaired) tree document as JSON."""
    config_data = _bootstrap(ctx, config)
    path_name = path or default_path_name(config_data)
    with _open_store(config_data) as store:
        try:
            tree = store.load_tree(project_id, path_name)
        except ForestError as error:
            _fail(error)
    if tree is None:
        typer.echo(f"No tree stored for {project_id}/{path_name}.")
        raise typer.Exit(code=1)
    typer.echo(json.dumps(tree, indent=2, ensure_ascii=False))


@app.command()
def status(
    ctx: typer.Context,
    project_id: str = typer.Argument(...),
    path: Optional[str] = PATH_OPTION,
    config: str = CONFIG_OPTION,
) -> None:
    """Summarize tree counts and report tasks whose branch no longer exists."""
    config_data = _bootstrap(ctx, config)
    path_name = path or default_path_name(config_data)
    with _open_store(config_data) as store:
        try:
            tree = store.load_tree(project_id, path_name)
        except ForestError as error:
            _fail(error)
    if tree is None:
        typer.echo(f"No tree stored for {project_id}/{path_name}.")
        raise typer.Exit(code=1)

    metadata = compute_hierarchy_metadata(tree)
    source = (tree.get("generationContext") or {}).get("source", "unknown")
    typer.echo(f"Tree {project_id}/{path_name} (source: {source})")
    typer.echo(
        f"Branches: {metadata['totalBranches']} | Tasks: {metadata['totalTasks']} | "
        f"Completed: {metadata['completedTasks']}"
    )
    orphans = find_orphaned_tasks(tree)
    if not orphans:
        typer.echo("No orphaned tasks.")
        return
    typer.echo(f"Orphaned tasks: {len(orphans)}")
    for orphan in orphans:
        typer.echo(f"- {orphan['id'] or orphan['index']}: {orphan['title']} (branch {orphan['branch']!r})")


if __name__ == "__main__":
    app()
