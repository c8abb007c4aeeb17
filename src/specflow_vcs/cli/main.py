"""CLI entrypoints for specflow-vcs."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Optional, TypeVar

import typer

from specflow_vcs.app import (
    AppConfigError,
    RuntimeContext,
    build_provisioner,
    build_runtime,
    initialize_config,
    load_runtime_config,
    resolve_workspace,
)
from specflow_vcs.presentation import build_history_view, build_panel_view
from specflow_vcs.util.logging import configure_logging
from specflow_vcs.version_control.base import GitCommit, GitControlError

_T = TypeVar("_T")

app = typer.Typer(help="Version control for specification workspaces.")

WORKSPACE_OPTION = typer.Option(
    None,
    "--workspace",
    "-w",
    help="Path to the workspace. Defaults to the configured workspace.",
)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        help="Logging level (e.g., DEBUG, INFO, WARNING).",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file or directory containing one.",
    ),
    service_url: Optional[str] = typer.Option(
        None,
        "--service-url",
        help="Override the git-control service base URL.",
    ),
) -> None:
    """Configure CLI-level options."""

    configure_logging(log_level)
    ctx.obj = {"config": config, "service_url": service_url}


@app.command()
def init(
    directory: Path = typer.Argument(Path(".")),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Write a default configuration file."""

    try:
        config_path = initialize_config(directory, workspace=workspace)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(f"Created configuration at {config_path}")


@app.command()
def status(ctx: typer.Context, workspace: Optional[Path] = WORKSPACE_OPTION) -> None:
    """Show branch and pending changes of the workspace."""

    runtime, path = _open(ctx, workspace)
    asyncio.run(runtime.binding.bind(path))
    _echo_panel(runtime)


@app.command()
def save(
    ctx: typer.Context,
    message: str = typer.Argument(..., help="Description of the changes."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Save a version: commit pending changes and push when possible."""

    runtime, path = _open(ctx, workspace)
    ok = asyncio.run(_bound(runtime, path, runtime.orchestrator.save_version(message)))
    _finish(runtime, ok, "Version saved.")


@app.command()
def history(
    ctx: typer.Context,
    file: Optional[str] = typer.Option(None, "--file", "-f", help="Limit history to one file."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """List saved versions, most recent first."""

    runtime, path = _open(ctx, workspace)
    asyncio.run(_bound(runtime, path, runtime.orchestrator.view_history(file)))
    view = build_history_view(runtime.orchestrator.state)
    if runtime.orchestrator.state.error:
        typer.echo(f"Error: {runtime.orchestrator.state.error}")
        raise typer.Exit(code=1)
    if view.has_synthetic_entries:
        typer.echo("History is unavailable; showing placeholder entries.")
    if not view.entries:
        typer.echo(view.empty_message or "")
        typer.echo(view.empty_hint or "")
        return
    for entry in view.entries:
        typer.echo(f"{entry.short_hash}  {entry.relative_date:<16}  {entry.author:<20}  {entry.message}")


@app.command()
def show(
    ctx: typer.Context,
    commit_hash: str = typer.Argument(..., help="Commit hash to inspect."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Show the details of one version."""

    runtime, path = _open(ctx, workspace)

    async def _inspect() -> GitCommit | None:
        await runtime.binding.bind(path)
        # Loaded summaries back the lookup when the detail request fails.
        await runtime.orchestrator.view_history()
        return await runtime.orchestrator.view_commit(commit_hash)

    commit = asyncio.run(_inspect())
    if commit is None:
        typer.echo(f"Error: commit {commit_hash} not found.")
        raise typer.Exit(code=1)
    typer.echo(f"commit {commit.hash}")
    typer.echo(f"Author: {commit.author}")
    typer.echo(f"Date:   {commit.date} ({commit.relative_date})")
    typer.echo("")
    typer.echo(f"    {commit.message}")
    if commit.body:
        typer.echo("")
        for line in commit.body.splitlines():
            typer.echo(f"    {line}")
    if commit.changed_files:
        typer.echo("")
        for changed in commit.changed_files:
            typer.echo(f"{changed.status}\t{changed.file}")


@app.command()
def revert(
    ctx: typer.Context,
    commit_hash: str = typer.Argument(..., help="Commit hash to restore."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Restore the workspace to an earlier version."""

    if not yes and not typer.confirm(f"Restore the workspace to {commit_hash}?"):
        typer.echo("Aborted.")
        raise typer.Exit(code=1)
    runtime, path = _open(ctx, workspace)
    ok = asyncio.run(_bound(runtime, path, runtime.orchestrator.revert_to_commit(commit_hash)))
    _finish(runtime, ok, f"Restored {commit_hash}.")


@app.command()
def branch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the new branch."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Create a branch and switch to it."""

    runtime, path = _open(ctx, workspace)
    ok = asyncio.run(_bound(runtime, path, runtime.orchestrator.create_branch(name)))
    _finish(runtime, ok, f"Switched to new branch '{runtime.orchestrator.state.current_branch}'.")


@app.command()
def switch(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Branch to check out."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Switch to an existing branch."""

    runtime, path = _open(ctx, workspace)
    ok = asyncio.run(_bound(runtime, path, runtime.orchestrator.switch_branch(name)))
    _finish(runtime, ok, f"Switched to branch '{runtime.orchestrator.state.current_branch}'.")


@app.command()
def branches(ctx: typer.Context, workspace: Optional[Path] = WORKSPACE_OPTION) -> None:
    """List branches of the workspace repository."""

    runtime, path = _open(ctx, workspace)
    try:
        listing = runtime.client.branches(path)
    except GitControlError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    for info in listing.branches:
        marker = "*" if info.name == listing.current else " "
        typer.echo(f"{marker} {info.name:<30} {info.hash:<9} {info.last_commit}")


@app.command()
def diff(
    ctx: typer.Context,
    file: Optional[str] = typer.Option(None, "--file", "-f", help="Limit the diff to one file."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Print the diff of unsaved changes."""

    runtime, path = _open(ctx, workspace)
    try:
        text = runtime.client.diff(path, file=file)
    except GitControlError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    typer.echo(text or "No unsaved changes.")


@app.command()
def sync(ctx: typer.Context, workspace: Optional[Path] = WORKSPACE_OPTION) -> None:
    """Pull remote changes, then push local ones."""

    runtime, path = _open(ctx, workspace)
    ok = asyncio.run(_bound(runtime, path, runtime.orchestrator.sync_changes()))
    _finish(runtime, ok, "Changes synchronized.")


@app.command()
def review(
    ctx: typer.Context,
    title: str = typer.Argument(..., help="Title of the review request."),
    description: str = typer.Option("", "--description", "-d", help="Review description."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Submit the current branch for review into the main branch."""

    runtime, path = _open(ctx, workspace)
    url = asyncio.run(
        _bound(runtime, path, runtime.orchestrator.submit_for_review(title, description))
    )
    error = runtime.orchestrator.state.error
    if error:
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1)
    typer.echo(f"Review request created: {url}" if url else "Review request created.")


@app.command("team-mode")
def team_mode(
    ctx: typer.Context,
    mode: str = typer.Argument(..., help="on|off"),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Enable or disable branch-based team mode."""

    normalized = mode.strip().lower()
    if normalized not in {"on", "off"}:
        typer.echo("Error: mode must be 'on' or 'off'.")
        raise typer.Exit(code=1)
    runtime = _runtime(ctx)
    orchestrator = runtime.orchestrator
    if normalized == "on":
        path = None
        if workspace or runtime.config.workspace:
            path = resolve_workspace(runtime.config, workspace)
        asyncio.run(_bound(runtime, path, orchestrator.enable_team_mode()))
    else:
        asyncio.run(orchestrator.disable_team_mode())
    typer.echo(f"Team mode {'enabled' if orchestrator.state.team_mode_enabled else 'disabled'}.")


@app.command()
def watch(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(None, "--interval", help="Seconds between polls."),
    count: Optional[int] = typer.Option(None, "--count", help="Stop after this many polls."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Poll the workspace status and print it after every refresh."""

    runtime, path = _open(ctx, workspace)

    async def _watch() -> None:
        await runtime.binding.bind(path)
        await runtime.orchestrator.poll_status(
            interval,
            iterations=count,
            on_refresh=lambda _state: _echo_panel(runtime),
        )

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        typer.echo("Stopped.")


@app.command("repo-init")
def repo_init(
    ctx: typer.Context,
    user_name: Optional[str] = typer.Option(None, "--user-name"),
    user_email: Optional[str] = typer.Option(None, "--user-email"),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Initialize a git repository in the workspace."""

    runtime, path = _open(ctx, workspace)
    provisioner = build_provisioner(runtime, path)
    _provision(lambda: provisioner.initialize(user_name=user_name, user_email=user_email))
    typer.echo("Git repository initialized.")


@app.command("repo-config")
def repo_config(
    ctx: typer.Context,
    user_name: Optional[str] = typer.Option(None, "--user-name"),
    user_email: Optional[str] = typer.Option(None, "--user-email"),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Show or update the repository commit identity."""

    runtime, path = _open(ctx, workspace)
    provisioner = build_provisioner(runtime, path)
    if user_name or user_email:
        current = provisioner.describe()
        _provision(
            lambda: provisioner.configure_identity(
                user_name or current.user_name, user_email or current.user_email
            )
        )
    described = provisioner.describe()
    if not described.initialized:
        typer.echo("Repository not initialized.")
        return
    typer.echo(f"User:   {described.user_name or '-'} <{described.user_email or '-'}>")
    typer.echo(f"Remote: {described.remote_name or '-'} {described.remote_url}")
    typer.echo(f"Branch: {described.current_branch or '-'}")


@app.command("repo-remote")
def repo_remote(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL of the hosted repository."),
    name: str = typer.Option("origin", "--name"),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Connect an existing hosted repository."""

    runtime, path = _open(ctx, workspace)
    provisioner = build_provisioner(runtime, path)
    _provision(lambda: provisioner.connect_remote(url, name=name))
    typer.echo(f"Remote '{name}' connected.")


@app.command("repo-create")
def repo_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the hosted repository."),
    public: bool = typer.Option(False, "--public", help="Create a public repository."),
    workspace: Optional[Path] = WORKSPACE_OPTION,
) -> None:
    """Create a hosted repository and connect it to the workspace."""

    runtime, path = _open(ctx, workspace)
    provisioner = build_provisioner(runtime, path)
    result = _provision(lambda: provisioner.create_remote_repository(name, private=not public))
    typer.echo(f"Repository created: {result.url}" if result.url else "Repository created.")


def _runtime(ctx: typer.Context) -> RuntimeContext:
    options = ctx.obj or {}
    try:
        config = load_runtime_config(options.get("config"), service_url=options.get("service_url"))
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    return build_runtime(config)


def _open(ctx: typer.Context, workspace: Path | None) -> tuple[RuntimeContext, str]:
    runtime = _runtime(ctx)
    try:
        path = resolve_workspace(runtime.config, workspace)
    except AppConfigError as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc
    return runtime, path


async def _bound(runtime: RuntimeContext, path: str | None, action: Awaitable[_T]) -> _T:
    await runtime.binding.bind(path)
    return await action


def _finish(runtime: RuntimeContext, ok: bool, message: str) -> None:
    if not ok:
        error = runtime.orchestrator.state.error or "Operation failed."
        typer.echo(f"Error: {error}")
        raise typer.Exit(code=1)
    typer.echo(message)


def _provision(operation: Callable[[], _T]) -> _T:
    try:
        return operation()
    except (GitControlError, ValueError) as exc:
        typer.echo(f"Error: {exc}")
        raise typer.Exit(code=1) from exc


def _echo_panel(runtime: RuntimeContext) -> None:
    view = build_panel_view(runtime.orchestrator.state)
    if not view.visible:
        typer.echo("No git repository in this workspace.")
        return
    branch_label = view.branch if view.branch_confirmed else f"{view.branch} (unconfirmed)"
    mode = "team" if view.team_mode else "solo"
    typer.echo(f"Branch: {branch_label} [{mode} mode]  ahead {view.ahead}, behind {view.behind}")
    typer.echo(view.changes.headline)
    for entry in view.changes.visible:
        typer.echo(f"  {entry.kind} {entry.display_name}")
    if view.changes.more_label:
        typer.echo(f"  {view.changes.more_label}")
    if view.diff_totals.files:
        typer.echo(
            f"{view.diff_totals.files} files, +{view.diff_totals.additions} "
            f"-{view.diff_totals.deletions}"
        )
    if view.can_submit_review:
        typer.echo(f"Ready for review into '{view.main_branch}'.")
