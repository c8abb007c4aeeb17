"""Version control orchestrator coordinating git-control calls for a workspace."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, TypeVar

from specflow_vcs.config import HistoryConfig, VersionControlConfig
from specflow_vcs.credentials import AI_KEY_ALIASES, GIT_TOKEN_ALIASES, CredentialStore
from specflow_vcs.storage import KeyValueStore, StorageError, load_team_mode, save_team_mode
from specflow_vcs.util.logging import get_logger
from specflow_vcs.util.observability import ObservabilityManager, create_observability_manager
from specflow_vcs.version_control.base import (
    GitCommit,
    GitDiff,
    GitStatus,
    RepositoryNotFoundError,
)
from specflow_vcs.version_control.client import GitControlClient
from specflow_vcs.workspace.binding import WorkspaceBinding

BUSY_MESSAGE = "Another version control operation is still in progress."

_T = TypeVar("_T")


@dataclass(frozen=True)
class BranchRef:
    """Branch identity that may still await confirmation.

    A tentative ref is written optimistically after a branch create/switch and
    replaced by a confirmed one once a status refresh reports the real branch.
    """

    name: str
    tentative: bool = False


@dataclass(frozen=True)
class VersionControlState:
    """Snapshot of the repository as seen by the orchestrator.

    Attributes:
        is_loading: True while any operation is in flight.
        error: Last user-visible failure.
        status: Current status snapshot, None when no repository exists.
        is_git_initialized: Whether the last status fetch found a repository.
        team_mode_enabled: Persisted solo/team preference.
        branch: Current branch, possibly tentative.
        main_branch: Trunk used as the base of review requests.
        commits: History entries, most recent first.
        selected_commit: Commit currently inspected in the history view.
        pending_changes: Per-file diff summaries from the last status fetch.
        is_history_open: Whether the history view is open.
        is_panel_open: Whether the version control panel is open.
    """

    is_loading: bool = False
    error: str | None = None
    status: GitStatus | None = None
    is_git_initialized: bool = False
    team_mode_enabled: bool = False
    branch: BranchRef = field(default_factory=lambda: BranchRef("main"))
    main_branch: str = "main"
    commits: tuple[GitCommit, ...] = ()
    selected_commit: GitCommit | None = None
    pending_changes: tuple[GitDiff, ...] = ()
    is_history_open: bool = False
    is_panel_open: bool = False

    @property
    def current_branch(self) -> str:
        return self.branch.name

    @property
    def has_changes(self) -> bool:
        return self.status is not None and not self.status.is_clean

    @property
    def total_changes(self) -> int:
        return self.status.total_changes if self.status else 0


@dataclass(frozen=True)
class _Dispatch:
    """Workspace binding captured when an operation was dispatched."""

    operation: str
    workspace: str
    generation: int
    started_at: float


def placeholder_history(now: datetime) -> tuple[GitCommit, ...]:
    """Return synthetic commits shown when history cannot be fetched."""

    return (
        GitCommit(
            hash="placeholder-0000000000000001",
            short_hash="placeh1",
            message="History unavailable (placeholder entry)",
            author="placeholder",
            date=(now - timedelta(hours=2)).isoformat(),
            relative_date="2 hours ago",
            synthetic=True,
        ),
        GitCommit(
            hash="placeholder-0000000000000002",
            short_hash="placeh2",
            message="History unavailable (placeholder entry)",
            author="placeholder",
            date=(now - timedelta(days=1)).isoformat(),
            relative_date="1 day ago",
            synthetic=True,
        ),
    )


class VersionControlOrchestrator:
    """Owns the version control state and mediates every operation on it.

    Status refreshes may overlap; the last result to land wins. Mutating
    operations are rejected with a busy error while another one is running
    against the same binding.
    Results that arrive after the workspace binding changed are discarded.
    """

    def __init__(
        self,
        client: GitControlClient,
        binding: WorkspaceBinding,
        *,
        preferences: KeyValueStore,
        token_store: CredentialStore,
        ai_key_store: CredentialStore | None = None,
        config: VersionControlConfig | None = None,
        history_config: HistoryConfig | None = None,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Git-control service client.
            binding: Workspace binding supplying the target path.
            preferences: Store persisting the team-mode preference.
            token_store: Credential store resolving the git hosting token.
            ai_key_store: Credential store resolving the documentation AI key.
            config: Orchestrator behavior settings.
            history_config: History fetching options.
            observability: Event logger and metrics collector.
        """

        self._client = client
        self._binding = binding
        self._preferences = preferences
        self._token_store = token_store
        self._ai_key_store = ai_key_store
        self._config = config or VersionControlConfig()
        self._history = history_config or HistoryConfig()
        self._observability = observability or create_observability_manager()
        self._logger = get_logger(self.__class__.__name__)
        self._inflight = 0
        self._busy_generations: set[int] = set()
        self._state = self._default_state()
        binding.subscribe(self.handle_workspace_change)

    @property
    def state(self) -> VersionControlState:
        """Return the current immutable state snapshot."""

        return self._state

    @property
    def binding(self) -> WorkspaceBinding:
        return self._binding

    async def handle_workspace_change(self, path: str | None) -> None:
        """Reset state for a newly bound workspace and poll its status."""

        self._inflight = 0
        self._state = self._default_state()
        if path is not None:
            await self.refresh_status()

    async def refresh_status(self) -> None:
        """Fetch the status snapshot of the bound workspace.

        A missing repository and transport failures both leave the state as
        "not initialized"; neither is surfaced as an error.
        """

        async with self._operation("refresh_status") as ticket:
            if ticket is None:
                return
            try:
                result = await self._call(self._client.status, ticket.workspace)
            except RepositoryNotFoundError:
                self._logger.info("Workspace %s is not a git repository.", ticket.workspace)
                self._apply(
                    ticket,
                    is_git_initialized=False,
                    status=None,
                    pending_changes=(),
                    error=None,
                )
                return
            except Exception as exc:
                self._logger.warning("Git status check failed for %s: %s", ticket.workspace, exc)
                self._apply(ticket, is_git_initialized=False, status=None, pending_changes=())
                return
            self._apply(
                ticket,
                is_git_initialized=True,
                status=result.status,
                branch=BranchRef(result.status.branch or self._config.main_branch),
                pending_changes=result.changes,
                error=None,
            )

    async def poll_status(
        self,
        interval_s: float | None = None,
        *,
        iterations: int | None = None,
        on_refresh: Callable[[VersionControlState], None] | None = None,
    ) -> None:
        """Refresh status repeatedly on a fixed interval.

        Args:
            interval_s: Seconds between refreshes. Defaults to the configured interval.
            iterations: Stop after this many refreshes; run forever when None.
            on_refresh: Optional callback receiving the state after each refresh.
        """

        interval = self._config.poll_interval_s if interval_s is None else interval_s
        count = 0
        while iterations is None or count < iterations:
            await self.refresh_status()
            if on_refresh is not None:
                on_refresh(self._state)
            count += 1
            if iterations is not None and count >= iterations:
                break
            await asyncio.sleep(interval)

    async def save_version(self, message: str) -> bool:
        """Commit pending work, then push it on a best-effort basis.

        Only the commit decides the outcome. Documentation refresh and push
        failures are logged and never change the return value.
        """

        async with self._mutation("save_version") as ticket:
            if ticket is None:
                return False
            if not message.strip():
                self._apply(ticket, error="A message is required to save a version.")
                return False

            await self._refresh_documentation(ticket)

            status = self._state.status
            files = list(status.unstaged) if status else []
            try:
                await self._call(self._client.commit, ticket.workspace, message, files)
            except Exception as exc:
                self._fail(ticket, exc, "Failed to save version")
                return False

            await self._push_after_commit(ticket)

            if self._is_current(ticket):
                await self.refresh_status()
                self._apply(ticket, error=None)
            return True

    async def view_history(self, file_path: str | None = None) -> None:
        """Load the commit log, optionally for one file, and open the history view."""

        async with self._operation("view_history") as ticket:
            if ticket is None:
                return
            try:
                commits = await self._call(
                    self._client.log,
                    ticket.workspace,
                    file=file_path,
                    limit=self._history.limit,
                )
            except Exception as exc:
                if self._history.placeholder_on_failure:
                    self._logger.warning("Git log unavailable, showing placeholder history: %s", exc)
                    self._apply(
                        ticket,
                        commits=placeholder_history(datetime.now(timezone.utc)),
                        is_history_open=True,
                    )
                else:
                    self._logger.warning("Git log unavailable for %s: %s", ticket.workspace, exc)
                    self._apply(ticket, is_history_open=True, error=f"Failed to fetch history: {exc}")
                return
            self._apply(ticket, commits=tuple(commits), is_history_open=True, error=None)

    async def view_commit(self, commit_hash: str) -> GitCommit | None:
        """Select a commit, fetching its full details when possible.

        Falls back to the already loaded summary entry when the detail request
        fails, and to None when no such entry exists.
        """

        async with self._operation("view_commit") as ticket:
            if ticket is None:
                commit = self._find_loaded_commit(commit_hash)
                self._update(selected_commit=commit)
                return commit
            try:
                commit = await self._call(self._client.show, ticket.workspace, commit_hash)
            except Exception as exc:
                self._logger.info("Commit details unavailable for %s: %s", commit_hash, exc)
                commit = self._find_loaded_commit(commit_hash)
            self._apply(ticket, selected_commit=commit)
            return commit

    async def revert_to_commit(self, commit_hash: str) -> bool:
        """Restore the workspace to ``commit_hash``.

        Callers must obtain confirmation before invoking this.
        """

        async with self._mutation("revert_to_commit") as ticket:
            if ticket is None:
                return False
            try:
                await self._call(self._client.revert, ticket.workspace, commit_hash)
            except Exception as exc:
                self._fail(ticket, exc, "Failed to revert")
                return False
            if self._is_current(ticket):
                await self.refresh_status()
                self._apply(ticket, error=None)
            return True

    async def enable_team_mode(self) -> None:
        """Switch to branch-based team mode and refresh status."""

        self._set_team_mode(True)
        await self.refresh_status()

    async def disable_team_mode(self) -> None:
        """Switch back to solo mode."""

        self._set_team_mode(False)

    async def create_branch(self, name: str) -> bool:
        """Create ``name`` and check it out in a single remote call."""

        return await self._change_branch(
            "create_branch",
            name,
            self._client.create_branch,
            "Failed to create branch",
            checkout=True,
        )

    async def switch_branch(self, name: str) -> bool:
        """Check out an existing branch."""

        return await self._change_branch(
            "switch_branch",
            name,
            self._client.checkout,
            "Failed to switch branch",
        )

    async def sync_changes(self) -> bool:
        """Pull, then push. Push is skipped when pull fails."""

        async with self._mutation("sync_changes") as ticket:
            if ticket is None:
                return False
            try:
                await self._call(self._client.pull, ticket.workspace)
            except Exception as exc:
                self._fail(ticket, exc, "Failed to pull changes")
                return False
            try:
                token = self._resolve_token()
                await self._call(self._client.push, ticket.workspace, token=token)
            except Exception as exc:
                self._fail(ticket, exc, "Failed to push changes")
                return False
            if self._is_current(ticket):
                await self.refresh_status()
                self._apply(ticket, error=None)
            return True

    async def submit_for_review(self, title: str, description: str) -> str | None:
        """Open a review request from the current branch into the main branch.

        Returns:
            URL of the created review, or None on failure.
        """

        async with self._mutation("submit_for_review") as ticket:
            if ticket is None:
                return None
            head = self._state.current_branch
            base = self._state.main_branch
            if head == base:
                self._apply(ticket, error=f"Cannot submit '{head}' for review into itself.")
                return None
            if not title.strip():
                self._apply(ticket, error="A title is required to submit for review.")
                return None
            try:
                result = await self._call(
                    self._client.open_pull_request,
                    ticket.workspace,
                    title=title,
                    description=description,
                    base=base,
                    head=head,
                )
            except Exception as exc:
                self._fail(ticket, exc, "Failed to submit for review")
                return None
            if result.url is None:
                self._logger.warning("Review request for '%s' was created without a URL.", head)
            self._apply(ticket, error=None)
            return result.url

    async def open_history(self) -> None:
        """Open the history view and load the commit log."""

        self._update(is_history_open=True)
        await self.view_history()

    def close_history(self) -> None:
        self._update(is_history_open=False, selected_commit=None)

    def open_panel(self) -> None:
        self._update(is_panel_open=True)

    def close_panel(self) -> None:
        self._update(is_panel_open=False)

    def toggle_panel(self) -> None:
        self._update(is_panel_open=not self._state.is_panel_open)

    def clear_error(self) -> None:
        self._update(error=None)

    async def _change_branch(
        self,
        operation: str,
        name: str,
        request: Callable[..., Any],
        failure_message: str,
        **options: Any,
    ) -> bool:
        async with self._mutation(operation) as ticket:
            if ticket is None:
                return False
            if not name.strip():
                self._apply(ticket, error="Branch name must not be empty.")
                return False
            try:
                await self._call(request, ticket.workspace, name, **options)
            except Exception as exc:
                self._fail(ticket, exc, failure_message)
                return False
            # Tentative until the refresh below reports the checked-out branch.
            if self._apply(ticket, branch=BranchRef(name, tentative=True)):
                await self.refresh_status()
                self._apply(ticket, error=None)
            return True

    async def _refresh_documentation(self, ticket: _Dispatch) -> None:
        if not self._config.refresh_documentation:
            return
        try:
            api_key = self._ai_key_store.resolve(AI_KEY_ALIASES) if self._ai_key_store else None
            if api_key is None:
                self._logger.info("No AI key configured; refreshing documentation without one.")
            result = await self._call(self._client.generate_readme, ticket.workspace, api_key=api_key)
        except Exception as exc:
            self._optional_step_failed(ticket, "documentation_refresh", exc)
            return
        self._logger.info("Documentation refreshed: %s", result.message or "ok")

    async def _push_after_commit(self, ticket: _Dispatch) -> None:
        try:
            token = self._resolve_token()
            await self._call(self._client.push, ticket.workspace, set_upstream=True, token=token)
        except Exception as exc:
            self._optional_step_failed(ticket, "push", exc)

    def _resolve_token(self) -> str | None:
        try:
            token = self._token_store.resolve(GIT_TOKEN_ALIASES)
        except Exception as exc:
            self._logger.warning("Unable to read git credentials: %s", exc)
            return None
        if token is None:
            self._logger.warning("No git token configured; pushing without authentication.")
        return token

    def _set_team_mode(self, enabled: bool) -> None:
        self._update(team_mode_enabled=enabled)
        try:
            save_team_mode(self._preferences, enabled)
        except StorageError as exc:
            self._logger.warning("Unable to persist team mode preference: %s", exc)

    def _load_team_mode(self) -> bool:
        try:
            return load_team_mode(self._preferences)
        except StorageError as exc:
            self._logger.warning("Unable to read team mode preference: %s", exc)
            return False

    def _default_state(self) -> VersionControlState:
        return VersionControlState(
            team_mode_enabled=self._load_team_mode(),
            branch=BranchRef(self._config.main_branch),
            main_branch=self._config.main_branch,
        )

    def _find_loaded_commit(self, ref: str) -> GitCommit | None:
        return next((commit for commit in self._state.commits if commit.matches(ref)), None)

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[_Dispatch | None]:
        workspace = self._binding.path
        if workspace is None:
            self._logger.debug("Skipping %s: no workspace bound.", name)
            yield None
            return
        ticket = _Dispatch(
            operation=name,
            workspace=workspace,
            generation=self._binding.generation,
            started_at=time.perf_counter(),
        )
        self._inflight += 1
        self._update(is_loading=True)
        self._observability.metrics.increment(f"vcs.{name}.calls")
        self._observability.log_event(
            "vcs.operation_started", {"operation": name, "workspace": workspace}, level="DEBUG"
        )
        try:
            yield ticket
        finally:
            duration = time.perf_counter() - ticket.started_at
            self._observability.metrics.record_duration(f"vcs.{name}", duration)
            self._observability.log_event(
                "vcs.operation_finished",
                {"operation": name, "workspace": workspace, "duration_s": duration},
                level="DEBUG",
            )
            if self._is_current(ticket):
                self._inflight = max(self._inflight - 1, 0)
                self._update(is_loading=self._inflight > 0)

    @asynccontextmanager
    async def _mutation(self, name: str) -> AsyncIterator[_Dispatch | None]:
        if self._binding.path is None:
            self._logger.debug("Skipping %s: no workspace bound.", name)
            yield None
            return
        generation = self._binding.generation
        if generation in self._busy_generations:
            self._logger.warning("Rejected %s: another operation is in flight.", name)
            self._observability.metrics.increment("vcs.busy_rejections")
            self._update(error=BUSY_MESSAGE)
            yield None
            return
        self._busy_generations.add(generation)
        try:
            async with self._operation(name) as ticket:
                yield ticket
        finally:
            self._busy_generations.discard(generation)

    async def _call(self, func: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
        with self._observability.track_duration(f"git_control.{func.__name__}"):
            return await asyncio.to_thread(func, *args, **kwargs)

    def _is_current(self, ticket: _Dispatch) -> bool:
        return ticket.generation == self._binding.generation

    def _update(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)

    def _apply(self, ticket: _Dispatch, **changes: Any) -> bool:
        if not self._is_current(ticket):
            self._logger.debug(
                "Discarding %s result for %s: workspace binding changed.",
                ticket.operation,
                ticket.workspace,
            )
            self._observability.log_event(
                "vcs.stale_response_discarded",
                {"operation": ticket.operation, "workspace": ticket.workspace},
            )
            return False
        self._update(**changes)
        return True

    def _fail(self, ticket: _Dispatch, exc: Exception, fallback: str) -> None:
        message = str(exc) or fallback
        self._logger.error("%s failed for %s: %s", ticket.operation, ticket.workspace, message)
        self._observability.metrics.increment(f"vcs.{ticket.operation}.failures")
        self._observability.log_event(
            "vcs.operation_failed",
            {"operation": ticket.operation, "workspace": ticket.workspace, "error": message},
            level="WARNING",
        )
        self._apply(ticket, error=message)

    def _optional_step_failed(self, ticket: _Dispatch, step: str, exc: Exception) -> None:
        self._logger.warning("%s: optional step '%s' failed: %s", ticket.operation, step, exc)
        self._observability.log_event(
            "vcs.optional_step_failed",
            {"operation": ticket.operation, "step": step, "error": str(exc)},
            level="WARNING",
        )
