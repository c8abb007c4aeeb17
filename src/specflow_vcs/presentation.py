"""View models derived from the orchestrator state.

Everything here is a pure function of a state snapshot; rendering code
(terminal output, web views) consumes these shapes and nothing else.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Final

from specflow_vcs.orchestrator import VersionControlState
from specflow_vcs.version_control.base import GitCommit, GitDiff, GitStatus

MAX_VISIBLE_MODIFIED: Final[int] = 5
MAX_VISIBLE_ADDED: Final[int] = 3
EMPTY_HISTORY_MESSAGE: Final[str] = "No version history yet"
EMPTY_HISTORY_HINT: Final[str] = "Save your first version to start tracking changes"

_TIME_UNITS: Final[tuple[tuple[str, int], ...]] = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("week", 7 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
    ("second", 1),
)


@dataclass(frozen=True)
class ChangeEntry:
    """One changed file as displayed in the panel.

    Attributes:
        path: Workspace-relative path.
        display_name: Last path segment.
        kind: Change marker, "S" (staged), "M" (modified) or "A" (added).
    """

    path: str
    display_name: str
    kind: str


@dataclass(frozen=True)
class ChangeSummary:
    """Grouped and truncated pending changes."""

    has_changes: bool
    total_changes: int
    staged: tuple[ChangeEntry, ...]
    modified: tuple[ChangeEntry, ...]
    added: tuple[ChangeEntry, ...]
    visible: tuple[ChangeEntry, ...]
    hidden_count: int
    more_label: str | None
    headline: str


@dataclass(frozen=True)
class DiffTotals:
    """Line counts across all pending per-file diffs."""

    files: int
    additions: int
    deletions: int


@dataclass(frozen=True)
class HistoryEntry:
    """A commit row in the history view."""

    hash: str
    short_hash: str
    message: str
    author: str
    relative_date: str
    is_selected: bool
    is_last: bool
    synthetic: bool


@dataclass(frozen=True)
class HistoryView:
    """Data backing the history drawer."""

    is_open: bool
    is_loading: bool
    entries: tuple[HistoryEntry, ...]
    selected: GitCommit | None
    empty_message: str | None
    empty_hint: str | None
    has_synthetic_entries: bool


@dataclass(frozen=True)
class PanelView:
    """Data backing the version control panel."""

    visible: bool
    is_open: bool
    is_loading: bool
    branch: str
    branch_confirmed: bool
    main_branch: str
    team_mode: bool
    can_submit_review: bool
    ahead: int
    behind: int
    changes: ChangeSummary
    diff_totals: DiffTotals
    error: str | None


def file_display_name(path: str) -> str:
    """Return the last segment of a slash-separated path."""

    return path.rstrip("/").split("/")[-1] or path


def build_change_summary(
    status: GitStatus | None,
    *,
    max_modified: int = MAX_VISIBLE_MODIFIED,
    max_added: int = MAX_VISIBLE_ADDED,
) -> ChangeSummary:
    """Group pending changes by type and truncate the visible list.

    Modified and untracked files are listed up to their limits; everything
    not listed, staged files included, is counted in ``hidden_count``.
    """

    if status is None:
        return ChangeSummary(
            has_changes=False,
            total_changes=0,
            staged=(),
            modified=(),
            added=(),
            visible=(),
            hidden_count=0,
            more_label=None,
            headline="All changes saved",
        )
    staged = tuple(ChangeEntry(path, file_display_name(path), "S") for path in status.staged)
    modified = tuple(ChangeEntry(path, file_display_name(path), "M") for path in status.unstaged)
    added = tuple(ChangeEntry(path, file_display_name(path), "A") for path in status.untracked)
    visible = modified[: max(max_modified, 0)] + added[: max(max_added, 0)]
    total = status.total_changes
    hidden = total - len(visible)
    if total == 0:
        headline = "All changes saved"
    else:
        headline = f"{total} unsaved {'change' if total == 1 else 'changes'}"
    return ChangeSummary(
        has_changes=total > 0,
        total_changes=total,
        staged=staged,
        modified=modified,
        added=added,
        visible=visible,
        hidden_count=hidden,
        more_label=f"+{hidden} more files" if hidden > 0 else None,
        headline=headline,
    )


def summarize_diffs(changes: tuple[GitDiff, ...]) -> DiffTotals:
    """Sum additions and deletions over per-file diffs."""

    return DiffTotals(
        files=len(changes),
        additions=sum(change.additions for change in changes),
        deletions=sum(change.deletions for change in changes),
    )


def format_relative_time(when: datetime, now: datetime | None = None) -> str:
    """Format ``when`` relative to ``now`` in the style of ``git log --format=%ar``."""

    reference = now or datetime.now(timezone.utc)
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    seconds = int((reference - when).total_seconds())
    if seconds < 0:
        return "in the future"
    if seconds < 10:
        return "just now"
    for unit, size in _TIME_UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'' if count == 1 else 's'} ago"
    return "just now"


def commit_relative_date(commit: GitCommit, now: datetime | None = None) -> str:
    """Return the commit's relative date, deriving it from ``date`` when absent."""

    if commit.relative_date:
        return commit.relative_date
    try:
        when = datetime.fromisoformat(commit.date)
    except ValueError:
        return ""
    return format_relative_time(when, now)


def build_history_view(state: VersionControlState, now: datetime | None = None) -> HistoryView:
    """Map state onto the history drawer view model."""

    selected_hash = state.selected_commit.hash if state.selected_commit else None
    count = len(state.commits)
    entries = tuple(
        HistoryEntry(
            hash=commit.hash,
            short_hash=commit.short_hash,
            message=commit.message,
            author=commit.author,
            relative_date=commit_relative_date(commit, now),
            is_selected=commit.hash == selected_hash,
            is_last=index == count - 1,
            synthetic=commit.synthetic,
        )
        for index, commit in enumerate(state.commits)
    )
    is_empty = not entries and not state.is_loading
    return HistoryView(
        is_open=state.is_history_open,
        is_loading=state.is_loading,
        entries=entries,
        selected=state.selected_commit,
        empty_message=EMPTY_HISTORY_MESSAGE if is_empty else None,
        empty_hint=EMPTY_HISTORY_HINT if is_empty else None,
        has_synthetic_entries=any(entry.synthetic for entry in entries),
    )


def build_panel_view(state: VersionControlState) -> PanelView:
    """Map state onto the version control panel view model."""

    status = state.status
    return PanelView(
        visible=state.is_git_initialized,
        is_open=state.is_panel_open,
        is_loading=state.is_loading,
        branch=state.current_branch,
        branch_confirmed=not state.branch.tentative,
        main_branch=state.main_branch,
        team_mode=state.team_mode_enabled,
        can_submit_review=state.team_mode_enabled and state.current_branch != state.main_branch,
        ahead=status.ahead if status else 0,
        behind=status.behind if status else 0,
        changes=build_change_summary(status),
        diff_totals=summarize_diffs(state.pending_changes),
        error=state.error,
    )
