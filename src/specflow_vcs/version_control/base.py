"""Data models and errors for the remote git-control service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class GitControlError(RuntimeError):
    """Raised when a git-control request fails.

    Attributes:
        status_code: HTTP status of the failed response, None for transport errors.
        details: Additional diagnostic text returned by the service.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class RepositoryNotFoundError(GitControlError):
    """Raised when the workspace path is not a git repository."""


class GitControlTimeoutError(GitControlError):
    """Raised when a request exceeds the configured transport timeout."""


@dataclass(frozen=True)
class GitStatus:
    """Status snapshot of a workspace repository.

    ``branch`` is empty for an unborn or detached HEAD.
    """

    branch: str
    staged: tuple[str, ...] = ()
    unstaged: tuple[str, ...] = ()
    untracked: tuple[str, ...] = ()
    ahead: int = 0
    behind: int = 0

    @property
    def is_clean(self) -> bool:
        return not (self.staged or self.unstaged or self.untracked)

    @property
    def total_changes(self) -> int:
        return len(self.staged) + len(self.unstaged) + len(self.untracked)


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by a commit, with its name-status letter."""

    status: str
    file: str


@dataclass(frozen=True)
class GitCommit:
    """A commit as reported by the log or show endpoints.

    Attributes:
        hash: Full commit hash.
        short_hash: Abbreviated hash.
        message: Commit subject line.
        author: Author name.
        date: ISO-8601 author date.
        relative_date: Human readable age, e.g. "2 hours ago".
        body: Commit body (only populated by ``show``).
        changed_files: Files touched by the commit (only populated by ``show``).
        synthetic: True for placeholder entries that do not exist in the repository.
    """

    hash: str
    short_hash: str
    message: str
    author: str
    date: str
    relative_date: str
    body: str = ""
    changed_files: tuple[ChangedFile, ...] = ()
    synthetic: bool = False

    def matches(self, ref: str) -> bool:
        return ref in {self.hash, self.short_hash}


@dataclass(frozen=True)
class DiffHunk:
    """One hunk of a file diff."""

    header: str
    lines: tuple[str, ...] = ()


@dataclass(frozen=True)
class GitDiff:
    """Per-file diff summary attached to a status fetch."""

    file: str
    additions: int = 0
    deletions: int = 0
    hunks: tuple[DiffHunk, ...] = ()


@dataclass(frozen=True)
class StatusResult:
    """Response of the status endpoint."""

    status: GitStatus
    changes: tuple[GitDiff, ...] = ()


@dataclass(frozen=True)
class BranchInfo:
    """A local or remote-tracking branch."""

    name: str
    hash: str = ""
    last_commit: str = ""
    is_remote: bool = False


@dataclass(frozen=True)
class BranchListing:
    """Branches of a repository together with the checked-out one."""

    branches: tuple[BranchInfo, ...]
    current: str


@dataclass(frozen=True)
class RepositoryConfig:
    """Repository identity and remote configuration."""

    initialized: bool
    user_name: str = ""
    user_email: str = ""
    remote_url: str = ""
    remote_name: str = ""
    current_branch: str = ""


@dataclass(frozen=True)
class OperationResult:
    """Generic acknowledgement returned by mutating endpoints."""

    success: bool = True
    message: str = ""
    url: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


def parse_status_result(payload: dict[str, Any]) -> StatusResult:
    """Build a status result from the status endpoint payload."""

    raw_status = _expect_dict(payload.get("status"), "status")
    status = GitStatus(
        branch=_optional_text(raw_status.get("branch")),
        staged=_str_tuple(raw_status.get("staged"), "staged"),
        unstaged=_str_tuple(raw_status.get("unstaged"), "unstaged"),
        untracked=_str_tuple(raw_status.get("untracked"), "untracked"),
        ahead=_non_negative_int(raw_status.get("ahead")),
        behind=_non_negative_int(raw_status.get("behind")),
    )
    changes = tuple(parse_diff(item) for item in _expect_list(payload.get("changes") or [], "changes"))
    return StatusResult(status=status, changes=changes)


def parse_commit(payload: Any) -> GitCommit:
    """Build a commit from a log or show entry."""

    data = _expect_dict(payload, "commit")
    changed = tuple(
        ChangedFile(
            status=_optional_text(item.get("status")),
            file=_optional_text(item.get("file")),
        )
        for item in (
            _expect_dict(entry, "changedFiles entry")
            for entry in _expect_list(data.get("changedFiles") or [], "changedFiles")
        )
    )
    commit_hash = _optional_text(data.get("hash"))
    if not commit_hash:
        raise GitControlError("Commit entry is missing a hash.")
    return GitCommit(
        hash=commit_hash,
        short_hash=_optional_text(data.get("shortHash")) or commit_hash[:7],
        message=_optional_text(data.get("message")),
        author=_optional_text(data.get("author")),
        date=_optional_text(data.get("date")),
        relative_date=_optional_text(data.get("relativeDate")),
        body=_optional_text(data.get("body")),
        changed_files=changed,
    )


def parse_diff(payload: Any) -> GitDiff:
    """Build a per-file diff summary."""

    data = _expect_dict(payload, "change")
    hunks = tuple(
        DiffHunk(
            header=_optional_text(hunk.get("header")),
            lines=_str_tuple(hunk.get("lines"), "hunk lines"),
        )
        for hunk in (
            _expect_dict(entry, "hunk") for entry in _expect_list(data.get("hunks") or [], "hunks")
        )
    )
    return GitDiff(
        file=_optional_text(data.get("file")),
        additions=_non_negative_int(data.get("additions")),
        deletions=_non_negative_int(data.get("deletions")),
        hunks=hunks,
    )


def parse_branch_listing(payload: dict[str, Any]) -> BranchListing:
    """Build a branch listing from the branches endpoint payload."""

    branches = []
    for entry in _expect_list(payload.get("branches") or [], "branches"):
        data = _expect_dict(entry, "branch")
        name = _optional_text(data.get("name"))
        branches.append(
            BranchInfo(
                name=name,
                hash=_optional_text(data.get("hash")),
                last_commit=_optional_text(data.get("lastCommit")),
                is_remote=bool(data.get("isRemote", name.startswith("origin/"))),
            )
        )
    return BranchListing(branches=tuple(branches), current=_optional_text(payload.get("current")))


def parse_repository_config(payload: dict[str, Any]) -> RepositoryConfig:
    """Build repository configuration from the config endpoint payload."""

    return RepositoryConfig(
        initialized=bool(payload.get("initialized", False)),
        user_name=_optional_text(payload.get("userName")),
        user_email=_optional_text(payload.get("userEmail")),
        remote_url=_optional_text(payload.get("remoteUrl")),
        remote_name=_optional_text(payload.get("remoteName")),
        current_branch=_optional_text(payload.get("currentBranch")),
    )


def _expect_dict(value: Any, label: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise GitControlError(f"Unexpected response format: '{label}' is not an object.")
    return value


def _expect_list(value: Any, label: str) -> list[Any]:
    if not isinstance(value, list):
        raise GitControlError(f"Unexpected response format: '{label}' is not a list.")
    return value


def _str_tuple(value: Any, label: str) -> tuple[str, ...]:
    if value is None:
        return ()
    return tuple(str(item) for item in _expect_list(value, label))


def _optional_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _non_negative_int(value: Any) -> int:
    try:
        number = int(value or 0)
    except (TypeError, ValueError):
        return 0
    return max(number, 0)
