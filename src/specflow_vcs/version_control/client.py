"""HTTP client for the remote git-control service."""

from __future__ import annotations

from typing import Any, cast

import requests  # type: ignore[import-untyped]

from specflow_vcs.util.logging import get_logger
from specflow_vcs.version_control.base import (
    BranchListing,
    GitCommit,
    GitControlError,
    GitControlTimeoutError,
    OperationResult,
    RepositoryConfig,
    RepositoryNotFoundError,
    StatusResult,
    parse_branch_listing,
    parse_commit,
    parse_repository_config,
    parse_status_result,
)

NOT_A_REPOSITORY_MARKER = "not a git repository"


class GitControlClient:
    """Thin wrapper issuing one HTTP request per git verb.

    The client holds no repository state and never retries; every call can be
    repeated independently by the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the git-control service.
            timeout_s: Per-request transport timeout in seconds.
            session: Optional requests session for testing or reuse.
        """

        if not base_url:
            raise ValueError("base_url is required for GitControlClient.")
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._session = session or requests.Session()
        self._logger = get_logger(self.__class__.__name__)

    @property
    def base_url(self) -> str:
        return self._base_url

    def status(self, workspace: str) -> StatusResult:
        """Return the status snapshot and pending per-file changes."""

        data = self._request("GET", "/git/status", params={"workspace": workspace})
        return parse_status_result(data)

    def commit(self, workspace: str, message: str, files: list[str]) -> OperationResult:
        """Commit the given files with ``message``."""

        data = self._request(
            "POST",
            "/git/commit",
            payload={"workspace": workspace, "message": message, "files": files},
        )
        return _operation_result(data)

    def push(
        self,
        workspace: str,
        *,
        set_upstream: bool = False,
        token: str | None = None,
    ) -> OperationResult:
        """Push the current branch to its remote."""

        data = self._request(
            "POST",
            "/git/push",
            payload={"workspace": workspace, "setUpstream": set_upstream, "token": token},
        )
        return _operation_result(data)

    def pull(self, workspace: str) -> OperationResult:
        """Pull the current branch from its remote."""

        data = self._request("POST", "/git/pull", payload={"workspace": workspace})
        return _operation_result(data)

    def create_branch(self, workspace: str, name: str, *, checkout: bool = True) -> OperationResult:
        """Create a branch and optionally check it out in the same call."""

        data = self._request(
            "POST",
            "/git/branch",
            payload={"workspace": workspace, "name": name, "checkout": checkout},
        )
        return _operation_result(data)

    def checkout(self, workspace: str, branch: str) -> OperationResult:
        """Switch the workspace to ``branch``."""

        data = self._request(
            "POST", "/git/checkout", payload={"workspace": workspace, "branch": branch}
        )
        return _operation_result(data)

    def branches(self, workspace: str) -> BranchListing:
        """List local and remote-tracking branches."""

        data = self._request("GET", "/git/branches", params={"workspace": workspace})
        return parse_branch_listing(data)

    def log(
        self,
        workspace: str,
        *,
        file: str | None = None,
        limit: int | None = None,
    ) -> list[GitCommit]:
        """Return commits, most recent first, optionally scoped to one file."""

        data = self._request(
            "GET",
            "/git/log",
            params={"workspace": workspace, "file": file, "limit": limit},
        )
        commits = data.get("commits") or []
        if not isinstance(commits, list):
            raise GitControlError("Unexpected response format: 'commits' is not a list.")
        return [parse_commit(item) for item in commits]

    def show(self, workspace: str, commit_hash: str) -> GitCommit:
        """Return full details for one commit."""

        data = self._request(
            "GET", "/git/show", params={"workspace": workspace, "hash": commit_hash}
        )
        return parse_commit(data.get("commit"))

    def diff(self, workspace: str, *, file: str | None = None) -> str:
        """Return the unified diff of pending changes."""

        data = self._request("GET", "/git/diff", params={"workspace": workspace, "file": file})
        diff = data.get("diff", "")
        return diff if isinstance(diff, str) else ""

    def revert(self, workspace: str, commit_hash: str) -> OperationResult:
        """Restore the workspace to ``commit_hash``."""

        data = self._request(
            "POST", "/git/revert", payload={"workspace": workspace, "hash": commit_hash}
        )
        return _operation_result(data)

    def open_pull_request(
        self,
        workspace: str,
        *,
        title: str,
        description: str,
        base: str,
        head: str,
    ) -> OperationResult:
        """Open a review request from ``head`` into ``base``."""

        data = self._request(
            "POST",
            "/git/pr",
            payload={
                "workspace": workspace,
                "title": title,
                "description": description,
                "base": base,
                "head": head,
            },
        )
        return _operation_result(data)

    def init(
        self,
        workspace: str,
        *,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> OperationResult:
        """Initialize a repository in the workspace."""

        data = self._request(
            "POST",
            "/git/init",
            payload={"workspace": workspace, "userName": user_name, "userEmail": user_email},
        )
        return _operation_result(data)

    def get_config(self, workspace: str) -> RepositoryConfig:
        """Return identity and remote configuration of the repository."""

        data = self._request("GET", "/git/config", params={"workspace": workspace})
        return parse_repository_config(data)

    def configure(self, workspace: str, *, user_name: str, user_email: str) -> OperationResult:
        """Set the commit identity for the repository."""

        data = self._request(
            "POST",
            "/git/config",
            payload={"workspace": workspace, "userName": user_name, "userEmail": user_email},
        )
        return _operation_result(data)

    def add_remote(self, workspace: str, url: str, *, name: str = "origin") -> OperationResult:
        """Register a remote repository URL."""

        data = self._request(
            "POST", "/git/remote", payload={"workspace": workspace, "url": url, "name": name}
        )
        return _operation_result(data)

    def create_remote_repository(
        self,
        workspace: str,
        name: str,
        *,
        private: bool,
        token: str,
    ) -> OperationResult:
        """Create a hosted repository and connect it as the workspace remote."""

        data = self._request(
            "POST",
            "/git/create-repo",
            payload={"workspace": workspace, "name": name, "private": private, "token": token},
        )
        return _operation_result(data)

    def generate_readme(self, workspace: str, *, api_key: str | None = None) -> OperationResult:
        """Regenerate the workspace summary document."""

        data = self._request(
            "POST", "/generate-readme", payload={"workspace": workspace, "apiKey": api_key}
        )
        return _operation_result(data)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        self._logger.debug("%s %s", method, path)
        try:
            response = self._session.request(
                method,
                url,
                params=_without_none(params),
                json=_without_none(payload),
                timeout=self._timeout_s,
            )
        except requests.Timeout as exc:
            raise GitControlTimeoutError(
                f"Request to {path} timed out after {self._timeout_s}s."
            ) from exc
        except requests.RequestException as exc:
            raise GitControlError(f"Request to {path} failed: {exc}") from exc

        if response.status_code >= 400:
            raise _error_from_response(path, response)
        try:
            data = response.json()
        except ValueError as exc:
            raise GitControlError(f"Response from {path} is not valid JSON.") from exc
        if not isinstance(data, dict):
            raise GitControlError(f"Unexpected response format from {path}.")
        return cast(dict[str, Any], data)


def _error_from_response(path: str, response: Any) -> GitControlError:
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    error = str(body.get("error") or body.get("message") or "")
    details = body.get("details")
    details_text = str(details) if details is not None else None
    message = error or f"Request to {path} failed with status {response.status_code}."
    if response.status_code == 400 and NOT_A_REPOSITORY_MARKER in message.lower():
        return RepositoryNotFoundError(message, status_code=400, details=details_text)
    return GitControlError(message, status_code=response.status_code, details=details_text)


def _operation_result(data: dict[str, Any]) -> OperationResult:
    url = data.get("url")
    extra = {key: value for key, value in data.items() if key not in {"success", "message", "url"}}
    return OperationResult(
        success=bool(data.get("success", True)),
        message=str(data.get("message") or ""),
        url=url if isinstance(url, str) and url else None,
        extra=extra,
    )


def _without_none(values: dict[str, Any] | None) -> dict[str, Any] | None:
    if values is None:
        return None
    return {key: value for key, value in values.items() if value is not None}
