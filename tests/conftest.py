from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

import pytest

from specflow_vcs.version_control.base import (
    BranchInfo,
    BranchListing,
    GitCommit,
    GitDiff,
    GitStatus,
    OperationResult,
    RepositoryConfig,
    StatusResult,
)


class FakeGitControlClient:
    """In-memory stand-in for the git-control service.

    ``errors`` maps a verb to the exception it raises. ``gates`` maps a verb to
    a ``threading.Event`` the call waits on; ``entered`` is set when a gated
    call starts waiting.
    """

    base_url = "http://fake-git-control"

    def __init__(self) -> None:
        self.status_result = StatusResult(status=GitStatus(branch="main"))
        self.commits: list[GitCommit] = []
        self.details: dict[str, GitCommit] = {}
        self.pr_url: str | None = "https://example.test/pr/1"
        self.config = RepositoryConfig(initialized=True, user_name="Ada", user_email="ada@example.test")
        self.errors: dict[str, Exception] = {}
        self.gates: dict[str, threading.Event] = {}
        self.entered = threading.Event()
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def verbs(self) -> list[str]:
        return [name for name, _ in self.calls]

    def status(self, workspace: str) -> StatusResult:
        self._record("status", workspace=workspace)
        return self.status_result

    def commit(self, workspace: str, message: str, files: list[str]) -> OperationResult:
        self._record("commit", workspace=workspace, message=message, files=files)
        self.status_result = StatusResult(status=replace(self.status_result.status, unstaged=(), untracked=()))
        return OperationResult(message="Committed")

    def push(self, workspace: str, *, set_upstream: bool = False, token: str | None = None) -> OperationResult:
        self._record("push", workspace=workspace, set_upstream=set_upstream, token=token)
        return OperationResult(message="Pushed")

    def pull(self, workspace: str) -> OperationResult:
        self._record("pull", workspace=workspace)
        return OperationResult(message="Pulled")

    def create_branch(self, workspace: str, name: str, *, checkout: bool = True) -> OperationResult:
        self._record("create_branch", workspace=workspace, name=name, checkout=checkout)
        self._set_branch(name)
        return OperationResult()

    def checkout(self, workspace: str, branch: str) -> OperationResult:
        self._record("checkout", workspace=workspace, branch=branch)
        self._set_branch(branch)
        return OperationResult()

    def branches(self, workspace: str) -> BranchListing:
        self._record("branches", workspace=workspace)
        current = self.status_result.status.branch
        return BranchListing(
            branches=(BranchInfo(name="main", hash="abc1234", last_commit="Initial"),),
            current=current,
        )

    def log(self, workspace: str, *, file: str | None = None, limit: int | None = None) -> list[GitCommit]:
        self._record("log", workspace=workspace, file=file, limit=limit)
        return list(self.commits)

    def show(self, workspace: str, commit_hash: str) -> GitCommit:
        self._record("show", workspace=workspace, hash=commit_hash)
        return self.details[commit_hash]

    def diff(self, workspace: str, *, file: str | None = None) -> str:
        self._record("diff", workspace=workspace, file=file)
        return "--- a/specs/api.md\n+++ b/specs/api.md\n"

    def revert(self, workspace: str, commit_hash: str) -> OperationResult:
        self._record("revert", workspace=workspace, hash=commit_hash)
        return OperationResult()

    def open_pull_request(
        self, workspace: str, *, title: str, description: str, base: str, head: str
    ) -> OperationResult:
        self._record(
            "open_pull_request",
            workspace=workspace,
            title=title,
            description=description,
            base=base,
            head=head,
        )
        return OperationResult(url=self.pr_url)

    def init(self, workspace: str, *, user_name: str | None = None, user_email: str | None = None) -> OperationResult:
        self._record("init", workspace=workspace, user_name=user_name, user_email=user_email)
        return OperationResult()

    def get_config(self, workspace: str) -> RepositoryConfig:
        self._record("get_config", workspace=workspace)
        return self.config

    def configure(self, workspace: str, *, user_name: str, user_email: str) -> OperationResult:
        self._record("configure", workspace=workspace, user_name=user_name, user_email=user_email)
        self.config = replace(self.config, user_name=user_name, user_email=user_email)
        return OperationResult()

    def add_remote(self, workspace: str, url: str, *, name: str = "origin") -> OperationResult:
        self._record("add_remote", workspace=workspace, url=url, name=name)
        return OperationResult()

    def create_remote_repository(
        self, workspace: str, name: str, *, private: bool, token: str
    ) -> OperationResult:
        self._record("create_remote_repository", workspace=workspace, name=name, private=private, token=token)
        return OperationResult(url=f"https://example.test/{name}")

    def generate_readme(self, workspace: str, *, api_key: str | None = None) -> OperationResult:
        self._record("generate_readme", workspace=workspace, api_key=api_key)
        return OperationResult(message="README updated")

    def _set_branch(self, name: str) -> None:
        self.status_result = replace(
            self.status_result, status=replace(self.status_result.status, branch=name)
        )

    def _record(self, verb: str, **kwargs: Any) -> None:
        self.calls.append((verb, kwargs))
        gate = self.gates.get(verb)
        if gate is not None:
            self.entered.set()
            gate.wait(timeout=5)
        error = self.errors.get(verb)
        if error is not None:
            raise error


def dirty_status(branch: str = "main") -> StatusResult:
    return StatusResult(
        status=GitStatus(
            branch=branch,
            staged=("docs/staged.md",),
            unstaged=("specs/api.md", "specs/ui.md"),
            untracked=("notes/new.md",),
            ahead=1,
        ),
        changes=(GitDiff(file="specs/api.md", additions=4, deletions=1),),
    )


@pytest.fixture()
def fake_client() -> FakeGitControlClient:
    return FakeGitControlClient()


@pytest.fixture()
def dirty_status_result() -> StatusResult:
    return dirty_status()
