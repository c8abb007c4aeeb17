from __future__ import annotations

from typing import Any

import pytest
import requests  # type: ignore[import-untyped]

from specflow_vcs.version_control.base import (
    GitControlError,
    GitControlTimeoutError,
    RepositoryNotFoundError,
)
from specflow_vcs.version_control.client import GitControlClient


class _MockResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = "mock response"

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _MockSession:
    def __init__(self, *responses: Any) -> None:
        self._responses = list(responses)
        self.requests: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _MockResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses: Any) -> tuple[GitControlClient, _MockSession]:
    session = _MockSession(*responses)
    return GitControlClient("http://git.test/", timeout_s=5.0, session=session), session


def test_status_parses_snapshot_and_changes() -> None:
    client, session = _client(
        _MockResponse(
            200,
            {
                "status": {
                    "branch": "feature/x",
                    "staged": ["a.md"],
                    "unstaged": ["b.md", "c.md"],
                    "untracked": [],
                    "ahead": 2,
                    "behind": "1",
                },
                "changes": [
                    {
                        "file": "b.md",
                        "additions": 3,
                        "deletions": 1,
                        "hunks": [{"header": "@@ -1 +1 @@", "lines": ["-old", "+new"]}],
                    }
                ],
            },
        )
    )

    result = client.status("/work")

    assert result.status.branch == "feature/x"
    assert result.status.staged == ("a.md",)
    assert result.status.unstaged == ("b.md", "c.md")
    assert result.status.ahead == 2
    assert result.status.behind == 1
    assert result.status.total_changes == 3
    assert result.changes[0].hunks[0].lines == ("-old", "+new")
    assert session.requests[0]["method"] == "GET"
    assert session.requests[0]["url"] == "http://git.test/git/status"
    assert session.requests[0]["params"] == {"workspace": "/work"}
    assert session.requests[0]["timeout"] == 5.0


def test_not_a_repository_maps_to_dedicated_error() -> None:
    client, _ = _client(
        _MockResponse(400, {"error": "fatal: Not a git repository (or any parent)"})
    )

    with pytest.raises(RepositoryNotFoundError) as excinfo:
        client.status("/work")

    assert excinfo.value.status_code == 400


def test_other_errors_keep_status_and_details() -> None:
    client, _ = _client(
        _MockResponse(500, {"error": "Failed to commit", "details": "nothing to commit"})
    )

    with pytest.raises(GitControlError) as excinfo:
        client.commit("/work", "msg", ["a.md"])

    assert not isinstance(excinfo.value, RepositoryNotFoundError)
    assert str(excinfo.value) == "Failed to commit"
    assert excinfo.value.status_code == 500
    assert excinfo.value.details == "nothing to commit"


def test_error_without_body_uses_generic_message() -> None:
    client, _ = _client(_MockResponse(502, ValueError("not json")))

    with pytest.raises(GitControlError, match="failed with status 502"):
        client.pull("/work")


def test_timeout_maps_to_timeout_error() -> None:
    client, _ = _client(requests.Timeout("slow"))

    with pytest.raises(GitControlTimeoutError, match="timed out after 5.0s"):
        client.status("/work")


def test_connection_failure_maps_to_git_control_error() -> None:
    client, _ = _client(requests.ConnectionError("refused"))

    with pytest.raises(GitControlError, match="failed"):
        client.branches("/work")


def test_push_omits_missing_token() -> None:
    client, session = _client(_MockResponse(200, {"success": True, "message": "Pushed"}))

    result = client.push("/work", set_upstream=True)

    assert result.message == "Pushed"
    assert session.requests[0]["json"] == {"workspace": "/work", "setUpstream": True}


def test_open_pull_request_returns_url() -> None:
    client, session = _client(
        _MockResponse(200, {"success": True, "url": "https://example.test/pr/7", "number": 7})
    )

    result = client.open_pull_request(
        "/work", title="T", description="D", base="main", head="feature/x"
    )

    assert result.url == "https://example.test/pr/7"
    assert result.extra == {"number": 7}
    assert session.requests[0]["url"] == "http://git.test/git/pr"
    assert session.requests[0]["json"]["head"] == "feature/x"


def test_log_and_show_parse_commits() -> None:
    entry = {
        "hash": "0123456789abcdef",
        "message": "Add API notes",
        "author": "Ada",
        "date": "2024-05-01T10:00:00+00:00",
        "relativeDate": "2 days ago",
    }
    client, session = _client(
        _MockResponse(200, {"commits": [entry]}),
        _MockResponse(
            200,
            {"commit": {**entry, "body": "Longer text", "changedFiles": [{"status": "M", "file": "a.md"}]}},
        ),
    )

    commits = client.log("/work", file="a.md", limit=10)
    detail = client.show("/work", "0123456789abcdef")

    assert commits[0].short_hash == "0123456"
    assert session.requests[0]["params"] == {"workspace": "/work", "file": "a.md", "limit": 10}
    assert detail.body == "Longer text"
    assert detail.changed_files[0].file == "a.md"


def test_commit_without_hash_is_rejected() -> None:
    client, _ = _client(_MockResponse(200, {"commits": [{"message": "no hash"}]}))

    with pytest.raises(GitControlError, match="missing a hash"):
        client.log("/work")


def test_non_object_response_is_rejected() -> None:
    client, _ = _client(_MockResponse(200, ["unexpected"]))

    with pytest.raises(GitControlError, match="Unexpected response format"):
        client.get_config("/work")


def test_branches_and_config_parse() -> None:
    client, _ = _client(
        _MockResponse(
            200,
            {
                "branches": [
                    {"name": "main", "hash": "abc1234", "lastCommit": "Init"},
                    {"name": "origin/main", "hash": "abc1234", "lastCommit": "Init"},
                ],
                "current": "main",
            },
        ),
        _MockResponse(
            200,
            {
                "initialized": True,
                "userName": "Ada",
                "userEmail": "ada@example.test",
                "remoteUrl": "https://example.test/repo.git",
                "remoteName": "origin",
                "currentBranch": "main",
            },
        ),
    )

    listing = client.branches("/work")
    config = client.get_config("/work")

    assert listing.current == "main"
    assert [branch.is_remote for branch in listing.branches] == [False, True]
    assert config.initialized is True
    assert config.remote_name == "origin"


def test_diff_returns_text() -> None:
    client, session = _client(_MockResponse(200, {"diff": "+added"}))

    assert client.diff("/work") == "+added"
    assert session.requests[0]["params"] == {"workspace": "/work"}


def test_client_requires_base_url() -> None:
    with pytest.raises(ValueError):
        GitControlClient("")


def test_status_keeps_empty_branch_for_unborn_repository() -> None:
    client, _ = _client(_MockResponse(200, {"status": {"branch": ""}}))

    result = client.status("/work")

    assert result.status.branch == ""
    assert result.status.is_clean is True
