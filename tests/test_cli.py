from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

import pytest
from typer.testing import CliRunner

from specflow_vcs.app import build_runtime
from specflow_vcs.cli.main import app
from specflow_vcs.config import AppConfig
from specflow_vcs.storage import TEAM_MODE_KEY, InMemoryKeyValueStore
from specflow_vcs.version_control.base import (
    GitCommit,
    GitControlError,
    RepositoryNotFoundError,
    StatusResult,
)
from specflow_vcs.version_control.client import GitControlClient


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(
        {"integration_config_github": {"fields": {"Personal Access Token": "ghp_secret"}}}
    )


@pytest.fixture()
def runtime_patch(
    monkeypatch: pytest.MonkeyPatch, fake_client: Any, store: InMemoryKeyValueStore
) -> None:
    def fake_build_runtime(config: AppConfig, **_kwargs: Any) -> Any:
        return build_runtime(config, client=cast(GitControlClient, fake_client), store=store)

    monkeypatch.setattr("specflow_vcs.cli.main.build_runtime", fake_build_runtime)


def test_cli_init_creates_config_file(tmp_path: Path) -> None:
    runner = CliRunner()

    result = runner.invoke(app, ["init", str(tmp_path), "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    data = json.loads((tmp_path / "specflow_vcs.yaml").read_text(encoding="utf-8"))
    assert data["workspace"] == str(tmp_path.resolve())
    assert data["service"]["base_url"] == "http://localhost:4001"

    again = runner.invoke(app, ["init", str(tmp_path)])

    assert again.exit_code == 1
    assert "already exists" in again.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_status_prints_changes(
    fake_client: Any, dirty_status_result: StatusResult, tmp_path: Path
) -> None:
    fake_client.status_result = dirty_status_result

    result = CliRunner().invoke(app, ["status", "--workspace", str(tmp_path)])

    assert result.exit_code == 0
    assert "Branch: main [solo mode]  ahead 1, behind 0" in result.output
    assert "4 unsaved changes" in result.output
    assert "M api.md" in result.output
    assert "A new.md" in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_status_without_repository(fake_client: Any, tmp_path: Path) -> None:
    fake_client.errors["status"] = RepositoryNotFoundError("not a git repository", status_code=400)

    result = CliRunner().invoke(app, ["status", "-w", str(tmp_path)])

    assert result.exit_code == 0
    assert "No git repository in this workspace." in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_requires_workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(app, ["status"])

    assert result.exit_code == 1
    assert "No workspace given" in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_save_commits_and_reports(
    fake_client: Any, dirty_status_result: StatusResult, tmp_path: Path
) -> None:
    fake_client.status_result = dirty_status_result

    result = CliRunner().invoke(app, ["save", "Describe the API", "-w", str(tmp_path)])

    assert result.exit_code == 0
    assert "Version saved." in result.output
    assert dict(fake_client.calls)["commit"]["files"] == ["specs/api.md", "specs/ui.md"]
    assert dict(fake_client.calls)["push"]["token"] == "ghp_secret"


@pytest.mark.usefixtures("runtime_patch")
def test_cli_save_failure_exits_nonzero(fake_client: Any, tmp_path: Path) -> None:
    fake_client.errors["commit"] = GitControlError("nothing to commit", status_code=500)

    result = CliRunner().invoke(app, ["save", "Checkpoint", "-w", str(tmp_path)])

    assert result.exit_code == 1
    assert "Error: nothing to commit" in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_history_lists_commits(fake_client: Any, tmp_path: Path) -> None:
    fake_client.commits = [
        GitCommit(
            hash="a" * 40,
            short_hash="aaaaaaa",
            message="Add login flow",
            author="Ada",
            date="2024-05-01T10:00:00+00:00",
            relative_date="2 days ago",
        )
    ]

    result = CliRunner().invoke(app, ["history", "-w", str(tmp_path)])

    assert result.exit_code == 0
    assert "aaaaaaa" in result.output
    assert "Add login flow" in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_history_empty(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["history", "-w", str(tmp_path)])

    assert result.exit_code == 0
    assert "No version history yet" in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_revert_requires_confirmation(fake_client: Any, tmp_path: Path) -> None:
    declined = CliRunner().invoke(app, ["revert", "abc1234", "-w", str(tmp_path)], input="n\n")

    assert declined.exit_code == 1
    assert "revert" not in fake_client.verbs()

    accepted = CliRunner().invoke(app, ["revert", "abc1234", "--yes", "-w", str(tmp_path)])

    assert accepted.exit_code == 0
    assert "Restored abc1234." in accepted.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_branch_and_review(fake_client: Any, store: InMemoryKeyValueStore, tmp_path: Path) -> None:
    runner = CliRunner()

    created = runner.invoke(app, ["branch", "feature/login", "-w", str(tmp_path)])
    store.set(TEAM_MODE_KEY, True)
    review = runner.invoke(
        app, ["review", "Login flow", "--description", "Adds login", "-w", str(tmp_path)]
    )

    assert created.exit_code == 0
    assert "Switched to new branch 'feature/login'." in created.output
    assert review.exit_code == 0
    assert "Review request created: https://example.test/pr/1" in review.output
    assert dict(fake_client.calls)["open_pull_request"]["head"] == "feature/login"


@pytest.mark.usefixtures("runtime_patch")
def test_cli_review_from_main_fails(tmp_path: Path) -> None:
    result = CliRunner().invoke(app, ["review", "Ready", "-w", str(tmp_path)])

    assert result.exit_code == 1
    assert "Cannot submit 'main' for review into itself." in result.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_sync_reports_pull_failure(fake_client: Any, tmp_path: Path) -> None:
    fake_client.errors["pull"] = GitControlError("merge conflict", status_code=500)

    result = CliRunner().invoke(app, ["sync", "-w", str(tmp_path)])

    assert result.exit_code == 1
    assert "merge conflict" in result.output
    assert "push" not in fake_client.verbs()


@pytest.mark.usefixtures("runtime_patch")
def test_cli_team_mode_persists(store: InMemoryKeyValueStore, tmp_path: Path) -> None:
    runner = CliRunner()

    enabled = runner.invoke(app, ["team-mode", "on", "-w", str(tmp_path)])
    assert store.get(TEAM_MODE_KEY) is True
    disabled = runner.invoke(app, ["team-mode", "off"])
    invalid = runner.invoke(app, ["team-mode", "maybe"])

    assert enabled.exit_code == 0
    assert "Team mode enabled." in enabled.output
    assert disabled.exit_code == 0
    assert store.get(TEAM_MODE_KEY) is False
    assert invalid.exit_code == 1


@pytest.mark.usefixtures("runtime_patch")
def test_cli_watch_prints_each_refresh(fake_client: Any, tmp_path: Path) -> None:
    result = CliRunner().invoke(
        app, ["watch", "--interval", "0", "--count", "2", "-w", str(tmp_path)]
    )

    assert result.exit_code == 0
    assert result.output.count("All changes saved") == 2
    assert fake_client.verbs().count("status") == 3


@pytest.mark.usefixtures("runtime_patch")
def test_cli_branches_and_diff(tmp_path: Path) -> None:
    runner = CliRunner()

    listing = runner.invoke(app, ["branches", "-w", str(tmp_path)])
    diff = runner.invoke(app, ["diff", "-w", str(tmp_path)])

    assert listing.exit_code == 0
    assert "* main" in listing.output
    assert diff.exit_code == 0
    assert "+++ b/specs/api.md" in diff.output


@pytest.mark.usefixtures("runtime_patch")
def test_cli_repo_commands(fake_client: Any, tmp_path: Path) -> None:
    runner = CliRunner()

    init = runner.invoke(app, ["repo-init", "--user-name", "Ada", "-w", str(tmp_path)])
    config = runner.invoke(app, ["repo-config", "--user-email", "ada@new.test", "-w", str(tmp_path)])
    remote = runner.invoke(app, ["repo-remote", "https://example.test/r.git", "-w", str(tmp_path)])
    create = runner.invoke(app, ["repo-create", "specs", "--public", "-w", str(tmp_path)])

    assert init.exit_code == 0
    assert config.exit_code == 0
    assert "User:   Ada <ada@new.test>" in config.output
    assert remote.exit_code == 0
    assert create.exit_code == 0
    assert "Repository created: https://example.test/specs" in create.output
    assert dict(fake_client.calls)["create_remote_repository"]["private"] is False


@pytest.mark.usefixtures("runtime_patch")
def test_cli_show_falls_back_to_history_entry(fake_client: Any, tmp_path: Path) -> None:
    fake_client.commits = [
        GitCommit(
            hash="b" * 40,
            short_hash="bbbbbbb",
            message="Draft login flow",
            author="Ada",
            date="2024-05-01T10:00:00+00:00",
            relative_date="2 days ago",
        )
    ]

    result = CliRunner().invoke(app, ["show", "bbbbbbb", "-w", str(tmp_path)])

    assert result.exit_code == 0
    assert f"commit {'b' * 40}" in result.output
    assert "Draft login flow" in result.output
    assert fake_client.verbs()[-2:] == ["log", "show"]
