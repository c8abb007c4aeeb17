"""Configuration models and loaders for specflow-vcs."""

from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

CONFIG_FILE_NAMES: tuple[str, ...] = ("specflow_vcs.yaml", "specflow_vcs.yml", "pyproject.toml")
DEFAULT_STORE_PATH = Path("~/.specflow_vcs/store.json")


@dataclass(frozen=True)
class ServiceConfig:
    """Location of the git-control service."""

    base_url: str = "http://localhost:4001"
    timeout_s: float = 30.0


@dataclass(frozen=True)
class StorageConfig:
    """Location of the key/value store holding preferences and integrations."""

    path: Path = DEFAULT_STORE_PATH


@dataclass(frozen=True)
class VersionControlConfig:
    """Behavior of the version control orchestrator."""

    main_branch: str = "main"
    refresh_documentation: bool = True
    poll_interval_s: float = 10.0


@dataclass(frozen=True)
class HistoryConfig:
    """History fetching options.

    Attributes:
        limit: Maximum number of commits requested from the log endpoint.
        placeholder_on_failure: Show synthetic placeholder commits when the log
            endpoint fails instead of surfacing an error.
    """

    limit: int = 50
    placeholder_on_failure: bool = False


@dataclass(frozen=True)
class CredentialsConfig:
    """Storage keys used to resolve credentials."""

    git_integration_key: str = "integration_config_github"
    ai_integration_key: str = "integration_config_anthropic"
    ai_direct_keys: tuple[str, ...] = ("anthropic_api_key",)


@dataclass(frozen=True)
class AppConfig:
    """Top-level configuration for the application.

    Attributes:
        workspace: Default workspace path used when a command does not name one.
        service: Git-control service connection settings.
        storage: Key/value store settings.
        version_control: Orchestrator behavior.
        history: History fetching options.
        credentials: Credential lookup keys.
    """

    workspace: Path | None = None
    service: ServiceConfig = field(default_factory=lambda: ServiceConfig())
    storage: StorageConfig = field(default_factory=lambda: StorageConfig())
    version_control: VersionControlConfig = field(default_factory=lambda: VersionControlConfig())
    history: HistoryConfig = field(default_factory=lambda: HistoryConfig())
    credentials: CredentialsConfig = field(default_factory=lambda: CredentialsConfig())


def load_config(path: Path | None = None) -> AppConfig:
    """Load application configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory containing one.

    Returns:
        Parsed AppConfig with defaults applied when no config exists.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        return AppConfig()

    if config_path.suffix in {".yaml", ".yml"}:
        raw_data = _load_yaml(config_path)
    elif config_path.suffix == ".toml":
        raw_data = _load_toml(config_path)
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    return _parse_app_config(raw_data, base_path=config_path.parent)


def config_to_dict(config: AppConfig) -> dict[str, Any]:
    """Serialize an AppConfig into a JSON-compatible dictionary."""

    return {
        "workspace": str(config.workspace) if config.workspace else None,
        "service": {
            "base_url": config.service.base_url,
            "timeout_s": config.service.timeout_s,
        },
        "storage": {"path": str(config.storage.path)},
        "version_control": {
            "main_branch": config.version_control.main_branch,
            "refresh_documentation": config.version_control.refresh_documentation,
            "poll_interval_s": config.version_control.poll_interval_s,
        },
        "history": {
            "limit": config.history.limit,
            "placeholder_on_failure": config.history.placeholder_on_failure,
        },
        "credentials": {
            "git_integration_key": config.credentials.git_integration_key,
            "ai_integration_key": config.credentials.ai_integration_key,
            "ai_direct_keys": list(config.credentials.ai_direct_keys),
        },
    }


def update_workspace(config: AppConfig, workspace: Path | None) -> AppConfig:
    """Return a config copy with an updated default workspace."""

    return replace(config, workspace=workspace)


def update_service_url(config: AppConfig, base_url: str) -> AppConfig:
    """Return a config copy pointing at a different git-control service."""

    return replace(config, service=replace(config.service, base_url=base_url))


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is None:
        candidate_paths = [Path(name) for name in CONFIG_FILE_NAMES]
    elif path.is_dir():
        candidate_paths = [path / name for name in CONFIG_FILE_NAMES]
    else:
        candidate_paths = [path]

    for candidate in candidate_paths:
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("specflow_vcs", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.specflow_vcs must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is None:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return data


def _parse_app_config(raw_data: dict[str, Any], base_path: Path) -> AppConfig:
    workspace: Path | None = None
    raw_workspace = _optional_str(raw_data.get("workspace"))
    if raw_workspace is not None:
        workspace = Path(raw_workspace).expanduser()
        if not workspace.is_absolute():
            workspace = (base_path / workspace).resolve()

    return AppConfig(
        workspace=workspace,
        service=_parse_service_config(raw_data.get("service", {})),
        storage=_parse_storage_config(raw_data.get("storage", {}), base_path),
        version_control=_parse_version_control_config(raw_data.get("version_control", {})),
        history=_parse_history_config(raw_data.get("history", {})),
        credentials=_parse_credentials_config(raw_data.get("credentials", {})),
    )


def _parse_service_config(raw: Any) -> ServiceConfig:
    if not isinstance(raw, dict):
        return ServiceConfig()
    timeout_s = float(raw.get("timeout_s", 30.0))
    if timeout_s <= 0:
        raise ValueError("service.timeout_s must be positive.")
    return ServiceConfig(
        base_url=str(raw.get("base_url", ServiceConfig.base_url)),
        timeout_s=timeout_s,
    )


def _parse_storage_config(raw: Any, base_path: Path) -> StorageConfig:
    if not isinstance(raw, dict):
        return StorageConfig()
    raw_path = _optional_str(raw.get("path"))
    if raw_path is None:
        return StorageConfig()
    path = Path(raw_path).expanduser()
    if not path.is_absolute():
        path = (base_path / path).resolve()
    return StorageConfig(path=path)


def _parse_version_control_config(raw: Any) -> VersionControlConfig:
    if not isinstance(raw, dict):
        return VersionControlConfig()
    return VersionControlConfig(
        main_branch=_optional_str(raw.get("main_branch")) or "main",
        refresh_documentation=bool(raw.get("refresh_documentation", True)),
        poll_interval_s=float(raw.get("poll_interval_s", 10.0)),
    )


def _parse_history_config(raw: Any) -> HistoryConfig:
    if not isinstance(raw, dict):
        return HistoryConfig()
    limit = int(raw.get("limit", 50))
    if limit <= 0:
        raise ValueError("history.limit must be positive.")
    return HistoryConfig(
        limit=limit,
        placeholder_on_failure=bool(raw.get("placeholder_on_failure", False)),
    )


def _parse_credentials_config(raw: Any) -> CredentialsConfig:
    if not isinstance(raw, dict):
        return CredentialsConfig()
    direct_keys = raw.get("ai_direct_keys", ["anthropic_api_key"])
    if not isinstance(direct_keys, list):
        raise ValueError("credentials.ai_direct_keys must be a list of keys.")
    return CredentialsConfig(
        git_integration_key=str(raw.get("git_integration_key", "integration_config_github")),
        ai_integration_key=str(raw.get("ai_integration_key", "integration_config_anthropic")),
        ai_direct_keys=tuple(str(key) for key in direct_keys),
    )


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
