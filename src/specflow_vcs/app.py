"""Application wiring for CLI-friendly orchestration."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from specflow_vcs.config import AppConfig, config_to_dict, load_config, update_service_url
from specflow_vcs.credentials import CredentialStore, IntegrationCredentialStore
from specflow_vcs.orchestrator import VersionControlOrchestrator
from specflow_vcs.storage import JsonFileKeyValueStore, KeyValueStore
from specflow_vcs.util.logging import get_logger
from specflow_vcs.util.observability import ObservabilityManager, create_observability_manager
from specflow_vcs.version_control.client import GitControlClient
from specflow_vcs.version_control.provisioning import RepositoryProvisioner
from specflow_vcs.workspace.binding import WorkspaceBinding, normalize_workspace_path


class AppConfigError(RuntimeError):
    """Raised when configuration or runtime setup fails."""


@dataclass(frozen=True)
class RuntimeContext:
    """Container for runtime services used by the orchestrator."""

    config: AppConfig
    client: GitControlClient
    binding: WorkspaceBinding
    orchestrator: VersionControlOrchestrator
    store: KeyValueStore
    token_store: CredentialStore
    ai_key_store: CredentialStore
    observability: ObservabilityManager


_LOGGER = get_logger("specflow_vcs.app")


def initialize_config(directory: Path, *, workspace: Path | None = None) -> Path:
    """Create a default configuration file.

    Args:
        directory: Directory where the config should be written.
        workspace: Optional default workspace recorded in the config.

    Returns:
        Path to the generated configuration file.

    Raises:
        AppConfigError: If the config file already exists.
    """

    directory = directory.resolve()
    config_path = directory / "specflow_vcs.yaml"
    if config_path.exists():
        raise AppConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "directory."
        )
    config = AppConfig(workspace=workspace.resolve() if workspace else None)
    config_path.write_text(json.dumps(config_to_dict(config), indent=2), encoding="utf-8")
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path


def load_runtime_config(config_path: Path | None, *, service_url: str | None = None) -> AppConfig:
    """Load configuration, applying a service URL override when given."""

    try:
        config = load_config(config_path)
    except ValueError as exc:
        raise AppConfigError(str(exc)) from exc
    if service_url:
        config = update_service_url(config, service_url)
    return config


def resolve_workspace(config: AppConfig, workspace: Path | None) -> str:
    """Pick the workspace path for a command.

    Raises:
        AppConfigError: If neither the command nor the config names a workspace.
    """

    resolved = normalize_workspace_path(workspace or config.workspace)
    if resolved is None:
        raise AppConfigError("No workspace given. Pass --workspace or set 'workspace' in the config.")
    return resolved


def build_runtime(
    config: AppConfig,
    *,
    client: GitControlClient | None = None,
    store: KeyValueStore | None = None,
    observability: ObservabilityManager | None = None,
) -> RuntimeContext:
    """Build runtime services for the orchestrator.

    Args:
        config: Application configuration.
        client: Optional pre-built git-control client (for testing).
        store: Optional pre-built key/value store (for testing).
        observability: Optional observability manager.

    Returns:
        RuntimeContext with initialized services. No workspace is bound yet.
    """

    observability = observability or create_observability_manager()
    client = client or GitControlClient(
        config.service.base_url,
        timeout_s=config.service.timeout_s,
    )
    store = store or JsonFileKeyValueStore(config.storage.path)
    token_store = IntegrationCredentialStore(store, config.credentials.git_integration_key)
    ai_key_store = IntegrationCredentialStore(
        store,
        config.credentials.ai_integration_key,
        direct_keys=config.credentials.ai_direct_keys,
    )
    binding = WorkspaceBinding()
    orchestrator = VersionControlOrchestrator(
        client,
        binding,
        preferences=store,
        token_store=token_store,
        ai_key_store=ai_key_store,
        config=config.version_control,
        history_config=config.history,
        observability=observability,
    )
    _LOGGER.debug("Runtime initialized against %s.", client.base_url)
    return RuntimeContext(
        config=config,
        client=client,
        binding=binding,
        orchestrator=orchestrator,
        store=store,
        token_store=token_store,
        ai_key_store=ai_key_store,
        observability=observability,
    )


def build_provisioner(runtime: RuntimeContext, workspace: str) -> RepositoryProvisioner:
    """Create a repository provisioner for ``workspace``."""

    return RepositoryProvisioner(runtime.client, workspace, token_store=runtime.token_store)
