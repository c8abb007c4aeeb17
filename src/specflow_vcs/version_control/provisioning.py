"""Repository setup operations: init, identity, remotes and hosted repositories."""

from __future__ import annotations

from specflow_vcs.credentials import GIT_TOKEN_ALIASES, CredentialStore
from specflow_vcs.util.logging import get_logger
from specflow_vcs.version_control.base import GitControlError, OperationResult, RepositoryConfig
from specflow_vcs.version_control.client import GitControlClient


class MissingCredentialsError(GitControlError):
    """Raised when an operation needs a token that is not configured."""


class RepositoryProvisioner:
    """Prepares a workspace for version control.

    Unlike the orchestrator these calls raise on failure; they are driven by
    explicit setup commands where the caller reports the error directly.
    """

    def __init__(
        self,
        client: GitControlClient,
        workspace: str,
        *,
        token_store: CredentialStore,
    ) -> None:
        self._client = client
        self._workspace = workspace
        self._token_store = token_store
        self._logger = get_logger(self.__class__.__name__)

    def describe(self) -> RepositoryConfig:
        """Return the current repository configuration.

        Transport failures are reported as an uninitialized repository.
        """

        try:
            return self._client.get_config(self._workspace)
        except GitControlError as exc:
            self._logger.warning("Unable to read git config for %s: %s", self._workspace, exc)
            return RepositoryConfig(initialized=False)

    def initialize(
        self,
        *,
        user_name: str | None = None,
        user_email: str | None = None,
    ) -> OperationResult:
        """Initialize a repository, optionally setting the commit identity."""

        result = self._client.init(
            self._workspace,
            user_name=user_name or None,
            user_email=user_email or None,
        )
        self._logger.info("Initialized repository at %s.", self._workspace)
        return result

    def configure_identity(self, user_name: str, user_email: str) -> OperationResult:
        """Set the commit author name and email."""

        return self._client.configure(self._workspace, user_name=user_name, user_email=user_email)

    def connect_remote(self, url: str, *, name: str = "origin") -> OperationResult:
        """Attach an existing hosted repository as a remote."""

        if not url.strip():
            raise ValueError("Remote URL must not be empty.")
        result = self._client.add_remote(self._workspace, url.strip(), name=name)
        self._logger.info("Connected remote '%s' for %s.", name, self._workspace)
        return result

    def create_remote_repository(self, name: str, *, private: bool = True) -> OperationResult:
        """Create a hosted repository and connect it to the workspace.

        Raises:
            MissingCredentialsError: If no git token is configured.
        """

        if not name.strip():
            raise ValueError("Repository name must not be empty.")
        token = self._token_store.resolve(GIT_TOKEN_ALIASES)
        if not token:
            raise MissingCredentialsError(
                "Git hosting token not found. Configure the git integration first."
            )
        result = self._client.create_remote_repository(
            self._workspace, name.strip(), private=private, token=token
        )
        self._logger.info("Created hosted repository '%s' (%s).", name, result.url or "no url")
        return result
