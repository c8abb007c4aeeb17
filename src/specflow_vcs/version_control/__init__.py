"""Git-control service client, models and repository provisioning."""

from specflow_vcs.version_control.base import (
    BranchInfo,
    BranchListing,
    ChangedFile,
    DiffHunk,
    GitCommit,
    GitControlError,
    GitControlTimeoutError,
    GitDiff,
    GitStatus,
    OperationResult,
    RepositoryConfig,
    RepositoryNotFoundError,
    StatusResult,
)
from specflow_vcs.version_control.client import GitControlClient
from specflow_vcs.version_control.provisioning import MissingCredentialsError, RepositoryProvisioner

__all__ = [
    "BranchInfo",
    "BranchListing",
    "ChangedFile",
    "DiffHunk",
    "GitCommit",
    "GitControlClient",
    "GitControlError",
    "GitControlTimeoutError",
    "GitDiff",
    "GitStatus",
    "MissingCredentialsError",
    "OperationResult",
    "RepositoryConfig",
    "RepositoryNotFoundError",
    "RepositoryProvisioner",
    "StatusResult",
]
