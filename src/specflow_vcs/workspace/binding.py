"""Binding between the selected workspace and the version control orchestrator."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from specflow_vcs.util.logging import get_logger

WorkspaceListener = Callable[[str | None], Awaitable[None]]


@dataclass(frozen=True)
class Workspace:
    """A managed specification workspace.

    Attributes:
        name: Display name of the workspace.
        project_folder: Filesystem path of the project tree, if one is set.
    """

    name: str
    project_folder: str | None = None


class WorkspaceBinding:
    """Tracks which workspace path the orchestrator targets.

    Every change of path bumps ``generation``; results of requests dispatched
    under an older generation must be discarded on arrival.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = normalize_workspace_path(path)
        self._generation = 0
        self._listeners: list[WorkspaceListener] = []
        self._logger = get_logger(self.__class__.__name__)

    @property
    def path(self) -> str | None:
        return self._path

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_bound(self) -> bool:
        return self._path is not None

    def subscribe(self, listener: WorkspaceListener) -> None:
        """Register a coroutine called with the new path after every change."""

        self._listeners.append(listener)

    async def bind(self, path: str | Path | None) -> bool:
        """Bind a new workspace path.

        Args:
            path: Workspace path, or None to unbind.

        Returns:
            True if the bound path changed and listeners were notified.
        """

        normalized = normalize_workspace_path(path)
        if normalized == self._path:
            return False
        self._path = normalized
        self._generation += 1
        self._logger.info("Workspace binding changed to %s.", normalized or "<none>")
        for listener in list(self._listeners):
            await listener(normalized)
        return True

    async def bind_workspace(self, workspace: Workspace | None) -> bool:
        """Bind the project folder of ``workspace`` (None unbinds)."""

        return await self.bind(workspace.project_folder if workspace else None)


def normalize_workspace_path(path: str | Path | None) -> str | None:
    """Return a canonical string for a workspace path, or None when empty."""

    if path is None:
        return None
    text = str(path).strip()
    if not text:
        return None
    return str(Path(text).expanduser().resolve())
