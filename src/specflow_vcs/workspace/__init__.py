"""Workspace selection and binding."""

from specflow_vcs.workspace.binding import Workspace, WorkspaceBinding, normalize_workspace_path

__all__ = ["Workspace", "WorkspaceBinding", "normalize_workspace_path"]
