"""Version control orchestration for specification workspaces."""

__version__ = "0.1.0"
