"""Command line interface for specflow-vcs."""
