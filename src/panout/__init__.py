"""Tmux pane orchestrator driven by TOML bundles and workspaces."""

__version__ = "0.3.0"
