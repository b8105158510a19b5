"""XDG-compliant path management for panout."""

from pathlib import Path

from xdg_base_dirs import xdg_config_home

APP_NAME = "panout"


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return xdg_config_home() / APP_NAME


def get_config_file_path() -> Path:
    """Get the config.toml file path."""
    return get_config_dir() / "config.toml"


def ensure_config_dir() -> Path:
    """Create the config directory if it doesn't exist.

    Returns:
        The path where the config file should be located.
    """
    get_config_dir().mkdir(parents=True, exist_ok=True)
    return get_config_file_path()
