"""Utility functions for the BubbleTasks CLI.

Shared helpers: config I/O, paths, version, signal handling.
"""

import signal
import sys
from pathlib import Path

import yaml
from rich.console import Console

from bubbletasks import get_version
from bubbletasks.client import DEFAULT_API_URL

console = Console()

# Config paths
CONFIG_DIR = Path.home() / ".bubbletasks"
CONFIG_FILE = CONFIG_DIR / "config.yaml"


def _get_cli_version() -> str:
    return get_version()


def _handle_sigint(signum, frame):
    """Handle Ctrl-C gracefully."""
    console.print("\n[dim]Cancelled.[/dim]")
    sys.exit(130)


# Register signal handler early to catch Ctrl-C before Click processes it
signal.signal(signal.SIGINT, _handle_sigint)


def load_config() -> dict:
    """Load config from file."""
    if not CONFIG_FILE.exists():
        return {}
    with open(CONFIG_FILE) as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict) -> None:
    """Save config to file."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    with open(CONFIG_FILE, "w") as f:
        yaml.dump(config, f, default_flow_style=False)


def resolve_api_url(explicit: str | None = None) -> str:
    """API URL from the flag/env var, then the config file, then the default."""
    if explicit:
        return explicit.rstrip("/")
    return str(load_config().get("api_url") or DEFAULT_API_URL).rstrip("/")
