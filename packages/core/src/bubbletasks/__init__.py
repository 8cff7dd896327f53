"""BubbleTasks - a single-user task timer queue with a REST backend."""

from importlib.metadata import PackageNotFoundError, version


def get_version() -> str:
    """Installed package version, or "dev" when running from a checkout."""
    try:
        return version("bubbletasks")
    except PackageNotFoundError:
        return "dev"
