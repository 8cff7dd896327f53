"""BubbleTasks CLI package."""

from bubbletasks.cli.main import main

__all__ = ["main"]
