import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler


def is_ci_environment():
    return (
        os.getenv('CI') is not None or
        os.getenv('GITHUB_ACTIONS') is not None or
        not sys.stdout.isatty()
    )


def get_console(stderr: bool = False) -> Console:
    """Detect environment and create console."""
    if is_ci_environment():
        # CI/automated environment - no colors, no interactive elements
        return Console(force_terminal=False, no_color=True, stderr=stderr)
    return Console(stderr=stderr)


def configure_logging(level: str = "WARNING", verbose: bool = False):
    """Route library logging through Rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, str(level).upper(), logging.WARNING),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=get_console(stderr=True), show_path=False)],
        force=True
    )
