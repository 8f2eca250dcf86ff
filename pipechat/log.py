"""Diagnostics for pipechat.

Everything here writes to stderr; stdout is reserved for rendered replies.
"""

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

# Rich console for diagnostics
err_console = Console(stderr=True)

NOISY_LOGGERS = ("httpx", "httpcore")


def setup_logging(level: str = "WARNING") -> None:
    """Route log records to stderr through rich."""
    handler = RichHandler(
        console=err_console,
        show_time=False,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    logging.basicConfig(level=level.upper(), format="%(message)s", handlers=[handler], force=True)

    # Transport chatter only shows up in debug runs
    noisy_level = logging.DEBUG if logging.getLogger().level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def print_error(message: str) -> None:
    """Print the single diagnostic line for a failed invocation."""
    err_console.print(f"[red]Error:[/red] {escape(message)}", soft_wrap=True, highlight=False)
