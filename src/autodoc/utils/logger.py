"""Logging utilities with rich console output."""

import logging
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn


console = Console()

PACKAGE_LOGGER = "autodoc"


def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Set up a logger with rich formatting.

    Handlers are attached once to the package logger; module loggers
    propagate to it.

    Args:
        name: Logger name
        level: Logging level

    Returns:
        Configured logger instance
    """
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        root.addHandler(handler)
        root.setLevel(level)

    return logging.getLogger(name)


def set_verbose(verbose: bool) -> None:
    """Switch the package logger between INFO and DEBUG."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if verbose else logging.INFO)


def create_progress() -> Progress:
    """Create a rich progress bar.

    Returns:
        Progress instance
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    )


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]ℹ[/blue] {message}")
