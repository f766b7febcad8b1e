"""Progress indication for long-running startup steps, using Rich.

In interactive terminals a Rich progress bar is shown while workloads are
compiled. When output goes to a log or pipe the step is logged instead, so
log files are not filled with progress-bar redraws.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, Optional, Tuple

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

if TYPE_CHECKING:
    from logging import Logger

UpdateFunc = Callable[..., None]
SetDescriptionFunc = Callable[[str], None]


def is_interactive_terminal() -> bool:
    """True when stdout is a terminal Rich can draw on."""
    return Console().is_terminal


@contextmanager
def progress_context(
    description: str,
    total: Optional[int] = None,
    logger: Optional["Logger"] = None,
    transient: bool = True,
) -> Iterator[Tuple[UpdateFunc, SetDescriptionFunc]]:
    """Context manager for progress indication with automatic TTY detection.

    Args:
        description: Initial description text for the progress indicator.
        total: Number of steps, or None for an indeterminate spinner.
        logger: Logger used instead of the progress bar when the terminal is
            not interactive. Each description change is logged at VERBOSE.
        transient: If True, the bar is cleared when the context exits.

    Yields:
        Tuple of (update_func, set_description_func):
            - update_func(advance=1, completed=None): Advances progress
            - set_description_func(desc): Updates description text

    Example:
        >>> with progress_context("Compiling workloads", total=len(sources)) as (update, set_desc):
        ...     for source in sources:
        ...         set_desc(f"Compiling {source}")
        ...         compile_source(source)
        ...         update()
    """
    if not is_interactive_terminal():
        if logger is not None:
            logger.status(f"{description}...")

        def log_update(advance: int = 1, completed: Optional[int] = None) -> None:
            pass

        def log_set_description(desc: str) -> None:
            if logger is not None:
                logger.verbose(desc)

        yield (log_update, log_set_description)
        return

    columns = [SpinnerColumn(), TextColumn("[progress.description]{task.description}")]
    if total is not None:
        columns += [BarColumn(), MofNCompleteColumn()]
    columns.append(TimeElapsedColumn())

    with Progress(*columns, transient=transient) as progress:
        task_id = progress.add_task(description, total=total)

        def update_func(advance: int = 1, completed: Optional[int] = None) -> None:
            if completed is not None:
                progress.update(task_id, completed=completed)
            else:
                progress.update(task_id, advance=advance)

        def set_description_func(desc: str) -> None:
            progress.update(task_id, description=desc)

        yield (update_func, set_description_func)


__all__ = [
    "is_interactive_terminal",
    "progress_context",
]
