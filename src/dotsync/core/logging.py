"""Logging configuration for dot-sync.

Diagnostics go through the standard ``logging`` module and are rendered on
the console by rich. User-facing progress and summaries are printed directly
with a rich ``Console`` by the command flows.

Example:
    ```python
    from dotsync.core.logging import setup_logging

    setup_logging(debug=True, log_file="~/.dot-sync/dot-sync.log")

    import logging
    logger = logging.getLogger(__name__)
    logger.debug("Materialized %s", path)
    ```
"""

import logging
import sys
from pathlib import Path
from types import TracebackType
from typing import Optional, Type

from rich.console import Console
from rich.logging import RichHandler

# Create console for rich output
console = Console(stderr=True)

_HANDLER_MARK = "_dotsync_handler"


def setup_logging(
    debug: bool = False,
    log_file: Optional[str] = None,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """Set up logging configuration.

    Console output uses rich formatting; the optional log file uses a plain
    format and always records debug messages. Calling this again replaces the
    handlers installed by an earlier call and leaves foreign handlers alone.

    Args:
        debug: Whether to enable debug logging (default: False).
        log_file: Optional path to log file. The path is expanded to handle ~
                 for home directory and parent directories are created.
        log_format: Format string for file log messages.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)

    # Remove handlers from a previous setup
    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(
        console=console,
        show_path=debug,
        enable_link_path=debug,
        markup=False,
        rich_tracebacks=True,
        tracebacks_show_locals=debug,
    )
    console_handler.setLevel(logging.DEBUG if debug else logging.WARNING)
    setattr(console_handler, _HANDLER_MARK, True)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)  # Always log debug to file
        file_handler.setFormatter(logging.Formatter(log_format))
        setattr(file_handler, _HANDLER_MARK, True)
        root_logger.addHandler(file_handler)

    logger = logging.getLogger(__name__)
    logger.debug("Logging initialized (debug=%s)", debug)
    if log_file:
        logger.debug("Log file: %s", log_file)

    def handle_exception(
        exc_type: Type[BaseException],
        exc_value: BaseException,
        exc_traceback: Optional[TracebackType],
    ) -> None:
        """Log uncaught exceptions before the interpreter exits."""
        if issubclass(exc_type, KeyboardInterrupt):
            # Don't log keyboard interrupt
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        logger.critical(
            "Uncaught exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )

    sys.excepthook = handle_exception
