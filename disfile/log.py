"""
Logging Setup

Library modules only create loggers (logging.getLogger(__name__)).
Scripts embedding disfile can call setup_logging() to get rich console
output for the 'disfile' logger tree.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

console = Console(stderr=True)


def setup_logging(verbose: bool = False, level: Optional[str] = None) -> logging.Logger:
    """
    Configure logging for disfile with rich output.

    Args:
        verbose: Log at DEBUG level (per-piece messages)
        level: Explicit level name, e.g. TransportConfig.log_level;
            ignored when verbose is set

    Returns:
        The configured 'disfile' logger
    """
    if verbose:
        resolved = logging.DEBUG
    else:
        resolved = getattr(logging, (level or 'INFO').upper(), logging.INFO)

    logger = logging.getLogger('disfile')
    logger.setLevel(resolved)

    # Calling twice must not duplicate output
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(console=console, show_time=False, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
