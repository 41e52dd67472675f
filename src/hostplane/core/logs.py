"""structlog setup shared by the CLI and the request-time app."""

from __future__ import annotations

import logging

import structlog


def configure_logging(level: str = "warning", verbose: bool = False) -> None:
    """Configure structlog filtering for the process.

    Args:
        level: Log level name (debug, info, warning, error).
        verbose: Force debug logging regardless of level.
    """
    effective_level = "debug" if verbose else level

    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, effective_level.upper())
        ),
    )
