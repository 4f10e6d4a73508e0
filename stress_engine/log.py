"""structlog setup for applications embedding the engine.

Library modules only call ``structlog.get_logger(__name__)``; the host
process decides rendering by calling :func:`configure_logging` once.
"""

from __future__ import annotations

import logging

import structlog

from .config import get_settings


def configure_logging(level: str | None = None, json: bool | None = None) -> None:
    """Install the structlog processor chain.

    Args:
        level: Minimum level name (``"DEBUG"``, ``"INFO"``...). Defaults to
            ``Settings.LOG_LEVEL``.
        json: Render JSON lines instead of the console format. Defaults to
            ``Settings.LOG_JSON``.
    """
    settings = get_settings()
    level_name = (level or settings.LOG_LEVEL).upper()
    use_json = settings.LOG_JSON if json is None else json

    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    renderer = (
        structlog.processors.JSONRenderer()
        if use_json
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
