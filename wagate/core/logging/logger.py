"""
Rich-based logger with tenant and customer context support.

Context is added as a message prefix ([T:tenant][U:customer]) read from
contextvars on every call, so loggers can be created once at module or
service level and still report the tenant of the request being handled.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

from wagate.core.config.settings import Settings, settings


class CompactFormatter(logging.Formatter):
    """Shortens wagate module names to their last two parts."""

    def format(self, record):
        if record.name.startswith("wagate."):
            parts = record.name.split(".")
            if len(parts) > 2:
                record.name = ".".join(parts[-2:])
        return super().format(record)


_theme = Theme(
    {
        "info": "cyan",
        "warning": "yellow",
        "error": "bold red",
        "debug": "dim white",
    }
)
_console = Console(theme=_theme)


class ContextLogger:
    """
    Logger wrapper that adds tenant and customer context to messages.

    Bound values act as defaults; live contextvars take precedence.
    """

    def __init__(
        self,
        logger: logging.Logger,
        tenant_id: str | None = None,
        user_id: str | None = None,
    ):
        self.logger = logger
        self.tenant_id = tenant_id or "---"
        self.user_id = user_id or "---"

    def _format_message(self, message: str) -> str:
        from .context import get_current_tenant_context, get_current_user_context

        current_tenant = get_current_tenant_context() or self.tenant_id
        current_user = get_current_user_context() or self.user_id

        if current_tenant and current_tenant != "---":
            if current_user and current_user != "---":
                return f"[T:{current_tenant}][U:{current_user}] {message}"
            return f"[T:{current_tenant}] {message}"
        elif current_user and current_user != "---":
            return f"[U:{current_user}] {message}"
        return message

    def debug(self, message: str, *args, **kwargs) -> None:
        self.logger.debug(self._format_message(message), *args, **kwargs)

    def info(self, message: str, *args, **kwargs) -> None:
        self.logger.info(self._format_message(message), *args, **kwargs)

    def warning(self, message: str, *args, **kwargs) -> None:
        self.logger.warning(self._format_message(message), *args, **kwargs)

    def error(self, message: str, *args, **kwargs) -> None:
        self.logger.error(self._format_message(message), *args, **kwargs)

    def critical(self, message: str, *args, **kwargs) -> None:
        self.logger.critical(self._format_message(message), *args, **kwargs)

    def exception(self, message: str, *args, **kwargs) -> None:
        self.logger.exception(self._format_message(message), *args, **kwargs)


def setup_logging(
    *,
    level: str = "INFO",
    mode: str = "PROD",
    log_dir: str | None = None,
    console_fmt: str | None = None,
    file_fmt: str | None = None,
) -> None:
    """
    Initialize the root logger with Rich formatting.

    Parameters
    ----------
    level : str
        Logging level ("DEBUG", "INFO", "WARNING", "ERROR")
    mode : str
        "DEV" creates daily log files + console; anything else → console only
    log_dir : str, optional
        Directory for log files (DEV mode only)
    console_fmt : str, optional
        Console format string
    file_fmt : str, optional
        File format string
    """
    lvl = level.upper()
    lvl = lvl if lvl in ("DEBUG", "INFO", "WARNING", "ERROR") else "INFO"

    # RichHandler already shows level and time
    console_format = console_fmt or "[%(name)s] %(message)s"
    file_format = file_fmt or "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    rich_handler = RichHandler(
        console=_console,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        show_time=True,
        show_level=True,
        markup=False,
    )
    rich_handler.setFormatter(CompactFormatter(console_format))

    handlers: list[logging.Handler] = [rich_handler]

    if mode.upper() == "DEV" and log_dir:
        os.makedirs(log_dir, exist_ok=True)
        logfile = os.path.join(log_dir, f"wagate_{datetime.now():%Y%m%d}.log")
        file_handler = logging.FileHandler(logfile, encoding="utf-8")
        file_handler.setFormatter(CompactFormatter(file_format))
        handlers.append(file_handler)
        _console.print(f"[green]DEV mode:[/] console + file → {logfile}")

    logging.basicConfig(level=lvl, handlers=handlers, force=True)
    logging.getLogger("wagate.logging").info(f"Logging initialized ({lvl})")


def setup_app_logging(app_settings: Settings | None = None) -> None:
    """
    Initialize application logging.

    Called once during FastAPI application startup.
    """
    cfg = app_settings or settings
    setup_logging(
        level=cfg.log_level,
        mode="DEV" if cfg.is_development else "PROD",
        log_dir=cfg.log_dir if cfg.is_development else None,
    )


def get_logger(name: str) -> ContextLogger:
    """
    Get a logger that picks up tenant and customer from request context.

    Args:
        name: Logger name (usually __name__)
    """
    from .context import get_current_tenant_context, get_current_user_context

    return ContextLogger(
        logging.getLogger(name),
        tenant_id=get_current_tenant_context(),
        user_id=get_current_user_context(),
    )


def get_app_logger() -> ContextLogger:
    """Application logger for startup and shutdown events."""
    return get_logger("wagate.app")
