"""Shared loguru logger for harbormaster.

Console output goes through Rich; the CLI adds a rotating debug file once
settings are known. Provisioning messages are tagged with the container name
(``[svc1] Image 'nginx:latest' resolved``) via :func:`tagged`. Messages are
escaped for Rich markup on the console sink only, so the file log keeps them verbatim.
"""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any

from loguru import logger
from rich.logging import RichHandler
from rich.markup import escape


CONSOLE_LEVEL = "INFO"
FILE_LEVEL = "DEBUG"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name} | {message}"
FILE_ROTATION = "5 MB"
FILE_RETENTION = 2

_ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")

_configured = False


def _console_format(record: dict[str, Any]) -> str:
    record["extra"]["console_message"] = escape(record["message"])
    return "{extra[console_message]}"


def configure_logging(
    *,
    level: str = CONSOLE_LEVEL,
    file_path: str | Path | None = None,
    force: bool = False,
) -> None:
    """Install the console sink and, when ``file_path`` is set, a debug file sink.

    Calls after the first are ignored unless ``force`` is True.
    """
    global _configured
    if _configured and not force:
        return

    logger.remove()
    logger.add(
        RichHandler(markup=True, show_time=False),  # type: ignore[arg-type]
        level=level.upper(),
        format=_console_format,
    )
    if file_path:
        log_file = Path(file_path).expanduser().resolve()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level=FILE_LEVEL,
            format=FILE_FORMAT,
            rotation=FILE_ROTATION,
            retention=FILE_RETENTION,
            enqueue=True,
        )
    _configured = True


def tagged(tag: str | None, message: str) -> str:
    """Prefix ``message`` with ``[tag]``."""
    return f"[{tag}] {message}" if tag else message


def log_output(text: str, tag: str | None = None, *, level: str = "info") -> None:
    """Log tool output (build steps, container logs) one line at a time."""
    emit = getattr(logger, level, logger.info)
    for line in text.splitlines():
        line = _ANSI_RE.sub("", line).replace("\r", "")
        if line.strip():
            emit(tagged(tag, line))


__all__ = ["configure_logging", "log_output", "logger", "tagged"]

configure_logging()
