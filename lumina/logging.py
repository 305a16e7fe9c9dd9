"""structlog configuration for the API and tests.

Room photos travel through the app as base64 data URIs several megabytes
long. ``elide_image_payloads`` shortens any such value before rendering so
a stray ``image=...`` field never floods the log.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, Any

import structlog

from lumina.config import Settings, settings

IMAGE_PREVIEW_CHARS = 40


def elide_image_payloads(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    for key, value in event_dict.items():
        if isinstance(value, str) and value.startswith("data:image/"):
            event_dict[key] = f"{value[:IMAGE_PREVIEW_CHARS]}...<{len(value)} chars>"
    return event_dict


class _MirrorWriter:
    """stdout writer that also appends each line to LOG_FILE.

    A file that cannot be opened or written is dropped with a warning on
    stderr; stdout keeps working.
    """

    def __init__(self, file_path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a")  # noqa: SIM115
        except OSError as exc:
            print(f"WARNING: log file {file_path!r} unavailable: {exc}", file=sys.stderr)

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        if self._file is None:
            return
        try:
            self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._file = None
            print("WARNING: log file write failed, mirroring stopped", file=sys.stderr)

    def flush(self) -> None:
        sys.stdout.flush()


def resolve_level(name: str) -> int:
    """Map a level name to its logging constant, defaulting to INFO."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def configure_logging(config: Settings | None = None) -> None:
    """Console output in development, JSON lines elsewhere."""
    config = config or settings
    renderer: Any = (
        structlog.dev.ConsoleRenderer()
        if config.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    if config.log_file:
        logger_factory = structlog.PrintLoggerFactory(file=_MirrorWriter(config.log_file))  # type: ignore[arg-type]
    else:
        logger_factory = structlog.PrintLoggerFactory()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            elide_image_payloads,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(config.log_level)),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )
