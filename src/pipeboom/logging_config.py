import logging
import sys
from pathlib import Path

import structlog

LOG_FILE_NAME = "pipeboom.log"
ERR_FILE_NAME = "pipeboom.err"

LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
]


def reset_oversized(paths: list[Path], max_log_size_mb: int) -> list[Path]:
    """Delete any log file larger than the limit. Returns the deleted paths."""
    limit = max_log_size_mb * 1024 * 1024
    removed = []
    for path in paths:
        if path.exists() and path.stat().st_size > limit:
            path.unlink()
            removed.append(path)
    return removed


def configure_logging(
    log_dir: Path | None = None,
    level: str = "info",
    max_log_size_mb: int = 20,
) -> None:
    """Configure structured logging for the daemon process.

    Records go to ``pipeboom.log`` (everything at ``level``) and
    ``pipeboom.err`` (errors only) when ``log_dir`` is given. Stderr is only
    written to when it is a terminal or there is no log dir; under launchd
    stderr is already redirected into the log dir.
    """
    numeric_level = LEVELS.get(level.lower(), logging.INFO)
    handlers: list[logging.Handler] = []

    interactive = sys.stderr.isatty()
    if interactive or not log_dir:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer() if interactive else structlog.processors.JSONRenderer(),
                foreign_pre_chain=_SHARED_PROCESSORS,
            )
        )
        handlers.append(stderr_handler)

    removed: list[Path] = []
    if log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / LOG_FILE_NAME
        err_path = log_dir / ERR_FILE_NAME
        removed = reset_oversized([log_path, err_path], max_log_size_mb)

        file_formatter = structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=_SHARED_PROCESSORS,
        )
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(file_formatter)
        handlers.append(file_handler)

        err_handler = logging.FileHandler(err_path)
        err_handler.setLevel(logging.ERROR)
        err_handler.setFormatter(file_formatter)
        handlers.append(err_handler)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(numeric_level)

    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    log = structlog.get_logger()
    for path in removed:
        log.warning("log file exceeded size limit, reset", path=str(path), max_mb=max_log_size_mb)

