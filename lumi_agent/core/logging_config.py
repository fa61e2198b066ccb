"""
Logging setup for Lumi.

``setup_logging`` installs a console handler (and optionally a file handler)
on the root logger and applies per-package levels. Modules obtain their
logger with ``get_logger(__name__)`` or ``logging.getLogger(__name__)``.

Three line formats are available: ``simple``, ``detailed`` (default) and
``json``.
"""

import logging
from pathlib import Path
from typing import Dict, List, Optional

SIMPLE_FORMAT = "%(levelname)s %(name)s: %(message)s"

DETAILED_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [%(filename)s:%(lineno)d] %(message)s"

JSON_FORMAT = (
    '{"ts": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", '
    '"where": "%(filename)s:%(lineno)d", "msg": "%(message)s"}'
)

LOG_FORMATS: Dict[str, str] = {
    "simple": SIMPLE_FORMAT,
    "detailed": DETAILED_FORMAT,
    "json": JSON_FORMAT,
}

LOG_FILE_NAME = "lumi_agent.log"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Policy decisions and engine transitions are kept at DEBUG so the file log
# has the full trace; noisy libraries are raised to WARNING.
PACKAGE_LOG_LEVELS: Dict[str, str] = {
    "lumi_agent.agent_core": "DEBUG",
    "lumi_agent.agent_core.providers": "INFO",
    "lumi_agent.agent_core.repos": "INFO",
    "lumi_agent.server": "INFO",
    "lumi_agent.server.services": "DEBUG",
    "sqlalchemy": "WARNING",
    "aiosqlite": "WARNING",
    "httpx": "WARNING",
    "httpcore": "WARNING",
    "asyncio": "WARNING",
    "uvicorn": "INFO",
    "uvicorn.access": "WARNING",
}


def _settings_defaults() -> Dict[str, object]:
    # Imported here so that importing this module does not read the environment.
    from lumi_agent.core.config import settings

    cfg = settings.logging
    return {
        "level": cfg.level.upper(),
        "format": cfg.format,
        "file_dir": cfg.file_dir,
        "enable_file": cfg.enable_file,
    }


def _handlers(level: str, formatter: logging.Formatter, file_dir: Optional[str]) -> List[logging.Handler]:
    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(formatter)
    handlers: List[logging.Handler] = [console]

    if file_dir is not None:
        directory = Path(file_dir)
        directory.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(directory / LOG_FILE_NAME, encoding="utf-8")
        to_file.setLevel(logging.DEBUG)
        to_file.setFormatter(formatter)
        handlers.append(to_file)
    return handlers


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_file: Optional[bool] = None,
) -> None:
    """
    Configure the root logger for the application.

    Arguments left as ``None`` fall back to ``LUMI_LOG_LEVEL``,
    ``LUMI_LOG_FORMAT`` and ``LUMI_ENABLE_FILE_LOGGING``. Calling it again
    replaces the previously installed handlers.

    Args:
        log_level: Console level name, e.g. ``"INFO"``.
        log_format: One of ``simple``, ``detailed`` or ``json``.
        enable_file: Also write every record (DEBUG and up) to
            ``<LUMI_LOG_FILE_DIR>/lumi_agent.log``.
    """
    defaults = _settings_defaults()
    level = (log_level or str(defaults["level"])).upper()
    fmt = log_format or str(defaults["format"])
    write_file = bool(defaults["enable_file"]) if enable_file is None else enable_file

    formatter = logging.Formatter(LOG_FORMATS.get(fmt, DETAILED_FORMAT), datefmt=DATE_FORMAT)

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.setLevel(logging.DEBUG)
    for handler in _handlers(level, formatter, str(defaults["file_dir"]) if write_file else None):
        root.addHandler(handler)

    for name, name_level in PACKAGE_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(name_level)

    root.info("Logging configured: level=%s format=%s file=%s", level, fmt, write_file)


def get_logger(name: str) -> logging.Logger:
    """Return the logger for ``name`` (normally the caller's ``__name__``)."""
    return logging.getLogger(name)
