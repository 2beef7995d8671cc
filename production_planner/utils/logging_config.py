"""
Logging setup for applications that embed the planner.

Library modules only call logging.getLogger(__name__) and never install
handlers. An application calls setup_logging() once; every
production_planner.* logger then propagates to the planner's log file.

- File logging (rotating, warnings and above by default)
- Console logging for critical errors only
- Plan diagnostics (item failures, fiscal drift) written as log records
"""
import logging
import logging.handlers
from datetime import date
from pathlib import Path
from typing import Optional, Union

from production_planner.domain.models import ProductionPlan
from production_planner.utils.error_formatting import ErrorSeverity, plan_diagnostics

DEFAULT_APP_NAME = "production_planner"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
MAX_LOG_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

SEVERITY_LEVELS = {
    ErrorSeverity.INFO: logging.INFO,
    ErrorSeverity.WARNING: logging.WARNING,
    ErrorSeverity.ERROR: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


def log_file_path(log_dir: Union[str, Path], app_name: str = DEFAULT_APP_NAME, day: Optional[date] = None) -> Path:
    """Log file for an app and day, e.g. logs/production_planner_20241118.log."""
    day = day or date.today()
    return Path(log_dir) / f"{app_name}_{day.strftime('%Y%m%d')}.log"


def _file_handler(path: Path, level: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=MAX_LOG_BYTES,
        backupCount=BACKUP_COUNT,
        encoding='utf-8',
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(logging.CRITICAL)
    handler.setFormatter(logging.Formatter('CRITICAL: %(message)s'))
    return handler


def setup_logging(
    log_dir: Optional[Union[str, Path]] = None,
    app_name: str = DEFAULT_APP_NAME,
    file_level: int = logging.WARNING,
) -> logging.Logger:
    """
    Install the planner's log handlers (once per app name).

    Args:
        log_dir: Directory for log files (created if missing); ./logs when None
        app_name: Logger name. The default is the package name, so all
                  module loggers propagate to it.
        file_level: Lowest level written to the file. INFO also records
                    skipped items and fiscal drift notes.

    Returns:
        Configured logger
    """
    log_path = Path(log_dir) if log_dir is not None else Path.cwd() / "logs"
    log_path.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(app_name)
    logger.setLevel(logging.DEBUG)

    # Avoid duplicate handlers
    if logger.handlers:
        return logger

    logger.addHandler(_file_handler(log_file_path(log_path, app_name), file_level))
    logger.addHandler(_console_handler())
    return logger


def get_logger(name: str = DEFAULT_APP_NAME) -> logging.Logger:
    return logging.getLogger(name)


def log_plan_diagnostics(plan: ProductionPlan, logger: Optional[logging.Logger] = None) -> int:
    """
    Write a plan's per-item failures and fiscal warnings to the log.

    Each diagnostic is logged at the level matching its severity.

    Returns:
        Number of records written
    """
    logger = logger or get_logger()
    diagnostics = plan_diagnostics(plan)
    for ctx in diagnostics:
        logger.log(SEVERITY_LEVELS[ctx.severity], ctx.format_for_log())
    return len(diagnostics)
