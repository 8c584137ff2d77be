# utils/logger.py
import os
import logging
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    """Explicit level first, then LAYOFFS_LOG_LEVEL, then INFO."""
    if level is None:
        level = os.environ.get("LAYOFFS_LOG_LEVEL", "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logger(
    logger_name: str,
    log_file: Optional[str] = None,
    level: Optional[Union[int, str]] = None,
    log_dir: Optional[str] = None,
    console: bool = True
) -> logging.Logger:
    """
    Set up and return a logger writing to a file and, optionally, the console.

    Pipeline modules share one log file by passing the same log_file.

    Args:
        logger_name: Name of the logger
        log_file: Optional specific log filename (default: {logger_name}.log)
        level: Logging level or level name (default: LAYOFFS_LOG_LEVEL or INFO)
        log_dir: Directory for log files (default: LAYOFFS_LOG_DIR or "logs")
        console: Also log to stderr

    Returns:
        Configured logger instance
    """
    log_dir = log_dir or os.environ.get("LAYOFFS_LOG_DIR", "logs")
    os.makedirs(log_dir, exist_ok=True)

    if log_file is None:
        log_file = f"{logger_name.lower().replace(' ', '_')}.log"
    log_path = os.path.join(log_dir, log_file)

    logger = logging.getLogger(logger_name)
    logger.setLevel(_resolve_level(level))

    # Re-running setup replaces handlers instead of stacking duplicates
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.debug(f"Log file is being saved to: {os.path.abspath(log_path)}")
    return logger
