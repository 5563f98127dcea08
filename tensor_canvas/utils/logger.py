"""
Centralized logging infrastructure for Tensor Canvas.

Usage:
    from tensor_canvas.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Training started")
    logger.debug("Batch size: 10")
    logger.warning("Empty training split")
    logger.error("Loss diverged")

Configuration:
    Call setup_logging() once from the entry point to control verbosity:
    - DEBUG: All messages including debug info
    - INFO: Normal operation messages (default)
    - WARNING: Warnings and errors only
    - ERROR: Errors only
"""

import logging
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

# Namespace every project logger lives under
ROOT_LOGGER_NAME = 'canvas'
_PACKAGE_PREFIX = 'tensor_canvas.'


class LogLevel(Enum):
    """Log levels for configuration."""
    DEBUG = logging.DEBUG
    INFO = logging.INFO
    WARNING = logging.WARNING
    ERROR = logging.ERROR

    @classmethod
    def from_name(cls, name: str) -> 'LogLevel':
        """Look up a level by (case-insensitive) name, e.g. from a CLI flag."""
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown log level: {name!r}") from None


# Module-level state
_initialized = False
_log_dir: Optional[Path] = None
_file_handler: Optional[logging.FileHandler] = None


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to console output."""

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
        'RESET': '\033[0m',
    }

    def __init__(self, fmt: str, use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        if self.use_colors:
            # Color a copy so other handlers see the plain level name
            record = logging.makeLogRecord(record.__dict__)
            color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
            record.levelname = f"{color}{record.levelname}{self.COLORS['RESET']}"
        return super().format(record)


def setup_logging(
    log_dir: str = 'logs',
    level: LogLevel = LogLevel.INFO,
    console_output: bool = True,
    file_output: bool = True,
    log_filename: Optional[str] = None,
    force: bool = False,
) -> None:
    """
    Initialize the logging system.

    Args:
        log_dir: Directory for log files
        level: Minimum log level to capture
        console_output: Whether to output to console
        file_output: Whether to output to file
        log_filename: Custom log filename (default: canvas_YYYYMMDD_HHMMSS.log)
        force: Reconfigure even if logging was already initialized
    """
    global _initialized, _log_dir, _file_handler

    if _initialized and not force:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level.value)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    _file_handler = None

    # Console handler with colors
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level.value)
        console_fmt = ColoredFormatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
            use_colors=True
        )
        console_handler.setFormatter(console_fmt)
        root_logger.addHandler(console_handler)

    # File handler without colors
    if file_output:
        _log_dir = Path(log_dir)
        _log_dir.mkdir(parents=True, exist_ok=True)

        if log_filename is None:
            timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
            log_filename = f'canvas_{timestamp}.log'

        log_path = _log_dir / log_filename
        _file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        _file_handler.setLevel(logging.DEBUG)  # Capture everything in file
        file_fmt = logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s'
        )
        _file_handler.setFormatter(file_fmt)
        root_logger.addHandler(_file_handler)

    # Keep project records out of the root logger's handlers
    root_logger.propagate = False

    _initialized = True
    root_logger.debug(f"Logging initialized (level={level.name}, file={file_output})")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Logger instance configured with project settings

    Example:
        logger = get_logger(__name__)
        logger.info("Message")
    """
    # Auto-initialize with console-only defaults if the entry point did not
    if not _initialized:
        setup_logging(file_output=False)

    # Strip the package prefix for cleaner names
    if name.startswith(_PACKAGE_PREFIX):
        name = name[len(_PACKAGE_PREFIX):]

    return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')


def get_log_path() -> Optional[Path]:
    """Get the current log file path."""
    if _file_handler is not None:
        return Path(_file_handler.baseFilename)
    return None


def log_epoch_metrics(
    epoch: int,
    train_loss: float,
    test_loss: float,
    train_accuracy: Optional[float] = None,
    test_accuracy: Optional[float] = None,
    duration: Optional[float] = None,
) -> None:
    """
    Log per-epoch training metrics in a consistent format.

    Args:
        epoch: Epoch counter after the increment
        train_loss: Training loss for the epoch
        test_loss: Validation loss for the epoch
        train_accuracy: Training accuracy (if available)
        test_accuracy: Validation accuracy (if available)
        duration: Wall time of the increment in seconds (if available)
    """
    logger = get_logger('training')

    metrics = [
        f"epoch={epoch}",
        f"loss={train_loss:.6f}",
        f"val_loss={test_loss:.6f}",
    ]

    if train_accuracy is not None:
        metrics.append(f"acc={train_accuracy:.3f}")
    if test_accuracy is not None:
        metrics.append(f"val_acc={test_accuracy:.3f}")
    if duration is not None:
        metrics.append(f"time={duration * 1000:.1f}ms")

    logger.info(" | ".join(metrics))


def log_model_event(event: str, description: str, **kwargs) -> None:
    """
    Log model lifecycle events (build/dispose/rebuild).

    Args:
        event: Event type ('build', 'dispose', 'rebuild')
        description: Short model description (e.g. topology)
        **kwargs: Additional context (e.g. activation, parameters)
    """
    logger = get_logger('model')

    extra = " | ".join(f"{k}={v}" for k, v in kwargs.items())
    if extra:
        logger.info(f"{event.upper()} | {description} | {extra}")
    else:
        logger.info(f"{event.upper()} | {description}")
