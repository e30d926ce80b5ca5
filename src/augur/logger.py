"""
Logging infrastructure for the Augur prediction engine.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Dict, Optional


DEFAULT_LOG_FILE = "./logs/augur.log"

# console flag of every logger built by setup_logger, replayed by configure_logging
_console_outputs: Dict[str, bool] = {}


class ColoredFormatter(logging.Formatter):
    """Colored formatter for console output."""
    
    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
    }
    RESET = '\033[0m'
    
    def format(self, record: logging.LogRecord) -> str:
        # Work on a copy so the file handler sees the plain level name
        record = logging.makeLogRecord(record.__dict__)
        if record.levelname in self.COLORS:
            record.levelname = (
                f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"
            )
        return super().format(record)


class StructuredFormatter(logging.Formatter):
    """Structured formatter for file output with prediction context."""
    
    def format(self, record: logging.LogRecord) -> str:
        prefix = ""
        if hasattr(record, 'symbol'):
            prefix += f"[{record.symbol}]"
        if hasattr(record, 'timeframe'):
            prefix += f"[{record.timeframe}]"
        if hasattr(record, 'request_id'):
            prefix += f"[REQ:{record.request_id}]"
        if prefix:
            record = logging.makeLogRecord(record.__dict__)
            record.msg = f"{prefix} {record.msg}"
        
        return super().format(record)


def setup_logger(
    name: str,
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_size: str = "10MB",
    backup_count: int = 5,
    console_output: bool = True
) -> logging.Logger:
    """
    Set up a logger with file rotation and optional console output.
    
    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        max_size: Maximum log file size before rotation
        backup_count: Number of backup files to keep
        console_output: Whether to output to console
    
    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    _console_outputs[name] = console_output
    
    # Clear existing handlers
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(log_level)
    
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        
        console_format = ColoredFormatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        console_handler.setFormatter(console_format)
        logger.addHandler(console_handler)
    
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=_parse_size(max_size),
            backupCount=backup_count,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        
        file_format = StructuredFormatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)
    
    # Prevent propagation to root logger
    logger.propagate = False
    
    return logger


def configure_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_size: str = "10MB",
    backup_count: int = 5
) -> None:
    """
    Re-apply level and file rotation to every Augur logger created so far.
    
    Module loggers are built at import time from the environment; this
    brings them in line with an explicit LoggingConfig.
    """
    for name, console_output in list(_console_outputs.items()):
        setup_logger(
            name=name,
            level=level,
            log_file=log_file,
            max_size=max_size,
            backup_count=backup_count,
            console_output=console_output
        )


def _default_log_file() -> Optional[str]:
    """Log file from AUGUR_LOG_FILE; an empty value disables file output."""
    value = os.getenv("AUGUR_LOG_FILE", DEFAULT_LOG_FILE)
    return value or None


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance with default configuration.
    
    Args:
        name: Logger name
        level: Logging level, defaults to AUGUR_LOG_LEVEL or INFO
    
    Returns:
        Logger instance
    """
    return setup_logger(
        name=name,
        level=level or os.getenv("AUGUR_LOG_LEVEL", "INFO"),
        log_file=_default_log_file(),
        console_output=True
    )


def get_prediction_logger() -> logging.Logger:
    """Get specialized logger for prediction requests."""
    return setup_logger(
        name="augur.prediction",
        level=os.getenv("AUGUR_LOG_LEVEL", "INFO"),
        log_file=_default_log_file(),
        console_output=True
    )


def get_inference_logger() -> logging.Logger:
    """Get specialized logger for external inference traffic."""
    return setup_logger(
        name="augur.inference",
        level=os.getenv("AUGUR_LOG_LEVEL", "INFO"),
        log_file=_default_log_file(),
        console_output=False  # Prompts and responses are verbose
    )


def _parse_size(size_str: str) -> int:
    """
    Parse size string (e.g., '10MB', '1GB') to bytes.
    
    Args:
        size_str: Size string with unit
    
    Returns:
        Size in bytes
    """
    size_str = size_str.upper().strip()
    
    # Longest units first so 'MB' is not read as 'B'
    size_map = {
        'GB': 1024 * 1024 * 1024,
        'MB': 1024 * 1024,
        'KB': 1024,
        'B': 1,
    }
    
    for unit, multiplier in size_map.items():
        if size_str.endswith(unit):
            number = size_str[:-len(unit)].strip()
            try:
                return int(float(number) * multiplier)
            except ValueError:
                break
    
    try:
        return int(size_str)
    except ValueError:
        return 10 * 1024 * 1024  # Default 10MB


class PredictionLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter for prediction requests with extra context."""
    
    def process(self, msg: str, kwargs: dict) -> tuple:
        extra = dict(self.extra)
        extra.update(kwargs.get('extra', {}))
        kwargs['extra'] = extra
        return msg, kwargs


def get_prediction_adapter(
    symbol: Optional[str] = None,
    timeframe: Optional[str] = None,
    request_id: Optional[str] = None
) -> PredictionLoggerAdapter:
    """
    Get a prediction logger adapter with context.
    
    Args:
        symbol: Instrument symbol (e.g., 'R_75')
        timeframe: Timeframe label (e.g., '5m')
        request_id: Request identifier
    
    Returns:
        Logger adapter with prediction context
    """
    logger = get_prediction_logger()
    extra = {}
    
    if symbol:
        extra['symbol'] = symbol
    if timeframe:
        extra['timeframe'] = timeframe
    if request_id:
        extra['request_id'] = request_id
    
    return PredictionLoggerAdapter(logger, extra)
