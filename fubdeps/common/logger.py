"""
Unified Logging System

Provides centralized logging for the dependency engine with:
- Colorized console output (colorama)
- Optional rotating log file
- Runtime level switching (silent / verbose modes)
"""

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional, Dict, Any

import colorama
from colorama import Fore, Style

from fubdeps.env import env

colorama.init(autoreset=True)


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colors for console output"""

    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': '',  # default terminal color
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Style.BRIGHT,
    }

    def format(self, record):
        formatted = super().format(record)
        color = self.COLORS.get(record.levelname, '')
        if not color:
            return formatted
        return f"{color}{formatted}{Style.RESET_ALL}"


class DepsLogger:
    """Logger registry for the dependency engine"""

    _loggers: Dict[str, logging.Logger] = {}
    _initialized: bool = False
    _log_dir: Optional[Path] = None
    _console_level: int = logging.INFO
    _file_level: int = logging.DEBUG
    _console_simple_format: bool = True
    _file_enabled: bool = False

    @classmethod
    def _parse_size(cls, size_str: str) -> int:
        """Parse size string like '10MB' to bytes"""
        size_str = size_str.upper().strip()
        multipliers = {
            'KB': 1024,
            'MB': 1024 * 1024,
            'GB': 1024 * 1024 * 1024,
            'B': 1,
        }

        for suffix, multiplier in multipliers.items():
            if size_str.endswith(suffix):
                number_str = size_str[:-len(suffix)].strip()
                try:
                    return int(float(number_str) * multiplier)
                except ValueError:
                    pass

        # Default to 10MB if parsing fails
        return 10 * 1024 * 1024

    @classmethod
    def initialize(cls, log_dir: Optional[str] = None,
                   console_level: Optional[str] = None,
                   file_level: Optional[str] = None,
                   console_simple_format: Optional[bool] = None,
                   file_enabled: Optional[bool] = None) -> None:
        """Initialize the logging system with environment variable support"""
        if cls._initialized:
            return

        cls._log_dir = Path(log_dir) if log_dir else Path(env.logs_dir)
        cls._console_level = getattr(logging, (console_level or env.log_level).upper())
        cls._file_level = getattr(logging, (file_level or env.log_file_level).upper())
        cls._console_simple_format = (console_simple_format
            if console_simple_format is not None else env.log_simple_format)
        cls._file_enabled = file_enabled if file_enabled is not None else env.log_file_enabled

        if cls._file_enabled:
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Get or create a logger instance

        Args:
            name: Logger name (usually module name)

        Returns:
            Configured logger instance
        """
        if not cls._initialized:
            cls.initialize()

        if name in cls._loggers:
            return cls._loggers[name]

        logger = logging.getLogger(name)
        # Handlers do the actual filtering
        logger.setLevel(logging.DEBUG)
        logger.handlers.clear()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(cls._console_level)
        if cls._console_simple_format:
            console_formatter = ColoredFormatter('%(message)s')
        else:
            console_formatter = ColoredFormatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
                datefmt='%H:%M:%S'
            )
        console_handler.setFormatter(console_formatter)
        logger.addHandler(console_handler)

        if cls._file_enabled:
            file_handler = logging.handlers.RotatingFileHandler(
                cls._log_dir / 'deps.log',
                maxBytes=cls._parse_size(env.log_max_size),
                backupCount=env.log_max_files,
                encoding='utf-8'
            )
            file_handler.setLevel(cls._file_level)
            file_handler.setFormatter(logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
            ))
            logger.addHandler(file_handler)

        logger.propagate = False

        cls._loggers[name] = logger
        return logger

    @classmethod
    def set_level(cls, level: str, target: str = 'both') -> None:
        """
        Change logging level for existing loggers

        Args:
            level: New log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
            target: Target to update ('console', 'file', 'both')
        """
        new_level = getattr(logging, level.upper())
        if target in ('console', 'both'):
            cls._console_level = new_level
        if target in ('file', 'both'):
            cls._file_level = new_level

        for logger in cls._loggers.values():
            for handler in logger.handlers:
                is_file = isinstance(handler, logging.handlers.RotatingFileHandler)
                if target == 'both':
                    handler.setLevel(new_level)
                elif target == 'console' and not is_file:
                    handler.setLevel(new_level)
                elif target == 'file' and is_file:
                    handler.setLevel(new_level)

    @classmethod
    def reset(cls) -> None:
        """Drop all configured loggers (used by tests)"""
        for logger in cls._loggers.values():
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
            logger.propagate = True
        cls._loggers = {}
        cls._initialized = False


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance

    Example:
        logger = get_logger(__name__)
    """
    return DepsLogger.get_logger(name)


def setup_logging(log_dir: Optional[str] = None,
                  console_level: Optional[str] = None,
                  file_level: Optional[str] = None,
                  console_simple_format: Optional[bool] = None,
                  file_enabled: Optional[bool] = None) -> None:
    """Initialize the logging system (environment values fill the gaps)"""
    DepsLogger.initialize(log_dir, console_level, file_level, console_simple_format, file_enabled)


def set_log_level(level: str, target: str = 'both') -> None:
    """Change logging level"""
    DepsLogger.set_level(level, target)


def apply_verbosity(silent: bool = False, verbose: bool = False) -> None:
    """Map silent/verbose configuration flags onto the console level"""
    if silent:
        set_log_level('WARNING', 'console')
    elif verbose:
        set_log_level('DEBUG', 'console')


def get_log_info() -> Dict[str, Any]:
    """Get information about current logging setup"""
    return {
        'initialized': DepsLogger._initialized,
        'log_directory': str(DepsLogger._log_dir) if DepsLogger._log_dir else None,
        'file_enabled': DepsLogger._file_enabled,
        'active_loggers': list(DepsLogger._loggers.keys()),
    }
