"""Logging configuration for hyprconf.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing for control channel calls and profile writes

The engine itself never configures handlers; the entry point calls
``setup_logging()`` once.

Environment Variables:
    HYPRCONF_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    HYPRCONF_LOG_FILE: Path to log file (default: ~/.hyprconf/hyprconf.log)
    HYPRCONF_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    HYPRCONF_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from hyprconf.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("hyprctl")
    async def _run(self, *args):
        ...
"""
import asyncio
import functools
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("hyprconf.perf")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("HYPRCONF_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".hyprconf" / "hyprconf.log"
    path_str = os.environ.get("HYPRCONF_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects HYPRCONF_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger writing to a separate file
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("HYPRCONF_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("HYPRCONF_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "hyprconf-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    root_logger = logging.getLogger("hyprconf")
    root_logger.setLevel(logging.DEBUG)  # Capture all, handlers filter
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    # Timings go to their own file only
    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    root_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def _describe(args: tuple, target: Optional[str]) -> str:
    if target is not None:
        return target
    if args and hasattr(args[0], "timing_target"):
        return str(args[0].timing_target)
    return "N/A"


def timed(operation: str, target: Optional[str] = None):
    """Decorator to log execution time of sync/async functions.

    Args:
        operation: Name of the operation (e.g., "hyprctl", "profile_write")
        target: Optional label; otherwise taken from ``self.timing_target``

    Usage:
        @timed("hyprctl")
        async def _run(self, *args):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(*args, **kwargs) -> Any:
            label = _describe(args, target)
            start = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000  # ms
                perf_logger.info(f"{operation:20s} | {label:20s} | {elapsed:8.2f}ms | OK")
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(
                    f"{operation:20s} | {label:20s} | {elapsed:8.2f}ms | FAIL: {e}"
                )
                raise

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs) -> Any:
            label = _describe(args, target)
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.info(f"{operation:20s} | {label:20s} | {elapsed:8.2f}ms | OK")
                return result
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(
                    f"{operation:20s} | {label:20s} | {elapsed:8.2f}ms | FAIL: {e}"
                )
                raise

        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator


@asynccontextmanager
async def timed_section(operation: str, target: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Usage:
        async with timed_section("batch", target="apply", profile=profile_id):
            ...
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {target or 'N/A':20s} | {elapsed:8.2f}ms | OK"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.info(msg)
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = f"{operation:20s} | {target or 'N/A':20s} | {elapsed:8.2f}ms | FAIL: {e}"
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
