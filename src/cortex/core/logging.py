"""
Asynchronous logging for Cortex.
"""

import os
import time
import yaml
from pathlib import Path
from typing import Optional
from contextlib import contextmanager
from loguru import logger as loguru_logger


class AsyncLogger:
    """
    Async logger with a flat format.

    Format: timestamp | level | component | message

    Messages are static strings. Anything user-provided (queries, note
    titles) travels as keyword context so loguru never formats it.
    """

    # Single handler shared by every instance
    _handler_id = None

    def __init__(self, component: str, debug_mode: bool = False, level: Optional[str] = None):
        self.component = component
        self.debug_mode = debug_mode
        self._setup_async_handler(level)

    def _setup_async_handler(self, level: Optional[str] = None):
        """
        Attach the shared file sink once.

        - enqueue=True keeps the caller non-blocking
        - rotation at 10 MB, zipped
        """
        if AsyncLogger._handler_id is None:
            AsyncLogger._handler_id = loguru_logger.add(
                os.getenv("CORTEX_LOG_FILE", "cortex-debug.log"),
                level=(level or _get_log_level()).upper(),
                format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[component]} | {message}",
                rotation="10 MB",
                compression="zip",
                enqueue=True,
            )

    def log(self, level: str, message: str, **context):
        """Send a record to loguru with the component bound."""
        loguru_logger.bind(component=self.component, **context).log(level, message)

    def debug(self, message: str, **context):
        """Log at DEBUG."""
        self.log("DEBUG", message, **context)

    def info(self, message: str, **context):
        """Log at INFO."""
        self.log("INFO", message, **context)

    def warning(self, message: str, **context):
        """Log at WARNING."""
        self.log("WARNING", message, **context)

    def error(self, message: str, include_trace: Optional[bool] = None, **context):
        """
        Log at ERROR with an optional stack trace.

        Args:
            message: Error message
            include_trace: Attach the current traceback (None = follow debug_mode)
            **context: Extra context
        """
        should_include_trace = include_trace if include_trace is not None else self.debug_mode

        if should_include_trace:
            import traceback

            context["stack_trace"] = traceback.format_exc()

        self.log("ERROR", message, **context)


class PerformanceLogger:
    """
    Logger for operation timings.
    """

    def __init__(self):
        self.logger = AsyncLogger("performance")

    @contextmanager
    def measure(self, operation: str, **context):
        """
        Context manager that logs the duration of the wrapped block.

        Usage:
        ```
        with perf_logger.measure("context_retrieval", query_length=len(query)):
            result = await assembler.retrieve_contexts(query)
        ```
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start
            self.logger.info(
                "Operation completed", operation=operation, duration_ms=duration * 1000, **context
            )


def _load_logging_section() -> dict:
    """logging section of .cortex (or CORTEX_CONFIG), empty when unreadable."""
    config_path = Path(os.getenv("CORTEX_CONFIG", ".cortex"))
    if config_path.is_file():
        try:
            with open(config_path, encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            section = config.get("logging") or {}
            if isinstance(section, dict):
                return section
        except (OSError, yaml.YAMLError, AttributeError):
            # Settings reports a broken file properly, here we only need the section
            pass
    return {}


def _get_debug_mode() -> bool:
    """Read debug_mode from .cortex or the CORTEX_DEBUG env var."""
    section = _load_logging_section()
    if "debug_mode" in section:
        return bool(section["debug_mode"])
    return os.getenv("CORTEX_DEBUG", "false").lower() == "true"


def _get_log_level() -> str:
    """Sink level: CORTEX_LOG_LEVEL, then logging.level from .cortex, then INFO."""
    return os.getenv("CORTEX_LOG_LEVEL") or str(_load_logging_section().get("level", "INFO"))


logger = AsyncLogger("cortex", debug_mode=_get_debug_mode())
