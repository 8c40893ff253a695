"""Telemetry - logging and metrics entry point

Every component takes an optional ``logger`` argument; the CLI builds one
with ``setup_logging`` and passes it down so verbosity is never global state.

Log format: [module] msg
Metric examples: window.wait.attempts, lock.acquired, transport.error
"""

import logging

from rich.console import Console
from rich.logging import RichHandler

from .config import LOG_LEVEL, METRICS_ENABLED

_LOG_FORMAT = "[%(name)s] %(message)s"

ROOT_LOGGER_NAME = "wsmux"


def get_logger(name: str) -> logging.Logger:
    """Return a logger for a module.

    Args:
        name: Module name (usually ``__name__``)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def setup_logging(level: str | int | None = None, console: Console | None = None) -> logging.Logger:
    """Configure the ``wsmux`` logger hierarchy with a rich stderr handler.

    Safe to call more than once: the previous handler is replaced.

    Args:
        level: Level name or number; defaults to ``config.LOG_LEVEL``
        console: Console to log to; defaults to a stderr console

    Returns:
        The configured root ``wsmux`` logger
    """
    if level is None:
        level = LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_wsmux_handler", False):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    handler._wsmux_handler = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger


class Metrics:
    """In-memory counters, read back by tests and ``--verbose`` diagnostics."""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._counters: dict[str, int] = {}

    def inc(self, name: str, labels: dict[str, str] | None = None, value: int = 1) -> None:
        """Increment a counter.

        Args:
            name: Metric name (e.g. "lock.acquired")
            labels: Optional labels (e.g. {"host": "devbox"})
            value: Increment, default 1
        """
        if not self.enabled:
            return
        key = self._make_key(name, labels)
        self._counters[key] = self._counters.get(key, 0) + value

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> int:
        return self._counters.get(self._make_key(name, labels), 0)

    def reset(self) -> None:
        """Clear all counters (tests)."""
        self._counters.clear()

    def get_all_counters(self) -> dict[str, int]:
        return dict(self._counters)

    def _make_key(self, name: str, labels: dict[str, str] | None) -> str:
        if not labels:
            return name
        label_str = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
        return f"{name}{{{label_str}}}"


metrics = Metrics(enabled=METRICS_ENABLED)
