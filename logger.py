"""
Logging configuration for the task rota planning engine.

The engine itself performs no file I/O, so the default setup only attaches a
console handler. Callers that want a log file can opt in via setup_logging().
"""

import logging
import os
import time
import functools
from contextlib import contextmanager
from datetime import datetime

ROOT_LOGGER_NAME = 'taskrota'
LOG_LEVEL_ENV = 'TASKROTA_LOG_LEVEL'

# Log directory and file (only used when log_to_file=True)
LOG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "logs")
LOG_FILE = os.path.join(LOG_DIR, f"taskrota_{datetime.now().strftime('%Y%m%d')}.log")


def _level_from_env(default=logging.INFO):
    name = os.environ.get(LOG_LEVEL_ENV, '').strip().upper()
    if not name:
        return default
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else default


def setup_logging(level=None, log_to_file=False):
    """
    Configure logging for the engine.

    Args:
        level: Logging level (default: TASKROTA_LOG_LEVEL env var, else INFO)
        log_to_file: Whether to also log to a dated file under logs/ (default: False)

    Returns:
        Logger instance
    """
    if level is None:
        level = _level_from_env()

    if log_to_file and not os.path.exists(LOG_DIR):
        os.makedirs(LOG_DIR)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    # Clear existing handlers to avoid duplicates on re-configuration
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_to_file:
        file_handler = logging.FileHandler(LOG_FILE, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name=None):
    """
    Get a logger instance.

    Args:
        name: Optional name for the logger (will be prefixed with 'taskrota.')

    Returns:
        Logger instance
    """
    if name:
        return logging.getLogger(f'{ROOT_LOGGER_NAME}.{name}')
    return logging.getLogger(ROOT_LOGGER_NAME)


@contextmanager
def log_timing(operation_name: str, logger_instance=None, level=logging.INFO):
    """
    Context manager to measure and log execution time of a code block.

    Usage:
        with log_timing("week planning"):
            plan_week(request)
    """
    log = logger_instance or get_logger('perf')
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        log.log(level, f"⏱️ {operation_name}: {elapsed:.4f}s")


def timed(func=None, *, name=None):
    """
    Decorator to measure and log function execution time.

    Usage:
        @timed
        def build_greedy_schedule(...):
            ...

        @timed(name="pareto front")
        def build_pareto_front(...):
            ...
    """
    def decorator(fn):
        op_name = name or fn.__qualname__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            log = get_logger('perf')
            start = time.perf_counter()
            try:
                result = fn(*args, **kwargs)
                elapsed = time.perf_counter() - start
                log.debug(f"⏱️ {op_name}: {elapsed:.4f}s")
                return result
            except Exception as e:
                elapsed = time.perf_counter() - start
                log.error(f"⏱️ {op_name}: {elapsed:.4f}s (failed with {type(e).__name__})")
                raise

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


class PerformanceTracker:
    """
    Cumulative performance tracker for the phases of one planning call.

    Usage:
        tracker = PerformanceTracker()
        with tracker.track("initial schedule"):
            ...
        result.stats['timings_ms'] = tracker.summary()
    """

    def __init__(self, logger_instance=None):
        self.logger = logger_instance or get_logger('perf')
        self.timings = {}  # {operation: [elapsed_seconds]}

    @contextmanager
    def track(self, operation_name: str):
        """Track time for an operation (can be called multiple times)."""
        start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - start
            self.timings.setdefault(operation_name, []).append(elapsed)

    def summary(self) -> dict:
        """Total milliseconds per tracked operation, in first-seen order."""
        return {op: round(sum(times) * 1000.0, 3) for op, times in self.timings.items()}

    def report(self, title: str = "Performance Summary"):
        """Log a summary of all tracked operations at DEBUG level."""
        self.logger.debug(f"📊 {title}")
        for op, times in sorted(self.timings.items(), key=lambda x: -sum(x[1])):
            total = sum(times)
            count = len(times)
            avg = total / count if count > 0 else 0
            self.logger.debug(
                f"  {op:30s} | total: {total:8.4f}s | count: {count:5d} | avg: {avg:.4f}s"
            )
        return self.timings


# Initialize console logging when module is imported
logger = setup_logging()
