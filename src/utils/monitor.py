# utils/monitor.py

import functools
import logging
import time
import traceback
import tracemalloc
from pathlib import Path
from typing import Optional, Union

import psutil

from src.utils.errors import PipelineError

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"

logger = logging.getLogger("BiopsyPipelineLogger")


def configure_logging(log_file: Optional[Union[str, Path]] = None,
                      level: int = logging.INFO) -> None:
    """
    Route every pipeline logger to stderr and, optionally, to `log_file`.
    Safe to call more than once: previous handlers installed here are replaced.
    """
    root = logging.getLogger()
    for h in list(root.handlers):
        if getattr(h, "_biopsy_handler", False):
            root.removeHandler(h)
            h.close()

    handlers = [logging.StreamHandler()]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, mode="a"))

    formatter = logging.Formatter(LOG_FORMAT)
    for h in handlers:
        h.setFormatter(formatter)
        h._biopsy_handler = True
        root.addHandler(h)
    root.setLevel(level)


def log_resource_usage(step_id: str):
    cpu = psutil.cpu_percent(interval=None)
    mem = psutil.virtual_memory().percent
    logger.info(f"[{step_id}] CPU: {cpu:.1f}% | RAM: {mem:.1f}%")


def monitor(name: str = None,
            log_result: bool = False,
            track_memory: bool = False,
            track_resources: bool = False,
            enabled: bool = True):
    """
    Stage decorator: logs start, success with duration, or failure with the
    traceback. A PipelineError raised without a stage is tagged with this
    stage's name before it propagates. Nothing is retried.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if not enabled:
                return func(*args, **kwargs)

            step_id = name or func.__name__
            start_time = time.time()
            logger.info(f"[{step_id}] STARTED")

            if track_memory:
                tracemalloc.start()

            try:
                result = func(*args, **kwargs)
            except Exception as e:
                duration = time.time() - start_time
                if isinstance(e, PipelineError) and e.stage is None:
                    e.stage = step_id
                logger.error(f"[{step_id}] FAILED in {duration:.2f}s")
                logger.error(f"[{step_id}] Exception: {e}")
                logger.debug(traceback.format_exc())
                raise
            finally:
                if track_memory:
                    current, peak = tracemalloc.get_traced_memory()
                    tracemalloc.stop()
                    logger.info(
                        f"[{step_id}] Peak memory: {peak / 1024 / 1024:.2f} MB")

            duration = time.time() - start_time
            logger.info(f"[{step_id}] SUCCESS in {duration:.2f}s")

            if log_result:
                logger.info(f"[{step_id}] Result type: {type(result).__name__}")
                shape = getattr(result, "shape", None)
                if shape is not None:
                    logger.info(f"[{step_id}] Result shape: {shape}")

            if track_resources:
                log_resource_usage(step_id)

            return result

        return wrapper
    return decorator
