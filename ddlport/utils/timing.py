import logging
from time import perf_counter
from typing import Any, Callable, Dict, Optional


def timed(func: Callable, *args: Any, logger: Optional[logging.Logger] = None, **kwargs: Any) -> Dict[str, Any]:
    """Run *func* and return its result dict augmented with duration_s.

    When *logger* is given the duration is also logged at INFO level.
    """
    start = perf_counter()
    result = func(*args, **kwargs)
    duration = round(perf_counter() - start, 2)
    if isinstance(result, dict):
        result["duration_s"] = duration
    if logger is not None:
        logger.info("%s finished in %.2fs", getattr(func, "__name__", "call"), duration)
    return result
