"""Bounded execution of blocking adapter calls.

Adapters talk to SQLAlchemy, boto3 and the filesystem through blocking
clients. ``run_blocking`` moves such a call to a worker thread, bounds it
with a timeout and turns any failure into the adapter's domain error, so a
timeout can never be mistaken for an empty result.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Type, TypeVar

from EBookPortal.Library.alignment.errors import AlignmentError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_TIMEOUT_S = 10.0


def _consume_result(worker: asyncio.Future) -> None:
    # Abandoned workers may fail after their caller gave up.
    if not worker.cancelled() and worker.exception() is not None:
        logger.debug(f"Abandoned call finished with error: {worker.exception()}")


async def run_blocking(
    func: Callable[..., T],
    *args: Any,
    operation: str,
    error_cls: Type[AlignmentError],
    timeout_s: float = DEFAULT_TIMEOUT_S,
    **kwargs: Any,
) -> T:
    """Run ``func(*args, **kwargs)`` in a thread with a deadline.

    Args:
        func: Blocking callable
        operation: Short name used in error messages (e.g. "list")
        error_cls: Domain error raised on failure (StoreError, CatalogError)
        timeout_s: Deadline in seconds

    Raises:
        error_cls: On timeout or any exception raised by ``func``; domain
            errors raised by ``func`` propagate unchanged. A timeout error
            carries the still-running worker as ``pending``.
    """
    call = functools.partial(func, *args, **kwargs)
    worker = asyncio.ensure_future(asyncio.to_thread(call))
    try:
        return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout_s)
    except asyncio.TimeoutError as exc:
        logger.error(f"{operation} timed out after {timeout_s:.1f}s")
        worker.add_done_callback(_consume_result)
        error = error_cls(f"{operation} timed out after {timeout_s:.1f}s", operation=operation)
        error.pending = worker
        raise error from exc
    except AlignmentError:
        raise
    except Exception as exc:
        raise error_cls(f"{operation} failed: {exc}", operation=operation) from exc


__all__ = ["run_blocking", "DEFAULT_TIMEOUT_S"]
