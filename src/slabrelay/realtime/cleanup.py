"""Best-effort cleanup — the one place where teardown and hook failures are contained.

Learn: Unsubscribing or releasing a connection that Postgres already dropped
will fail, and that is expected: the connection is being discarded anyway.
Instead of scattering try/except-pass around the bridge, every cleanup step
goes through best_effort(), which logs the failure with context and moves on.
Cancellation is not an error and is never swallowed here.
"""

import inspect
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger()


async def best_effort(action: Callable[[], Any], event: str, **context: Any) -> bool:
    """Run a sync or async cleanup action. Returns False if it failed."""
    try:
        result = action()
        if inspect.isawaitable(result):
            await result
    except Exception as e:
        logger.warning(event, error=str(e), error_type=type(e).__name__, **context)
        return False
    return True


def guarded_call(callback: Optional[Callable[..., Any]], *args: Any, event: str) -> None:
    """Call a user-supplied hook; an exception it raises is logged, not raised.

    Learn: The client consumers hand their state to on_update/on_error
    hooks. A broken hook must not stop a poll timer or drop a healthy
    stream, so it is contained here the same way cleanup steps are.
    """
    if callback is None:
        return
    try:
        callback(*args)
    except Exception:
        logger.exception(event)
