import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Union

log = logging.getLogger(__name__)

Action = Callable[[], Union[Any, Awaitable[Any]]]


async def run_periodically(interval_seconds: float, action: Action, name: str) -> None:
    """Run ``action`` every ``interval_seconds`` until cancelled. A failed run waits for the next tick."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            result = action()
            if inspect.isawaitable(result):
                await result
        except Exception:
            log.exception("Periodic task %s failed; retrying next cycle", name)


def start_periodic(interval_seconds: float, action: Action, name: str) -> asyncio.Task:
    log.info("Scheduling %s every %.0f seconds", name, interval_seconds)
    return asyncio.create_task(run_periodically(interval_seconds, action, name), name=name)
