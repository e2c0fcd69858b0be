"""
Dashboard fan-out/fan-in.

Both order sources are fetched concurrently and joined all-or-nothing: if
either fetch fails or exceeds its timeout, the sibling is cancelled and the
error propagates. No partial metrics are produced.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Optional

from .errors import NetworkError
from .metrics import DEFAULT_ACTIVITY_LIMIT, compute_metrics
from .models import DashboardMetrics, OrderFilter, OrderSource
from .sources import FirebaseOrderSource, WooOrderSource

logger = logging.getLogger(__name__)

DEFAULT_ADAPTER_TIMEOUT = 10.0
DEFAULT_WOO_LIMIT = 5


async def _bounded(name: str, awaitable: Awaitable[Any], timeout: Optional[float]) -> Any:
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise NetworkError(f"{name} fetch timed out after {timeout}s", source=name) from e


async def fan_in(
    fetches: dict[str, Awaitable[Any]],
    timeout: Optional[float] = DEFAULT_ADAPTER_TIMEOUT,
) -> dict[str, Any]:
    """
    Run named fetches concurrently and wait for all of them.

    Args:
        fetches: Name -> awaitable; the name tags timeout errors
        timeout: Per-fetch timeout in seconds (None for no bound)

    Returns:
        Name -> result

    Raises:
        The first failure; remaining fetches are cancelled before it is raised.
    """
    tasks = {
        name: asyncio.create_task(_bounded(name, awaitable, timeout))
        for name, awaitable in fetches.items()
    }

    try:
        done, pending = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks.values():
            task.cancel()
        raise

    failures = [task.exception() for task in done if not task.cancelled() and task.exception()]
    if failures:
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        logger.error("Dashboard join failed: %s", failures[0])
        raise failures[0]

    return {name: task.result() for name, task in tasks.items()}


async def load_dashboard(
    firebase: FirebaseOrderSource,
    woo: WooOrderSource,
    *,
    window_start: Optional[datetime] = None,
    woo_limit: int = DEFAULT_WOO_LIMIT,
    timeout: Optional[float] = DEFAULT_ADAPTER_TIMEOUT,
    activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
    now: Optional[datetime] = None,
) -> DashboardMetrics:
    """Fetch all Firebase orders and the latest WooCommerce orders, then compute metrics."""
    results = await fan_in(
        {
            OrderSource.FIREBASE.value: firebase.fetch_orders(OrderFilter()),
            OrderSource.WOOCOMMERCE.value: woo.fetch_latest(woo_limit),
        },
        timeout=timeout,
    )

    return compute_metrics(
        results[OrderSource.FIREBASE.value],
        results[OrderSource.WOOCOMMERCE.value],
        window_start,
        now=now,
        activity_limit=activity_limit,
    )
