"""
Dashboard metrics over the merged Firebase and WooCommerce order lists.

WooCommerce orders carry no creation timestamp through the adapter, so they
are always counted as new and always included in the revenue window. The
WooCommerce fetch is itself bounded to the latest N orders, which keeps that
approximation close to "recent".
"""
from collections import Counter
from datetime import datetime
from itertools import chain
from typing import Iterable, Optional, Sequence

from .models import (
    ActivityEntry,
    DashboardMetrics,
    NormalizedOrder,
    OrderSource,
    OrderStatus,
)

DEFAULT_ACTIVITY_LIMIT = 10

FIREBASE_ACTIVITY = "Ordered {count} items"
WOO_ACTIVITY = "Placed WooCommerce order"


def _as_local(value: datetime) -> datetime:
    """Timezone-aware in local time; naive values are taken as local time."""
    return value.astimezone()


def start_of_day(now: datetime) -> datetime:
    """Local midnight of the calendar day containing `now`."""
    return _as_local(now).replace(hour=0, minute=0, second=0, microsecond=0)


def order_revenue(order: NormalizedOrder) -> float:
    return sum(product.unit_price * product.qty for product in order.products)


def total_revenue(orders: Iterable[NormalizedOrder]) -> float:
    return sum(order_revenue(order) for order in orders)


def _created_since(order: NormalizedOrder, since: datetime) -> bool:
    return order.created_at is not None and _as_local(order.created_at) >= since


def build_activity(
    firebase_orders: Sequence[NormalizedOrder],
    woo_orders: Sequence[NormalizedOrder],
    now: datetime,
    limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> list[ActivityEntry]:
    """
    One activity entry per order, newest first, at most `limit` entries.

    Orders without a timestamp are stamped with `now`. Orders without an id
    get "{source}-{millis}", with millis fixed for the whole call.
    """
    millis = int(now.timestamp() * 1000)
    synthesized: Counter = Counter()

    def entry_id(order: NormalizedOrder) -> str:
        if order.id:
            return order.id
        base = f"{order.source.value}-{millis}"
        seen = synthesized[order.source]
        synthesized[order.source] += 1
        return base if seen == 0 else f"{base}-{seen}"

    def describe(order: NormalizedOrder) -> str:
        if order.source is OrderSource.FIREBASE:
            return FIREBASE_ACTIVITY.format(count=len(order.products))
        return WOO_ACTIVITY

    entries = [
        ActivityEntry(
            id=entry_id(order),
            customer_name=order.customer_name,
            description=describe(order),
            timestamp=order.created_at or now,
        )
        for order in chain(firebase_orders, woo_orders)
    ]

    # sort on the timestamp value, never on a formatted string
    entries.sort(key=lambda entry: _as_local(entry.timestamp), reverse=True)
    return entries[:limit]


def compute_metrics(
    firebase_orders: Sequence[NormalizedOrder],
    woo_orders: Sequence[NormalizedOrder],
    window_start: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
    activity_limit: int = DEFAULT_ACTIVITY_LIMIT,
) -> DashboardMetrics:
    """
    Compute dashboard metrics from both order sources.

    Args:
        firebase_orders: Orders from the Firebase store
        woo_orders: Latest orders from WooCommerce
        window_start: If given, only Firebase orders created at or after it
                      count towards revenue. WooCommerce orders always count.
        now: Reference time (defaults to the current local time)
        activity_limit: Maximum number of activity entries

    Returns:
        DashboardMetrics
    """
    now = _as_local(now) if now else datetime.now().astimezone()
    today = start_of_day(now)

    revenue_orders: Iterable[NormalizedOrder] = firebase_orders
    if window_start is not None:
        window = _as_local(window_start)
        revenue_orders = [o for o in firebase_orders if _created_since(o, window)]

    new_firebase = sum(1 for order in firebase_orders if _created_since(order, today))

    return DashboardMetrics(
        total_revenue=total_revenue(revenue_orders) + total_revenue(woo_orders),
        new_orders_count=new_firebase + len(woo_orders),
        active_orders_count=sum(
            1 for order in chain(firebase_orders, woo_orders)
            if order.status is OrderStatus.PENDING
        ),
        total_orders_count=len(firebase_orders) + len(woo_orders),
        recent_activity=build_activity(firebase_orders, woo_orders, now, activity_limit),
    )
