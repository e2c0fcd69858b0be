"""
Shared fixtures: order factories, in-memory source fakes and an
HttpJsonApi wired to httpx.MockTransport.
"""
import asyncio
from datetime import datetime
from typing import Callable, Optional, Union

import httpx
import pytest

from orderhub.errors import OrderNotFoundError
from orderhub.models import (
    NormalizedOrder,
    NormalizedProduct,
    OrderFilter,
    OrderSource,
    OrderStatus,
    ProductDetails,
    ProductPage,
    ShipmentTimeline,
    WooOrderFilter,
    WooOrderPage,
)
from orderhub.sources import FirebaseOrderSource, TrackingSource, WooOrderSource
from orderhub.transport import HttpJsonApi

BASE_URL = "https://orders.test/api"


def make_product(**overrides) -> NormalizedProduct:
    data = {"sku": "TS-001", "name": "Cheese Tee", "unit_price": 250.0, "qty": 1}
    data.update(overrides)
    return NormalizedProduct(**data)


def make_order(**overrides) -> NormalizedOrder:
    data = {
        "id": "doc-1",
        "source": OrderSource.FIREBASE,
        "order_id": "1001",
        "customer_name": "Asha Rao",
        "products": [make_product()],
    }
    data.update(overrides)
    return NormalizedOrder(**data)


def woo_line_item(**overrides) -> dict:
    item = {
        "id": 11,
        "name": "Cheese Tee",
        "product_id": 501,
        "quantity": 1,
        "subtotal": "250.00",
        "total": "250.00",
        "sku": "TS-001",
        "meta_data": [],
    }
    item.update(overrides)
    return item


def woo_order_json(**overrides) -> dict:
    order = {
        "id": 9001,
        "number": "9001",
        "status": "processing",
        "payment_method": "cod",
        "date_created": "2024-03-14T10:00:00",
        "billing": {"first_name": "Ravi", "last_name": "Kumar", "email": "ravi@example.com", "phone": "99999"},
        "line_items": [woo_line_item()],
    }
    order.update(overrides)
    return order


def make_api(
    handler: Callable[[httpx.Request], httpx.Response],
    source: str = "firebase",
    retry_attempts: int = 3,
) -> HttpJsonApi:
    return HttpJsonApi(
        source=source,
        base_url=BASE_URL,
        api_key="test-key",
        auth=httpx.BasicAuth("ops@example.com", "secret"),
        timeout=5.0,
        retry_attempts=retry_attempts,
        retry_backoff_seconds=0,
        transport=httpx.MockTransport(handler),
    )


class FakeFirebase(FirebaseOrderSource):
    """In-memory Firebase store recording every call."""

    def __init__(self, orders: Optional[list[NormalizedOrder]] = None, delay: float = 0, error: Optional[Exception] = None):
        self.orders = orders or []
        self.delay = delay
        self.error = error
        self.fetch_calls: list[OrderFilter] = []
        self.updates: list[tuple[str, dict]] = []
        self.created: list[NormalizedOrder] = []
        self.deleted: list[str] = []
        self.cancelled = False

    async def fetch_orders(self, order_filter: OrderFilter) -> list[NormalizedOrder]:
        self.fetch_calls.append(order_filter)
        # the store answers with what it held when the request arrived
        snapshot = list(self.orders)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        if order_filter.status:
            return [o for o in snapshot if o.status == order_filter.status]
        return snapshot

    async def create_order(self, data: Union[NormalizedOrder, dict]) -> NormalizedOrder:
        order = data.model_copy(update={"id": f"new-{len(self.created) + 1}"})
        self.created.append(order)
        return order

    async def update_order(self, order_id: str, partial: dict) -> dict:
        self.updates.append((order_id, partial))
        changes = {}
        if "trackingId" in partial:
            changes["tracking_id"] = partial["trackingId"] or None
        if "status" in partial:
            changes["status"] = OrderStatus(partial["status"])
        self.orders = [
            o.model_copy(update=changes) if o.id == order_id else o for o in self.orders
        ]
        return {"id": order_id, **partial}

    async def delete_order(self, order_id: str) -> bool:
        self.deleted.append(order_id)
        return True


class FakeWoo(WooOrderSource):
    def __init__(self, orders: Optional[list[NormalizedOrder]] = None, delay: float = 0, error: Optional[Exception] = None):
        self.orders = orders or []
        self.delay = delay
        self.error = error
        self.fetch_calls: list[WooOrderFilter] = []
        self.product_calls: list[dict] = []
        self.cancelled = False

    async def fetch_orders(self, order_filter: WooOrderFilter) -> WooOrderPage:
        self.fetch_calls.append(order_filter)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        if self.error:
            raise self.error
        limit = order_filter.per_page or len(self.orders)
        return WooOrderPage(orders=self.orders[:limit], total=len(self.orders), total_pages=1)

    async def fetch_product(self, product_id: int) -> ProductDetails:
        return ProductDetails(id=product_id, name="Cheese Tee")

    async def fetch_products(self, page=None, per_page=None, search=None, category=None, orderby=None, order=None) -> ProductPage:
        self.product_calls.append({"page": page, "per_page": per_page, "search": search, "category": category})
        return ProductPage(products=[ProductDetails(id=501, name="Cheese Tee", sku="TS-001")], total=1, total_pages=1)

    async def find_order(self, order_number: str) -> NormalizedOrder:
        for order in self.orders:
            if order.order_id == order_number:
                return order
        raise OrderNotFoundError(f"WooCommerce order {order_number} not found", source="woocommerce")


class FakeTracking(TrackingSource):
    def __init__(self, timeline: Optional[ShipmentTimeline] = None, error: Optional[Exception] = None):
        self.timeline = timeline
        self.error = error
        self.calls: list[str] = []

    async def fetch_timeline(self, tracking_id: str) -> ShipmentTimeline:
        self.calls.append(tracking_id)
        if self.error:
            raise self.error
        return self.timeline


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 3, 14, 15, 30).astimezone()


@pytest.fixture
def firebase_orders(now) -> list[NormalizedOrder]:
    return [
        make_order(id="fb-1", order_id="1001", created_at=now.replace(hour=9)),
        make_order(id="fb-2", order_id="1002", status=OrderStatus.COMPLETED, created_at=now.replace(hour=8)),
    ]


@pytest.fixture
def woo_orders() -> list[NormalizedOrder]:
    return [
        make_order(id="9001", source=OrderSource.WOOCOMMERCE, order_id="9001", customer_name="Ravi Kumar"),
    ]
