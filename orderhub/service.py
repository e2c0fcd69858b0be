"""
Orchestration shell.

Wires the adapters to single-flight fetching, the list cache, the dashboard
join, tracking lookups and the mutation coordinator. Everything here is
plumbing; the logic lives in metrics, tracking and mutations.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

import httpx

from .cache import OrderListCache
from .config import Settings, get_settings
from .dashboard import load_dashboard
from .firebase_client import FirebaseOrdersClient
from .models import (
    DashboardMetrics,
    NormalizedOrder,
    OrderFilter,
    OrderPatch,
    OrderSource,
    OrderStatus,
    ProductPage,
    ShipmentTimeline,
    WooOrderFilter,
    WooOrderPage,
)
from .mutations import Invalidation, MutationCoordinator
from .singleflight import SingleFlight
from .sources import FirebaseOrderSource, TrackingSource, WooOrderSource
from .tracking_client import TrackingClient
from .transport import JsonApi, create_api
from .woo_client import WooOrdersClient

logger = logging.getLogger(__name__)

FIREBASE = OrderSource.FIREBASE.value
WOOCOMMERCE = OrderSource.WOOCOMMERCE.value


class OrderHub:
    """Entry point used by the HTTP service (or any other front end)."""

    def __init__(
        self,
        firebase: FirebaseOrderSource,
        woo: WooOrderSource,
        tracking: TrackingSource,
        settings: Optional[Settings] = None,
        apis: Optional[list[JsonApi]] = None,
    ):
        self.firebase = firebase
        self.woo = woo
        self.tracking = tracking
        self.settings = settings or get_settings()
        self.cache = OrderListCache()
        self.mutations = MutationCoordinator(firebase, on_invalidate=self._on_invalidate)
        self._flight = SingleFlight()
        self._apis = apis or []

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "OrderHub":
        """Build a hub with httpx-backed adapters for all three APIs."""
        settings = settings or get_settings()
        firebase_api = create_api(FIREBASE, settings, transport)
        woo_api = create_api(WOOCOMMERCE, settings, transport)
        tracking_api = create_api("tracking", settings, transport)

        return cls(
            firebase=FirebaseOrdersClient(firebase_api),
            woo=WooOrdersClient(woo_api),
            tracking=TrackingClient(tracking_api),
            settings=settings,
            apis=[firebase_api, woo_api, tracking_api],
        )

    async def aclose(self) -> None:
        for api in self._apis:
            await api.aclose()

    # =========================================================================
    # Reads
    # =========================================================================

    async def firebase_orders(
        self,
        order_filter: Optional[OrderFilter] = None,
        *,
        refresh: bool = True,
    ) -> list[NormalizedOrder]:
        """Firebase orders for a filter; refresh=False may answer from cache."""
        order_filter = order_filter or OrderFilter()
        status = order_filter.status.value if order_filter.status else None
        key = order_filter.cache_key()

        if not refresh:
            cached = self.cache.get(FIREBASE, status, key)
            if cached is not None:
                return cached

        # a read started before a write must not be joined by the re-fetch after it
        generation = self.cache.generation(FIREBASE, status)
        orders = await self._flight.do(
            (FIREBASE, key, generation), lambda: self.firebase.fetch_orders(order_filter)
        )
        self.cache.put(FIREBASE, status, key, orders, generation=generation)
        return orders

    async def woo_orders(
        self,
        order_filter: Optional[WooOrderFilter] = None,
        *,
        refresh: bool = True,
    ) -> WooOrderPage:
        order_filter = order_filter or WooOrderFilter()
        key = order_filter.cache_key()

        if not refresh:
            cached = self.cache.get(WOOCOMMERCE, order_filter.status, key)
            if cached is not None:
                return cached

        page = await self._flight.do(
            (WOOCOMMERCE, key), lambda: self.woo.fetch_orders(order_filter)
        )
        self.cache.put(WOOCOMMERCE, order_filter.status, key, page)
        return page

    async def woo_products(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        orderby: Optional[str] = None,
        order: Optional[str] = None,
    ) -> ProductPage:
        """One page of the WooCommerce catalogue."""
        params = (page, per_page, search, category, orderby, order)
        return await self._flight.do(
            (WOOCOMMERCE, "products", params),
            lambda: self.woo.fetch_products(page, per_page, search, category, orderby, order),
        )

    async def woo_order(self, order_number: str) -> NormalizedOrder:
        """One WooCommerce order by number, enriched with product data."""
        number = str(order_number).strip()
        return await self._flight.do(
            (WOOCOMMERCE, "order", number), lambda: self.woo.find_order(number)
        )

    async def dashboard(self, window_start: Optional[datetime] = None) -> DashboardMetrics:
        generation = self.cache.generation(FIREBASE, None)
        metrics = await self._flight.do(
            ("dashboard", window_start, generation),
            lambda: load_dashboard(
                self.firebase,
                self.woo,
                window_start=window_start,
                woo_limit=self.settings.dashboard_woo_limit,
                timeout=self.settings.adapter_timeout_seconds,
                activity_limit=self.settings.activity_limit,
            ),
        )
        logger.info(
            "Dashboard: %d orders, revenue %.2f",
            metrics.total_orders_count, metrics.total_revenue
        )
        return metrics

    async def track(self, tracking_id: str) -> ShipmentTimeline:
        waybill = tracking_id.strip()
        return await self._flight.do(
            ("tracking", waybill), lambda: self.tracking.fetch_timeline(waybill)
        )

    # =========================================================================
    # Writes
    # =========================================================================

    async def update_order(
        self,
        order_id: str,
        patch: OrderPatch,
        current_status: Optional[OrderStatus] = None,
    ) -> None:
        await self.mutations.update_order(order_id, patch, current_status=current_status)

    async def create_order(self, order: NormalizedOrder) -> NormalizedOrder:
        return await self.mutations.create_order(order)

    async def delete_order(
        self,
        order_id: str,
        current_status: Optional[OrderStatus] = None,
    ) -> bool:
        return await self.mutations.delete_order(order_id, current_status=current_status)

    async def import_woo_order(
        self,
        order_number: str,
        tracking_id: Optional[str] = None,
        design_url: Optional[str] = None,
    ) -> NormalizedOrder:
        """Copy a WooCommerce order into the Firebase store as a pending order."""
        order = await self.woo_order(order_number)

        draft = order.model_copy(update={
            "id": None,
            "source": OrderSource.FIREBASE,
            "status": OrderStatus.PENDING,
            "tracking_id": tracking_id or None,
            "design_url": design_url or None,
            "created_at": datetime.now(timezone.utc),
            "source_status": None,
        })

        created = await self.create_order(draft)
        logger.info("Imported WooCommerce order %s into Firebase", order.order_id)
        return created

    async def _on_invalidate(self, invalidation: Invalidation) -> None:
        """Drop stale partitions and fetch them again."""
        self.cache.invalidate(
            invalidation.source.value,
            [status.value if status else None for status in invalidation.statuses],
        )

        results = await asyncio.gather(
            *(self.firebase_orders(OrderFilter(status=status)) for status in invalidation.statuses),
            return_exceptions=True,
        )
        for status, result in zip(invalidation.statuses, results):
            if isinstance(result, Exception):
                # the write already succeeded; the next read fetches again
                logger.warning(
                    "Re-fetch of %s orders (%s) failed: %s",
                    invalidation.source.value, status.value if status else "all", result
                )
