"""
Abstract capabilities for the three upstream sources.

The aggregator, dashboard join, mutation coordinator and service shell only
talk to these interfaces, so tests can hand them in-memory fakes.
"""
from abc import ABC, abstractmethod
from typing import Optional, Union

from .models import (
    NormalizedOrder,
    OrderFilter,
    ProductDetails,
    ProductPage,
    ShipmentTimeline,
    WooOrderFilter,
    WooOrderPage,
)


class FirebaseOrderSource(ABC):
    """Read/write access to the Firebase-backed order store."""

    @abstractmethod
    async def fetch_orders(self, order_filter: OrderFilter) -> list[NormalizedOrder]:
        """Fetch orders, optionally narrowed to one status and a search term."""
        pass

    @abstractmethod
    async def create_order(self, data: Union[NormalizedOrder, dict]) -> NormalizedOrder:
        """Create an order in the store. The caller must re-fetch lists."""
        pass

    @abstractmethod
    async def update_order(self, order_id: str, partial: dict) -> dict:
        """
        Apply a partial update in the store's wire shape.

        Returns whatever the store echoes back; nothing is merged locally.
        """
        pass

    @abstractmethod
    async def delete_order(self, order_id: str) -> bool:
        pass


class WooOrderSource(ABC):
    """Read access to the WooCommerce store."""

    @abstractmethod
    async def fetch_orders(self, order_filter: WooOrderFilter) -> WooOrderPage:
        pass

    @abstractmethod
    async def fetch_product(self, product_id: int) -> ProductDetails:
        pass

    @abstractmethod
    async def fetch_products(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        orderby: Optional[str] = None,
        order: Optional[str] = None,
    ) -> ProductPage:
        """One page of the product catalogue with header-derived totals."""
        pass

    @abstractmethod
    async def find_order(self, order_number: str) -> NormalizedOrder:
        """
        Look up one order by its business number, enriched with product data.

        Raises OrderNotFoundError on a miss.
        """
        pass

    async def fetch_latest(self, limit: int = 5) -> list[NormalizedOrder]:
        """Latest orders by creation date, newest first."""
        page = await self.fetch_orders(
            WooOrderFilter(per_page=limit, orderby="date", order="desc")
        )
        return page.orders


class TrackingSource(ABC):
    """Carrier tracking lookups."""

    @abstractmethod
    async def fetch_timeline(self, tracking_id: str) -> ShipmentTimeline:
        pass
