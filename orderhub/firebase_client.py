"""
Firebase order store adapter.

The store already speaks something close to the normalized model, so the
mapping is nearly 1:1. Empty strings for optional fields are turned into
None so presence checks downstream behave.
"""
import logging
from typing import Any, Optional, Union

from .errors import MalformedResponseError
from .models import (
    NormalizedOrder,
    NormalizedProduct,
    OrderFilter,
    OrderSource,
    OrderStatus,
    PaymentMethod,
)
from .sources import FirebaseOrderSource
from .transport import JsonApi

logger = logging.getLogger(__name__)

ORDERS_PATH = "firebase/orders"


def normalize_firebase_product(item: dict) -> NormalizedProduct:
    return NormalizedProduct(
        sku=item.get("sku") or "",
        name=item.get("orderName") or item.get("details") or "",
        unit_price=item.get("sale_price") or 0,
        qty=item.get("qty"),
        colour=item.get("colour"),
        size=item.get("size") or None,
        image_url=item.get("image"),
        product_page_url=item.get("product_page_url"),
        download_url=item.get("downloaddesign"),
        category=item.get("product_category"),
    )


def normalize_firebase_order(data: dict) -> NormalizedOrder:
    """Map one store record onto NormalizedOrder."""
    raw_id = data.get("id")
    return NormalizedOrder(
        id=str(raw_id) if raw_id is not None else None,
        source=OrderSource.FIREBASE,
        order_id=str(data.get("orderId") or ""),
        customer_name=data.get("customerName") or "",
        status=OrderStatus.from_source(data.get("status")),
        payment_method=PaymentMethod.from_source(data.get("orderstatus")),
        products=[normalize_firebase_product(item) for item in data.get("products") or []],
        tracking_id=data.get("trackingId"),
        design_url=data.get("designUrl"),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
        email=data.get("email"),
        phone=data.get("phone"),
        address=data.get("address"),
        source_status=data.get("status"),
    )


def to_firebase_payload(order: NormalizedOrder) -> dict:
    """Serialize a NormalizedOrder into the store's wire shape (without id)."""
    payload: dict[str, Any] = {
        "orderId": order.order_id,
        "status": order.status.value,
        "orderstatus": order.payment_method.store_label,
        "customerName": order.customer_name,
        "products": [
            {
                "details": product.name,
                "orderName": product.name,
                "image": product.image_url or "",
                "sku": product.sku,
                "sale_price": product.unit_price,
                "product_page_url": product.product_page_url or "",
                "product_category": product.category or "",
                "colour": product.colour,
                "size": product.size or "",
                "qty": product.qty,
                "downloaddesign": product.download_url,
            }
            for product in order.products
        ],
    }

    optional = {
        "email": order.email,
        "phone": order.phone,
        "address": order.address,
        "trackingId": order.tracking_id,
        "designUrl": order.design_url,
        "createdAt": order.created_at.isoformat() if order.created_at else None,
        "updatedAt": order.updated_at.isoformat() if order.updated_at else None,
    }
    payload.update({key: value for key, value in optional.items() if value is not None})

    for product in payload["products"]:
        if product["downloaddesign"] is None:
            del product["downloaddesign"]

    return payload


class FirebaseOrdersClient(FirebaseOrderSource):
    """Adapter over the Firebase order API."""

    def __init__(self, api: JsonApi):
        self._api = api

    async def fetch_orders(self, order_filter: Optional[OrderFilter] = None) -> list[NormalizedOrder]:
        """
        Fetch orders from the store.

        GET firebase/orders[/{pending|completed}][?search=]
        """
        order_filter = order_filter or OrderFilter()
        path = ORDERS_PATH
        if order_filter.status:
            path = f"{ORDERS_PATH}/{order_filter.status.value}"

        response = await self._api.get(path, params={"search": order_filter.search or None})

        body = response.data
        if not isinstance(body, dict) or not isinstance(body.get("orders"), list):
            raise MalformedResponseError(
                "Expected an object with an 'orders' list", source=OrderSource.FIREBASE.value
            )

        orders = []
        for raw in body["orders"]:
            order = self._normalize_or_skip(raw)
            if order is not None:
                orders.append(order)

        logger.debug("Fetched %d Firebase orders (%s)", len(orders), order_filter.cache_key())
        return orders

    async def create_order(self, data: Union[NormalizedOrder, dict]) -> NormalizedOrder:
        payload = to_firebase_payload(data) if isinstance(data, NormalizedOrder) else dict(data)
        payload.pop("id", None)

        response = await self._api.request("POST", ORDERS_PATH, json=payload)

        created = response.data if isinstance(response.data, dict) else {}
        try:
            order = normalize_firebase_order({**payload, **created})
        except (ValueError, TypeError) as e:
            raise MalformedResponseError(
                f"Created order could not be normalized: {e}", source=OrderSource.FIREBASE.value
            ) from e

        logger.info("Created Firebase order %s (id=%s)", order.order_id, order.id)
        return order

    async def update_order(self, order_id: str, partial: dict) -> dict:
        response = await self._api.request("PUT", ORDERS_PATH, json={"id": order_id, **partial})
        logger.info("Updated Firebase order %s: %s", order_id, sorted(partial))
        return response.data if isinstance(response.data, dict) else {}

    async def delete_order(self, order_id: str) -> bool:
        response = await self._api.request("DELETE", ORDERS_PATH, params={"id": order_id})
        body = response.data if isinstance(response.data, dict) else {}
        deleted = bool(body.get("success"))
        logger.info("Deleted Firebase order %s: %s", order_id, deleted)
        return deleted

    def _normalize_or_skip(self, raw: Any) -> Optional[NormalizedOrder]:
        if not isinstance(raw, dict):
            logger.warning("Skipping Firebase order that is not an object: %r", raw)
            return None
        try:
            return normalize_firebase_order(raw)
        except (ValueError, TypeError) as e:
            # pydantic.ValidationError is a ValueError
            logger.warning("Skipping Firebase order %s: %s", raw.get("orderId") or raw.get("id"), e)
            return None
