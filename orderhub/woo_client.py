"""
WooCommerce order adapter.

WooCommerce orders are shaped very differently from the Firebase store:
variant data (colour, size) lives in per-line-item meta_data, unit prices are
sometimes missing on historical records, and pagination totals come back in
X-WP-* response headers rather than the body.
"""
import asyncio
import logging
from typing import Any, Callable, Optional

from .errors import MalformedResponseError, OrderHubError, OrderNotFoundError
from .models import (
    DEFAULT_COLOUR,
    NormalizedOrder,
    NormalizedProduct,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    ProductDetails,
    ProductPage,
    WooOrderFilter,
    WooOrderPage,
)
from .sources import WooOrderSource
from .transport import ApiResponse, JsonApi

logger = logging.getLogger(__name__)

ORDERS_PATH = "woocommerce/orders"
PRODUCTS_PATH = "woocommerce/products"

SOURCE = OrderSource.WOOCOMMERCE.value

PRODUCT_URL_KEYS = ("_product_url", "product_url")
DOWNLOAD_URL_KEYS = ("_download_url", "download_url")


def _find_meta(meta_data: list, matches: Callable[[str], bool]) -> Optional[dict]:
    """First meta entry whose lowercased key satisfies `matches`."""
    for meta in meta_data or []:
        if isinstance(meta, dict) and matches(str(meta.get("key", "")).lower()):
            return meta
    return None


def _meta_text(meta: Optional[dict]) -> str:
    if not meta or meta.get("value") is None:
        return ""
    return str(meta["value"])


def resolve_colour(meta_data: list) -> str:
    meta = _find_meta(meta_data, lambda key: "color" in key or "colour" in key)
    return _meta_text(meta) or DEFAULT_COLOUR


def resolve_size(meta_data: list) -> str:
    return _meta_text(_find_meta(meta_data, lambda key: "size" in key))


def resolve_unit_price(item: dict) -> float:
    """
    Unit price for one line item.

    Uses `price` when it is numeric, otherwise total / quantity. Applied per
    item because historical records omit `price` on some items only.
    """
    price = item.get("price")
    if isinstance(price, (int, float)) and not isinstance(price, bool):
        return float(price)

    quantity = item.get("quantity")
    if not isinstance(quantity, int) or quantity < 1:
        raise ValueError(f"line item {item.get('id')} has invalid quantity {quantity!r}")
    return float(item.get("total") or 0) / quantity


def flatten_line_item(item: dict, details: Optional[ProductDetails] = None) -> NormalizedProduct:
    """Flatten one WooCommerce line item, optionally enriched with catalogue data."""
    meta_data = item.get("meta_data") or []
    product_url = _meta_text(_find_meta(meta_data, lambda key: key in PRODUCT_URL_KEYS))
    download_url = _meta_text(_find_meta(meta_data, lambda key: key in DOWNLOAD_URL_KEYS))

    product = NormalizedProduct(
        sku=item.get("sku") or "",
        name=item.get("name") or "",
        unit_price=resolve_unit_price(item),
        qty=item.get("quantity"),
        colour=resolve_colour(meta_data),
        size=resolve_size(meta_data),
        product_page_url=product_url,
        download_url=download_url,
    )

    if details is not None:
        product = product.model_copy(update={
            "image_url": details.image_url or product.image_url,
            "product_page_url": details.permalink or product.product_page_url,
            "category": details.category or product.category,
        })

    return product


def normalize_woo_order(
    data: dict,
    product_details: Optional[list[Optional[ProductDetails]]] = None,
) -> NormalizedOrder:
    """
    Map one WooCommerce order onto NormalizedOrder.

    created_at is deliberately left unset: the dashboard treats every fetched
    WooCommerce order as current.
    """
    billing = data.get("billing") or {}
    line_items = data.get("line_items") or []
    details = product_details or [None] * len(line_items)
    raw_id = data.get("id")

    return NormalizedOrder(
        id=str(raw_id) if raw_id is not None else None,
        source=OrderSource.WOOCOMMERCE,
        order_id=str(data.get("number") or raw_id or ""),
        customer_name=f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip(),
        status=OrderStatus.from_source(data.get("status")),
        payment_method=PaymentMethod.from_source(data.get("payment_method")),
        products=[flatten_line_item(item, detail) for item, detail in zip(line_items, details)],
        email=billing.get("email"),
        phone=billing.get("phone"),
        source_status=data.get("status"),
    )


def product_details_from_json(data: dict) -> ProductDetails:
    images = data.get("images") or []
    categories = data.get("categories") or []

    try:
        price = float(data["price"]) if data.get("price") not in (None, "") else None
    except (TypeError, ValueError):
        price = None

    return ProductDetails(
        id=data["id"],
        name=data.get("name") or "",
        sku=data.get("sku") or "",
        price=price,
        permalink=data.get("permalink") or None,
        image_url=(images[0].get("src") or None) if images else None,
        category=" | ".join(c.get("name", "") for c in categories if c.get("name")) or None,
    )


class WooOrdersClient(WooOrderSource):
    """Adapter over the WooCommerce proxy API."""

    def __init__(self, api: JsonApi):
        self._api = api

    async def fetch_orders(self, order_filter: Optional[WooOrderFilter] = None) -> WooOrderPage:
        """
        Fetch one page of orders.

        GET woocommerce/orders?{page,per_page,status,search,orderby,order}
        List views are not enriched with product data.
        """
        order_filter = order_filter or WooOrderFilter()
        response = await self._api.get(ORDERS_PATH, params=order_filter.to_params())

        orders = []
        for raw in self._order_list(response):
            order = self._normalize_or_skip(raw)
            if order is not None:
                orders.append(order)

        return WooOrderPage(
            orders=orders,
            total=response.header_int("X-WP-Total"),
            total_pages=response.header_int("X-WP-TotalPages"),
        )

    async def find_order(self, order_number: str) -> NormalizedOrder:
        """Find one order by its number and enrich each line item with product data."""
        number = str(order_number).strip()
        response = await self._api.get(ORDERS_PATH, params={"search": number})

        raw = next(
            (o for o in self._order_list(response) if isinstance(o, dict) and str(o.get("number")) == number),
            None,
        )
        if raw is None:
            raise OrderNotFoundError(f"WooCommerce order {number} not found", source=SOURCE)

        line_items = raw.get("line_items") or []
        details = await asyncio.gather(
            *(self._product_or_none(item.get("product_id")) for item in line_items)
        )

        try:
            return normalize_woo_order(raw, list(details))
        except (ValueError, TypeError) as e:
            raise MalformedResponseError(
                f"WooCommerce order {number} could not be normalized: {e}", source=SOURCE
            ) from e

    async def fetch_product(self, product_id: int) -> ProductDetails:
        # trailing slash matches the proxy's route
        response = await self._api.get(f"{PRODUCTS_PATH}/{product_id}/")
        if not isinstance(response.data, dict):
            raise MalformedResponseError(f"Product {product_id} is not an object", source=SOURCE)

        try:
            return product_details_from_json({"id": product_id, **response.data})
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            raise MalformedResponseError(f"Product {product_id} is malformed: {e}", source=SOURCE) from e

    async def fetch_products(
        self,
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        search: Optional[str] = None,
        category: Optional[str] = None,
        orderby: Optional[str] = None,
        order: Optional[str] = None,
    ) -> ProductPage:
        params = {
            "page": page,
            "per_page": per_page,
            "search": search,
            "category": category,
            "orderby": orderby,
            "order": order,
        }
        response = await self._api.get(PRODUCTS_PATH, params=params)
        if not isinstance(response.data, list):
            raise MalformedResponseError("Expected a list of products", source=SOURCE)

        products = []
        for raw in response.data:
            try:
                products.append(product_details_from_json(raw))
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning("Skipping WooCommerce product %r: %s", raw, e)

        return ProductPage(
            products=products,
            total=response.header_int("X-WP-Total"),
            total_pages=response.header_int("X-WP-TotalPages"),
        )

    async def _product_or_none(self, product_id: Any) -> Optional[ProductDetails]:
        """Enrichment is best effort: a failed product lookup leaves the item bare."""
        if not product_id:
            return None
        try:
            return await self.fetch_product(product_id)
        except OrderHubError as e:
            logger.warning("Could not enrich product %s: %s", product_id, e.message)
            return None

    def _order_list(self, response: ApiResponse) -> list:
        if not isinstance(response.data, list):
            raise MalformedResponseError("Expected a list of orders", source=SOURCE)
        return response.data

    def _normalize_or_skip(self, raw: Any) -> Optional[NormalizedOrder]:
        if not isinstance(raw, dict):
            logger.warning("Skipping WooCommerce order that is not an object: %r", raw)
            return None
        try:
            return normalize_woo_order(raw)
        except (ValueError, TypeError) as e:
            logger.warning("Skipping WooCommerce order %s: %s", raw.get("number") or raw.get("id"), e)
            return None
