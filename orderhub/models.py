"""
Pydantic models for the normalized order domain.

Attribute names are snake_case; the camelCase names used by the order store
are accepted as aliases and emitted when dumping with by_alias=True.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

DEFAULT_COLOUR = "Black"


class OrderSource(str, Enum):
    FIREBASE = "firebase"
    WOOCOMMERCE = "woocommerce"


class OrderStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"

    @classmethod
    def from_source(cls, value: Any) -> "OrderStatus":
        """Map a source status string; anything unrecognized is pending."""
        if isinstance(value, str) and value.strip().lower() == cls.COMPLETED.value:
            return cls.COMPLETED
        return cls.PENDING


class PaymentMethod(str, Enum):
    COD = "cod"
    PREPAID = "prepaid"

    @classmethod
    def from_source(cls, value: Any) -> "PaymentMethod":
        """Binary: literally cod (any case) is COD, everything else prepaid."""
        if isinstance(value, str) and value.strip().lower() == cls.COD.value:
            return cls.COD
        return cls.PREPAID

    @property
    def store_label(self) -> str:
        """Label the Firebase store keeps in its `orderstatus` field."""
        return "COD" if self is PaymentMethod.COD else "Prepaid"


class ShipmentStatus(str, Enum):
    DELIVERED = "Delivered"
    IN_TRANSIT = "InTransit"
    PICKED_UP = "PickedUp"
    UNKNOWN = "Unknown"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Coerce the timestamp shapes the order store emits into a datetime.

    Accepts datetimes, ISO-8601 strings (with a trailing Z), epoch
    milliseconds and Firestore timestamp objects ({"seconds": ...} or
    {"_seconds": ...}). Returns None for empty or unparseable input.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if not isinstance(seconds, (int, float)):
            logger.warning("Unrecognized timestamp object: %r", value)
            return None
        nanos = value.get("nanoseconds", value.get("_nanoseconds")) or 0
        return datetime.fromtimestamp(seconds + nanos / 1_000_000_000, tz=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Unparseable timestamp: %r", value)
            return None
    logger.warning("Unsupported timestamp type %s", type(value).__name__)
    return None


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class NormalizedProduct(BaseModel):
    """One printed product on an order."""
    model_config = ConfigDict(populate_by_name=True)

    sku: str = ""
    name: str
    unit_price: float = Field(alias="unitPrice")
    qty: int = Field(ge=1)
    colour: str = DEFAULT_COLOUR
    size: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    product_page_url: Optional[str] = Field(default=None, alias="productPageUrl")
    download_url: Optional[str] = Field(default=None, alias="downloadUrl")
    category: Optional[str] = None

    @field_validator("colour", mode="before")
    @classmethod
    def _default_colour(cls, value: Any) -> Any:
        return _blank_to_none(value) or DEFAULT_COLOUR

    @field_validator("image_url", "product_page_url", "download_url", "category", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def line_total(self) -> float:
        return self.unit_price * self.qty


class NormalizedOrder(BaseModel):
    """Source-agnostic order record produced by an adapter."""
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None  # source-local identifier
    source: OrderSource
    order_id: str = Field(alias="orderId")  # business id shown to humans
    customer_name: str = Field(default="", alias="customerName")
    status: OrderStatus = OrderStatus.PENDING
    payment_method: PaymentMethod = Field(default=PaymentMethod.PREPAID, alias="paymentMethod")
    products: list[NormalizedProduct] = Field(min_length=1)
    tracking_id: Optional[str] = Field(default=None, alias="trackingId")
    design_url: Optional[str] = Field(default=None, alias="designUrl")
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")
    updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

    # Contact details (Firebase only)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None

    # Raw status string as reported by the source
    source_status: Optional[str] = Field(default=None, alias="sourceStatus")

    @field_validator("tracking_id", "design_url", "email", "phone", "address", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> Optional[datetime]:
        return parse_timestamp(value)

    @property
    def revenue(self) -> float:
        return sum(product.line_total for product in self.products)


class ShipmentScan(BaseModel):
    """A single carrier scan event."""
    timestamp: datetime
    description: str
    location: Optional[str] = None
    instructions: Optional[str] = None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value: Any) -> datetime:
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"invalid scan timestamp: {value!r}")
        return parsed

    @field_validator("location", "instructions", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> Any:
        return _blank_to_none(value)


class ShipmentTimeline(BaseModel):
    """Classified status plus scan history, most recent scan first."""
    model_config = ConfigDict(populate_by_name=True)

    current_status: ShipmentStatus = Field(alias="currentStatus")
    scans: list[ShipmentScan]
    estimated_delivery: Optional[datetime] = Field(default=None, alias="estimatedDelivery")


class ActivityEntry(BaseModel):
    """One row in the dashboard activity feed."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    customer_name: str = Field(alias="customerName")
    description: str
    timestamp: datetime


class DashboardMetrics(BaseModel):
    """Numbers shown on the dashboard."""
    model_config = ConfigDict(populate_by_name=True)

    total_revenue: float = Field(alias="totalRevenue")
    new_orders_count: int = Field(alias="newOrdersCount")
    active_orders_count: int = Field(alias="activeOrdersCount")
    total_orders_count: int = Field(alias="totalOrdersCount")
    recent_activity: list[ActivityEntry] = Field(default_factory=list, alias="recentActivity")


# =============================================================================
# Adapter request / response models
# =============================================================================

class OrderFilter(BaseModel):
    """Filter for the Firebase order list."""
    status: Optional[OrderStatus] = None
    search: Optional[str] = None

    def cache_key(self) -> tuple:
        return tuple(sorted(
            (name, str(value.value if isinstance(value, Enum) else value))
            for name, value in self.model_dump(exclude_none=True).items()
        ))


class WooOrderFilter(BaseModel):
    """Query parameters for the WooCommerce order list."""
    status: Optional[str] = None  # raw WooCommerce status, e.g. "processing"
    search: Optional[str] = None
    page: Optional[int] = Field(default=None, ge=1)
    per_page: Optional[int] = Field(default=None, ge=1, le=100)
    orderby: Optional[Literal["date", "id", "title"]] = None
    order: Optional[Literal["asc", "desc"]] = None

    def to_params(self) -> dict:
        """Only the parameters that are set go on the query string."""
        return {
            name: str(value)
            for name, value in self.model_dump(exclude_none=True).items()
            if value != ""
        }

    def cache_key(self) -> tuple:
        return tuple(sorted(self.to_params().items()))


class WooOrderPage(BaseModel):
    """One page of WooCommerce orders plus header-derived totals."""
    orders: list[NormalizedOrder]
    total: int = 0
    total_pages: int = 0


class ProductDetails(BaseModel):
    """Catalogue data used to enrich an individually inspected order."""
    id: int
    name: str = ""
    sku: str = ""
    price: Optional[float] = None
    permalink: Optional[str] = None
    image_url: Optional[str] = None
    category: Optional[str] = None


class ProductPage(BaseModel):
    products: list[ProductDetails]
    total: int = 0
    total_pages: int = 0


class OrderPatch(BaseModel):
    """Partial update for a single Firebase order."""
    model_config = ConfigDict(populate_by_name=True)

    status: Optional[OrderStatus] = None
    payment_method: Optional[PaymentMethod] = Field(default=None, alias="paymentMethod")
    tracking_id: Optional[str] = Field(default=None, alias="trackingId")
    design_url: Optional[str] = Field(default=None, alias="designUrl")
