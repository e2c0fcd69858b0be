"""
orderhub - order aggregation and shipment-status engine.

Unifies orders from the Firebase order store and WooCommerce into one model:
- Adapters that fetch and normalize each source
- Dashboard metrics over the merged lists
- Carrier scan classification into a shipment timeline
- Validated partial order updates with list invalidation
"""

from .errors import (
    OrderHubError,
    NetworkError,
    MalformedResponseError,
    ValidationError,
    EmptyTimelineError,
    OrderNotFoundError,
)
from .models import (
    NormalizedOrder,
    NormalizedProduct,
    OrderSource,
    OrderStatus,
    PaymentMethod,
    ShipmentStatus,
    ShipmentScan,
    ShipmentTimeline,
    ActivityEntry,
    DashboardMetrics,
    OrderFilter,
    WooOrderFilter,
    WooOrderPage,
    OrderPatch,
)
from .metrics import compute_metrics
from .tracking import classify
from .mutations import MutationCoordinator, Invalidation
from .dashboard import load_dashboard
from .service import OrderHub

__all__ = [
    # Errors
    "OrderHubError",
    "NetworkError",
    "MalformedResponseError",
    "ValidationError",
    "EmptyTimelineError",
    "OrderNotFoundError",
    # Models
    "NormalizedOrder",
    "NormalizedProduct",
    "OrderSource",
    "OrderStatus",
    "PaymentMethod",
    "ShipmentStatus",
    "ShipmentScan",
    "ShipmentTimeline",
    "ActivityEntry",
    "DashboardMetrics",
    "OrderFilter",
    "WooOrderFilter",
    "WooOrderPage",
    "OrderPatch",
    # Core
    "compute_metrics",
    "classify",
    "MutationCoordinator",
    "Invalidation",
    "load_dashboard",
    "OrderHub",
]
