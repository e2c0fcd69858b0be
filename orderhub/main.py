"""
orderhub service - FastAPI application.

Exposes the merged order view, dashboard metrics, tracking lookups and order
edits over HTTP. All upstream access goes through OrderHub.
"""
import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Literal, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import get_settings
from .errors import (
    EmptyTimelineError,
    MalformedResponseError,
    NetworkError,
    OrderHubError,
    OrderNotFoundError,
    ValidationError,
)
from .models import (
    DashboardMetrics,
    NormalizedOrder,
    OrderFilter,
    OrderPatch,
    OrderStatus,
    ProductPage,
    WooOrderFilter,
    WooOrderPage,
)
from .service import OrderHub
from .tracking_client import tracking_url


def setup_logging():
    """Configure logging with file and console handlers."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper())

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    # Console handler (always)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # File handler (if configured)
    if settings.log_path:
        try:
            log_path = Path(settings.log_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            root_logger.info("Logging to file: %s", log_path)
        except OSError as e:
            root_logger.error("Failed to set up file logging: %s", e)

    return logging.getLogger(__name__)


settings = get_settings()
logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    logger.info("orderhub starting up")
    logger.info("Upstream API: %s", settings.api_base_url)

    for problem in settings.validate_required_config():
        logger.warning("Configuration: %s", problem)

    app.state.hub = OrderHub.from_settings(settings)

    yield

    logger.info("orderhub shutting down")
    await app.state.hub.aclose()


app = FastAPI(
    title="orderhub",
    description="Merged Firebase and WooCommerce order view with shipment tracking",
    version=settings.version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_hub(request: Request) -> OrderHub:
    return request.app.state.hub


ERROR_STATUS = {
    ValidationError: 422,
    OrderNotFoundError: 404,
    EmptyTimelineError: 404,
    NetworkError: 502,
    MalformedResponseError: 502,
}


@app.exception_handler(OrderHubError)
async def orderhub_error_handler(request: Request, exc: OrderHubError) -> JSONResponse:
    status_code = next(
        (code for error_type, code in ERROR_STATUS.items() if isinstance(exc, error_type)),
        500,
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# =============================================================================
# Request / response bodies
# =============================================================================

class ImportRequest(BaseModel):
    """Options when copying a WooCommerce order into the Firebase store."""
    tracking_id: Optional[str] = Field(default=None, alias="trackingId")
    design_url: Optional[str] = Field(default=None, alias="designUrl")


class DeleteResponse(BaseModel):
    success: bool


class TrackingResponse(BaseModel):
    tracking_id: str = Field(serialization_alias="trackingId")
    tracking_url: str = Field(serialization_alias="trackingUrl")
    timeline: dict


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": settings.version,
        "timestamp": datetime.now().isoformat(),
        "config": settings.get_config_summary(),
    }


@app.get("/dashboard", response_model=DashboardMetrics)
async def dashboard(
    window_start: Optional[datetime] = None,
    hub: OrderHub = Depends(get_hub),
):
    """Revenue, counts and recent activity across both stores."""
    return await hub.dashboard(window_start)


@app.get("/orders/firebase", response_model=list[NormalizedOrder])
async def list_firebase_orders(
    status: Optional[OrderStatus] = None,
    search: Optional[str] = None,
    hub: OrderHub = Depends(get_hub),
):
    return await hub.firebase_orders(OrderFilter(status=status, search=search))


@app.post("/orders/firebase", response_model=NormalizedOrder, status_code=201)
async def create_firebase_order(order: NormalizedOrder, hub: OrderHub = Depends(get_hub)):
    return await hub.create_order(order)


@app.put("/orders/firebase/{order_id}", status_code=204)
async def update_firebase_order(
    order_id: str,
    patch: OrderPatch,
    current_status: Optional[OrderStatus] = None,
    hub: OrderHub = Depends(get_hub),
):
    """Partial update; the lists are re-fetched afterwards, nothing is returned."""
    await hub.update_order(order_id, patch, current_status)


@app.delete("/orders/firebase/{order_id}", response_model=DeleteResponse)
async def delete_firebase_order(
    order_id: str,
    current_status: Optional[OrderStatus] = None,
    hub: OrderHub = Depends(get_hub),
):
    return DeleteResponse(success=await hub.delete_order(order_id, current_status))


@app.get("/orders/woocommerce", response_model=WooOrderPage)
async def list_woo_orders(
    status: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[int] = Query(default=None, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=100),
    orderby: Optional[Literal["date", "id", "title"]] = None,
    order: Optional[Literal["asc", "desc"]] = None,
    hub: OrderHub = Depends(get_hub),
):
    return await hub.woo_orders(WooOrderFilter(
        status=status, search=search, page=page, per_page=per_page, orderby=orderby, order=order,
    ))


@app.get("/products/woocommerce", response_model=ProductPage)
async def list_woo_products(
    page: Optional[int] = Query(default=None, ge=1),
    per_page: Optional[int] = Query(default=None, ge=1, le=100),
    search: Optional[str] = None,
    category: Optional[str] = None,
    orderby: Optional[str] = None,
    order: Optional[Literal["asc", "desc"]] = None,
    hub: OrderHub = Depends(get_hub),
):
    return await hub.woo_products(page, per_page, search, category, orderby, order)


@app.get("/orders/woocommerce/{order_number}", response_model=NormalizedOrder)
async def get_woo_order(order_number: str, hub: OrderHub = Depends(get_hub)):
    return await hub.woo_order(order_number)


@app.post("/orders/woocommerce/{order_number}/import", response_model=NormalizedOrder, status_code=201)
async def import_woo_order(
    order_number: str,
    body: Optional[ImportRequest] = None,
    hub: OrderHub = Depends(get_hub),
):
    body = body or ImportRequest()
    return await hub.import_woo_order(order_number, body.tracking_id, body.design_url)


@app.get("/tracking/{tracking_id}", response_model=TrackingResponse, response_model_by_alias=True)
async def get_tracking(tracking_id: str, hub: OrderHub = Depends(get_hub)):
    timeline = await hub.track(tracking_id)
    return TrackingResponse(
        tracking_id=tracking_id,
        tracking_url=tracking_url(tracking_id, settings.tracking_url_template),
        timeline=timeline.model_dump(mode="json", by_alias=True),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "orderhub.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
