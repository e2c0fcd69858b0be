"""
Carrier tracking adapter.

GET tracking?waybill={id} ->
    {"ShipmentData": [{"Shipment": {"Status": {...}, "Scans": [...],
                                    "EstimatedDeliveryDate": ...}}]}
"""
import logging

from .errors import MalformedResponseError, OrderNotFoundError
from .models import ShipmentScan, ShipmentTimeline, parse_timestamp
from .sources import TrackingSource
from .tracking import classify
from .transport import JsonApi

logger = logging.getLogger(__name__)

TRACKING_PATH = "tracking"
SOURCE = "tracking"


def tracking_url(tracking_id: str, template: str) -> str:
    """Public carrier tracking page for a waybill."""
    return template.format(tracking_id=tracking_id.strip())


def scan_from_json(entry: dict) -> ShipmentScan:
    detail = entry.get("ScanDetail") if isinstance(entry.get("ScanDetail"), dict) else entry
    return ShipmentScan(
        timestamp=detail.get("ScanDateTime"),
        description=detail.get("Scan") or "",
        location=detail.get("ScanLocation"),
        instructions=detail.get("Instructions"),
    )


def parse_shipment(data: dict, tracking_id: str) -> ShipmentTimeline:
    """Turn a carrier payload into a classified timeline."""
    shipments = data.get("ShipmentData")
    if not isinstance(shipments, list):
        raise MalformedResponseError("Missing ShipmentData list", source=SOURCE)
    if not shipments:
        raise OrderNotFoundError(f"No shipment found for waybill {tracking_id}", source=SOURCE)

    shipment = shipments[0].get("Shipment") if isinstance(shipments[0], dict) else None
    if not isinstance(shipment, dict) or not isinstance(shipment.get("Scans") or [], list):
        raise MalformedResponseError("Shipment has an unexpected shape", source=SOURCE)

    try:
        scans = [scan_from_json(entry) for entry in shipment.get("Scans") or []]
    except (ValueError, TypeError, AttributeError) as e:
        raise MalformedResponseError(f"Unreadable scan entry: {e}", source=SOURCE) from e

    return classify(scans, parse_timestamp(shipment.get("EstimatedDeliveryDate")))


class TrackingClient(TrackingSource):
    """Adapter over the carrier tracking proxy."""

    def __init__(self, api: JsonApi):
        self._api = api

    async def fetch_timeline(self, tracking_id: str) -> ShipmentTimeline:
        waybill = tracking_id.strip()
        response = await self._api.get(TRACKING_PATH, params={"waybill": waybill})

        if not isinstance(response.data, dict):
            raise MalformedResponseError("Tracking response is not an object", source=SOURCE)

        timeline = parse_shipment(response.data, waybill)
        logger.debug(
            "Waybill %s: %s (%d scans)", waybill, timeline.current_status.value, len(timeline.scans)
        )
        return timeline
