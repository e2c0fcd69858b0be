"""
Shipment status classification.

The carrier returns scans most recent first. The current status is read off
the description of the first scan only; scans are never re-sorted here. A
caller that wants chronological order reverses the list itself.
"""
from datetime import datetime
from typing import Optional, Sequence

from .errors import EmptyTimelineError
from .models import ShipmentScan, ShipmentStatus, ShipmentTimeline

# Checked in order; first keyword found in the description wins.
STATUS_KEYWORDS: tuple[tuple[str, ShipmentStatus], ...] = (
    ("delivered", ShipmentStatus.DELIVERED),
    ("transit", ShipmentStatus.IN_TRANSIT),
    ("picked", ShipmentStatus.PICKED_UP),
)


def status_from_description(description: str) -> ShipmentStatus:
    text = (description or "").lower()
    for keyword, status in STATUS_KEYWORDS:
        if keyword in text:
            return status
    return ShipmentStatus.UNKNOWN


def classify(
    scans: Sequence[ShipmentScan],
    estimated_delivery: Optional[datetime] = None,
) -> ShipmentTimeline:
    """
    Build a ShipmentTimeline from carrier scans.

    Args:
        scans: Scan events, most recent first
        estimated_delivery: Carrier estimate, passed through untouched

    Raises:
        EmptyTimelineError: if there are no scans
    """
    if not scans:
        raise EmptyTimelineError("Cannot classify a shipment with no scans")

    return ShipmentTimeline(
        current_status=status_from_description(scans[0].description),
        scans=list(scans),
        estimated_delivery=estimated_delivery,
    )
