"""
Order mutations against the Firebase store.

Writes go straight to the origin store. Nothing in memory is patched: on
success the coordinator names the cached list partitions that are now stale
and the caller re-fetches them. Concurrent edits are last-write-wins; the
store exposes no version token. Writes are never retried.
"""
import inspect
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union

from .errors import ValidationError
from .models import NormalizedOrder, OrderPatch, OrderSource, OrderStatus
from .sources import FirebaseOrderSource

logger = logging.getLogger(__name__)

TRACKING_ID_PATTERN = re.compile(r"^[A-Z0-9]{8,15}$")


@dataclass(frozen=True)
class Invalidation:
    """Cached order-list partitions made stale by a write."""
    source: OrderSource
    statuses: tuple[Optional[OrderStatus], ...]  # None is the unfiltered list


InvalidationCallback = Callable[[Invalidation], Union[None, Awaitable[None]]]


def validate_tracking_id(value: str) -> str:
    """
    Trim and check a tracking id.

    Empty is allowed (it clears the field); anything else must be 8-15
    uppercase letters or digits.
    """
    trimmed = value.strip()
    if trimmed and not TRACKING_ID_PATTERN.match(trimmed):
        raise ValidationError(
            f"Tracking ID must be 8-15 uppercase letters or digits, got {trimmed!r}",
            field="trackingId",
        )
    return trimmed


def build_update_payload(patch: OrderPatch, now: datetime) -> dict:
    """Wire payload for a patch: only fields set on the patch, plus updatedAt."""
    payload: dict = {}

    if patch.tracking_id is not None:
        payload["trackingId"] = validate_tracking_id(patch.tracking_id)
    if patch.status is not None:
        payload["status"] = patch.status.value
    if patch.payment_method is not None:
        payload["orderstatus"] = patch.payment_method.store_label
    if patch.design_url is not None:
        payload["designUrl"] = patch.design_url.strip()

    payload["updatedAt"] = now.isoformat()
    return payload


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MutationCoordinator:
    """Validates and applies writes, then signals which lists to re-fetch."""

    def __init__(
        self,
        firebase: FirebaseOrderSource,
        on_invalidate: Optional[InvalidationCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._firebase = firebase
        self._on_invalidate = on_invalidate
        self._clock = clock

    async def update_order(
        self,
        order_id: str,
        patch: OrderPatch,
        *,
        current_status: Optional[OrderStatus] = None,
    ) -> None:
        """
        Apply a partial update to one order.

        Args:
            order_id: Source-local id of the Firebase order
            patch: Fields to change
            current_status: Status the order had before the edit, if known,
                            so its list partition is invalidated too

        Raises:
            ValidationError: bad tracking id; no network call is made
        """
        payload = build_update_payload(patch, self._clock())

        await self._firebase.update_order(order_id, payload)

        await self._invalidate(current_status, patch.status)

    async def create_order(self, order: NormalizedOrder) -> NormalizedOrder:
        if order.tracking_id:
            order = order.model_copy(update={"tracking_id": validate_tracking_id(order.tracking_id) or None})

        created = await self._firebase.create_order(order)

        await self._invalidate(created.status)
        return created

    async def delete_order(
        self,
        order_id: str,
        *,
        current_status: Optional[OrderStatus] = None,
    ) -> bool:
        deleted = await self._firebase.delete_order(order_id)
        if deleted:
            await self._invalidate(current_status)
        return deleted

    async def _invalidate(self, *statuses: Optional[OrderStatus]) -> None:
        partitions: list[Optional[OrderStatus]] = [None]
        for status in statuses:
            if status is not None and status not in partitions:
                partitions.append(status)

        invalidation = Invalidation(source=OrderSource.FIREBASE, statuses=tuple(partitions))
        logger.info(
            "Invalidating %s lists: %s",
            invalidation.source.value,
            [status.value if status else "all" for status in invalidation.statuses],
        )

        if self._on_invalidate is None:
            return
        result = self._on_invalidate(invalidation)
        if inspect.isawaitable(result):
            await result
