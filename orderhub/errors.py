"""
Error taxonomy for the order engine.

Adapters convert transport failures into these typed errors and tag them with
the source they came from. The aggregator and classifier never recover from
them; they propagate to the caller.
"""
from typing import Optional


class OrderHubError(Exception):
    """Base class for every error raised by orderhub."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.source = source

    def to_dict(self) -> dict:
        return {"error": self.message, "source": self.source}


class NetworkError(OrderHubError):
    """Transport failure or non-2xx response from an upstream API."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message, source)
        self.status_code = status_code

    @property
    def is_retryable(self) -> bool:
        """Transport failures, rate limits and server errors may succeed on retry."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["status_code"] = self.status_code
        return data


class MalformedResponseError(OrderHubError):
    """Upstream JSON did not have the expected shape."""


class ValidationError(OrderHubError):
    """A mutation was rejected before reaching the origin store."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["field"] = self.field
        return data


class EmptyTimelineError(OrderHubError):
    """Classification was requested for a shipment with no scans."""


class OrderNotFoundError(OrderHubError):
    """A lookup by business id (order number, waybill) found nothing."""
