import json

import httpx
import pytest

from orderhub.errors import MalformedResponseError, NetworkError
from orderhub.firebase_client import (
    FirebaseOrdersClient,
    normalize_firebase_order,
    to_firebase_payload,
)
from orderhub.models import OrderFilter, OrderSource, OrderStatus, PaymentMethod

from conftest import make_api, make_order, make_product


def firebase_record(**overrides) -> dict:
    record = {
        "id": "abc123",
        "orderId": "1001",
        "customerName": "Asha Rao",
        "status": "pending",
        "orderstatus": "COD",
        "trackingId": "",
        "designUrl": "",
        "createdAt": {"_seconds": 1710410400, "_nanoseconds": 0},
        "products": [
            {
                "orderName": "Cheese Tee",
                "sku": "TS-001",
                "sale_price": 250,
                "qty": 2,
                "colour": "",
                "size": "L",
                "image": "",
                "downloaddesign": "https://cdn.example.com/design.png",
            }
        ],
    }
    record.update(overrides)
    return record


class Recorder:
    """httpx.MockTransport handler that replays canned responses in order."""

    def __init__(self, *responses: httpx.Response):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class TestNormalize:
    def test_maps_store_fields(self):
        order = normalize_firebase_order(firebase_record())

        assert order.id == "abc123"
        assert order.source is OrderSource.FIREBASE
        assert order.order_id == "1001"
        assert order.status is OrderStatus.PENDING
        assert order.payment_method is PaymentMethod.COD
        assert order.created_at is not None and order.created_at.tzinfo is not None

        product = order.products[0]
        assert product.name == "Cheese Tee"
        assert product.unit_price == 250
        assert product.qty == 2
        assert product.size == "L"
        assert product.download_url == "https://cdn.example.com/design.png"

    def test_empty_strings_become_absent(self):
        order = normalize_firebase_order(firebase_record())

        assert order.tracking_id is None
        assert order.design_url is None
        assert order.products[0].colour == "Black"
        assert order.products[0].image_url is None

    def test_prepaid_label(self):
        assert normalize_firebase_order(firebase_record(orderstatus="Prepaid")).payment_method is PaymentMethod.PREPAID

    def test_payload_uses_store_names(self):
        order = make_order(
            payment_method=PaymentMethod.COD,
            tracking_id="ABCD1234",
            products=[make_product(qty=2)],
        )
        payload = to_firebase_payload(order)

        assert payload["orderId"] == "1001"
        assert payload["orderstatus"] == "COD"
        assert payload["trackingId"] == "ABCD1234"
        assert payload["products"][0]["sale_price"] == 250
        assert payload["products"][0]["qty"] == 2
        assert "id" not in payload
        assert "designUrl" not in payload


class TestFetchOrders:
    @pytest.mark.asyncio
    async def test_request_shape(self):
        recorder = Recorder(httpx.Response(200, json={"orders": [firebase_record()]}))
        client = FirebaseOrdersClient(make_api(recorder))

        orders = await client.fetch_orders(OrderFilter(status=OrderStatus.PENDING, search="Asha"))

        request = recorder.requests[0]
        assert request.method == "GET"
        assert request.url.path == "/api/firebase/orders/pending"
        assert request.url.params["search"] == "Asha"
        assert request.headers["x-api-key"] == "test-key"
        assert request.headers["authorization"].startswith("Basic ")
        assert [o.id for o in orders] == ["abc123"]

    @pytest.mark.asyncio
    async def test_unfiltered_has_no_query(self):
        recorder = Recorder(httpx.Response(200, json={"orders": []}))
        client = FirebaseOrdersClient(make_api(recorder))

        assert await client.fetch_orders(OrderFilter()) == []
        assert recorder.requests[0].url.path == "/api/firebase/orders"
        assert not recorder.requests[0].url.params

    @pytest.mark.asyncio
    async def test_skips_records_that_cannot_be_normalized(self):
        body = {"orders": [
            firebase_record(),
            firebase_record(id="no-products", products=[]),
            firebase_record(id="bad-qty", products=[{"orderName": "Tee", "sale_price": 1, "qty": 0}]),
            "junk",
        ]}
        client = FirebaseOrdersClient(make_api(Recorder(httpx.Response(200, json=body))))

        orders = await client.fetch_orders(OrderFilter())

        assert [o.id for o in orders] == ["abc123"]

    @pytest.mark.asyncio
    async def test_wrong_shape_is_malformed(self):
        client = FirebaseOrdersClient(make_api(Recorder(httpx.Response(200, json=[firebase_record()]))))

        with pytest.raises(MalformedResponseError) as exc_info:
            await client.fetch_orders(OrderFilter())
        assert exc_info.value.source == "firebase"

    @pytest.mark.asyncio
    async def test_invalid_json_is_malformed(self):
        client = FirebaseOrdersClient(make_api(Recorder(httpx.Response(200, content=b"<html>"))))

        with pytest.raises(MalformedResponseError):
            await client.fetch_orders(OrderFilter())

    @pytest.mark.asyncio
    async def test_retries_server_errors_on_reads(self):
        recorder = Recorder(
            httpx.Response(503, json={"error": "unavailable"}),
            httpx.Response(200, json={"orders": [firebase_record()]}),
        )
        client = FirebaseOrdersClient(make_api(recorder))

        orders = await client.fetch_orders(OrderFilter())

        assert len(recorder.requests) == 2
        assert len(orders) == 1

    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self):
        recorder = Recorder(httpx.Response(401, json={"message": "bad credentials"}))
        client = FirebaseOrdersClient(make_api(recorder))

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch_orders(OrderFilter())

        assert len(recorder.requests) == 1
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "bad credentials"

    @pytest.mark.asyncio
    async def test_gives_up_after_retry_attempts(self):
        recorder = Recorder(httpx.Response(500, text="oops"))
        client = FirebaseOrdersClient(make_api(recorder, retry_attempts=3))

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch_orders(OrderFilter())

        assert len(recorder.requests) == 3
        assert exc_info.value.message == "GET firebase/orders failed with HTTP 500"

    @pytest.mark.asyncio
    async def test_transport_timeout_becomes_network_error(self):
        def handler(request):
            raise httpx.ReadTimeout("slow upstream", request=request)

        client = FirebaseOrdersClient(make_api(handler, retry_attempts=1))

        with pytest.raises(NetworkError) as exc_info:
            await client.fetch_orders(OrderFilter())

        assert exc_info.value.status_code is None
        assert exc_info.value.source == "firebase"
        assert "timed out" in exc_info.value.message


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_posts_payload_without_id(self):
        recorder = Recorder(httpx.Response(201, json={"id": "new-doc"}))
        client = FirebaseOrdersClient(make_api(recorder))

        created = await client.create_order(make_order(payment_method=PaymentMethod.COD))

        request = recorder.requests[0]
        body = json.loads(request.content)
        assert request.method == "POST"
        assert request.url.path == "/api/firebase/orders"
        assert "id" not in body
        assert body["orderstatus"] == "COD"
        assert created.id == "new-doc"
        assert created.order_id == "1001"

    @pytest.mark.asyncio
    async def test_update_sends_id_and_partial(self):
        recorder = Recorder(httpx.Response(200, json={"success": True}))
        client = FirebaseOrdersClient(make_api(recorder))

        await client.update_order("abc123", {"trackingId": "ABCD1234"})

        request = recorder.requests[0]
        assert request.method == "PUT"
        assert json.loads(request.content) == {"id": "abc123", "trackingId": "ABCD1234"}

    @pytest.mark.asyncio
    async def test_writes_are_not_retried(self):
        recorder = Recorder(httpx.Response(503, json={"error": "try later"}))
        client = FirebaseOrdersClient(make_api(recorder))

        with pytest.raises(NetworkError) as exc_info:
            await client.update_order("abc123", {"status": "completed"})

        assert len(recorder.requests) == 1
        assert exc_info.value.message == "try later"

    @pytest.mark.asyncio
    async def test_delete(self):
        recorder = Recorder(httpx.Response(200, json={"success": True}))
        client = FirebaseOrdersClient(make_api(recorder))

        assert await client.delete_order("abc123") is True

        request = recorder.requests[0]
        assert request.method == "DELETE"
        assert request.url.params["id"] == "abc123"
