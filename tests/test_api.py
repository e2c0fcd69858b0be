from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from orderhub.config import Settings
from orderhub.errors import NetworkError
from orderhub.main import app, get_hub
from orderhub.models import ShipmentScan, ShipmentStatus, ShipmentTimeline
from orderhub.service import OrderHub

from conftest import FakeFirebase, FakeTracking, FakeWoo


@pytest.fixture
def firebase(firebase_orders):
    return FakeFirebase(firebase_orders)


@pytest.fixture
def tracking():
    scan = ShipmentScan(
        timestamp=datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc),
        description="Delivered to consignee",
        location="Pune_Hub",
    )
    return FakeTracking(ShipmentTimeline(current_status=ShipmentStatus.DELIVERED, scans=[scan]))


@pytest.fixture
def client(firebase, woo_orders, tracking):
    hub = OrderHub(firebase, FakeWoo(woo_orders), tracking, settings=Settings())
    app.dependency_overrides[get_hub] = lambda: hub
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert "api_key" not in body["config"]


def test_dashboard(client):
    response = client.get("/dashboard")

    assert response.status_code == 200
    body = response.json()
    assert body["totalOrdersCount"] == 3
    assert body["activeOrdersCount"] == 2
    assert len(body["recentActivity"]) == 3


def test_list_firebase_orders_by_status(client):
    response = client.get("/orders/firebase", params={"status": "completed"})

    assert response.status_code == 200
    assert [o["orderId"] for o in response.json()] == ["1002"]


def test_invalid_tracking_id_is_422(client, firebase):
    response = client.put("/orders/firebase/abc123", json={"trackingId": "XYZ12"})

    assert response.status_code == 422
    assert response.json()["field"] == "trackingId"
    assert firebase.updates == []


def test_update_order(client, firebase):
    response = client.put(
        "/orders/firebase/fb-1",
        params={"current_status": "pending"},
        json={"status": "completed", "trackingId": "ABCD1234"},
    )

    assert response.status_code == 204
    order_id, payload = firebase.updates[0]
    assert order_id == "fb-1"
    assert payload["trackingId"] == "ABCD1234"
    assert payload["status"] == "completed"


def test_delete_order(client, firebase):
    response = client.delete("/orders/firebase/fb-2")

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert firebase.deleted == ["fb-2"]


def test_upstream_failure_is_502(client, firebase):
    firebase.error = NetworkError("firebase unavailable", source="firebase", status_code=503)

    response = client.get("/orders/firebase")

    assert response.status_code == 502
    assert response.json()["source"] == "firebase"


def test_unknown_woo_order_is_404(client):
    assert client.get("/orders/woocommerce/424242").status_code == 404


def test_woo_orders_page(client):
    response = client.get("/orders/woocommerce", params={"per_page": 10})

    assert response.status_code == 200
    assert response.json()["total"] == 1


def test_import_woo_order(client, firebase):
    response = client.post("/orders/woocommerce/9001/import", json={"trackingId": "ABCD1234"})

    assert response.status_code == 201
    body = response.json()
    assert body["source"] == "firebase"
    assert body["trackingId"] == "ABCD1234"
    assert len(firebase.created) == 1


def test_tracking(client, tracking):
    response = client.get("/tracking/ABCD1234")

    assert response.status_code == 200
    body = response.json()
    assert body["trackingId"] == "ABCD1234"
    assert body["trackingUrl"].endswith("ABCD1234")
    assert body["timeline"]["currentStatus"] == "Delivered"
    assert body["timeline"]["scans"][0]["location"] == "Pune_Hub"
    assert tracking.calls == ["ABCD1234"]


def test_woo_products(client):
    response = client.get("/products/woocommerce", params={"search": "tee", "per_page": 20})

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["products"][0]["sku"] == "TS-001"
