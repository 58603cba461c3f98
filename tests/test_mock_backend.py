# tests/test_mock_backend.py
import pytest
from fastapi.testclient import TestClient

from storefront.mock_backend.gateway import SimulatedPaymentWidget, sign, verify
from storefront.mock_backend.main import DEMO_EMAIL, DEMO_PASSWORD, MockDatabase, create_app
from storefront.services.payment_widget import CancelToken, PaymentFailure, PaymentRequest, PaymentSuccess

SECRET = "test-secret"
ADDRESS = {
    "recipientName": "Demo Customer",
    "phoneNumber": "9876543210",
    "addressLine1": "12 Toy Street",
    "city": "Chennai",
    "state": "Tamil Nadu",
    "postalCode": "600001",
}


@pytest.fixture
def api():
    client = TestClient(create_app(MockDatabase(), secret=SECRET))
    resp = client.post("/api/v1/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD})
    assert resp.status_code == 200
    client.headers["Authorization"] = f"Bearer {resp.json()['accessToken']}"
    return client


def place_order(api, quantity=2):
    api.post("/api/v1/cart/items", json={"productId": 1, "quantity": quantity})
    address = api.post("/api/v1/addresses", json=ADDRESS).json()
    resp = api.post("/api/v1/orders", json={"shippingAddressId": address["id"]})
    assert resp.status_code == 201
    return resp.json()


def confirm_fields(order, signature=None):
    payment_id = "pay_test"
    return {
        "gatewayOrderId": order["gatewayOrderId"],
        "gatewayPaymentId": payment_id,
        "gatewaySignature": signature or sign(order["gatewayOrderId"], payment_id, SECRET),
    }


def test_signature_roundtrip():
    signature = sign("order_1", "pay_1", SECRET)

    assert verify("order_1", "pay_1", signature, SECRET)
    assert not verify("order_1", "pay_2", signature, SECRET)


def test_requires_bearer_token():
    client = TestClient(create_app(MockDatabase()))

    resp = client.get("/api/v1/cart")

    assert resp.status_code == 401
    assert resp.json() == {"message": "Missing bearer token"}


def test_add_to_cart_merges_same_product(api):
    api.post("/api/v1/cart/items", json={"productId": 1, "quantity": 1})
    cart = api.post("/api/v1/cart/items", json={"productId": 1, "quantity": 2}).json()

    assert len(cart["items"]) == 1
    assert cart["items"][0]["quantity"] == 3
    assert cart["totalItems"] == 3
    assert cart["subtotal"] == "300.00"


def test_add_out_of_stock_is_rejected(api):
    resp = api.post("/api/v1/cart/items", json={"productId": 3, "quantity": 1})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Only 0 in stock"


def test_body_validation_errors_are_field_keyed(api):
    resp = api.post("/api/v1/cart/items", json={"productId": 1, "quantity": 0})

    assert resp.status_code == 400
    assert "quantity" in resp.json()["errors"]


def test_first_address_becomes_default(api):
    first = api.post("/api/v1/addresses", json=ADDRESS).json()
    second = api.post("/api/v1/addresses", json=dict(ADDRESS, isDefault=True)).json()

    addresses = api.get("/api/v1/addresses").json()

    assert first["isDefault"] is True
    assert [a["id"] for a in addresses if a["isDefault"]] == [second["id"]]


def test_order_creation_requires_items(api):
    address = api.post("/api/v1/addresses", json=ADDRESS).json()

    resp = api.post("/api/v1/orders", json={"shippingAddressId": address["id"]})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Cart is empty"


def test_created_order_is_pending_with_totals(api):
    order = place_order(api)

    assert order["status"] == "PENDING"
    assert order["orderNumber"].startswith("ORD-")
    assert order["gatewayOrderId"].startswith("order_")
    # 200 + 50 wysylka + 36 podatek
    assert order["totalAmount"] == "286.00"
    assert order["lineItems"][0]["quantity"] == 2


def test_confirm_with_valid_signature(api):
    order = place_order(api)

    resp = api.post(f"/api/v1/orders/{order['id']}/confirm", json=confirm_fields(order))

    assert resp.status_code == 200
    assert resp.json()["status"] == "CONFIRMED"
    assert api.get("/api/v1/cart").json()["items"] == []

    again = api.post(f"/api/v1/orders/{order['id']}/confirm", json=confirm_fields(order))
    assert again.json()["status"] == "CONFIRMED"


def test_confirm_with_tampered_signature(api):
    order = place_order(api)

    resp = api.post(f"/api/v1/orders/{order['id']}/confirm", json=confirm_fields(order, signature="deadbeef"))

    assert resp.status_code == 400
    assert resp.json()["message"] == "Payment signature verification failed"
    assert api.get(f"/api/v1/orders/{order['id']}").json()["status"] == "PENDING"


def test_history_lookup_and_cancel(api):
    order = place_order(api)

    page = api.get("/api/v1/orders", params={"page": 0, "size": 5}).json()
    assert page["totalElements"] == 1
    assert page["content"][0]["id"] == order["id"]

    by_number = api.get(f"/api/v1/orders/number/{order['orderNumber']}").json()
    assert by_number["id"] == order["id"]

    cancelled = api.post(f"/api/v1/orders/{order['id']}/cancel").json()
    assert cancelled["status"] == "CANCELLED"

    resp = api.post(f"/api/v1/orders/{order['id']}/cancel")
    assert resp.status_code == 400

    filtered = api.get("/api/v1/orders", params={"status": "PENDING"}).json()
    assert filtered["content"] == []


def test_simulated_widget_modes():
    request = PaymentRequest(
        key_id="key",
        amount=28600,
        currency="INR",
        gateway_order_id="order_1",
        store_name="ToyTown",
        description="Order #ORD-1",
    )

    success = SimulatedPaymentWidget(secret=SECRET).open(request, CancelToken()).result(timeout=1)
    assert isinstance(success, PaymentSuccess)
    fields = success.fields
    assert verify(fields["gatewayOrderId"], fields["gatewayPaymentId"], fields["gatewaySignature"], SECRET)

    tampered = SimulatedPaymentWidget("tampered", SECRET).open(request, CancelToken()).result(timeout=1)
    fields = tampered.fields
    assert not verify(fields["gatewayOrderId"], fields["gatewayPaymentId"], fields["gatewaySignature"], SECRET)

    closed = SimulatedPaymentWidget("dismiss").open(request, CancelToken()).result(timeout=1)
    assert isinstance(closed, PaymentFailure) and closed.dismissed

    assert not SimulatedPaymentWidget("silent").open(request, CancelToken()).done()


def test_profile_update(api):
    resp = api.put(
        "/api/v1/auth/profile",
        json={"firstName": "Ada", "lastName": "Toy", "phoneNumber": "+48123456789"},
    )

    assert resp.status_code == 200
    assert api.get("/api/v1/auth/profile").json()["firstName"] == "Ada"


def test_password_reset_flow():
    db = MockDatabase()
    client = TestClient(create_app(db, secret=SECRET))

    resp = client.post("/api/v1/auth/forgot-password", json={"email": DEMO_EMAIL})
    assert resp.status_code == 200
    (token,) = db.reset_tokens

    assert client.get("/api/v1/auth/validate-reset-token", params={"token": token}).json() is True
    resp = client.post("/api/v1/auth/reset-password", json={"token": token, "newPassword": "newpass123"})
    assert resp.status_code == 200

    # token jednorazowy
    assert client.get("/api/v1/auth/validate-reset-token", params={"token": token}).json() is False
    resp = client.post("/api/v1/auth/reset-password", json={"token": token, "newPassword": "newpass123"})
    assert resp.status_code == 400

    old = client.post("/api/v1/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD})
    new = client.post("/api/v1/auth/login", json={"email": DEMO_EMAIL, "password": "newpass123"})
    assert old.status_code == 401
    assert new.status_code == 200


def test_forgot_password_does_not_reveal_unknown_email():
    db = MockDatabase()
    client = TestClient(create_app(db, secret=SECRET))

    resp = client.post("/api/v1/auth/forgot-password", json={"email": "nobody@toytown.test"})

    assert resp.status_code == 200
    assert db.reset_tokens == {}
