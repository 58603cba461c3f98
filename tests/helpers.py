# tests/helpers.py
from concurrent.futures import Future
from decimal import Decimal

from storefront.services.payment_widget import PaymentFailure, PaymentSuccess

BASE = "http://api.test/api/v1"


def item_payload(item_id, product_id, quantity, price, stock=10, name=None):
    return {
        "id": item_id,
        "productId": product_id,
        "productName": name or f"Toy {product_id}",
        "unitPrice": str(price),
        "quantity": quantity,
        "stockQuantity": stock,
    }


def cart_payload(*items, total_items=None, subtotal=None):
    if total_items is None:
        total_items = sum(i["quantity"] for i in items)
    if subtotal is None:
        subtotal = sum((Decimal(i["unitPrice"]) * i["quantity"] for i in items), Decimal("0"))
    return {"items": list(items), "totalItems": total_items, "subtotal": str(subtotal)}


def order_payload(order_id=42, number="ORD-42", gateway="gw_1", status="PENDING", total="200.00", **extra):
    data = {
        "id": order_id,
        "orderNumber": number,
        "status": status,
        "gatewayOrderId": gateway,
        "totalAmount": total,
    }
    data.update(extra)
    return data


def address_payload(address_id, is_default=False, **extra):
    data = {
        "id": address_id,
        "recipientName": f"Recipient {address_id}",
        "phoneNumber": "9876543210",
        "addressLine1": f"{address_id} Toy Street",
        "city": "Chennai",
        "state": "Tamil Nadu",
        "postalCode": "600001",
        "country": "India",
        "isDefault": is_default,
    }
    data.update(extra)
    return data


class FakeWidget:
    """Widget testowy: kolejne open() zwracaja kolejne wyniki z listy."""

    def __init__(self, *outcomes, loads=True):
        self.outcomes = list(outcomes)
        self.loads = loads
        self.load_calls = 0
        self.requests = []
        self.tokens = []
        self.on_open = None

    def load(self):
        self.load_calls += 1
        return self.loads

    def open(self, request, token):
        self.requests.append(request)
        self.tokens.append(token)
        future = Future()
        if self.on_open is not None:
            self.on_open()
        if self.outcomes:
            outcome = self.outcomes.pop(0)
            if outcome is not None:
                future.set_result(outcome)
        return future


def paid(**fields):
    return PaymentSuccess(
        fields=fields
        or {"gatewayOrderId": "gw_1", "gatewayPaymentId": "pay_1", "gatewaySignature": "sig"}
    )


def dismissed():
    return PaymentFailure("closed", dismissed=True)
