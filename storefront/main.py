# storefront/main.py
from dataclasses import dataclass

import requests

from storefront.api.client import ApiClient
from storefront.api.tokens import TokenStore
from storefront.services.address_store import AddressStore
from storefront.services.auth_session import AuthSession
from storefront.services.cart_store import CartStore
from storefront.services.checkout_service import CheckoutOrchestrator
from storefront.services.lock_service import ItemLockMap
from storefront.services.order_store import OrderStore
from storefront.services.payment_widget import PaymentWidget
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Storefront:
    """Kontekst aplikacji przekazywany jawnie do UI, bez globalnego store'a."""

    tokens: TokenStore
    client: ApiClient
    auth: AuthSession
    cart: CartStore
    addresses: AddressStore
    orders: OrderStore
    checkout: CheckoutOrchestrator


def create_storefront(
    widget: PaymentWidget,
    base_url: str | None = None,
    session: requests.Session | None = None,
    retry_attempts: int | None = None,
) -> Storefront:
    tokens = TokenStore()
    client = ApiClient(base_url=base_url, tokens=tokens, session=session, retry_attempts=retry_attempts)

    auth = AuthSession(client, tokens)
    cart = CartStore(client, ItemLockMap())
    addresses = AddressStore(client)
    orders = OrderStore(client)
    checkout = CheckoutOrchestrator(client, cart, addresses, orders, widget, tokens)

    # koszyk pobierany zaraz po zalogowaniu
    auth.add_login_listener(lambda customer: cart.fetch_cart())

    # kolejnosc: najpierw checkout (anuluje czekanie na widget), potem dane
    auth.add_logout_listener(checkout.reset)
    auth.add_logout_listener(cart.reset)
    auth.add_logout_listener(addresses.reset)
    auth.add_logout_listener(orders.reset)

    return Storefront(
        tokens=tokens,
        client=client,
        auth=auth,
        cart=cart,
        addresses=addresses,
        orders=orders,
        checkout=checkout,
    )


if __name__ == "__main__":
    # demo na mock backendzie: python -m storefront.mock_backend.main
    from storefront.mock_backend.gateway import SimulatedPaymentWidget
    from storefront.mock_backend.main import DEMO_EMAIL, DEMO_PASSWORD

    app = create_storefront(SimulatedPaymentWidget(), base_url="http://localhost:8080/api/v1")

    print("=" * 80)
    customer = app.auth.login(DEMO_EMAIL, DEMO_PASSWORD)
    if customer is None:
        raise SystemExit(f"Login failed: {app.auth.error}")
    print(f"Logged in as {customer.full_name}")

    app.cart.add_item(product_id=1, quantity=2)
    print(f"Cart: {app.cart.item_count()} items, subtotal {app.cart.cart.subtotal}")

    if not app.addresses.fetch_addresses():
        app.addresses.add_address(
            {
                "recipientName": "Demo Customer",
                "phoneNumber": "9876543210",
                "addressLine1": "12 Toy Street",
                "city": "Chennai",
                "state": "Tamil Nadu",
                "postalCode": "600001",
                "isDefault": True,
            }
        )

    app.checkout.begin()
    app.checkout.next_step()
    print(f"Review: {app.checkout.review_totals()}")
    app.checkout.next_step()
    order = app.checkout.place_order()

    if order:
        print(f"Order {order.order_number} {order.status.value}, total {order.total_amount}")
    else:
        print(f"Checkout failed: {app.checkout.error}")
    print(f"Cart after checkout: {app.cart.item_count()} items")
    print("=" * 80)
