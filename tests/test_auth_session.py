# tests/test_auth_session.py
import json

import pytest
import responses
from responses import matchers

from storefront.api.client import ApiClient
from storefront.api.tokens import TokenStore
from storefront.domain.errors import AuthError, ValidationError
from storefront.domain.schemas import ShippingAddress
from storefront.main import create_storefront
from storefront.services.auth_session import AuthSession
from tests.helpers import BASE, FakeWidget, address_payload, cart_payload, item_payload

CUSTOMER = {"id": 1, "email": "ada@toytown.test", "firstName": "Ada", "lastName": "Toy"}


def tokens_payload():
    return {"accessToken": "access-9", "refreshToken": "refresh-9", "customer": CUSTOMER}


@pytest.fixture
def session():
    tokens = TokenStore()
    return AuthSession(ApiClient(base_url=BASE, tokens=tokens, retry_attempts=1), tokens)


@responses.activate
def test_login_saves_tokens_and_notifies(session):
    logged_in = []
    session.add_login_listener(logged_in.append)
    responses.add(responses.POST, f"{BASE}/auth/login", json=tokens_payload())

    customer = session.login("ada@toytown.test", "secret")

    assert customer.full_name == "Ada Toy"
    assert session.is_authenticated
    assert session.tokens.refresh_token == "refresh-9"
    assert logged_in == [customer]
    assert json.loads(responses.calls[0].request.body) == {"email": "ada@toytown.test", "password": "secret"}
    assert "Authorization" not in responses.calls[0].request.headers


@responses.activate
def test_bad_credentials(session):
    responses.add(responses.POST, f"{BASE}/auth/login", json={"message": "Invalid email or password"}, status=401)

    assert session.login("ada@toytown.test", "wrong") is None

    assert isinstance(session.error, AuthError)
    assert not session.is_authenticated


@responses.activate
def test_register_validates_locally(session):
    assert session.register({"email": "ada@toytown.test", "password": "short"}) is None

    assert isinstance(session.error, ValidationError)
    assert "password" in session.error.field_errors
    assert len(responses.calls) == 0


@responses.activate
def test_register(session):
    responses.add(responses.POST, f"{BASE}/auth/register", json=tokens_payload(), status=201)

    customer = session.register(
        {"email": "ada@toytown.test", "password": "longenough", "firstName": "Ada", "lastName": "Toy"}
    )

    assert customer.id == 1
    assert session.tokens.access_token == "access-9"


@responses.activate
def test_refresh_profile(session):
    session.tokens.save("access-9", "refresh-9")
    responses.add(responses.GET, f"{BASE}/auth/profile", json=dict(CUSTOMER, phoneNumber="9876543210"))

    customer = session.refresh_profile()

    assert session.customer is customer
    assert customer.phone_number == "9876543210"


@responses.activate
def test_logout_clears_tokens_even_if_server_fails(session):
    session.tokens.save("access-9", "refresh-9")
    logged_out = []
    session.add_logout_listener(lambda: logged_out.append(True))
    responses.add(responses.POST, f"{BASE}/auth/logout", status=500)

    session.logout()

    assert not session.is_authenticated
    assert session.tokens.refresh_token is None
    assert logged_out == [True]


@responses.activate
def test_forced_logout_resets_every_store():
    app = create_storefront(FakeWidget(), base_url=BASE, retry_attempts=1)
    responses.add(responses.POST, f"{BASE}/auth/login", json=tokens_payload())
    responses.add(responses.GET, f"{BASE}/cart", json=cart_payload(item_payload(1, 10, 2, "100.00")))

    app.auth.login("ada@toytown.test", "secret")

    assert app.cart.item_count() == 2
    app.addresses.state.addresses = [ShippingAddress.model_validate(address_payload(7, is_default=True))]
    app.checkout.begin()
    assert app.checkout.session is not None

    # access token wygasl, refresh tez odrzucony
    responses.add(responses.GET, f"{BASE}/orders/42", status=401)
    responses.add(responses.POST, f"{BASE}/auth/refresh", json={"message": "Invalid refresh token"}, status=401)

    assert app.orders.fetch_order(42) is None

    assert isinstance(app.orders.state.error, AuthError)
    assert app.orders.history == []
    assert isinstance(app.auth.error, AuthError)
    assert not app.tokens.is_authenticated
    assert app.cart.cart.is_empty
    assert app.addresses.addresses == []
    assert app.checkout.session is None


@responses.activate
def test_update_profile_replaces_customer(session):
    session.tokens.save("access-1", "refresh-1")
    updated = dict(CUSTOMER, firstName="Adela", phoneNumber="+48123456789")
    responses.add(responses.PUT, f"{BASE}/auth/profile", json=updated)

    customer = session.update_profile({"firstName": "Adela", "lastName": "Toy", "phoneNumber": "+48123456789"})

    assert customer.full_name == "Adela Toy"
    assert session.tokens.customer == customer
    assert json.loads(responses.calls[0].request.body) == {
        "firstName": "Adela",
        "lastName": "Toy",
        "phoneNumber": "+48123456789",
    }


@responses.activate
def test_update_profile_rejects_bad_phone_locally(session):
    assert session.update_profile({"firstName": "Ada", "lastName": "Toy", "phoneNumber": "12-34"}) is None

    assert isinstance(session.error, ValidationError)
    assert "phoneNumber" in session.error.field_errors
    assert len(responses.calls) == 0


@responses.activate
def test_forgot_password_returns_server_message(session):
    message = "If the email is registered, a reset link has been sent"
    responses.add(responses.POST, f"{BASE}/auth/forgot-password", json={"message": message})

    assert session.forgot_password("ada@toytown.test") == message
    assert json.loads(responses.calls[0].request.body) == {"email": "ada@toytown.test"}


@responses.activate
def test_validate_reset_token(session):
    responses.add(
        responses.GET,
        f"{BASE}/auth/validate-reset-token",
        json=True,
        match=[matchers.query_param_matcher({"token": "good"})],
    )
    responses.add(
        responses.GET,
        f"{BASE}/auth/validate-reset-token",
        json=False,
        match=[matchers.query_param_matcher({"token": "used"})],
    )

    assert session.validate_reset_token("good") is True
    assert session.validate_reset_token("used") is False


@responses.activate
def test_reset_password(session):
    responses.add(responses.POST, f"{BASE}/auth/reset-password", json={"message": "Password has been reset"})

    assert session.reset_password("tok", "newpass123", "newpass123") == "Password has been reset"
    assert json.loads(responses.calls[0].request.body) == {"token": "tok", "newPassword": "newpass123"}


@responses.activate
def test_reset_password_checks_locally(session):
    assert session.reset_password("tok", "newpass123", "newpass124") is None
    assert session.error.field_errors == {"confirmPassword": "mismatch"}

    assert session.reset_password("tok", "onlyletters") is None
    assert isinstance(session.error, ValidationError)

    assert len(responses.calls) == 0


@responses.activate
def test_reset_password_with_expired_token(session):
    responses.add(
        responses.POST,
        f"{BASE}/auth/reset-password",
        json={"message": "Invalid or expired reset token"},
        status=400,
    )

    assert session.reset_password("old", "newpass123") is None

    assert isinstance(session.error, ValidationError)
    assert session.error.message == "Invalid or expired reset token"
