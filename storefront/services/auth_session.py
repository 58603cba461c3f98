# storefront/services/auth_session.py
from typing import Callable, List

import pydantic

from storefront.api.client import ApiClient
from storefront.api.tokens import TokenStore
from storefront.domain.errors import AuthError, StorefrontError, ValidationError
from storefront.domain.schemas import (
    AuthTokens,
    Customer,
    ForgotPasswordIn,
    LoginIn,
    MessageOut,
    ProfileUpdateIn,
    RegisterIn,
    ResetPasswordIn,
)
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class AuthSession:
    """
    Logowanie / wylogowanie klienta.
    Listenery logout czyszcza stan store'ow (koszyk, adresy, zamowienia, checkout),
    tak samo przy jawnym wylogowaniu jak przy wymuszonym przez AuthError.
    """

    def __init__(self, client: ApiClient, tokens: TokenStore | None = None):
        self.client = client
        self.tokens = tokens or client.tokens
        self.error: StorefrontError | None = None
        self._login_listeners: List[Callable[[Customer], None]] = []
        self._logout_listeners: List[Callable[[], None]] = []
        client.add_auth_failure_listener(self._on_auth_failure)

    @property
    def is_authenticated(self) -> bool:
        return self.tokens.is_authenticated

    @property
    def customer(self) -> Customer | None:
        return self.tokens.customer

    def add_login_listener(self, listener: Callable[[Customer], None]):
        self._login_listeners.append(listener)

    def add_logout_listener(self, listener: Callable[[], None]):
        self._logout_listeners.append(listener)

    def login(self, email: str, password: str) -> Customer | None:
        try:
            payload = LoginIn(email=email, password=password).to_payload()
        except pydantic.ValidationError as e:
            return self._fail(ValidationError.from_pydantic("Podaj email i haslo", e))
        return self._authenticate("/auth/login", payload)

    def register(self, data: RegisterIn | dict) -> Customer | None:
        try:
            form = data if isinstance(data, RegisterIn) else RegisterIn.model_validate(data)
        except pydantic.ValidationError as e:
            return self._fail(ValidationError.from_pydantic("Niepoprawne dane rejestracji", e))
        return self._authenticate("/auth/register", form.to_payload())

    def refresh_profile(self) -> Customer | None:
        try:
            customer = self.client.get("/auth/profile", Customer)
        except StorefrontError as e:
            return self._fail(e)
        self.tokens.customer = customer
        return customer

    def logout(self):
        if self.tokens.is_authenticated:
            try:
                self.client.post("/auth/logout")
            except StorefrontError as e:
                # tokeny i tak czyscimy lokalnie
                logger.warning(f"Wylogowanie na serwerze nieudane: {e}")
        self.tokens.clear()
        self._notify_logout()

    # =====================================================
    # PROFILE / PASSWORD
    # =====================================================
    def update_profile(self, data: ProfileUpdateIn | dict) -> Customer | None:
        try:
            form = data if isinstance(data, ProfileUpdateIn) else ProfileUpdateIn.model_validate(data)
        except pydantic.ValidationError as e:
            return self._fail(ValidationError.from_pydantic("Niepoprawne dane profilu", e))

        self.error = None
        try:
            customer = self.client.put("/auth/profile", Customer, json=form.to_payload())
        except StorefrontError as e:
            return self._fail(e)
        self.tokens.customer = customer
        logger.info(f"Profil klienta {customer.id} zaktualizowany")
        return customer

    def forgot_password(self, email: str) -> str | None:
        """Wysyla link resetu hasla. Zwraca komunikat serwera."""
        try:
            payload = ForgotPasswordIn(email=email).to_payload()
        except pydantic.ValidationError as e:
            return self._fail(ValidationError.from_pydantic("Podaj adres email", e))

        self.error = None
        try:
            return self.client.post("/auth/forgot-password", MessageOut, json=payload).message
        except StorefrontError as e:
            return self._fail(e)

    def validate_reset_token(self, token: str) -> bool | None:
        self.error = None
        try:
            return self.client.get("/auth/validate-reset-token", bool, params={"token": token})
        except StorefrontError as e:
            return self._fail(e)

    def reset_password(self, token: str, new_password: str, confirm_password: str | None = None) -> str | None:
        if confirm_password is not None and confirm_password != new_password:
            return self._fail(
                ValidationError("Hasla nie sa takie same", field_errors={"confirmPassword": "mismatch"})
            )
        try:
            payload = ResetPasswordIn(token=token, new_password=new_password).to_payload()
        except pydantic.ValidationError as e:
            return self._fail(ValidationError.from_pydantic("Niepoprawne nowe haslo", e))

        self.error = None
        try:
            result = self.client.post("/auth/reset-password", MessageOut, json=payload)
        except StorefrontError as e:
            return self._fail(e)
        logger.info("Haslo zresetowane")
        return result.message

    def _authenticate(self, path: str, payload: dict) -> Customer | None:
        self.error = None
        try:
            result = self.client.post(path, AuthTokens, json=payload)
        except StorefrontError as e:
            return self._fail(e)

        self.tokens.save(result.access_token, result.refresh_token, result.customer)
        logger.info(f"Zalogowano klienta {result.customer.id}")
        for listener in list(self._login_listeners):
            listener(result.customer)
        return result.customer

    def _on_auth_failure(self, error: AuthError):
        self.error = error
        self._notify_logout()

    def _notify_logout(self):
        logger.info("Wylogowanie, czyszcze stan klienta")
        for listener in list(self._logout_listeners):
            listener()

    def _fail(self, error: StorefrontError) -> None:
        logger.error(f"Autoryzacja: {error}")
        self.error = error
        return None
