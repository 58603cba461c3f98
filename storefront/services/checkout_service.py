# storefront/services/checkout_service.py
import threading
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict

from storefront.api.client import ApiClient
from storefront.api.tokens import TokenStore
from storefront.domain.errors import (
    CheckoutStepError,
    OrderCreationUnclear,
    PaymentNotAttempted,
    PaymentVerificationFailed,
    PaymentWidgetUnavailable,
    ResponseShapeError,
    StorefrontError,
)
from storefront.domain.schemas import CreateOrderIn, Order, OrderLine, OrderStatus
from storefront.domain.state import CheckoutPhase, CheckoutSession, CheckoutStep
from storefront.services.address_store import AddressStore
from storefront.services.cart_store import CartStore
from storefront.services.order_store import OrderStore
from storefront.services.payment_widget import (
    CancelToken,
    PaymentFailure,
    PaymentOutcome,
    PaymentRequest,
    PaymentWidget,
    resolve,
)
from storefront.utils.logging import get_logger
from storefront.utils.settings import (
    FREE_SHIPPING_THRESHOLD,
    PAYMENT_CURRENCY,
    PAYMENT_KEY_ID,
    PAYMENT_WAIT_SECONDS,
    SHIPPING_FEE,
    STORE_NAME,
    TAX_RATE,
)

logger = get_logger(__name__)

_CENT = Decimal("0.01")
# bledy, ktorych nie zdejmuje zmiana kroku ani kolejny guard
_STICKY_ERRORS = (PaymentVerificationFailed, OrderCreationUnclear)


@dataclass(frozen=True)
class ReviewTotals:
    """Szacunek na ekranie review. Kwote do zaplaty wylicza serwer przy tworzeniu zamowienia."""

    subtotal: Decimal
    shipping: Decimal
    tax: Decimal
    total: Decimal


class CheckoutOrchestrator:
    """
    Maszyna stanow checkoutu: ADDRESS -> REVIEW -> PAYMENT -> (CONFIRMED | FAILED)

    Place Order:
    1. tworzy zamowienie (PENDING) - najwyzej raz na sesje, kolejne proby platnosci uzywaja tego samego
    2. laduje widget bramki (idempotentnie)
    3. otwiera widget i czeka na jeden callback
    4. sukces -> POST /orders/{id}/confirm, serwer weryfikuje podpis
    5. porazka / zamkniecie -> FAILED lokalnie, zamowienie zostaje PENDING na serwerze

    Blad przy potwierdzeniu to PaymentVerificationFailed: srodki moga byc pobrane,
    wiec widget nie otworzy sie ponownie bez acknowledge_verification_failure().
    """

    def __init__(
        self,
        client: ApiClient,
        cart_store: CartStore,
        address_store: AddressStore,
        order_store: OrderStore,
        widget: PaymentWidget,
        tokens: TokenStore | None = None,
        wait_seconds: float | None = None,
    ):
        self.client = client
        self.cart_store = cart_store
        self.address_store = address_store
        self.order_store = order_store
        self.widget = widget
        self.tokens = tokens or client.tokens
        self.wait_seconds = wait_seconds or PAYMENT_WAIT_SECONDS

        self.session: CheckoutSession | None = None
        self.last_confirmed_order: Order | None = None
        # przezywa leave/reset (takze wymuszone wylogowanie), zdejmuje go tylko acknowledge
        self.pending_support: PaymentVerificationFailed | None = None
        self._widget_loaded = False
        self._cancel_token: CancelToken | None = None
        self._flight = threading.Lock()

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def error(self) -> StorefrontError | None:
        if self.pending_support is not None:
            return self.pending_support
        return self.session.error if self.session else None

    @property
    def can_retry_payment(self) -> bool:
        session = self.session
        return (
            session is not None
            and self.pending_support is None
            and not session.in_flight
            and not session.needs_restart
            and session.error is not None
            and session.error.retriable
        )

    @property
    def requires_support(self) -> bool:
        return self.pending_support is not None

    def review_totals(self) -> ReviewTotals:
        if self.session and self.session.cart_snapshot:
            subtotal = sum((line.subtotal for line in self.session.cart_snapshot), Decimal("0.00"))
        else:
            subtotal = Decimal(self.cart_store.cart.subtotal)

        shipping = Decimal("0.00") if subtotal >= FREE_SHIPPING_THRESHOLD else Decimal(SHIPPING_FEE)
        tax = (subtotal * Decimal(TAX_RATE)).quantize(_CENT, rounding=ROUND_HALF_UP)
        total = (subtotal + shipping + tax).quantize(_CENT, rounding=ROUND_HALF_UP)
        return ReviewTotals(subtotal=subtotal, shipping=shipping, tax=tax, total=total)

    # =====================================================
    # STEPS
    # =====================================================
    def begin(self) -> bool:
        """Nowa sesja checkoutu. Pusty koszyk nie wchodzi dalej niz ADDRESS."""
        self.leave()
        self.session = CheckoutSession()

        default = self.address_store.default_address()
        if default is not None:
            self.session.selected_address_id = default.id

        if self.cart_store.cart.is_empty:
            return self._reject(CheckoutStepError("Koszyk jest pusty"))
        return True

    def select_address(self, address_id: int) -> bool:
        session = self._require_session()
        if session is None:
            return False
        if session.in_flight:
            return self._reject(CheckoutStepError("Platnosc w toku"))
        if session.pending_order is not None and session.pending_order.shipping_address_id not in (
            None,
            address_id,
        ):
            return self._reject(
                CheckoutStepError("Zamowienie zostalo juz utworzone dla innego adresu, rozpocznij checkout od nowa")
            )
        if self.address_store.get(address_id) is None:
            return self._reject(CheckoutStepError(f"Nieznany adres wysylki {address_id}"))

        session.selected_address_id = address_id
        self._clear_step_error(session)
        return True

    def next_step(self) -> bool:
        session = self._require_session()
        if session is None:
            return False
        if session.in_flight:
            return self._reject(CheckoutStepError("Platnosc w toku"))

        if session.step == CheckoutStep.ADDRESS:
            if session.selected_address_id is None:
                return self._reject(CheckoutStepError("Wybierz adres wysylki"))
            if self.address_store.get(session.selected_address_id) is None:
                return self._reject(CheckoutStepError("Wybrany adres wysylki nie istnieje, wybierz inny"))
            if self.cart_store.cart.is_empty and session.pending_order is None:
                return self._reject(CheckoutStepError("Koszyk jest pusty"))
            session.step = CheckoutStep.REVIEW
        elif session.step == CheckoutStep.REVIEW:
            session.step = CheckoutStep.PAYMENT
        else:
            return self._reject(CheckoutStepError("PAYMENT to ostatni krok, uzyj place_order()"))

        self._clear_step_error(session)
        logger.info(f"Checkout -> {session.step.value}")
        return True

    def back(self) -> bool:
        session = self._require_session()
        if session is None:
            return False
        if session.in_flight:
            return self._reject(CheckoutStepError("Platnosc w toku"))

        if session.step == CheckoutStep.PAYMENT:
            session.step = CheckoutStep.REVIEW
        elif session.step == CheckoutStep.REVIEW:
            session.step = CheckoutStep.ADDRESS
        else:
            return self._reject(CheckoutStepError("ADDRESS to pierwszy krok"))

        logger.info(f"Checkout <- {session.step.value}")
        return True

    # =====================================================
    # PLACE ORDER
    # =====================================================
    def place_order(self, prefill: Dict[str, str] | None = None, wait_seconds: float | None = None) -> Order | None:
        session = self._require_session()
        if session is None:
            return None
        if session.step != CheckoutStep.PAYMENT:
            self._reject(CheckoutStepError(f"Place Order niedostepne w kroku {session.step.value}"))
            return None
        if self.pending_support is not None:
            # blad weryfikacji zostaje, UI dalej pokazuje baner
            logger.warning("Weryfikacja platnosci nieudana, ponowienie wymaga potwierdzenia uzytkownika")
            return None
        if session.needs_restart:
            logger.warning("Stan zamowienia nieznany, ponowienie wymaga nowej sesji checkoutu")
            return None
        if session.selected_address_id is None:
            self._reject(CheckoutStepError("Wybierz adres wysylki"))
            return None

        if not self._flight.acquire(blocking=False):
            self._reject(CheckoutStepError("Zamowienie jest w trakcie skladania"))
            return None
        try:
            session.error = None

            order = session.pending_order
            if order is None:
                order = self._create_order(session)
                if order is None:
                    return None
            else:
                logger.info(f"Ponowna platnosc dla istniejacego zamowienia {order.order_number}")

            if not self._load_widget(session):
                return None

            outcome = self._await_payment(session, order, prefill, wait_seconds or self.wait_seconds)
            if isinstance(outcome, PaymentFailure):
                session.phase = CheckoutPhase.FAILED
                session.error = PaymentNotAttempted(outcome.reason)
                logger.warning(
                    f"Platnosc dla {order.order_number} nieudana ({outcome.reason}), zamowienie zostaje PENDING"
                )
                return None

            return self._confirm(session, order, outcome.fields)
        finally:
            self._flight.release()

    def cancel_payment(self) -> bool:
        """Zamkniecie widgetu - konczy czekanie na callback, nie anuluje zamowienia na serwerze."""
        token = self._cancel_token
        if token is None:
            return False
        token.cancel()
        return True

    def acknowledge_verification_failure(self) -> bool:
        error = self.pending_support
        if error is None:
            return False
        logger.warning(f"Uzytkownik potwierdzil blad weryfikacji: {error}")
        self.pending_support = None

        session = self.session
        if session is not None and isinstance(session.error, PaymentVerificationFailed):
            session.error = None
            session.phase = CheckoutPhase.IDLE
        return True

    def leave(self):
        """Wyjscie z checkoutu. Porzucone zamowienie PENDING to normalny stan, nic nie sprzatamy."""
        self.cancel_payment()
        self.session = None

    def reset(self):
        self.leave()
        self.last_confirmed_order = None

    # =====================================================
    # INTERNAL
    # =====================================================
    def _create_order(self, session: CheckoutSession) -> Order | None:
        # kopia koszyka zanim pojdzie request - zmiany w innej karcie nie ruszaja kwoty
        snapshot = tuple(OrderLine.from_cart_item(i) for i in self.cart_store.cart.items)
        session.phase = CheckoutPhase.CREATING_ORDER
        logger.info(f"Tworzenie zamowienia dla adresu {session.selected_address_id}")

        try:
            order = self.client.post(
                "/orders",
                Order,
                json=CreateOrderIn(shipping_address_id=session.selected_address_id).to_payload(),
            )
        except ResponseShapeError as e:
            # serwer odpowiedzial 2xx, zamowienie moglo powstac
            return self._order_unusable(session, None, e)
        except StorefrontError as e:
            logger.error(f"Utworzenie zamowienia nieudane: {e}")
            session.phase = CheckoutPhase.IDLE
            session.error = e
            return None

        if not order.gateway_order_id:
            return self._order_unusable(
                session, order, ResponseShapeError(f"Zamowienie {order.order_number} bez gatewayOrderId")
            )

        update = {}
        if not order.line_items:
            update["line_items"] = snapshot
        if order.shipping_address_id is None:
            update["shipping_address_id"] = session.selected_address_id
        if update:
            order = order.model_copy(update=update)

        session.pending_order = order
        session.cart_snapshot = order.line_items
        logger.info(
            f"Zamowienie {order.order_number} utworzone ({order.status.value}), "
            f"kwota {order.total_amount}, gateway {order.gateway_order_id}"
        )
        return order

    def _order_unusable(self, session: CheckoutSession, order: Order | None, cause: StorefrontError) -> None:
        if order is not None:
            session.pending_order = order
        session.needs_restart = True
        session.phase = CheckoutPhase.FAILED
        error = OrderCreationUnclear(
            "Nie udalo sie potwierdzic utworzenia zamowienia, rozpocznij checkout od nowa", cause.status
        )
        error.__cause__ = cause
        session.error = error
        logger.error(f"{error}: {cause}")
        return None

    def _load_widget(self, session: CheckoutSession) -> bool:
        if self._widget_loaded:
            return True
        if self.widget.load():
            self._widget_loaded = True
            return True

        logger.error("Nie udalo sie zaladowac widgetu platnosci")
        session.phase = CheckoutPhase.FAILED
        session.error = PaymentWidgetUnavailable("Nie udalo sie zaladowac bramki platnosci, sprobuj ponownie")
        return False

    def _await_payment(
        self,
        session: CheckoutSession,
        order: Order,
        prefill: Dict[str, str] | None,
        wait_seconds: float,
    ) -> PaymentOutcome:
        request = PaymentRequest(
            key_id=PAYMENT_KEY_ID,
            amount=PaymentRequest.to_minor_units(order.total_amount),
            currency=PAYMENT_CURRENCY,
            gateway_order_id=order.gateway_order_id,
            store_name=STORE_NAME,
            description=f"Order #{order.order_number}",
            prefill=prefill if prefill is not None else self._prefill(),
        )

        token = CancelToken()
        self._cancel_token = token
        session.phase = CheckoutPhase.AWAITING_PAYMENT
        logger.info(f"Otwieram widget dla {order.gateway_order_id} ({request.amount} {request.currency})")

        try:
            future = self.widget.open(request, token)
            token.on_cancel(
                lambda: resolve(future, PaymentFailure("Platnosc anulowana przez uzytkownika", dismissed=True))
            )
            return future.result(timeout=wait_seconds)
        except FuturesTimeout:
            token.cancel()
            return PaymentFailure("Brak odpowiedzi z bramki platnosci", dismissed=True)
        except Exception as e:  # adapter zewnetrzny, kazdy blad to nieudana platnosc
            logger.error(f"Widget platnosci zglosil blad: {e}")
            return PaymentFailure(str(e))
        finally:
            self._cancel_token = None

    def _confirm(self, session: CheckoutSession, order: Order, fields: Dict[str, str]) -> Order | None:
        session.phase = CheckoutPhase.CONFIRMING
        logger.info(f"Potwierdzanie platnosci dla zamowienia {order.order_number}")

        try:
            confirmed = self.client.post(f"/orders/{order.id}/confirm", Order, json=dict(fields))
            if confirmed.status != OrderStatus.CONFIRMED:
                raise ResponseShapeError(
                    f"Zamowienie {confirmed.order_number} w statusie {confirmed.status.value} po potwierdzeniu"
                )
        except StorefrontError as e:
            error = PaymentVerificationFailed(
                f"Weryfikacja platnosci dla zamowienia {order.order_number} nieudana: {e}", e.status
            )
            error.__cause__ = e
            logger.error(f"{error} - wymaga kontaktu z obsluga")
            # sesja mogla zostac zdjeta przez wymuszone wylogowanie w trakcie confirm
            self.pending_support = error
            session.phase = CheckoutPhase.FAILED
            session.error = error
            return None

        if not confirmed.line_items:
            confirmed = confirmed.model_copy(update={"line_items": order.line_items})

        session.phase = CheckoutPhase.CONFIRMED
        self.last_confirmed_order = confirmed
        self.order_store.record_confirmed(confirmed)
        logger.info(f"Zamowienie {confirmed.order_number} potwierdzone")

        # serwer czysci koszyk przy potwierdzeniu, pobieramy go od razu
        self.cart_store.fetch_cart()
        self.session = None
        return confirmed

    def _prefill(self) -> Dict[str, str]:
        customer = self.tokens.customer if self.tokens else None
        if customer is None:
            return {}
        return {
            "name": customer.full_name,
            "email": customer.email,
            "contact": customer.phone_number or "",
        }

    def _require_session(self) -> CheckoutSession | None:
        if self.session is None:
            logger.warning("Brak aktywnej sesji checkoutu")
        return self.session

    def _reject(self, error: CheckoutStepError) -> bool:
        logger.warning(f"Checkout: {error}")
        if self.session is not None and not isinstance(self.session.error, _STICKY_ERRORS):
            self.session.error = error
        return False

    @staticmethod
    def _clear_step_error(session: CheckoutSession):
        # baner weryfikacji zdejmuje tylko acknowledge, blad zamowienia tylko begin()
        if not isinstance(session.error, _STICKY_ERRORS):
            session.error = None
