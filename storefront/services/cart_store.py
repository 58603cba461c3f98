# storefront/services/cart_store.py
import threading
import time
from typing import Callable

from storefront.api.client import ApiClient
from storefront.domain.errors import (
    CartBusyError,
    ItemBusyError,
    StorefrontError,
    ValidationError,
)
from storefront.domain.schemas import AddItemIn, Cart, CartItem, UpdateQuantityIn
from storefront.domain.state import CartState
from storefront.services.lock_service import ItemLockMap
from storefront.utils.logging import get_logger
from storefront.utils.settings import ADD_TO_CART_FEEDBACK_SECONDS, MAX_LINE_QUANTITY

logger = get_logger(__name__)


class CartStore:
    """
    Lokalna kopia koszyka z serwera
    -kazda udana mutacja podmienia CALY koszyk odpowiedzia serwera (zero mergowania po stronie klienta)
    -update/remove blokuja pozycje (ItemLockMap), drugi request na ta sama pozycje jest odrzucany lokalnie
    -bledy laduja w state.error, nic nie wylatuje poza store
    """

    def __init__(
        self,
        client: ApiClient,
        lock_service: ItemLockMap | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.locks = lock_service or ItemLockMap()
        self.state = CartState()
        self._clock = clock
        self._cart_guard = threading.Lock()

    # =====================================================
    # QUERY
    # =====================================================
    @property
    def cart(self) -> Cart:
        return self.state.cart

    @property
    def add_blocked(self) -> bool:
        return self.state.adding or self.state.loading or self._clock() < self.state.add_busy_until

    def item_count(self) -> int:
        return self.state.cart.total_items

    def contains_product(self, product_id: int) -> bool:
        return self.state.cart.contains_product(product_id)

    def is_item_busy(self, item_id: int) -> bool:
        return self.locks.is_locked(item_id)

    @staticmethod
    def max_quantity_for(item: CartItem) -> int:
        return min(item.stock_quantity, MAX_LINE_QUANTITY)

    # =====================================================
    # COMMANDS
    # =====================================================
    def fetch_cart(self) -> Cart | None:
        # starsza odpowiedz GET nie moze nadpisac koszyka z dodania / czyszczenia
        if not self._cart_guard.acquire(blocking=False):
            return self._reject(CartBusyError("Operacja na koszyku jest w toku"))

        self.state.loading = True
        self.state.error = None
        try:
            cart = self.client.get("/cart", Cart)
            self._replace(cart)
            return cart
        except StorefrontError as e:
            # stara kopia zostaje, lepsza niz pusty koszyk
            self._fail("Pobranie koszyka nieudane", e)
            return None
        finally:
            self.state.loading = False
            self._cart_guard.release()

    def add_item(self, product_id: int, quantity: int = 1) -> Cart | None:
        if quantity < 1:
            return self._reject(ValidationError("Ilosc musi byc wieksza niz 0", field_errors={"quantity": "min 1"}))

        if self.add_blocked or not self._cart_guard.acquire(blocking=False):
            return self._reject(CartBusyError("Dodawanie do koszyka jest w toku"))

        self.state.adding = True
        self.state.error = None
        try:
            logger.info(f"Dodaje produkt {product_id} x{quantity} do koszyka")
            cart = self.client.post(
                "/cart/items",
                Cart,
                json=AddItemIn(product_id=product_id, quantity=quantity).to_payload(),
            )
            self._replace(cart)
            # krotkie okno zeby przycisk pokazal feedback
            self.state.add_busy_until = self._clock() + ADD_TO_CART_FEEDBACK_SECONDS
            return cart
        except StorefrontError as e:
            self._fail(f"Dodanie produktu {product_id} nieudane", e)
            return None
        finally:
            self.state.adding = False
            self._cart_guard.release()

    def update_quantity(self, item_id: int, quantity: int) -> Cart | None:
        if quantity < 1:
            return self._reject(
                ValidationError("Ilosc musi byc wieksza niz 0", field_errors={"quantity": "min 1"})
            )

        item = self.state.cart.find_item(item_id)
        if item and quantity > item.quantity and quantity > self.max_quantity_for(item):
            return self._reject(
                ValidationError(
                    f"Maksymalnie {self.max_quantity_for(item)} szt. produktu {item.product_name}",
                    field_errors={"quantity": "exceeds stock"},
                )
            )

        if not self.locks.acquire(item_id):
            return self._reject(ItemBusyError(item_id))

        self.state.error = None
        try:
            logger.info(f"Zmiana ilosci pozycji {item_id} na {quantity}")
            cart = self.client.put(
                f"/cart/items/{item_id}",
                Cart,
                json=UpdateQuantityIn(quantity=quantity).to_payload(),
            )
            self._replace(cart)
            return cart
        except StorefrontError as e:
            self._fail(f"Zmiana ilosci pozycji {item_id} nieudana", e)
            return None
        finally:
            self.locks.release(item_id)

    def remove_item(self, item_id: int) -> Cart | None:
        if not self.locks.acquire(item_id):
            return self._reject(ItemBusyError(item_id))

        self.state.error = None
        try:
            logger.info(f"Usuwanie pozycji {item_id} z koszyka")
            cart = self.client.delete(f"/cart/items/{item_id}", Cart)
            self._replace(cart)
            return cart
        except StorefrontError as e:
            # pozycja zostaje, lock zwolniony w finally wiec mozna ponowic
            self._fail(f"Usuniecie pozycji {item_id} nieudane", e)
            return None
        finally:
            self.locks.release(item_id)

    def clear_cart(self) -> Cart | None:
        if not self._cart_guard.acquire(blocking=False):
            return self._reject(CartBusyError("Operacja na koszyku jest w toku"))

        self.state.loading = True
        self.state.error = None
        try:
            cart = self.client.delete("/cart", Cart)
            self._replace(cart)
            return cart
        except StorefrontError as e:
            self._fail("Czyszczenie koszyka nieudane", e)
            return None
        finally:
            self.state.loading = False
            self._cart_guard.release()

    def clear_error(self):
        self.state.error = None

    def reset(self):
        """Wylogowanie - czysci kopie koszyka i wszystkie locki."""
        self.state = CartState()
        self.locks.clear()

    # =====================================================
    # INTERNAL
    # =====================================================
    def _replace(self, cart: Cart):
        self.state.cart = cart
        logger.info(f"Koszyk podmieniony: {cart.total_items} szt., subtotal {cart.subtotal}")

    def _reject(self, error: StorefrontError) -> None:
        logger.warning(f"Operacja odrzucona lokalnie: {error}")
        self.state.error = error
        return None

    def _fail(self, context: str, error: StorefrontError) -> None:
        logger.error(f"{context}: {error}")
        self.state.error = error
