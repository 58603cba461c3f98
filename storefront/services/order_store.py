# storefront/services/order_store.py
from storefront.api.client import ApiClient
from storefront.domain.errors import StorefrontError, ValidationError
from storefront.domain.schemas import Order, OrderPage, OrderStatus
from storefront.domain.state import OrderState, Pagination
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class OrderStore:
    """Historia zamowien i szczegoly zamowienia (query) + anulowanie (command)."""

    def __init__(self, client: ApiClient):
        self.client = client
        self.state = OrderState()

    #query
    @property
    def history(self):
        return self.state.history

    @property
    def current(self) -> Order | None:
        return self.state.current

    def find(self, order_id: int) -> Order | None:
        if self.state.current and self.state.current.id == order_id:
            return self.state.current
        for order in self.state.history:
            if order.id == order_id:
                return order
        return None

    def fetch_history(self, page: int = 0, size: int = 10, status: OrderStatus | str | None = None):
        params = {"page": page, "size": size}
        if status is not None:
            try:
                params["status"] = OrderStatus(status).value
            except ValueError:
                error = ValidationError(f"Nieznany status zamowienia: {status}", field_errors={"status": "invalid"})
                logger.warning(str(error))
                self.state.error = error
                return None

        result = self._call("Pobranie historii zamowien", self.client.get, "/orders", OrderPage, params=params)
        if result is None:
            return None

        self.state.history = list(result.content)
        self.state.status_filter = params.get("status")
        self.state.pagination = Pagination(
            page=result.page,
            size=result.size,
            total_pages=result.total_pages,
            total_elements=result.total_elements,
        )
        return self.state.history

    def fetch_order(self, order_id: int) -> Order | None:
        order = self._call(f"Pobranie zamowienia {order_id}", self.client.get, f"/orders/{order_id}", Order)
        if order is not None:
            self._store(order)
        return order

    def fetch_by_number(self, order_number: str) -> Order | None:
        order = self._call(
            f"Pobranie zamowienia {order_number}",
            self.client.get,
            f"/orders/number/{order_number}",
            Order,
        )
        if order is not None:
            self._store(order)
        return order

    #commands
    def cancel_order(self, order_id: int) -> Order | None:
        known = self.find(order_id)
        if known is not None and not known.is_cancellable:
            error = ValidationError(
                f"Zamowienia {known.order_number} w statusie {known.status.value} nie mozna anulowac"
            )
            logger.warning(str(error))
            self.state.error = error
            return None

        order = self._call(
            f"Anulowanie zamowienia {order_id}", self.client.post, f"/orders/{order_id}/cancel", Order
        )
        if order is not None:
            self._store(order)
        return order

    def record_confirmed(self, order: Order):
        """Potwierdzone zamowienie z checkoutu trafia na poczatek historii."""
        self.state.current = order
        self.state.history = [order] + [o for o in self.state.history if o.id != order.id]

    def clear_error(self):
        self.state.error = None

    def reset(self):
        self.state = OrderState()

    def _store(self, order: Order):
        self.state.current = order
        self.state.history = [order if o.id == order.id else o for o in self.state.history]

    def _call(self, context: str, method, *args, **kwargs):
        self.state.loading = True
        self.state.error = None
        try:
            return method(*args, **kwargs)
        except StorefrontError as e:
            logger.error(f"{context} nieudane: {e}")
            self.state.error = e
            return None
        finally:
            self.state.loading = False
