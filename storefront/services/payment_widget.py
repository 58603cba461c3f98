# storefront/services/payment_widget.py
"""
Adapter widgetu bramki platnosci.

Widget to czarna skrzynka: po otwarciu wola dokladnie jeden callback
(sukces z polami platnosci albo porazka / zamkniecie), albo nie wola
niczego, jesli klient porzuci karte. Tutaj callbacki sa zamienione na
Future z dwoma wynikami koncowymi i tokenem anulowania.
"""
import threading
from concurrent.futures import Future, InvalidStateError
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Protocol, Union


@dataclass(frozen=True)
class PaymentRequest:
    key_id: str
    amount: int  # w groszach / paise
    currency: str
    gateway_order_id: str
    store_name: str
    description: str
    prefill: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def to_minor_units(amount: Decimal) -> int:
        return int((Decimal(amount) * 100).to_integral_value())


@dataclass(frozen=True)
class PaymentSuccess:
    """Pola z bramki, klient ich nie weryfikuje - przekazuje do serwera."""

    fields: Dict[str, str]


@dataclass(frozen=True)
class PaymentFailure:
    reason: str
    dismissed: bool = False


PaymentOutcome = Union[PaymentSuccess, PaymentFailure]


class CancelToken:
    def __init__(self):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def on_cancel(self, callback: Callable[[], None]):
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def cancel(self):
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


class PaymentWidget(Protocol):
    def load(self) -> bool:
        """Ladowanie skryptu widgetu. Idempotentne."""
        ...

    def open(self, request: PaymentRequest, token: CancelToken) -> "Future[PaymentOutcome]":
        ...


def resolve(future: Future, outcome: PaymentOutcome) -> bool:
    """Ustawia wynik tylko raz, kolejne callbacki sa ignorowane."""
    if future.done():
        return False
    try:
        future.set_result(outcome)
    except InvalidStateError:  # wyscig dwoch callbackow
        return False
    return True
