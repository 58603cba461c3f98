# storefront/domain/state.py
"""
Stan po stronie klienta. Kazdy store ma swoj kontener, UI tylko go czyta.
Mutacje wylacznie przez metody store'ow.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from storefront.domain.errors import StorefrontError
from storefront.domain.schemas import Cart, Order, OrderLine, ShippingAddress


@dataclass
class CartState:
    cart: Cart = field(default_factory=Cart.empty)
    loading: bool = False  # fetch / clear
    adding: bool = False
    error: Optional[StorefrontError] = None
    add_busy_until: float = 0.0  # monotonic, okno feedbacku po dodaniu


class CheckoutStep(str, Enum):
    ADDRESS = "ADDRESS"
    REVIEW = "REVIEW"
    PAYMENT = "PAYMENT"


class CheckoutPhase(str, Enum):
    IDLE = "IDLE"
    CREATING_ORDER = "CREATING_ORDER"
    AWAITING_PAYMENT = "AWAITING_PAYMENT"
    CONFIRMING = "CONFIRMING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


@dataclass
class CheckoutSession:
    """Efemeryczna sesja checkoutu, niszczona po potwierdzeniu albo wyjsciu."""

    step: CheckoutStep = CheckoutStep.ADDRESS
    selected_address_id: Optional[int] = None
    pending_order: Optional[Order] = None
    cart_snapshot: Tuple[OrderLine, ...] = ()
    phase: CheckoutPhase = CheckoutPhase.IDLE
    error: Optional[StorefrontError] = None
    needs_restart: bool = False  # zamowienie w nieznanym stanie, tylko begin() odblokowuje

    @property
    def in_flight(self) -> bool:
        return self.phase in (
            CheckoutPhase.CREATING_ORDER,
            CheckoutPhase.AWAITING_PAYMENT,
            CheckoutPhase.CONFIRMING,
        )


@dataclass
class AddressState:
    addresses: List[ShippingAddress] = field(default_factory=list)
    loading: bool = False
    error: Optional[StorefrontError] = None


@dataclass
class Pagination:
    page: int = 0
    size: int = 10
    total_pages: int = 0
    total_elements: int = 0


@dataclass
class OrderState:
    history: List[Order] = field(default_factory=list)
    current: Optional[Order] = None
    pagination: Pagination = field(default_factory=Pagination)
    status_filter: Optional[str] = None
    loading: bool = False
    error: Optional[StorefrontError] = None
