# storefront/domain/schemas.py
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Wspolna konfiguracja: camelCase na drucie, snake_case w Pythonie, obiekty niemutowalne."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# =====================================================
# CART
# =====================================================
class CartItem(ApiModel):
    """Pozycja koszyka w odpowiedzi serwera."""

    id: int
    product_id: int
    product_name: str
    unit_price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)
    stock_quantity: int = Field(..., ge=0)  # snapshot, wymagany: bez niego nie ma limitu ilosci

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


class Cart(ApiModel):
    """Koszyk w calosci, zawsze podmieniany odpowiedzia serwera."""

    items: Tuple[CartItem, ...] = ()
    total_items: int = Field(0, ge=0)
    subtotal: Decimal = Decimal("0.00")

    @classmethod
    def empty(cls) -> "Cart":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find_item(self, item_id: int) -> CartItem | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def contains_product(self, product_id: int) -> bool:
        return any(i.product_id == product_id for i in self.items)


class AddItemIn(ApiModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(..., ge=1)


class UpdateQuantityIn(ApiModel):
    quantity: int = Field(..., ge=1)


# =====================================================
# ORDERS
# =====================================================
class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


CANCELLABLE_STATUSES = frozenset(
    [OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING]
)


class OrderLine(ApiModel):
    """Zamrozona kopia pozycji koszyka z chwili tworzenia zamowienia."""

    product_id: int
    product_name: str
    unit_price: Decimal
    quantity: int

    @computed_field
    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @classmethod
    def from_cart_item(cls, item: CartItem) -> "OrderLine":
        return cls(
            product_id=item.product_id,
            product_name=item.product_name,
            unit_price=item.unit_price,
            quantity=item.quantity,
        )


class Order(ApiModel):
    id: int
    order_number: str
    status: OrderStatus
    gateway_order_id: str | None = None
    total_amount: Decimal = Field(..., ge=0)
    shipping_address_id: int | None = None
    line_items: Tuple[OrderLine, ...] = ()
    created_at: datetime | None = None

    @property
    def is_cancellable(self) -> bool:
        return self.status in CANCELLABLE_STATUSES


class CreateOrderIn(ApiModel):
    shipping_address_id: int = Field(..., gt=0)


class OrderPage(ApiModel):
    """Strona historii zamowien."""

    content: Tuple[Order, ...] = ()
    page: int = 0
    size: int = 10
    total_pages: int = 0
    total_elements: int = 0


# =====================================================
# ADDRESSES
# =====================================================
class AddressInput(ApiModel):
    """Dane formularza adresu - walidacja po stronie klienta przed wyslaniem."""

    recipient_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str = Field(..., pattern=r"^\+?\d{10,15}$")
    address_line1: str = Field(..., min_length=1, max_length=255)
    address_line2: str | None = Field(None, max_length=255)
    city: str = Field(..., min_length=1, max_length=100)
    state: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., pattern=r"^\d{6}$")
    country: str = "India"
    is_default: bool = False


class ShippingAddress(ApiModel):
    id: int
    recipient_name: str
    phone_number: str
    address_line1: str
    address_line2: str | None = None
    city: str
    state: str
    postal_code: str
    country: str = "India"
    is_default: bool = False


# =====================================================
# AUTH
# =====================================================
class Customer(ApiModel):
    id: int
    email: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class LoginIn(ApiModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=1)


class RegisterIn(ApiModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=8)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: str | None = None


class AuthTokens(ApiModel):
    access_token: str
    refresh_token: str
    customer: Customer


class RefreshedToken(ApiModel):
    access_token: str
    refresh_token: str | None = None


class ProfileUpdateIn(ApiModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    phone_number: str | None = Field(None, pattern=r"^\+?\d{10,15}$")


class ForgotPasswordIn(ApiModel):
    email: str = Field(..., min_length=3)


class ResetPasswordIn(ApiModel):
    """Nowe haslo: min. 8 znakow, litery i cyfry."""

    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)

    @field_validator("new_password")
    @classmethod
    def letters_and_digits(cls, value: str) -> str:
        if not any(c.isalpha() for c in value) or not any(c.isdigit() for c in value):
            raise ValueError("Haslo musi zawierac litery i cyfry")
        return value


class MessageOut(ApiModel):
    message: str
