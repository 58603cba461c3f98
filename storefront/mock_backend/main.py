# storefront/mock_backend/main.py
"""Mock REST API sklepu (dev / testy), wszystko w pamieci."""
import itertools
import uuid
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from storefront.domain.schemas import (
    CANCELLABLE_STATUSES,
    AddItemIn,
    AddressInput,
    ApiModel,
    Cart,
    CartItem,
    CreateOrderIn,
    Customer,
    ForgotPasswordIn,
    LoginIn,
    Order,
    OrderLine,
    OrderPage,
    OrderStatus,
    ProfileUpdateIn,
    RegisterIn,
    ResetPasswordIn,
    ShippingAddress,
    UpdateQuantityIn,
)
from storefront.mock_backend.gateway import verify
from storefront.utils.logging import get_logger
from storefront.utils.settings import FREE_SHIPPING_THRESHOLD, GATEWAY_SECRET, SHIPPING_FEE, TAX_RATE

logger = get_logger(__name__)

PRODUCTS = {
    1: {"id": 1, "name": "Wooden Train Set", "price": Decimal("100.00"), "stock": 12},
    2: {"id": 2, "name": "Plush Elephant", "price": Decimal("349.00"), "stock": 4},
    3: {"id": 3, "name": "Building Blocks 500pc", "price": Decimal("899.00"), "stock": 0},
}

API_PREFIX = "/api/v1"
DEMO_EMAIL = "demo@toytown.test"
DEMO_PASSWORD = "password123"


class RefreshIn(ApiModel):
    refresh_token: str


class PaymentConfirmIn(ApiModel):
    gateway_order_id: str
    gateway_payment_id: str
    gateway_signature: str


class MockDatabase:
    def __init__(self):
        self.ids = itertools.count(1)
        self.customers: Dict[int, dict] = {}
        self.access_tokens: Dict[str, int] = {}
        self.refresh_tokens: Dict[str, int] = {}
        self.reset_tokens: Dict[str, int] = {}
        self.carts: Dict[int, List[dict]] = {}
        self.addresses: Dict[int, Dict[int, ShippingAddress]] = {}
        self.orders: Dict[int, Order] = {}
        self.order_owner: Dict[int, int] = {}
        self.stock = {pid: p["stock"] for pid, p in PRODUCTS.items()}

    def add_customer(self, email: str, password: str, first_name: str, last_name: str, phone=None) -> int:
        customer_id = next(self.ids)
        self.customers[customer_id] = {
            "password": password,
            "customer": Customer(
                id=customer_id,
                email=email,
                first_name=first_name,
                last_name=last_name,
                phone_number=phone,
            ),
        }
        self.carts[customer_id] = []
        self.addresses[customer_id] = {}
        return customer_id

    def issue_tokens(self, customer_id: int) -> dict:
        access = f"at_{uuid.uuid4().hex}"
        refresh = f"rt_{uuid.uuid4().hex}"
        self.access_tokens[access] = customer_id
        self.refresh_tokens[refresh] = customer_id
        return {
            "accessToken": access,
            "refreshToken": refresh,
            "customer": self.customers[customer_id]["customer"].to_payload(),
        }

    def cart_view(self, customer_id: int) -> Cart:
        items = []
        for line in self.carts[customer_id]:
            product = PRODUCTS[line["product_id"]]
            items.append(
                CartItem(
                    id=line["id"],
                    product_id=product["id"],
                    product_name=product["name"],
                    unit_price=product["price"],
                    quantity=line["quantity"],
                    stock_quantity=self.stock[product["id"]],
                )
            )
        return Cart(
            items=tuple(items),
            total_items=sum(i.quantity for i in items),
            subtotal=sum((i.subtotal for i in items), Decimal("0.00")),
        )


def order_total(subtotal: Decimal) -> Decimal:
    shipping = Decimal("0.00") if subtotal >= FREE_SHIPPING_THRESHOLD else Decimal(SHIPPING_FEE)
    tax = (subtotal * Decimal(TAX_RATE)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return subtotal + shipping + tax


def create_app(
    db: MockDatabase | None = None,
    secret: str = GATEWAY_SECRET,
    prefix: str = API_PREFIX,
) -> FastAPI:
    app = FastAPI(title="ToyTown API (dev mock)")
    router = APIRouter(prefix=prefix)
    db = db or MockDatabase()
    app.state.db = db

    if not any(c["customer"].email == DEMO_EMAIL for c in db.customers.values()):
        db.add_customer(DEMO_EMAIL, DEMO_PASSWORD, "Demo", "Customer", "9876543210")

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        errors = {".".join(str(p) for p in e["loc"][1:]): e["msg"] for e in exc.errors()}
        return JSONResponse(status_code=400, content={"message": "Validation failed", "errors": errors})

    def current_customer(authorization: str | None = Header(None)) -> int:
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")
        customer_id = db.access_tokens.get(authorization.removeprefix("Bearer "))
        if customer_id is None:
            raise HTTPException(status_code=401, detail="Invalid or expired token")
        return customer_id

    def own_order(order_id: int, customer_id: int) -> Order:
        order = db.orders.get(order_id)
        if order is None or db.order_owner[order_id] != customer_id:
            raise HTTPException(status_code=404, detail="Order not found")
        return order

    # ---------------- auth ----------------
    @router.post("/auth/login")
    def login(payload: LoginIn):
        for customer_id, record in db.customers.items():
            if record["customer"].email == payload.email and record["password"] == payload.password:
                return db.issue_tokens(customer_id)
        raise HTTPException(status_code=401, detail="Invalid email or password")

    @router.post("/auth/register", status_code=201)
    def register(payload: RegisterIn):
        if any(c["customer"].email == payload.email for c in db.customers.values()):
            raise HTTPException(status_code=409, detail="Email already registered")
        customer_id = db.add_customer(
            payload.email, payload.password, payload.first_name, payload.last_name, payload.phone_number
        )
        return db.issue_tokens(customer_id)

    @router.post("/auth/refresh")
    def refresh(payload: RefreshIn):
        customer_id = db.refresh_tokens.get(payload.refresh_token)
        if customer_id is None:
            raise HTTPException(status_code=401, detail="Invalid refresh token")
        access = f"at_{uuid.uuid4().hex}"
        db.access_tokens[access] = customer_id
        return {"accessToken": access}

    @router.post("/auth/logout")
    def logout(authorization: str | None = Header(None), customer_id: int = Depends(current_customer)):
        db.access_tokens.pop(authorization.removeprefix("Bearer "), None)
        return {"message": "Logged out"}

    @router.get("/auth/profile")
    def profile(customer_id: int = Depends(current_customer)):
        return db.customers[customer_id]["customer"].to_payload()

    @router.put("/auth/profile")
    def update_profile(payload: ProfileUpdateIn, customer_id: int = Depends(current_customer)):
        record = db.customers[customer_id]
        record["customer"] = record["customer"].model_copy(update=payload.model_dump())
        return record["customer"].to_payload()

    @router.post("/auth/forgot-password")
    def forgot_password(payload: ForgotPasswordIn):
        for customer_id, record in db.customers.items():
            if record["customer"].email == payload.email:
                token = f"reset_{uuid.uuid4().hex}"
                db.reset_tokens[token] = customer_id
                logger.info(f"[MOCK] Reset link for {payload.email}: token={token}")
        # ta sama odpowiedz dla nieznanego emaila
        return {"message": "If the email is registered, a reset link has been sent"}

    @router.get("/auth/validate-reset-token")
    def validate_reset_token(token: str):
        return token in db.reset_tokens

    @router.post("/auth/reset-password")
    def reset_password(payload: ResetPasswordIn):
        customer_id = db.reset_tokens.pop(payload.token, None)
        if customer_id is None:
            raise HTTPException(status_code=400, detail="Invalid or expired reset token")
        db.customers[customer_id]["password"] = payload.new_password
        return {"message": "Password has been reset"}

    # ---------------- cart ----------------
    @router.get("/cart")
    def get_cart(customer_id: int = Depends(current_customer)):
        return db.cart_view(customer_id).to_payload()

    @router.post("/cart/items")
    def add_item(payload: AddItemIn, customer_id: int = Depends(current_customer)):
        product = PRODUCTS.get(payload.product_id)
        if product is None:
            raise HTTPException(status_code=404, detail="Product not found")

        lines = db.carts[customer_id]
        line = next((l for l in lines if l["product_id"] == payload.product_id), None)
        wanted = payload.quantity + (line["quantity"] if line else 0)
        if wanted > db.stock[payload.product_id]:
            raise HTTPException(status_code=400, detail=f"Only {db.stock[payload.product_id]} in stock")

        if line:
            line["quantity"] = wanted
        else:
            lines.append({"id": next(db.ids), "product_id": payload.product_id, "quantity": payload.quantity})
        return db.cart_view(customer_id).to_payload()

    @router.put("/cart/items/{item_id}")
    def update_item(item_id: int, payload: UpdateQuantityIn, customer_id: int = Depends(current_customer)):
        line = next((l for l in db.carts[customer_id] if l["id"] == item_id), None)
        if line is None:
            raise HTTPException(status_code=404, detail="Cart item not found")
        if payload.quantity > db.stock[line["product_id"]]:
            raise HTTPException(status_code=400, detail=f"Only {db.stock[line['product_id']]} in stock")
        line["quantity"] = payload.quantity
        return db.cart_view(customer_id).to_payload()

    @router.delete("/cart/items/{item_id}")
    def remove_item(item_id: int, customer_id: int = Depends(current_customer)):
        lines = db.carts[customer_id]
        if not any(l["id"] == item_id for l in lines):
            raise HTTPException(status_code=404, detail="Cart item not found")
        db.carts[customer_id] = [l for l in lines if l["id"] != item_id]
        return db.cart_view(customer_id).to_payload()

    @router.delete("/cart")
    def clear_cart(customer_id: int = Depends(current_customer)):
        db.carts[customer_id] = []
        return db.cart_view(customer_id).to_payload()

    # ---------------- addresses ----------------
    def set_default(customer_id: int, address_id: int):
        book = db.addresses[customer_id]
        for aid, address in book.items():
            book[aid] = address.model_copy(update={"is_default": aid == address_id})

    @router.get("/addresses")
    def list_addresses(customer_id: int = Depends(current_customer)):
        return [a.to_payload() for a in db.addresses[customer_id].values()]

    @router.post("/addresses", status_code=201)
    def add_address(payload: AddressInput, customer_id: int = Depends(current_customer)):
        book = db.addresses[customer_id]
        address = ShippingAddress(id=next(db.ids), **payload.model_dump())
        book[address.id] = address
        if address.is_default or len(book) == 1:
            set_default(customer_id, address.id)
        return book[address.id].to_payload()

    @router.put("/addresses/{address_id}")
    def update_address(address_id: int, payload: AddressInput, customer_id: int = Depends(current_customer)):
        book = db.addresses[customer_id]
        if address_id not in book:
            raise HTTPException(status_code=404, detail="Address not found")
        was_default = book[address_id].is_default
        book[address_id] = ShippingAddress(id=address_id, **payload.model_dump())
        if payload.is_default or was_default:
            set_default(customer_id, address_id)
        return book[address_id].to_payload()

    @router.delete("/addresses/{address_id}")
    def delete_address(address_id: int, customer_id: int = Depends(current_customer)):
        if db.addresses[customer_id].pop(address_id, None) is None:
            raise HTTPException(status_code=404, detail="Address not found")
        return {"message": "Address deleted"}

    @router.put("/addresses/{address_id}/default")
    def default_address(address_id: int, customer_id: int = Depends(current_customer)):
        if address_id not in db.addresses[customer_id]:
            raise HTTPException(status_code=404, detail="Address not found")
        set_default(customer_id, address_id)
        return db.addresses[customer_id][address_id].to_payload()

    # ---------------- orders ----------------
    @router.post("/orders", status_code=201)
    def create_order(payload: CreateOrderIn, customer_id: int = Depends(current_customer)):
        if payload.shipping_address_id not in db.addresses[customer_id]:
            raise HTTPException(status_code=400, detail="Unknown shipping address")
        cart = db.cart_view(customer_id)
        if cart.is_empty:
            raise HTTPException(status_code=400, detail="Cart is empty")

        order_id = next(db.ids)
        order = Order(
            id=order_id,
            order_number=f"ORD-{order_id:06d}",
            status=OrderStatus.PENDING,
            gateway_order_id=f"order_{uuid.uuid4().hex[:14]}",
            total_amount=order_total(cart.subtotal),
            shipping_address_id=payload.shipping_address_id,
            line_items=tuple(OrderLine.from_cart_item(i) for i in cart.items),
            created_at=datetime.now(timezone.utc),
        )
        db.orders[order_id] = order
        db.order_owner[order_id] = customer_id
        logger.info(f"[MOCK] Order {order.order_number} PENDING, total {order.total_amount}")
        return order.to_payload()

    @router.post("/orders/{order_id}/confirm")
    def confirm_order(order_id: int, payload: PaymentConfirmIn, customer_id: int = Depends(current_customer)):
        order = own_order(order_id, customer_id)
        if order.status == OrderStatus.CONFIRMED:
            return order.to_payload()
        if order.status != OrderStatus.PENDING:
            raise HTTPException(status_code=409, detail=f"Order is {order.status.value}")
        if payload.gateway_order_id != order.gateway_order_id or not verify(
            payload.gateway_order_id, payload.gateway_payment_id, payload.gateway_signature, secret
        ):
            raise HTTPException(status_code=400, detail="Payment signature verification failed")

        confirmed = order.model_copy(update={"status": OrderStatus.CONFIRMED})
        db.orders[order_id] = confirmed
        for line in order.line_items:
            db.stock[line.product_id] = max(0, db.stock[line.product_id] - line.quantity)
        db.carts[customer_id] = []
        logger.info(f"[MOCK] Order {order.order_number} CONFIRMED")
        return confirmed.to_payload()

    @router.get("/orders")
    def order_history(
        page: int = Query(0, ge=0),
        size: int = Query(10, ge=1, le=100),
        status: OrderStatus | None = None,
        customer_id: int = Depends(current_customer),
    ):
        orders = [
            o
            for oid, o in sorted(db.orders.items(), reverse=True)
            if db.order_owner[oid] == customer_id and (status is None or o.status == status)
        ]
        chunk = orders[page * size : (page + 1) * size]
        return OrderPage(
            content=tuple(chunk),
            page=page,
            size=size,
            total_pages=(len(orders) + size - 1) // size,
            total_elements=len(orders),
        ).to_payload()

    @router.get("/orders/number/{order_number}")
    def order_by_number(order_number: str, customer_id: int = Depends(current_customer)):
        for order_id, order in db.orders.items():
            if order.order_number == order_number and db.order_owner[order_id] == customer_id:
                return order.to_payload()
        raise HTTPException(status_code=404, detail="Order not found")

    @router.get("/orders/{order_id}")
    def get_order(order_id: int, customer_id: int = Depends(current_customer)):
        return own_order(order_id, customer_id).to_payload()

    @router.post("/orders/{order_id}/cancel")
    def cancel_order(order_id: int, customer_id: int = Depends(current_customer)):
        order = own_order(order_id, customer_id)
        if order.status not in CANCELLABLE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Order in status {order.status.value} cannot be cancelled")
        cancelled = order.model_copy(update={"status": OrderStatus.CANCELLED})
        db.orders[order_id] = cancelled
        return cancelled.to_payload()

    app.include_router(router)
    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8080)
