# storefront/mock_backend/gateway.py
"""Symulowana bramka platnosci (dev): podpis HMAC i widget bez przegladarki."""
import hashlib
import hmac
import uuid
from concurrent.futures import Future

from storefront.services.payment_widget import (
    CancelToken,
    PaymentFailure,
    PaymentOutcome,
    PaymentRequest,
    PaymentSuccess,
    resolve,
)
from storefront.utils.logging import get_logger
from storefront.utils.settings import GATEWAY_SECRET

logger = get_logger(__name__)


def sign(gateway_order_id: str, payment_id: str, secret: str = GATEWAY_SECRET) -> str:
    message = f"{gateway_order_id}|{payment_id}".encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify(gateway_order_id: str, payment_id: str, signature: str, secret: str = GATEWAY_SECRET) -> bool:
    return hmac.compare_digest(sign(gateway_order_id, payment_id, secret), signature)


class SimulatedPaymentWidget:
    """
    mode:
    -success: podpisane pola platnosci
    -fail: platnosc odrzucona przez bramke
    -dismiss: uzytkownik zamknal okno
    -silent: brak callbacku (porzucona karta), rozstrzyga tylko cancel
    -tampered: sukces ze zlym podpisem
    """

    def __init__(self, mode: str = "success", secret: str = GATEWAY_SECRET):
        self.mode = mode
        self.secret = secret
        self.loaded = False
        self.requests: list[PaymentRequest] = []

    def load(self) -> bool:
        self.loaded = True
        return True

    def open(self, request: PaymentRequest, token: CancelToken) -> "Future[PaymentOutcome]":
        self.requests.append(request)
        future: Future = Future()
        logger.info(f"[GATEWAY] {request.description}: {request.amount} {request.currency} ({self.mode})")

        if self.mode in ("success", "tampered"):
            payment_id = f"pay_{uuid.uuid4().hex[:14]}"
            signature = sign(request.gateway_order_id, payment_id, self.secret)
            if self.mode == "tampered":
                signature = signature[::-1]
            resolve(
                future,
                PaymentSuccess(
                    fields={
                        "gatewayOrderId": request.gateway_order_id,
                        "gatewayPaymentId": payment_id,
                        "gatewaySignature": signature,
                    }
                ),
            )
        elif self.mode == "fail":
            resolve(future, PaymentFailure("Platnosc odrzucona przez bank"))
        elif self.mode == "dismiss":
            resolve(future, PaymentFailure("Platnosc anulowana przez uzytkownika", dismissed=True))

        return future
