# storefront/utils/settings.py
import os
from dotenv import load_dotenv

load_dotenv()

STOREFRONT_API_URL = os.getenv("STOREFRONT_API_URL", "http://localhost:8080/api/v1")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", 10))
HTTP_RETRY_ATTEMPTS = int(os.getenv("HTTP_RETRY_ATTEMPTS", 3))

ADD_TO_CART_FEEDBACK_SECONDS = float(os.getenv("ADD_TO_CART_FEEDBACK_SECONDS", 0.5))
MAX_LINE_QUANTITY = int(os.getenv("MAX_LINE_QUANTITY", 10))

PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "INR")
PAYMENT_KEY_ID = os.getenv("PAYMENT_KEY_ID", "")
STORE_NAME = os.getenv("STORE_NAME", "ToyTown")
PAYMENT_WAIT_SECONDS = float(os.getenv("PAYMENT_WAIT_SECONDS", 15 * 60))

# szacunek na ekranie review, kwote i tak liczy serwer
FREE_SHIPPING_THRESHOLD = int(os.getenv("FREE_SHIPPING_THRESHOLD", 500))
SHIPPING_FEE = int(os.getenv("SHIPPING_FEE", 50))
TAX_RATE = os.getenv("TAX_RATE", "0.18")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
GATEWAY_SECRET = os.getenv("GATEWAY_SECRET", "dev-gateway-secret")
