# storefront/utils/retry.py
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from storefront.domain.errors import NetworkError, ServerError


def http_retry(attempts: int) -> Retrying:
    """Ponawianie tylko idempotentnych zapytan (GET/PUT/DELETE), POST nigdy."""
    return Retrying(
        reraise=True,
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=0.3, min=0.3, max=3),
        retry=retry_if_exception_type((NetworkError, ServerError)),
    )
