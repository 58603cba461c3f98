# storefront/api/client.py
from typing import Callable, List

import requests
from requests import RequestException

from storefront.api.envelope import envelope_from_response, unwrap
from storefront.api.tokens import TokenStore
from storefront.domain.errors import AuthError, NetworkError
from storefront.domain.schemas import RefreshedToken
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry
from storefront.utils.settings import (
    HTTP_RETRY_ATTEMPTS,
    HTTP_TIMEOUT_SECONDS,
    STOREFRONT_API_URL,
)

logger = get_logger(__name__)

IDEMPOTENT_METHODS = frozenset(["GET", "PUT", "DELETE"])


class ApiClient:
    """
    Cienki wrapper na REST API sklepu
    -wstrzykuje bearer token
    -przy 401 raz odswieza access token i powtarza zapytanie
    -normalizuje bledy do taksonomii z domain.errors
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        tokens: TokenStore | None = None,
        session: requests.Session | None = None,
        retry_attempts: int | None = None,
    ):
        self.base_url = (base_url or STOREFRONT_API_URL).rstrip("/")
        self.timeout = timeout or HTTP_TIMEOUT_SECONDS
        self.tokens = tokens or TokenStore()
        self.session = session or requests.Session()
        self.retry_attempts = retry_attempts or HTTP_RETRY_ATTEMPTS
        self._auth_failure_listeners: List[Callable[[AuthError], None]] = []

    def add_auth_failure_listener(self, listener: Callable[[AuthError], None]):
        self._auth_failure_listeners.append(listener)

    # =====================================================
    # PUBLIC
    # =====================================================
    def get(self, path: str, schema=None, params: dict | None = None):
        return self.request("GET", path, schema, params=params)

    def post(self, path: str, schema=None, json: dict | None = None):
        return self.request("POST", path, schema, json=json)

    def put(self, path: str, schema=None, json: dict | None = None):
        return self.request("PUT", path, schema, json=json)

    def delete(self, path: str, schema=None):
        return self.request("DELETE", path, schema)

    def request(self, method: str, path: str, schema=None, json=None, params=None):
        method = method.upper()

        # POST nigdy nie jest powtarzany automatycznie (duplikat zamowienia / platnosci)
        if method not in IDEMPOTENT_METHODS or self.retry_attempts <= 1:
            return self._request_once(method, path, schema, json, params)

        for attempt in http_retry(self.retry_attempts):
            with attempt:
                return self._request_once(method, path, schema, json, params)

    # =====================================================
    # INTERNAL
    # =====================================================
    def _request_once(self, method, path, schema, json, params):
        resp = self._send(method, path, json=json, params=params)

        if resp.status_code == 401 and self.tokens.refresh_token:
            logger.info(f"401 dla {method} {path}, odswiezam access token")
            if self._refresh_access_token():
                resp = self._send(method, path, json=json, params=params)

        envelope = envelope_from_response(resp)
        try:
            return unwrap(envelope, schema)
        except AuthError as e:
            logger.error(f"Autoryzacja odrzucona dla {method} {path} ({e.status}), wylogowanie")
            self._force_logout(e)
            raise

    def _send(self, method: str, path: str, json=None, params=None, auth: bool = True) -> requests.Response:
        url = f"{self.base_url}{path}"
        headers = {"Content-Type": "application/json"}
        if auth and self.tokens.access_token:
            headers["Authorization"] = f"Bearer {self.tokens.access_token}"

        logger.info(f"ApiClient {method} {url}")
        try:
            return self.session.request(
                method,
                url,
                json=json,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except RequestException as e:
            logger.error(f"Brak odpowiedzi z serwera dla {method} {url}: {e}")
            raise NetworkError(f"Brak odpowiedzi z serwera: {e}") from e

    def _refresh_access_token(self) -> bool:
        resp = self._send(
            "POST",
            "/auth/refresh",
            json={"refreshToken": self.tokens.refresh_token},
            auth=False,
        )
        if not resp.ok:
            logger.warning(f"Odswiezenie tokenu nieudane ({resp.status_code})")
            return False

        refreshed = unwrap(envelope_from_response(resp), RefreshedToken)
        self.tokens.save(refreshed.access_token, refreshed.refresh_token)
        return True

    def _force_logout(self, error: AuthError):
        self.tokens.clear()
        for listener in list(self._auth_failure_listeners):
            listener(error)
