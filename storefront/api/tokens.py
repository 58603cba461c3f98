# storefront/api/tokens.py
from dataclasses import dataclass

from storefront.domain.schemas import Customer


@dataclass
class TokenStore:
    """Tokeny JWT i profil zalogowanego klienta, trzymane w pamieci."""

    access_token: str | None = None
    refresh_token: str | None = None
    customer: Customer | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.access_token is not None

    def save(self, access_token: str, refresh_token: str | None = None, customer: Customer | None = None):
        self.access_token = access_token
        if refresh_token is not None:
            self.refresh_token = refresh_token
        if customer is not None:
            self.customer = customer

    def clear(self):
        self.access_token = None
        self.refresh_token = None
        self.customer = None
