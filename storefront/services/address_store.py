# storefront/services/address_store.py
from typing import List

import pydantic

from storefront.api.client import ApiClient
from storefront.domain.errors import StorefrontError, ValidationError
from storefront.domain.schemas import AddressInput, ShippingAddress
from storefront.domain.state import AddressState
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class AddressStore:
    """
    CRUD adresow wysylki.
    Po ustawieniu domyslnego adresu lokalna lista jest wyprowadzana z jednej odpowiedzi:
    dokladnie jeden adres ma is_default=True (serwer zrobil to samo po swojej stronie).
    """

    def __init__(self, client: ApiClient):
        self.client = client
        self.state = AddressState()

    @property
    def addresses(self) -> List[ShippingAddress]:
        return self.state.addresses

    def get(self, address_id: int) -> ShippingAddress | None:
        for address in self.state.addresses:
            if address.id == address_id:
                return address
        return None

    def default_address(self) -> ShippingAddress | None:
        for address in self.state.addresses:
            if address.is_default:
                return address
        return None

    def fetch_addresses(self) -> List[ShippingAddress] | None:
        addresses = self._call("Pobranie adresow", self.client.get, "/addresses", List[ShippingAddress])
        if addresses is None:
            return None
        self.state.addresses = list(addresses)
        return self.state.addresses

    def add_address(self, data: AddressInput | dict) -> ShippingAddress | None:
        payload = self._validate(data)
        if payload is None:
            return None

        created = self._call(
            "Dodanie adresu", self.client.post, "/addresses", ShippingAddress, json=payload.to_payload()
        )
        if created is None:
            return None

        self.state.addresses.append(created)
        if created.is_default:
            self._apply_default(created)
        return created

    def update_address(self, address_id: int, data: AddressInput | dict) -> ShippingAddress | None:
        payload = self._validate(data)
        if payload is None:
            return None

        updated = self._call(
            f"Aktualizacja adresu {address_id}",
            self.client.put,
            f"/addresses/{address_id}",
            ShippingAddress,
            json=payload.to_payload(),
        )
        if updated is None:
            return None

        self.state.addresses = [
            updated if a.id == updated.id else a for a in self.state.addresses
        ]
        if updated.is_default:
            self._apply_default(updated)
        return updated

    def delete_address(self, address_id: int) -> bool:
        self.state.loading = True
        self.state.error = None
        try:
            self.client.delete(f"/addresses/{address_id}")
        except StorefrontError as e:
            logger.error(f"Usuniecie adresu {address_id} nieudane: {e}")
            self.state.error = e
            return False
        finally:
            self.state.loading = False

        self.state.addresses = [a for a in self.state.addresses if a.id != address_id]
        return True

    def set_default_address(self, address_id: int) -> ShippingAddress | None:
        updated = self._call(
            f"Ustawienie domyslnego adresu {address_id}",
            self.client.put,
            f"/addresses/{address_id}/default",
            ShippingAddress,
        )
        if updated is None:
            return None

        self._apply_default(updated)
        return self.get(updated.id)

    def clear_error(self):
        self.state.error = None

    def reset(self):
        self.state = AddressState()

    # =====================================================
    # INTERNAL
    # =====================================================
    def _apply_default(self, updated: ShippingAddress):
        addresses = []
        seen = False
        for address in self.state.addresses:
            if address.id == updated.id:
                addresses.append(updated.model_copy(update={"is_default": True}))
                seen = True
            elif address.is_default:
                addresses.append(address.model_copy(update={"is_default": False}))
            else:
                addresses.append(address)
        if not seen:
            addresses.append(updated.model_copy(update={"is_default": True}))
        self.state.addresses = addresses

    def _validate(self, data: AddressInput | dict) -> AddressInput | None:
        if isinstance(data, AddressInput):
            return data
        try:
            return AddressInput.model_validate(data)
        except pydantic.ValidationError as e:
            error = ValidationError.from_pydantic("Niepoprawne dane adresu", e)
            logger.warning(f"Formularz adresu odrzucony: {error.field_errors}")
            self.state.error = error
            return None

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
