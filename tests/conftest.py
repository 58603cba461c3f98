# tests/conftest.py
import pytest

from storefront.api.client import ApiClient
from storefront.api.tokens import TokenStore
from tests.helpers import BASE


@pytest.fixture
def tokens():
    return TokenStore(access_token="access-1", refresh_token="refresh-1")


@pytest.fixture
def client(tokens):
    return ApiClient(base_url=BASE, tokens=tokens, retry_attempts=1)
