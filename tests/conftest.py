"""Shared fixtures: every test starts with an empty proxy cache."""

import pytest

from proxygen.cache import clear_cache
from proxygen.config import reset_config


@pytest.fixture(autouse=True)
def fresh_proxies():
    clear_cache()
    reset_config()
    yield
    clear_cache()
    reset_config()
