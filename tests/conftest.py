"""
Shared fixtures for the EntDoc test suite.
"""

import pytest

from sdk.entdoc.config import get_settings
from sdk.entdoc.connection import reset_connections


@pytest.fixture(autouse=True)
def clean_state():
    """Fresh connection registry and settings for every test."""
    reset_connections()
    get_settings.cache_clear()
    yield
    reset_connections()
    get_settings.cache_clear()
