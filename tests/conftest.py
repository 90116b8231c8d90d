"""Shared pytest fixtures for form relay tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from formrelay.config import RelayConfig  # noqa: E402

from .helpers import make_config  # noqa: E402


@pytest.fixture
def config() -> RelayConfig:
    return make_config()
