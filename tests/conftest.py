"""
Shared pytest fixtures.
"""

import pytest

from flightdeck import Engine, Request, Router


@pytest.fixture
def router():
    return Router()


@pytest.fixture
def engine():
    return Engine()


@pytest.fixture
def call(engine):
    """Execute a request against the ``engine`` fixture and return the response."""

    def _call(method, url, **kwargs):
        return engine.execute(Request(method, url, **kwargs))

    return _call
