"""Shared fixtures."""

import itertools

import pytest

from invoice_graph.core.relationships import IdFactory
from invoice_graph.shared.config import Settings


@pytest.fixture
def settings() -> Settings:
    """Settings with defaults only, ignoring any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def ids() -> IdFactory:
    """Id factory minting 1, 2, 3, ... so ids are predictable."""
    counter = itertools.count(1)
    return IdFactory(lambda: str(next(counter)))
