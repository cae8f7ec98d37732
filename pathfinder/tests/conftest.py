"""Shared fixtures for pipeline tests."""

from unittest.mock import Mock

import pytest

from pathfinder.common.schemas import default_intent_catalog, default_template_set
from pathfinder.providers import SampleProvider
from pathfinder.tests.helpers import make_config


@pytest.fixture
def config():
    return make_config()


@pytest.fixture
def catalog():
    return default_intent_catalog()


@pytest.fixture
def templates():
    return default_template_set()


@pytest.fixture
def provider():
    return SampleProvider()


@pytest.fixture
def llm():
    client = Mock()
    client.is_available = True
    return client
