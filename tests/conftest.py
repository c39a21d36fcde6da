"""
Pytest configuration and fixtures.

Sessions are built against a LangGraph InMemoryStore and a scripted content
generator, so nothing here touches the network.
"""

import pytest
from langgraph.store.memory import InMemoryStore

from flow.session import ModuleSession
from modules.model import MODEL_MODULE
from modules.offer import OFFER_MODULE
from tests.fakes import FakeGenerator
from workers.auth import AuthSession
from workers.persistence import PersistenceGateway


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def auth():
    return AuthSession("user-1")


@pytest.fixture
def gateway(auth, store):
    return PersistenceGateway(auth, store)


@pytest.fixture
def generator():
    return FakeGenerator(result=[])


@pytest.fixture
def offer_session(gateway, auth, generator):
    return ModuleSession(OFFER_MODULE, gateway, auth, generator)


@pytest.fixture
def model_session(gateway, auth, generator):
    return ModuleSession(MODEL_MODULE, gateway, auth, generator)
