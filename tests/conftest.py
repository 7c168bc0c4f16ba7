"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Every fixture runs against the in-memory store, so no Redis or database
is needed.
"""
import random
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from mastery_engine.graph import GraphEdge, GraphNode, KnowledgeGraph, StoreGraphSource  # noqa: E402
from mastery_engine.mastery import MasteryPropagator, MasteryStore  # noqa: E402
from mastery_engine.selection import AdaptiveSelector  # noqa: E402
from mastery_engine.service import TestingService  # noqa: E402
from mastery_engine.sessions import TestSessionManager  # noqa: E402
from mastery_engine.storage import InMemoryStore, KeySpace  # noqa: E402
from tests.fakes import FakeClock  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-process API)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def memory_store():
    return InMemoryStore()


@pytest.fixture
def keys():
    return KeySpace("test")


@pytest.fixture
def mastery_store(memory_store, keys, clock):
    return MasteryStore(memory_store, keys, clock=clock)


@pytest.fixture
def session_manager(memory_store, keys, clock):
    return TestSessionManager(memory_store, keys, clock=clock)


@pytest.fixture
def graph_source(memory_store, keys):
    return StoreGraphSource(memory_store, keys)


@pytest.fixture
def networking_graph():
    """
    Small graph:

        ip-addressing --prerequisite of--> subnetting --used in application--> vlsm
        subnetting <--contrasts with-- supernetting
    """
    return KnowledgeGraph(
        nodes=[
            GraphNode(id="ip-addressing", label="IP Addressing"),
            GraphNode(id="subnetting", label="Subnetting"),
            GraphNode(id="vlsm", label="Variable Length Subnet Masks"),
            GraphNode(id="supernetting", label="Supernetting"),
        ],
        edges=[
            GraphEdge(source="ip-addressing", target="subnetting", relation="prerequisite of"),
            GraphEdge(source="subnetting", target="vlsm", relation="used in application"),
            GraphEdge(source="supernetting", target="subnetting", relation="contrasts with"),
        ],
    )


@pytest.fixture
def selector(mastery_store, graph_source):
    return AdaptiveSelector(mastery_store, graph_source, rng=random.Random(7))


@pytest.fixture
def service(mastery_store, session_manager, selector, graph_source):
    return TestingService(
        mastery_store,
        session_manager,
        selector,
        propagator=MasteryPropagator(mastery_store, graph_source),
    )
