import pytest

from core.research_tools import build_tool_registry

from fakes import FakeModelClient, make_toolkit, unreachable


@pytest.fixture
def model():
    return FakeModelClient()


@pytest.fixture
def offline_registry():
    """Registry whose tools cannot reach the network."""
    return build_tool_registry(make_toolkit(unreachable))
