import pytest
from fastapi.testclient import TestClient

from simple_mcp_server.dispatch import Dispatcher
from simple_mcp_server.registry import default_registry
from simple_mcp_server.tools import default_handlers
from simple_mcp_server.web_server import create_app

ISO_8601_UTC = r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z"


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry, default_handlers())


@pytest.fixture
def client(dispatcher):
    return TestClient(create_app(dispatcher=dispatcher))


def call_request(name, arguments=None):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"method": "tools/call", "params": params}
