import pytest

from core.api.kv_gateway import InMemoryKVGateway

from .fixtures import make_engine, make_paths


@pytest.fixture
def gateway():
    return InMemoryKVGateway()


@pytest.fixture
def paths():
    return make_paths()


@pytest.fixture
def engine(gateway):
    return make_engine(gateway)
