import pytest

from tests.fakes import FakeRpc


@pytest.fixture
def rpc() -> FakeRpc:
    return FakeRpc()
