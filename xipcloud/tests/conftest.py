import pytest

from .fakes import FakeSwift, RecordingTransport, make_client


@pytest.fixture
def swift():
    return FakeSwift()


@pytest.fixture
def transport(swift):
    return RecordingTransport(swift)


@pytest.fixture
def client(transport):
    with make_client(transport) as client:
        client.connect()
        transport.reset()
        yield client
