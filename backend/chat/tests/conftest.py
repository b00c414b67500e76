import pytest

from chat.messaging.router import MessageRouter
from chat.session.broker import SessionBroker
from chat.tests.helpers import FIXED_TIMESTAMP, build_components
from chat.tests.mocks import MockConnection


@pytest.fixture
def components():
    return build_components()


@pytest.fixture
async def broker():
    broker = SessionBroker(clock=lambda: FIXED_TIMESTAMP)
    yield broker
    await broker.close()


@pytest.fixture
def router(broker):
    return MessageRouter(broker)


@pytest.fixture
def connect(router):
    """Open a MockConnection through the router and drop the user-count noise."""

    async def _connect(connection_id: str) -> MockConnection:
        connection = MockConnection(connection_id)
        await router.handle_connect(connection)
        connection.clear()
        return connection

    return _connect
