import pytest

from aibot.core.config import Settings
from aibot.core.metadata import clear_metadata
from aibot.lifespan.health_registry import get_health_registry


@pytest.fixture(autouse=True)
def clean_process_state():
    get_health_registry().clear()
    clear_metadata()
    yield
    get_health_registry().clear()
    clear_metadata()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        SERVER_SECRET="test-secret",
        SERVICE_ID="ai-bot-test",
        ACCOUNTS_URL="http://accounts.test/",
        SUPPORT_WORKSPACE="support-ws",
        PORT=4321,
        HOST="127.0.0.1",
        FIRST_NAME="Test",
        LAST_NAME="Bot",
        BOT_EMAIL="bot@test.local",
        BOT_PASSWORD="pw",
        LOG_FORMAT="console",
    )


class RecordingSleep:
    """Stands in for asyncio.sleep and remembers the requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
