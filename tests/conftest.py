import inspect

import pytest

from nodeflow.core.cache import CacheService
from nodeflow.core.config import Settings
from nodeflow.services.execution import RetryPolicy


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class InlineStep:
    """Step capability that runs each function once, inline."""

    def __init__(self):
        self.names = []

    async def run(self, name, fn):
        self.names.append(name)
        result = fn()
        if inspect.isawaitable(result):
            result = await result
        return result

    async def sleep(self, name, duration):
        self.names.append(name)


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def cache(settings):
    return CacheService(settings)


@pytest.fixture
def retry_policy():
    return RetryPolicy(max_attempts=3, initial_delay=0.0, max_delay=0.0)


@pytest.fixture
def sleeps():
    return RecordingSleep()


@pytest.fixture
def inline_step():
    return InlineStep()
