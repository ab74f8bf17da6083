import pytest


class MockConfigurationManager:
    """Dot-notation `get` over a plain dict, standing in for ConfigurationManager."""
    def __init__(self, settings=None):
        self.settings = settings if settings is not None else {}

    def get(self, key, default=None):
        try:
            value = self.settings
            for k_part in key.split('.'):
                value = value[k_part]
            return value
        except (KeyError, TypeError):
            return default


class FakeClock:
    """Manually advanced replacement for time.monotonic."""
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def make_config():
    return MockConfigurationManager


@pytest.fixture
def clock():
    return FakeClock()
