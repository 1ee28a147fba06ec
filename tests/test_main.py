import logging

import pytest

from alertcast import main as main_module
from alertcast.core.config import RelaySettings, get_settings


class FakeSubscriptions:
    def __init__(self, error=None, channel_logins=("streamer",)) -> None:
        self.error = error
        self.channel_logins = list(channel_logins)
        self.started = False

    async def start(self) -> None:
        self.started = True
        if self.error is not None:
            raise self.error


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    root.handlers[:] = handlers
    root.setLevel(level)


async def test_start_twitch_success():
    subscriptions = FakeSubscriptions()
    assert await main_module.start_twitch(subscriptions) is True
    assert subscriptions.started


@pytest.mark.parametrize(
    "error", [ConnectionResetError("db connection dropped"), RuntimeError("pool closed")]
)
async def test_start_twitch_failure_disables_twitch_only(error):
    subscriptions = FakeSubscriptions(error=error)
    assert await main_module.start_twitch(subscriptions) is False
    assert subscriptions.started


async def test_start_twitch_without_channels():
    subscriptions = FakeSubscriptions(channel_logins=())
    assert await main_module.start_twitch(subscriptions) is False
    assert not subscriptions.started


def test_main_applies_configured_log_level(monkeypatch, restore_logging):
    ran = []

    async def fake_run_relay(settings):
        ran.append(settings)

    settings = RelaySettings(_env_file=None, log_level="error")  # type: ignore[call-arg]
    monkeypatch.setattr(main_module, "run_relay", fake_run_relay)
    monkeypatch.setattr(main_module, "validate_env_vars", lambda: settings)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    main_module.main()

    assert ran == [settings]
    assert logging.getLogger().level == logging.ERROR
    assert logging.getLogger("httpx").level == logging.WARNING
