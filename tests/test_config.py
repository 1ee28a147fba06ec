import pytest
from pydantic import ValidationError

from alertcast.core.config import DEFAULT_POLLING_INTERVAL, RelaySettings


def load() -> RelaySettings:
    return RelaySettings(_env_file=None)  # type: ignore[call-arg]


def test_defaults_and_derived_urls():
    settings = load()
    assert settings.base_url == "https://relay.example.com"
    assert settings.callback_url == "https://relay.example.com/webhooks/twitch"
    assert settings.redirect_uri == "https://relay.example.com/auth/twitch/callback"
    assert settings.command_cooldown == 15
    assert settings.websocket_path == "/ws"
    assert not settings.youtube_enabled


def test_channel_logins(monkeypatch):
    monkeypatch.setenv("TWITCH_CHANNELS", " Streamer, friend ,,")
    settings = load()
    assert settings.channel_logins == ["streamer", "friend"]
    assert settings.primary_channel == "streamer"


@pytest.mark.parametrize(
    "raw, expected",
    [("2", DEFAULT_POLLING_INTERVAL), ("61", DEFAULT_POLLING_INTERVAL), ("30", 30), ("5", 5)],
)
def test_polling_interval_clamped(monkeypatch, raw, expected):
    monkeypatch.setenv("YOUTUBE_POLLING_INTERVAL", raw)
    assert load().youtube_polling_interval == expected


def test_non_positive_cooldown_uses_default(monkeypatch):
    monkeypatch.setenv("COMMAND_COOLDOWN", "0")
    assert load().command_cooldown == 15


def test_youtube_enabled_needs_key_and_channel(monkeypatch):
    monkeypatch.setenv("YOUTUBE_API_KEY", "key")
    assert not load().youtube_enabled
    monkeypatch.setenv("YOUTUBE_CHANNEL_ID", "UC123")
    assert load().youtube_enabled


def test_invalid_database_url(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mysql://localhost/relay")
    with pytest.raises(ValidationError):
        load()


def test_missing_webhook_secret(monkeypatch):
    monkeypatch.delenv("WEBHOOK_SECRET")
    with pytest.raises(ValidationError):
        load()
