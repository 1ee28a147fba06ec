from datetime import datetime, timedelta, timezone

import pytest

from alertcast.shared.models.credentials import Credentials
from alertcast.twitch.api import TokenRefreshResult, TwitchAPIError
from alertcast.twitch.auth import (
    OPERATOR_TOKEN_LIFETIME,
    CredentialError,
    CredentialManager,
    OperatorTokenStrategy,
    RefreshCredentialStrategy,
    StoredCredentialStrategy,
    resolve_credentials,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


class FakeAuthAPI:
    def __init__(self, *, refresh=None, validation=None, validate_error=None) -> None:
        self.refresh = refresh or TokenRefreshResult(
            success=True, access_token="fresh", refresh_token="rotated", expires_in=3600
        )
        self.validation = validation
        self.validate_error = validate_error
        self.refreshed_with: list[str] = []

    async def refresh_access_token(self, refresh_token):
        self.refreshed_with.append(refresh_token)
        return self.refresh

    async def validate_token(self, token):
        if self.validate_error is not None:
            raise self.validate_error
        return self.validation


def creds(*, expires_in: int, refresh_token="refresh-1") -> Credentials:
    return Credentials("42", "access-1", refresh_token, NOW + timedelta(seconds=expires_in))


async def test_valid_stored_credentials_are_returned(credential_store):
    await credential_store.upsert_credentials(creds(expires_in=600))
    manager = CredentialManager(credential_store, FakeAuthAPI(), clock=fixed_clock)

    result = await manager.refresh_if_expired("42")

    assert result.access_token == "access-1"
    assert credential_store.writes == 1


async def test_expired_credentials_are_refreshed_and_persisted(credential_store):
    await credential_store.upsert_credentials(creds(expires_in=-1))
    api = FakeAuthAPI()
    manager = CredentialManager(credential_store, api, clock=fixed_clock)

    result = await manager.refresh_if_expired("42")

    assert api.refreshed_with == ["refresh-1"]
    assert result.access_token == "fresh"
    assert result.refresh_token == "rotated"
    assert result.expires_at == NOW + timedelta(seconds=3600)
    assert credential_store.rows["42"] == result


async def test_empty_refresh_token_requires_reauthorization(credential_store):
    await credential_store.upsert_credentials(creds(expires_in=-1, refresh_token=""))
    api = FakeAuthAPI()
    manager = CredentialManager(credential_store, api, clock=fixed_clock)

    with pytest.raises(CredentialError):
        await manager.refresh_if_expired("42")
    assert api.refreshed_with == []


async def test_rejected_refresh_raises(credential_store):
    await credential_store.upsert_credentials(creds(expires_in=-1))
    api = FakeAuthAPI(refresh=TokenRefreshResult(success=False, error="Invalid refresh token"))
    manager = CredentialManager(credential_store, api, clock=fixed_clock)

    with pytest.raises(CredentialError):
        await manager.refresh_if_expired("42")
    assert credential_store.rows["42"].access_token == "access-1"


async def test_missing_credentials_raise(credential_store):
    manager = CredentialManager(credential_store, FakeAuthAPI(), clock=fixed_clock)
    with pytest.raises(CredentialError):
        await manager.refresh_if_expired("42")
    assert await manager.current("42") is None


async def test_strategies_fall_through_to_refresh(credential_store):
    await credential_store.upsert_credentials(creds(expires_in=-1))
    api = FakeAuthAPI()
    manager = CredentialManager(credential_store, api, clock=fixed_clock)
    strategies = [
        StoredCredentialStrategy(credential_store, clock=fixed_clock),
        RefreshCredentialStrategy(manager),
        OperatorTokenStrategy(api, "operator-token", clock=fixed_clock),
    ]

    outcome = await resolve_credentials(strategies, "42")

    assert outcome.ok
    assert outcome.source == "refresh"
    assert outcome.credentials.access_token == "fresh"


async def test_all_strategies_decline(credential_store):
    api = FakeAuthAPI(validation=None)
    manager = CredentialManager(credential_store, api, clock=fixed_clock)
    strategies = [
        StoredCredentialStrategy(credential_store, clock=fixed_clock),
        RefreshCredentialStrategy(manager),
        OperatorTokenStrategy(api, "operator-token", clock=fixed_clock),
    ]

    outcome = await resolve_credentials(strategies, "42")

    assert not outcome.ok
    assert "database:" in outcome.reason
    assert "refresh:" in outcome.reason
    assert "config:" in outcome.reason


async def test_operator_token_validated():
    api = FakeAuthAPI(validation={"user_id": "42", "login": "streamer", "expires_in": 120})
    outcome = await OperatorTokenStrategy(api, "op", clock=fixed_clock).resolve("42")

    assert outcome.ok
    assert outcome.credentials.refresh_token == ""
    assert outcome.credentials.expires_at == NOW + timedelta(seconds=120)


async def test_operator_token_for_another_account_declines():
    api = FakeAuthAPI(validation={"user_id": "7", "login": "someone"})
    outcome = await OperatorTokenStrategy(api, "op", clock=fixed_clock).resolve("42")
    assert not outcome.ok


async def test_operator_token_accepted_on_network_error():
    api = FakeAuthAPI(validate_error=TwitchAPIError(0, "ConnectError"))
    outcome = await OperatorTokenStrategy(api, "op", clock=fixed_clock).resolve("42")

    assert outcome.ok
    assert outcome.credentials.expires_at == NOW + OPERATOR_TOKEN_LIFETIME


async def test_operator_token_declined_on_server_error():
    api = FakeAuthAPI(validate_error=TwitchAPIError(500, "oops"))
    outcome = await OperatorTokenStrategy(api, "op", clock=fixed_clock).resolve("42")
    assert not outcome.ok


async def test_current_falls_back_to_operator_credentials(credential_store):
    manager = CredentialManager(credential_store, FakeAuthAPI(), clock=fixed_clock)
    operator = Credentials("42", "op", "", NOW + timedelta(hours=1))
    manager.use_operator_credentials(operator)

    assert await manager.current("42") == operator
    assert await manager.current("7") is None
