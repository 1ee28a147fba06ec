import pytest

from alertcast.core.guards import (
    TIER_EVERYONE,
    TIER_SUBSCRIBER,
    TIER_VIP,
    ChatterRoles,
    CooldownLedger,
    has_role,
)

TIERS = [TIER_EVERYONE, TIER_SUBSCRIBER, TIER_VIP]


@pytest.mark.parametrize(
    "chatter, allowed",
    [
        (ChatterRoles(), {TIER_EVERYONE}),
        (ChatterRoles(subscriber=True), {TIER_EVERYONE, TIER_SUBSCRIBER}),
        (ChatterRoles(vip=True), set(TIERS)),
        (ChatterRoles(moderator=True), set(TIERS)),
        (ChatterRoles(broadcaster=True), set(TIERS)),
    ],
)
def test_has_role(chatter, allowed):
    for tier in TIERS:
        assert has_role(chatter, tier) == (tier in allowed)


def test_adding_a_role_never_removes_permission():
    base = ChatterRoles(subscriber=True)
    upgraded = ChatterRoles(subscriber=True, vip=True)
    for tier in TIERS:
        if has_role(base, tier):
            assert has_role(upgraded, tier)


def test_cooldown_window(clock):
    ledger = CooldownLedger(15, clock=clock)
    assert not ledger.is_on_cooldown("airhorn")

    ledger.record("airhorn")
    clock.advance(14.9)
    assert ledger.is_on_cooldown("airhorn")
    assert not ledger.is_on_cooldown("other")

    clock.advance(0.1)
    assert not ledger.is_on_cooldown("airhorn")


def test_zero_cooldown_never_blocks(clock):
    ledger = CooldownLedger(0, clock=clock)
    ledger.record("airhorn")
    assert not ledger.is_on_cooldown("airhorn")
