import pytest

from alertcast.commands.dispatcher import (
    NO_COMMANDS_REPLY,
    CommandDispatcher,
    format_command_list,
    parse_command,
)
from alertcast.commands.table import MediaCommand
from alertcast.core.guards import ChatterRoles
from alertcast.core.rate_limiter import RateLimiter

COMMANDS = {
    "airhorn": MediaCommand("airhorn", "everyone/airhorn.mp3", "everyone", "audio"),
    "clip": MediaCommand("clip", "everyone/clip.mp4", "everyone", "video"),
    "hype": MediaCommand("hype", "subscribers/hype.wav", "subscriber", "audio"),
    "boom": MediaCommand("boom", "vips/boom.ogg", "vip", "audio"),
}


class Replies:
    def __init__(self) -> None:
        self.sent: list[str] = []

    async def __call__(self, text: str) -> None:
        self.sent.append(text)


@pytest.fixture
def dispatcher(recording_hub, clock):
    return CommandDispatcher(
        COMMANDS,
        recording_hub,
        cooldown=15,
        reply_limiter=RateLimiter(rate=1.0, burst=5),
        clock=clock,
    )


@pytest.mark.parametrize(
    "text, expected",
    [
        ("!Airhorn", "airhorn"),
        ("!airhorn please", "airhorn"),
        ("airhorn", None),
        ("!", None),
        ("", None),
    ],
)
def test_parse_command(text, expected):
    assert parse_command(text) == expected


def test_format_command_list():
    assert format_command_list(COMMANDS) == (
        "!airhorn, !clip / Subscribers: !hype / Vips: !boom"
    )
    assert format_command_list({}) == NO_COMMANDS_REPLY


async def test_command_emits_sound_event(dispatcher, recording_hub):
    event = await dispatcher.dispatch("!airhorn", ChatterRoles(), user_name="viewer")

    assert event is not None
    assert recording_hub.events == [event]
    assert event.filename == "everyone/airhorn.mp3"
    assert event.media_type == "audio"


async def test_cooldown_suppresses_repeat_within_window(dispatcher, recording_hub, clock):
    chatter = ChatterRoles()
    assert await dispatcher.dispatch("!airhorn", chatter) is not None
    clock.advance(10)
    assert await dispatcher.dispatch("!airhorn", chatter) is None
    assert await dispatcher.dispatch("!clip", chatter) is not None
    clock.advance(5)
    assert await dispatcher.dispatch("!airhorn", chatter) is not None

    assert len(recording_hub.events) == 3


async def test_permission_denied_does_not_start_cooldown(dispatcher, recording_hub):
    assert await dispatcher.dispatch("!hype", ChatterRoles()) is None
    assert await dispatcher.dispatch("!hype", ChatterRoles(subscriber=True)) is not None
    assert await dispatcher.dispatch("!boom", ChatterRoles(subscriber=True)) is None
    assert await dispatcher.dispatch("!boom", ChatterRoles(moderator=True)) is not None

    assert len(recording_hub.events) == 2


async def test_unknown_command_and_plain_text_are_ignored(dispatcher, recording_hub):
    assert await dispatcher.dispatch("!nope", ChatterRoles()) is None
    assert await dispatcher.dispatch("hello chat", ChatterRoles()) is None
    assert recording_hub.events == []


@pytest.mark.parametrize("text", ["!commands", "!COMANDI"])
async def test_list_command_replies(dispatcher, recording_hub, text):
    replies = Replies()
    await dispatcher.dispatch(text, ChatterRoles(), reply=replies)

    assert replies.sent == ["!airhorn, !clip / Subscribers: !hype / Vips: !boom"]
    assert recording_hub.events == []


async def test_list_command_with_empty_table(recording_hub):
    dispatcher = CommandDispatcher(
        {}, recording_hub, cooldown=15, reply_limiter=RateLimiter(rate=1.0, burst=1)
    )
    replies = Replies()
    await dispatcher.dispatch("!commands", ChatterRoles(), reply=replies)
    assert replies.sent == [NO_COMMANDS_REPLY]


async def test_list_reply_dropped_when_rate_limited(recording_hub):
    limiter = RateLimiter(rate=0.001, burst=1)
    assert limiter.try_acquire()
    dispatcher = CommandDispatcher(
        COMMANDS, recording_hub, cooldown=15, reply_limiter=limiter, reply_timeout=0.01
    )
    replies = Replies()
    await dispatcher.dispatch("!commands", ChatterRoles(), reply=replies)
    assert replies.sent == []
