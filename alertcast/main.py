import asyncio
import logging

from dotenv import load_dotenv

from alertcast.commands.dispatcher import CommandDispatcher
from alertcast.commands.table import scan_media_commands
from alertcast.core.config import PROJECT_DIR, RelaySettings, validate_env_vars
from alertcast.core.logging import setup_logging
from alertcast.core.rate_limiter import api_limiter, chat_limiter
from alertcast.core.server import RelayServer, TestAlertServer
from alertcast.hub.hub import Hub
from alertcast.shared.database import DatabaseManager, PoolConfig
from alertcast.shared.repositories import (
    CredentialRepository,
    PollingStateRepository,
    SubscriptionRepository,
)
from alertcast.twitch.api import TwitchAPIClient, TwitchAPIError
from alertcast.twitch.auth import CredentialManager
from alertcast.twitch.chat import TwitchChatHandler
from alertcast.twitch.eventsub import SubscriptionManager
from alertcast.twitch.oauth import TwitchOAuthFlow
from alertcast.twitch.webhook import EventSubWebhook
from alertcast.youtube.api import YouTubeAPIClient
from alertcast.youtube.poller import PollingEngine

LOGGER: logging.Logger = logging.getLogger("Relay")


async def start_twitch(subscriptions: SubscriptionManager) -> bool:
    """Run EventSub setup. Any failure disables Twitch alerts but never the relay."""
    if not subscriptions.channel_logins:
        LOGGER.warning("TWITCH_CHANNELS is empty, Twitch alerts disabled")
        return False
    try:
        await subscriptions.start()
    except TwitchAPIError as e:
        LOGGER.error(f"Twitch EventSub setup failed, Twitch alerts disabled: {e}")
        return False
    except Exception as e:
        LOGGER.exception(
            f"Twitch EventSub setup failed, Twitch alerts disabled: {type(e).__name__}: {e}"
        )
        return False
    return True


async def run_relay(settings: RelaySettings) -> None:
    hub = Hub()
    hub.start()

    db = DatabaseManager(settings.database_url, PoolConfig())
    await db.connect()

    twitch = TwitchAPIClient(
        settings.client_id,
        settings.client_secret,
        redirect_uri=settings.redirect_uri,
        limiter=api_limiter(),
    )
    youtube = None
    if settings.youtube_enabled:
        youtube = YouTubeAPIClient(settings.youtube_api_key, limiter=api_limiter())

    credentials = CredentialManager(CredentialRepository(db.pool), twitch)
    subscriptions = SubscriptionManager(
        twitch,
        SubscriptionRepository(db.pool),
        credentials,
        callback_url=settings.callback_url,
        webhook_secret=settings.webhook_secret,
        channel_logins=settings.channel_logins,
        operator_token=settings.user_access_token,
    )

    dispatcher = CommandDispatcher(
        scan_media_commands(settings.commands_dir),
        hub,
        cooldown=settings.command_cooldown,
        reply_limiter=chat_limiter(),
    )
    chat = TwitchChatHandler(hub, dispatcher, subscriptions.send_chat_message)
    webhook = EventSubWebhook(
        settings.webhook_secret,
        hub,
        on_revocation=subscriptions.handle_revocation,
        on_chat_message=chat.handle,
    )

    poller = None
    if youtube is not None:
        poller = PollingEngine(
            youtube,
            PollingStateRepository(db.pool),
            hub,
            dispatcher,
            channel_id=settings.youtube_channel_id,
            interval=settings.youtube_polling_interval,
        )

    server = RelayServer(
        hub,
        host=settings.host,
        port=settings.port,
        websocket_path=settings.websocket_path,
        webhook=webhook,
        oauth=TwitchOAuthFlow(twitch, credentials),
        subscriptions=subscriptions,
        poller=poller,
        database=db,
    )
    test_server = TestAlertServer(hub, port=settings.test_port) if settings.test_port else None

    tasks: list[asyncio.Task] = []
    try:
        # The callback route must be reachable before Twitch sends verification challenges
        await server.start()
        if test_server is not None:
            await test_server.start()

        await start_twitch(subscriptions)

        if poller is not None:
            tasks.append(asyncio.create_task(poller.run(), name="youtube-poller"))
        else:
            LOGGER.info("YouTube polling disabled (no API key or channel configured)")

        LOGGER.info("Relay is running")
        await asyncio.Event().wait()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await webhook.drain()
        if test_server is not None:
            await test_server.stop()
        await hub.stop()
        await server.stop()
        await twitch.close()
        if youtube is not None:
            await youtube.close()
        await db.disconnect()


def main() -> None:
    load_dotenv(dotenv_path=PROJECT_DIR / ".env")
    # Bootstrap logging from LOG_LEVEL so configuration errors are visible
    setup_logging()
    settings = validate_env_vars()
    setup_logging(settings.log_level)

    try:
        asyncio.run(run_relay(settings))
    except KeyboardInterrupt:
        LOGGER.warning("Shutting down due to KeyboardInterrupt...")


if __name__ == "__main__":
    main()
