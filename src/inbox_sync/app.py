# =============================================================================
# inbox-sync Command Line
# =============================================================================
# A small terminal front end over the library:
#
#   inbox-sync                  sign in, print the inbox, follow live changes
#   inbox-sync --logout         forget the cached token for the account
#   inbox-sync --paths          show where configuration lives
#
# The token is taken from --token, then $INBOX_SYNC_TOKEN, then an
# interactive prompt - but only if none is cached for the account yet.
# =============================================================================

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path

from inbox_sync import __app_name__, __version__
from inbox_sync.api import NotificationsAPI
from inbox_sync.channel import ChannelHandshake, EventNames, SocketIOTransport
from inbox_sync.config import Config, ConfigError, print_paths
from inbox_sync.core import Account, Notification
from inbox_sync.errors import InboxSyncError
from inbox_sync.session import (
    CredentialStore,
    KeyringCredentialStore,
    MemoryCredentialStore,
    SessionManager,
    TokenAcquirer,
)
from inbox_sync.sync import CallbackSubscriber, Inbox, NotificationSync

logger = logging.getLogger(__name__)


# =============================================================================
# Wiring
# =============================================================================

def build_sync(
    config: Config,
    account: Account,
    *,
    store: CredentialStore | None = None,
) -> NotificationSync:
    """
    Assemble session, API client, push channel, and sync core for an account.

    Args:
        config: Loaded configuration.
        account: Account to connect to.
        store: Credential store override (default: chosen by config).

    Returns:
        A NotificationSync ready for start().
    """
    if store is None:
        if config.session.credential_store == "memory":
            store = MemoryCredentialStore()
        else:
            store = KeyringCredentialStore(config.session.keyring_service)

    session = SessionManager(store, account.scope_key)
    api = NotificationsAPI(account.url, session, timeout=config.api.timeout)

    handshake = None
    if config.channel.enabled:
        transport = SocketIOTransport(
            account.url,
            transports=config.channel.transports,
            connect_timeout=config.channel.connect_timeout,
        )
        events = EventNames.legacy() if config.channel.legacy_events else EventNames()
        handshake = ChannelHandshake(transport, session, events=events)

    return NotificationSync(api, session, handshake)


def token_prompt(token: str | None = None) -> TokenAcquirer:
    """Build the acquisition callback: explicit token, env var, then prompt."""

    async def acquire() -> str:
        if token:
            return token
        from_env = os.environ.get("INBOX_SYNC_TOKEN")
        if from_env:
            return from_env
        return await asyncio.to_thread(getpass.getpass, "Authorization token: ")

    return acquire


# =============================================================================
# Commands
# =============================================================================

def _print_new(notification: Notification) -> None:
    print(f"+ {notification}")


def _print_read(notification_id: str) -> None:
    print(f"~ {notification_id} read")


def _print_deleted(notification_id: str) -> None:
    print(f"- {notification_id} deleted")


async def watch(sync: NotificationSync, acquire: TokenAcquirer, timeout: float) -> int:
    """
    Print the inbox, then follow live changes until the session ends.

    Returns:
        Exit code.
    """
    inbox = Inbox()
    invalidated = asyncio.Event()
    sync.session.add_invalidation_listener(lambda reason: invalidated.set())

    sync.subscribe(inbox)
    sync.subscribe(CallbackSubscriber(new=_print_new, read=_print_read, deleted=_print_deleted))

    try:
        snapshot = await sync.start(acquire, timeout=timeout)
    except InboxSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    inbox.hydrate(snapshot)
    for notification in inbox:
        print(f"  {notification}")
    print(f"{len(inbox)} notifications, {inbox.unread_count} unread")

    if sync.handshake is None:
        return 0

    waiters = [
        asyncio.create_task(invalidated.wait()),
        asyncio.create_task(sync.handshake.wait_disconnected()),
    ]
    try:
        await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for waiter in waiters:
            waiter.cancel()

    if invalidated.is_set():
        print("Session ended: authorization was rejected. Run again to sign in.", file=sys.stderr)
    else:
        print("Push channel closed.", file=sys.stderr)
    return 1


async def run(args: argparse.Namespace, config: Config) -> int:
    """Run the selected command against the configured account."""
    try:
        account = config.get_account(args.account)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    sync = build_sync(config, account)
    try:
        if args.logout:
            await sync.logout()
            print(f"Logged out of {account.name}")
            return 0
        return await watch(sync, token_prompt(args.token), config.channel.handshake_timeout)
    finally:
        await sync.close()


# =============================================================================
# CLI Entry Point
# =============================================================================

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="inbox-sync: follow a notification inbox from the terminal",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--account",
        help="Account to use (default: general.default_account)",
    )

    parser.add_argument(
        "--url",
        help="Notifications API URL (overrides the account's configured url)",
    )

    parser.add_argument(
        "--token",
        help="Authorization token to use if none is cached",
    )

    parser.add_argument(
        "--logout",
        action="store_true",
        help="Forget the cached token for the account and exit",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for inbox-sync.

    This function:
        1. Parses command-line arguments
        2. Handles special commands (--paths, --version)
        3. Loads configuration
        4. Runs the selected command

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Handle --paths flag
    if args.paths:
        print_paths()
        return 0

    try:
        config = Config.load(args.config)
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1

    if args.url:
        name = args.account or config.default_account or "default"
        account = config.accounts.setdefault(name, Account(name=name))
        account.url = args.url
        args.account = name

    try:
        return asyncio.run(run(args, config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
