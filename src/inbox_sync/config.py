# =============================================================================
# Configuration Management
# =============================================================================
# Handles loading, saving, and validating inbox-sync configuration.
#
# XDG Base Directory Compliance (https://specifications.freedesktop.org/basedir-spec/):
#   - Config:  $XDG_CONFIG_HOME/inbox-sync/  (default: ~/.config/inbox-sync/)
#
# Files:
#   - config.toml: accounts, API and push-channel settings
#
# Tokens are never written here; they live in the credential store.
#
# Environment overrides (applied after the file is read):
#   - INBOX_SYNC_ACCOUNT: account to use by default
#   - INBOX_SYNC_URL:     API URL of that account
# =============================================================================

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w  # For writing TOML (tomllib is read-only)

from inbox_sync.core import Account, KEYRING_SERVICE


# =============================================================================
# XDG Directory Management
# =============================================================================

# Application identifier used in all XDG paths
APP_NAME = "inbox-sync"


def get_xdg_config_home() -> Path:
    """
    Returns the XDG config directory for inbox-sync.

    Respects $XDG_CONFIG_HOME if set, otherwise uses ~/.config/inbox-sync/
    """
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        base = Path(xdg_config)
    else:
        base = Path.home() / ".config"
    return base / APP_NAME


# =============================================================================
# Configuration Data Structures
# =============================================================================

@dataclass
class ApiConfig:
    """
    Settings for the notifications HTTP API.

    Attributes:
        timeout: Per-request timeout in seconds.
    """
    timeout: float = 30.0


@dataclass
class ChannelConfig:
    """
    Settings for the push channel.

    Attributes:
        enabled: Open a push channel at all. When False only request/response
                 calls are made and no live events arrive.
        legacy_events: Use the older event names ("deny", "push", "patch",
                       "delete") instead of the current ones.
        handshake_timeout: Seconds to wait for "authorized"/"denied".
        connect_timeout: Seconds to wait for the transport to connect.
        transports: Engine.IO transports to allow.
    """
    enabled: bool = True
    legacy_events: bool = False
    handshake_timeout: float = 10.0
    connect_timeout: float = 10.0
    transports: list[str] = field(default_factory=lambda: ["websocket"])


@dataclass
class SessionConfig:
    """
    Settings for token caching.

    Attributes:
        credential_store: "keyring" (persist in the OS keyring) or "memory"
                          (forget the token when the process exits).
        keyring_service: Keyring service name tokens are filed under.
    """
    credential_store: str = "keyring"
    keyring_service: str = KEYRING_SERVICE


@dataclass
class Config:
    """
    Main configuration container for inbox-sync.

    Attributes:
        default_account: Name of the account used when none is given.
        accounts: Configured accounts, keyed by name.
        api: HTTP API settings.
        channel: Push channel settings.
        session: Token caching settings.

    Usage:
        >>> config = Config.load()
        >>> config.get_account().url
        'https://example.com/notifications/'
    """
    # General settings
    default_account: str = ""

    # Account configurations (name -> Account)
    accounts: dict[str, Account] = field(default_factory=dict)

    # Subsystem configurations
    api: ApiConfig = field(default_factory=ApiConfig)
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    # -------------------------------------------------------------------------
    # File Paths
    # -------------------------------------------------------------------------

    @staticmethod
    def config_file_path() -> Path:
        """Returns the path to the main config file."""
        return get_xdg_config_home() / "config.toml"

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    def get_account(self, name: str | None = None) -> Account:
        """
        Look up an account, falling back to the default one.

        Raises:
            ConfigError: If no matching account is configured.
        """
        name = name or self.default_account
        if not name and len(self.accounts) == 1:
            name = next(iter(self.accounts))
        if not name:
            raise ConfigError("No account given and no default_account configured")

        account = self.accounts.get(name)
        if account is None:
            raise ConfigError(f"Unknown account: {name}")
        if not account.url:
            raise ConfigError(f"Account {name} has no url configured")
        return account

    # -------------------------------------------------------------------------
    # Loading and Saving
    # -------------------------------------------------------------------------

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """
        Load configuration from the config file.

        If the config file doesn't exist, returns default configuration
        (still subject to environment overrides).

        Args:
            path: Config file to read (default: config_file_path()).

        Raises:
            ConfigError: If the config file exists but is invalid.
        """
        config_path = path or cls.config_file_path()

        if config_path.exists():
            try:
                with open(config_path, "rb") as f:
                    data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid config file: {e}") from e
            config = cls._from_dict(data)
        else:
            config = cls()

        config._apply_env()
        return config

    def save(self, path: Path | None = None) -> None:
        """
        Save configuration to the config file.

        Creates the config directory if it doesn't exist.
        """
        config_path = path or self.config_file_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "wb") as f:
            tomli_w.dump(self._to_dict(), f)

    def _apply_env(self) -> None:
        """Apply INBOX_SYNC_* environment overrides."""
        account_name = os.environ.get("INBOX_SYNC_ACCOUNT")
        if account_name:
            self.default_account = account_name

        url = os.environ.get("INBOX_SYNC_URL")
        if url:
            name = self.default_account or "default"
            self.default_account = name
            if name in self.accounts:
                self.accounts[name].url = url
            else:
                self.accounts[name] = Account(name=name, url=url)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> "Config":
        """
        Create a Config object from a dictionary (parsed TOML).
        """
        config = cls()

        # General settings
        general = data.get("general", {})
        config.default_account = general.get("default_account", "")

        # API settings
        api = data.get("api", {})
        config.api = ApiConfig(
            timeout=float(api.get("timeout", 30.0)),
        )

        # Channel settings
        channel = data.get("channel", {})
        config.channel = ChannelConfig(
            enabled=channel.get("enabled", True),
            legacy_events=channel.get("legacy_events", False),
            handshake_timeout=float(channel.get("handshake_timeout", 10.0)),
            connect_timeout=float(channel.get("connect_timeout", 10.0)),
            transports=list(channel.get("transports", ["websocket"])),
        )

        # Session settings
        session = data.get("session", {})
        store = session.get("credential_store", "keyring")
        if store not in ("keyring", "memory"):
            raise ConfigError(f"Unknown credential_store: {store!r} (expected 'keyring' or 'memory')")
        config.session = SessionConfig(
            credential_store=store,
            keyring_service=session.get("keyring_service", KEYRING_SERVICE),
        )

        # Accounts - each key under [accounts] is an account name
        accounts_data = data.get("accounts", {})
        for name, acct_data in accounts_data.items():
            config.accounts[name] = Account(
                name=name,
                url=acct_data.get("url", ""),
            )

        return config

    def _to_dict(self) -> dict[str, Any]:
        """
        Convert Config to a dictionary for TOML serialization.
        """
        data: dict[str, Any] = {}

        data["general"] = {
            "default_account": self.default_account,
        }

        data["api"] = {
            "timeout": self.api.timeout,
        }

        data["channel"] = {
            "enabled": self.channel.enabled,
            "legacy_events": self.channel.legacy_events,
            "handshake_timeout": self.channel.handshake_timeout,
            "connect_timeout": self.channel.connect_timeout,
            "transports": list(self.channel.transports),
        }

        data["session"] = {
            "credential_store": self.session.credential_store,
            "keyring_service": self.session.keyring_service,
        }

        data["accounts"] = {
            name: {"url": account.url}
            for name, account in self.accounts.items()
        }

        return data


# =============================================================================
# Exceptions
# =============================================================================

class ConfigError(Exception):
    """Raised when there's an error loading or parsing configuration."""
    pass


# =============================================================================
# Utility Functions
# =============================================================================

def print_paths() -> None:
    """
    Print config paths for debugging.
    Useful for users wondering where their config is stored.
    """
    print(f"Config:       {get_xdg_config_home()}")
    print(f"Config file:  {Config.config_file_path()}")
