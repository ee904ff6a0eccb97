"""
Module: settings.py
Description: Application configuration using pydantic-settings.

Configures the delivery core from environment variables (``CLAWTELL_``
prefix) with validation and defaults. Supports .env files for local
development. Each agent account is described by an explicit AccountConfig
that enumerates every recognized option; settings are validated once at
startup.
"""

import re
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BASE_URL = "https://www.clawtell.com"
DEFAULT_WEBHOOK_PATH = "/webhook/clawtell"
DEFAULT_ACCOUNT_ID = "default"


def _validate_webhook_path(v: str) -> str:
    if not v or not v.startswith("/"):
        raise ValueError("webhook_path must start with '/'")
    if "?" in v or "#" in v:
        raise ValueError("webhook_path must not contain a query or fragment")
    return v


def _validate_http_url(v: Optional[str]) -> Optional[str]:
    if v is None or v == "":
        return None
    if not v.startswith(("http://", "https://")):
        raise ValueError("URL must be a valid HTTP/HTTPS URL")
    return v.rstrip("/")


class AccountConfig(BaseModel):
    """
    Configuration for one agent account.

    Attributes:
        account_id: Local identifier for the account
        tell_name: Registered agent name on the relay
        api_key: Bearer credential for the relay
        base_url: Relay base URL (``/api`` is appended per request)
        enabled: Whether the account is started
        webhook_path: HTTP path the webhook receiver answers on
        webhook_secret: Shared HMAC secret (generated when a gateway URL is set)
        gateway_url: Public base URL of this service, used for registration
        poll_mode: ``long_poll`` (relay holds the request) or ``interval``
        poll_interval_seconds: Sleep between interval polls and after failures
        poll_timeout_seconds: Server-side long-poll wait
        poll_limit: Maximum messages per poll
        request_timeout_seconds: Per-attempt timeout for ordinary requests
        max_attempts: Attempts per logical request
        seen_window_size: Ceiling of the Seen-Message Window
        rate_limit_requests: Webhook requests allowed per source per window
        rate_limit_window_seconds: Length of the fixed rate-limit window
        rate_limit_sweep_seconds: Interval between expired bucket sweeps
        max_body_bytes: Largest accepted webhook body
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    account_id: str = Field(default=DEFAULT_ACCOUNT_ID, min_length=1)
    tell_name: Optional[str] = None
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    enabled: bool = True

    webhook_path: str = DEFAULT_WEBHOOK_PATH
    webhook_secret: Optional[str] = None
    gateway_url: Optional[str] = None

    poll_mode: Literal["long_poll", "interval"] = "long_poll"
    poll_interval_seconds: float = Field(default=30.0, gt=0)
    poll_timeout_seconds: int = Field(default=30, ge=1, le=30)
    poll_limit: int = Field(default=50, ge=1, le=100)

    request_timeout_seconds: float = Field(default=30.0, gt=0)
    max_attempts: int = Field(default=3, ge=1, le=10)

    seen_window_size: int = Field(default=1000, ge=1)

    rate_limit_requests: int = Field(default=100, ge=1)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_sweep_seconds: float = Field(default=60.0, gt=0)
    max_body_bytes: int = Field(default=1024 * 1024, ge=1)

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        """Validate the webhook path is an absolute path."""
        return _validate_webhook_path(v)

    @field_validator("base_url", "gateway_url")
    @classmethod
    def validate_urls(cls, v: Optional[str]) -> Optional[str]:
        """Validate URLs and strip trailing slashes."""
        return _validate_http_url(v)

    @field_validator("tell_name")
    @classmethod
    def validate_tell_name(cls, v: Optional[str]) -> Optional[str]:
        """Store the agent name in canonical form."""
        if v is None:
            return None
        from clawtell.utils.names import canonical_name

        return canonical_name(v) or None

    @property
    def configured(self) -> bool:
        """An account needs a credential before it can talk to the relay."""
        return bool(self.api_key)

    @property
    def webhook_url(self) -> Optional[str]:
        """Full public webhook URL, when a gateway URL is configured."""
        if not self.gateway_url:
            return None
        return self.gateway_url.rstrip("/") + self.webhook_path


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CLAWTELL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = Field(default="ClawTell Delivery", description="Application name")
    app_version: str = Field(default="0.3.0", description="Application version")
    log_level: str = Field(default="INFO", description="Logging level")
    host: str = Field(default="127.0.0.1", description="Bind host for the webhook service")
    port: int = Field(default=8000, ge=1, le=65535, description="Bind port")

    # Default account
    api_key: Optional[str] = Field(default=None, description="Relay API key")
    base_url: str = Field(default=DEFAULT_BASE_URL, description="Relay base URL override")
    name: Optional[str] = Field(default=None, description="Registered agent name")
    webhook_path: str = Field(default=DEFAULT_WEBHOOK_PATH, description="Webhook receiver path")
    webhook_secret: Optional[str] = Field(default=None, description="Webhook HMAC secret")
    gateway_url: Optional[str] = Field(default=None, description="Public gateway URL")
    poll_mode: Literal["long_poll", "interval"] = Field(default="long_poll")
    poll_interval_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds between inbox polls and after failed cycles"
    )

    # Additional accounts, keyed by account id (JSON in CLAWTELL_ACCOUNTS)
    accounts: Dict[str, AccountConfig] = Field(default_factory=dict)

    # Application sink: downstream URL that receives inbound messages
    forward_url: Optional[str] = Field(default=None, description="Downstream sink URL")
    forward_timeout_seconds: float = Field(default=10.0, gt=0, le=60)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("webhook_path")
    @classmethod
    def validate_webhook_path(cls, v: str) -> str:
        """Validate the webhook path is an absolute path."""
        return _validate_webhook_path(v)

    @field_validator("base_url", "gateway_url", "forward_url")
    @classmethod
    def validate_urls(cls, v: Optional[str]) -> Optional[str]:
        """Validate URLs and strip trailing slashes."""
        return _validate_http_url(v)

    @model_validator(mode="after")
    def validate_unique_webhook_paths(self) -> "Settings":
        """Account ids are unique and two enabled accounts cannot share a webhook path."""
        seen: Dict[str, str] = {}
        ids = set()
        for account in self.resolve_accounts():
            if account.account_id in ids:
                raise ValueError(f"duplicate account id: {account.account_id}")
            ids.add(account.account_id)
            if not account.enabled:
                continue
            owner = seen.get(account.webhook_path)
            if owner is not None:
                raise ValueError(
                    f"accounts '{owner}' and '{account.account_id}' share "
                    f"webhook_path {account.webhook_path}"
                )
            seen[account.webhook_path] = account.account_id
        return self

    def default_account(self) -> Optional[AccountConfig]:
        """Build the default account from top-level settings, if configured."""
        if not self.api_key:
            return None
        return AccountConfig(
            account_id=DEFAULT_ACCOUNT_ID,
            tell_name=self.name,
            api_key=self.api_key,
            base_url=self.base_url,
            webhook_path=self.webhook_path,
            webhook_secret=self.webhook_secret,
            gateway_url=self.gateway_url,
            poll_mode=self.poll_mode,
            poll_interval_seconds=self.poll_interval_seconds,
        )

    def resolve_accounts(self) -> List[AccountConfig]:
        """
        List every configured account.

        The default account comes first, followed by entries of ``accounts``
        in declaration order. Dictionary keys become account ids.

        Returns:
            Account configurations, including disabled ones
        """
        resolved: List[AccountConfig] = []
        default = self.default_account()
        if default is not None:
            resolved.append(default)
        for account_id, account in self.accounts.items():
            if account.account_id != account_id:
                account = account.model_copy(update={"account_id": account_id})
            resolved.append(account)
        return resolved


# Global settings instance
settings = Settings()
