"""Configuration and logging setup for the RunDeck API client."""

import json
import logging
import os
import pathlib
import sys
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Literal

import pydantic
import structlog

if TYPE_CHECKING:
    from .rundeckapi import RundeckClient

CONFIG_ENV_VAR = "RUNDECK_CLIENT_CONFIG_PATH"
DEFAULT_CONFIG_PATH = "rundeck.json"

# Version of the RunDeck HTTP API spoken by this client.
DEFAULT_API_VERSION = 2

DEFAULT_TIMEOUT = 30.0

DEFAULT_MAX_LOGIN_REDIRECTS = 10

logger = structlog.get_logger(__name__)


class ClientConfig(pydantic.BaseModel):
    """Connection settings for a RunDeck instance.

    Exactly one authentication mode must be configured: either a login and
    a password (session login through the web form), or an auth-token.
    Instances are immutable and safe to share between threads.
    """

    model_config = pydantic.ConfigDict(frozen=True)

    url: str = pydantic.Field(
        description='URL of the RunDeck instance, e.g. "http://localhost:4440"',
    )
    login: str | None = pydantic.Field(None, description="Login (login-based auth)")
    password: pydantic.SecretStr | None = pydantic.Field(
        None,
        description="Password (login-based auth)",
    )
    token: pydantic.SecretStr | None = pydantic.Field(
        None,
        description="Auth-token (token-based auth)",
    )
    api_version: int = pydantic.Field(
        DEFAULT_API_VERSION,
        description="RunDeck API version",
        gt=0,
    )
    timeout: float = pydantic.Field(
        DEFAULT_TIMEOUT,
        description="Request timeout in seconds",
        gt=0,
    )
    verify_ssl: bool = pydantic.Field(
        True,
        description="Verify TLS certificates and hostnames",
    )
    proxy: str | None = pydantic.Field(None, description="Proxy URL for all requests")
    token_as_param: bool = pydantic.Field(
        False,
        description="Send the auth-token as a query parameter instead of a header",
    )
    max_login_redirects: int = pydantic.Field(
        DEFAULT_MAX_LOGIN_REDIRECTS,
        description="Maximum number of redirects followed while logging in",
        ge=0,
    )
    log_level: str = pydantic.Field("INFO", description="Logging level")

    @pydantic.field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        if not value or not value.strip():
            msg = "The RunDeck URL is mandatory"
            raise ValueError(msg)
        return value.strip().rstrip("/")

    @pydantic.field_validator("login", "password", "token", "proxy", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @pydantic.model_validator(mode="after")
    def _check_auth_mode(self) -> "ClientConfig":
        has_credentials = self.login is not None or self.password is not None
        if has_credentials and self.token is not None:
            msg = "Use either login/password or an auth-token, not both"
            raise ValueError(msg)
        if self.token is None:
            if self.login is None:
                msg = "The RunDeck login (or an auth-token) is mandatory"
                raise ValueError(msg)
            if self.password is None:
                msg = "The RunDeck password is mandatory"
                raise ValueError(msg)
        return self

    @property
    def auth_mode(self) -> Literal["login", "token"]:
        return "token" if self.token is not None else "login"

    @property
    def api_url(self) -> str:
        """Base URL of the API endpoint, e.g. "http://localhost:4440/api/2"."""
        return f"{self.url}/api/{self.api_version}"


def read_token_file(token_file: str | pathlib.Path) -> str:
    """Read an auth-token from a file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    token_path = pathlib.Path(token_file)
    if not token_path.exists():
        msg = f"Token file not found: {token_file}"
        raise FileNotFoundError(msg)
    return token_path.read_text().strip()


def configure_logging(
    log_level_name: str,
    logger_factory: Callable[..., Any] | None = None,
) -> None:
    """Configure structlog for logfmt output.

    Args:
        log_level_name: Minimum level, e.g. "INFO".
        logger_factory: Where log lines go. Defaults to stderr, so that
            stdout stays free for the calling application.
    """
    if logger_factory is None:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)
    log_level = getattr(logging, log_level_name.upper(), logging.INFO)
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.EventRenamer("msg"),
            structlog.processors.format_exc_info,
            structlog.processors.LogfmtRenderer(
                key_order=("timestamp", "level", "msg", "method", "url"),
                drop_missing=True,
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def load_config(config_path: str | pathlib.Path) -> ClientConfig:
    """Load configuration from a JSON file.

    A ``token_file`` key is resolved into the ``token`` setting.
    """
    path = pathlib.Path(config_path)
    if not path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with path.open("r") as f:
        data = json.load(f)

    token_file = data.pop("token_file", None)
    if token_file:
        data["token"] = read_token_file(token_file)

    return ClientConfig(**data)


def create_client(config_path: str | None = None) -> "RundeckClient":
    """Create a RunDeck client using a config path or environment default."""
    # Imported here: the client package depends on this module
    from .rundeckapi import RundeckClient

    resolved_path = config_path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)
    config = load_config(resolved_path)
    configure_logging(config.log_level)
    logger.info("Loaded client configuration", url=config.url, auth_mode=config.auth_mode)
    return RundeckClient.from_config(config)
