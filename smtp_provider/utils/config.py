"""Account configuration records and their environment defaults."""

import os
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError, InvalidConfigError, MissingConfigError
from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_PORT = 587
DEFAULT_TIMEOUT = 30.0

# Record key -> environment variable supplying its default.
ACCOUNT_ENV_DEFAULTS = {
    "host": "SMTP_HOST",
    "username": "SMTP_USERNAME",
    "from": "SMTP_FROM",
    "port": "SMTP_PORT",
}
CRAM_MD5_ENV_DEFAULTS = {"secret": "SMTP_CRAM_MD5_SECRET"}
PLAIN_ENV_DEFAULTS = {
    "password": "SMTP_PLAIN_PASSWORD",
    "identity": "SMTP_PLAIN_IDENTITY",
}

AUTH_BLOCKS = ("cram_md5_auth", "plain_auth")


class CramMD5Auth(BaseModel):
    """CRAM-MD5 authentication settings as defined in RFC 2195."""

    model_config = ConfigDict(frozen=True)

    scheme: Literal["cram_md5"] = "cram_md5"
    secret: str = Field(default="", repr=False)


class PlainAuth(BaseModel):
    """PLAIN authentication settings as defined in RFC 4616.

    An empty identity means "authenticate as the username".
    """

    model_config = ConfigDict(frozen=True)

    scheme: Literal["plain"] = "plain"
    password: str = Field(default="", repr=False)
    identity: str = ""


AuthScheme = Annotated[Union[CramMD5Auth, PlainAuth], Field(discriminator="scheme")]


class AccountConfig(BaseModel):
    """Pydantic model for one SMTP account."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str
    port: int = DEFAULT_PORT
    username: str
    from_address: str = Field(default="", alias="from")
    auth: Optional[AuthScheme] = None
    timeout: float = DEFAULT_TIMEOUT

    @property
    def address(self) -> str:
        """The ``host:port`` pair dialled for every send."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_record(
        cls, record: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None
    ) -> "AccountConfig":
        """Build an account from the host's raw provider record.

        Missing top-level keys fall back to their environment variables, and
        so do missing keys inside whichever authentication block is present.
        Naming both authentication blocks is rejected here.
        """
        environ = os.environ if environ is None else environ
        data = dict(record)

        for key, env_name in ACCOUNT_ENV_DEFAULTS.items():
            if data.get(key) is None and environ.get(env_name):
                data[key] = environ[env_name]
        data = {key: value for key, value in data.items() if value is not None}

        for key in ("host", "username"):
            if not data.get(key):
                raise MissingConfigError(
                    f"'{key}' is required (or set {ACCOUNT_ENV_DEFAULTS[key]})",
                    details={"key": key},
                )

        present = [name for name in AUTH_BLOCKS if data.get(name) is not None]
        if len(present) > 1:
            raise ConfigurationError(
                "only one of cram_md5_auth, plain_auth may be specified",
                details={"auth_blocks": present},
            )

        cram = data.pop("cram_md5_auth", None)
        plain = data.pop("plain_auth", None)
        if cram is not None:
            data["auth"] = {
                **_with_env_defaults(_single_block(cram), CRAM_MD5_ENV_DEFAULTS, environ),
                "scheme": "cram_md5",
            }
        elif plain is not None:
            data["auth"] = {
                **_with_env_defaults(_single_block(plain), PLAIN_ENV_DEFAULTS, environ),
                "scheme": "plain",
            }

        try:
            config = cls.model_validate(data)
        except ValidationError as e:
            logger.error(f"Failed to validate provider configuration: {e}")
            raise InvalidConfigError(
                f"Configuration data does not match expected schema: {str(e)}"
            ) from e

        logger.debug(
            "Account configuration loaded",
            extra={
                "host": config.host,
                "port": config.port,
                "auth_scheme": config.auth.scheme if config.auth else None,
            },
        )
        return config


def _single_block(block: Any) -> dict:
    """Accept either a mapping or the one-element list a schema list block yields."""
    if isinstance(block, (list, tuple)):
        if len(block) > 1:
            raise InvalidConfigError("authentication blocks take at most one entry")
        block = block[0] if block else {}
    if not isinstance(block, Mapping):
        raise InvalidConfigError(
            f"authentication block must be a mapping, got {type(block).__name__}"
        )
    return dict(block)


def _with_env_defaults(
    block: dict, defaults: Mapping[str, str], environ: Mapping[str, str]
) -> dict:
    for key, env_name in defaults.items():
        if block.get(key) is None and environ.get(env_name) is not None:
            block[key] = environ[env_name]
    return {key: value for key, value in block.items() if value is not None}


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    log_level: str = "INFO"
    console_level: str = "WARNING"
    log_dir: Optional[str] = None

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        console_level: str = "WARNING",
    ) -> "LoggingConfig":
        """Read logging settings; ``console_level`` applies when the variable is unset."""
        environ = os.environ if environ is None else environ
        return cls(
            log_level=environ.get("SMTP_PROVIDER_LOG_LEVEL", "INFO"),
            console_level=environ.get("SMTP_PROVIDER_CONSOLE_LEVEL", console_level),
            log_dir=environ.get("SMTP_PROVIDER_LOG_DIR") or None,
        )
