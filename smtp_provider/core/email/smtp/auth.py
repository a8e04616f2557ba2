"""SMTP session authenticator.

Turns the account's authentication settings into an immutable strategy the
protocol layer hands to ``smtplib.SMTP.auth``. Strategies are built once per
account and shared read-only by every send made with that account.
"""

import hmac
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from smtp_provider.utils.config import AccountConfig, CramMD5Auth, PlainAuth
from smtp_provider.utils.errors import AuthenticationError, ConfigurationError
from smtp_provider.utils.logging import get_logger

from .constants import LOCALHOST_NAMES, AuthMechanism

logger = get_logger(__name__)


@dataclass(frozen=True)
class AuthStrategy(ABC):
    """Base class for SASL strategies.

    Instances are callables with the ``authobject`` signature smtplib
    expects: called with no argument for the initial response (``None``
    means "send no initial response") and with the decoded challenge bytes
    for every 334 reply.
    """

    username: str

    @property
    @abstractmethod
    def mechanism(self) -> AuthMechanism:
        """SASL mechanism name advertised in ``AUTH``."""

    def check_server(self, server_name: str, tls: bool) -> None:
        """Refuse to authenticate against an unsuitable server."""

    @abstractmethod
    def respond(self, challenge: Optional[bytes] = None) -> Optional[str]:
        """Produce the client response for ``challenge``."""

    def __call__(self, challenge: Optional[bytes] = None) -> Optional[str]:
        return self.respond(challenge)


@dataclass(frozen=True)
class CramMD5Strategy(AuthStrategy):
    """Shared-secret challenge-response (RFC 2195)."""

    secret: str = field(default="", repr=False)

    @property
    def mechanism(self) -> AuthMechanism:
        return AuthMechanism.CRAM_MD5

    def respond(self, challenge: Optional[bytes] = None) -> Optional[str]:
        if challenge is None:
            return None
        digest = hmac.new(self.secret.encode("utf-8"), challenge, "md5").hexdigest()
        return f"{self.username} {digest}"


@dataclass(frozen=True)
class PlainStrategy(AuthStrategy):
    """Plaintext password + identity (RFC 4616), bound to one host.

    Credentials go out only to the bound host, and only over TLS unless the
    server is on the loopback interface.
    """

    password: str = field(default="", repr=False)
    identity: str = ""
    host: str = ""

    @property
    def mechanism(self) -> AuthMechanism:
        return AuthMechanism.PLAIN

    def check_server(self, server_name: str, tls: bool) -> None:
        if not tls and server_name not in LOCALHOST_NAMES:
            raise AuthenticationError(
                "unencrypted connection",
                details={"server": server_name},
            )
        if server_name != self.host:
            raise AuthenticationError(
                "wrong host name",
                details={"server": server_name, "expected": self.host},
            )

    def respond(self, challenge: Optional[bytes] = None) -> Optional[str]:
        return f"{self.identity}\0{self.username}\0{self.password}"


def build_auth(config: AccountConfig) -> AuthStrategy:
    """Build the authentication strategy for ``config``.

    Raises:
        ConfigurationError: no scheme is selected or its credential is empty
    """
    auth = config.auth

    if isinstance(auth, CramMD5Auth):
        if not auth.secret:
            raise ConfigurationError(
                "cram_md5_auth requires a non-empty secret",
                details={"scheme": auth.scheme},
            )
        strategy: AuthStrategy = CramMD5Strategy(
            username=config.username, secret=auth.secret
        )

    elif isinstance(auth, PlainAuth):
        if not auth.password:
            raise ConfigurationError(
                "plain_auth requires a non-empty password",
                details={"scheme": auth.scheme},
            )
        strategy = PlainStrategy(
            username=config.username,
            password=auth.password,
            identity=auth.identity,
            host=config.host,
        )

    else:
        raise ConfigurationError("no authentication method specified")

    logger.debug(
        "Authentication strategy built",
        extra={"mechanism": strategy.mechanism.value, "host": config.host},
    )
    return strategy
