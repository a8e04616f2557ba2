"""SMTP protocol implementation.

Components, leaf-first:
- build_auth / AuthStrategy: session authenticator for CRAM-MD5 or PLAIN
- compose: message document, DATA framing and content fingerprint
- SMTPConnection: connection lifecycle (connect, EHLO, STARTTLS, QUIT)
- SMTPProtocol: AUTH, MAIL, RCPT and DATA commands
- SMTPClient: one full delivery per message

Usage
-----

    >>> from smtp_provider.core.email.smtp import SMTPClient, build_auth
    >>> from smtp_provider.core.models import MessageRequest
    >>> from smtp_provider.utils.config import AccountConfig
    >>>
    >>> account = AccountConfig.from_record(
    ...     {"host": "localhost", "username": "test", "plain_auth": {"password": "test"}}
    ... )
    >>> client = SMTPClient(account, build_auth(account))
    >>> outcome = client.send(
    ...     MessageRequest(subject="Hello", body="Boom", to={"devnull@example.com"})
    ... )
    >>> outcome.id
    '1700000000000000000-5f0c...'
"""

from .auth import AuthStrategy, CramMD5Strategy, PlainStrategy, build_auth
from .client import DeliveryTransaction, SMTPClient, send_message
from .composer import ComposedMessage, compose, resolve_sender
from .connection import SMTPConnection
from .protocol import SMTPProtocol

__all__ = [
    "AuthStrategy",
    "ComposedMessage",
    "CramMD5Strategy",
    "DeliveryTransaction",
    "PlainStrategy",
    "SMTPClient",
    "SMTPConnection",
    "SMTPProtocol",
    "build_auth",
    "compose",
    "resolve_sender",
    "send_message",
]
