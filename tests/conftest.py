"""
Shared test fixtures and configuration for pytest
"""
import logging
import os
import socket
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from aiosmtpd.controller import Controller
from aiosmtpd.smtp import AuthResult, LoginPassword

from smtp_provider.core.models import MessageRequest
from smtp_provider.utils.config import AccountConfig, PlainAuth
from smtp_provider.utils.logging import ROOT_LOGGER_NAME

SMTP_ENV_VARS = [
    'SMTP_HOST', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_FROM',
    'SMTP_CRAM_MD5_SECRET', 'SMTP_PLAIN_PASSWORD', 'SMTP_PLAIN_IDENTITY',
    'SMTP_PROVIDER_LOG_LEVEL', 'SMTP_PROVIDER_CONSOLE_LEVEL', 'SMTP_PROVIDER_LOG_DIR',
]


@pytest.fixture(autouse=True)
def clear_env_vars():
    """Clear SMTP environment variables before each test"""
    original = {}
    for var in SMTP_ENV_VARS:
        original[var] = os.environ.get(var)
        if var in os.environ:
            del os.environ[var]

    yield

    for var, value in original.items():
        if value is not None:
            os.environ[var] = value
        elif var in os.environ:
            del os.environ[var]


@pytest.fixture
def reset_root_logger():
    """Close any handlers a test installed on the package logger"""
    yield
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()


@pytest.fixture
def account():
    """Plain-auth account on localhost"""
    return AccountConfig(
        host='localhost',
        port=587,
        username='test',
        auth=PlainAuth(password='test'),
    )


@pytest.fixture
def message():
    """Minimal sendable message"""
    return MessageRequest(subject='Hello World!', body='Boom', to={'devnull@example.com'})


@pytest.fixture
def mock_smtp_server():
    """Mock smtplib session that accepts everything"""
    server = MagicMock()
    server.does_esmtp = True
    server.esmtp_features = {'auth': 'PLAIN LOGIN CRAM-MD5'}
    server.has_extn.side_effect = lambda name: name.lower() in server.esmtp_features
    server.auth.return_value = (235, b'2.7.0 Authentication successful')
    server.mail.return_value = (250, b'2.1.0 OK')
    server.rcpt.return_value = (250, b'2.1.5 OK')
    server.docmd.return_value = (354, b'End data with <CR><LF>.<CR><LF>')
    server.getreply.return_value = (250, b'2.0.0 Queued')
    server.quit.return_value = (221, b'Bye')
    return server


@pytest.fixture
def patched_smtp(mock_smtp_server):
    """Patch smtplib.SMTP so connections get ``mock_smtp_server``"""
    with patch('smtp_provider.core.email.smtp.connection.smtplib.SMTP') as mock_smtp:
        mock_smtp.return_value = mock_smtp_server
        yield mock_smtp


## Real SMTP server


def get_free_port() -> int:
    """Find a free port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        port = s.getsockname()[1]
    return port


class CapturingHandler:
    """SMTP handler that captures received messages."""

    def __init__(self):
        self.messages: list[dict[str, Any]] = []
        self.rejected_recipients: set[str] = set()

    async def handle_RCPT(self, server, session, envelope, address, rcpt_options):
        if address in self.rejected_recipients:
            return "550 5.1.1 Mailbox not found"
        envelope.rcpt_tos.append(address)
        return "250 OK"

    async def handle_DATA(self, server, session, envelope):
        self.messages.append({
            "from": envelope.mail_from,
            "to": list(envelope.rcpt_tos),
            "content": envelope.content,
        })
        return "250 Message accepted for delivery"


class PasswordAuthenticator:
    """Accepts exactly one login/password pair."""

    def __init__(self, login: str, password: str):
        self.login = login.encode()
        self.password = password.encode()

    def __call__(self, server, session, envelope, mechanism, auth_data):
        if not isinstance(auth_data, LoginPassword):
            return AuthResult(success=False, handled=False)
        ok = auth_data.login == self.login and auth_data.password == self.password
        return AuthResult(success=ok, handled=False)


@pytest.fixture
def smtp_handler():
    """Create a fresh SMTP handler."""
    return CapturingHandler()


@pytest.fixture
def smtp_server(smtp_handler):
    """Start a local SMTP server advertising AUTH PLAIN without TLS."""
    port = get_free_port()
    controller = Controller(
        smtp_handler,
        hostname="127.0.0.1",
        port=port,
        authenticator=PasswordAuthenticator("test@example.com", "s3cret"),
        auth_require_tls=False,
    )
    controller.start()
    yield controller, port
    controller.stop()


@pytest.fixture
def live_account(smtp_server):
    """Account pointing at the local SMTP server."""
    _, port = smtp_server
    return AccountConfig(
        host="127.0.0.1",
        port=port,
        username="test@example.com",
        auth=PlainAuth(password="s3cret"),
        timeout=10.0,
    )


@pytest.fixture
def unused_port():
    """A localhost port with nothing listening on it."""
    return get_free_port()
