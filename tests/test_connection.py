"""
Tests for SMTP connection management

Tests cover:
- Plain, STARTTLS and implicit TLS connections
- Connection errors
- Closing the session
"""
import smtplib
import ssl
from unittest.mock import patch

import pytest

from smtp_provider.core.email.smtp.connection import SMTPConnection
from smtp_provider.utils.config import AccountConfig
from smtp_provider.utils.errors import DeliveryError


def make_account(port=587):
    return AccountConfig(host='smtp.example.com', port=port, username='u', timeout=5.0)


class TestOpen:
    """Tests for opening connections"""

    def test_plain_connection(self, patched_smtp, mock_smtp_server):
        connection = SMTPConnection(make_account())
        server = connection.open()

        assert server is mock_smtp_server
        assert connection.tls is False
        patched_smtp.assert_called_once_with('smtp.example.com', 587, timeout=5.0)
        mock_smtp_server.ehlo_or_helo_if_needed.assert_called_once()
        mock_smtp_server.starttls.assert_not_called()

    def test_starttls_when_offered(self, patched_smtp, mock_smtp_server):
        mock_smtp_server.esmtp_features['starttls'] = ''
        context = ssl.create_default_context()

        connection = SMTPConnection(make_account(), ssl_context=context)
        connection.open()

        mock_smtp_server.starttls.assert_called_once_with(context=context)
        mock_smtp_server.ehlo.assert_called_once()
        assert connection.tls is True

    def test_starttls_failure(self, patched_smtp, mock_smtp_server):
        mock_smtp_server.esmtp_features['starttls'] = ''
        mock_smtp_server.starttls.side_effect = smtplib.SMTPResponseException(454, b'TLS not available')

        connection = SMTPConnection(make_account())
        with pytest.raises(DeliveryError) as excinfo:
            connection.open()

        assert excinfo.value.phase == 'starttls'
        assert excinfo.value.smtp_code == 454
        mock_smtp_server.quit.assert_called_once()

    def test_implicit_tls_port(self):
        context = ssl.create_default_context()
        with patch('smtp_provider.core.email.smtp.connection.smtplib.SMTP_SSL') as mock_ssl:
            mock_ssl.return_value.has_extn.return_value = False

            connection = SMTPConnection(make_account(port=465), ssl_context=context)
            connection.open()

        mock_ssl.assert_called_once_with('smtp.example.com', 465, timeout=5.0, context=context)
        assert connection.tls is True

    def test_bad_greeting(self, patched_smtp):
        patched_smtp.side_effect = smtplib.SMTPConnectError(554, b'No SMTP service here')

        with pytest.raises(DeliveryError) as excinfo:
            SMTPConnection(make_account()).open()

        assert excinfo.value.phase == 'connect'
        assert excinfo.value.smtp_code == 554
        assert excinfo.value.details['server'] == 'smtp.example.com:587'

    def test_timeout(self, patched_smtp):
        patched_smtp.side_effect = TimeoutError('timed out')

        with pytest.raises(DeliveryError, match='timed out'):
            SMTPConnection(make_account()).open()

    def test_server_before_open(self):
        with pytest.raises(DeliveryError, match='not open'):
            SMTPConnection(make_account()).server


class TestClose:
    """Tests for closing connections"""

    def test_context_manager_quits(self, patched_smtp, mock_smtp_server):
        with SMTPConnection(make_account()) as connection:
            assert connection.server is mock_smtp_server

        mock_smtp_server.quit.assert_called_once()

    def test_quit_failure_closes_socket(self, patched_smtp, mock_smtp_server):
        mock_smtp_server.quit.side_effect = smtplib.SMTPServerDisconnected('gone')
        connection = SMTPConnection(make_account())
        connection.open()

        connection.close()

        mock_smtp_server.close.assert_called_once()
        with pytest.raises(DeliveryError):
            connection.server

    def test_close_is_idempotent(self, patched_smtp, mock_smtp_server):
        connection = SMTPConnection(make_account())
        connection.open()

        connection.close()
        connection.close()

        mock_smtp_server.quit.assert_called_once()
