"""
Tests for account configuration

Tests cover:
- Loading provider records
- Environment variable defaults
- Authentication block validation
- Message record validation
"""
import pytest
from pydantic import ValidationError

from smtp_provider.core.models import MessageRequest
from smtp_provider.utils.config import AccountConfig, CramMD5Auth, LoggingConfig, PlainAuth
from smtp_provider.utils.errors import (
    ConfigurationError,
    InvalidConfigError,
    MessageValidationError,
    MissingConfigError,
)


class TestAccountRecord:
    """Tests for AccountConfig.from_record"""

    def test_defaults(self):
        config = AccountConfig.from_record(
            {'host': 'localhost', 'username': 'test', 'plain_auth': {'password': 'test'}},
            environ={},
        )

        assert config.port == 587
        assert config.from_address == ''
        assert config.timeout == 30.0
        assert config.address == 'localhost:587'
        assert config.auth == PlainAuth(password='test', identity='')

    def test_cram_md5_block(self):
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u', 'cram_md5_auth': {'secret': 's'}}, environ={}
        )
        assert config.auth == CramMD5Auth(secret='s')

    def test_list_shaped_block(self):
        """A one-element list block, as schema list blocks are reported, is accepted"""
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u', 'plain_auth': [{'password': 'p'}]}, environ={}
        )
        assert config.auth.password == 'p'

    def test_from_key(self):
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u', 'from': 'ops@example.com', 'plain_auth': {'password': 'p'}},
            environ={},
        )
        assert config.from_address == 'ops@example.com'

    def test_both_schemes_rejected(self):
        with pytest.raises(ConfigurationError, match='only one of'):
            AccountConfig.from_record(
                {
                    'host': 'h',
                    'username': 'u',
                    'cram_md5_auth': {'secret': 's'},
                    'plain_auth': {'password': 'p'},
                },
                environ={},
            )

    def test_no_scheme_loads(self):
        """A record without a scheme loads; the authenticator rejects it"""
        config = AccountConfig.from_record({'host': 'h', 'username': 'u'}, environ={})
        assert config.auth is None

    def test_missing_host(self):
        with pytest.raises(MissingConfigError, match='host'):
            AccountConfig.from_record({'username': 'u'}, environ={})

    def test_invalid_port(self):
        with pytest.raises(InvalidConfigError):
            AccountConfig.from_record(
                {'host': 'h', 'username': 'u', 'port': 'not-a-port'}, environ={}
            )

    def test_config_is_frozen(self):
        config = AccountConfig(host='h', username='u')
        with pytest.raises(ValidationError):
            config.host = 'other'


class TestEnvironmentDefaults:
    """Tests for environment variable defaults"""

    def test_top_level_defaults(self):
        environ = {
            'SMTP_HOST': 'mail.example.com',
            'SMTP_PORT': '2525',
            'SMTP_USERNAME': 'robot',
            'SMTP_FROM': 'robot@example.com',
        }
        config = AccountConfig.from_record({'plain_auth': {'password': 'p'}}, environ=environ)

        assert config.host == 'mail.example.com'
        assert config.port == 2525
        assert config.username == 'robot'
        assert config.from_address == 'robot@example.com'

    def test_record_beats_environment(self):
        config = AccountConfig.from_record(
            {'host': 'explicit', 'username': 'u'}, environ={'SMTP_HOST': 'env'}
        )
        assert config.host == 'explicit'

    def test_empty_plain_block_uses_environment(self):
        environ = {'SMTP_PLAIN_PASSWORD': 'from-env', 'SMTP_PLAIN_IDENTITY': 'admin'}
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u', 'plain_auth': {}}, environ=environ
        )
        assert config.auth == PlainAuth(password='from-env', identity='admin')

    def test_empty_cram_block_uses_environment(self):
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u', 'cram_md5_auth': {}},
            environ={'SMTP_CRAM_MD5_SECRET': 'env-secret'},
        )
        assert config.auth == CramMD5Auth(secret='env-secret')

    def test_secret_env_ignored_without_block(self):
        """Credential variables never select a scheme on their own"""
        config = AccountConfig.from_record(
            {'host': 'h', 'username': 'u'}, environ={'SMTP_PLAIN_PASSWORD': 'p'}
        )
        assert config.auth is None

    def test_none_values_fall_back(self):
        config = AccountConfig.from_record(
            {'host': None, 'port': None, 'username': 'u'}, environ={'SMTP_HOST': 'env-host'}
        )
        assert config.host == 'env-host'
        assert config.port == 587


class TestMessageRecord:
    """Tests for MessageRequest validation"""

    def test_sets_collapse_duplicates(self):
        request = MessageRequest.from_record(
            {'subject': 's', 'body': 'b', 'to': ['a@x.com', 'a@x.com', 'b@x.com']}
        )
        assert request.to == frozenset({'a@x.com', 'b@x.com'})

    def test_from_alias(self):
        request = MessageRequest.from_record(
            {'subject': 's', 'body': 'b', 'from': 'me@x.com', 'to': ['a@x.com']}
        )
        assert request.from_address == 'me@x.com'

    def test_none_fields_ignored(self):
        request = MessageRequest.from_record(
            {'subject': 's', 'body': 'b', 'from': None, 'cc': None, 'bcc': ['c@x.com']}
        )
        assert request.from_address == ''
        assert request.cc == frozenset()

    def test_no_recipients_rejected(self):
        with pytest.raises(MessageValidationError, match='one of to, cc, bcc'):
            MessageRequest.from_record({'subject': 's', 'body': 'b', 'to': [], 'cc': [], 'bcc': []})

    def test_missing_subject_rejected(self):
        with pytest.raises(MessageValidationError):
            MessageRequest.from_record({'body': 'b', 'to': ['a@x.com']})

    def test_recipients_union(self):
        """Recipients collapse across lists by exact string"""
        request = MessageRequest(
            subject='s', body='b',
            to={'a@x.com', 'b@x.com'}, cc={'b@x.com'}, bcc={'a@x.com', 'A@x.com'},
        )
        assert request.recipients() == frozenset({'a@x.com', 'b@x.com', 'A@x.com'})

    def test_request_is_frozen(self):
        request = MessageRequest(subject='s', body='b', to={'a@x.com'})
        with pytest.raises(ValidationError):
            request.subject = 'changed'


class TestLoggingConfig:
    """Tests for logging settings"""

    def test_from_env(self):
        config = LoggingConfig.from_env(
            {'SMTP_PROVIDER_LOG_LEVEL': 'DEBUG', 'SMTP_PROVIDER_LOG_DIR': '/tmp/logs'}
        )
        assert config.log_level == 'DEBUG'
        assert config.console_level == 'WARNING'
        assert config.log_dir == '/tmp/logs'

    def test_defaults(self):
        config = LoggingConfig.from_env({})
        assert config.log_dir is None

    def test_console_level_fallback(self):
        assert LoggingConfig.from_env({}, console_level='CRITICAL').console_level == 'CRITICAL'
        assert LoggingConfig.from_env(
            {'SMTP_PROVIDER_CONSOLE_LEVEL': 'INFO'}, console_level='CRITICAL'
        ).console_level == 'INFO'
