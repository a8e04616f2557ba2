"""SMTP constants and configuration values."""

from enum import Enum


class SMTPResponse:
    """Standard SMTP response codes."""

    # 2xx Success
    OK = 250  # Requested mail action okay, completed
    USER_NOT_LOCAL = 251  # User not local; will forward

    # 3xx Intermediate
    START_MAIL = 354  # Start mail input; end with <CRLF>.<CRLF>

    ACCEPTED_RECIPIENT = (OK, USER_NOT_LOCAL)


class SMTPPorts:
    """Standard SMTP port numbers."""

    SUBMISSION_SSL = 465  # Implicit TLS/SSL

    @classmethod
    def is_implicit_ssl(cls, port: int) -> bool:
        """Check if port uses implicit SSL.

        Args:
            port: SMTP port number

        Returns:
            True if implicit SSL, False otherwise
        """
        return port == cls.SUBMISSION_SSL


LOCALHOST_NAMES = frozenset({"localhost", "127.0.0.1", "::1"})


class AuthMechanism(str, Enum):
    """SASL mechanisms the authenticator can drive."""

    CRAM_MD5 = "CRAM-MD5"
    PLAIN = "PLAIN"


class DeliveryPhase(str, Enum):
    """Steps of the SMTP transaction, used to label failures."""

    CONNECT = "connect"
    STARTTLS = "starttls"
    AUTHENTICATE = "authenticate"
    MAIL = "mail"
    RCPT = "rcpt"
    DATA = "data"


class TransactionState(str, Enum):
    """Lifecycle of one send."""

    IDLE = "idle"
    COMPOSING = "composing"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    RECIPIENTS_ACCEPTED = "recipients_accepted"
    DATA_SENT = "data_sent"
    DONE = "done"
    FAILED = "failed"


# Legal forward transitions; FAILED is reachable from any non-terminal state.
TRANSITIONS = {
    TransactionState.IDLE: {TransactionState.COMPOSING},
    TransactionState.COMPOSING: {TransactionState.CONNECTED},
    TransactionState.CONNECTED: {TransactionState.AUTHENTICATED},
    TransactionState.AUTHENTICATED: {TransactionState.RECIPIENTS_ACCEPTED},
    TransactionState.RECIPIENTS_ACCEPTED: {TransactionState.DATA_SENT},
    TransactionState.DATA_SENT: {TransactionState.DONE},
    TransactionState.DONE: set(),
    TransactionState.FAILED: set(),
}
