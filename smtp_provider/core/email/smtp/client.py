"""SMTP client: compose one message and deliver it in one transaction."""

import time
from typing import Callable, Optional

from smtp_provider.core.models.message import DeliveryOutcome, MessageRequest
from smtp_provider.utils.config import AccountConfig
from smtp_provider.utils.errors import ProviderError
from smtp_provider.utils.logging import get_logger, log_call

from .auth import AuthStrategy
from .composer import compose
from .connection import SMTPConnection
from .constants import TRANSITIONS, TransactionState
from .protocol import SMTPProtocol

logger = get_logger(__name__)


class DeliveryTransaction:
    """Tracks the state of one send.

    Moves strictly forward through ``TransactionState``; any failure lands
    in ``FAILED``, which is terminal.
    """

    def __init__(self, account: AccountConfig):
        self.account = account
        self.state = TransactionState.IDLE
        self.error: Optional[BaseException] = None

    def advance(self, state: TransactionState) -> None:
        if state not in TRANSITIONS[self.state]:
            raise RuntimeError(
                f"illegal delivery transition {self.state.value} -> {state.value}"
            )
        logger.debug(
            f"Delivery {self.state.value} -> {state.value}",
            extra={"server": self.account.address},
        )
        self.state = state

    def fail(self, error: BaseException) -> None:
        if self.state in (TransactionState.DONE, TransactionState.FAILED):
            return
        logger.debug(
            f"Delivery {self.state.value} -> failed",
            extra={"server": self.account.address, "error": str(error)},
        )
        self.state = TransactionState.FAILED
        self.error = error


class SMTPClient:
    """Sends messages for one account.

    Holds only the frozen account and the immutable strategy, so a single
    instance can serve concurrent sends; every send opens its own
    connection and buffers.
    """

    def __init__(
        self,
        account: AccountConfig,
        auth: AuthStrategy,
        connection_factory: Callable[[AccountConfig], SMTPConnection] = SMTPConnection,
    ):
        """Initialise the client.

        Args:
            account: SMTP account configuration
            auth: Strategy built by ``build_auth`` for ``account``
            connection_factory: Builds the per-send connection
        """
        self.account = account
        self.auth = auth
        self._connection_factory = connection_factory

    @log_call
    def send(
        self,
        request: MessageRequest,
        transaction: Optional[DeliveryTransaction] = None,
    ) -> DeliveryOutcome:
        """Compose ``request`` and deliver it.

        Returns:
            DeliveryOutcome whose ``id`` is ``<ns timestamp>-<sha256 hex>``

        Raises:
            CompositionError: the document could not be serialized
            DeliveryError: any SMTP phase failed; nothing was delivered
        """
        account = self.account
        transaction = transaction or DeliveryTransaction(account)
        recipients = request.recipients()
        send_start = time.time()

        logger.info(
            "Sending message",
            extra={
                "server": account.address,
                "recipients": len(recipients),
                "subject": request.subject[:50],
            },
        )

        try:
            transaction.advance(TransactionState.COMPOSING)
            composed = compose(request, account)

            with self._connection_factory(account) as connection:
                transaction.advance(TransactionState.CONNECTED)
                protocol = SMTPProtocol(connection.server)

                protocol.authenticate(self.auth, account.host, connection.tls)
                transaction.advance(TransactionState.AUTHENTICATED)

                protocol.mail(account.username)
                protocol.rcpt(recipients)
                transaction.advance(TransactionState.RECIPIENTS_ACCEPTED)

                protocol.data(composed.framed)
                transaction.advance(TransactionState.DATA_SENT)

        except ProviderError as e:
            transaction.fail(e)
            logger.error(
                "Failed to send message",
                extra={
                    "server": account.address,
                    "duration_seconds": round(time.time() - send_start, 2),
                    "error": str(e),
                },
            )
            raise

        except Exception as e:
            transaction.fail(e)
            raise

        sent_at_ns = time.time_ns()
        transaction.advance(TransactionState.DONE)

        outcome = DeliveryOutcome(
            id=f"{sent_at_ns}-{composed.fingerprint}",
            fingerprint=composed.fingerprint,
            envelope_sender=account.username,
            recipients=recipients,
            sent_at_ns=sent_at_ns,
        )

        logger.info(
            "Message sent successfully",
            extra={
                "message_id": outcome.id,
                "recipients": len(recipients),
                "duration_seconds": round(time.time() - send_start, 2),
            },
        )
        return outcome


def send_message(
    auth: AuthStrategy, account: AccountConfig, request: MessageRequest
) -> DeliveryOutcome:
    """Compose and deliver ``request`` with a one-off client."""
    return SMTPClient(account, auth).send(request)
