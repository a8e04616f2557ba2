"""Provider entry points for the declarative host.

The host calls ``SMTPProvider.configure`` once per account scope and then
``create_message`` once per message resource. Messages cannot be updated;
reading is a no-op and deleting only drops local state, since a sent email
cannot be unsent.
"""

import os
from typing import Any, Mapping, Optional, Union

from smtp_provider.core.email.smtp import AuthStrategy, SMTPClient, build_auth
from smtp_provider.core.models import MessageRequest, MessageState
from smtp_provider.utils.config import AccountConfig
from smtp_provider.utils.errors import ErrorHandler
from smtp_provider.utils.logging import get_logger, log_call

logger = get_logger(__name__)

MessageInput = Union[MessageRequest, Mapping[str, Any]]


class SMTPProvider:
    """A configured account: the handle the host passes to every message."""

    def __init__(self, account: AccountConfig, auth: AuthStrategy):
        self.account = account
        self.auth = auth
        self.client = SMTPClient(account, auth)

    @classmethod
    @log_call
    def configure(
        cls,
        record: Union[AccountConfig, Mapping[str, Any]],
        environ: Optional[Mapping[str, str]] = None,
    ) -> "SMTPProvider":
        """Validate the provider record and build its authenticator.

        Raises:
            ConfigurationError: bad record or no usable authentication scheme
        """
        if isinstance(record, AccountConfig):
            account = record
        else:
            account = AccountConfig.from_record(
                record, os.environ if environ is None else environ
            )

        provider = cls(account, build_auth(account))
        logger.info(
            "SMTP provider configured",
            extra={
                "server": account.address,
                "mechanism": provider.auth.mechanism.value,
            },
        )
        return provider

    @ErrorHandler.wrap
    def create_message(self, message: MessageInput) -> MessageState:
        """Send one message and return the state the host should record.

        Raises:
            MessageValidationError: the record cannot describe a sendable message
            CompositionError: the document could not be serialized
            DeliveryError: the SMTP transaction failed
        """
        request = (
            message
            if isinstance(message, MessageRequest)
            else MessageRequest.from_record(message)
        )
        outcome = self.client.send(request)
        return MessageState(id=outcome.id, message=request)

    def read_message(self, state: MessageState) -> MessageState:
        """Nothing to refresh: a sent message has no remote state to read."""
        return state

    def delete_message(self, state: MessageState) -> None:
        """Forget a message locally. No network call is made."""
        logger.info("Removing message from state", extra={"message_id": state.id})
