"""Low-level SMTP commands for one transaction."""

import smtplib
from typing import Iterable

from smtp_provider.utils.errors import AuthenticationError, DeliveryError
from smtp_provider.utils.logging import get_logger

from .auth import AuthStrategy
from .connection import reply_text
from .constants import DeliveryPhase, SMTPResponse

logger = get_logger(__name__)

TRANSPORT_ERRORS = (smtplib.SMTPException, OSError, UnicodeEncodeError)


class SMTPProtocol:
    """SMTP commands over an open ``smtplib.SMTP`` session.

    Every failure is raised as ``DeliveryError`` tagged with its phase and
    the server's reply; nothing is retried.
    """

    def __init__(self, server: smtplib.SMTP):
        self.server = server

    def authenticate(self, strategy: AuthStrategy, server_name: str, tls: bool) -> bool:
        """Authenticate with ``strategy``.

        Servers that only answered HELO have no AUTH extension and are used
        unauthenticated. An ESMTP server that does not advertise AUTH, or
        does not offer the strategy's mechanism, is an error.

        Returns:
            True if the AUTH exchange took place
        """
        server = self.server

        if not server.does_esmtp:
            logger.debug("Server does not speak ESMTP, skipping authentication")
            return False

        if not server.has_extn("auth"):
            raise AuthenticationError(
                "server doesn't support AUTH", details={"server": server_name}
            )

        mechanism = strategy.mechanism.value
        advertised = server.esmtp_features.get("auth", "").upper().split()
        if mechanism not in advertised:
            raise AuthenticationError(
                f"server does not offer the {mechanism} mechanism",
                details={"server": server_name, "advertised": advertised},
            )

        strategy.check_server(server_name, tls)

        try:
            server.auth(mechanism, strategy, initial_response_ok=True)

        except smtplib.SMTPAuthenticationError as e:
            raise AuthenticationError(
                f"authentication rejected: {reply_text(e.smtp_error)}",
                smtp_code=e.smtp_code,
                details={"server": server_name, "username": strategy.username},
            ) from e

        except TRANSPORT_ERRORS as e:
            raise AuthenticationError(
                f"authentication failed: {str(e)}",
                details={"server": server_name, "username": strategy.username},
            ) from e

        logger.debug("SMTP authentication succeeded", extra={"mechanism": mechanism})
        return True

    def mail(self, envelope_sender: str) -> None:
        """Declare the envelope sender."""
        code, reply = self._command(
            DeliveryPhase.MAIL, lambda: self.server.mail(envelope_sender)
        )
        if code != SMTPResponse.OK:
            raise DeliveryError(
                f"sender {envelope_sender} refused: {reply_text(reply)}",
                phase=DeliveryPhase.MAIL.value,
                smtp_code=code,
                details={"sender": envelope_sender},
            )

    def rcpt(self, recipients: Iterable[str]) -> None:
        """Declare every recipient; the first refusal aborts the transaction."""
        for recipient in recipients:
            code, reply = self._command(
                DeliveryPhase.RCPT, lambda: self.server.rcpt(recipient)
            )
            if code not in SMTPResponse.ACCEPTED_RECIPIENT:
                raise DeliveryError(
                    f"recipient {recipient} refused: {reply_text(reply)}",
                    phase=DeliveryPhase.RCPT.value,
                    smtp_code=code,
                    details={"recipient": recipient},
                )

    def data(self, framed: bytes) -> None:
        """Transfer an already dot-stuffed and terminated document."""
        code, reply = self._command(
            DeliveryPhase.DATA, lambda: self.server.docmd("DATA")
        )
        if code != SMTPResponse.START_MAIL:
            raise DeliveryError(
                f"DATA refused: {reply_text(reply)}",
                phase=DeliveryPhase.DATA.value,
                smtp_code=code,
            )

        def transfer():
            self.server.send(framed)
            return self.server.getreply()

        code, reply = self._command(DeliveryPhase.DATA, transfer)
        if code != SMTPResponse.OK:
            raise DeliveryError(
                f"message refused: {reply_text(reply)}",
                phase=DeliveryPhase.DATA.value,
                smtp_code=code,
            )

    @staticmethod
    def _command(phase: DeliveryPhase, call):
        try:
            return call()
        except smtplib.SMTPResponseException as e:
            raise DeliveryError(
                f"{phase.value} failed: {reply_text(e.smtp_error)}",
                phase=phase.value,
                smtp_code=e.smtp_code,
            ) from e
        except TRANSPORT_ERRORS as e:
            raise DeliveryError(
                f"{phase.value} failed: {str(e)}", phase=phase.value
            ) from e
