"""SMTP connection management - handles connection setup, TLS and cleanup."""

import smtplib
import ssl
import time
from typing import Optional

from smtp_provider.utils.config import AccountConfig
from smtp_provider.utils.errors import DeliveryError
from smtp_provider.utils.logging import get_logger

from .constants import DeliveryPhase, SMTPPorts

logger = get_logger(__name__)


def reply_text(reply) -> str:
    if isinstance(reply, bytes):
        return reply.decode("utf-8", errors="replace")
    return str(reply)


class SMTPConnection:
    """One SMTP session for one message. Never reused.

    Opening dials ``host:port`` (implicit TLS on 465), greets with EHLO and
    upgrades with STARTTLS when the server offers it. Closing sends QUIT.
    """

    def __init__(
        self,
        account: AccountConfig,
        ssl_context: Optional[ssl.SSLContext] = None,
    ):
        """Initialise an unopened connection for ``account``.

        Args:
            account: Account to connect with
            ssl_context: TLS context for STARTTLS/implicit TLS (system
                defaults when omitted)
        """
        self.account = account
        self._ssl_context = ssl_context
        self._server: Optional[smtplib.SMTP] = None
        self.tls = False

    @property
    def server(self) -> smtplib.SMTP:
        if self._server is None:
            raise DeliveryError(
                "SMTP connection is not open", phase=DeliveryPhase.CONNECT.value
            )
        return self._server

    def _context(self) -> ssl.SSLContext:
        if self._ssl_context is None:
            self._ssl_context = ssl.create_default_context()
        return self._ssl_context

    def open(self) -> smtplib.SMTP:
        """Connect, greet and negotiate TLS.

        Raises:
            DeliveryError: phase ``connect`` or ``starttls``
        """
        account = self.account
        start_time = time.time()
        implicit_tls = SMTPPorts.is_implicit_ssl(account.port)

        logger.info(
            "Connecting to SMTP server",
            extra={
                "server": account.host,
                "port": account.port,
                "ssl_mode": "implicit" if implicit_tls else "starttls",
            },
        )

        try:
            if implicit_tls:
                server = smtplib.SMTP_SSL(
                    account.host,
                    account.port,
                    timeout=account.timeout,
                    context=self._context(),
                )
            else:
                server = smtplib.SMTP(
                    account.host, account.port, timeout=account.timeout
                )
            self._server = server
            self.tls = implicit_tls
            server.ehlo_or_helo_if_needed()

        except smtplib.SMTPResponseException as e:
            self.close()
            raise DeliveryError(
                f"Failed to connect to SMTP server: {reply_text(e.smtp_error)}",
                phase=DeliveryPhase.CONNECT.value,
                smtp_code=e.smtp_code,
                details={"server": account.address},
            ) from e

        except (smtplib.SMTPException, OSError) as e:
            self.close()
            raise DeliveryError(
                f"Failed to connect to SMTP server: {str(e)}",
                phase=DeliveryPhase.CONNECT.value,
                details={"server": account.address},
            ) from e

        if not self.tls and server.has_extn("starttls"):
            self._starttls(server)

        logger.debug(
            "SMTP connection established",
            extra={
                "server": account.address,
                "tls": self.tls,
                "esmtp": bool(server.does_esmtp),
                "duration_seconds": round(time.time() - start_time, 3),
            },
        )
        return server

    def _starttls(self, server: smtplib.SMTP) -> None:
        try:
            server.starttls(context=self._context())
            server.ehlo()
            self.tls = True

        except smtplib.SMTPResponseException as e:
            self.close()
            raise DeliveryError(
                f"STARTTLS failed: {reply_text(e.smtp_error)}",
                phase=DeliveryPhase.STARTTLS.value,
                smtp_code=e.smtp_code,
                details={"server": self.account.address},
            ) from e

        except (smtplib.SMTPException, OSError) as e:
            self.close()
            raise DeliveryError(
                f"STARTTLS failed: {str(e)}",
                phase=DeliveryPhase.STARTTLS.value,
                details={"server": self.account.address},
            ) from e

    def close(self) -> None:
        """Close the SMTP connection gracefully."""

        if self._server is None:
            return

        try:
            self._server.quit()
            logger.debug("SMTP connection closed")

        except (smtplib.SMTPException, OSError) as e:
            logger.debug(f"Error closing SMTP connection: {str(e)}")
            self._server.close()

        finally:
            self._server = None

    ## Context Manager Support

    def __enter__(self) -> "SMTPConnection":
        self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
