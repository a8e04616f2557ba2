"""Message composition: header block, body and DATA framing.

A single write pass feeds every emitted segment both to a sha256 accumulator
and to the dot-stuffing framer. The fingerprint covers the unframed document:
LF line endings, no dot-stuffing and no end-of-data line. The framer output is
what goes on the wire.

Header lines use the fixed ``Label:  value`` framing. ``To`` and ``Cc``
join their addresses in set iteration order, which changes between runs;
nothing downstream may rely on that order. ``bcc`` is never read here.
"""

import hashlib
from dataclasses import dataclass
from typing import Optional

from smtp_provider.core.models.message import MessageRequest
from smtp_provider.utils.config import AccountConfig
from smtp_provider.utils.errors import CompositionError
from smtp_provider.utils.logging import get_logger

logger = get_logger(__name__)

CR = 0x0D
LF = 0x0A
DOT = 0x2E


class DotWriter:
    """Frames a document for the SMTP DATA phase.

    Lines starting with ``.`` get a second ``.``, bare LF becomes CRLF, and
    ``close`` appends the ``.`` end-of-data line.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._at_line_start = True
        self._after_cr = False
        self._closed = False

    def write(self, data: bytes) -> None:
        if self._closed:
            raise CompositionError("write to a closed message writer")

        buffer = self._buffer
        for byte in data:
            if self._at_line_start and byte == DOT:
                buffer.append(DOT)
            if byte == LF and not self._after_cr:
                buffer.append(CR)
            buffer.append(byte)
            self._at_line_start = byte == LF
            self._after_cr = byte == CR

    def close(self) -> bytes:
        """Terminate the document and return the framed bytes."""
        if not self._closed:
            if self._after_cr:
                self._buffer.append(LF)
            elif not self._at_line_start:
                self._buffer += b"\r\n"
            self._buffer += b".\r\n"
            self._closed = True
        return bytes(self._buffer)


@dataclass(frozen=True)
class ComposedMessage:
    """A composed document ready for the DATA phase."""

    sender: str
    document: bytes
    framed: bytes
    fingerprint: str

    @property
    def header_lines(self) -> list[str]:
        """Header lines of the document, in wire order."""
        head = self.document.split(b"\n\n", 1)[0].decode("utf-8")
        return head.split("\n") if head else []


class _MessageWriter:
    """Tees each segment into the fingerprint and the framer."""

    def __init__(self):
        self._digest = hashlib.sha256()
        self._document = bytearray()
        self._framer = DotWriter()

    def write(self, segment: str, what: str) -> None:
        try:
            data = segment.encode("utf-8")
        except UnicodeEncodeError as e:
            raise CompositionError(
                f"failed to write the {what}: {e}", details={"segment": what}
            ) from e

        self._digest.update(data)
        self._document += data
        self._framer.write(data)

    def header(self, label: str, value: str) -> None:
        self.write(f"{label}:  {value}\n", f"{label} header")

    def close(self) -> tuple[bytes, bytes, str]:
        framed = self._framer.close()
        return bytes(self._document), framed, self._digest.hexdigest()


def resolve_sender(request: MessageRequest, account: AccountConfig) -> str:
    """Sender shown in the From header.

    Precedence: the message override, then the account default, then the
    account username. Empty strings count as unset.
    """
    return request.from_address or account.from_address or account.username


def compose(
    request: MessageRequest,
    account: AccountConfig,
    sender: Optional[str] = None,
) -> ComposedMessage:
    """Serialize ``request`` into a framed document and its fingerprint."""
    sender = sender or resolve_sender(request, account)
    writer = _MessageWriter()

    writer.header("From", sender)
    writer.header("Subject", request.subject)

    if request.to:
        writer.header("To", ", ".join(request.to))

    if request.cc:
        writer.header("Cc", ", ".join(request.cc))

    for key, value in request.headers.items():
        writer.header(key, value)

    writer.write("\n", "body separator")
    writer.write(request.body, "body")

    document, framed, fingerprint = writer.close()

    logger.debug(
        "Message composed",
        extra={"size_bytes": len(framed), "fingerprint": fingerprint},
    )

    return ComposedMessage(
        sender=sender, document=document, framed=framed, fingerprint=fingerprint
    )
