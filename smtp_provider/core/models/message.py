"""Message domain models"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from smtp_provider.utils.errors import MessageValidationError


class MessageRequest(BaseModel):
    """One message to send. Immutable once built.

    ``to``, ``cc`` and ``bcc`` are sets: duplicates inside each collapse, and
    their iteration order is not stable from one run to the next.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    subject: str
    body: str
    from_address: str = Field(default="", alias="from")
    to: FrozenSet[str] = frozenset()
    cc: FrozenSet[str] = frozenset()
    bcc: FrozenSet[str] = frozenset()
    headers: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _require_recipient(self) -> "MessageRequest":
        if not (self.to or self.cc or self.bcc):
            raise ValueError("one of to, cc, bcc must be specified")
        return self

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "MessageRequest":
        """Validate the host's raw message record.

        ``None`` values are treated as absent, which is how the host reports
        optional attributes that were never set.
        """
        data = {key: value for key, value in record.items() if value is not None}
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MessageValidationError(
                f"Invalid message: {str(e)}",
                details={"errors": [error["msg"] for error in e.errors()]},
            ) from e

    def recipients(self) -> FrozenSet[str]:
        """Every envelope recipient: the exact-string union of to, cc and bcc."""
        return self.to | self.cc | self.bcc


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of a successful send."""

    id: str
    fingerprint: str
    envelope_sender: str
    recipients: FrozenSet[str]
    sent_at_ns: int


class MessageState(BaseModel):
    """What the host keeps for a created message resource."""

    model_config = ConfigDict(frozen=True)

    id: str
    message: MessageRequest
