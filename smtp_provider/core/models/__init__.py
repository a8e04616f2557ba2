"""Domain models."""

from .message import DeliveryOutcome, MessageRequest, MessageState

__all__ = ["DeliveryOutcome", "MessageRequest", "MessageState"]
