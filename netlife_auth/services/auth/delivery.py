"""
Delivery provider interface
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

FAILURE_TRANSPORT = "transport"
FAILURE_REJECTED = "rejected"


@dataclass(frozen=True)
class DeliveryResult:
    """
    Outcome of a single send.

    failure_kind separates transport problems (timeouts, connection errors,
    non-2xx responses) from the provider answering but not accepting the
    message.
    """

    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None
    failure_kind: Optional[str] = None
    provider: Optional[str] = None

    @classmethod
    def ok(cls, message_id: Optional[str], provider: Optional[str] = None) -> "DeliveryResult":
        return cls(success=True, message_id=message_id, provider=provider)

    @classmethod
    def failed(cls, error: str, failure_kind: str, provider: Optional[str] = None) -> "DeliveryResult":
        return cls(success=False, error=error, failure_kind=failure_kind, provider=provider)

    @property
    def is_transport_failure(self) -> bool:
        return self.failure_kind == FAILURE_TRANSPORT


class DeliveryProvider(ABC):
    """Abstract base class for outbound message backends"""

    name = "base"

    @abstractmethod
    async def send(self, phone: str, message: str) -> DeliveryResult:
        """
        Send a text message to a phone number.

        Implementations must not raise for provider or network failures; they
        report them through the returned DeliveryResult.

        Args:
            phone: Destination, with or without a leading +
            message: Plain text body

        Returns:
            DeliveryResult
        """

    async def aclose(self) -> None:
        """Release any pooled connections. Called on application shutdown."""
        return None


def strip_plus(phone: str) -> str:
    return phone[1:] if phone.startswith("+") else phone


def with_plus(phone: str) -> str:
    return phone if phone.startswith("+") else "+" + phone
