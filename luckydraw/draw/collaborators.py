"""Interfaces of the external collaborators the engine depends on."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class Applicant:
    """A user asking to join a lottery, with display metadata."""

    user_id: str
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a direct message send."""

    delivered: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(delivered=True)

    @classmethod
    def failed(cls, reason: str) -> "DeliveryResult":
        return cls(delivered=False, reason=reason)


@runtime_checkable
class EligibilityResolver(Protocol):
    """Read-only user lookups used by the admission checks."""

    def has_avatar(self, user_id: str) -> bool: ...

    def has_username(self, user_id: str) -> bool: ...

    def is_channel_member(self, channel_id: str, user_id: str) -> bool: ...

    def is_bot(self, user_id: str) -> bool: ...


@runtime_checkable
class Notifier(Protocol):
    """Sends a direct message to a user."""

    def send_direct_message(self, user_id: str, text: str) -> DeliveryResult: ...


__all__ = ["Applicant", "DeliveryResult", "EligibilityResolver", "Notifier"]
