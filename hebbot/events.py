"""Normalized chat events and the transport interface the core talks to.

The transport (see matrix.py) turns protocol events into these types and
delivers what the engine and bot produce. Nothing here knows about a
specific chat protocol.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union

from .models import MessageKind


# ── Inbound ──

@dataclass(frozen=True)
class MessageCreated:
    id: str
    sender_id: str
    body: str
    room_id: str = ""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    kind: MessageKind = MessageKind.TEXT
    sender_display_name: Optional[str] = None
    mentions: tuple[str, ...] = ()  # user ids explicitly mentioned


@dataclass(frozen=True)
class MessageEdited:
    original_id: str
    new_body: str
    room_id: str = ""
    sender_id: str = ""


@dataclass(frozen=True)
class ReactionAdded:
    reaction_id: str
    target_id: str
    sender_id: str
    emoji: str
    room_id: str = ""


@dataclass(frozen=True)
class ReactionRemoved:
    """Something got retracted: a reaction, a news message or a media message."""
    reaction_id: str
    sender_id: str = ""
    room_id: str = ""


InboundEvent = Union[MessageCreated, MessageEdited, ReactionAdded, ReactionRemoved]


@dataclass(frozen=True)
class ResolvedMessage:
    """A message fetched by id, used to classify reaction targets."""
    id: str
    kind: MessageKind
    sender_id: str
    timestamp: datetime
    body: Optional[str] = None
    sender_display_name: Optional[str] = None
    media_locator: Optional[str] = None
    media_filename: Optional[str] = None


# ── Outbound ──

class Audience(Enum):
    ADMIN = "admin"            # moderation (admin) room
    REPORTING = "reporting"    # reporting room, seen by the submitter
    REACTION = "reaction"      # a reaction on a reporting room message


@dataclass(frozen=True)
class Outbound:
    audience: Audience
    text: str
    target_id: Optional[str] = None  # message to react to (REACTION only)
    html: bool = True


def admin(text: str) -> Outbound:
    return Outbound(Audience.ADMIN, text)


def reporting(text: str) -> Outbound:
    return Outbound(Audience.REPORTING, text, html=False)


def reaction(target_id: str, key: str) -> Outbound:
    return Outbound(Audience.REACTION, key, target_id=target_id, html=False)


class Transport(ABC):
    """What the core needs from the chat transport."""

    @abstractmethod
    async def resolve_message(self, message_id: str) -> ResolvedMessage:
        """Fetch a reporting room message.

        Raises:
            TargetUnresolvableError: the message could not be fetched
        """
        ...

    @abstractmethod
    async def own_display_name(self) -> Optional[str]:
        """Current display name of the bot account."""
        ...

    @abstractmethod
    async def send_notice(self, audience: Audience, text: str, html: bool = True):
        """Post a notice to the admin or reporting room."""
        ...

    @abstractmethod
    async def send_text(self, audience: Audience, text: str):
        """Post a regular (non-notice) message."""
        ...

    @abstractmethod
    async def send_reaction(self, target_id: str, key: str):
        """React to a reporting room message."""
        ...

    @abstractmethod
    async def upload(self, data: bytes, content_type: str, filename: str) -> str:
        """Upload a file and return its content locator."""
        ...

    @abstractmethod
    async def send_file(self, audience: Audience, locator: str, filename: str):
        """Post an uploaded file."""
        ...

    @abstractmethod
    def media_download_url(self, locator: str) -> Optional[str]:
        """Plain HTTP URL for a content locator, or None if it isn't valid."""
        ...

    async def deliver(self, outbound: Outbound):
        """Send one engine output."""
        if outbound.audience == Audience.REACTION:
            await self.send_reaction(outbound.target_id, outbound.text)
        else:
            await self.send_notice(outbound.audience, outbound.text, html=outbound.html)
