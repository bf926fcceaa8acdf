"""WebSocket wire protocol frame types for the group chat protocol."""

from dataclasses import dataclass, field
from typing import Any, Literal

FrameType = Literal[
    "join",
    "leave",
    "message",
    "member_joined",
    "member_left",
    "typing",
    "file_uploaded",
]

FRAME_TYPES: tuple[str, ...] = (
    "join",
    "leave",
    "message",
    "member_joined",
    "member_left",
    "typing",
    "file_uploaded",
)


# ---------------------------------------------------------------------------
# Client → Server
# ---------------------------------------------------------------------------

@dataclass
class JoinFrame:
    """Subscribe this connection to a group's broadcasts."""

    group_id: str
    user_id: str


@dataclass
class LeaveFrame:
    """Unsubscribe this connection from a group's broadcasts."""

    group_id: str
    user_id: str


# ---------------------------------------------------------------------------
# Both directions
# ---------------------------------------------------------------------------

@dataclass
class MessageFrame:
    """Chat message frame.

    Outbound frames carry a client-generated ``client_id`` and timestamp.
    The server echoes the frame to every group member (sender included)
    with ``id`` and ``sender_name`` filled in; the echo carries the original
    ``client_id`` so the sender can confirm its pending copy.

    Args:
        group_id: Group the message belongs to.
        user_id: Author.
        content: Message text (already trimmed).
        timestamp: ISO-8601 timestamp.
        id: Server-assigned message id; ``None`` on outbound frames.
        sender_name: Author display name.
        client_id: Correlation id generated by the sending client.
        attachments: Attachment metadata records.
    """

    group_id: str
    user_id: str
    content: str
    timestamp: str
    id: str | None = None
    sender_name: str | None = None
    client_id: str | None = None
    attachments: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class TypingFrame:
    group_id: str
    user_id: str
    user_name: str | None = None
    timestamp: str | None = None


@dataclass
class FileUploadedFrame:
    """Announces a file that was uploaded to the group through the REST endpoint.

    Args:
        file: File metadata record (``name``, ``type``, ``url``, optional ``size``/``id``).
    """

    group_id: str
    user_id: str
    file: dict[str, Any]
    timestamp: str | None = None


# ---------------------------------------------------------------------------
# Server → Client
# ---------------------------------------------------------------------------

@dataclass
class MemberJoinedFrame:
    group_id: str
    user_id: str
    user_name: str | None = None


@dataclass
class MemberLeftFrame:
    group_id: str
    user_id: str
    user_name: str | None = None


@dataclass
class UnknownFrame:
    """Well-formed frame whose ``type`` is not part of the protocol.

    Kept as a value rather than a decode error so the dispatcher can log
    and ignore it.
    """

    type: str
    group_id: str | None = None
    user_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Union types
# ---------------------------------------------------------------------------

Frame = (
    JoinFrame
    | LeaveFrame
    | MessageFrame
    | MemberJoinedFrame
    | MemberLeftFrame
    | TypingFrame
    | FileUploadedFrame
)
InboundFrame = Frame | UnknownFrame
