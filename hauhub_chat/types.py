"""Type definitions for the group chat local view model."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal


class MessageStatus(Enum):
    """Delivery state of a message in the local view.

    State Transitions:
    - PENDING: rendered optimistically, waiting for the server echo or HTTP response
    - CONFIRMED: server acknowledged the message (echo with matching clientId or HTTP 2xx)
    - FAILED: HTTP fallback raised; the message can be retried

    PENDING -> CONFIRMED, PENDING -> FAILED, FAILED -> PENDING (retry)
    """
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


@dataclass
class Session:
    """Identity of the local user plus the currently active group.

    Loaded once at startup from the identity provider. Only group switches
    mutate active_group_id.
    """

    user_id: str
    username: str = ""
    display_name: str = ""
    avatar: str | None = None
    role: str | None = None
    active_group_id: str | None = None

    def apply_user_record(self, record: dict[str, Any]) -> None:
        """Fill identity fields in place from an identity provider record.

        The instance is shared by every chat component, so it is updated
        rather than replaced.

        Args:
            record: Dict with keys ``id``, ``username``, ``name``, ``avatar``, ``role``.

        Raises:
            ValueError: If the record belongs to another user.
        """
        if str(record.get("id", self.user_id)) != self.user_id:
            raise ValueError(f"User record {record.get('id')!r} does not match session user {self.user_id!r}")
        self.username = record.get("username", "")
        self.display_name = record.get("name", "")
        self.avatar = record.get("avatar")
        self.role = record.get("role")


@dataclass
class GroupInfo:
    id: str
    name: str = ""
    project_name: str = ""
    course_code: str = ""
    instructor: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "GroupInfo":
        return cls(
            id=str(record["id"]),
            name=record.get("name", ""),
            project_name=record.get("projectName", ""),
            course_code=record.get("courseCode", ""),
            instructor=record.get("instructor", ""),
        )


@dataclass
class Member:
    id: str
    name: str
    role: str = "MEMBER"
    is_online: bool = False

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Member":
        return cls(
            id=str(record["id"]),
            name=record.get("name", ""),
            role=record.get("role") or "MEMBER",
            is_online=bool(record.get("isOnline", False)),
        )


@dataclass
class FileInfo:
    """Metadata of an uploaded group file as returned by the upload endpoint."""

    name: str
    type: str = ""
    url: str = ""
    size: int | None = None
    id: str | None = None

    @property
    def icon(self) -> str:
        """Icon name for the file grid, chosen by MIME type."""
        if self.type.startswith("image/"):
            return "image"
        if self.type == "application/pdf":
            return "picture_as_pdf"
        if self.type in ("application/zip", "application/x-zip-compressed"):
            return "folder_zip"
        return "description"

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "FileInfo":
        file_id = record.get("id")
        return cls(
            name=record["name"],
            type=record.get("type") or "",
            url=record.get("url") or "",
            size=record.get("size"),
            id=str(file_id) if file_id is not None else None,
        )

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {"name": self.name, "type": self.type, "url": self.url}
        if self.size is not None:
            record["size"] = self.size
        if self.id is not None:
            record["id"] = self.id
        return record


@dataclass
class ChatMessage:
    """A message as shown in the local history.

    Created either optimistically by the composer (status PENDING, id None)
    or from an inbound frame / history record (status CONFIRMED).
    """

    group_id: str
    user_id: str
    content: str
    timestamp: str
    id: str | None = None
    sender_name: str = ""
    client_id: str | None = None
    status: MessageStatus = MessageStatus.CONFIRMED
    attachments: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ChatMessage":
        message_id = record.get("id")
        return cls(
            id=str(message_id) if message_id is not None else None,
            group_id=str(record["groupId"]),
            user_id=str(record["userId"]),
            sender_name=record.get("senderName", ""),
            content=record["content"],
            timestamp=record["timestamp"],
            client_id=record.get("clientId"),
            attachments=list(record.get("attachments", [])),
        )


@dataclass(frozen=True)
class Notification:
    """Transient user-facing notice published on the event bus."""

    level: Literal["info", "success", "error"]
    text: str
