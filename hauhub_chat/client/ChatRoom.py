"""Local view model of the active group: history, members, files, typing users.

Every mutation publishes an EventBus event so views re-render only what
changed. ChatRoom never performs I/O.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime

from hauhub_chat.EventBus import EventBus
from hauhub_chat.types import ChatMessage, FileInfo, GroupInfo, Member, MessageStatus

logger = logging.getLogger(__name__)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing ``Z``.

    Raises:
        ValueError: If value is not an ISO-8601 string.
    """
    if not isinstance(value, str):
        raise ValueError(f"Timestamp must be a string, got {type(value).__name__}")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


def session_number(day: date) -> int:
    """Week of month (1-based, weeks start on Sunday) used to label history buckets."""
    first = day.replace(day=1)
    first_weekday = (first.weekday() + 1) % 7
    return math.ceil((day.day - 1 + first_weekday + 1) / 7)


@dataclass
class DateBucket:
    day: date
    session: int
    messages: list[ChatMessage] = field(default_factory=list)


class ChatRoom:
    """Mutable state of the currently displayed group.

    Args:
        bus: Event bus receiving message/member/file/typing events.
    """

    def __init__(self, bus: EventBus) -> None:
        self._bus = bus
        self.group: GroupInfo | None = None
        self.messages: list[ChatMessage] = []
        self.members: dict[str, Member] = {}
        self.files: list[FileInfo] = []
        self.typing_users: dict[str, str] = {}

    @property
    def group_id(self) -> str | None:
        return self.group.id if self.group is not None else None

    def load(
        self,
        group: GroupInfo,
        messages: list[ChatMessage],
        members: list[Member],
        files: list[FileInfo],
    ) -> None:
        """Replace the whole room with freshly fetched group data."""
        self.group = group
        self.messages = list(messages)
        self.members = {member.id: member for member in members}
        self.files = list(files)
        self.typing_users = {}
        self._bus.publish("history_loaded", self)

    def clear(self) -> None:
        self.group = None
        self.messages = []
        self.members = {}
        self.files = []
        self.typing_users = {}

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def add_message(self, message: ChatMessage) -> None:
        self.messages.append(message)
        self.typing_users.pop(message.user_id, None)
        self._bus.publish("message_added", message)

    def find_by_client_id(self, client_id: str) -> ChatMessage | None:
        for message in self.messages:
            if message.client_id == client_id:
                return message
        return None

    def confirm(
        self,
        client_id: str,
        message_id: str | None = None,
        timestamp: str | None = None,
        sender_name: str | None = None,
    ) -> ChatMessage | None:
        """Promote a locally sent message to CONFIRMED.

        Returns:
            The updated message, or None if no local message has client_id.
        """
        message = self.find_by_client_id(client_id)
        if message is None:
            return None
        message.status = MessageStatus.CONFIRMED
        if message_id is not None:
            message.id = message_id
        if timestamp:
            message.timestamp = timestamp
        if sender_name:
            message.sender_name = sender_name
        self._bus.publish("message_updated", message)
        return message

    def set_status(self, client_id: str, status: MessageStatus) -> ChatMessage | None:
        message = self.find_by_client_id(client_id)
        if message is None:
            return None
        message.status = status
        self._bus.publish("message_updated", message)
        return message

    def pending_messages(self) -> list[ChatMessage]:
        return [m for m in self.messages if m.status is MessageStatus.PENDING]

    def date_buckets(self) -> list[DateBucket]:
        """Group history by calendar day, in history order.

        A new bucket starts whenever the day differs from the previous
        message's day.
        """
        buckets: list[DateBucket] = []
        for message in self.messages:
            try:
                day = parse_timestamp(message.timestamp).date()
            except ValueError:
                logger.debug("ChatRoom: unparseable timestamp %r", message.timestamp)
                continue
            if not buckets or buckets[-1].day != day:
                buckets.append(DateBucket(day=day, session=session_number(day)))
            buckets[-1].messages.append(message)
        return buckets

    # ------------------------------------------------------------------
    # Members, files, typing
    # ------------------------------------------------------------------

    def set_member_online(self, user_id: str, is_online: bool) -> Member | None:
        """Toggle one member's online flag. Unknown members are left untouched."""
        member = self.members.get(user_id)
        if member is None:
            return None
        member.is_online = is_online
        if not is_online:
            self.typing_users.pop(user_id, None)
        self._bus.publish("member_updated", member)
        return member

    def add_file(self, file: FileInfo) -> None:
        self.files.append(file)
        self._bus.publish("file_added", file)

    def set_typing(self, user_id: str, user_name: str) -> None:
        self.typing_users[user_id] = user_name
