"""Plain-text presentation of chat events for the console client."""

import sys
from typing import TextIO

from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatRoom import ChatRoom, parse_timestamp
from hauhub_chat.network.types import TypingFrame
from hauhub_chat.types import ChatMessage, FileInfo, GroupInfo, Member, MessageStatus, Notification, Session

_STATUS_MARKS = {
    MessageStatus.PENDING: "…",
    MessageStatus.CONFIRMED: "",
    MessageStatus.FAILED: "!",
}


class ConsoleView:
    """Subscribes to the event bus and writes one line per event.

    Args:
        bus: Event bus to subscribe to.
        session: Local user, used to label own messages.
        out: Output stream (defaults to stdout).
    """

    def __init__(self, bus: EventBus, session: Session, out: TextIO | None = None) -> None:
        self._session = session
        self._out = out or sys.stdout
        bus.subscribe("history_loaded", self.show_history)
        bus.subscribe("message_added", self.show_message)
        bus.subscribe("message_updated", self.show_message_update)
        bus.subscribe("member_updated", self.show_member)
        bus.subscribe("file_added", self.show_file)
        bus.subscribe("typing", self.show_typing)
        bus.subscribe("notification", self.show_notification)
        bus.subscribe("group_switched", self.show_group)
        bus.subscribe("connection_state", self.show_connection_state)

    def format_message(self, message: ChatMessage) -> str:
        try:
            time = parse_timestamp(message.timestamp).astimezone().strftime("%H:%M")
        except ValueError:
            time = "--:--"
        author = "YOU" if message.user_id == self._session.user_id else (message.sender_name or "MEMBER")
        mark = _STATUS_MARKS[message.status]
        suffix = f" [{mark} {message.client_id}]" if mark else ""
        return f"[{time}] {author}: {message.content}{suffix}"

    def show_history(self, room: ChatRoom) -> None:
        for bucket in room.date_buckets():
            self._write(f"--- {bucket.day.strftime('%d %b %Y').upper()} - SESSION_{bucket.session} ---")
            for message in bucket.messages:
                self._write(self.format_message(message))
        online = sum(1 for member in room.members.values() if member.is_online)
        self._write(f"({len(room.members)} members, {online} online, {len(room.files)} files)")

    def show_message(self, message: ChatMessage) -> None:
        self._write(self.format_message(message))

    def show_message_update(self, message: ChatMessage) -> None:
        if message.status is MessageStatus.FAILED:
            self._write(f"! not delivered: {message.content!r} (/retry {message.client_id})")

    def show_member(self, member: Member) -> None:
        self._write(f"* {member.name} is {'online' if member.is_online else 'offline'}")

    def show_file(self, file: FileInfo) -> None:
        self._write(f"+ [{file.icon}] {file.name} {file.url}")

    def show_typing(self, frame: TypingFrame) -> None:
        self._write(f"  {frame.user_name or frame.user_id} is typing...")

    def show_notification(self, notification: Notification) -> None:
        self._write(f"<{notification.level}> {notification.text}")

    def show_group(self, group: GroupInfo) -> None:
        self._write(f"=== {group.name.upper() or group.id} ({group.course_code}) ===")

    def show_connection_state(self, transition: tuple[str, str]) -> None:
        self._write(f"(connection {transition[1]})")

    def _write(self, line: str) -> None:
        print(line, file=self._out, flush=True)
