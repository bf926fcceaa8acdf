"""Routes decoded inbound chat frames to the local view model."""

import logging

from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatRoom import ChatRoom
from hauhub_chat.network.types import (
    FileUploadedFrame,
    InboundFrame,
    JoinFrame,
    LeaveFrame,
    MemberJoinedFrame,
    MemberLeftFrame,
    MessageFrame,
    TypingFrame,
    UnknownFrame,
)
from hauhub_chat.types import ChatMessage, FileInfo, MessageStatus, Notification, Session

logger = logging.getLogger(__name__)


class FrameDispatcher:
    """Dispatches each inbound frame to exactly one handler, scoped to the active group.

    Registered with ChatTransport.on_frame(). Frames for a group other than
    the session's active group, unknown frame types and client-to-server
    types are logged and ignored. dispatch() never raises for well-formed
    frames and touches only the state its handler owns.

    Args:
        session: Local user and active group.
        room: View model of the active group.
        bus: Event bus for notifications and typing events.
    """

    def __init__(self, session: Session, room: ChatRoom, bus: EventBus) -> None:
        self._session = session
        self._room = room
        self._bus = bus
        self._handlers = {
            MessageFrame: self._on_message,
            MemberJoinedFrame: self._on_member_joined,
            MemberLeftFrame: self._on_member_left,
            TypingFrame: self._on_typing,
            FileUploadedFrame: self._on_file_uploaded,
        }

    def dispatch(self, frame: InboundFrame) -> None:
        """Route a decoded frame.

        Algorithm:
            1. UnknownFrame: log and return.
            2. join/leave echoes: log and return.
            3. Frame for another group than the active one: log and return.
            4. Call the handler for the frame type.
        """
        if isinstance(frame, UnknownFrame):
            logger.warning("FrameDispatcher: ignoring unknown frame type %r", frame.type)
            return

        if isinstance(frame, (JoinFrame, LeaveFrame)):
            logger.debug("FrameDispatcher: ignoring client frame %s", type(frame).__name__)
            return

        active_group_id = self._session.active_group_id
        if active_group_id is None or frame.group_id != active_group_id:
            logger.debug(
                "FrameDispatcher: %s for group %s ignored (active %s)",
                type(frame).__name__,
                frame.group_id,
                active_group_id,
            )
            return

        self._handlers[type(frame)](frame)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_message(self, frame: MessageFrame) -> None:
        if frame.client_id is not None and self._room.find_by_client_id(frame.client_id) is not None:
            self._room.confirm(
                frame.client_id,
                message_id=frame.id,
                timestamp=frame.timestamp,
                sender_name=frame.sender_name,
            )
            return

        self._room.add_message(
            ChatMessage(
                id=frame.id,
                group_id=frame.group_id,
                user_id=frame.user_id,
                sender_name=frame.sender_name or "MEMBER",
                content=frame.content,
                timestamp=frame.timestamp,
                client_id=frame.client_id,
                status=MessageStatus.CONFIRMED,
                attachments=list(frame.attachments),
            )
        )

    def _on_member_joined(self, frame: MemberJoinedFrame) -> None:
        member = self._room.set_member_online(frame.user_id, True)
        name = frame.user_name or (member.name if member else frame.user_id)
        self._bus.publish("notification", Notification("info", f"{name} joined the group"))

    def _on_member_left(self, frame: MemberLeftFrame) -> None:
        member = self._room.set_member_online(frame.user_id, False)
        name = frame.user_name or (member.name if member else frame.user_id)
        self._bus.publish("notification", Notification("info", f"{name} left the group"))

    def _on_typing(self, frame: TypingFrame) -> None:
        if frame.user_id == self._session.user_id:
            return
        self._room.set_typing(frame.user_id, frame.user_name or frame.user_id)
        self._bus.publish("typing", frame)

    def _on_file_uploaded(self, frame: FileUploadedFrame) -> None:
        file = FileInfo.from_record(frame.file)
        self._room.add_file(file)
        self._bus.publish("notification", Notification("info", f"Uploaded: {file.name}"))
