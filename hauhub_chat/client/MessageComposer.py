"""Outbound chat messages: optimistic render, transport send, HTTP fallback.

Each submitted message gets a client-generated correlation id (``clientId``)
and is shown immediately as PENDING. It becomes CONFIRMED when the server
echo with the same clientId arrives (see FrameDispatcher) or the HTTP
fallback returns, and FAILED when the fallback raises or the connection
drops before the echo. FAILED messages can be retried.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable

import requests

from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatApi import ChatApi
from hauhub_chat.client.ChatRoom import ChatRoom
from hauhub_chat.client.ChatTransport import ChatTransport
from hauhub_chat.network.codec import frame_to_dict
from hauhub_chat.network.types import MessageFrame, TypingFrame
from hauhub_chat.types import ChatMessage, MessageStatus, Notification, Session

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MessageComposer:
    """Turns user input into message frames and tracks their delivery.

    Args:
        session: Local user and active group.
        room: View model receiving the optimistic copy.
        transport: WebSocket transport (primary path).
        api: REST client (fallback path when the transport is not open).
        bus: Event bus for error notifications.
        clock: Returns the current time; injectable for tests.
        id_factory: Returns a new correlation id; injectable for tests.
    """

    def __init__(
        self,
        session: Session,
        room: ChatRoom,
        transport: ChatTransport,
        api: ChatApi,
        bus: EventBus,
        clock: Callable[[], datetime] = utc_now,
        id_factory: Callable[[], str] = lambda: uuid.uuid4().hex,
    ) -> None:
        self._session = session
        self._room = room
        self._transport = transport
        self._api = api
        self._bus = bus
        self._clock = clock
        self._id_factory = id_factory

    async def submit(self, text: str) -> ChatMessage | None:
        """Send user input as a chat message.

        Algorithm:
            1. Trim; empty input is a no-op.
            2. No active group: publish an error notification.
            3. Build a message frame with clientId and client timestamp.
            4. Add a PENDING copy to the room (before any network await).
            5. Deliver via transport, falling back to HTTP.

        Returns:
            The local message, or None if nothing was sent.
        """
        content = text.strip()
        if not content:
            return None

        group_id = self._session.active_group_id
        if group_id is None:
            self._bus.publish("notification", Notification("error", "Chat group not found"))
            return None

        frame = MessageFrame(
            group_id=group_id,
            user_id=self._session.user_id,
            content=content,
            timestamp=self._clock().isoformat(timespec="milliseconds"),
            client_id=self._id_factory(),
        )
        message = ChatMessage(
            group_id=frame.group_id,
            user_id=frame.user_id,
            sender_name=self._session.display_name or self._session.username,
            content=frame.content,
            timestamp=frame.timestamp,
            client_id=frame.client_id,
            status=MessageStatus.PENDING,
        )
        self._room.add_message(message)

        await self._deliver(frame)
        return message

    async def retry(self, client_id: str) -> bool:
        """Resend a FAILED message, moving it back to PENDING.

        Returns:
            True if a resend was attempted.
        """
        message = self._room.find_by_client_id(client_id)
        if message is None or message.status is not MessageStatus.FAILED:
            logger.debug("MessageComposer: nothing to retry for %s", client_id)
            return False

        self._room.set_status(client_id, MessageStatus.PENDING)
        frame = MessageFrame(
            group_id=message.group_id,
            user_id=message.user_id,
            content=message.content,
            timestamp=message.timestamp,
            client_id=client_id,
            attachments=list(message.attachments),
        )
        await self._deliver(frame)
        return True

    def fail_pending(self) -> int:
        """Mark every PENDING message as FAILED (the connection dropped before the echo).

        Returns:
            Number of messages marked.
        """
        pending = self._room.pending_messages()
        for message in pending:
            self._room.set_status(message.client_id, MessageStatus.FAILED)
        if pending:
            logger.warning("MessageComposer: %d unconfirmed messages marked failed", len(pending))
        return len(pending)

    async def send_typing(self) -> bool:
        """Announce that the local user is typing; dropped when not connected."""
        group_id = self._session.active_group_id
        if group_id is None:
            return False
        frame = TypingFrame(
            group_id=group_id,
            user_id=self._session.user_id,
            user_name=self._session.display_name or self._session.username,
            timestamp=self._clock().isoformat(timespec="milliseconds"),
        )
        return await self._transport.send(frame)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _deliver(self, frame: MessageFrame) -> None:
        if await self._transport.send(frame):
            return

        logger.info("MessageComposer: transport not open, sending %s over HTTP", frame.client_id)
        try:
            record = await asyncio.to_thread(self._api.send_message, frame_to_dict(frame))
        except requests.RequestException:
            logger.exception("MessageComposer: HTTP fallback failed for %s", frame.client_id)
            self._room.set_status(frame.client_id, MessageStatus.FAILED)
            self._bus.publish("notification", Notification("error", "Could not send message"))
            return

        message_id = record.get("id") if isinstance(record, dict) else None
        self._room.confirm(
            frame.client_id,
            message_id=str(message_id) if message_id is not None else None,
            timestamp=record.get("timestamp") if isinstance(record, dict) else None,
        )
