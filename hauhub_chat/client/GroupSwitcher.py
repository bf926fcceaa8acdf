"""Group switch state machine: leave the old group, load the new one, join it.

States:
- idle(group)     settled on group (None before the first switch or after a failed load)
- leaving(old)    sending ``leave`` for the joined group
- joining(new)    fetching the new group's data, then sending ``join``

Each switch_to() call takes a new generation number. A newer call
supersedes every older one: the older call stops at its next checkpoint,
its fetched data is discarded and it never sends ``join``.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Literal

import requests

from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatApi import ChatApi
from hauhub_chat.client.ChatRoom import ChatRoom
from hauhub_chat.client.ChatTransport import ChatTransport
from hauhub_chat.network.types import JoinFrame, LeaveFrame
from hauhub_chat.types import ChatMessage, FileInfo, GroupInfo, Member, Notification, Session

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SwitchState:
    phase: Literal["idle", "leaving", "joining"]
    group_id: str | None


class GroupSwitcher:
    """Moves the session between groups.

    Args:
        session: Local user; active_group_id is updated here only.
        room: View model reloaded on every switch.
        transport: Transport carrying join/leave frames.
        api: REST client providing group, history, member and file data.
        bus: Event bus for notifications and ``group_switched``.
        page_size: Number of history messages fetched per switch.
    """

    def __init__(
        self,
        session: Session,
        room: ChatRoom,
        transport: ChatTransport,
        api: ChatApi,
        bus: EventBus,
        page_size: int = 50,
    ) -> None:
        self._session = session
        self._room = room
        self._transport = transport
        self._api = api
        self._bus = bus
        self._page_size = page_size
        self._generation = 0
        self._joined_group_id: str | None = None
        self._state = SwitchState("idle", None)

    @property
    def state(self) -> SwitchState:
        return self._state

    @property
    def joined_group_id(self) -> str | None:
        return self._joined_group_id

    async def switch_to(self, group_id: str) -> bool:
        """Switch the session to group_id.

        Algorithm:
            1. leaving(old): send ``leave`` for the joined group, clear the active group.
            2. joining(new): fetch group, history, members and files concurrently.
            3. If superseded at any checkpoint: return without touching state.
            4. Load the room, set the active group, send ``join``, idle(new).

        Returns:
            True if this call completed the switch; False if it failed or was superseded.
        """
        self._generation += 1
        generation = self._generation

        old_group_id = self._joined_group_id
        self._set_state("leaving", old_group_id)
        self._session.active_group_id = None
        if old_group_id is not None:
            self._joined_group_id = None
            await self._transport.send(LeaveFrame(group_id=old_group_id, user_id=self._session.user_id))

        if generation != self._generation:
            return False

        self._set_state("joining", group_id)
        try:
            group, messages, members, files = await self._fetch(group_id)
        except (requests.RequestException, KeyError, TypeError, ValueError):
            if generation != self._generation:
                logger.info("GroupSwitcher: superseded switch to %s failed, ignoring", group_id)
                return False
            logger.exception("GroupSwitcher: could not load group %s", group_id)
            self._room.clear()
            self._set_state("idle", None)
            self._bus.publish("notification", Notification("error", "Could not load group"))
            return False

        if generation != self._generation:
            logger.info("GroupSwitcher: discarding late data for superseded group %s", group_id)
            return False

        self._room.load(group, messages, members, files)
        self._session.active_group_id = group_id
        await self._join(group_id)
        if generation != self._generation:
            logger.info("GroupSwitcher: switch to %s superseded while joining", group_id)
            return False

        self._set_state("idle", group_id)
        self._bus.publish("group_switched", group)
        return True

    async def rejoin(self) -> bool:
        """Send ``join`` for the active group after the transport (re)opens."""
        group_id = self._session.active_group_id
        if group_id is None:
            return False
        return await self._join(group_id)

    async def leave(self) -> None:
        """Leave the joined group without joining another one."""
        self._generation += 1
        group_id = self._joined_group_id
        self._joined_group_id = None
        self._session.active_group_id = None
        self._set_state("idle", None)
        if group_id is not None:
            await self._transport.send(LeaveFrame(group_id=group_id, user_id=self._session.user_id))

    def connection_lost(self) -> None:
        """Forget the server-side membership; the server drops it with the socket."""
        self._joined_group_id = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _join(self, group_id: str) -> bool:
        self._joined_group_id = group_id
        sent = await self._transport.send(JoinFrame(group_id=group_id, user_id=self._session.user_id))
        if not sent and self._joined_group_id == group_id:
            self._joined_group_id = None
        return sent

    async def _fetch(self, group_id: str) -> tuple[GroupInfo, list[ChatMessage], list[Member], list[FileInfo]]:
        group_record, message_records, member_records, file_records = await asyncio.gather(
            asyncio.to_thread(self._api.fetch_group, group_id),
            asyncio.to_thread(self._api.fetch_group_messages, group_id, self._page_size, 0),
            asyncio.to_thread(self._api.fetch_group_members, group_id),
            asyncio.to_thread(self._api.fetch_group_files, group_id),
        )
        return (
            GroupInfo.from_record(group_record),
            [ChatMessage.from_record(record) for record in message_records],
            [Member.from_record(record) for record in member_records if str(record.get("id")) != self._session.user_id],
            [FileInfo.from_record(record) for record in file_records],
        )

    def _set_state(self, phase: Literal["idle", "leaving", "joining"], group_id: str | None) -> None:
        self._state = SwitchState(phase, group_id)
        logger.debug("GroupSwitcher: %s(%s)", phase, group_id)
