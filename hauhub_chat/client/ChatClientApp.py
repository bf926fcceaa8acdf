"""Chat client orchestrator: transport + dispatcher + composer + group switcher.

ChatClientApp is the one context object of a chat page. It is created once,
owns every chat component and is passed explicitly to whatever needs it.

Wiring:
- ChatTransport.on_frame → FrameDispatcher.dispatch
- ChatTransport.on_open  → GroupSwitcher.rejoin (join the active group)
- ConnectionState leaves ``open`` → GroupSwitcher.connection_lost and
  MessageComposer.fail_pending (unconfirmed messages become retryable)
"""

import asyncio
import logging
from typing import Any

import requests

from hauhub_chat.ChatConfig import derive_api_url, derive_ws_url
from hauhub_chat.ConnectionState import ConnectionState
from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatApi import ChatApi
from hauhub_chat.client.ChatRoom import ChatRoom
from hauhub_chat.client.ChatTransport import ChatTransport, Connector, Sleep
from hauhub_chat.client.FileUploader import FileUploader
from hauhub_chat.client.FrameDispatcher import FrameDispatcher
from hauhub_chat.client.GroupSwitcher import GroupSwitcher
from hauhub_chat.client.MessageComposer import MessageComposer
from hauhub_chat.client.RetryPolicy import RetryPolicy
from hauhub_chat.types import Notification, Session

logger = logging.getLogger(__name__)


class ChatClientApp:
    """Owns and wires every component of one chat client.

    Args:
        config: Application configuration dict (see ChatConfig.DEFAULT_CONFIG).
        user_id: Id of the local user.
        token: Optional bearer token for the REST API.
        api: REST client; built from config when omitted.
        connector: WebSocket connector passed to ChatTransport (tests inject fakes).
        sleep: Reconnect sleep passed to ChatTransport.
        verbose: Enable verbose event bus logging.
    """

    def __init__(
        self,
        config: dict[str, Any],
        user_id: str,
        token: str | None = None,
        api: ChatApi | None = None,
        connector: Connector | None = None,
        sleep: Sleep = asyncio.sleep,
        verbose: bool = False,
    ) -> None:
        server = config["server"]
        self._config = config
        self.ws_url = derive_ws_url(server["origin"], server.get("ws_path", "/ws"))

        self.bus = EventBus(verbose=verbose)
        self.session = Session(user_id=user_id)
        self.connection_state = ConnectionState()

        self.api = api or ChatApi(
            derive_api_url(server["origin"], server.get("api_path", "/api")),
            token=token,
            timeout=server.get("request_timeout", 10.0),
        )

        self.transport = ChatTransport(
            state=self.connection_state,
            policy=RetryPolicy.from_config(config),
            connector=connector,
            sleep=sleep,
            open_timeout=server.get("open_timeout", 10.0),
        )

        self.room = ChatRoom(self.bus)
        self.dispatcher = FrameDispatcher(self.session, self.room, self.bus)
        self.composer = MessageComposer(self.session, self.room, self.transport, self.api, self.bus)
        self.uploader = FileUploader(self.session, self.transport, self.api, self.bus, config)
        self.switcher = GroupSwitcher(
            self.session,
            self.room,
            self.transport,
            self.api,
            self.bus,
            page_size=config.get("history", {}).get("page_size", 50),
        )

        self.transport.on_frame(self.dispatcher.dispatch)
        self.transport.on_open(self.switcher.rejoin)
        self.connection_state.register_observer(self._on_connection_state)

    async def load_session(self) -> bool:
        """Load the local user's identity once at startup.

        Returns:
            True if the identity provider answered; on failure the session keeps only its id.
        """
        try:
            record = await asyncio.to_thread(self.api.fetch_user, self.session.user_id)
            self.session.apply_user_record(record)
        except (requests.RequestException, ValueError):
            logger.exception("ChatClientApp: could not load user %s", self.session.user_id)
            self.bus.publish("notification", Notification("error", "Could not load user profile"))
            return False
        return True

    async def start(self, group_id: str) -> None:
        """Load the user, start the transport supervisor and switch to group_id.

        The transport connects concurrently with the group load; whichever
        finishes last sends the ``join``.
        """
        await self.load_session()
        self.transport.connect(self.ws_url)
        await self.switcher.switch_to(group_id)
        logger.info("ChatClientApp[%s]: started in group %s", self.session.user_id, group_id)

    async def stop(self) -> None:
        """Leave the active group and close the transport."""
        await self.switcher.leave()
        await self.transport.stop()
        logger.info("ChatClientApp[%s]: stopped", self.session.user_id)

    def _on_connection_state(self, old_state: str, new_state: str) -> None:
        self.bus.publish("connection_state", (old_state, new_state))
        if old_state == "open":
            self.switcher.connection_lost()
            if new_state != "closed":
                self.composer.fail_pending()
