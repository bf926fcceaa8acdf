# tests/conftest.py
import asyncio
import copy
from unittest.mock import MagicMock

import pytest

from hauhub_chat.ChatConfig import DEFAULT_CONFIG
from hauhub_chat.EventBus import EventBus
from hauhub_chat.client.ChatRoom import ChatRoom
from hauhub_chat.types import Member, Session


class RecordingTransport:
    """Stand-in for ChatTransport: records frames instead of sending them.

    ``open`` decides whether send() succeeds; frames sent while closed are
    recorded in ``dropped``. An optional shared ``log`` list receives
    ``("send", FrameClassName, group_id)`` tuples for ordering assertions.
    """

    def __init__(self, open: bool = True, log: list | None = None) -> None:
        self.open = open
        self.sent: list = []
        self.dropped: list = []
        self.log = log if log is not None else []

    def is_open(self) -> bool:
        return self.open

    async def send(self, frame) -> bool:
        await asyncio.sleep(0)
        if not self.open:
            self.dropped.append(frame)
            return False
        self.sent.append(frame)
        self.log.append(("send", type(frame).__name__, frame.group_id))
        return True


@pytest.fixture
def config():
    """Provide the default configuration with a fixed test origin.

    Returns:
        Dict: Configuration dictionary matching production config structure
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg["server"]["origin"] = "https://hub.test"
    return cfg


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def notifications(bus):
    """Collect every Notification published on the bus."""
    collected: list = []
    bus.subscribe("notification", collected.append)
    return collected


@pytest.fixture
def session():
    """Session of user u1 with g1 active."""
    return Session(user_id="u1", username="student_24", display_name="Nguyen Van A", active_group_id="g1")


@pytest.fixture
def room(bus):
    """ChatRoom for group g1 with two members, u9 online and u3 offline."""
    from hauhub_chat.types import GroupInfo

    chat_room = ChatRoom(bus)
    chat_room.load(
        GroupInfo(id="g1", name="Studio A.01"),
        messages=[],
        members=[
            Member(id="u9", name="Tran Minh", is_online=True),
            Member(id="u3", name="Pham Hung", is_online=False),
        ],
        files=[],
    )
    return chat_room


@pytest.fixture
def transport():
    return RecordingTransport(open=True)


@pytest.fixture
def api():
    """Mock ChatApi (does not perform HTTP)."""
    mock_api = MagicMock()
    mock_api.send_message.return_value = {"id": "srv-1", "timestamp": "2024-03-04T10:00:00.000+00:00"}
    return mock_api


@pytest.fixture
def transport_factory():
    """Build RecordingTransport instances, optionally sharing an ordering log."""
    return RecordingTransport
