"""Tests for ChatTransport: supervised connect, reconnect timing, receive loop, send."""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError, InvalidURI

from hauhub_chat.ConnectionState import ConnectionState
from hauhub_chat.client.ChatTransport import ChatTransport
from hauhub_chat.client.RetryPolicy import RetryPolicy
from hauhub_chat.network.types import JoinFrame, MessageFrame

URL = "wss://hub.test/ws"

_CLOSE = object()


class _FakeWebSocket:
    """In-memory websocket: yields queued messages, ends the iteration on _CLOSE."""

    def __init__(self, *messages, close: bool = False) -> None:
        self.incoming: asyncio.Queue = asyncio.Queue()
        for message in messages:
            self.incoming.put_nowait(message)
        if close:
            self.incoming.put_nowait(_CLOSE)
        self.sent: list[str] = []
        self.closed = False

    def drop(self) -> None:
        self.incoming.put_nowait(_CLOSE)

    async def send(self, text: str) -> None:
        if self.closed:
            raise ConnectionClosedError(None, None)
        self.sent.append(text)

    async def close(self) -> None:
        self.closed = True
        self.incoming.put_nowait(_CLOSE)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self.incoming.get()
        if item is _CLOSE:
            self.closed = True
            raise ConnectionClosedError(None, None)
        return item


class _BrokenWebSocket(_FakeWebSocket):
    """Websocket whose iteration fails with a non-close error."""

    async def __anext__(self):
        raise RuntimeError("protocol state corrupted")


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.delays.append(delay)
        self.now += delay
        await asyncio.sleep(0)


class _Connector:
    """Returns the scripted outcomes in order; exceptions are raised.

    Once the script is exhausted every further call returns a websocket that
    stays open.
    """

    def __init__(self, clock: _FakeClock, outcomes=()) -> None:
        self._clock = clock
        self._outcomes = list(outcomes)
        self.calls: list[float] = []
        self.websockets: list[_FakeWebSocket] = []

    async def __call__(self, url: str):
        assert url == URL
        self.calls.append(self._clock.now)
        outcome = self._outcomes.pop(0) if self._outcomes else _FakeWebSocket()
        if isinstance(outcome, BaseException):
            raise outcome
        self.websockets.append(outcome)
        return outcome


async def _settle(predicate, rounds: int = 500) -> None:
    for _ in range(rounds):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


def _make_transport(policy: RetryPolicy, outcomes=()):
    clock = _FakeClock()
    connector = _Connector(clock, outcomes)
    state = ConnectionState()
    transitions: list[str] = []
    state.register_observer(lambda old, new: transitions.append(new))
    transport = ChatTransport(state, policy, connector=connector, sleep=clock.sleep)
    return transport, connector, clock, transitions


def _message_text(content: str = "hi") -> str:
    return json.dumps({
        "type": "message", "groupId": "g1", "userId": "u2", "content": content, "timestamp": "2024-03-04T10:00:00Z",
    })


class TestLegacyReconnect:
    def test_each_drop_reconnects_after_five_seconds(self) -> None:
        async def scenario():
            drops = 3
            transport, connector, clock, _ = _make_transport(
                RetryPolicy.legacy(), [_FakeWebSocket(close=True) for _ in range(drops)]
            )
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == drops + 1 and transport.is_open())
            await transport.stop()
            return connector, clock

        connector, clock = asyncio.run(scenario())

        assert clock.delays == [5.0, 5.0, 5.0]
        assert connector.calls == [0.0, 5.0, 10.0, 15.0]

    def test_keeps_retrying_without_cap(self) -> None:
        async def scenario():
            transport, connector, clock, transitions = _make_transport(
                RetryPolicy.legacy(), [OSError("refused") for _ in range(20)]
            )
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == 21 and transport.is_open(), rounds=2000)
            await transport.stop()
            return connector, clock, transitions

        connector, clock, transitions = asyncio.run(scenario())

        assert clock.delays == [5.0] * 20
        assert "failed" not in transitions
        assert transitions[-2:] == ["open", "closed"]


class TestBackoffReconnect:
    def test_gives_up_after_max_attempts(self) -> None:
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=30.0, jitter=0.0, max_attempts=3)

        async def scenario():
            transport, connector, clock, transitions = _make_transport(
                policy, [OSError("refused") for _ in range(10)]
            )
            await transport.run(URL)
            return transport, clock, transitions

        transport, clock, transitions = asyncio.run(scenario())

        assert transport.connect_attempts == 4
        assert clock.delays == [1.0, 2.0, 4.0]
        assert transport.state.get_state() == "failed"
        assert transitions[-1] == "failed"

    def test_successful_open_resets_attempt_counter(self) -> None:
        policy = RetryPolicy(base_delay=1.0, multiplier=2.0, max_delay=30.0, jitter=0.0, max_attempts=3)

        async def scenario():
            transport, connector, clock, _ = _make_transport(
                policy,
                [OSError("refused"), OSError("refused"), _FakeWebSocket(close=True), OSError("refused")],
            )
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == 5 and transport.is_open())
            await transport.stop()
            return clock

        clock = asyncio.run(scenario())

        assert clock.delays == [1.0, 2.0, 1.0, 2.0]

    def test_timeout_counts_as_failed_attempt(self) -> None:
        policy = RetryPolicy(base_delay=1.0, multiplier=1.0, max_delay=1.0, jitter=0.0, max_attempts=1)

        async def scenario():
            transport, _, clock, _ = _make_transport(policy, [asyncio.TimeoutError(), asyncio.TimeoutError()])
            await transport.run(URL)
            return transport, clock

        transport, clock = asyncio.run(scenario())

        assert transport.connect_attempts == 2
        assert transport.state.get_state() == "failed"


class TestLifecycle:
    def test_state_sequence_across_a_drop(self) -> None:
        async def scenario():
            transport, connector, _, transitions = _make_transport(RetryPolicy.legacy(), [_FakeWebSocket(close=True)])
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == 2 and transport.is_open())
            await transport.stop()
            return transitions

        transitions = asyncio.run(scenario())

        assert transitions == ["connecting", "open", "reconnecting", "connecting", "open", "closed"]

    def test_open_callbacks_run_on_every_open(self) -> None:
        async def scenario():
            transport, connector, _, _ = _make_transport(RetryPolicy.legacy(), [_FakeWebSocket(close=True)])

            async def join():
                await transport.send(JoinFrame(group_id="g1", user_id="u1"))

            transport.on_open(join)
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == 2 and transport.is_open())
            await transport.stop()
            return connector

        connector = asyncio.run(scenario())

        for websocket in connector.websockets:
            assert [json.loads(text)["type"] for text in websocket.sent] == ["join"]

    def test_stop_closes_websocket_and_supervisor(self) -> None:
        async def scenario():
            transport, connector, _, _ = _make_transport(RetryPolicy.legacy())
            task = transport.connect(URL)
            await _settle(transport.is_open)
            await transport.stop()
            return transport, connector, task

        transport, connector, task = asyncio.run(scenario())

        assert task.done()
        assert connector.websockets[0].closed
        assert transport.state.get_state() == "closed"
        assert not transport.is_open()

    def test_connect_twice_raises(self) -> None:
        async def scenario():
            transport, _, _, _ = _make_transport(RetryPolicy.legacy())
            transport.connect(URL)
            try:
                with pytest.raises(RuntimeError):
                    transport.connect(URL)
            finally:
                await transport.stop()

        asyncio.run(scenario())

    def test_invalid_uri_fails_without_retry(self) -> None:
        async def scenario():
            transport, connector, clock, _ = _make_transport(
                RetryPolicy.legacy(), [InvalidURI("hub.test/ws", "scheme isn't ws or wss")]
            )
            with pytest.raises(InvalidURI):
                await transport.run(URL)
            return transport, clock

        transport, clock = asyncio.run(scenario())

        assert transport.state.get_state() == "failed"
        assert clock.delays == []


class TestReceive:
    def test_frames_delivered_in_arrival_order(self) -> None:
        async def scenario():
            websocket = _FakeWebSocket(_message_text("one"), _message_text("two"))
            transport, _, _, _ = _make_transport(RetryPolicy.legacy(), [websocket])
            received = []
            transport.on_frame(received.append)
            transport.connect(URL)
            await _settle(lambda: len(received) == 2)
            await transport.stop()
            return received

        received = asyncio.run(scenario())

        assert [frame.content for frame in received] == ["one", "two"]
        assert all(isinstance(frame, MessageFrame) for frame in received)

    def test_bad_frames_and_failing_handlers_do_not_close_connection(self) -> None:
        async def scenario():
            websocket = _FakeWebSocket("not json", b"\x00\x01", json.dumps({"type": "message"}), _message_text("ok"))
            transport, connector, _, _ = _make_transport(RetryPolicy.legacy(), [websocket])

            def broken_handler(frame):
                raise RuntimeError("render failed")

            received = []
            transport.on_frame(broken_handler)
            transport.on_frame(received.append)
            transport.connect(URL)
            await _settle(lambda: len(received) == 1)
            still_open = transport.is_open()
            await transport.stop()
            return received, still_open, connector

        received, still_open, connector = asyncio.run(scenario())

        assert [frame.content for frame in received] == ["ok"]
        assert still_open
        assert len(connector.calls) == 1


    def test_socket_closed_before_reconnect_after_receive_error(self) -> None:
        async def scenario():
            transport, connector, clock, _ = _make_transport(RetryPolicy.legacy(), [_BrokenWebSocket()])
            transport.connect(URL)
            await _settle(lambda: len(connector.calls) == 2 and transport.is_open())
            first_closed = connector.websockets[0].closed
            await transport.stop()
            return first_closed, clock

        first_closed, clock = asyncio.run(scenario())

        assert first_closed
        assert clock.delays == [5.0]


class TestSend:
    def test_send_before_connect_returns_false(self) -> None:
        transport, _, _, _ = _make_transport(RetryPolicy.legacy())
        assert asyncio.run(transport.send(JoinFrame(group_id="g1", user_id="u1"))) is False

    def test_send_encodes_frame_as_json(self) -> None:
        async def scenario():
            transport, connector, _, _ = _make_transport(RetryPolicy.legacy())
            transport.connect(URL)
            await _settle(transport.is_open)
            sent = await transport.send(JoinFrame(group_id="g1", user_id="u1"))
            await transport.stop()
            return sent, connector.websockets[0].sent

        sent, texts = asyncio.run(scenario())

        assert sent is True
        assert json.loads(texts[0]) == {"type": "join", "groupId": "g1", "userId": "u1"}

    def test_send_on_closed_socket_returns_false(self) -> None:
        async def scenario():
            transport, connector, _, _ = _make_transport(RetryPolicy.legacy())
            transport.connect(URL)
            await _settle(transport.is_open)
            connector.websockets[0].closed = True
            sent = await transport.send(JoinFrame(group_id="g1", user_id="u1"))
            await transport.stop()
            return sent

        assert asyncio.run(scenario()) is False
