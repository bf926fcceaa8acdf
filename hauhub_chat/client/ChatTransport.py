"""Reconnecting WebSocket transport for the group chat client.

One supervisor coroutine owns the connection: it connects, runs the receive
loop until the socket closes, then waits according to RetryPolicy and
connects again with a fresh websocket. Every transition is reported through
ConnectionState so callers observe `connecting -> open -> reconnecting ...`
instead of timers.

Inbound JSON text frames are decoded with the network codec and handed to
the registered frame handlers in arrival order.
"""

import asyncio
import functools
import logging
from typing import Any, Awaitable, Callable

from websockets.exceptions import ConnectionClosed, InvalidURI, WebSocketException

from hauhub_chat.ConnectionState import ConnectionState
from hauhub_chat.client.RetryPolicy import RetryPolicy
from hauhub_chat.network.codec import decode_frame, encode_frame
from hauhub_chat.network.types import Frame, InboundFrame

logger = logging.getLogger(__name__)

FrameHandler = Callable[[InboundFrame], None]
OpenCallback = Callable[[], Awaitable[None]]
Connector = Callable[[str], Awaitable[Any]]
Sleep = Callable[[float], Awaitable[None]]


async def _websockets_connect(url: str, open_timeout: float) -> Any:
    import websockets

    return await websockets.connect(url, open_timeout=open_timeout)


class ChatTransport:
    """Supervised WebSocket connection with automatic reconnect.

    Args:
        state: Connection state machine driven by this transport.
        policy: Reconnect delay policy.
        connector: Coroutine function ``(url) -> websocket``; defaults to
            ``websockets.connect``. The returned object must support async
            ``send(str)``, ``close()`` and async iteration.
        sleep: Coroutine function used to wait between attempts; injectable
            so tests can use a fake clock.
        open_timeout: Seconds allowed for the opening handshake (default connector only).
    """

    def __init__(
        self,
        state: ConnectionState,
        policy: RetryPolicy,
        connector: Connector | None = None,
        sleep: Sleep = asyncio.sleep,
        open_timeout: float = 10.0,
    ) -> None:
        self._state = state
        self._policy = policy
        self._connector = connector or functools.partial(_websockets_connect, open_timeout=open_timeout)
        self._sleep = sleep
        self._frame_handlers: list[FrameHandler] = []
        self._open_callbacks: list[OpenCallback] = []
        self._websocket: Any = None
        self._supervisor: asyncio.Task | None = None
        self._stopping = False
        self.connect_attempts = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    def is_open(self) -> bool:
        return self._websocket is not None and self._state.is_open()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_frame(self, handler: FrameHandler) -> None:
        """Register a callback invoked once per decoded inbound frame."""
        self._frame_handlers.append(handler)

    def on_open(self, callback: OpenCallback) -> None:
        """Register a coroutine function awaited each time the connection opens."""
        self._open_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, url: str) -> asyncio.Task:
        """Start the supervisor as a task on the running loop.

        Returns:
            The supervisor task; it finishes on stop() or when the policy gives up.

        Raises:
            RuntimeError: If a supervisor is already running.
        """
        if self._supervisor is not None and not self._supervisor.done():
            raise RuntimeError("ChatTransport: already connected")
        self._supervisor = asyncio.get_running_loop().create_task(self.run(url))
        return self._supervisor

    async def run(self, url: str) -> None:
        """Connect and keep reconnecting until stop() or the retry policy gives up.

        Algorithm:
            1. State → connecting; open a new websocket.
            2. On success: reset the attempt counter, state → open, await on_open callbacks,
               run the receive loop until the socket closes.
            3. On failure or close (not stopping): attempt += 1; if the policy refuses,
               state → failed and return; else state → reconnecting, sleep policy.delay(attempt).
            4. Repeat from 1.

        Raises:
            InvalidURI: If url is not a WebSocket URL (state → failed).
        """
        self._stopping = False
        attempt = 0

        while not self._stopping:
            self._state.set_state("connecting")
            self.connect_attempts += 1
            try:
                websocket = await self._connector(url)
            except InvalidURI:
                logger.error("ChatTransport: invalid endpoint %s", url)
                self._state.set_state("failed")
                raise
            except (OSError, WebSocketException, asyncio.TimeoutError) as exc:
                logger.warning("ChatTransport: connection to %s failed: %s", url, exc)
            else:
                if self._stopping:
                    await websocket.close()
                    break
                self._websocket = websocket
                attempt = 0
                self._state.set_state("open")
                logger.info("ChatTransport: connected to %s", url)
                await self._run_open_callbacks()
                await self._receive_loop(websocket)
                self._websocket = None
                await self._close_websocket(websocket)

            if self._stopping:
                break

            attempt += 1
            if not self._policy.should_retry(attempt):
                logger.error("ChatTransport: giving up after %d reconnect attempts", attempt - 1)
                self._state.set_state("failed")
                return

            delay = self._policy.delay(attempt)
            self._state.set_state("reconnecting")
            logger.warning("ChatTransport: reconnecting in %.1fs (attempt %d)", delay, attempt)
            await self._sleep(delay)

        logger.info("ChatTransport: supervisor stopped")

    async def stop(self) -> None:
        """Cancel the supervisor, close the websocket and move to ``closed``."""
        self._stopping = True

        if self._state.get_state() != "closed":
            self._state.set_state("closed")

        supervisor = self._supervisor
        self._supervisor = None
        if supervisor is not None and supervisor is not asyncio.current_task():
            supervisor.cancel()
            try:
                await supervisor
            except asyncio.CancelledError:
                pass
            except Exception:
                logger.exception("ChatTransport: supervisor ended with an error")

        websocket = self._websocket
        self._websocket = None
        if websocket is not None:
            await self._close_websocket(websocket)

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send(self, frame: Frame) -> bool:
        """Encode and send a frame if the connection is open.

        Args:
            frame: Frame to send.

        Returns:
            True if the frame was handed to the websocket; False if the
            connection is not open or dropped during the send.
        """
        websocket = self._websocket
        if websocket is None or not self._state.is_open():
            logger.debug("ChatTransport: not open, dropping %s", type(frame).__name__)
            return False

        try:
            await websocket.send(encode_frame(frame))
        except ConnectionClosed:
            logger.warning("ChatTransport: connection closed while sending %s", type(frame).__name__)
            return False
        return True

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _close_websocket(self, websocket: Any) -> None:
        try:
            await websocket.close()
        except (OSError, WebSocketException):
            logger.debug("ChatTransport: error closing websocket", exc_info=True)

    async def _run_open_callbacks(self) -> None:
        for callback in list(self._open_callbacks):
            try:
                await callback()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("ChatTransport: on_open callback failed")

    async def _receive_loop(self, websocket: Any) -> None:
        """Iterate websocket text frames and dispatch them until the socket closes.

        Binary frames are logged and skipped; decode errors are logged and the
        frame is dropped. Returns normally on close so run() can reconnect.
        """
        try:
            async for message in websocket:
                if isinstance(message, str):
                    self._dispatch_text(message)
                else:
                    logger.debug("ChatTransport: unexpected binary frame, ignoring")
        except ConnectionClosed as exc:
            logger.warning("ChatTransport: connection closed: %s", exc)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("ChatTransport: unexpected error in receive loop")

    def _dispatch_text(self, text: str) -> None:
        try:
            frame = decode_frame(text)
        except ValueError as exc:
            logger.warning("ChatTransport: malformed frame dropped: %s", exc)
            return

        for handler in list(self._frame_handlers):
            try:
                handler(frame)
            except Exception:
                logger.exception("ChatTransport: frame handler failed for %s", type(frame).__name__)
