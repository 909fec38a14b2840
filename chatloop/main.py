"""Websocket bridge that drives one orchestrated session for a backend."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import signal
import sys
from typing import Any

import websockets
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .config import SessionConfig
from .entries import Entry
from .errors import ConfigurationError
from .session import SessionOrchestrator

logger = logging.getLogger("chatloop")

BACKEND_WS_URL = os.environ.get(
    "BACKEND_WS_URL", "ws://host.docker.internal:3001/internal/ws"
)
CONTAINER_TOKEN = os.environ.get("CONTAINER_TOKEN", "")
MAX_RECONNECT_ATTEMPTS = 5


class BridgeSession:
    """Manages the WebSocket connection and the orchestrator lifecycle."""

    def __init__(self, ws_url: str, token: str) -> None:
        self.ws_url = ws_url
        self.token = token
        self.ws: Any = None
        self.orchestrator: SessionOrchestrator | None = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()
        self._tasks: set[asyncio.Task] = set()
        self._shutdown = False

    async def run(self) -> None:
        """Connect to backend and process messages."""
        url = f"{self.ws_url}?token={self.token}"
        logger.info("Connecting to backend: %s", self.ws_url)

        async with websockets.connect(url) as ws:
            self.ws = ws
            writer = asyncio.create_task(self._drain_outbox())
            try:
                await ws.send(json.dumps({"type": "ready"}))
                logger.info("Bridge ready, waiting for messages...")
                async for raw in ws:
                    if self._shutdown:
                        break
                    await self._handle_message(raw)
            finally:
                writer.cancel()
                if self.orchestrator is not None:
                    self.orchestrator.close()

    def _enqueue(self, payload: str) -> None:
        """Event sink: never blocks the streaming turn."""
        self._outbox.put_nowait(payload)

    async def _drain_outbox(self) -> None:
        while True:
            payload = await self._outbox.get()
            try:
                await self.ws.send(payload)
            except websockets.ConnectionClosed:
                logger.warning("WebSocket closed while sending event")
                return

    async def _handle_message(self, raw: str | bytes) -> None:
        """Dispatch an incoming WebSocket message."""
        try:
            msg = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON received: %s", raw[:200])
            return

        msg_type = msg.get("type", "")

        if msg_type == "init":
            await self._handle_init(msg)
        elif msg_type == "user_message":
            await self._handle_user_message(msg)
        elif msg_type == "tool_result":
            await self._handle_tool_result(msg)
        elif msg_type == "cancel":
            self._handle_cancel()
        elif msg_type == "finalize":
            self._handle_finalize()
        elif msg_type == "clear_history":
            self._handle_clear_history()
        elif msg_type == "truncate_history":
            self._handle_truncate_history(msg)
        else:
            logger.warning("Unknown message type: %s", msg_type)

    async def _handle_init(self, msg: dict) -> None:
        try:
            config = SessionConfig(msg)
            self.orchestrator = SessionOrchestrator(config, sink=self._enqueue)
        except ConfigurationError as exc:
            logger.error("Invalid session config: %s", exc)
            await self._send_error(exc.code, str(exc))
            return
        logger.info(
            "Initialized session %s (provider=%s, model=%s)",
            self.orchestrator.session_id,
            config.provider,
            config.model,
        )

    async def _handle_user_message(self, msg: dict) -> None:
        content = msg.get("content", "")
        if not content:
            return
        if self.orchestrator is None:
            await self._send_error("not_initialized", "Session not initialized")
            return
        self._spawn(self.orchestrator.submit_user_turn(
            [Entry.user(content)], sink=self._enqueue,
        ))

    async def _handle_tool_result(self, msg: dict) -> None:
        if self.orchestrator is None:
            await self._send_error("not_initialized", "Session not initialized")
            return
        call_id = str(msg.get("call_id") or "").strip()
        if not call_id:
            await self._send_error("invalid_tool_result", "Missing call_id")
            return
        self._spawn(self.orchestrator.submit_tool_result(
            call_id,
            str(msg.get("name", "")),
            str(msg.get("output", "")),
            bool(msg.get("success", True)),
        ))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _handle_cancel(self) -> None:
        logger.info("Cancel received")
        if self.orchestrator:
            self.orchestrator.cancel()

    def _handle_finalize(self) -> None:
        if self.orchestrator:
            self.orchestrator.finalize_interaction()

    def _handle_clear_history(self) -> None:
        if self.orchestrator is None:
            logger.warning("clear_history received before init")
            return
        self.orchestrator.clear_history()

    def _handle_truncate_history(self, msg: dict) -> None:
        if self.orchestrator is None:
            logger.warning("truncate_history received before init")
            return
        keep_turns = int(msg.get("keep_turns", 0) or 0)
        removed = self.orchestrator.truncate_history(keep_turns)
        logger.info("Truncated history: keep_turns=%d, removed %d entries", keep_turns, removed)

    async def _send_error(self, code: str, message: str) -> None:
        """Queue an error frame behind any events already waiting to be sent."""
        self._enqueue(json.dumps({
            "type": "error",
            "code": code,
            "message": message,
        }))

    def shutdown(self) -> None:
        """Signal graceful shutdown."""
        self._shutdown = True
        self._handle_cancel()


async def main() -> None:
    """Entry point with reconnection logic."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )

    session = BridgeSession(BACKEND_WS_URL, CONTAINER_TOKEN)

    loop = asyncio.get_running_loop()
    if sys.platform != "win32":
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, session.shutdown)

    @retry(
        retry=retry_if_exception_type(
            (websockets.ConnectionClosedError, ConnectionRefusedError)
        ),
        stop=stop_after_attempt(MAX_RECONNECT_ATTEMPTS),
        wait=wait_exponential(multiplier=1, min=1, max=30),
        reraise=True,
    )
    async def _connect_with_retry() -> None:
        await session.run()

    try:
        await _connect_with_retry()
    except (websockets.ConnectionClosedError, ConnectionRefusedError):
        logger.error("Max reconnection attempts reached, exiting")
        sys.exit(1)
    except asyncio.CancelledError:
        logger.info("Shutting down")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
