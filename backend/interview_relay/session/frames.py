from __future__ import annotations

import logging
from typing import Awaitable, Callable

from core.logger import log_event
from interview_relay.interview.history import HistoryBuffer
from interview_relay.schemas import (
    ConfigFrame,
    EndCallDirective,
    PingPongFrame,
    ResponseFrame,
    OutboundFrame,
)
from interview_relay.system_metrics import increment_metric

logger = logging.getLogger("session.frames")

SendFn = Callable[[dict], Awaitable[None]]


class OutboundFrameWriter:
    """
    Serializes frames onto the transport.

    Everything spoken as a complete frame is mirrored into the history as an assistant
    turn. Streamed chunks are not; the response generator appends the joined text once
    the stream finishes.
    """

    def __init__(self, send_fn: SendFn, history: HistoryBuffer, call_id: str = ""):
        self.send_fn = send_fn
        self.history = history
        self.call_id = call_id
        self.frames_sent = 0

    async def _write(self, frame: OutboundFrame) -> None:
        await self.send_fn(frame.to_wire())
        self.frames_sent += 1
        increment_metric("frames_sent_total", 1)

    async def send_config(self) -> None:
        await self._write(ConfigFrame())
        log_event("frames", "config_sent", self.call_id)

    async def send_ping_pong(self, timestamp: int | None = None) -> None:
        frame = PingPongFrame(timestamp=timestamp) if timestamp is not None else PingPongFrame()
        await self._write(frame)

    async def send_chunk(self, response_id: int, content: str) -> None:
        await self._write(ResponseFrame.chunk(response_id, content))

    async def send_completion(self, response_id: int) -> None:
        await self._write(ResponseFrame.completion(response_id))

    async def speak(self, response_id: int, content: str, ending: EndCallDirective | None = None) -> ResponseFrame:
        frame = ResponseFrame.complete(response_id, content, ending)
        await self._write(frame)
        self.history.add_assistant(content)
        if ending is not None:
            logger.info(
                "End-of-call frame sent | call_id=%s response_id=%s reason=%s mode=%s",
                self.call_id,
                response_id,
                ending.reason.value,
                ending.mode.value,
            )
            log_event(
                "frames",
                "end_call_sent",
                self.call_id,
                response_id=response_id,
                reason=ending.reason.value,
                mode=ending.mode.value,
                content=content,
            )
        return frame
