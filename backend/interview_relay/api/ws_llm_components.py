from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from interview_relay.session.registry import CallRegistry
from interview_relay.system_metrics import decrement_metric, increment_metric

logger = logging.getLogger("ws_llm")

TextHandler = Callable[[str], Awaitable[None]]


@dataclass
class ConnectionLifecycleManager:
    registry: CallRegistry

    def register(self, call_id: str) -> None:
        self.registry.register(call_id)
        increment_metric("ws_connections_active", 1)

    def unregister(self, call_id: str, reason: str) -> None:
        self.registry.mark_inactive(call_id, reason)
        decrement_metric("ws_connections_active", 1)
        increment_metric("ws_disconnects_total", 1)


@dataclass
class InboundTextRouter:
    max_text_bytes: int
    on_text_fn: TextHandler
    call_id: str = ""

    async def route(self, text_payload: str) -> bool:
        size = len(text_payload.encode("utf-8"))
        if size > self.max_text_bytes:
            increment_metric("decode_errors", 1)
            logger.warning("WS message too large, dropped | call_id=%s bytes=%s", self.call_id, size)
            return False
        await self.on_text_fn(text_payload)
        return True
