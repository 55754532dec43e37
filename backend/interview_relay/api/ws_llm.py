from fastapi import APIRouter, WebSocket
import asyncio
import json
import logging
import uuid

from openai import AsyncOpenAI
from starlette.websockets import WebSocketState

from core.config import WS_MAX_TEXT_BYTES, InterviewSettings, load_interview_settings
from core.logger import log_event
from interview_relay.api.ws_llm_components import ConnectionLifecycleManager, InboundTextRouter
from interview_relay.compatibility.analyzer import LlmCompatibilityAnalyzer
from interview_relay.compatibility.models import CompatibilityAnalyzer
from interview_relay.services.completion_service import CompletionService, build_completion_client
from interview_relay.session.dispatcher import build_dispatcher
from interview_relay.session.registry import call_registry

logger = logging.getLogger("ws_llm")

router = APIRouter()
websocket_send_locks: dict[WebSocket, asyncio.Lock] = {}


class LlmDependencyProvider:
    """Process-wide collaborators handed to every call. Built lazily, replaced in tests."""

    def __init__(self):
        self._client: AsyncOpenAI | None = None
        self._settings: InterviewSettings | None = None

    @property
    def client(self) -> AsyncOpenAI:
        if self._client is None:
            self._client = build_completion_client()
        return self._client

    def settings(self) -> InterviewSettings:
        if self._settings is None:
            self._settings = load_interview_settings()
        return self._settings

    def create_completion_service(self) -> CompletionService:
        return CompletionService(self.client, self.settings())

    def create_analyzer(self) -> CompatibilityAnalyzer | None:
        return LlmCompatibilityAnalyzer(self.client, model=self.settings().compatibility_model)


dependency_provider = LlmDependencyProvider()


async def _send_text_with_lock(websocket: WebSocket, encoded_payload: str) -> None:
    send_lock = websocket_send_locks.get(websocket)
    if send_lock is None:
        return
    async with send_lock:
        await websocket.send_text(encoded_payload)


def _normalize_call_id(raw_call_id: str) -> str:
    value = str(raw_call_id or "").strip()
    if not value or value.startswith("{"):
        return ""
    return value[:128]


@router.websocket("/llm-websocket/{call_id}")
async def llm_websocket(websocket: WebSocket, call_id: str):
    await _serve_call(websocket, call_id)


@router.websocket("/llm-websocket/{placeholder}/{call_id}")
async def llm_websocket_appended(websocket: WebSocket, placeholder: str, call_id: str):
    # platform appends the id instead of substituting it
    await _serve_call(websocket, call_id or placeholder)


async def _serve_call(websocket: WebSocket, raw_call_id: str) -> None:
    call_id = _normalize_call_id(raw_call_id) or f"call-{uuid.uuid4()}"
    stop_reason = "client_disconnect"

    await websocket.accept()
    websocket_send_locks[websocket] = asyncio.Lock()
    logger.info("LLM WebSocket connected | call_id=%s", call_id)

    async def _safe_send(payload: dict):
        if websocket.client_state != WebSocketState.CONNECTED:
            return
        try:
            encoded = json.dumps(payload)
        except Exception as exc:
            logger.warning("ws payload encode failed | call_id=%s err=%s", call_id, exc)
            return
        try:
            await _send_text_with_lock(websocket, encoded)
        except Exception as exc:
            logger.warning("ws send failed | call_id=%s err=%s", call_id, exc)

    lifecycle_manager = ConnectionLifecycleManager(registry=call_registry)
    lifecycle_manager.register(call_id)

    dispatcher = build_dispatcher(
        call_id,
        _safe_send,
        dependency_provider.settings(),
        dependency_provider.create_completion_service(),
        analyzer=dependency_provider.create_analyzer(),
        registry=call_registry,
    )
    text_router = InboundTextRouter(
        max_text_bytes=WS_MAX_TEXT_BYTES,
        on_text_fn=dispatcher.handle_raw,
        call_id=call_id,
    )
    log_event("ws_llm", "connect", call_id)

    try:
        await dispatcher.start()
        while True:
            msg = await websocket.receive()
            if msg["type"] == "websocket.disconnect":
                break
            if msg.get("text"):
                await text_router.route(str(msg.get("text") or ""))
            elif msg.get("bytes"):
                logger.warning("Binary frame ignored | call_id=%s bytes=%s", call_id, len(msg.get("bytes") or b""))
    except Exception as exc:
        stop_reason = "connection_error"
        logger.warning("LLM WebSocket error | call_id=%s err=%s", call_id, exc)
    finally:
        await dispatcher.close(stop_reason)
        websocket_send_locks.pop(websocket, None)
        lifecycle_manager.unregister(call_id, dispatcher.session.end_reason or stop_reason)
        log_event("ws_llm", "disconnect", call_id, reason=stop_reason)
        if websocket.client_state == WebSocketState.CONNECTED:
            try:
                await websocket.close()
            except Exception as exc:
                logger.warning("ws close failed | call_id=%s err=%s", call_id, exc)
