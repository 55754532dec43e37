from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import asyncio
import logging
import os

from core.config import MODEL_NAME, OPENAI_API_KEY
from interview_relay.api.ws_llm import dependency_provider, router as llm_ws_router
from interview_relay.session.registry import call_registry
from interview_relay.system_metrics import get_metrics_snapshot

app = FastAPI(title="Interview Relay")
logger = logging.getLogger("interview_relay.main")


def _get_allowed_origins() -> list[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]
    return [item.strip() for item in raw.split(",") if item.strip()]


_allowed_origins = _get_allowed_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

CALL_CLEANUP_TTL_SEC = max(60, int(os.getenv("CALL_CLEANUP_TTL_SEC", "1800")))
CALL_CLEANUP_INTERVAL_SEC = max(30, int(os.getenv("CALL_CLEANUP_INTERVAL_SEC", "120")))
_call_cleanup_task: asyncio.Task | None = None


@app.on_event("startup")
async def startup_banner():
    global _call_cleanup_task
    settings = dependency_provider.settings()
    if not OPENAI_API_KEY:
        logger.warning("[SYSTEM] OPENAI_API_KEY is not set, completions will fail and fall back")
    logger.info(
        "[SYSTEM] model=%s max_duration_min=%s max_retries=%s max_reminders=%s max_history=%s",
        MODEL_NAME,
        settings.max_duration_minutes,
        settings.max_retries,
        settings.max_reminders,
        settings.max_history,
    )

    async def _call_cleanup_loop():
        while True:
            await asyncio.sleep(CALL_CLEANUP_INTERVAL_SEC)
            removed = call_registry.cleanup_inactive(CALL_CLEANUP_TTL_SEC)
            if removed > 0:
                logger.info("[SYSTEM] cleaned inactive calls=%s", removed)

    _call_cleanup_task = asyncio.create_task(_call_cleanup_loop())


@app.on_event("shutdown")
async def shutdown_handler():
    global _call_cleanup_task
    if _call_cleanup_task is not None:
        _call_cleanup_task.cancel()
        try:
            await _call_cleanup_task
        except asyncio.CancelledError:
            pass
        finally:
            _call_cleanup_task = None
    logger.info("[SYSTEM] shutdown complete")


@app.get("/healthz")
async def healthz():
    return {"status": "ok", "service": "interview-relay"}


@app.get("/api/system/metrics")
def system_metrics_route():
    return get_metrics_snapshot(extra={
        "calls_registered_active": len(call_registry.list_active()),
    })


@app.get("/api/calls/active")
def active_calls_route():
    calls = call_registry.list_active()
    return {"count": len(calls), "calls": calls}


app.include_router(llm_ws_router)
