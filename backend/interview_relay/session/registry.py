from __future__ import annotations

import time
from threading import Lock


class CallRegistry:
    """Connected calls by id. Observability only, sessions never look each other up here."""

    def __init__(self):
        self._lock = Lock()
        self._calls: dict[str, dict] = {}

    def register(self, call_id: str, phase: str = "awaiting_setup") -> None:
        now_ts = time.time()
        with self._lock:
            self._calls[call_id] = {
                "call_id": call_id,
                "phase": phase,
                "created_at": now_ts,
                "updated_at": now_ts,
                "active": True,
            }

    def touch(self, call_id: str) -> None:
        with self._lock:
            if call_id in self._calls:
                self._calls[call_id]["updated_at"] = time.time()

    def set_phase(self, call_id: str, phase: str) -> None:
        with self._lock:
            if call_id in self._calls:
                self._calls[call_id]["phase"] = str(phase)
                self._calls[call_id]["updated_at"] = time.time()

    def mark_inactive(self, call_id: str, end_reason: str = "") -> None:
        with self._lock:
            if call_id in self._calls:
                self._calls[call_id]["active"] = False
                self._calls[call_id]["end_reason"] = end_reason
                self._calls[call_id]["updated_at"] = time.time()

    def get(self, call_id: str) -> dict | None:
        with self._lock:
            item = self._calls.get(call_id)
            return dict(item) if item else None

    def list_active(self) -> list[dict]:
        with self._lock:
            return [dict(item) for item in self._calls.values() if item.get("active")]

    def cleanup_inactive(self, ttl_sec: float) -> int:
        now_ts = time.time()
        cutoff = now_ts - max(30.0, float(ttl_sec or 900.0))
        removed = 0
        with self._lock:
            for call_id, data in list(self._calls.items()):
                if bool((data or {}).get("active", False)):
                    continue
                updated_at = float((data or {}).get("updated_at") or 0.0)
                if updated_at <= cutoff:
                    self._calls.pop(call_id, None)
                    removed += 1
        return removed


call_registry = CallRegistry()
