import threading
import time
from typing import Any


_lock = threading.Lock()
_metrics: dict[str, float] = {
    "ws_connections_active": 0.0,
    "ws_disconnects_total": 0.0,
    "frames_sent_total": 0.0,
    "decode_errors": 0.0,
    "unknown_events": 0.0,
    "greetings_sent": 0.0,
    "responses_generated": 0.0,
    "completion_retries": 0.0,
    "completion_fallbacks": 0.0,
    "overlapping_requests_dropped": 0.0,
    "reminders_sent": 0.0,
    "time_warnings_sent": 0.0,
    "calls_ended_silence": 0.0,
    "calls_ended_max_duration": 0.0,
    "calls_ended_incompatibility": 0.0,
    "calls_ended_mismatch": 0.0,
    "first_fragment_total_ms": 0.0,
    "first_fragment_samples": 0.0,
}


def increment_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = float(_metrics.get(key, 0.0)) + float(amount)


def decrement_metric(name: str, amount: float = 1.0) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        next_value = float(_metrics.get(key, 0.0)) - float(amount)
        _metrics[key] = max(0.0, next_value)


def observe_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["first_fragment_total_ms"] = float(_metrics.get("first_fragment_total_ms", 0.0)) + latency
        _metrics["first_fragment_samples"] = float(_metrics.get("first_fragment_samples", 0.0)) + 1.0


def record_call_ended(reason: str) -> None:
    normalized = str(reason or "").strip().lower().replace(" ", "_").replace("-", "_")
    if not normalized:
        return
    increment_metric(f"calls_ended_{normalized}", 1.0)


def get_metric(name: str) -> float:
    with _lock:
        return float(_metrics.get(str(name or "").strip(), 0.0))


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    samples = max(1.0, float(data.get("first_fragment_samples") or 0.0))
    payload: dict[str, Any] = {"generated_at": time.time()}
    for key, value in sorted(data.items()):
        payload[key] = round(float(value), 2) if key.endswith("_ms") else int(value)
    payload["avg_first_fragment_ms"] = round(float(data.get("first_fragment_total_ms") or 0.0) / samples, 2)

    if extra:
        payload.update(extra)
    return payload
