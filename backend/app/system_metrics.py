import threading
import time
from typing import Any


_lock = threading.Lock()
_COUNTERS = (
    "sessions_created",
    "sessions_active",
    "interviews_started",
    "interviews_completed",
    "interviews_terminated",
    "responses_recorded",
    "auto_submits",
    "duplicate_submissions_dropped",
    "late_submissions_dropped",
    "scoring_failures",
    "violations_fullscreen_exit",
    "violations_tab_change",
    "violations_window_blur",
)
_metrics: dict[str, float] = {name: 0.0 for name in _COUNTERS}
_metrics.update({
    "scoring_latency_total_ms": 0.0,
    "scoring_latency_samples": 0.0,
})


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


def set_metric(name: str, value: float) -> None:
    key = str(name or "").strip()
    if not key:
        return
    with _lock:
        _metrics[key] = max(0.0, float(value))


def observe_scoring_latency_ms(value_ms: float) -> None:
    latency = max(0.0, float(value_ms or 0.0))
    with _lock:
        _metrics["scoring_latency_total_ms"] = float(_metrics.get("scoring_latency_total_ms", 0.0)) + latency
        _metrics["scoring_latency_samples"] = float(_metrics.get("scoring_latency_samples", 0.0)) + 1.0


def reset_metrics() -> None:
    with _lock:
        for key in list(_metrics):
            _metrics[key] = 0.0


def get_metrics_snapshot(extra: dict[str, Any] | None = None) -> dict[str, Any]:
    with _lock:
        data = dict(_metrics)

    scoring_samples = max(1.0, float(data.get("scoring_latency_samples") or 0.0))

    payload: dict[str, Any] = {"generated_at": time.time()}
    for name in _COUNTERS:
        payload[name] = int(data.get(name) or 0.0)
    payload["violations_total"] = (
        payload["violations_fullscreen_exit"] + payload["violations_tab_change"] + payload["violations_window_blur"]
    )
    payload["scoring_latency_total_ms"] = float(data.get("scoring_latency_total_ms") or 0.0)
    payload["scoring_latency_samples"] = int(data.get("scoring_latency_samples") or 0.0)
    payload["avg_scoring_latency_ms"] = round(float(data.get("scoring_latency_total_ms") or 0.0) / scoring_samples, 2)

    if extra:
        payload.update(extra)
    return payload
