"""
In-process request metrics for the video worker, served by GET /metrics.

Each video endpoint reports through `observe_request`, which counts the call
under `requests.<endpoint>` and records its wall time. Failures translated by
the route layer add `errors.<endpoint>` and an entry in a bounded error log
keyed by the error kind (`not_configured`, `status_unavailable`, ...).

Nothing is persisted; a restart starts from zero.
"""

import threading
import time
from collections import Counter, defaultdict, deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator

LATENCY_WINDOW = 100
ERROR_LOG_SIZE = 50
RECENT_ERRORS_SHOWN = 10

_lock = threading.Lock()
_counters: Counter = Counter()
_gauges: Dict[str, float] = {}
_latencies: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=LATENCY_WINDOW))
_errors: Deque[dict] = deque(maxlen=ERROR_LOG_SIZE)


def inc_counter(name: str, amount: int = 1):
    with _lock:
        _counters[name] += amount


def record_latency(endpoint: str, duration_ms: float):
    with _lock:
        _latencies[endpoint].append(duration_ms)


def set_gauge(name: str, value: float):
    with _lock:
        _gauges[name] = value


def record_error(endpoint: str, error_type: str, message: str):
    """Log a failed call; `error_type` is the error kind sent to the client."""
    with _lock:
        _errors.append({
            "timestamp": time.time(),
            "endpoint": endpoint,
            "error_type": error_type,
            "message": message[:300],
        })


@contextmanager
def observe_request(endpoint: str) -> Iterator[None]:
    """Count one call to `endpoint` and time it, whether it succeeds or raises."""
    inc_counter(f"requests.{endpoint}")
    started = time.perf_counter()
    try:
        yield
    finally:
        record_latency(endpoint, (time.perf_counter() - started) * 1000)


def reset():
    with _lock:
        _counters.clear()
        _gauges.clear()
        _latencies.clear()
        _errors.clear()


def _summarize(samples) -> dict:
    ordered = sorted(samples)
    count = len(ordered)
    # p95 needs a reasonable sample; below 20 calls report the slowest one
    p95_index = int(count * 0.95) if count >= 20 else count - 1
    return {
        "p50": ordered[count // 2],
        "p95": ordered[p95_index],
        "avg": sum(ordered) / count,
        "count": count,
    }


def get_snapshot() -> dict:
    now = time.time()
    with _lock:
        errors = list(_errors)
        return {
            "timestamp": now,
            "counters": dict(_counters),
            "gauges": dict(_gauges),
            "latency": {endpoint: _summarize(s) for endpoint, s in _latencies.items() if s},
            "recent_errors": errors[-RECENT_ERRORS_SHOWN:],
            "error_patterns": dict(Counter(f"{e['endpoint']}:{e['error_type']}" for e in errors)),
            "uptime_seconds": now - _gauges.get("start_time", now),
        }
