"""
Request and answer metrics for the AskScript API.

Every HTTP request is counted per route with its latency; every
/process-speech answer is counted by outcome. Each request is also appended
as one JSON line to <metrics dir>/metrics.jsonl.
"""
from __future__ import annotations

import json
import os
import threading
import time
from collections import Counter
from pathlib import Path

import psutil

from .observability import get_logger

logger = get_logger(__name__)

ASK_OUTCOMES = ("matched", "fallback", "no_data")
_MB = 1024 * 1024


def _percent(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


class MetricsCollector:
    """Thread-safe counters behind GET /metrics."""

    def __init__(self, log_dir: str | Path = "logs"):
        self._lock = threading.Lock()
        self._started_at = time.time()

        self._requests = 0
        self._failures = 0
        self._latency_total_ms = 0.0
        self._latency_min_ms = float("inf")
        self._latency_max_ms = 0.0
        self._by_route: Counter[str] = Counter()
        self._ask_outcomes: Counter[str] = Counter()

        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self._log_path = log_dir / "metrics.jsonl"
        self._process = psutil.Process(os.getpid())

    @property
    def log_path(self) -> Path:
        return self._log_path

    def record_request(self, latency_ms: float, success: bool, route: str = "", status_code: int = 0) -> None:
        with self._lock:
            self._requests += 1
            self._latency_total_ms += latency_ms
            self._latency_min_ms = min(self._latency_min_ms, latency_ms)
            self._latency_max_ms = max(self._latency_max_ms, latency_ms)
            if not success:
                self._failures += 1
            if route:
                self._by_route[route] += 1

        line = json.dumps(
            {
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S%z"),
                "route": route,
                "status": int(status_code),
                "latency_ms": round(latency_ms, 2),
                "success": success,
            },
            ensure_ascii=True,
        )
        try:
            with open(self._log_path, "a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            logger.warning("metrics_write_failed", path=str(self._log_path), error=str(exc))

    def record_ask(self, outcome: str) -> None:
        if outcome not in ASK_OUTCOMES:
            raise ValueError(f"unknown ask outcome: {outcome}")
        with self._lock:
            self._ask_outcomes[outcome] += 1

    def get_summary(self) -> dict:
        with self._lock:
            requests = self._requests
            failures = self._failures
            latency_total = self._latency_total_ms
            latency_min = self._latency_min_ms if requests else 0.0
            latency_max = self._latency_max_ms
            by_route = dict(self._by_route)
            outcomes = {name: self._ask_outcomes[name] for name in ASK_OUTCOMES}

        uptime_s = time.time() - self._started_at
        memory = self._process.memory_info()
        return {
            "latency": {
                "avg_ms": round(latency_total / requests, 2) if requests else 0.0,
                "min_ms": round(latency_min, 2),
                "max_ms": round(latency_max, 2),
            },
            "throughput": {
                "total_requests": requests,
                "requests_per_second": round(requests / uptime_s, 4) if uptime_s > 0 else 0.0,
                "uptime_seconds": round(uptime_s, 1),
                "by_route": by_route,
            },
            "memory": {
                "rss_mb": round(memory.rss / _MB, 1),
                "vms_mb": round(memory.vms / _MB, 1),
            },
            "questions": {
                **outcomes,
                "match_rate_percent": _percent(outcomes["matched"], sum(outcomes.values())),
            },
            "errors": {
                "count": failures,
                "rate_percent": _percent(failures, requests),
            },
        }
