from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from time import monotonic


@dataclass
class RequestSample:
  ts: datetime
  status_code: int
  latency_ms: float


class RuntimeMetrics:
  """In-process request latency samples (24h window) and sink outcome counters."""

  def __init__(self) -> None:
    self._started_monotonic = monotonic()
    self._started_at = datetime.now(timezone.utc)
    self._samples: deque[RequestSample] = deque()
    self._sink_outcomes: Counter[tuple[str, str, str]] = Counter()
    self._lock = Lock()

  @property
  def started_at(self) -> datetime:
    return self._started_at

  def uptime_seconds(self) -> int:
    return max(0, int(monotonic() - self._started_monotonic))

  def observe_request(self, status_code: int, latency_ms: float) -> None:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._samples.append(RequestSample(ts=now, status_code=status_code, latency_ms=latency_ms))
      self._prune_locked(now)

  def observe_sink(self, sink: str, target: str, action: str) -> None:
    with self._lock:
      self._sink_outcomes[(sink, target, action)] += 1

  def sink_count(self, sink: str, target: str, action: str) -> int:
    with self._lock:
      return self._sink_outcomes[(sink, target, action)]

  def _prune_locked(self, now: datetime) -> None:
    cutoff = now - timedelta(hours=24)
    while self._samples and self._samples[0].ts < cutoff:
      self._samples.popleft()

  def snapshot(self) -> dict:
    now = datetime.now(timezone.utc)
    with self._lock:
      self._prune_locked(now)
      samples = list(self._samples)
      outcomes = dict(self._sink_outcomes)

    p95_ms = 0.0
    if samples:
      sorted_latencies = sorted(s.latency_ms for s in samples)
      idx = max(0, int(len(sorted_latencies) * 0.95) - 1)
      p95_ms = sorted_latencies[idx]
    errors_24h = sum(1 for s in samples if s.status_code >= 500)

    sinks: dict[str, dict[str, dict[str, int]]] = {}
    for (sink, target, action), count in sorted(outcomes.items()):
      sinks.setdefault(sink, {}).setdefault(target, {})[action] = count

    return {
      "uptimeSeconds": self.uptime_seconds(),
      "p95LatencyMs24h": round(p95_ms, 2),
      "requestCount24h": len(samples),
      "errorCount24h": errors_24h,
      "sinkOutcomes": sinks,
    }


runtime_metrics = RuntimeMetrics()
