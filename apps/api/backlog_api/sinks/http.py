from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable

import httpx

from backlog_api.errors import TransportFailure
from backlog_api.sinks.base import FailureKind, SinkResult

logger = logging.getLogger(__name__)

USER_AGENT = "DiscordBot (backlog-sync, 0.1)"


def normalize_base_url(base_url: str) -> str:
  b = (base_url or "").strip().rstrip("/")
  if not b:
    raise ValueError("base url is required")
  if not (b.startswith("http://") or b.startswith("https://")):
    b = "https://" + b
  return b


def _extract_error(r: httpx.Response) -> str:
  try:
    payload = r.json()
  except ValueError:
    return (r.text or "")[:500] or f"HTTP {r.status_code}"
  if isinstance(payload, dict):
    msg = payload.get("message") or payload.get("error")
    if isinstance(msg, str) and msg.strip():
      return msg.strip()[:500]
  return f"HTTP {r.status_code}"


async def request_json(client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> Any:
  try:
    r = await client.request(method, url, **kwargs)
  except httpx.TimeoutException as exc:
    raise TransportFailure(f"{method} {url} timed out") from exc
  except httpx.HTTPError as exc:
    raise TransportFailure(f"{method} {url} failed: {exc}") from exc
  if r.status_code >= 400:
    raise TransportFailure(_extract_error(r), remote_status=r.status_code)
  if r.status_code == 204 or not r.content:
    return None
  try:
    return r.json()
  except ValueError as exc:
    raise TransportFailure(f"{method} {url} returned a non-JSON body", remote_status=r.status_code) from exc


async def guarded(sink: str, op: str, call: Callable[[], Awaitable[SinkResult]]) -> SinkResult:
  """Run one sink call, converting any transport failure into a failure result."""
  try:
    return await call()
  except TransportFailure as exc:
    if exc.remote_status == 404:
      logger.info("%s %s: message not found", sink, op)
      return SinkResult.failed(FailureKind.NOT_FOUND, exc.message)
    logger.warning("%s %s failed: %s", sink, op, exc.message)
    return SinkResult.failed(FailureKind.TRANSPORT, exc.message)


def message_id_of(data: Any) -> str | None:
  if isinstance(data, dict) and data.get("id") is not None:
    return str(data["id"])
  return None
