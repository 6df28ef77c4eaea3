from __future__ import annotations

import asyncio
import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from backlog_api.backlog.types import RawSubmission, Refinement
from backlog_api.config import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
  "You are a Scrum expert. Turn bug reports into well-formed backlog items.\n"
  'Return a JSON object with the keys "title", "description", "acceptance_criteria".\n'
  "- title: short, clear sentence (user story or bug style).\n"
  "- description: objective paragraph with context and impact.\n"
  "- acceptance_criteria: array of strings, each a clear, testable criterion.\n"
  "Stay faithful to the information given; only organise it and improve the wording. "
  "Answer with the JSON only, no markdown."
)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class RefinementProvider(Protocol):
  async def refine(self, raw: RawSubmission) -> Refinement | None: ...


@dataclass
class DisabledRefinementProvider:
  async def refine(self, raw: RawSubmission) -> Refinement | None:
    return None


def build_user_prompt(raw: RawSubmission) -> str:
  parts = [
    f"Title: {raw.title}",
    f"Description: {raw.description}",
    f"Steps to reproduce: {raw.steps}",
    f"Expected vs. actual: {raw.expected_vs_actual}",
  ]
  if raw.context:
    parts.append(f"Context: {raw.context}")
  return "\n\n".join(parts)


def parse_refinement(content: Any) -> Refinement | None:
  """Parse a model answer; anything that is not the expected JSON object yields ``None``."""
  if not isinstance(content, str):
    return None
  text = _FENCE_RE.sub("", content.strip()).strip()
  if not text:
    return None
  try:
    obj = json.loads(text)
  except ValueError:
    return None
  if not isinstance(obj, dict):
    return None
  title = str(obj.get("title") or "").strip()
  description = str(obj.get("description") or "").strip()
  if not title or not description:
    return None
  criteria = obj.get("acceptance_criteria") or []
  if not isinstance(criteria, list):
    criteria = []
  cleaned = tuple(str(c).strip() for c in criteria if isinstance(c, (str, int, float)) and str(c).strip())
  return Refinement(title=title, description=description, acceptance_criteria=cleaned)


@dataclass
class OpenAICompatibleRefiner:
  api_key: str
  base_url: str
  model: str = "gpt-4o-mini"
  timeout: float = 30.0
  transport: httpx.AsyncBaseTransport | None = None

  async def refine(self, raw: RawSubmission) -> Refinement | None:
    headers = {"Authorization": f"Bearer {self.api_key}"}
    try:
      async with httpx.AsyncClient(
        base_url=self.base_url.rstrip("/"), headers=headers, timeout=self.timeout, transport=self.transport
      ) as client:
        r = await client.post(
          "/chat/completions",
          json={
            "model": self.model,
            "messages": [
              {"role": "system", "content": SYSTEM_PROMPT},
              {"role": "user", "content": build_user_prompt(raw)},
            ],
            "temperature": 0.3,
            "max_tokens": 1024,
          },
        )
        r.raise_for_status()
        data = r.json()
    except (httpx.HTTPError, ValueError) as exc:
      logger.warning("refinement request failed: %s", exc)
      return None
    try:
      content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
      logger.warning("refinement response had an unexpected shape")
      return None
    refinement = parse_refinement(content)
    if refinement is None:
      logger.warning("refinement response was not usable JSON")
    return refinement


async def refine_best_effort(provider: RefinementProvider, raw: RawSubmission, *, timeout: float) -> Refinement | None:
  """Never raises: any error or timeout degrades to "no result"."""
  try:
    return await asyncio.wait_for(provider.refine(raw), timeout=timeout)
  except asyncio.TimeoutError:
    logger.warning("refinement timed out after %.1fs", timeout)
  except Exception:
    logger.exception("refinement provider raised")
  return None


def get_refinement_provider(s: Settings) -> RefinementProvider:
  if (s.refinement_provider or "").lower() == "openai":
    if not s.openai_api_key:
      raise RuntimeError("REFINEMENT_PROVIDER=openai requires OPENAI_API_KEY")
    return OpenAICompatibleRefiner(
      api_key=s.openai_api_key,
      base_url=s.openai_base_url,
      model=s.openai_model,
      timeout=s.refinement_timeout_seconds,
    )
  return DisabledRefinementProvider()
