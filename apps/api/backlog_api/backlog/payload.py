from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# Discord component constants
_ACTION_ROW = 1
_BUTTON = 2

BUTTON_PRIMARY = 1
BUTTON_SECONDARY = 2
BUTTON_SUCCESS = 3


@dataclass(frozen=True)
class EmbedField:
  name: str
  value: str
  inline: bool = False


@dataclass(frozen=True)
class Control:
  custom_id: str
  label: str
  style: int = BUTTON_PRIMARY


@dataclass(frozen=True)
class Embed:
  title: str
  description: str
  color: int
  fields: tuple[EmbedField, ...] = ()
  footer: str | None = None
  timestamp: str | None = None

  def to_dict(self) -> dict[str, Any]:
    out: dict[str, Any] = {"title": self.title, "description": self.description, "color": self.color}
    if self.fields:
      out["fields"] = [{"name": f.name, "value": f.value, "inline": f.inline} for f in self.fields]
    if self.footer:
      out["footer"] = {"text": self.footer}
    if self.timestamp:
      out["timestamp"] = self.timestamp
    return out


@dataclass(frozen=True)
class MessagePayload:
  embeds: tuple[Embed, ...]
  controls: tuple[Control, ...] = field(default=())

  def to_dict(self, *, with_controls: bool = True) -> dict[str, Any]:
    """JSON body for message create/edit; an empty ``components`` list clears old buttons."""
    if not with_controls:
      return {"embeds": [e.to_dict() for e in self.embeds]}
    components: list[dict[str, Any]] = []
    if self.controls:
      components.append(
        {
          "type": _ACTION_ROW,
          "components": [
            {"type": _BUTTON, "custom_id": c.custom_id, "label": c.label, "style": c.style} for c in self.controls
          ],
        }
      )
    return {"embeds": [e.to_dict() for e in self.embeds], "components": components}
