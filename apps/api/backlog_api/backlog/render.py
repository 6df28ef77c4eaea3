from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from backlog_api.backlog.interactions import encode_status_control
from backlog_api.backlog.payload import (
  BUTTON_PRIMARY,
  BUTTON_SECONDARY,
  BUTTON_SUCCESS,
  Control,
  Embed,
  EmbedField,
  MessagePayload,
)
from backlog_api.backlog.types import Activity, ActivityStatus, Author, RawSubmission, Refinement

BOARD_TITLE = "📌 Backlog · Activity list"
BOARD_COLOR = 0x3498DB
BOARD_DESCRIPTION_LIMIT = 4096
BOARD_EMPTY_SECTION = "_None_"
FIELD_VALUE_LIMIT = 1024
PLACEHOLDER = "-"
REFINED_NOTICE = "Text refined with AI into backlog format."


@dataclass(frozen=True)
class StatusStyle:
  label: str
  color: int
  section: str


STATUS_STYLES: dict[ActivityStatus, StatusStyle] = {
  ActivityStatus.OPEN: StatusStyle(label="📋 To Do", color=0xE74C3C, section="**📋 To Do (Open)**"),
  ActivityStatus.IN_PROGRESS: StatusStyle(label="🔄 In Progress", color=0xF39C12, section="**🔄 In Progress**"),
  ActivityStatus.COMPLETED: StatusStyle(label="✅ Completed", color=0x27AE60, section="**✅ Completed**"),
}


def _clip(value: str, limit: int = FIELD_VALUE_LIMIT) -> str:
  return value if len(value) <= limit else value[: limit - 1] + "…"


def render_controls(activity_id: str, status: ActivityStatus) -> tuple[Control, ...]:
  controls: list[Control] = []
  if status != ActivityStatus.IN_PROGRESS:
    controls.append(
      Control(encode_status_control(activity_id, ActivityStatus.IN_PROGRESS), "In progress", BUTTON_PRIMARY)
    )
  if status != ActivityStatus.COMPLETED:
    controls.append(Control(encode_status_control(activity_id, ActivityStatus.COMPLETED), "Completed", BUTTON_SUCCESS))
  if status != ActivityStatus.OPEN:
    controls.append(Control(encode_status_control(activity_id, ActivityStatus.OPEN), "Back to To Do", BUTTON_SECONDARY))
  return tuple(controls)


def render_activity(
  author: Author,
  raw: RawSubmission,
  refinement: Refinement | None,
  *,
  status: ActivityStatus,
  activity_id: str,
  created_at: datetime | None = None,
) -> MessagePayload:
  style = STATUS_STYLES[status]
  title = refinement.title if refinement and refinement.title else raw.title
  description = refinement.description if refinement and refinement.description else raw.description

  fields: list[EmbedField] = []
  criteria = list(refinement.acceptance_criteria) if refinement else []
  if criteria:
    numbered = "\n".join(f"{i}. {c}" for i, c in enumerate(criteria, start=1))
    fields.append(EmbedField(name="✅ Acceptance criteria", value=_clip(numbered)))
  fields.append(EmbedField(name="📋 Steps to reproduce", value=_clip(raw.steps or PLACEHOLDER)))
  fields.append(EmbedField(name="🔄 Expected vs. actual", value=_clip(raw.expected_vs_actual or PLACEHOLDER)))
  if raw.context:
    fields.append(EmbedField(name="📍 Context", value=_clip(raw.context), inline=True))
  if refinement is not None:
    fields.append(EmbedField(name="✨", value=REFINED_NOTICE))

  embed = Embed(
    title=_clip(f"{style.label} · {title}", 256),
    description=_clip(description or PLACEHOLDER, BOARD_DESCRIPTION_LIMIT),
    color=style.color,
    fields=tuple(fields),
    footer=f"Reported by {author.label or '?'}",
    timestamp=created_at.isoformat() if created_at else None,
  )
  return MessagePayload(embeds=(embed,), controls=render_controls(activity_id, status))


def render_activity_message(activity: Activity) -> MessagePayload:
  """Rebuild an activity's message from the stored record alone."""
  raw = RawSubmission(
    title=activity.title,
    description=activity.description,
    steps=activity.steps,
    expected_vs_actual=activity.expected_vs_actual,
    context=activity.context,
  )
  refinement = None
  if activity.acceptance_criteria:
    refinement = Refinement(
      title=activity.title,
      description=activity.description,
      acceptance_criteria=activity.acceptance_criteria,
    )
  return render_activity(
    Author(id=activity.author_id, label=activity.author_label),
    raw,
    refinement,
    status=activity.status,
    activity_id=activity.id,
    created_at=activity.created_at,
  )


def _section(activities: list[Activity]) -> str:
  if not activities:
    return BOARD_EMPTY_SECTION
  return "\n".join(f"{i}. {a.title}" for i, a in enumerate(activities, start=1))


def render_board_description(activities: Iterable[Activity]) -> str:
  by_status: dict[ActivityStatus, list[Activity]] = {s: [] for s in STATUS_STYLES}
  for a in activities:
    by_status[a.status].append(a)
  lines: list[str] = []
  for status, style in STATUS_STYLES.items():
    if lines:
      lines.append("")
    lines.append(style.section)
    lines.append(_section(by_status[status]))
  return "\n".join(lines)[:BOARD_DESCRIPTION_LIMIT]


def render_board(activities: Iterable[Activity]) -> MessagePayload:
  embed = Embed(title=BOARD_TITLE, description=render_board_description(activities), color=BOARD_COLOR)
  # An empty control set strips any buttons left on a reused message.
  return MessagePayload(embeds=(embed,))
