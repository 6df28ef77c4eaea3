from __future__ import annotations

from backlog_api.backlog.interactions import ChangeStatusCommand, decode_control, encode_status_control
from backlog_api.backlog.types import ActivityStatus


def test_control_ids_decode_to_commands() -> None:
  custom_id = encode_status_control("7f3c-uuid", ActivityStatus.IN_PROGRESS)
  assert custom_id == "backlog_7f3c-uuid_in_progress"
  assert decode_control(custom_id) == ChangeStatusCommand(activity_id="7f3c-uuid", status=ActivityStatus.IN_PROGRESS)


def test_activity_ids_with_underscores_survive() -> None:
  command = decode_control("backlog_1700000000000_ab12cd_open")
  assert command == ChangeStatusCommand(activity_id="1700000000000_ab12cd", status=ActivityStatus.OPEN)


def test_foreign_ids_are_ignored() -> None:
  for custom_id in (None, "", "backlog_a1_archived", "other_a1_open", "backlog__open", "backlog_open"):
    assert decode_control(custom_id) is None
