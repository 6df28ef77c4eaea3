from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from backlog_api.backlog.interactions import decode_control
from backlog_api.backlog.service import BacklogService
from backlog_api.backlog.sync import BoardSyncReport, SinkOutcome
from backlog_api.backlog.types import Activity, Author, Board, RawSubmission
from backlog_api.deps import get_backlog_service, require_api_token
from backlog_api.schemas import (
  ActivityOut,
  ActivitySubmitIn,
  ActivitySubmitOut,
  BoardOut,
  BoardRebuildIn,
  BoardSetupIn,
  BoardSyncOut,
  ComponentInteractionIn,
  SinkOutcomeOut,
  StatusChangeIn,
  StatusChangeOut,
)

router = APIRouter(tags=["backlog"], dependencies=[Depends(require_api_token)])


def _activity_out(a: Activity) -> ActivityOut:
  return ActivityOut(
    id=a.id,
    workspaceId=a.workspace_id,
    channelId=a.sink_channel_id,
    messageId=a.sink_message_id,
    title=a.title,
    description=a.description,
    acceptanceCriteria=list(a.acceptance_criteria),
    steps=a.steps,
    expectedVsActual=a.expected_vs_actual,
    context=a.context,
    status=a.status.value,
    authorId=a.author_id,
    authorLabel=a.author_label,
    createdAt=a.created_at,
  )


def _board_out(b: Board) -> BoardOut:
  return BoardOut(
    workspaceId=b.workspace_id,
    channelId=b.channel_id,
    channelMessageId=b.channel_message_id,
    webhookMessageId=b.webhook_message_id,
  )


def _outcome_out(o: SinkOutcome) -> SinkOutcomeOut:
  return SinkOutcomeOut(
    sink=o.sink,
    action=o.action,
    messageId=o.message_id,
    failure=o.failure.value if o.failure else None,
    detail=o.detail,
  )


def _board_sync_out(r: BoardSyncReport) -> BoardSyncOut:
  return BoardSyncOut(board=_board_out(r.board), channel=_outcome_out(r.channel), webhook=_outcome_out(r.webhook))


@router.post("/workspaces/{workspace_id}/activities", response_model=ActivitySubmitOut, status_code=status.HTTP_201_CREATED)
async def submit_activity(
  workspace_id: str, payload: ActivitySubmitIn, service: BacklogService = Depends(get_backlog_service)
) -> ActivitySubmitOut:
  raw = RawSubmission(
    title=payload.title.strip(),
    description=payload.description.strip(),
    steps=payload.steps.strip(),
    expected_vs_actual=payload.expectedVsActual.strip(),
    context=payload.context.strip(),
  )
  author = Author(id=payload.author.id, label=payload.author.label)
  result = await service.submit(author, raw, workspace_id, service.available_sinks(payload.channelId))
  return ActivitySubmitOut(
    activity=_activity_out(result.activity),
    refined=result.refined,
    channel=_outcome_out(result.publish.channel),
    webhook=_outcome_out(result.publish.webhook),
    board=_board_sync_out(result.board),
  )


@router.get("/workspaces/{workspace_id}/activities", response_model=list[ActivityOut])
async def list_activities(workspace_id: str, service: BacklogService = Depends(get_backlog_service)) -> list[ActivityOut]:
  return [_activity_out(a) for a in await service.list_activities(workspace_id)]


@router.get("/workspaces/{workspace_id}/activities/{activity_id}", response_model=ActivityOut)
async def get_activity(
  workspace_id: str, activity_id: str, service: BacklogService = Depends(get_backlog_service)
) -> ActivityOut:
  return _activity_out(await service.get_activity(activity_id, workspace_id))


@router.post("/workspaces/{workspace_id}/activities/{activity_id}/status", response_model=StatusChangeOut)
async def change_status(
  workspace_id: str,
  activity_id: str,
  payload: StatusChangeIn,
  service: BacklogService = Depends(get_backlog_service),
) -> StatusChangeOut:
  result = await service.change_status(activity_id, workspace_id, payload.status)
  return StatusChangeOut(
    activity=_activity_out(result.activity), message=_outcome_out(result.message), board=_board_sync_out(result.board)
  )


@router.get("/workspaces/{workspace_id}/board", response_model=BoardOut)
async def get_board(workspace_id: str, service: BacklogService = Depends(get_backlog_service)) -> BoardOut:
  return _board_out(await service.get_board(workspace_id))


@router.post("/workspaces/{workspace_id}/board/rebuild", response_model=BoardSyncOut)
async def rebuild_board(
  workspace_id: str, payload: BoardRebuildIn | None = None, service: BacklogService = Depends(get_backlog_service)
) -> BoardSyncOut:
  channel_id = payload.channelId if payload else None
  return _board_sync_out(await service.rebuild_board(workspace_id, channel_id))


@router.post("/workspaces/{workspace_id}/board/setup", response_model=BoardSyncOut)
async def setup_board(
  workspace_id: str, payload: BoardSetupIn, service: BacklogService = Depends(get_backlog_service)
) -> BoardSyncOut:
  return _board_sync_out(await service.setup_board(workspace_id, payload.channelId.strip()))


@router.post("/interactions/components", response_model=StatusChangeOut)
async def component_interaction(
  payload: ComponentInteractionIn, service: BacklogService = Depends(get_backlog_service)
) -> StatusChangeOut:
  command = decode_control(payload.customId)
  if command is None:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unknown control")
  result = await service.apply_command(payload.workspaceId, command)
  return StatusChangeOut(
    activity=_activity_out(result.activity), message=_outcome_out(result.message), board=_board_sync_out(result.board)
  )
