from __future__ import annotations

from typing import AsyncIterator, List

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from ..engine import EngineSnapshot, TaskListEngine
from ..grouping import Header, group_tasks
from ..models import TaskEntity
from ..reminders import ReminderScheduler, has_reached_time
from ..schemas import (
    AcceptedOut,
    GroupedListOut,
    HeaderItemOut,
    ReminderIn,
    RowItemOut,
    StatsOut,
    TaskCreate,
    TaskListOut,
    TaskOut,
    TaskReplace,
)

router = APIRouter(
    prefix="/api/v1/tasks",
    tags=["tasks"],
)


def _get_engine(request: Request) -> TaskListEngine:
    """
    Dependency returning the engine built during application startup.
    """
    return request.app.state.engine


def _get_scheduler(request: Request) -> ReminderScheduler:
    return request.app.state.reminder_scheduler


def _task_out(task: TaskEntity) -> TaskOut:
    return TaskOut(**task, reminder_reached=has_reached_time(task["remind_time"]))


def _list_out(snap: EngineSnapshot) -> TaskListOut:
    return TaskListOut(
        items=[_task_out(t) for t in snap.tasks],
        total_count=snap.total_count,
        completed_count=snap.completed_count,
        uncompleted_count=snap.uncompleted_count,
        error_message=snap.error_message,
        should_scroll_to_top=snap.should_scroll_to_top,
    )


def _require_task(engine: TaskListEngine, task_id: int) -> TaskEntity:
    task = engine.find_task(task_id)
    if task is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")
    return task


def _sync_reminder(scheduler: ReminderScheduler, before: TaskEntity, after: TaskEntity) -> None:
    """
    Keep the pending reminder in line with a task change: completed tasks and
    cleared reminders are cancelled; a new time or a reopened task reschedules.
    """
    if after["is_done"] or not after["remind_time"]:
        if before["remind_time"]:
            scheduler.cancel_reminder(after["id"])
        return
    reopened_or_moved = before["is_done"] or before["remind_time"] != after["remind_time"]
    if reopened_or_moved and not has_reached_time(after["remind_time"]):
        scheduler.schedule_reminder(after["id"], after["title"], after["remind_time"])


# PUBLIC_INTERFACE
@router.get(
    "/",
    response_model=TaskListOut,
    summary="List Tasks",
    description=(
        "Return every task in display order together with the counters and UI state.\n\n"
        "Order: open tasks first; within each part, soonest reminder first; tasks "
        "without a reminder last, newest first."
    ),
)
async def list_tasks(engine: TaskListEngine = Depends(_get_engine)) -> TaskListOut:
    return _list_out(engine.snapshot())


# PUBLIC_INTERFACE
@router.get("/stats", response_model=StatsOut, summary="Task Counters")
async def task_stats(engine: TaskListEngine = Depends(_get_engine)) -> StatsOut:
    """
    Total, completed and open task counts.
    """
    return StatsOut(
        total_count=engine.total_count.value,
        completed_count=engine.completed_count.value,
        uncompleted_count=engine.uncompleted_count.value,
    )


# PUBLIC_INTERFACE
@router.get(
    "/grouped",
    response_model=GroupedListOut,
    summary="Grouped Tasks",
    description="Tasks split into 'uncompleted' and 'completed' groups, each led by a header item.",
)
async def grouped_tasks(
    collapsed: List[str] = Query(default=[], description="Group keys whose rows are hidden"),
    engine: TaskListEngine = Depends(_get_engine),
) -> GroupedListOut:
    items = []
    for item in group_tasks(engine.tasks.value, collapsed):
        if isinstance(item, Header):
            items.append(HeaderItemOut(group_key=item.group_key, expanded=item.expanded, count=item.count))
        else:
            items.append(RowItemOut(task=_task_out(item.task)))
    return GroupedListOut(items=items)


# PUBLIC_INTERFACE
@router.get("/events", summary="Task State Stream")
async def task_events(engine: TaskListEngine = Depends(_get_engine)) -> StreamingResponse:
    """
    Server-sent events: one TaskListOut JSON document now and after every change.
    """

    async def gen() -> AsyncIterator[str]:
        async for snap in engine.changes():
            yield f"data: {_list_out(snap).model_dump_json()}\n\n"

    return StreamingResponse(gen(), media_type="text/event-stream")


# PUBLIC_INTERFACE
@router.post(
    "/",
    response_model=AcceptedOut,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Add Task",
    responses={
        202: {"description": "Task handed to the store; it appears in the list once saved"},
        422: {"description": "Title empty or longer than 200 characters"},
    },
)
async def add_task(payload: TaskCreate, engine: TaskListEngine = Depends(_get_engine)) -> AcceptedOut:
    if not engine.add_task(payload.title):
        raise HTTPException(status_code=422, detail=engine.error_message.value)
    return AcceptedOut()


# PUBLIC_INTERFACE
@router.post("/error/clear", status_code=status.HTTP_204_NO_CONTENT, summary="Clear Error Message")
async def clear_error(engine: TaskListEngine = Depends(_get_engine)) -> None:
    engine.clear_error()


# PUBLIC_INTERFACE
@router.post("/scroll/clear", status_code=status.HTTP_204_NO_CONTENT, summary="Clear Scroll Flag")
async def clear_scroll_flag(engine: TaskListEngine = Depends(_get_engine)) -> None:
    engine.clear_scroll_flag()


# PUBLIC_INTERFACE
@router.get(
    "/{task_id}",
    response_model=TaskOut,
    summary="Get Task",
    responses={404: {"description": "Task not found"}},
)
async def get_task(task_id: int, engine: TaskListEngine = Depends(_get_engine)) -> TaskOut:
    return _task_out(_require_task(engine, task_id))


# PUBLIC_INTERFACE
@router.post(
    "/{task_id}/toggle",
    response_model=AcceptedOut,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Toggle Task",
    responses={404: {"description": "Task not found"}},
)
async def toggle_task(
    task_id: int,
    engine: TaskListEngine = Depends(_get_engine),
    scheduler: ReminderScheduler = Depends(_get_scheduler),
) -> AcceptedOut:
    """
    Flip the completion flag. Completing a task cancels its pending reminder.
    """
    task = _require_task(engine, task_id)
    engine.toggle_task(task)
    _sync_reminder(scheduler, task, {**task, "is_done": not task["is_done"]})
    return AcceptedOut()


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}",
    response_model=AcceptedOut,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Replace Task",
    responses={404: {"description": "Task not found"}},
)
async def replace_task(
    task_id: int,
    payload: TaskReplace,
    engine: TaskListEngine = Depends(_get_engine),
    scheduler: ReminderScheduler = Depends(_get_scheduler),
) -> AcceptedOut:
    """
    Replace title, completion flag and reminder. id and created_at are kept.
    """
    task = _require_task(engine, task_id)
    replacement: TaskEntity = {**task, **payload.model_dump()}
    engine.update_task(replacement)
    _sync_reminder(scheduler, task, replacement)
    return AcceptedOut()


# PUBLIC_INTERFACE
@router.put(
    "/{task_id}/reminder",
    response_model=AcceptedOut,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Set Reminder",
    responses={404: {"description": "Task not found"}},
)
async def set_reminder(
    task_id: int,
    payload: ReminderIn,
    engine: TaskListEngine = Depends(_get_engine),
    scheduler: ReminderScheduler = Depends(_get_scheduler),
) -> AcceptedOut:
    """
    Set the reminder time (or clear it with an empty string) and schedule the alert.
    """
    task = _require_task(engine, task_id)
    updated: TaskEntity = {**task, "remind_time": payload.remind_time}
    engine.update_task(updated)
    if payload.remind_time:
        scheduler.schedule_reminder(task_id, task["title"], payload.remind_time)
    else:
        scheduler.cancel_reminder(task_id)
    return AcceptedOut()


# PUBLIC_INTERFACE
@router.delete(
    "/{task_id}",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AcceptedOut,
    summary="Delete Task",
    responses={404: {"description": "Task not found"}},
)
async def delete_task(
    task_id: int,
    engine: TaskListEngine = Depends(_get_engine),
    scheduler: ReminderScheduler = Depends(_get_scheduler),
) -> AcceptedOut:
    task = _require_task(engine, task_id)
    if task["remind_time"]:
        scheduler.cancel_reminder(task_id)
    engine.delete_task(task)
    return AcceptedOut()
