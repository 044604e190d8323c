"""FastAPI web application for Moriminder."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from moriminder.database.database import get_db, init_db
from moriminder.database.repository import TaskRepository
from moriminder.engine.budget import NotificationBudget, ReservationLedger
from moriminder.engine.scheduler import ReminderScheduler, preview_reminders
from moriminder.errors import InvalidTask, PersistenceFailed
from moriminder.models.recurrence import RecurrencePattern
from moriminder.models.task import Priority, Task, TaskKind
from moriminder.notifications.dispatcher import ReminderDispatcher
from moriminder.notifications.local_center import LocalNotificationCenter
from moriminder.services.task_service import TaskOutcome, TaskService

app = FastAPI(
    title="Moriminder API",
    description="Tasks with budget-aware repeating reminders",
    version="0.1.0",
)


@app.on_event("startup")
def on_startup():
    init_db()


# One reservation ledger per database, shared by every request session on it
_ledgers: Dict[int, ReservationLedger] = {}


def get_ledger(db: Session) -> ReservationLedger:
    return _ledgers.setdefault(id(db.get_bind()), ReservationLedger())


def get_task_service(db: Session = Depends(get_db)) -> TaskService:
    center = LocalNotificationCenter(db)
    scheduler = ReminderScheduler(NotificationBudget(center, ledger=get_ledger(db)))
    return TaskService(TaskRepository(db), ReminderDispatcher(center, scheduler))


# Request/response models
class TaskCreateRequest(BaseModel):
    """Request body for creating a task."""
    title: str
    notes: Optional[str] = None
    priority: Optional[Priority] = None
    kind: Optional[TaskKind] = None
    deadline: Optional[datetime] = None
    start_time: Optional[datetime] = None
    reminder_enabled: bool = False
    reminder_interval_min: int = Field(60, ge=1)
    reminder_start_time: Optional[datetime] = None
    reminder_end_time: Optional[datetime] = None
    is_repeating: bool = False
    recurrence: Optional[RecurrencePattern] = None
    recurrence_end_date: Optional[datetime] = None


class ReminderPreviewResponse(BaseModel):
    """Planned reminders for a task (nothing is scheduled)."""
    task_id: str
    anchor_mode: Optional[str]
    intervals: List[int]
    cap: int
    fire_times: List[datetime]


class BudgetResponse(BaseModel):
    limit: int
    pending: int
    reserved: int
    remaining: int


class NotificationResponse(BaseModel):
    """A notification waiting in the local notification center."""
    id: str
    task_id: str
    fire_time: datetime
    kind: str


class DeliveryResponse(BaseModel):
    next_notification_id: Optional[str]


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "version": "0.1.0"}


@app.post("/tasks", response_model=TaskOutcome, status_code=201)
async def create_task(request: TaskCreateRequest, service: TaskService = Depends(get_task_service)):
    """Create a task and schedule its reminders."""
    now = datetime.utcnow()
    task = Task(id=str(uuid.uuid4()), created_at=now, updated_at=now, **request.model_dump())
    try:
        return await service.create_task(task)
    except InvalidTask as e:
        raise HTTPException(status_code=422, detail=str(e))
    except PersistenceFailed as e:
        raise HTTPException(status_code=500, detail=f"Failed to save task: {str(e)}")


@app.get("/tasks", response_model=List[Task])
async def list_tasks(open_only: bool = False, service: TaskService = Depends(get_task_service)):
    """List all tasks (newest first), or only the ones not completed yet."""
    if open_only:
        return service.repository.get_open()
    return service.repository.get_all()


@app.get("/tasks/{task_id}", response_model=Task)
async def get_task(task_id: str, service: TaskService = Depends(get_task_service)):
    task = service.repository.find_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@app.post("/tasks/{task_id}/complete", response_model=TaskOutcome)
async def complete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    """Complete a task; repeating tasks get their next occurrence."""
    try:
        outcome = await service.complete_task(task_id)
    except PersistenceFailed as e:
        raise HTTPException(status_code=500, detail=f"Failed to complete task: {str(e)}")
    if outcome is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return outcome


@app.delete("/tasks/{task_id}")
async def delete_task(task_id: str, service: TaskService = Depends(get_task_service)):
    if not await service.delete_task(task_id):
        raise HTTPException(status_code=404, detail="Task not found")
    return {"deleted": True}


@app.get("/tasks/{task_id}/reminders/preview", response_model=ReminderPreviewResponse)
async def preview_task_reminders(task_id: str, service: TaskService = Depends(get_task_service)):
    """Show when a task's reminders would fire, ignoring the shared budget."""
    task = service.repository.find_by_id(task_id)
    if task is None:
        raise HTTPException(status_code=404, detail="Task not found")
    plan = preview_reminders(task)
    return ReminderPreviewResponse(
        task_id=task.id,
        anchor_mode=plan.window.anchor_mode if plan.window else None,
        intervals=plan.intervals,
        cap=plan.cap,
        fire_times=plan.fire_times,
    )


@app.get("/notifications/budget", response_model=BudgetResponse)
async def notification_budget(service: TaskService = Depends(get_task_service)):
    """Current use of the pending-notification budget."""
    return BudgetResponse(**service.dispatcher.scheduler.budget.snapshot())


@app.get("/notifications/due", response_model=List[NotificationResponse])
async def due_notifications(service: TaskService = Depends(get_task_service)):
    """Pending notifications whose fire time has been reached, for the delivery worker."""
    rows = service.dispatcher.center.due(datetime.utcnow())
    return [
        NotificationResponse(id=row.id, task_id=row.task_id, fire_time=row.fire_time, kind=row.kind)
        for row in rows
    ]


@app.post("/notifications/{notification_id}/delivered", response_model=DeliveryResponse)
async def notification_delivered(notification_id: str, service: TaskService = Depends(get_task_service)):
    """Delivery callback; schedules the next reminder of open-ended tasks."""
    return DeliveryResponse(next_notification_id=await service.handle_delivery(notification_id))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
