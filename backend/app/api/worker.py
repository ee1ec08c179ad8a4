"""Worker control API: page messages, sync triggers, push delivery, status."""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional

from ..services.background_sync import PERIODIC_SYNC_TAG, SYNC_TAG
from ..services.worker import ServiceWorker, WorkerEvent

router = APIRouter(prefix="/_worker", tags=["worker"])


def get_worker(request: Request) -> ServiceWorker:
    return request.app.state.worker


class WorkerMessage(BaseModel):
    type: str


class SyncTrigger(BaseModel):
    tag: str = SYNC_TAG


class PeriodicSyncTrigger(BaseModel):
    tag: str = PERIODIC_SYNC_TAG


class PushPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str
    body: str = ""
    primary_key: Optional[Any] = Field(default=None, alias="primaryKey")


class NotificationClick(BaseModel):
    action: Optional[str] = None


class NotificationActionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    action: str
    title: str
    icon: str


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    body: str
    icon: str
    badge: str
    vibrate: List[int]
    data: dict
    actions: List[NotificationActionResponse]
    closed: bool


@router.get("/status")
async def worker_status(worker: ServiceWorker = Depends(get_worker)):
    """Lifecycle state and the cache partitions currently stored."""
    return {
        "state": worker.lifecycle.state.value,
        "controlling": worker.lifecycle.controlling,
        "skip_waiting_requested": worker.lifecycle.skip_waiting_requested,
        "static_cache": worker.config.static_cache,
        "dynamic_cache": worker.config.dynamic_cache,
        "caches": await worker.store.keys(),
    }


@router.post("/message")
async def post_message(message: WorkerMessage, worker: ServiceWorker = Depends(get_worker)):
    handled = await worker.dispatch(WorkerEvent.MESSAGE, message.model_dump())
    return {"handled": handled, "state": worker.lifecycle.state.value}


@router.post("/sync")
async def trigger_sync(trigger: SyncTrigger, worker: ServiceWorker = Depends(get_worker)):
    """Connectivity restored: replay cached API state."""
    report = await worker.dispatch(WorkerEvent.SYNC, trigger.tag)
    if report is None:
        return {"handled": False, "tag": trigger.tag}
    return {"handled": True, **report.as_dict()}


@router.post("/periodic-sync")
async def trigger_periodic_sync(trigger: PeriodicSyncTrigger, worker: ServiceWorker = Depends(get_worker)):
    report = await worker.dispatch(WorkerEvent.PERIODIC_SYNC, trigger.tag)
    if report is None:
        return {"handled": False, "tag": trigger.tag}
    return {"handled": True, **report.as_dict()}


@router.post("/push", response_model=NotificationResponse)
async def push(payload: PushPayload, worker: ServiceWorker = Depends(get_worker)):
    notification = await worker.dispatch(
        WorkerEvent.PUSH,
        {"title": payload.title, "body": payload.body, "primaryKey": payload.primary_key},
    )
    return notification


@router.post("/notifications/{notification_id}/click")
async def click_notification(
    notification_id: str,
    click: NotificationClick,
    worker: ServiceWorker = Depends(get_worker),
):
    try:
        open_url = await worker.dispatch(
            WorkerEvent.NOTIFICATION_CLICK,
            {"notification_id": notification_id, "action": click.action},
        )
    except KeyError:
        raise HTTPException(status_code=404, detail="Notification not found")
    return {"open_url": open_url}
