# jobs_router.py
from typing import List

from fastapi import APIRouter, Depends, Request

from auth import current_user_id
from feeds_router import get_scheduler
from scheduler import FeedScheduler
import schemas

router = APIRouter(prefix="/jobs", tags=["jobs"])


@router.get("/triggers", response_model=List[schemas.TriggerRead], summary="Registered recurring triggers")
def list_triggers(
    _: int = Depends(current_user_id),
    scheduler: FeedScheduler = Depends(get_scheduler),
):
    return scheduler.list_triggers()


@router.get("/stats", summary="Refresh job counters and process metrics")
def job_stats(request: Request, _: int = Depends(current_user_id)):
    return request.app.state.worker.monitor.get_stats()
