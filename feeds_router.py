# feeds_router.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from auth import current_user_id
from database import get_db
from gateway import RefreshGateway
from scheduler import FeedScheduler
import schemas

router = APIRouter(prefix="/feeds", tags=["feeds"])


def get_gateway(request: Request) -> RefreshGateway:
    return request.app.state.gateway


def get_scheduler(request: Request) -> FeedScheduler:
    return request.app.state.scheduler


@router.post("", response_model=schemas.FeedRead, status_code=201, summary="Add a feed to a collection")
def create_feed(
    data: schemas.FeedCreate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.create_feed(db, user_id, data.model_dump())


@router.get("/collection/{collection_id}", response_model=List[schemas.FeedRead], summary="Feeds of a collection")
def list_feeds(
    collection_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.list_feeds(db, user_id, collection_id)


@router.post("/reschedule-all", response_model=schemas.ScheduleAllResult, summary="Rebuild every recurring trigger")
def reschedule_all(
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.reschedule_all(db, user_id)


@router.patch("/{feed_id}", response_model=schemas.FeedRead, summary="Update title, category, frequency or status")
def update_feed(
    feed_id: int,
    patch: schemas.FeedUpdate,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    values = patch.model_dump(exclude_unset=True)
    for key in ("title", "status"):
        if key in values and values[key] is None:
            raise HTTPException(status_code=400, detail=f"{key} cannot be null")
    return gateway.update_feed(db, user_id, feed_id, values)


@router.delete("/{feed_id}", status_code=204, summary="Delete a feed with its articles")
def remove_feed(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    gateway.remove_feed(db, user_id, feed_id)
    return Response(status_code=204)


@router.post("/{feed_id}/refresh", response_model=schemas.RefreshResult, summary="Fetch the feed now")
def refresh_feed(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.manual_refresh(db, user_id, feed_id)


@router.get("/{feed_id}/schedule", response_model=Optional[schemas.TriggerRead], summary="Current recurring trigger")
def get_schedule(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.get_schedule(db, user_id, feed_id)


@router.post("/{feed_id}/schedule", response_model=Optional[schemas.TriggerRead], summary="Register the recurring trigger")
def schedule_feed(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.schedule_feed(db, user_id, feed_id)


@router.post("/{feed_id}/unschedule", summary="Stop automatic refreshes")
def unschedule_feed(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    gateway.unschedule_feed(db, user_id, feed_id)
    return {"ok": True}
