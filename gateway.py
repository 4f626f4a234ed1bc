# gateway.py
"""Authorization-checked entry points into the feed refresh core."""
from typing import Callable, Optional

from sqlalchemy.orm import Session

import feeds_crud as crud
import ingestion
import models
from contracts import FeedScheduling
from errors import Forbidden, InvalidState, NotFound
from feed_parser import FeedParser
from logger import logger


class RefreshGateway:
    def __init__(
        self,
        scheduler: FeedScheduling,
        session_factory: Callable[[], Session],
        parser: Optional[ingestion.ItemSource] = None,
    ):
        self.scheduler = scheduler
        self.session_factory = session_factory
        self.parser = parser or FeedParser()

    # --- permission helpers ---
    def _ensure_member(self, db: Session, collection_id: int, user_id: int) -> models.CollectionMember:
        membership = crud.get_membership(db, user_id, collection_id)
        if membership is None:
            raise Forbidden("You are not a member of this collection")
        return membership

    def _ensure_can_edit(self, membership: models.CollectionMember):
        if membership.role not in models.MemberRole.EDITORS:
            raise Forbidden("Insufficient permissions")

    def _get_feed(self, db: Session, feed_id: int) -> models.Feed:
        feed = crud.get_feed(db, feed_id)
        if feed is None:
            raise NotFound("Feed not found")
        return feed

    # --- feed CRUD hooks ---
    def create_feed(self, db: Session, user_id: int, data: dict) -> models.Feed:
        membership = self._ensure_member(db, data["collection_id"], user_id)
        self._ensure_can_edit(membership)
        feed = crud.create_feed(
            db,
            collection_id=data["collection_id"],
            title=data["title"],
            url=data["url"],
            description=data.get("description"),
            category=data.get("category"),
            update_freq=data.get("update_freq"),
            status=data.get("status") or models.FeedStatus.ACTIVE,
        )
        self.scheduler.schedule_feed(feed.id)
        return feed

    def list_feeds(self, db: Session, user_id: int, collection_id: int):
        self._ensure_member(db, collection_id, user_id)
        return crud.list_feeds_for_collection(db, collection_id)

    def update_feed(self, db: Session, user_id: int, feed_id: int, patch: dict) -> models.Feed:
        feed = self._get_feed(db, feed_id)
        membership = self._ensure_member(db, feed.collection_id, user_id)
        self._ensure_can_edit(membership)
        updated = crud.update_feed(db, feed, patch)
        # keep the trigger in line with the frequency, even for INACTIVE feeds
        if "update_freq" in patch:
            self.scheduler.schedule_feed(feed_id)
        return updated

    def remove_feed(self, db: Session, user_id: int, feed_id: int) -> None:
        feed = self._get_feed(db, feed_id)
        membership = self._ensure_member(db, feed.collection_id, user_id)
        self._ensure_can_edit(membership)
        self.scheduler.unschedule_feed(feed_id)
        crud.delete_feed_cascade(db, feed_id)
        logger.info(f"Feed #{feed_id} removed by user #{user_id}")

    # --- schedule ---
    def get_schedule(self, db: Session, user_id: int, feed_id: int) -> Optional[dict]:
        feed = self._get_feed(db, feed_id)
        self._ensure_member(db, feed.collection_id, user_id)
        return self.scheduler.get_trigger(feed_id)

    def schedule_feed(self, db: Session, user_id: int, feed_id: int) -> Optional[dict]:
        feed = self._get_feed(db, feed_id)
        membership = self._ensure_member(db, feed.collection_id, user_id)
        self._ensure_can_edit(membership)
        return self.scheduler.schedule_feed(feed_id)

    def unschedule_feed(self, db: Session, user_id: int, feed_id: int) -> None:
        feed = self._get_feed(db, feed_id)
        membership = self._ensure_member(db, feed.collection_id, user_id)
        self._ensure_can_edit(membership)
        self.scheduler.unschedule_feed(feed_id)
        logger.info(f"Automatic refresh of feed #{feed_id} stopped by user #{user_id}")

    def reschedule_all(self, db: Session, user_id: int) -> dict:
        if not crud.has_any_membership(db, user_id):
            raise Forbidden("You are not a member of any collection")
        return self.scheduler.schedule_all_feeds()

    # --- refresh ---
    def ingest(self, db: Session, feed_id: int) -> dict:
        return ingestion.ingest(db, feed_id, self.parser)

    def ingest_for_user(self, db: Session, user_id: int, feed_id: int) -> dict:
        feed = self._get_feed(db, feed_id)
        self._ensure_member(db, feed.collection_id, user_id)
        return self.ingest(db, feed_id)

    def manual_refresh(self, db: Session, user_id: int, feed_id: int) -> dict:
        feed = self._get_feed(db, feed_id)
        self._ensure_member(db, feed.collection_id, user_id)
        if feed.status == models.FeedStatus.INACTIVE:
            raise InvalidState("Feed is inactive")
        result = self.ingest(db, feed_id)
        total = crud.count_articles(db, feed_id)
        return {"added": result["created"], "totalArticlesForFeed": total}

    def refresh_scheduled(self, feed_id: int, actor_id: Optional[int]) -> dict:
        """Worker path: the actor was resolved when the trigger was registered."""
        db = self.session_factory()
        try:
            result = self.ingest(db, feed_id)
        finally:
            db.close()
        return result
