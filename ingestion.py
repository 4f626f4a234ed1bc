# ingestion.py
"""Fetch one feed, normalize its items and store the ones not seen before."""
from datetime import datetime, timezone
from typing import Optional, Protocol, List

from dateutil import parser as dtparse
from sqlalchemy.orm import Session

import feeds_crud as crud
import models
from errors import InvalidState, NotFound
from feed_parser import ParsedItem, strip_html
from logger import logger

UNTITLED = "(untitled)"


class ItemSource(Protocol):
    def parse_url(self, url: str) -> List[ParsedItem]: ...


def _published_at(item: ParsedItem) -> Optional[datetime]:
    if item.iso_date is not None:
        return item.iso_date
    if item.pub_date:
        try:
            parsed = dtparse.parse(item.pub_date)
        except (ValueError, OverflowError):
            return None
        # dates without an offset are taken as UTC
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _author(item: ParsedItem) -> Optional[str]:
    if isinstance(item.creator, (list, tuple)):
        if item.creator:
            return item.creator[0]
    elif item.creator:
        return item.creator
    return item.author or None


def normalize_item(feed_id: int, item: ParsedItem) -> Optional[dict]:
    """Map a parsed item to article column values, or None when it has no url."""
    url = item.link or item.id
    if not url:
        return None
    return {
        "feed_id": feed_id,
        "guid": item.guid or None,
        "url": url,
        "title": item.title or UNTITLED,
        "author": _author(item),
        "published_at": _published_at(item),
        "summary": item.content_snippet or None,
        "content_text": strip_html(item.content),
    }


def ingest(db: Session, feed_id: int, parser: ItemSource) -> dict:
    feed = crud.get_feed(db, feed_id)
    if feed is None:
        raise NotFound("Feed not found")
    # INACTIVE feeds never refresh, whichever path triggered the call
    if feed.status == models.FeedStatus.INACTIVE:
        raise InvalidState("Feed is inactive")

    items = parser.parse_url(feed.url)

    processed = 0
    created = 0
    for item in items:
        processed += 1
        values = normalize_item(feed.id, item)
        if values is None:
            continue
        if crud.insert_article(db, values):
            created += 1

    crud.touch_last_fetched(db, feed)
    logger.info(f"Feed #{feed.id} ingested: processed={processed} created={created}")
    return {"processed": processed, "created": created}
