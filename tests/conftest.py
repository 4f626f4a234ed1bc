import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("SCHEDULE_ON_STARTUP", "false")

from datetime import datetime, timezone

import fakeredis
import pytest

import models
from database import Base, SessionLocal, engine
from errors import FetchError
from feed_parser import ParsedItem
from scheduler import FeedScheduler

FIXED_NOW = datetime(2026, 1, 5, 10, 30, tzinfo=timezone.utc)


class FakeParser:
    """Serves canned items per URL; an exception instance is raised instead."""

    def __init__(self, documents=None):
        self.documents = documents or {}
        self.calls = []

    def parse_url(self, url):
        self.calls.append(url)
        doc = self.documents.get(url)
        if doc is None:
            raise FetchError(f"HTTP 404 fetching {url}")
        if isinstance(doc, Exception):
            raise doc
        return list(doc)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def redis_conn():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def scheduler(redis_conn):
    return FeedScheduler(redis_conn, SessionLocal, prefix="test-refresh", clock=lambda: FIXED_NOW)


@pytest.fixture
def parser():
    return FakeParser()


@pytest.fixture
def world(db):
    """Owner + member + reader sharing one collection, plus an outsider."""
    owner = models.User(name="owner")
    member = models.User(name="member")
    reader = models.User(name="reader")
    outsider = models.User(name="outsider")
    db.add_all([owner, member, reader, outsider])
    db.commit()

    collection = models.Collection(name="Tech", owner_id=owner.id)
    db.add(collection)
    db.commit()
    db.add_all([
        models.CollectionMember(user_id=owner.id, collection_id=collection.id, role=models.MemberRole.OWNER),
        models.CollectionMember(user_id=member.id, collection_id=collection.id, role=models.MemberRole.MEMBER),
        models.CollectionMember(user_id=reader.id, collection_id=collection.id, role=models.MemberRole.READER),
    ])
    db.commit()
    return {
        "owner": owner.id,
        "member": member.id,
        "reader": reader.id,
        "outsider": outsider.id,
        "collection": collection.id,
    }


def make_feed(db, collection_id, url="https://example.com/feed.xml", **values):
    feed = models.Feed(collection_id=collection_id, title=values.pop("title", "Example"), url=url, **values)
    db.add(feed)
    db.commit()
    db.refresh(feed)
    return feed


def item(**values) -> ParsedItem:
    return ParsedItem(**values)
