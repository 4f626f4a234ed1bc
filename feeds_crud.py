# feeds_crud.py
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import models


# --- Membership / ownership (read-only views of the collections service) ---
def get_membership(db: Session, user_id: int, collection_id: int) -> models.CollectionMember | None:
    return db.execute(
        select(models.CollectionMember).where(
            models.CollectionMember.user_id == user_id,
            models.CollectionMember.collection_id == collection_id,
        )
    ).scalar_one_or_none()


def has_any_membership(db: Session, user_id: int) -> bool:
    return db.execute(
        select(models.CollectionMember.id).where(models.CollectionMember.user_id == user_id).limit(1)
    ).first() is not None


def get_collection_owner_id(db: Session, collection_id: int) -> Optional[int]:
    return db.execute(
        select(models.Collection.owner_id).where(models.Collection.id == collection_id)
    ).scalar_one_or_none()


# --- Feeds ---
def get_feed(db: Session, feed_id: int) -> models.Feed | None:
    return db.get(models.Feed, feed_id)


def list_feed_ids(db: Session) -> list[int]:
    return list(db.execute(select(models.Feed.id).order_by(models.Feed.id)).scalars())


def list_feeds_for_collection(db: Session, collection_id: int):
    return (
        db.query(models.Feed)
        .filter(models.Feed.collection_id == collection_id)
        .order_by(models.Feed.created_at.desc(), models.Feed.id.desc())
        .all()
    )


def create_feed(db: Session, **values) -> models.Feed:
    feed = models.Feed(**values)
    db.add(feed)
    db.commit()
    db.refresh(feed)
    return feed


def update_feed(db: Session, feed: models.Feed, patch: dict) -> models.Feed:
    for key, value in patch.items():
        setattr(feed, key, value)
    db.commit()
    db.refresh(feed)
    return feed


def touch_last_fetched(db: Session, feed: models.Feed) -> models.Feed:
    feed.last_fetched_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(feed)
    return feed


def delete_feed_cascade(db: Session, feed_id: int) -> None:
    """Delete comments and statuses of the feed's articles, the articles, then the feed."""
    article_ids = select(models.Article.id).where(models.Article.feed_id == feed_id)
    db.query(models.Comment).filter(models.Comment.article_id.in_(article_ids)).delete(synchronize_session=False)
    db.query(models.ArticleStatus).filter(models.ArticleStatus.article_id.in_(article_ids)).delete(synchronize_session=False)
    db.query(models.Article).filter(models.Article.feed_id == feed_id).delete(synchronize_session=False)
    db.query(models.Feed).filter(models.Feed.id == feed_id).delete(synchronize_session=False)
    db.commit()


# --- Articles ---
def insert_article(db: Session, values: dict) -> bool:
    """Insert one article unless (feed, url) or (feed, guid) is already stored.

    Returns True when a row was written. Conflicts are not errors: the existing
    row is kept untouched.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = pg_insert(models.Article).values(**values).on_conflict_do_nothing()
    elif dialect == "sqlite":
        stmt = sqlite_insert(models.Article).values(**values).on_conflict_do_nothing()
    else:
        try:
            with db.begin_nested():
                db.add(models.Article(**values))
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            return False
    result = db.execute(stmt)
    db.commit()
    return bool(result.rowcount)


def count_articles(db: Session, feed_id: int) -> int:
    return db.query(models.Article).filter(models.Article.feed_id == feed_id).count()


def get_article(db: Session, article_id: int) -> models.Article | None:
    return db.get(models.Article, article_id)


def list_feed_articles(db: Session, feed_id: int):
    return (
        db.query(models.Article)
        .filter(models.Article.feed_id == feed_id)
        .order_by(models.Article.published_at.desc().nullslast(), models.Article.id.desc())
        .all()
    )


def upsert_article_status(db: Session, user_id: int, article_id: int, **flags) -> models.ArticleStatus:
    status = db.execute(
        select(models.ArticleStatus).where(
            models.ArticleStatus.user_id == user_id,
            models.ArticleStatus.article_id == article_id,
        )
    ).scalar_one_or_none()
    if status is None:
        status = models.ArticleStatus(user_id=user_id, article_id=article_id, is_read=False, is_favorite=False)
        db.add(status)
    for key, value in flags.items():
        setattr(status, key, value)
    db.commit()
    db.refresh(status)
    return status


def list_articles_filtered(
    db: Session,
    user_id: int,
    collection_id: int,
    feed_id: Optional[int] = None,
    category: Optional[str] = None,
    read: Optional[bool] = None,
    favorite: Optional[bool] = None,
    q: Optional[str] = None,
    limit: int = 20,
    cursor: Optional[int] = None,
):
    """Newest-first article listing for one collection with per-user flags.

    Returns (rows, next_cursor) where rows are (Article, Feed, ArticleStatus|None).
    The cursor is the id of the last article of the previous page.
    """
    A, F, S = models.Article, models.Feed, models.ArticleStatus
    query = (
        db.query(A, F, S)
        .join(F, F.id == A.feed_id)
        .outerjoin(S, and_(S.article_id == A.id, S.user_id == user_id))
        .filter(F.collection_id == collection_id)
    )
    if feed_id is not None:
        query = query.filter(F.id == feed_id)
    if category:
        query = query.filter(F.category == category)
    if q:
        pattern = f"%{q}%"
        query = query.filter(or_(
            A.title.ilike(pattern),
            A.summary.ilike(pattern),
            A.content_text.ilike(pattern),
            A.author.ilike(pattern),
        ))
    if read is not None:
        query = query.filter(func.coalesce(S.is_read, False) == read)
    if favorite is not None:
        query = query.filter(func.coalesce(S.is_favorite, False) == favorite)

    if cursor is not None:
        anchor = db.get(A, cursor)
        if anchor is not None:
            if anchor.published_at is not None:
                query = query.filter(or_(
                    A.published_at < anchor.published_at,
                    and_(A.published_at == anchor.published_at, A.id < anchor.id),
                    A.published_at.is_(None),
                ))
            else:
                query = query.filter(A.published_at.is_(None), A.id < anchor.id)

    take = min(max(limit or 20, 1), 100)
    rows = (
        query.order_by(A.published_at.desc().nullslast(), A.id.desc())
        .limit(take)
        .all()
    )
    next_cursor = rows[-1][0].id if len(rows) == take else None
    return rows, next_cursor
