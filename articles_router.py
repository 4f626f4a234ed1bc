# articles_router.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from auth import current_user_id
from database import get_db
from errors import Forbidden, NotFound
from feeds_router import get_gateway
from gateway import RefreshGateway
import feeds_crud as crud
import schemas

router = APIRouter(prefix="/articles", tags=["articles"])


def _ensure_member_by_feed(db: Session, user_id: int, feed_id: int):
    feed = crud.get_feed(db, feed_id)
    if feed is None:
        raise NotFound("Feed not found")
    if crud.get_membership(db, user_id, feed.collection_id) is None:
        raise Forbidden("You are not a member of this collection")
    return feed


def _ensure_member_by_article(db: Session, user_id: int, article_id: int):
    article = crud.get_article(db, article_id)
    if article is None:
        raise NotFound("Article not found")
    if crud.get_membership(db, user_id, article.feed.collection_id) is None:
        raise Forbidden("You are not a member of this collection")
    return article


@router.post("/fetch/{feed_id}", response_model=schemas.IngestResult, summary="Fetch and store new articles of a feed")
def fetch_feed_articles(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
    gateway: RefreshGateway = Depends(get_gateway),
):
    return gateway.ingest_for_user(db, user_id, feed_id)


@router.get("/feed/{feed_id}", response_model=List[schemas.ArticleRead], summary="Articles of one feed, newest first")
def list_feed_articles(
    feed_id: int,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _ensure_member_by_feed(db, user_id, feed_id)
    return crud.list_feed_articles(db, feed_id)


@router.post("/read", response_model=schemas.ArticleStatusRead, summary="Mark an article read / unread")
def mark_read(
    body: schemas.ReadToggle,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _ensure_member_by_article(db, user_id, body.articleId)
    return crud.upsert_article_status(db, user_id, body.articleId, is_read=body.isRead)


@router.post("/favorite", response_model=schemas.ArticleStatusRead, summary="Mark an article favorite / not favorite")
def mark_favorite(
    body: schemas.FavoriteToggle,
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    _ensure_member_by_article(db, user_id, body.articleId)
    return crud.upsert_article_status(db, user_id, body.articleId, is_favorite=body.isFavorite)


@router.get("", response_model=schemas.ArticlePage, summary="Filtered article listing for a collection")
def list_articles(
    collection_id: int = Query(..., alias="collectionId"),
    feed_id: Optional[int] = Query(None, alias="feedId"),
    category: Optional[str] = Query(None),
    read: Optional[bool] = Query(None),
    favorite: Optional[bool] = Query(None),
    q: Optional[str] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[int] = Query(None),
    user_id: int = Depends(current_user_id),
    db: Session = Depends(get_db),
):
    if crud.get_membership(db, user_id, collection_id) is None:
        raise Forbidden("You are not a member of this collection")

    rows, next_cursor = crud.list_articles_filtered(
        db,
        user_id=user_id,
        collection_id=collection_id,
        feed_id=feed_id,
        category=category,
        read=read,
        favorite=favorite,
        q=q.strip() if q else None,
        limit=limit,
        cursor=cursor,
    )
    items = []
    for article, feed, status in rows:
        items.append({
            "id": article.id,
            "title": article.title,
            "url": article.url,
            "author": article.author,
            "summary": article.summary,
            "publishedAt": article.published_at,
            "feed": {"id": feed.id, "title": feed.title, "category": feed.category},
            "isRead": status.is_read if status else False,
            "isFavorite": status.is_favorite if status else False,
        })
    return {"items": items, "nextCursor": next_cursor}
