from pydantic import BaseModel, Field, field_validator
from typing import List, Optional, Literal
from datetime import datetime

UpdateFreq = Literal["hourly", "6h", "daily"]
Status = Literal["ACTIVE", "INACTIVE"]


# --- Feeds ---
class FeedBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    update_freq: Optional[UpdateFreq] = None
    status: Status = "ACTIVE"


class FeedCreate(FeedBase):
    collection_id: int
    url: str = Field(..., min_length=1)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v):
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Feed URL must start with http:// or https://")
        return v


class FeedUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    category: Optional[str] = None
    update_freq: Optional[UpdateFreq] = None
    status: Optional[Status] = None


class FeedRead(FeedBase):
    id: int
    collection_id: int
    url: str
    last_fetched_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# --- Refresh results ---
class IngestResult(BaseModel):
    processed: int
    created: int


class RefreshResult(BaseModel):
    added: int
    totalArticlesForFeed: int


class ScheduleAllResult(BaseModel):
    scheduled: int


class TriggerRead(BaseModel):
    name: str
    feedId: int
    actorId: Optional[int] = None
    pattern: str
    nextRunAt: Optional[datetime] = None


# --- Articles ---
class ArticleRead(BaseModel):
    id: int
    feed_id: int
    guid: Optional[str] = None
    url: str
    title: str
    author: Optional[str] = None
    published_at: Optional[datetime] = None
    summary: Optional[str] = None
    content_text: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ReadToggle(BaseModel):
    articleId: int
    isRead: bool


class FavoriteToggle(BaseModel):
    articleId: int
    isFavorite: bool


class ArticleStatusRead(BaseModel):
    user_id: int
    article_id: int
    is_read: bool
    is_favorite: bool

    class Config:
        from_attributes = True


class FeedRef(BaseModel):
    id: int
    title: str
    category: Optional[str] = None


class ArticleListItem(BaseModel):
    id: int
    title: str
    url: str
    author: Optional[str] = None
    summary: Optional[str] = None
    publishedAt: Optional[datetime] = None
    feed: FeedRef
    isRead: bool = False
    isFavorite: bool = False


class ArticlePage(BaseModel):
    items: List[ArticleListItem]
    nextCursor: Optional[int] = None
