from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base


class MemberRole:
    OWNER = "OWNER"
    MEMBER = "MEMBER"
    READER = "READER"

    EDITORS = (OWNER, MEMBER)


class FeedStatus:
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)


class Collection(Base):
    __tablename__ = "collections"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_shared = Column(Boolean, nullable=False, default=False)
    owner_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    owner = relationship("User")
    members = relationship("CollectionMember", back_populates="collection")
    feeds = relationship("Feed", back_populates="collection")


class CollectionMember(Base):
    __tablename__ = "collection_members"
    __table_args__ = (
        UniqueConstraint("user_id", "collection_id", name="uq_member_user_collection"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False)
    role = Column(String, nullable=False, default=MemberRole.READER)
    joined_at = Column(DateTime, default=func.now(), nullable=False)

    collection = relationship("Collection", back_populates="members")


class Feed(Base):
    __tablename__ = "feeds"
    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE', 'INACTIVE')", name="ck_feed_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    collection_id = Column(Integer, ForeignKey("collections.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False)
    url = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True)
    update_freq = Column(String, nullable=True)  # "hourly" | "6h" | "daily"
    status = Column(String, nullable=False, default=FeedStatus.ACTIVE)
    last_fetched_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    collection = relationship("Collection", back_populates="feeds")


class Article(Base):
    __tablename__ = "articles"

    # Dedup guards: re-fetching a feed must not duplicate items already seen.
    # NULL guids never collide, so guid-less items fall back to the url guard.
    __table_args__ = (
        UniqueConstraint("feed_id", "url", name="uq_article_feed_url"),
        UniqueConstraint("feed_id", "guid", name="uq_article_feed_guid"),
        Index("ix_articles_feed_published", "feed_id", "published_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    feed_id = Column(Integer, ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False)
    guid = Column(Text, nullable=True)
    url = Column(Text, nullable=False)
    title = Column(Text, nullable=False)
    author = Column(String, nullable=True)
    published_at = Column(DateTime(timezone=True), nullable=True)
    summary = Column(Text, nullable=True)
    content_text = Column(Text, nullable=True)
    created_at = Column(DateTime, default=func.now(), nullable=False)

    feed = relationship("Feed")


class ArticleStatus(Base):
    __tablename__ = "article_statuses"
    __table_args__ = (
        UniqueConstraint("user_id", "article_id", name="uq_status_user_article"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    is_favorite = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)


class Comment(Base):
    """Per-article discussion entry. Written by the comments service; the
    refresh core only deletes them when a feed goes away."""

    __tablename__ = "comments"

    id = Column(Integer, primary_key=True, index=True)
    article_id = Column(Integer, ForeignKey("articles.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    body = Column(Text, nullable=False)
    created_at = Column(DateTime, default=func.now(), nullable=False)
