from sqlalchemy import (
    Column,
    String,
    Integer,
    Float,
    Boolean,
    Text,
    DateTime,
    ForeignKey,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, utcnow


class Video(BaseModel, Base):
    __tablename__ = "videos"

    # Media live on the object store / CDN; only their URLs are kept here
    video_file = Column(String(512), nullable=False)
    thumbnail = Column(String(512), nullable=False)
    owner_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="no description")
    duration = Column(Float, nullable=True)  # seconds, reported by the media host
    views = Column(Integer, nullable=False, default=0)
    is_published = Column(Boolean, nullable=False, default=True)

    owner = relationship("User", back_populates="videos")
    comments = relationship("Comment", back_populates="video", passive_deletes=True)

    __table_args__ = (
        CheckConstraint("views >= 0", name="ck_videos_views_nonnegative"),
        Index("ix_videos_published_created", "is_published", "created_at"),
    )


class WatchHistory(Base):
    """One row per (user, video); watched_at moves forward on every view."""
    __tablename__ = "watch_history"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), primary_key=True)
    watched_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    video = relationship("Video")
