from sqlalchemy import Column, String, ForeignKey, CheckConstraint, UniqueConstraint

from models.base_model import BaseModel, Base


class Like(BaseModel, Base):
    __tablename__ = "likes"

    liked_by = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    video_id = Column(String(36), ForeignKey("videos.id", ondelete="CASCADE"), nullable=True, index=True)
    comment_id = Column(String(36), ForeignKey("comments.id", ondelete="CASCADE"), nullable=True, index=True)

    __table_args__ = (
        # Exactly one target per like
        CheckConstraint(
            "(video_id IS NULL) <> (comment_id IS NULL)", name="ck_likes_single_target"
        ),
        UniqueConstraint("liked_by", "video_id", name="uq_likes_user_video"),
        UniqueConstraint("liked_by", "comment_id", name="uq_likes_user_comment"),
    )
