from __future__ import annotations

from flask import Blueprint, g

from models import storage
from models.like import Like
from models.video import Video
from models.schemas.video import VideoOutSchema
from utils.decorators import jwt_required
from api.videos import get_visible_video
from api.comments import get_comment
from api.utils.query import parse_pagination, paginate
from api.utils.responses import api_response

bp = Blueprint("likes", __name__)

videos_out_schema = VideoOutSchema(many=True)


def toggle_like(**target):
    """Remove the caller's like on target if present, else add it. Returns (is_liked, count)."""
    session = storage.get_session()
    user_id = g.current_user.id
    existing = session.query(Like).filter_by(liked_by=user_id, **target).first()
    if existing:
        storage.delete(existing)
    else:
        storage.new(Like(liked_by=user_id, **target))
    storage.save()
    count = session.query(Like).filter_by(**target).count()
    return existing is None, count


@bp.post("/likes/videos/<video_id>")
@jwt_required()
def toggle_video_like(video_id: str):
    """
    Like or unlike a video
    ---
    tags:
      - Likes
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
    responses:
      200: { description: "{is_liked, likes_count}" }
      404: { description: Video not found }
    """
    video = get_visible_video(video_id, g.current_user)
    is_liked, count = toggle_like(video_id=video.id)
    message = "Video liked" if is_liked else "Video unliked"
    return api_response(200, message, {"is_liked": is_liked, "likes_count": count})


@bp.post("/likes/comments/<comment_id>")
@jwt_required()
def toggle_comment_like(comment_id: str):
    """
    Like or unlike a comment
    ---
    tags:
      - Likes
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
    responses:
      200: { description: "{is_liked, likes_count}" }
      404: { description: Comment not found }
    """
    comment = get_comment(comment_id)
    get_visible_video(comment.video_id, g.current_user)
    is_liked, count = toggle_like(comment_id=comment.id)
    message = "Comment liked" if is_liked else "Comment unliked"
    return api_response(200, message, {"is_liked": is_liked, "likes_count": count})


@bp.get("/likes/videos")
@jwt_required()
def liked_videos():
    """
    Published videos liked by the current user, most recently liked first
    ---
    tags:
      - Likes
    security:
      - CookieAuth: []
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination()
    session = storage.get_session()
    query = (
        session.query(Video)
        .join(Like, Like.video_id == Video.id)
        .filter(Like.liked_by == g.current_user.id, Video.is_published.is_(True))
    )
    rows, meta = paginate(query, [Like.created_at.desc()], page, limit)
    return api_response(200, "Liked videos fetched successfully", {
        "items": videos_out_schema.dump(rows),
        "meta": meta,
    })
