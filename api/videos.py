from __future__ import annotations

from flask import Blueprint, request, g, abort
from sqlalchemy import or_

from models import storage
from models.base_model import utcnow
from models.video import Video, WatchHistory
from models.comment import Comment
from models.like import Like
from models.subscription import Subscription
from models.schemas.video import VideoCreateSchema, VideoUpdateSchema, VideoOutSchema
from utils.decorators import jwt_required, optional_auth
from api.utils.query import parse_pagination, parse_sort, paginate
from api.utils.responses import api_response

bp = Blueprint("videos", __name__)

video_create_schema = VideoCreateSchema()
video_update_schema = VideoUpdateSchema()
video_out_schema = VideoOutSchema()
videos_out_schema = VideoOutSchema(many=True)

# Sorting allowlist: API field -> SQLAlchemy column
SORT_COLUMNS = {
    "created_at": Video.created_at,
    "views": Video.views,
    "title": Video.title,
    "duration": Video.duration,
}


def get_visible_video(video_id: str, viewer=None) -> Video:
    """Unpublished videos exist only for their owner."""
    video = storage.get(Video, video_id)
    if not video:
        abort(404, description="Video not found")
    if not video.is_published and (viewer is None or viewer.id != video.owner_id):
        abort(404, description="Video not found")
    return video


def get_owned_video(video_id: str) -> Video:
    video = get_visible_video(video_id, g.current_user)
    if video.owner_id != g.current_user.id:
        abort(403, description="You can only modify your own videos")
    return video


@bp.post("/videos")
@jwt_required()
def create_video():
    """
    Publish a video. File and thumbnail are URLs of already uploaded media.
    ---
    tags:
      - Videos
    security:
      - CookieAuth: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [title, video_file, thumbnail]
          properties:
            title: { type: string }
            description: { type: string }
            video_file: { type: string }
            thumbnail: { type: string }
            duration: { type: number }
            is_published: { type: boolean }
    responses:
      201: { description: Created }
      422: { description: Validation error }
    """
    data = video_create_schema.load(request.get_json(silent=True) or {})
    video = Video(owner_id=g.current_user.id, **data)
    storage.new(video)
    storage.save()
    return api_response(201, "Video published successfully", video_out_schema.dump(video))


@bp.get("/videos")
def list_videos():
    """
    List published videos
    ---
    tags:
      - Videos
    parameters:
      - in: query
        name: q
        type: string
        description: Substring of title or description
      - in: query
        name: user_id
        type: string
      - in: query
        name: sort
        type: string
        description: "created_at, views, title, duration; prefix '-' for descending (default -created_at)"
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
      400: { description: Bad query parameters }
    """
    page, limit = parse_pagination()
    order_by = parse_sort(SORT_COLUMNS, "-created_at")

    session = storage.get_session()
    query = session.query(Video).filter(Video.is_published.is_(True))

    q = (request.args.get("q") or "").strip()
    if q:
        like = f"%{q}%"
        query = query.filter(or_(Video.title.ilike(like), Video.description.ilike(like)))

    user_id = request.args.get("user_id")
    if user_id:
        query = query.filter(Video.owner_id == user_id)

    rows, meta = paginate(query, order_by, page, limit)
    return api_response(200, "Videos fetched successfully", {
        "items": videos_out_schema.dump(rows),
        "meta": meta,
    })


@bp.get("/videos/<video_id>")
@optional_auth()
def get_video(video_id: str):
    """
    Watch a video: counts a view and, for signed-in viewers, records history
    ---
    tags:
      - Videos
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
    responses:
      200: { description: Video with owner, counts and viewer flags }
      404: { description: Video not found }
    """
    viewer = g.current_user
    video = get_visible_video(video_id, viewer)
    session = storage.get_session()

    session.query(Video).filter(Video.id == video.id).update(
        {Video.views: Video.views + 1}, synchronize_session="fetch"
    )

    is_liked = is_subscribed = False
    if viewer is not None:
        entry = session.get(WatchHistory, (viewer.id, video.id))
        if entry:
            entry.watched_at = utcnow()
        else:
            storage.new(WatchHistory(user_id=viewer.id, video_id=video.id, watched_at=utcnow()))
        is_liked = (
            session.query(Like).filter(Like.liked_by == viewer.id, Like.video_id == video.id).first()
            is not None
        )
        is_subscribed = (
            session.query(Subscription)
            .filter(Subscription.subscriber_id == viewer.id, Subscription.channel_id == video.owner_id)
            .first()
            is not None
        )
    storage.save()
    session.refresh(video)

    data = video_out_schema.dump(video)
    data.update({
        "likes_count": session.query(Like).filter(Like.video_id == video.id).count(),
        "comments_count": session.query(Comment).filter(Comment.video_id == video.id).count(),
        "subscribers_count": session.query(Subscription).filter(Subscription.channel_id == video.owner_id).count(),
        "is_liked": is_liked,
        "is_subscribed": is_subscribed,
    })
    return api_response(200, "Video fetched successfully", data)


@bp.patch("/videos/<video_id>")
@jwt_required()
def update_video(video_id: str):
    """
    Update title, description or thumbnail (owner only)
    ---
    tags:
      - Videos
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            title: { type: string }
            description: { type: string }
            thumbnail: { type: string }
    responses:
      200: { description: Updated }
      403: { description: Not the owner }
      404: { description: Video not found }
    """
    video = get_owned_video(video_id)
    data = video_update_schema.load(request.get_json(silent=True) or {})
    for key, value in data.items():
        setattr(video, key, value)
    storage.save()
    return api_response(200, "Video updated successfully", video_out_schema.dump(video))


@bp.delete("/videos/<video_id>")
@jwt_required()
def delete_video(video_id: str):
    """
    Delete a video with its comments, likes and history entries (owner only)
    ---
    tags:
      - Videos
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
    responses:
      200: { description: Deleted }
      403: { description: Not the owner }
      404: { description: Video not found }
    """
    video = get_owned_video(video_id)
    storage.delete(video)
    storage.save()
    return api_response(200, "Video deleted successfully")


@bp.post("/videos/<video_id>/toggle-publish")
@jwt_required()
def toggle_publish(video_id: str):
    """
    Publish or unpublish a video (owner only)
    ---
    tags:
      - Videos
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
    responses:
      200: { description: New publish state }
      403: { description: Not the owner }
      404: { description: Video not found }
    """
    video = get_owned_video(video_id)
    video.is_published = not video.is_published
    storage.save()
    return api_response(200, "Publish status toggled", {"id": video.id, "is_published": video.is_published})
