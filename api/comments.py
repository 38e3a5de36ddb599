from __future__ import annotations

from flask import Blueprint, request, g, abort
from sqlalchemy import func

from models import storage
from models.comment import Comment
from models.like import Like
from models.schemas.comment import CommentCreateSchema, CommentUpdateSchema, CommentOutSchema
from utils.decorators import jwt_required, optional_auth
from api.videos import get_visible_video
from api.utils.query import parse_pagination, paginate
from api.utils.responses import api_response

bp = Blueprint("comments", __name__)

comment_create_schema = CommentCreateSchema()
comment_update_schema = CommentUpdateSchema()
comment_out_schema = CommentOutSchema()


def get_comment(comment_id: str) -> Comment:
    comment = storage.get(Comment, comment_id)
    if not comment:
        abort(404, description="Comment not found")
    return comment


def get_owned_comment(comment_id: str) -> Comment:
    comment = get_comment(comment_id)
    if comment.owner_id != g.current_user.id:
        abort(403, description="You can only modify your own comments")
    return comment


def dump_comments(rows, viewer=None):
    """Comments with like/reply counts and whether the viewer liked each one."""
    if not rows:
        return []
    session = storage.get_session()
    ids = [c.id for c in rows]
    likes = dict(
        session.query(Like.comment_id, func.count(Like.id))
        .filter(Like.comment_id.in_(ids))
        .group_by(Like.comment_id)
        .all()
    )
    replies = dict(
        session.query(Comment.parent_id, func.count(Comment.id))
        .filter(Comment.parent_id.in_(ids))
        .group_by(Comment.parent_id)
        .all()
    )
    liked = set()
    if viewer is not None:
        liked = {
            cid for (cid,) in session.query(Like.comment_id)
            .filter(Like.liked_by == viewer.id, Like.comment_id.in_(ids))
        }

    items = []
    for c in rows:
        item = comment_out_schema.dump(c)
        item["likes_count"] = likes.get(c.id, 0)
        item["replies_count"] = replies.get(c.id, 0)
        item["is_liked"] = c.id in liked
        items.append(item)
    return items


def _list(query, viewer):
    page, limit = parse_pagination()
    rows, meta = paginate(query, [Comment.created_at.desc(), Comment.id], page, limit)
    return {"items": dump_comments(rows, viewer), "meta": meta}


@bp.get("/videos/<video_id>/comments")
@optional_auth()
def list_video_comments(video_id: str):
    """
    Top-level comments of a video, newest first
    ---
    tags:
      - Comments
    parameters:
      - in: path
        name: video_id
        type: string
        required: true
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
      404: { description: Video not found }
    """
    video = get_visible_video(video_id, g.current_user)
    session = storage.get_session()
    query = session.query(Comment).filter(Comment.video_id == video.id, Comment.parent_id.is_(None))
    return api_response(200, "Comments fetched successfully", _list(query, g.current_user))


@bp.post("/videos/<video_id>/comments")
@jwt_required()
def add_comment(video_id: str):
    """
    Comment on a video
    ---
    tags:
      - Comments
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
          required: [content]
          properties:
            content: { type: string }
    responses:
      201: { description: Created }
      404: { description: Video not found }
      422: { description: Validation error }
    """
    video = get_visible_video(video_id, g.current_user)
    data = comment_create_schema.load(request.get_json(silent=True) or {})
    comment = Comment(content=data["content"], video_id=video.id, owner_id=g.current_user.id)
    storage.new(comment)
    storage.save()
    return api_response(201, "Comment added successfully", comment_out_schema.dump(comment))


@bp.get("/comments/<comment_id>/replies")
@optional_auth()
def list_replies(comment_id: str):
    """
    Replies to a comment, newest first
    ---
    tags:
      - Comments
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Comment not found }
    """
    parent = get_comment(comment_id)
    get_visible_video(parent.video_id, g.current_user)
    session = storage.get_session()
    query = session.query(Comment).filter(Comment.parent_id == parent.id)
    return api_response(200, "Replies fetched successfully", _list(query, g.current_user))


@bp.post("/comments/<comment_id>/replies")
@jwt_required()
def add_reply(comment_id: str):
    """
    Reply to a comment. Replies to a reply attach to the same thread.
    ---
    tags:
      - Comments
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          required: [content]
          properties:
            content: { type: string }
    responses:
      201: { description: Created }
      404: { description: Comment not found }
    """
    parent = get_comment(comment_id)
    get_visible_video(parent.video_id, g.current_user)
    data = comment_create_schema.load(request.get_json(silent=True) or {})
    reply = Comment(
        content=data["content"],
        video_id=parent.video_id,
        owner_id=g.current_user.id,
        parent_id=parent.parent_id or parent.id,
    )
    storage.new(reply)
    storage.save()
    return api_response(201, "Reply added successfully", comment_out_schema.dump(reply))


@bp.patch("/comments/<comment_id>")
@jwt_required()
def update_comment(comment_id: str):
    """
    Edit a comment (owner only)
    ---
    tags:
      - Comments
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          required: [content]
          properties:
            content: { type: string }
    responses:
      200: { description: Updated }
      403: { description: Not the owner }
      404: { description: Comment not found }
    """
    comment = get_owned_comment(comment_id)
    data = comment_update_schema.load(request.get_json(silent=True) or {})
    comment.content = data["content"]
    storage.save()
    return api_response(200, "Comment updated successfully", comment_out_schema.dump(comment))


@bp.delete("/comments/<comment_id>")
@jwt_required()
def delete_comment(comment_id: str):
    """
    Delete a comment with its replies and likes (owner only)
    ---
    tags:
      - Comments
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: comment_id
        type: string
        required: true
    responses:
      200: { description: Deleted }
      403: { description: Not the owner }
      404: { description: Comment not found }
    """
    comment = get_owned_comment(comment_id)
    storage.delete(comment)
    storage.save()
    return api_response(200, "Comment deleted successfully")
