from __future__ import annotations

import logging

from flask import Blueprint, request, g, abort, current_app
from sqlalchemy import or_

from models import storage
from models.user import User, UserRole, AccountStatus
from models.video import Video, WatchHistory
from models.subscription import Subscription
from models.refresh_token import RevocationReason
from models.schemas.user import (
    UserCreateSchema,
    UserOutSchema,
    UserUpdateSchema,
    ChangePasswordSchema,
    RoleUpdateSchema,
    StatusUpdateSchema,
)
from models.schemas.video import VideoOutSchema
from utils.decorators import jwt_required, optional_auth, roles_required
from api.auth import client_info
from api.utils.cookies import set_session_cookies
from api.utils.query import parse_pagination, paginate
from api.utils.responses import api_response

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)

user_create_schema = UserCreateSchema()
user_update_schema = UserUpdateSchema()
change_password_schema = ChangePasswordSchema()
role_update_schema = RoleUpdateSchema()
status_update_schema = StatusUpdateSchema()
user_out_schema = UserOutSchema()
video_out_schema = VideoOutSchema()


def subscriber_count(user_id: str) -> int:
    session = storage.get_session()
    return session.query(Subscription).filter(Subscription.channel_id == user_id).count()


@bp.post("/users/register")
def register():
    """
    Register a new user
    ---
    tags:
      - Users
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [username, fullname, email, password, avatar]
          properties:
            username: { type: string }
            fullname: { type: string }
            email: { type: string }
            password: { type: string }
            avatar: { type: string, description: URL of the uploaded avatar }
            cover_image: { type: string, description: URL of the uploaded cover image }
    responses:
      201:
        description: Created
      409:
        description: Username or email already taken
      422:
        description: Validation error
    """
    data = user_create_schema.load(request.get_json(silent=True) or {})

    session = storage.get_session()
    exists = (
        session.query(User)
        .filter(or_(User.username == data["username"], User.email == data["email"]))
        .first()
    )
    if exists:
        abort(409, description="User with email or username already exists")

    user = User(
        username=data["username"],
        fullname=data["fullname"],
        email=data["email"],
        avatar=data["avatar"],
        cover_image=data.get("cover_image", ""),
        password=data["password"],
    )
    storage.new(user)
    storage.save()
    logger.info("Registered user %s", user.id)

    return api_response(201, "User registered successfully", user_out_schema.dump(user))


@bp.get("/users/me")
@jwt_required()
def get_me():
    """
    Current user profile
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    responses:
      200: { description: OK }
      401: { description: Unauthorized }
    """
    return api_response(200, "Current user fetched successfully", user_out_schema.dump(g.current_user))


@bp.patch("/users/me")
@jwt_required()
def update_me():
    """
    Update fullname and/or email of the current user
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            fullname: { type: string }
            email: { type: string }
    responses:
      200: { description: Updated }
      409: { description: Email already in use }
      422: { description: Validation error }
    """
    data = user_update_schema.load(request.get_json(silent=True) or {})
    user = g.current_user

    if "email" in data and data["email"] != user.email:
        session = storage.get_session()
        if session.query(User).filter(User.email == data["email"], User.id != user.id).first():
            abort(409, description="Email already in use")

    for key, value in data.items():
        setattr(user, key, value)
    storage.save()
    return api_response(200, "Account details updated successfully", user_out_schema.dump(user))


@bp.post("/users/me/password")
@jwt_required()
def change_password():
    """
    Change the current user's password. Every other session is ended and new
    session cookies are set for this client.
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [current_password, new_password]
          properties:
            current_password: { type: string }
            new_password: { type: string }
    responses:
      200: { description: Password changed }
      401: { description: Current password is incorrect }
      422: { description: Validation error }
    """
    data = change_password_schema.load(request.get_json(silent=True) or {})
    issued = current_app.extensions["session_manager"].change_password(
        g.current_user, data["current_password"], data["new_password"], client_info()
    )
    response, status = api_response(200, "Password changed successfully")
    set_session_cookies(
        response, current_app.extensions["auth_settings"], issued.access_token, issued.refresh_token
    )
    return response, status


@bp.get("/users/me/history")
@jwt_required()
def watch_history():
    """
    Videos watched by the current user, most recent first
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    parameters:
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination()
    session = storage.get_session()
    user = g.current_user

    query = (
        session.query(WatchHistory)
        .join(Video, Video.id == WatchHistory.video_id)
        .filter(WatchHistory.user_id == user.id)
        .filter(or_(Video.is_published.is_(True), Video.owner_id == user.id))
    )
    rows, meta = paginate(query, [WatchHistory.watched_at.desc()], page, limit)
    items = []
    for row in rows:
        item = video_out_schema.dump(row.video)
        item["watched_at"] = row.watched_at.isoformat()
        items.append(item)
    return api_response(200, "Watch history fetched successfully", {"items": items, "meta": meta})


@bp.get("/users/<username>")
@optional_auth()
def channel_profile(username: str):
    """
    Public channel profile
    ---
    tags:
      - Users
    parameters:
      - in: path
        name: username
        type: string
        required: true
    responses:
      200: { description: Channel profile with subscriber counts }
      404: { description: Channel does not exist }
    """
    session = storage.get_session()
    channel = session.query(User).filter(User.username == username.strip().lower()).first()
    if not channel:
        abort(404, description="Channel does not exist")

    viewer = g.current_user
    is_subscribed = False
    if viewer is not None:
        is_subscribed = (
            session.query(Subscription)
            .filter(Subscription.subscriber_id == viewer.id, Subscription.channel_id == channel.id)
            .first()
            is not None
        )
    subscribed_to = session.query(Subscription).filter(Subscription.subscriber_id == channel.id).count()

    return api_response(200, "Channel profile fetched successfully", {
        "id": channel.id,
        "username": channel.username,
        "fullname": channel.fullname,
        "avatar": channel.avatar,
        "cover_image": channel.cover_image,
        "subscribers_count": subscriber_count(channel.id),
        "channels_subscribed_to_count": subscribed_to,
        "is_subscribed": is_subscribed,
    })


@bp.post("/users/<user_id>/role")
@roles_required(UserRole.admin)
def set_role(user_id: str):
    """
    Admin-only: set the role of a user
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            role: { type: string, enum: [user, creator, moderator, admin] }
    responses:
      200: { description: OK }
      403: { description: Insufficient permissions }
      404: { description: User not found }
    """
    data = role_update_schema.load(request.get_json(silent=True) or {})
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    user.role = data["role"]
    storage.save()
    logger.info("User %s role set to %s by %s", user.id, user.role.value, g.current_user.id)
    return api_response(200, "Role updated successfully", user_out_schema.dump(user))


@bp.post("/users/<user_id>/status")
@roles_required(UserRole.admin, UserRole.moderator)
def set_status(user_id: str):
    """
    Admin or moderator: activate, suspend or ban a user.
    Suspending or banning ends every session of the user.
    ---
    tags:
      - Users
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
      - in: body
        name: body
        schema:
          type: object
          properties:
            status: { type: string, enum: [active, suspended, banned] }
    responses:
      200: { description: OK }
      400: { description: Cannot change own status }
      403: { description: Insufficient permissions }
      404: { description: User not found }
    """
    data = status_update_schema.load(request.get_json(silent=True) or {})
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    if user.id == g.current_user.id:
        abort(400, description="You cannot change your own account status")
    if user.role == UserRole.admin and g.current_user.role != UserRole.admin:
        abort(403, description="Only admins can change the status of an admin")

    user.account_status = data["status"]
    revoked = 0
    if data["status"] != AccountStatus.active:
        revoked = current_app.extensions["session_manager"].revoke_user_sessions(
            user.id, RevocationReason.account_inactive
        )
    storage.save()
    logger.info("User %s status set to %s (%d sessions revoked)", user.id, user.account_status.value, revoked)
    return api_response(200, "Account status updated successfully", user_out_schema.dump(user))
