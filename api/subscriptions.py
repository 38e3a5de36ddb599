from __future__ import annotations

from flask import Blueprint, g, abort

from models import storage
from models.user import User
from models.subscription import Subscription
from models.schemas.common import OwnerSummarySchema
from utils.decorators import jwt_required
from api.users import subscriber_count
from api.utils.query import parse_pagination, paginate
from api.utils.responses import api_response

bp = Blueprint("subscriptions", __name__)

channels_out_schema = OwnerSummarySchema(many=True)


@bp.post("/subscriptions/<channel_id>")
@jwt_required()
def toggle_subscription(channel_id: str):
    """
    Subscribe to or unsubscribe from a channel
    ---
    tags:
      - Subscriptions
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: channel_id
        type: string
        required: true
    responses:
      200: { description: "{is_subscribed, subscribers_count}" }
      400: { description: Cannot subscribe to yourself }
      404: { description: Channel not found }
    """
    user = g.current_user
    if channel_id == user.id:
        abort(400, description="You cannot subscribe to your own channel")
    channel = storage.get(User, channel_id)
    if not channel:
        abort(404, description="Channel not found")

    session = storage.get_session()
    existing = (
        session.query(Subscription)
        .filter(Subscription.subscriber_id == user.id, Subscription.channel_id == channel.id)
        .first()
    )
    if existing:
        storage.delete(existing)
    else:
        storage.new(Subscription(subscriber_id=user.id, channel_id=channel.id))
    storage.save()

    is_subscribed = existing is None
    message = "Subscribed successfully" if is_subscribed else "Unsubscribed successfully"
    return api_response(200, message, {
        "is_subscribed": is_subscribed,
        "subscribers_count": subscriber_count(channel.id),
    })


@bp.get("/subscriptions")
@jwt_required()
def my_channels():
    """
    Channels the current user subscribes to
    ---
    tags:
      - Subscriptions
    security:
      - CookieAuth: []
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination(default_limit=20)
    session = storage.get_session()
    query = (
        session.query(User)
        .join(Subscription, Subscription.channel_id == User.id)
        .filter(Subscription.subscriber_id == g.current_user.id)
    )
    rows, meta = paginate(query, [Subscription.created_at.desc()], page, limit)
    return api_response(200, "Subscribed channels fetched successfully", {
        "items": channels_out_schema.dump(rows),
        "meta": meta,
    })


@bp.get("/subscriptions/<channel_id>/subscribers")
@jwt_required()
def channel_subscribers(channel_id: str):
    """
    Subscribers of a channel
    ---
    tags:
      - Subscriptions
    security:
      - CookieAuth: []
    parameters:
      - in: path
        name: channel_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Channel not found }
    """
    if not storage.get(User, channel_id):
        abort(404, description="Channel not found")
    page, limit = parse_pagination(default_limit=20)
    session = storage.get_session()
    query = (
        session.query(User)
        .join(Subscription, Subscription.subscriber_id == User.id)
        .filter(Subscription.channel_id == channel_id)
    )
    rows, meta = paginate(query, [Subscription.created_at.desc()], page, limit)
    return api_response(200, "Subscribers fetched successfully", {
        "items": channels_out_schema.dump(rows),
        "meta": meta,
    })
