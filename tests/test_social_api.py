import pytest

from models import storage
from models.comment import Comment
from models.like import Like
from models.video import Video
from tests.helpers import API


@pytest.fixture
def bob(make_user):
    return make_user("bob")


@pytest.fixture
def video(bob):
    video = Video(
        owner_id=bob.id,
        title="Bob's channel trailer",
        video_file="https://cdn.example.com/trailer.mp4",
        thumbnail="https://cdn.example.com/trailer.png",
    )
    storage.new(video)
    storage.save()
    return video


# -- comments -------------------------------------------------------------

def test_comment_flow(client, client_for, alice, bob, video):
    alice_client = client_for(alice)
    resp = alice_client.post(f"{API}/videos/{video.id}/comments", json={"content": "  First!  "})
    assert resp.status_code == 201
    comment = resp.get_json()["data"]
    assert comment["content"] == "First!"
    assert comment["owner"]["username"] == "alice"
    assert comment["parent_id"] is None

    resp = client_for(bob).post(f"{API}/comments/{comment['id']}/replies", json={"content": "thanks"})
    assert resp.status_code == 201
    reply = resp.get_json()["data"]
    assert reply["parent_id"] == comment["id"]

    # A reply to a reply joins the same thread
    resp = alice_client.post(f"{API}/comments/{reply['id']}/replies", json={"content": "np"})
    assert resp.get_json()["data"]["parent_id"] == comment["id"]

    listing = client.get(f"{API}/videos/{video.id}/comments").get_json()["data"]
    assert [c["id"] for c in listing["items"]] == [comment["id"]]
    assert listing["items"][0]["replies_count"] == 2

    replies = client.get(f"{API}/comments/{comment['id']}/replies").get_json()["data"]
    assert replies["meta"]["total"] == 2


def test_comment_validation_and_auth(client, auth_client, video):
    assert client.post(f"{API}/videos/{video.id}/comments", json={"content": "hi"}).status_code == 401
    assert auth_client.post(f"{API}/videos/{video.id}/comments", json={"content": "   "}).status_code == 422
    assert auth_client.post(f"{API}/videos/missing/comments", json={"content": "hi"}).status_code == 404


def test_edit_and_delete_comment_owner_only(client_for, alice, bob, video):
    comment = Comment(content="mine", video_id=video.id, owner_id=alice.id)
    storage.new(comment)
    storage.save()
    url = f"{API}/comments/{comment.id}"

    bob_client = client_for(bob)
    alice_client = client_for(alice)
    assert bob_client.patch(url, json={"content": "hacked"}).status_code == 403
    resp = alice_client.patch(url, json={"content": "edited"})
    assert resp.status_code == 200
    assert resp.get_json()["data"]["content"] == "edited"

    assert bob_client.delete(url).status_code == 403
    assert alice_client.delete(url).status_code == 200
    assert alice_client.delete(url).status_code == 404


# -- likes ----------------------------------------------------------------

def test_toggle_video_like(client_for, alice, video):
    alice_client = client_for(alice)
    resp = alice_client.post(f"{API}/likes/videos/{video.id}")
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"is_liked": True, "likes_count": 1}

    liked = alice_client.get(f"{API}/likes/videos").get_json()["data"]["items"]
    assert [v["id"] for v in liked] == [video.id]

    resp = alice_client.post(f"{API}/likes/videos/{video.id}")
    assert resp.get_json()["data"] == {"is_liked": False, "likes_count": 0}
    assert alice_client.get(f"{API}/likes/videos").get_json()["data"]["items"] == []


def test_toggle_comment_like(client, client_for, alice, bob, video):
    comment = Comment(content="like me", video_id=video.id, owner_id=bob.id)
    storage.new(comment)
    storage.save()

    resp = client_for(alice).post(f"{API}/likes/comments/{comment.id}")
    assert resp.get_json()["data"] == {"is_liked": True, "likes_count": 1}
    assert storage.get_session().query(Like).filter(Like.comment_id == comment.id).count() == 1

    listing = client_for(alice).get(f"{API}/videos/{video.id}/comments").get_json()["data"]["items"]
    assert listing[0]["likes_count"] == 1
    assert listing[0]["is_liked"] is True
    assert client.post(f"{API}/likes/comments/{comment.id}").status_code == 401


def test_like_missing_targets(auth_client):
    assert auth_client.post(f"{API}/likes/videos/missing").status_code == 404
    assert auth_client.post(f"{API}/likes/comments/missing").status_code == 404


# -- subscriptions --------------------------------------------------------

def test_toggle_subscription(client_for, alice, bob):
    alice_client = client_for(alice)
    resp = alice_client.post(f"{API}/subscriptions/{bob.id}")
    assert resp.status_code == 200
    assert resp.get_json()["data"] == {"is_subscribed": True, "subscribers_count": 1}

    channels = alice_client.get(f"{API}/subscriptions").get_json()["data"]["items"]
    assert [c["username"] for c in channels] == ["bob"]

    subscribers = alice_client.get(f"{API}/subscriptions/{bob.id}/subscribers").get_json()["data"]
    assert [s["username"] for s in subscribers["items"]] == ["alice"]

    resp = alice_client.post(f"{API}/subscriptions/{bob.id}")
    assert resp.get_json()["data"] == {"is_subscribed": False, "subscribers_count": 0}


def test_cannot_subscribe_to_self_or_missing(auth_client, alice):
    resp = auth_client.post(f"{API}/subscriptions/{alice.id}")
    assert resp.status_code == 400
    assert auth_client.post(f"{API}/subscriptions/missing").status_code == 404
    assert auth_client.get(f"{API}/subscriptions/missing/subscribers").status_code == 404


def test_video_reports_subscription(client_for, alice, bob, video):
    alice_client = client_for(alice)
    alice_client.post(f"{API}/subscriptions/{bob.id}")
    data = alice_client.get(f"{API}/videos/{video.id}").get_json()["data"]
    assert data["is_subscribed"] is True
    assert data["subscribers_count"] == 1
