# tests/test_social_store.py

from __future__ import annotations

import pytest

from mindsender.accounts.profile_store import ProfileStore
from mindsender.social.message_feed import MessageFeed
from mindsender.social.social_models import FriendRequestStatus
from mindsender.social.social_store import SocialStore


@pytest.fixture()
def users(profiles: ProfileStore):
    alice = profiles.create_profile("alice@example.com", "Alice")
    bob = profiles.create_profile("bob@example.com", "Bob")
    carol = profiles.create_profile("carol@example.com", "Carol")
    return alice, bob, carol


def _befriend(social: SocialStore, a, b) -> None:
    res = social.send_friend_request(a.id, b.email)
    assert res.ok
    assert social.accept_request(res.request.id, b.id)


def test_friend_request_flow(social: SocialStore, users) -> None:
    alice, bob, _ = users

    res = social.send_friend_request(alice.id, "BOB@example.com")
    assert res.ok
    assert res.message == "Request sent."
    assert res.request.status == FriendRequestStatus.PENDING

    [incoming] = social.list_incoming_requests(bob.id)
    assert incoming.request.id == res.request.id
    assert incoming.sender.email == "alice@example.com"
    assert social.list_incoming_requests(alice.id) == []

    # Only the receiver can answer.
    assert social.accept_request(res.request.id, alice.id) is False
    assert social.accept_request(res.request.id, bob.id) is True
    assert social.accept_request(res.request.id, bob.id) is False

    assert social.are_friends(alice.id, bob.id)
    assert [p.email for p in social.list_friends(alice.id)] == ["bob@example.com"]
    assert [p.email for p in social.list_friends(bob.id)] == ["alice@example.com"]
    assert social.list_incoming_requests(bob.id) == []


def test_friend_request_rejections(social: SocialStore, users) -> None:
    alice, bob, carol = users

    assert social.send_friend_request(alice.id, "nobody@example.com").message == "User not found."
    assert social.send_friend_request(alice.id, alice.email).message == (
        "You cannot send a friend request to yourself."
    )

    assert social.send_friend_request(alice.id, bob.email).ok
    again = social.send_friend_request(alice.id, bob.email)
    reverse = social.send_friend_request(bob.id, alice.email)
    assert not again.ok and not reverse.ok
    assert reverse.message == "A request or friendship already exists."

    res = social.send_friend_request(carol.id, alice.email)
    assert social.reject_request(res.request.id, alice.id)
    assert not social.are_friends(alice.id, carol.id)
    assert social.list_incoming_requests(alice.id) == []


def test_messages_require_friendship(social: SocialStore, users) -> None:
    alice, bob, _ = users

    with pytest.raises(PermissionError):
        social.send_message(alice.id, bob.id, "hi")

    _befriend(social, alice, bob)
    with pytest.raises(ValueError):
        social.send_message(alice.id, bob.id, "   ")

    first = social.send_message(alice.id, bob.id, "hi bob")
    second = social.send_message(bob.id, alice.id, "hi alice")
    third = social.send_message(alice.id, bob.id, "lunch?")

    convo = social.list_conversation(bob.id, alice.id)
    assert [m.content for m in convo] == ["hi bob", "hi alice", "lunch?"]
    assert [m.content for m in social.list_conversation(bob.id, alice.id, limit=2)] == ["hi alice", "lunch?"]

    assert [m.id for m in social.list_messages_since(bob.id)] == [first.id, third.id]
    assert [m.id for m in social.list_messages_since(bob.id, after_id=first.id)] == [third.id]
    assert second.is_read is False

    assert social.mark_conversation_read(bob.id, alice.id) == 2
    assert social.mark_conversation_read(bob.id, alice.id) == 0
    assert all(m.is_read for m in social.list_messages_since(bob.id))


def test_feed_delivers_to_subscribed_receiver(settings, profiles: ProfileStore, users) -> None:
    alice, bob, carol = users
    feed = MessageFeed()
    social = SocialStore(settings.db_path, profiles, feed)
    _befriend(social, alice, bob)

    received = []
    unsubscribe = feed.subscribe(bob.id, received.append)
    feed.subscribe(carol.id, lambda m: pytest.fail("carol must not see bob's messages"))

    msg = social.send_message(alice.id, bob.id, "ping")
    assert received == [msg]

    unsubscribe()
    unsubscribe()
    assert feed.subscriber_count(bob.id) == 0
    social.send_message(alice.id, bob.id, "pong")
    assert received == [msg]


def test_failing_subscriber_does_not_break_delivery(settings, profiles: ProfileStore, users) -> None:
    alice, bob, _ = users
    feed = MessageFeed()
    social = SocialStore(settings.db_path, profiles, feed)
    _befriend(social, alice, bob)

    def broken(message):
        raise RuntimeError("client went away")

    received = []
    feed.subscribe(bob.id, broken)
    feed.subscribe(bob.id, received.append)

    msg = social.send_message(alice.id, bob.id, "still here")

    assert received == [msg]
    assert feed.publish(msg) == 1
