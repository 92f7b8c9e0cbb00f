"""
Friends and direct messages.

Components:
- social_models.py: FriendRequest, DirectMessage and result types
- social_store.py: SQLite-backed requests/friends/messages
- message_feed.py: in-process best-effort change feed for new messages
"""
