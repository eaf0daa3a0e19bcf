"""
Data access for users, posts and mentions.

Text writes commit first; the matching embedding is regenerated afterwards and
an embedding failure never rolls back the text.
"""

import re
import sqlite3
from datetime import datetime
from typing import List, Optional

from .db import get_db
from .errors import ProviderUnavailable
from .schema import POST, USER, CONTENT, BIO, LOOKING_FOR, Post, User
from ..util.logging import logger

MENTION_PATTERN = re.compile(r"@(\w+)")

_USER_COLUMNS = "id, username, avatar, bio, looking_for, created_at"
_POST_COLUMNS = "id, user_id, content, status, created_at"


def _parse_ts(value) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None


def _row_to_user(row) -> User:
    user_id, username, avatar, bio, looking_for, created_at = row
    return User(id=user_id, username=username, avatar=avatar, bio=bio,
                looking_for=looking_for, created_at=_parse_ts(created_at))


def _row_to_post(row) -> Post:
    post_id, user_id, content, status, created_at = row
    return Post(id=post_id, user_id=user_id, content=content, status=status,
                created_at=_parse_ts(created_at))


def _default_store():
    from ..vector.store import get_embedding_store
    return get_embedding_store()


def _refresh_embedding(store, kind: str, entity_id: int, field: str, text: Optional[str]) -> bool:
    """Regenerate one embedding after a text write. Returns False if it could not be produced."""
    try:
        store.get_or_create(kind, entity_id, field, text, text_changed=True)
        return True
    except (ProviderUnavailable, sqlite3.Error) as e:
        logger.warning(f"Embedding refresh failed for {kind} {entity_id} field '{field}': {e}")
        return False


# Users

def create_user(username: str, avatar: str = None, bio: str = None, looking_for: str = None,
                _store=None) -> User:
    """Create a user and embed any profile text supplied."""
    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute(
            "INSERT INTO users (username, avatar, bio, looking_for) VALUES (?, ?, ?, ?)",
            (username, avatar, bio, looking_for)
        )
        user_id = cursor.lastrowid
        conn.commit()

    store = _store or _default_store()
    for field, text in ((BIO, bio), (LOOKING_FOR, looking_for)):
        if text and text.strip():
            _refresh_embedding(store, USER, user_id, field, text)

    return get_user(user_id)


def get_user(user_id: int) -> Optional[User]:
    try:
        with get_db() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None
    except sqlite3.Error as e:
        logger.error(f"Failed to get user {user_id}: {e}")
        return None


def get_user_by_username(username: str) -> Optional[User]:
    try:
        with get_db() as conn:
            row = conn.execute(f"SELECT {_USER_COLUMNS} FROM users WHERE username = ?", (username,)).fetchone()
        return _row_to_user(row) if row else None
    except sqlite3.Error as e:
        logger.error(f"Failed to get user '{username}': {e}")
        return None


def list_users() -> List[User]:
    """All users, ordered by id."""
    try:
        with get_db() as conn:
            rows = conn.execute(f"SELECT {_USER_COLUMNS} FROM users ORDER BY id").fetchall()
        return [_row_to_user(row) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Failed to list users: {e}")
        return []


def update_user_profile(user_id: int, bio: Optional[str] = None, looking_for: Optional[str] = None,
                        _store=None) -> Optional[User]:
    """
    Update bio and/or looking_for. None leaves a field unchanged; "" clears it.

    Returns the updated user, or None if the user does not exist.
    """
    updates = {}
    if bio is not None:
        updates[BIO] = bio
    if looking_for is not None:
        updates[LOOKING_FOR] = looking_for

    if get_user(user_id) is None:
        return None

    if updates:
        assignments = ", ".join(f"{column} = ?" for column in updates)
        with get_db() as conn:
            conn.execute(f"UPDATE users SET {assignments} WHERE id = ?", (*updates.values(), user_id))
            conn.commit()

        store = _store or _default_store()
        for field, text in updates.items():
            _refresh_embedding(store, USER, user_id, field, text)

    return get_user(user_id)


def delete_user(user_id: int) -> bool:
    """Delete a user; posts, mentions and embeddings cascade."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
        conn.commit()
    return cursor.rowcount > 0


# Posts

def create_post(user_id: int, content: str, _store=None) -> Post:
    """Create a post, record its @mentions and embed its content."""
    mentioned = {match for match in MENTION_PATTERN.findall(content)}

    with get_db() as conn:
        cursor = conn.cursor()
        cursor.execute("INSERT INTO posts (user_id, content) VALUES (?, ?)", (user_id, content))
        post_id = cursor.lastrowid

        if mentioned:
            placeholders = ", ".join("?" for _ in mentioned)
            rows = cursor.execute(
                f"SELECT id FROM users WHERE username IN ({placeholders})", tuple(mentioned)
            ).fetchall()
            cursor.executemany(
                "INSERT OR IGNORE INTO post_mentions (post_id, mentioned_user_id) VALUES (?, ?)",
                [(post_id, row[0]) for row in rows]
            )

        conn.commit()

    _refresh_embedding(_store or _default_store(), POST, post_id, CONTENT, content)
    return get_post(post_id)


def get_post(post_id: int) -> Optional[Post]:
    try:
        with get_db() as conn:
            row = conn.execute(f"SELECT {_POST_COLUMNS} FROM posts WHERE id = ?", (post_id,)).fetchone()
        return _row_to_post(row) if row else None
    except sqlite3.Error as e:
        logger.error(f"Failed to get post {post_id}: {e}")
        return None


def list_posts() -> List[Post]:
    """All posts, ordered by id."""
    try:
        with get_db() as conn:
            rows = conn.execute(f"SELECT {_POST_COLUMNS} FROM posts ORDER BY id").fetchall()
        return [_row_to_post(row) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Failed to list posts: {e}")
        return []


def list_posts_involving_user(user_id: int) -> List[Post]:
    """Posts authored by the user followed by posts mentioning them; a post can appear twice."""
    try:
        with get_db() as conn:
            authored = conn.execute(
                f"SELECT {_POST_COLUMNS} FROM posts WHERE user_id = ? ORDER BY id", (user_id,)
            ).fetchall()
            mentioned = conn.execute(
                f"""SELECT p.id, p.user_id, p.content, p.status, p.created_at
                    FROM posts p JOIN post_mentions m ON m.post_id = p.id
                    WHERE m.mentioned_user_id = ? ORDER BY p.id""",
                (user_id,)
            ).fetchall()
        return [_row_to_post(row) for row in authored + mentioned]
    except sqlite3.Error as e:
        logger.error(f"Failed to list posts for user {user_id}: {e}")
        return []


def get_post_mentions(post_id: int) -> List[User]:
    try:
        with get_db() as conn:
            rows = conn.execute(
                f"""SELECT u.id, u.username, u.avatar, u.bio, u.looking_for, u.created_at
                    FROM users u JOIN post_mentions m ON m.mentioned_user_id = u.id
                    WHERE m.post_id = ? ORDER BY u.id""",
                (post_id,)
            ).fetchall()
        return [_row_to_user(row) for row in rows]
    except sqlite3.Error as e:
        logger.error(f"Failed to get mentions for post {post_id}: {e}")
        return []


def delete_post(post_id: int) -> bool:
    """Delete a post; its mentions and embedding cascade."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM posts WHERE id = ?", (post_id,))
        conn.commit()
    return cursor.rowcount > 0


def get_counts() -> dict:
    """Row counts for health reporting."""
    try:
        with get_db() as conn:
            return {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("users", "posts", "user_embeddings", "post_embeddings")
            }
    except sqlite3.Error as e:
        logger.error(f"Failed to count rows: {e}")
        return {}
