"""
SQLite persistence for users, posts, mentions and their embeddings.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator
from .config import get_db_path, ensure_db_directory


@contextmanager
def get_db() -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    ensure_db_directory()
    conn = sqlite3.connect(get_db_path())
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Initialize the database with required tables."""
    with get_db() as conn:
        cursor = conn.cursor()

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT UNIQUE NOT NULL,
                avatar TEXT,
                bio TEXT,
                looking_for TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS posts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                content TEXT NOT NULL,
                status TEXT NOT NULL DEFAULT 'none',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS post_mentions (
                post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
                mentioned_user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                PRIMARY KEY (post_id, mentioned_user_id)
            )
        ''')

        # Embedding tables: one row per (entity, field), vector stored as a JSON array
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS user_embeddings (
                user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                field TEXT NOT NULL,
                vector TEXT NOT NULL,
                dimension INTEGER NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (user_id, field)
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS post_embeddings (
                post_id INTEGER NOT NULL REFERENCES posts(id) ON DELETE CASCADE,
                field TEXT NOT NULL DEFAULT 'content',
                vector TEXT NOT NULL,
                dimension INTEGER NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (post_id, field)
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_posts_user_id ON posts(user_id)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_post_mentions_user ON post_mentions(mentioned_user_id)')

        conn.commit()


def health_check():
    """Check database health."""
    try:
        with get_db() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            # Check if required tables exist
            table_names = [table[0] for table in tables]
            required_tables = ['users', 'posts', 'post_mentions', 'user_embeddings', 'post_embeddings']

            return all(table in table_names for table in required_tables)
    except sqlite3.Error:
        return False
