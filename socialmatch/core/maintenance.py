"""
Maintenance routines: embedding backfill for posts and users.

Backfill only adds missing records, so it is safe to run alongside read traffic.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from . import dao
from .schema import POST, USER, EMBEDDABLE_FIELDS


@dataclass
class BackfillReport:
    """Summary of one backfill run."""
    started_at: datetime
    completed_at: Optional[datetime] = None
    posts_examined: int = 0
    posts_created: int = 0
    users_examined: int = 0
    users_created: int = 0

    @property
    def total_created(self) -> int:
        return self.posts_created + self.users_created

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for serialization."""
        data = {
            "started_at": self.started_at.isoformat(),
            "posts_examined": self.posts_examined,
            "posts_created": self.posts_created,
            "users_examined": self.users_examined,
            "users_created": self.users_created,
            "total_created": self.total_created
        }
        if self.completed_at:
            data["completed_at"] = self.completed_at.isoformat()
        return data


def backfill_embeddings(kinds=(POST, USER), _store=None) -> BackfillReport:
    """
    Generate embeddings for every post and user field that has text but no usable vector.

    Args:
        kinds: Entity kinds to process
        _store: Optional embedding store for testing
    """
    if _store is None:
        from ..vector.store import get_embedding_store
        _store = get_embedding_store()

    report = BackfillReport(started_at=datetime.now())

    if POST in kinds:
        posts = dao.list_posts()
        report.posts_examined = len(posts)
        report.posts_created = _store.backfill_missing(POST, posts, EMBEDDABLE_FIELDS[POST])

    if USER in kinds:
        users = dao.list_users()
        report.users_examined = len(users)
        report.users_created = _store.backfill_missing(USER, users, EMBEDDABLE_FIELDS[USER])

    report.completed_at = datetime.now()
    return report
