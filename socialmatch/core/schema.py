"""
Typed records shared by the DAO, embedding store, ranking engine and assembler.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

# Entity kinds
POST = "post"
USER = "user"

# Embeddable text fields
CONTENT = "content"
BIO = "bio"
LOOKING_FOR = "looking_for"

EMBEDDABLE_FIELDS = {
    POST: (CONTENT,),
    USER: (BIO, LOOKING_FOR),
}

# Query modes
POST_MODE = "post"
USER_MODE = "user"


@dataclass
class User:
    id: int
    username: str
    avatar: Optional[str]
    bio: Optional[str]
    looking_for: Optional[str]
    created_at: datetime


@dataclass
class Post:
    id: int
    user_id: int
    content: str
    status: str
    created_at: datetime


@dataclass
class EmbeddingRecord:
    entity_id: int
    field: str
    vector: List[float]
    updated_at: datetime


@dataclass
class PostCandidate:
    """A post as the ranking engine and result payloads see it."""
    id: int
    user_id: int
    username: Optional[str]
    content: str
    created_at: Optional[datetime] = None


@dataclass
class UserCandidate:
    """A user as the ranking engine and result payloads see it."""
    id: int
    username: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    looking_for: Optional[str] = None


@dataclass
class UserProfileVectors:
    """A user's text fields paired with whatever usable embeddings exist for them."""
    user_id: int
    bio: str = ""
    looking_for: str = ""
    bio_vector: Optional[List[float]] = None
    looking_for_vector: Optional[List[float]] = None


@dataclass
class MatchResult:
    candidate_id: int
    score: float
    reasons: List[str]
    used_embeddings: bool


@dataclass
class SimilarityQuery:
    source_id: int
    source_fields: tuple
    candidate_pool: list
    mode: str
    source: object = None
    min_score: Optional[float] = None


@dataclass
class RelatedPost:
    post: PostCandidate
    similarity_score: float
    match_label: str


@dataclass
class UserMatch:
    user: UserCandidate
    score: float
    reasons: List[str] = field(default_factory=list)
    used_embeddings: bool = False
