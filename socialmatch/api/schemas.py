"""
Request and response models for the matching API.
"""

from pydantic import BaseModel, field_validator
from typing import Optional, List, Dict
from datetime import datetime


class UserCreateRequest(BaseModel):
    username: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    looking_for: Optional[str] = None

    @field_validator('username')
    @classmethod
    def username_must_be_valid(cls, v):
        if not v.strip():
            raise ValueError('username cannot be empty')
        if not v.replace('_', '').isalnum():
            raise ValueError('username may only contain letters, digits and underscores')
        return v


class ProfileUpdateRequest(BaseModel):
    bio: Optional[str] = None
    looking_for: Optional[str] = None


class PostCreateRequest(BaseModel):
    user_id: int
    content: str

    @field_validator('content')
    @classmethod
    def content_must_not_be_empty(cls, v):
        if not v.strip():
            raise ValueError('content cannot be empty')
        return v


class UserResponse(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    looking_for: Optional[str] = None
    created_at: Optional[datetime] = None


class MentionResponse(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None


class PostResponse(BaseModel):
    id: int
    user_id: int
    content: str
    status: str
    created_at: Optional[datetime] = None
    mentions: List[MentionResponse] = []


class PostSummary(BaseModel):
    id: int
    user_id: int
    username: Optional[str] = None
    content: str
    created_at: Optional[datetime] = None


class UserSummary(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None
    bio: Optional[str] = None
    looking_for: Optional[str] = None


class RelatedPostResponse(BaseModel):
    post: PostSummary
    similarity_score: float
    match_label: str


class UserMatchResponse(BaseModel):
    user: UserSummary
    score: float
    reasons: List[str]
    used_embeddings: bool


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    counts: Dict[str, int]
    config_issues: List[str]
