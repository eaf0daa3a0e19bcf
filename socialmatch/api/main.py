"""
HTTP surface for users, posts, related posts and user matches.
"""

from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List

from fastapi import FastAPI, HTTPException

from .schemas import (
    UserCreateRequest,
    ProfileUpdateRequest,
    PostCreateRequest,
    UserResponse,
    MentionResponse,
    PostResponse,
    PostSummary,
    UserSummary,
    RelatedPostResponse,
    UserMatchResponse,
    HealthResponse
)
from ..core import dao
from ..core.config import VERSION, debug_enabled, validate_match_config
from ..core.db import health_check, init_db
from ..core.errors import InvalidEntity, ProviderUnavailable
from ..core.match_service import find_posts_related_to_user, find_related_posts, find_user_matches
from ..util.logging import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    for issue in validate_match_config():
        logger.warning(f"Configuration issue: {issue}")
    yield


app = FastAPI(
    title="Social Match API",
    version=VERSION,
    description="Related posts and user matching over text embeddings",
    docs_url="/docs" if debug_enabled() else None,
    redoc_url="/redoc" if debug_enabled() else None,
    lifespan=lifespan
)


def _post_response(post) -> PostResponse:
    mentions = [MentionResponse(id=u.id, username=u.username, avatar=u.avatar)
                for u in dao.get_post_mentions(post.id)]
    return PostResponse(**asdict(post), mentions=mentions)


def _related_post_response(related) -> RelatedPostResponse:
    return RelatedPostResponse(
        post=PostSummary(**asdict(related.post)),
        similarity_score=related.similarity_score,
        match_label=related.match_label
    )


@app.get("/health", response_model=HealthResponse)
def health_check_endpoint():
    """Check system health."""
    db_health = health_check()
    return HealthResponse(
        status="healthy" if db_health else "unhealthy",
        version=VERSION,
        db_health=db_health,
        counts=dao.get_counts() if db_health else {},
        config_issues=validate_match_config()
    )


@app.post("/users", response_model=UserResponse)
def create_user_endpoint(request: UserCreateRequest):
    if dao.get_user_by_username(request.username):
        raise HTTPException(status_code=400, detail=f"Username already taken: {request.username}")
    user = dao.create_user(request.username, request.avatar, request.bio, request.looking_for)
    return UserResponse(**asdict(user))


@app.get("/users/{user_id}", response_model=UserResponse)
def get_user_endpoint(user_id: int):
    user = dao.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(**asdict(user))


@app.put("/users/{user_id}/profile", response_model=UserResponse)
def update_profile_endpoint(user_id: int, request: ProfileUpdateRequest):
    """Update bio / looking_for. The text is saved even if re-embedding fails."""
    user = dao.update_user_profile(user_id, bio=request.bio, looking_for=request.looking_for)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return UserResponse(**asdict(user))


@app.get("/users/{user_id}/matches", response_model=List[UserMatchResponse])
def user_matches_endpoint(user_id: int):
    try:
        matches = find_user_matches(user_id)
    except InvalidEntity as e:
        raise HTTPException(status_code=404, detail=str(e))

    return [
        UserMatchResponse(
            user=UserSummary(**asdict(m.user)),
            score=m.score,
            reasons=m.reasons,
            used_embeddings=m.used_embeddings
        )
        for m in matches
    ]


@app.get("/users/{user_id}/related-posts", response_model=List[RelatedPostResponse])
def user_related_posts_endpoint(user_id: int):
    """Posts related to anything the user wrote or was mentioned in."""
    try:
        related = find_posts_related_to_user(user_id)
    except InvalidEntity as e:
        raise HTTPException(status_code=404, detail=str(e))

    return [_related_post_response(r) for r in related]


@app.post("/posts", response_model=PostResponse)
def create_post_endpoint(request: PostCreateRequest):
    if not dao.get_user(request.user_id):
        raise HTTPException(status_code=404, detail="User not found")
    post = dao.create_post(request.user_id, request.content)
    return _post_response(post)


@app.get("/posts/{post_id}", response_model=PostResponse)
def get_post_endpoint(post_id: int):
    post = dao.get_post(post_id)
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return _post_response(post)


@app.get("/posts/{post_id}/related", response_model=List[RelatedPostResponse])
def related_posts_endpoint(post_id: int):
    try:
        related = find_related_posts(post_id)
    except InvalidEntity as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ProviderUnavailable as e:
        raise HTTPException(status_code=503, detail=f"Related posts unavailable: {e}")

    return [_related_post_response(r) for r in related]
