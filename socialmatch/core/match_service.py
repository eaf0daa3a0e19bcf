"""
Entry points used by request handlers: related posts and user matches.
"""

from typing import List

from . import dao
from .assembler import (
    assemble_related_posts, assemble_user_matches, build_post_candidate,
    build_user_candidate, dedupe_candidates,
)
from .config import MatchSettings, get_match_settings
from .errors import InvalidEntity, ProviderUnavailable
from .ranking import SimilarityRankingEngine
from .schema import (
    POST, USER, CONTENT, BIO, LOOKING_FOR, POST_MODE, USER_MODE,
    RelatedPost, SimilarityQuery, UserMatch,
)
from ..util.logging import logger


def _resolve(store, settings):
    if store is None:
        from ..vector.store import get_embedding_store
        store = get_embedding_store()
    return store, settings or get_match_settings()


def find_related_posts(post_id: int, _store=None, _settings: MatchSettings = None) -> List[RelatedPost]:
    """
    Rank every other post by content similarity to the given post.

    Args:
        post_id: Source post id
        _store: Optional embedding store for testing
        _settings: Optional settings for testing

    Returns:
        RelatedPost entries sorted by descending similarity

    Raises:
        InvalidEntity: the post does not exist
        ProviderUnavailable: the source post has no embedding and one cannot be generated
    """
    store, settings = _resolve(_store, _settings)

    source_post = dao.get_post(post_id)
    if source_post is None:
        raise InvalidEntity(POST, post_id)

    authors = {user.id: user for user in dao.list_users()}
    source = build_post_candidate(source_post, authors.get(source_post.user_id))
    pool = dedupe_candidates(
        (build_post_candidate(post, authors.get(post.user_id)) for post in dao.list_posts()),
        source_id=post_id
    )

    query = SimilarityQuery(
        source_id=post_id,
        source_fields=(CONTENT,),
        candidate_pool=pool,
        mode=POST_MODE,
        source=source,
        min_score=settings.related_posts_min_score
    )
    results = SimilarityRankingEngine(store, settings).rank(query)
    return assemble_related_posts(results, pool, post_id, settings.max_results)


def find_user_matches(viewer_user_id: int, _store=None, _settings: MatchSettings = None) -> List[UserMatch]:
    """
    Rank every other user by how well they fit the viewer, with reasons.

    Raises:
        InvalidEntity: the viewer does not exist
    """
    store, settings = _resolve(_store, _settings)

    viewer = dao.get_user(viewer_user_id)
    if viewer is None:
        raise InvalidEntity(USER, viewer_user_id)

    pool = dedupe_candidates(
        (build_user_candidate(user) for user in dao.list_users()),
        source_id=viewer_user_id
    )

    query = SimilarityQuery(
        source_id=viewer_user_id,
        source_fields=(BIO, LOOKING_FOR),
        candidate_pool=pool,
        mode=USER_MODE,
        source=build_user_candidate(viewer),
        min_score=settings.user_matches_min_score
    )
    results = SimilarityRankingEngine(store, settings).rank(query)
    return assemble_user_matches(results, pool, viewer_user_id, settings.max_results)


def find_posts_related_to_user(user_id: int, _store=None, _settings: MatchSettings = None) -> List[RelatedPost]:
    """
    Rank posts related to anything the user wrote or was mentioned in.

    Each post involving the user is used as a source; a candidate reached from
    several sources keeps its best score. Posts involving the user are not
    themselves returned. A source whose embedding cannot be produced is
    skipped.

    Raises:
        InvalidEntity: the user does not exist
    """
    store, settings = _resolve(_store, _settings)

    if dao.get_user(user_id) is None:
        raise InvalidEntity(USER, user_id)

    authors = {user.id: user for user in dao.list_users()}
    # Authored and mentioned posts overlap when users mention themselves
    sources = dedupe_candidates(
        build_post_candidate(post, authors.get(post.user_id))
        for post in dao.list_posts_involving_user(user_id)
    )
    source_ids = {source.id for source in sources}
    pool = [
        build_post_candidate(post, authors.get(post.user_id))
        for post in dao.list_posts() if post.id not in source_ids
    ]

    engine = SimilarityRankingEngine(store, settings)
    results = []
    for source in sources:
        try:
            results.extend(engine.rank_posts(source, pool, settings.related_posts_min_score))
        except ProviderUnavailable as e:
            logger.warning(f"Skipping post {source.id} for user {user_id}: {e}")

    return assemble_related_posts(results, pool, None, settings.max_results)
