"""
Result assembly: builds engine inputs from stored rows and merges ranked
results back with display metadata.
"""

from typing import Dict, Iterable, List, Optional

from .ranking import match_label
from .schema import (
    MatchResult, Post, PostCandidate, RelatedPost, User, UserCandidate, UserMatch,
)


def build_post_candidate(post: Post, author: Optional[User] = None) -> PostCandidate:
    return PostCandidate(
        id=post.id,
        user_id=post.user_id,
        username=author.username if author else None,
        content=post.content,
        created_at=post.created_at
    )


def build_user_candidate(user: User) -> UserCandidate:
    return UserCandidate(
        id=user.id,
        username=user.username,
        avatar=user.avatar,
        bio=user.bio,
        looking_for=user.looking_for
    )


def dedupe_candidates(candidates: Iterable, source_id: Optional[int] = None) -> list:
    """Drop repeated ids (first occurrence wins) and the source itself, keeping order."""
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate.id == source_id or candidate.id in seen:
            continue
        seen.add(candidate.id)
        unique.append(candidate)
    return unique


def dedupe_results(results: Iterable[MatchResult]) -> List[MatchResult]:
    """Keep the highest-scoring occurrence of each candidate id, in first-seen order."""
    best: Dict[int, MatchResult] = {}
    order = []
    for result in results:
        current = best.get(result.candidate_id)
        if current is None:
            order.append(result.candidate_id)
            best[result.candidate_id] = result
        elif result.score > current.score:
            best[result.candidate_id] = result
    return [best[candidate_id] for candidate_id in order]


def _apply_list_policy(results: Iterable[MatchResult], source_id: Optional[int], max_results: int) -> List[MatchResult]:
    results = [r for r in dedupe_results(results) if r.candidate_id != source_id]
    results.sort(key=lambda r: r.score, reverse=True)
    if max_results and max_results > 0:
        results = results[:max_results]
    return results


def assemble_related_posts(results: Iterable[MatchResult], candidates: Iterable[PostCandidate],
                           source_id: Optional[int], max_results: int = 0) -> List[RelatedPost]:
    """Merge ranked post results with post metadata; results without metadata are dropped."""
    by_id = {c.id: c for c in candidates}
    assembled = []
    for result in _apply_list_policy(results, source_id, max_results):
        post = by_id.get(result.candidate_id)
        if post is None:
            continue
        assembled.append(RelatedPost(
            post=post,
            similarity_score=result.score,
            match_label=result.reasons[0] if result.reasons else match_label(result.score)
        ))
    return assembled


def assemble_user_matches(results: Iterable[MatchResult], candidates: Iterable[UserCandidate],
                          source_id: int, max_results: int = 0) -> List[UserMatch]:
    """Merge ranked user results with profile metadata; results without metadata are dropped."""
    by_id = {c.id: c for c in candidates}
    assembled = []
    for result in _apply_list_policy(results, source_id, max_results):
        user = by_id.get(result.candidate_id)
        if user is None:
            continue
        assembled.append(UserMatch(
            user=user,
            score=result.score,
            reasons=list(result.reasons),
            used_embeddings=result.used_embeddings
        ))
    return assembled
