"""
Similarity ranking engine.

Post mode ranks posts by cosine similarity of their content embeddings.
User mode combines two directional similarities between profile fields and
falls back to the keyword heuristic when embeddings are missing or weak.
Every candidate in the pool (other than the source) receives a score in
[0, 1] and at least one reason; results are sorted by descending score with
ties kept in pool order.
"""

import time
from typing import List, Optional

from .config import MatchSettings, get_match_settings
from .errors import ProviderUnavailable
from .heuristics import HeuristicScorer, ScoreOutcome, REASON_INCOMPLETE
from .schema import (
    POST, USER, CONTENT, BIO, LOOKING_FOR, POST_MODE, USER_MODE,
    MatchResult, PostCandidate, SimilarityQuery, UserCandidate, UserProfileVectors,
)
from ..vector.similarity import clamp_score, cosine_similarity
from ..util.logging import logger

# Related-post label bands: lower bound inclusive, upper bound exclusive
POST_LABEL_BANDS = (
    (0.7, "Strong match"),
    (0.4, "Moderate match"),
    (0.2, "Weak match"),
)
POST_LABEL_FLOOR = "Very weak match"

# User-match strength copy, same band convention
USER_STRENGTH_BANDS = (
    (0.8, "Exceptional match! Your interests and goals align perfectly."),
    (0.7, "Strong match based on shared interests and complementary goals."),
    (0.6, "Good match with some common interests and potential synergy."),
    (0.4, "Moderate match with potential for collaboration."),
    (0.2, "Some common ground between your profiles."),
)
USER_STRENGTH_FLOOR = "Limited overlap between your profiles."

REASON_THEY_MATCH_YOU = "Their profile strongly matches your preferences"
REASON_YOU_MATCH_THEM = "You strongly match what they're looking for"

# A direction must reach this similarity before it is called "strong"
STRONG_DIRECTION = 0.5


def match_label(score: float) -> str:
    """Qualitative label for a related-post similarity score."""
    for lower, label in POST_LABEL_BANDS:
        if score >= lower:
            return label
    return POST_LABEL_FLOOR


def strength_reason(score: float) -> str:
    for lower, reason in USER_STRENGTH_BANDS:
        if score >= lower:
            return reason
    return USER_STRENGTH_FLOOR


def sort_results(results: List[MatchResult]) -> List[MatchResult]:
    """Descending by score; Python's sort is stable so ties keep pool order."""
    return sorted(results, key=lambda r: r.score, reverse=True)


class EmbeddingScorer:
    """Bidirectional, asymmetric embedding scorer for user profiles."""

    def __init__(self, settings: MatchSettings = None):
        self.settings = settings or get_match_settings()

    def is_available(self, source: UserProfileVectors, candidate: UserProfileVectors) -> bool:
        """True if at least one direction has both of its vectors."""
        return (
            (source.looking_for_vector is not None and candidate.bio_vector is not None)
            or (source.bio_vector is not None and candidate.looking_for_vector is not None)
        )

    def score(self, source: UserProfileVectors, candidate: UserProfileVectors) -> ScoreOutcome:
        # cosine_similarity returns 0 for a missing side
        want_match = clamp_score(cosine_similarity(candidate.bio_vector, source.looking_for_vector))
        they_want_match = clamp_score(cosine_similarity(source.bio_vector, candidate.looking_for_vector))

        combined = clamp_score(
            self.settings.seeking_weight * want_match + self.settings.offering_weight * they_want_match
        )

        reasons = [strength_reason(combined)]
        margin = self.settings.direction_margin
        if want_match - they_want_match >= margin and want_match >= STRONG_DIRECTION:
            reasons.append(REASON_THEY_MATCH_YOU)
        elif they_want_match - want_match >= margin and they_want_match >= STRONG_DIRECTION:
            reasons.append(REASON_YOU_MATCH_THEM)

        return ScoreOutcome(combined, reasons, used_embeddings=True)


class SimilarityRankingEngine:
    """
    Ranks a candidate pool against a source entity.

    The engine reads and lazily creates vectors only through the embedding store.
    """

    def __init__(self, store, settings: MatchSettings = None,
                 embedding_scorer: EmbeddingScorer = None, heuristic_scorer: HeuristicScorer = None):
        self.store = store
        self.settings = settings or get_match_settings()
        self.embedding_scorer = embedding_scorer or EmbeddingScorer(self.settings)
        self.heuristic_scorer = heuristic_scorer or HeuristicScorer(self.settings.default_score)

    def rank(self, query: SimilarityQuery) -> List[MatchResult]:
        """Dispatch a SimilarityQuery to the ranking mode it names."""
        if query.mode == POST_MODE:
            return self.rank_posts(query.source, query.candidate_pool, query.min_score)
        if query.mode == USER_MODE:
            return self.rank_users(query.source, query.candidate_pool, query.min_score)
        raise ValueError(f"Unknown query mode: {query.mode}")

    # Post mode

    def rank_posts(self, source: PostCandidate, candidates: List[PostCandidate],
                   min_score: Optional[float] = None) -> List[MatchResult]:
        """
        Rank posts by content similarity to the source post.

        A source whose content has nothing to embed (blank, or only punctuation
        and symbols) scores every candidate 0.0.

        Raises:
            ProviderUnavailable: the source has no usable embedding and the provider failed
        """
        start_time = time.time()
        threshold = self.settings.related_posts_min_score if min_score is None else min_score

        source_vector = self.store.get_or_create(POST, source.id, CONTENT, source.content)
        if source_vector is None:
            logger.info(f"Post {source.id} has no embeddable content; all candidates score 0")

        results = []
        for candidate in candidates:
            if candidate.id == source.id:
                continue
            try:
                vector = self.store.get(POST, candidate.id, CONTENT) if source_vector is not None else None
                score = clamp_score(cosine_similarity(source_vector, vector)) if vector is not None else 0.0
                used_embeddings = vector is not None
            except Exception as e:
                logger.warning(f"Scoring failed for post {candidate.id} against post {source.id}: {e}")
                score, used_embeddings = 0.0, False

            results.append(MatchResult(
                candidate_id=candidate.id,
                score=score,
                reasons=[match_label(score)],
                used_embeddings=used_embeddings
            ))

        ranked = [r for r in sort_results(results) if r.score >= threshold]
        logger.log_ranking(POST_MODE, source.id, len(results), len(ranked), start_time, time.time(),
                           {"threshold": threshold})
        return ranked

    # User mode

    def load_profile(self, user: UserCandidate, generate: bool = False) -> UserProfileVectors:
        """
        Collect a user's text fields and usable vectors.

        With generate=True, missing vectors are created from the current text;
        provider failures leave that vector absent.
        """
        profile = UserProfileVectors(user_id=user.id, bio=user.bio or "", looking_for=user.looking_for or "")

        for field, attr in ((BIO, "bio_vector"), (LOOKING_FOR, "looking_for_vector")):
            text = getattr(user, field)
            if generate:
                try:
                    vector = self.store.get_or_create(USER, user.id, field, text)
                except ProviderUnavailable as e:
                    logger.warning(f"No {field} embedding for user {user.id}: {e}")
                    vector = None
            else:
                vector = self.store.get(USER, user.id, field)
            setattr(profile, attr, vector)

        return profile

    def score_pair(self, source: UserProfileVectors, candidate: UserProfileVectors) -> ScoreOutcome:
        """Choose between the embedding and heuristic scorers for one pair."""
        if self.embedding_scorer.is_available(source, candidate):
            outcome = self.embedding_scorer.score(source, candidate)
            if outcome.score < self.settings.low_confidence_cutoff:
                fallback = self.heuristic_scorer.score(source, candidate)
                if fallback.score > outcome.score:
                    outcome = fallback
        else:
            outcome = self.heuristic_scorer.score(source, candidate)

        outcome.score = clamp_score(outcome.score)
        return outcome

    def rank_users(self, source: UserCandidate, candidates: List[UserCandidate],
                   min_score: Optional[float] = None) -> List[MatchResult]:
        """Rank users by how well they fit what the source is looking for, and vice versa."""
        start_time = time.time()
        threshold = self.settings.user_matches_min_score if min_score is None else min_score

        source_profile = self.load_profile(source, generate=True)

        results = []
        embedded = 0
        for candidate in candidates:
            if candidate.id == source.id:
                continue
            try:
                outcome = self.score_pair(source_profile, self.load_profile(candidate))
            except Exception as e:
                logger.warning(f"Scoring failed for user {candidate.id} against user {source.id}: {e}")
                outcome = ScoreOutcome(0.0, [REASON_INCOMPLETE])

            embedded += int(outcome.used_embeddings)
            results.append(MatchResult(
                candidate_id=candidate.id,
                score=outcome.score,
                reasons=list(outcome.reasons),
                used_embeddings=outcome.used_embeddings
            ))

        ranked = [r for r in sort_results(results) if r.score >= threshold]
        logger.log_ranking(USER_MODE, source.id, len(results), len(ranked), start_time, time.time(),
                           {"threshold": threshold, "embedding_scored": embedded})
        return ranked
