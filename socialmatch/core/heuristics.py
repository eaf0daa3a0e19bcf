"""
Keyword/role overlap matcher used when embeddings are missing or low-confidence.

Scoring policy (additive, capped at 1.0):

    viewer seeking vs candidate self-description
        shared role keyword          +0.6  "Matching professional roles"
        seeking text contained       +0.5  "Direct profile match"
    candidate seeking vs viewer self-description
        shared role keyword          +0.4  "Compatible professional backgrounds"
        seeking text contained       +0.3  "Mutual interest alignment"

    no rule fired, both sides have some text      0.2  "Both have completed profiles"
    no rule fired, one side has no text           0.1  "New user or incomplete profile"
    all four texts empty                          0.1  "Complete your profile for better matches"

The 0.1 floor is the configurable default match score (DEFAULT_MATCH_SCORE).
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

ROLE_KEYWORDS = (
    "developer", "engineer", "programmer", "software", "web", "full stack",
    "fullstack", "backend", "frontend", "devops", "architect",
)

# Pairs treated as the same role even though neither keyword is shared
ROLE_EQUIVALENTS = (
    ("full stack", "software"),
    ("software", "full stack"),
)

ROLE_WEIGHT_SEEKING = 0.6
DIRECT_WEIGHT_SEEKING = 0.5
ROLE_WEIGHT_OFFERING = 0.4
DIRECT_WEIGHT_OFFERING = 0.3
BASELINE_SCORE = 0.2
MINIMAL_SCORE = 0.1

REASON_ROLES = "Matching professional roles"
REASON_DIRECT = "Direct profile match"
REASON_BACKGROUNDS = "Compatible professional backgrounds"
REASON_MUTUAL = "Mutual interest alignment"
REASON_BASELINE = "Both have completed profiles"
REASON_INCOMPLETE = "New user or incomplete profile"
REASON_EMPTY = "Complete your profile for better matches"


@dataclass
class ScoreOutcome:
    """Score and ordered explanations produced by a scorer."""
    score: float
    reasons: List[str] = field(default_factory=list)
    used_embeddings: bool = False


def normalize_text(text: Optional[str]) -> str:
    """Lower-case and collapse whitespace; None becomes an empty string."""
    return re.sub(r"\s+", " ", (text or "").lower()).strip()


def has_similar_role(seeking: str, description: str) -> bool:
    """True if both texts mention a common role keyword, or an equivalent pair."""
    for keyword in ROLE_KEYWORDS:
        if keyword in seeking and keyword in description:
            return True
    return any(a in seeking and b in description for a, b in ROLE_EQUIVALENTS)


class HeuristicScorer:
    """
    Explainable fallback scorer over raw profile text.

    Args:
        minimal_score: Score for incomplete or empty profiles
    """

    def __init__(self, minimal_score: float = MINIMAL_SCORE):
        self.minimal_score = minimal_score

    def score(self, source, candidate) -> ScoreOutcome:
        """
        Score candidate against source using their bio / looking_for text.

        Both arguments may be any objects exposing `bio` and `looking_for`.
        """
        source_bio = normalize_text(getattr(source, "bio", None))
        source_seeking = normalize_text(getattr(source, "looking_for", None))
        candidate_bio = normalize_text(getattr(candidate, "bio", None))
        candidate_seeking = normalize_text(getattr(candidate, "looking_for", None))

        if not (source_bio or source_seeking or candidate_bio or candidate_seeking):
            return ScoreOutcome(self.minimal_score, [REASON_EMPTY])

        total = 0.0
        reasons = []

        # What the viewer is seeking against what the candidate offers
        if source_seeking and candidate_bio:
            if has_similar_role(source_seeking, candidate_bio):
                total += ROLE_WEIGHT_SEEKING
                reasons.append(REASON_ROLES)
            elif source_seeking in candidate_bio:
                total += DIRECT_WEIGHT_SEEKING
                reasons.append(REASON_DIRECT)

        # Reverse direction
        if candidate_seeking and source_bio:
            if has_similar_role(candidate_seeking, source_bio):
                total += ROLE_WEIGHT_OFFERING
                reasons.append(REASON_BACKGROUNDS)
            elif candidate_seeking in source_bio:
                total += DIRECT_WEIGHT_OFFERING
                reasons.append(REASON_MUTUAL)

        if not reasons:
            if (source_bio or source_seeking) and (candidate_bio or candidate_seeking):
                return ScoreOutcome(BASELINE_SCORE, [REASON_BASELINE])
            return ScoreOutcome(self.minimal_score, [REASON_INCOMPLETE])

        return ScoreOutcome(min(1.0, total), reasons)
