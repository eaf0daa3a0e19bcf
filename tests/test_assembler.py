"""
Tests for result assembly: dedupe, self-exclusion, caps and metadata merge.
"""

from datetime import datetime

from socialmatch.core import dao
from socialmatch.core.assembler import (
    assemble_related_posts, assemble_user_matches, build_post_candidate, build_user_candidate,
    dedupe_candidates, dedupe_results,
)
from socialmatch.core.schema import MatchResult, Post, PostCandidate, User, UserCandidate


def _result(candidate_id, score, reasons=("reason",)):
    return MatchResult(candidate_id=candidate_id, score=score, reasons=list(reasons), used_embeddings=True)


def test_dedupe_results_keeps_highest_score():
    results = [_result(1, 0.3), _result(2, 0.5), _result(1, 0.8), _result(2, 0.1)]

    deduped = dedupe_results(results)

    assert [(r.candidate_id, r.score) for r in deduped] == [(1, 0.8), (2, 0.5)]


def test_dedupe_candidates_drops_source_and_repeats():
    posts = [PostCandidate(i, 1, "u", f"post {i}") for i in (3, 1, 3, 2, 1)]
    assert [p.id for p in dedupe_candidates(posts, source_id=2)] == [3, 1]


def test_assemble_related_posts():
    pool = [PostCandidate(i, 10, "author", f"post {i}") for i in (1, 2, 3, 4)]
    results = [_result(2, 0.9, ["Strong match"]), _result(1, 0.5, ["Moderate match"]),
               _result(4, 0.1, ["Very weak match"]), _result(2, 0.2, ["Weak match"])]

    related = assemble_related_posts(results, pool, source_id=4)

    assert [r.post.id for r in related] == [2, 1]
    assert related[0].similarity_score == 0.9
    assert related[0].match_label == "Strong match"
    assert related[0].post.username == "author"


def test_assemble_caps_results():
    pool = [UserCandidate(i, f"user{i}") for i in range(1, 6)]
    results = [_result(i, 1.0 - i / 10) for i in range(1, 6)]

    matches = assemble_user_matches(results, pool, source_id=99, max_results=2)

    assert [m.user.id for m in matches] == [1, 2]
    assert matches[0].reasons == ["reason"]
    assert matches[0].used_embeddings is True


def test_assemble_drops_results_without_metadata():
    pool = [UserCandidate(1, "one")]
    matches = assemble_user_matches([_result(1, 0.4), _result(7, 0.9)], pool, source_id=99)
    assert [m.user.id for m in matches] == [1]


def test_build_candidates():
    now = datetime.now()
    user = User(id=1, username="ada", avatar="a.png", bio="bio", looking_for="lf", created_at=now)
    post = Post(id=5, user_id=1, content="hello", status="none", created_at=now)

    assert build_user_candidate(user) == UserCandidate(1, "ada", "a.png", "bio", "lf")
    assert build_post_candidate(post, user) == PostCandidate(5, 1, "ada", "hello", now)
    assert build_post_candidate(post).username is None


def test_post_reachable_by_two_paths_appears_once(store):
    ada = dao.create_user("ada", _store=store)
    bob = dao.create_user("bob", _store=store)
    both = dao.create_post(ada.id, "note to self @ada", _store=store)
    mention = dao.create_post(bob.id, "thanks @ada", _store=store)

    involving = dao.list_posts_involving_user(ada.id)
    assert [p.id for p in involving] == [both.id, both.id, mention.id]

    unique = dedupe_candidates(build_post_candidate(p) for p in involving)
    assert [p.id for p in unique] == [both.id, mention.id]
