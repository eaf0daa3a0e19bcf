"""
Tests for the embedding store: upsert, lazy creation, regeneration and failure handling.
"""

import json
import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from socialmatch.core import dao
from socialmatch.core.db import get_db
from socialmatch.core.errors import MalformedVector, ProviderUnavailable
from socialmatch.core.schema import POST, USER, BIO, LOOKING_FOR, CONTENT
from socialmatch.vector import store as store_module
from socialmatch.vector.store import EmbeddingStore, coerce_vector

from conftest import DIM, WordBucketEmbedding


@pytest.fixture
def user(store):
    # No profile text, so nothing is embedded on creation
    return dao.create_user("alice", _store=store)


def _write_raw_vector(table, id_column, entity_id, field, raw):
    with get_db() as conn:
        conn.execute(
            f"INSERT OR REPLACE INTO {table} ({id_column}, field, vector, dimension) VALUES (?, ?, ?, ?)",
            (entity_id, field, raw, 0)
        )
        conn.commit()


class TestGetOrCreate:

    def test_creates_and_persists(self, store, provider, user):
        vector = store.get_or_create(USER, user.id, BIO, "I build web apps")

        assert len(vector) == DIM
        assert store.get(USER, user.id, BIO) == vector
        record = store.get_record(USER, user.id, BIO)
        assert record.entity_id == user.id
        assert record.field == BIO
        assert record.updated_at is not None
        assert len(provider.calls) == 1

    def test_existing_vector_is_reused(self, store, provider, user):
        first = store.get_or_create(USER, user.id, BIO, "I build web apps")
        second = store.get_or_create(USER, user.id, BIO, "I build web apps")

        assert first == second
        assert len(provider.calls) == 1

    def test_text_change_regenerates_and_overwrites(self, store, provider, user):
        old = store.get_or_create(USER, user.id, BIO, "I build web apps")
        new = store.get_or_create(USER, user.id, BIO, "I grow tomatoes", text_changed=True)

        assert old != new
        assert store.get(USER, user.id, BIO) == new
        assert len(provider.calls) == 2

        with get_db() as conn:
            count = conn.execute("SELECT COUNT(*) FROM user_embeddings WHERE user_id = ?", (user.id,)).fetchone()[0]
        assert count == 1

    def test_fields_are_independent(self, store, user):
        store.get_or_create(USER, user.id, BIO, "I build web apps")
        assert store.get(USER, user.id, LOOKING_FOR) is None

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_empty_text_records_no_embedding(self, store, provider, user, text):
        store.get_or_create(USER, user.id, BIO, "I build web apps")

        assert store.get_or_create(USER, user.id, BIO, text, text_changed=True) is None
        assert store.get(USER, user.id, BIO) is None
        assert not store.has_record(USER, user.id, BIO)
        assert len(provider.calls) == 1

    def test_missing_text_and_no_record(self, store, provider, user):
        assert store.get_or_create(USER, user.id, BIO) is None
        assert provider.calls == []

    def test_provider_failure_surfaces_and_persists_nothing(self, failing_store, user):
        with pytest.raises(ProviderUnavailable):
            failing_store.get_or_create(USER, user.id, BIO, "I build web apps")
        assert not failing_store.has_record(USER, user.id, BIO)

    def test_failed_regeneration_removes_old_vector(self, store, failing_store, user):
        store.get_or_create(USER, user.id, BIO, "I build web apps")

        with pytest.raises(ProviderUnavailable):
            failing_store.get_or_create(USER, user.id, BIO, "Now I teach pottery", text_changed=True)

        assert store.get(USER, user.id, BIO) is None
        assert not store.has_record(USER, user.id, BIO)

    def test_unchanged_text_reuses_vector_when_provider_down(self, store, failing_store, user):
        store.get_or_create(USER, user.id, BIO, "I build web apps")

        assert failing_store.get_or_create(USER, user.id, BIO, "I build web apps") is not None

    @pytest.mark.parametrize("bad_output", [
        [0.1] * (DIM - 1),
        [],
        "not a vector",
        None,
        [0.1] * (DIM - 1) + ["x"],
        [float("nan")] * DIM,
    ])
    def test_malformed_provider_output_is_not_persisted(self, test_db, user, bad_output):
        provider = MagicMock()
        provider.embed_text.return_value = bad_output
        store = EmbeddingStore(provider=provider, dimension=DIM, timeout=0)

        with pytest.raises(ProviderUnavailable):
            store.get_or_create(USER, user.id, BIO, "I build web apps")
        assert not store.has_record(USER, user.id, BIO)

    def test_provider_timeout(self, test_db, user):
        provider = MagicMock()
        provider.embed_text.side_effect = lambda text: time.sleep(0.5) or [0.1] * DIM
        store = EmbeddingStore(provider=provider, dimension=DIM, timeout=0.05)

        with pytest.raises(ProviderUnavailable, match="timed out"):
            store.get_or_create(USER, user.id, BIO, "slow text")
        assert not store.has_record(USER, user.id, BIO)

    def test_provider_within_timeout(self, test_db, user):
        store = EmbeddingStore(provider=WordBucketEmbedding(), dimension=DIM, timeout=5)
        assert store.get_or_create(USER, user.id, BIO, "quick text") is not None


class TestMalformedStoredVectors:

    @pytest.mark.parametrize("raw", [
        json.dumps([0.5] * 3),
        json.dumps({"not": "a list"}),
        "this is not json",
        json.dumps([]),
    ])
    def test_malformed_row_reads_as_absent(self, store, user, raw):
        _write_raw_vector("user_embeddings", "user_id", user.id, BIO, raw)

        assert store.has_record(USER, user.id, BIO)
        assert store.get(USER, user.id, BIO) is None

    def test_malformed_row_is_regenerated_on_demand(self, store, user):
        _write_raw_vector("user_embeddings", "user_id", user.id, BIO, json.dumps([0.5] * 3))

        vector = store.get_or_create(USER, user.id, BIO, "I build web apps")

        assert len(vector) == DIM
        assert store.get(USER, user.id, BIO) == vector


class TestBackfill:

    def test_backfill_creates_only_missing_records(self, store, failing_store, provider):
        # Written while the provider was down, so no embeddings exist yet
        alice = dao.create_user("alice", bio="python developer", looking_for="designer", _store=failing_store)
        bob = dao.create_user("bob", bio="", looking_for="   ", _store=failing_store)
        carol = dao.create_user("carol", bio="painter", _store=store)
        provider.calls.clear()

        created = store.backfill_missing(USER, dao.list_users())

        assert created == 2
        assert store.get(USER, alice.id, BIO) is not None
        assert store.get(USER, alice.id, LOOKING_FOR) is not None
        assert store.get(USER, bob.id, BIO) is None
        # carol already had her bio embedded
        assert "painter" not in provider.calls
        assert store.get(USER, carol.id, BIO) is not None

    def test_backfill_skips_failures(self, test_db, store, failing_store):
        author = dao.create_user("author", _store=store)
        good = dao.create_post(author.id, "a fine post", _store=failing_store)
        bad = dao.create_post(author.id, "poison pill", _store=failing_store)

        def embed(text):
            if "poison" in text:
                raise RuntimeError("boom")
            return [0.2] * DIM

        provider = MagicMock()
        provider.embed_text.side_effect = embed
        flaky = EmbeddingStore(provider=provider, dimension=DIM, timeout=0)

        created = flaky.backfill_missing(POST, dao.list_posts())

        assert created == 1
        assert flaky.get(POST, good.id, CONTENT) is not None
        assert flaky.get(POST, bad.id, CONTENT) is None

    def test_backfill_accepts_plain_objects(self, store, user):
        entities = [SimpleNamespace(id=user.id, bio="remote engineer", looking_for=None)]
        assert store.backfill_missing(USER, entities) == 1
        assert store.backfill_missing(USER, entities) == 0


def test_unknown_kind_or_field_is_rejected(store):
    with pytest.raises(ValueError):
        store.get("group", 1, BIO)
    with pytest.raises(ValueError):
        store.get(POST, 1, BIO)


def test_coerce_vector():
    assert coerce_vector((1, 2.5), 2) == [1.0, 2.5]
    with pytest.raises(MalformedVector):
        coerce_vector([1.0, 2.0], 3)
    with pytest.raises(MalformedVector):
        coerce_vector([True, False], 2)


def test_executor_created_once_under_concurrency(monkeypatch):
    monkeypatch.setattr(store_module, "_executor", None)
    barrier = threading.Barrier(8)
    seen = []

    def grab():
        barrier.wait()
        seen.append(store_module._get_executor())

    threads = [threading.Thread(target=grab) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(seen) == 8
    assert len({id(executor) for executor in seen}) == 1
    store_module._get_executor().shutdown(wait=False)
