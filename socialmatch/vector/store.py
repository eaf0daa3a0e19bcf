"""
Embedding store: durable (entity, field) -> vector mapping backed by SQLite.

The store is the only component that talks to the embedding provider. It
regenerates a vector whenever the caller reports that the text changed, lazily
creates missing vectors on read, and treats stored vectors of the wrong shape
as absent.
"""

import json
import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..core import config
from ..core.db import get_db
from ..core.errors import EmptyInput, MalformedVector, ProviderUnavailable
from ..core.schema import POST, USER, EMBEDDABLE_FIELDS, EmbeddingRecord
from ..util.logging import logger

_TABLES = {
    POST: ("post_embeddings", "post_id"),
    USER: ("user_embeddings", "user_id"),
}

_executor = None
_executor_lock = threading.Lock()


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        with _executor_lock:
            if _executor is None:
                _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="embed")
    return _executor


def coerce_vector(raw, dimension: int) -> List[float]:
    """Validate a provider or storage value as a finite float vector of the given dimension."""
    if hasattr(raw, "tolist"):
        raw = raw.tolist()
    if not isinstance(raw, (list, tuple)):
        raise MalformedVector(f"expected a list of floats, got {type(raw).__name__}")
    if len(raw) == 0:
        raise MalformedVector("vector is empty")
    if len(raw) != dimension:
        raise MalformedVector(f"expected dimension {dimension}, got {len(raw)}")

    vector = []
    for value in raw:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedVector(f"non-numeric component {value!r}")
        value = float(value)
        if value != value or value in (float("inf"), float("-inf")):
            raise MalformedVector("vector contains NaN or infinite components")
        vector.append(value)
    return vector


def _parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except (TypeError, ValueError):
        return datetime.now()


class EmbeddingStore:
    """
    Persistence and caching of embeddings for post content and user profile fields.

    Args:
        provider: Embedding provider; defaults to the process-wide provider from config
        dimension: Expected vector length; defaults to the provider's dimension
        timeout: Seconds to wait for the provider (0 or None disables)
        db_factory: Context manager yielding a sqlite3 connection
    """

    def __init__(self, provider=None, dimension: int = None, timeout: float = None,
                 db_factory: Callable = None):
        self._provider = provider
        self._dimension = dimension
        self.timeout = config.EMBED_TIMEOUT_SEC if timeout is None else timeout
        self._db = db_factory or get_db

    @property
    def provider(self):
        """Lazy-loaded embedding provider."""
        if self._provider is None:
            self._provider = config.get_embedding_provider()
        return self._provider

    @property
    def dimension(self) -> int:
        if self._dimension is None:
            self._dimension = self.provider.get_dimension()
        return self._dimension

    # Reads

    def get_record(self, kind: str, entity_id: int, field: str) -> Optional[EmbeddingRecord]:
        """Return the stored record if it holds a usable vector, else None."""
        table, id_column = self._table(kind, field)
        with self._db() as conn:
            row = conn.execute(
                f"SELECT vector, updated_at FROM {table} WHERE {id_column} = ? AND field = ?",
                (entity_id, field)
            ).fetchone()

        if row is None:
            return None

        raw_vector, updated_at = row
        try:
            vector = coerce_vector(json.loads(raw_vector), self.dimension)
        except (MalformedVector, ValueError, TypeError) as e:
            logger.log_embedding_operation("read", kind, entity_id, field, {"error": str(e)}, status="malformed")
            return None

        return EmbeddingRecord(entity_id=entity_id, field=field, vector=vector,
                               updated_at=_parse_timestamp(updated_at))

    def get(self, kind: str, entity_id: int, field: str) -> Optional[List[float]]:
        """Read-only lookup; never generates."""
        record = self.get_record(kind, entity_id, field)
        return record.vector if record else None

    def has_record(self, kind: str, entity_id: int, field: str) -> bool:
        """True if any row exists for (entity, field), usable or not."""
        table, id_column = self._table(kind, field)
        with self._db() as conn:
            row = conn.execute(
                f"SELECT 1 FROM {table} WHERE {id_column} = ? AND field = ?",
                (entity_id, field)
            ).fetchone()
        return row is not None

    # Writes

    def get_or_create(self, kind: str, entity_id: int, field: str, text: Optional[str] = None,
                      text_changed: bool = False) -> Optional[List[float]]:
        """
        Return the vector for (entity, field), generating it when needed.

        A stored usable vector is returned as-is unless text_changed is set.
        Otherwise the text is embedded and upserted. Empty or whitespace text
        removes any existing record and returns None.

        If regeneration for changed text fails, the old record is removed
        before the error propagates, so the field reads as absent until a
        later write or backfill succeeds.

        Raises:
            ProviderUnavailable: the provider failed, timed out or returned a malformed vector
        """
        if not text_changed:
            existing = self.get(kind, entity_id, field)
            if existing is not None:
                return existing

        if text is None or not text.strip():
            if text_changed or text is not None:
                self.delete(kind, entity_id, field)
            return None

        try:
            vector = self._generate(text)
        except EmptyInput:
            # Text was non-blank but preprocessed to nothing (e.g. only punctuation)
            self.delete(kind, entity_id, field)
            return None
        except ProviderUnavailable as e:
            logger.log_embedding_operation("generate", kind, entity_id, field, {"error": str(e)}, status="failed")
            if text_changed:
                # The stored vector describes text that no longer exists
                self.delete(kind, entity_id, field)
            raise

        self.upsert(kind, entity_id, field, vector)
        logger.log_embedding_operation("generated", kind, entity_id, field, {
            "dimension": len(vector),
            "operation": "update" if text_changed else "create"
        })
        return vector

    def upsert(self, kind: str, entity_id: int, field: str, vector: List[float]) -> None:
        """Insert or overwrite the vector for (entity, field)."""
        vector = coerce_vector(vector, self.dimension)
        table, id_column = self._table(kind, field)
        with self._db() as conn:
            conn.execute(
                f"""INSERT INTO {table} ({id_column}, field, vector, dimension, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT({id_column}, field) DO UPDATE SET
                        vector = excluded.vector,
                        dimension = excluded.dimension,
                        updated_at = excluded.updated_at""",
                (entity_id, field, json.dumps(vector), len(vector), datetime.now().isoformat(sep=" "))
            )
            conn.commit()

    def delete(self, kind: str, entity_id: int, field: str) -> None:
        """Remove the record for (entity, field), recording 'no embedding'."""
        table, id_column = self._table(kind, field)
        with self._db() as conn:
            cursor = conn.execute(f"DELETE FROM {table} WHERE {id_column} = ? AND field = ?", (entity_id, field))
            conn.commit()
        if cursor.rowcount:
            logger.log_embedding_operation("cleared", kind, entity_id, field)

    def backfill_missing(self, kind: str, entities: Iterable, fields: Iterable[str] = None) -> int:
        """
        Generate embeddings for entities lacking a usable record for a non-empty field.

        Entities are any objects exposing `id` and the text fields as attributes.
        Each entity is processed independently; a failure is logged and skipped.

        Returns:
            Number of records created
        """
        fields = tuple(fields or EMBEDDABLE_FIELDS[kind])
        created = 0
        examined = 0
        failed = 0

        for entity in entities:
            examined += 1
            for field in fields:
                text = getattr(entity, field, None)
                if not text or not text.strip():
                    continue
                if self.get(kind, entity.id, field) is not None:
                    continue
                try:
                    if self.get_or_create(kind, entity.id, field, text, text_changed=True) is not None:
                        created += 1
                except (ProviderUnavailable, sqlite3.Error) as e:
                    failed += 1
                    logger.log_embedding_operation("backfill", kind, entity.id, field, {"error": str(e)}, status="failed")

        logger.log_backfill(kind, examined, created, failed)
        return created

    # Internals

    def _generate(self, text: str) -> List[float]:
        """Call the provider under the configured timeout and validate its output."""
        try:
            if self.timeout and self.timeout > 0:
                future = _get_executor().submit(self.provider.embed_text, text)
                raw = future.result(timeout=self.timeout)
            else:
                raw = self.provider.embed_text(text)
        except EmptyInput:
            raise
        except FutureTimeout:
            raise ProviderUnavailable(f"Embedding provider timed out after {self.timeout}s")
        except Exception as e:
            raise ProviderUnavailable(f"Embedding provider failed: {e}") from e

        try:
            return coerce_vector(raw, self.dimension)
        except MalformedVector as e:
            raise ProviderUnavailable(f"Embedding provider returned a malformed vector: {e}") from e

    @staticmethod
    def _table(kind: str, field: str):
        if kind not in _TABLES:
            raise ValueError(f"Unknown entity kind: {kind}")
        if field not in EMBEDDABLE_FIELDS[kind]:
            raise ValueError(f"Field {field!r} is not embeddable for {kind}")
        return _TABLES[kind]


_default_store = None


def get_embedding_store() -> EmbeddingStore:
    """Process-wide store over the configured provider."""
    global _default_store
    if _default_store is None:
        _default_store = EmbeddingStore()
    return _default_store


def reset_embedding_store():
    global _default_store
    _default_store = None
