import json
import logging
import math
import os
import tempfile
import threading
from typing import List, Dict, Any, Optional, Sequence, Tuple

import numpy as np

from exceptions import LoadError
from models import Document, VectorDocument, SearchResult

# Set up logging
logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two vectors; 0.0 when either has zero magnitude"""
    vec_a = np.asarray(a, dtype=float)
    vec_b = np.asarray(b, dtype=float)
    norm_a = np.linalg.norm(vec_a)
    norm_b = np.linalg.norm(vec_b)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    score = float(np.dot(vec_a, vec_b) / (norm_a * norm_b))
    return max(-1.0, min(1.0, score))


def _migrate_legacy(payload: Any) -> Dict[str, Any]:
    # Unversioned snapshots are a bare array of documents
    return {
        "schema_version": 1,
        "embedding_model": None,
        "dimension": None,
        "documents": payload,
    }


class VectorIndex:
    """In-memory collection of embedded documents with exact cosine search"""

    def __init__(self, embedding_client, max_results: int = 3,
                 snapshot_path: Optional[str] = None):
        self.embedding_client = embedding_client
        self.max_results = max_results
        self.snapshot_path = snapshot_path
        # Replaced wholesale on every write so readers never see a partial batch
        self._documents: Tuple[VectorDocument, ...] = ()
        self._write_lock = threading.Lock()

    @property
    def dimension(self) -> Optional[int]:
        documents = self._documents
        return len(documents[0].embedding) if documents else None

    def count(self) -> int:
        return len(self._documents)

    def documents(self) -> Tuple[VectorDocument, ...]:
        return self._documents

    def clear(self):
        with self._write_lock:
            self._documents = ()

    def add_documents(self, docs: Sequence[Document]) -> int:
        """
        Embed and append a batch of documents, all or nothing.

        Every embedding is computed before anything is published, so a
        failing embedding call or a dimension mismatch leaves the index
        exactly as it was.

        Returns:
            Number of documents added

        Raises:
            ProviderError: If any embedding call fails
            ValueError: If embedding lengths are not uniform with the index
        """
        if not docs:
            return 0

        vector_docs = []
        for doc in docs:
            embedding = self.embedding_client.embed(doc.content)
            vector_docs.append(VectorDocument(
                content=doc.content,
                metadata=dict(doc.metadata),
                embedding=list(embedding),
            ))

        with self._write_lock:
            expected = len(self._documents[0].embedding) if self._documents else len(vector_docs[0].embedding)
            for vector_doc in vector_docs:
                if len(vector_doc.embedding) != expected:
                    raise ValueError(
                        f"Embedding dimension mismatch: expected {expected}, got {len(vector_doc.embedding)}"
                    )

            self._documents = self._documents + tuple(vector_docs)

        logger.info(f"Indexed {len(vector_docs)} documents ({len(self._documents)} total)")
        return len(vector_docs)

    def search(self, query: str, k: Optional[int] = None) -> List[SearchResult]:
        """
        Return up to k documents most similar to the query.

        Results are ordered by descending cosine similarity; equal scores
        keep insertion order. An empty index yields an empty list without
        calling the embedding provider.

        Raises:
            ProviderError: If the query cannot be embedded
        """
        limit = self.max_results if k is None else k
        documents = self._documents
        if limit <= 0 or not documents:
            return []

        query_vector = np.asarray(self.embedding_client.embed(query), dtype=float)
        matrix = np.asarray([doc.embedding for doc in documents], dtype=float)
        if matrix.shape[1] != query_vector.shape[0]:
            raise ValueError(
                f"Query embedding dimension {query_vector.shape[0]} does not match index dimension {matrix.shape[1]}"
            )

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query_vector)
        dots = matrix @ query_vector
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms == 0.0, 0.0, dots / np.where(norms == 0.0, 1.0, norms))
        scores = np.clip(scores, -1.0, 1.0)

        order = np.argsort(-scores, kind="stable")[:limit]
        return [SearchResult(document=documents[i], score=float(scores[i])) for i in order]

    def save(self, path: Optional[str] = None):
        """Write the whole collection to a versioned JSON snapshot"""
        target = path or self.snapshot_path
        if not target:
            raise ValueError("No snapshot path configured")

        documents = self._documents
        payload = {
            "schema_version": SCHEMA_VERSION,
            "embedding_model": getattr(self.embedding_client, "model_name", None),
            "dimension": len(documents[0].embedding) if documents else None,
            "documents": [doc.to_dict() for doc in documents],
        }

        directory = os.path.dirname(os.path.abspath(target))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        logger.info(f"Vector index saved to {target} ({len(documents)} documents)")

    def load(self, path: Optional[str] = None):
        """
        Replace the in-memory collection with a snapshot.

        Raises:
            LoadError: If the snapshot is missing, unreadable or malformed
        """
        source = path or self.snapshot_path
        if not source:
            raise LoadError("No snapshot path configured")

        try:
            with open(source, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except FileNotFoundError as e:
            raise LoadError(f"Snapshot not found: {source}") from e
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            raise LoadError(f"Could not read snapshot {source}: {e}") from e

        if isinstance(payload, list):
            logger.info("Migrating unversioned snapshot to schema version 1")
            payload = _migrate_legacy(payload)

        if not isinstance(payload, dict):
            raise LoadError("Snapshot must be a JSON object")
        version = payload.get("schema_version")
        if version != SCHEMA_VERSION:
            raise LoadError(f"Unsupported snapshot schema version: {version!r}")

        # Embeddings from another model are not comparable with this client's queries
        snapshot_model = payload.get("embedding_model")
        current_model = getattr(self.embedding_client, "model_name", None)
        if isinstance(snapshot_model, str) and isinstance(current_model, str) and snapshot_model != current_model:
            raise LoadError(
                f"Snapshot was built with embedding model {snapshot_model!r}, current model is {current_model!r}"
            )

        entries = payload.get("documents")
        if not isinstance(entries, list):
            raise LoadError("Snapshot has no document list")

        documents = []
        for position, entry in enumerate(entries):
            try:
                content = entry["content"]
                metadata = entry.get("metadata") or {}
                embedding = [float(value) for value in entry["embedding"]]
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise LoadError(f"Malformed document at position {position}: {e}") from e
            if not isinstance(content, str) or not isinstance(metadata, dict):
                raise LoadError(f"Malformed document at position {position}")
            if not all(math.isfinite(value) for value in embedding):
                raise LoadError(f"Non-finite embedding value at position {position}")
            documents.append(VectorDocument(content=content, metadata=metadata, embedding=embedding))

        dimensions = {len(doc.embedding) for doc in documents}
        if len(dimensions) > 1:
            raise LoadError(f"Snapshot mixes embedding dimensions: {sorted(dimensions)}")
        declared = payload.get("dimension")
        if declared is not None and dimensions and dimensions != {declared}:
            raise LoadError(f"Snapshot declares dimension {declared} but stores {sorted(dimensions)}")

        with self._write_lock:
            self._documents = tuple(documents)

        logger.info(f"Vector index loaded from {source} ({len(documents)} documents)")
