# rag/store.py
"""
File-backed vector store.

A store is built once (or loaded from its JSON file) and is read-only for
the rest of the process; readers never take a lock.
"""
import enum
import json
import logging
import os
import tempfile
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np
from django.conf import settings

from rag.crypto import CryptoService, codec_from_settings
from rag.ingest import Document, iter_ingested
from rag.llm import Embedder, default_embedder, describe_embedder
from rag.resources import resolve_resources

logger = logging.getLogger(__name__)

FILE_VERSION = 1


class StoreState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    BUILDING      = "building"
    BUILT         = "built"
    LOADED        = "loaded"


@dataclass(frozen=True)
class Chunk:
    text: str
    embedding: tuple
    metadata: Dict[str, object] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def encrypted(self) -> bool:
        return self.metadata.get("enc") == "aesgcm"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "text": self.text,
            "embedding": list(self.embedding),
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Chunk":
        return cls(
            id=d.get("id") or str(uuid.uuid4()),
            text=d["text"],
            embedding=tuple(float(x) for x in d["embedding"]),
            metadata=dict(d.get("metadata") or {}),
        )


class VectorStore:
    def __init__(self, embedder: Embedder, crypto: Optional[CryptoService] = None):
        self.embedder = embedder
        # decrypts chunk text at answer time; None when no key is configured
        self.crypto = crypto
        self.state = StoreState.UNINITIALIZED
        self.dimensions: Optional[int] = None
        self._chunks: List[Chunk] = []
        self._matrix = np.zeros((0, 0), dtype=np.float32)

    def __len__(self):
        return len(self._chunks)

    @property
    def chunks(self) -> List[Chunk]:
        return list(self._chunks)

    def _require(self, *states):
        if self.state not in states:
            raise RuntimeError(f"Vector store is {self.state.value}")

    def _index(self) -> None:
        if not self._chunks:
            self._matrix = np.zeros((0, self.dimensions or 0), dtype=np.float32)
            return
        m = np.asarray([c.embedding for c in self._chunks], dtype=np.float32)
        norms = np.linalg.norm(m, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        self._matrix = m / norms

    # ───────── write once ─────────
    def _embed(self, documents: Iterable[Document]) -> List[Chunk]:
        """Embed one batch; dimensions are committed only if the whole batch fits."""
        dims, chunks = self.dimensions, []
        for d in documents:
            vec = tuple(float(x) for x in self.embedder.embed(d.text))
            if dims is None:
                dims = len(vec)
            elif len(vec) != dims:
                raise ValueError(f"Embedding has {len(vec)} dimensions, store uses {dims}")
            chunks.append(Chunk(text=d.text, embedding=vec, metadata=dict(d.metadata)))
        self.dimensions = dims
        return chunks

    def _finish(self, chunks: List[Chunk]) -> "VectorStore":
        self._chunks = chunks
        self._index()
        self.state = StoreState.BUILT
        return self

    def build(self, documents: Iterable[Document]) -> "VectorStore":
        self._require(StoreState.UNINITIALIZED)
        self.state = StoreState.BUILDING
        return self._finish(self._embed(documents))

    def build_from_sources(self, batches: Iterable[Tuple[str, List[Document]]]) -> "VectorStore":
        """Like build(), but a source whose embedding fails is logged and left out."""
        self._require(StoreState.UNINITIALIZED)
        self.state = StoreState.BUILDING
        chunks = []
        for source, documents in batches:
            try:
                chunks.extend(self._embed(documents))
            except Exception:
                logger.exception("Could not embed %s - skipping", source)
        return self._finish(chunks)

    def save(self, path) -> None:
        self._require(StoreState.BUILT, StoreState.LOADED)
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        model, _ = describe_embedder(self.embedder)
        payload = {
            "version": FILE_VERSION,
            "embedding_model": model,
            "dimensions": self.dimensions,
            "chunks": [c.to_dict() for c in self._chunks],
        }
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def load(self, path) -> "VectorStore":
        self._require(StoreState.UNINITIALIZED)
        with open(path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        self._chunks = [Chunk.from_dict(c) for c in payload.get("chunks", [])]
        self.dimensions = payload.get("dimensions") or (
            len(self._chunks[0].embedding) if self._chunks else None
        )
        self._index()
        self.state = StoreState.LOADED
        return self

    # ───────── read many ─────────
    def similarity_search(self, query: str, top_k: int = 4) -> List[Chunk]:
        self._require(StoreState.BUILT, StoreState.LOADED)
        if not self._chunks or top_k <= 0:
            return []
        q = np.asarray(self.embedder.embed(query), dtype=np.float32)
        norm = np.linalg.norm(q)
        if norm:
            q = q / norm
        scores = self._matrix @ q
        # stable sort keeps insertion order on ties
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [self._chunks[i] for i in order]


# ───────── process-wide lifecycle ─────────
_store: Optional[VectorStore] = None
_lock = threading.Lock()


def _log_embedder(embedder) -> None:
    model, dims = describe_embedder(embedder)
    logger.info("Embedding model in use: class=%s model=%s dimensions=%s",
                type(embedder).__name__, model, dims)


def load_or_build(rag_settings: dict, embedder: Optional[Embedder] = None) -> VectorStore:
    """Load the persisted store if present, otherwise ingest and persist once.

    The codec is resolved here, before either path, and kept on the store.
    With ENCRYPT_CONTENT a missing or bad key is fatal even for an existing
    file.
    """
    embedder = embedder or default_embedder()
    _log_embedder(embedder)
    crypto = codec_from_settings(required=bool(rag_settings.get("ENCRYPT_CONTENT")))
    path = Path(rag_settings["VECTOR_STORE_PATH"])

    if path.exists():
        logger.info("Loading existing vector store from %s", path)
        store = VectorStore(embedder, crypto=crypto).load(path)
        logger.info("Loaded %d chunk(s)", len(store))
        return store

    logger.info("No vector store at %s; reading and indexing documents", path)
    resources = resolve_resources(rag_settings)
    if not resources:
        logger.warning("No documents to load; check DOCUMENTS_TO_LOAD / DOCUMENTS_TO_LOAD_DIR")
    else:
        logger.info("Found %d document(s) to index", len(resources))

    write_crypto = crypto if rag_settings.get("ENCRYPT_CONTENT") else None
    try:
        store = VectorStore(embedder, crypto=crypto).build_from_sources(
            iter_ingested(resources, crypto=write_crypto)
        )
    finally:
        for res in resources:
            res.cleanup()
    store.save(path)
    logger.info("Vector store with %d chunk(s) saved to %s", len(store), path)
    return store


def get_vector_store() -> VectorStore:
    global _store
    if _store is None:
        with _lock:
            if _store is None:
                _store = load_or_build(settings.RAG)
    return _store


def reset_vector_store() -> None:
    global _store
    with _lock:
        _store = None
