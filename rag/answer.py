# rag/answer.py
"""
Retrieval-augmented answering:

1) expand the question to English and Norwegian,
2) search once per variant, merge, de-duplicate, cap,
3) decrypt chunks that carry encryption metadata,
4) render the prompt template and call the chat model.
"""
import functools
import logging
import re
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from django.conf import settings

from rag.crypto import ENC_SCHEME, AuthenticationFailure, CryptoService
from rag.expansion import expand_query
from rag.llm import complete
from rag.store import Chunk, VectorStore, get_vector_store

logger = logging.getLogger(__name__)

MAX_DOCUMENTS = 40
PLACEHOLDER   = re.compile(r"\{(input|documents)\}")


def retrieve(store: VectorStore, queries: Iterable[str], top_k: int = MAX_DOCUMENTS,
             limit: int = MAX_DOCUMENTS) -> List[Chunk]:
    seen_queries, seen_texts, merged = set(), set(), []
    for q in queries:
        if q in seen_queries:
            continue
        seen_queries.add(q)
        for chunk in store.similarity_search(q, top_k=top_k):
            if chunk.text in seen_texts:
                continue
            seen_texts.add(chunk.text)
            merged.append(chunk)
            if len(merged) >= limit:
                return merged
    return merged


def _placeholder(chunk: Chunk) -> str:
    src = chunk.metadata.get("source") or "(unknown source)"
    return f"[Could not decrypt chunk - source: {src}]"


def chunk_text(chunk: Chunk, crypto: Optional[CryptoService]) -> str:
    if chunk.metadata.get("enc") != ENC_SCHEME:
        return chunk.text
    if crypto is None:
        logger.warning("Encrypted chunk from %s but no key configured", chunk.metadata.get("source"))
        return _placeholder(chunk)
    try:
        return crypto.decrypt(str(chunk.metadata.get("enc_iv", "")), chunk.text)
    except AuthenticationFailure:
        logger.warning("Could not decrypt chunk from %s", chunk.metadata.get("source"))
        return _placeholder(chunk)


@functools.lru_cache(maxsize=None)
def load_prompt_template(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def render_prompt(template: str, question: str, documents: List[str]) -> str:
    values = {"input": question, "documents": "\n".join(documents)}
    return PLACEHOLDER.sub(lambda m: values[m.group(1)], template)


def get_answer(question: str, *, store: Optional[VectorStore] = None,
               crypto: Optional[CryptoService] = None,
               completer: Callable[..., str] = complete) -> str:
    if store is None:
        store = get_vector_store()
    if crypto is None:
        crypto = store.crypto

    queries = expand_query(question, completer=completer)
    chunks = retrieve(store, queries, top_k=settings.RAG["TOP_K"], limit=MAX_DOCUMENTS)
    texts = [chunk_text(c, crypto) for c in chunks]
    logger.debug("Answering with %d chunk(s) from %d query variant(s)", len(texts), len(queries))

    template = load_prompt_template(str(settings.RAG["PROMPT_TEMPLATE_PATH"]))
    return completer(render_prompt(template, question, texts))
