# rag/llm.py
"""
OpenAI-backed capabilities: embed(text) → vector, complete(prompt) → text.
"""
import functools
import logging
import os
from typing import List, Optional, Protocol

from django.conf import settings
from openai import OpenAI

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def get_client() -> OpenAI:
    return OpenAI(api_key=os.getenv("OPENAI_API_KEY"))


class Embedder(Protocol):
    def embed(self, text: str) -> List[float]: ...
    def model_name(self) -> Optional[str]: ...
    def dimensions(self) -> Optional[int]: ...


class OpenAIEmbedder:
    def __init__(self, model: Optional[str] = None, dimensions: Optional[int] = None):
        self._model = model or settings.RAG["EMBEDDING_MODEL"]
        self._dimensions = dimensions

    def embed(self, text: str) -> List[float]:
        kwargs = {"model": self._model, "input": text}
        if self._dimensions:
            kwargs["dimensions"] = self._dimensions
        return get_client().embeddings.create(**kwargs).data[0].embedding

    def model_name(self) -> Optional[str]:
        return self._model

    def dimensions(self) -> Optional[int]:
        return self._dimensions


def default_embedder() -> OpenAIEmbedder:
    return OpenAIEmbedder(
        model=settings.RAG["EMBEDDING_MODEL"],
        dimensions=settings.RAG.get("EMBEDDING_DIMENSIONS"),
    )


def describe_embedder(embedder) -> tuple:
    """(model, dimensions) as reported by the embedder, else from settings."""
    model = embedder.model_name() or settings.RAG.get("EMBEDDING_MODEL") or "(unknown)"
    dims = embedder.dimensions() or settings.RAG.get("EMBEDDING_DIMENSIONS") or "(unknown)"
    return model, dims


def complete(prompt: str, *, system: Optional[str] = None, json_mode: bool = False) -> str:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    kwargs = {"model": settings.RAG["CHAT_MODEL"], "messages": messages}
    if json_mode:
        kwargs["response_format"] = {"type": "json_object"}
    reply = get_client().chat.completions.create(**kwargs)
    return (reply.choices[0].message.content or "").strip()
