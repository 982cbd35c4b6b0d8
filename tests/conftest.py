# tests/conftest.py
import re
import zlib

import pytest

from rag.answer import load_prompt_template
from rag.store import reset_vector_store

KEY = bytes(range(32))


class FakeEmbedder:
    """Deterministic bag-of-words vectors; no network."""

    DIMS = 64

    def __init__(self):
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        vec = [0.0] * self.DIMS
        for word in re.findall(r"\w+", text.lower()):
            vec[zlib.crc32(word.encode()) % self.DIMS] += 1.0
        return vec

    def model_name(self):
        return "fake-embedding"

    def dimensions(self):
        return self.DIMS


class FakeEncoding:
    """One token per character, standing in for tiktoken."""

    def encode(self, text):
        return [ord(c) for c in text]

    def decode(self, tokens):
        return "".join(chr(t) for t in tokens)


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def key():
    return KEY


@pytest.fixture(autouse=True)
def _no_tiktoken_download(mocker):
    mocker.patch("rag.ingest.tiktoken.get_encoding", return_value=FakeEncoding())


@pytest.fixture(autouse=True)
def _fresh_rag_state():
    reset_vector_store()
    load_prompt_template.cache_clear()
    yield
    reset_vector_store()
    load_prompt_template.cache_clear()


@pytest.fixture
def rag_settings(settings, tmp_path, monkeypatch):
    monkeypatch.delenv("VECTORSTORE_ENC_KEY", raising=False)
    docs = tmp_path / "docs"
    docs.mkdir()
    template = tmp_path / "prompt.st"
    template.write_text("Question: {input}\nContext:\n{documents}\n", encoding="utf-8")
    settings.RAG = {
        "VECTOR_STORE_PATH":     str(tmp_path / "data" / "vectorstore.json"),
        "DOCUMENTS_TO_LOAD":     [],
        "DOCUMENTS_TO_LOAD_DIR": str(docs),
        "ENCRYPT_CONTENT":       False,
        "ENCRYPTION_KEY_BASE64": None,
        "PROMPT_TEMPLATE_PATH":  str(template),
        "EMBEDDING_MODEL":       "text-embedding-3-small",
        "EMBEDDING_DIMENSIONS":  None,
        "CHAT_MODEL":            "gpt-4o-mini",
        "TOP_K":                 40,
        "CONVERSATION_GAP_MINUTES": 20,
    }
    return settings.RAG
