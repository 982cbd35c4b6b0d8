# tests/test_answer.py
import base64
import json
from pathlib import Path

from rag.answer import MAX_DOCUMENTS, chunk_text, get_answer, render_prompt, retrieve
from rag.crypto import CryptoService
from rag.ingest import Document
from rag.store import Chunk, VectorStore


class StubStore:
    """Returns canned hits per query."""

    def __init__(self, hits):
        self.hits = hits
        self.queries = []

    def similarity_search(self, query, top_k=4):
        self.queries.append((query, top_k))
        return self.hits.get(query, [])[:top_k]


def _chunk(text, **metadata):
    return Chunk(text=text, embedding=(1.0,), metadata=metadata)


# ───────── retrieval ─────────
def test_merge_keeps_first_seen_order_and_dedupes():
    a, b, c = _chunk("A"), _chunk("B"), _chunk("C")
    store = StubStore({"q": [a, b], "en": [b, c], "no": [a]})
    assert [x.text for x in retrieve(store, ["q", "en", "no"])] == ["A", "B", "C"]


def test_identical_variants_are_searched_once():
    store = StubStore({"q": [_chunk("A")]})
    retrieve(store, ["q", "q", "q"], top_k=7)
    assert store.queries == [("q", 7)]


def test_merged_list_is_capped():
    store = StubStore({
        "q":  [_chunk(f"q{i}") for i in range(30)],
        "en": [_chunk(f"en{i}") for i in range(30)],
    })
    merged = retrieve(store, ["q", "en"], top_k=30)
    assert len(merged) == MAX_DOCUMENTS
    assert merged[29].text == "q29"
    assert merged[30].text == "en0"


# ───────── decryption ─────────
def test_plain_chunk_passes_through(key):
    assert chunk_text(_chunk("plain", source="a.txt"), CryptoService(key)) == "plain"


def test_encrypted_chunk_is_decrypted(key):
    crypto = CryptoService(key)
    enc = crypto.encrypt("hidden")
    chunk = _chunk(enc.cipher_b64, enc="aesgcm", enc_iv=enc.iv_b64, enc_v=1, source="a.txt")
    assert chunk_text(chunk, crypto) == "hidden"


def test_bad_iv_gives_placeholder(key):
    crypto = CryptoService(key)
    enc = crypto.encrypt("hidden")
    bad_iv = base64.b64encode(b"x" * 12).decode()
    chunk = _chunk(enc.cipher_b64, enc="aesgcm", enc_iv=bad_iv, source="file:///docs/cv.pdf")
    assert chunk_text(chunk, crypto) == "[Could not decrypt chunk - source: file:///docs/cv.pdf]"


def test_no_key_gives_placeholder():
    chunk = _chunk("Zm9v", enc="aesgcm", enc_iv="AAAA")
    assert chunk_text(chunk, None) == "[Could not decrypt chunk - source: (unknown source)]"


# ───────── prompt ─────────
def test_render_prompt_fills_both_placeholders():
    out = render_prompt("Q: {input}\nDocs:\n{documents}", "Who?", ["one", "two"])
    assert out == "Q: Who?\nDocs:\none\ntwo"


def test_render_prompt_does_not_expand_user_text():
    out = render_prompt("{documents}|{input}", "say {documents}", ["{input}"])
    assert out == "{input}|say {documents}"


# ───────── end to end ─────────
def test_get_answer_end_to_end(rag_settings, embedder):
    store = VectorStore(embedder).build([
        Document("I work as a backend developer in Oslo", {"source": "cv.txt"}),
        Document("My hobby is mountain biking", {"source": "hobby.txt"}),
    ])
    prompts = []

    def completer(prompt, system=None, json_mode=False):
        prompts.append((prompt, json_mode))
        if json_mode:
            return json.dumps({"en": "Where do you work?", "no": "Hvor jobber du?"})
        return "I work in Oslo."

    assert get_answer("Where do you work?", store=store, completer=completer) == "I work in Oslo."

    final_prompt, json_mode = prompts[-1]
    assert not json_mode
    assert final_prompt.startswith("Question: Where do you work?\nContext:\n")
    assert "backend developer in Oslo" in final_prompt
    assert "mountain biking" in final_prompt
    assert len(prompts) == 2


def test_get_answer_decrypts_with_the_store_codec(rag_settings, embedder, key):
    crypto = CryptoService(key)
    enc = crypto.encrypt("secret fact")
    store = VectorStore(embedder, crypto=crypto).build([
        Document(enc.cipher_b64, {"enc": "aesgcm", "enc_iv": enc.iv_b64, "enc_v": 1, "source": "s"}),
    ])

    def completer(prompt, system=None, json_mode=False):
        return "{}" if json_mode else prompt

    assert "secret fact" in get_answer("anything", store=store, completer=completer)


def test_get_answer_never_reads_the_key_per_request(rag_settings, embedder, key, mocker):
    rag_settings["ENCRYPTION_KEY_BASE64"] = base64.b64encode(key).decode()
    enc = CryptoService(key).encrypt("secret fact")
    store = VectorStore(embedder).build([
        Document(enc.cipher_b64, {"enc": "aesgcm", "enc_iv": enc.iv_b64, "enc_v": 1, "source": "s"}),
    ])
    resolve = mocker.patch("rag.crypto.resolve_key_material")

    def completer(prompt, system=None, json_mode=False):
        return "{}" if json_mode else prompt

    out = get_answer("anything", store=store, completer=completer)
    assert "[Could not decrypt chunk - source: s]" in out
    resolve.assert_not_called()


def test_get_answer_uses_shared_store(rag_settings, embedder, mocker):
    store = VectorStore(embedder).build([])
    mocker.patch("rag.answer.get_vector_store", return_value=store)
    Path(rag_settings["PROMPT_TEMPLATE_PATH"]).write_text("[{documents}] {input}")

    def completer(prompt, system=None, json_mode=False):
        return "{}" if json_mode else prompt

    assert get_answer("hi", completer=completer) == "[] hi"
