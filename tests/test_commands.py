# tests/test_commands.py
from io import StringIO

from django.core.management import call_command

from rag.ingest import Document
from rag.store import VectorStore


def test_build_vector_store_reports_state(mocker, embedder):
    store = VectorStore(embedder).build([Document("hello there", {"source": "a"})])
    mocker.patch("rag.management.commands.build_vector_store.get_vector_store", return_value=store)

    out = StringIO()
    call_command("build_vector_store", stdout=out)
    assert "Vector store built: 1 chunk(s), 64 dimensions" in out.getvalue()


def test_build_vector_store_builds_from_documents(rag_settings, mocker, embedder, tmp_path):
    (tmp_path / "docs" / "bio.txt").write_text("A short biography for the chatbot.")
    mocker.patch("rag.store.default_embedder", return_value=embedder)

    out = StringIO()
    call_command("build_vector_store", stdout=out)
    assert "Vector store built: 1 chunk(s)" in out.getvalue()
    assert (tmp_path / "data" / "vectorstore.json").exists()
