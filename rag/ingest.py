# rag/ingest.py
"""
Resource → text segments → token chunks (+ optional encryption).

One bad document never aborts the build: every per-source failure is
logged and that source is skipped.
"""
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

import docx
import pdfminer.high_level
import tiktoken
from PIL import Image, UnidentifiedImageError

from rag.crypto import ENC_SCHEME, ENC_VERSION, CryptoService
from rag.resources import IMAGE_EXTENSIONS, Resource

logger = logging.getLogger(__name__)


class DocumentParseError(Exception):
    pass


@dataclass
class Document:
    text: str
    metadata: Dict[str, object] = field(default_factory=dict)


# ───────── parse capability ─────────
def _parse_pdf(data: bytes) -> List[str]:
    return [pdfminer.high_level.extract_text(io.BytesIO(data))]


def _parse_docx(data: bytes) -> List[str]:
    d = docx.Document(io.BytesIO(data))
    return ["\n".join(p.text for p in d.paragraphs)]


def _parse_plain(data: bytes) -> List[str]:
    return [data.decode("utf-8", errors="ignore")]


def _parse_svg(data: bytes) -> List[str]:
    xml = data.decode("utf-8", errors="ignore")
    xml = re.sub(r"<(script|style)\b.*?</\1>", " ", xml, flags=re.S | re.I)
    words = re.sub(r"<[^>]+>", " ", xml)
    return [" ".join(words.split())]


def _parse_image(data: bytes, filename: str) -> List[str]:
    try:
        with Image.open(io.BytesIO(data)) as img:
            parts = [f"Image {filename}: {img.format} {img.width}x{img.height}"]
            desc = img.getexif().get(0x010E)  # ImageDescription
            if desc:
                parts.append(str(desc))
    except UnidentifiedImageError as exc:
        raise DocumentParseError(f"Unreadable image {filename}") from exc
    return ["\n".join(parts)]


def parse(resource: Resource) -> List[str]:
    ext = resource.extension
    data = resource.path.read_bytes()
    if ext == "pdf":
        return _parse_pdf(data)
    if ext == "docx":
        return _parse_docx(data)
    if ext == "doc":
        raise DocumentParseError("Legacy .doc files are not supported; convert to .docx")
    if ext == "svg":
        return _parse_svg(data)
    if ext in IMAGE_EXTENSIONS:
        return _parse_image(data, resource.filename)
    return _parse_plain(data)


# ───────── metadata ─────────
def with_metadata(segments: List[str], resource: Resource) -> List[Document]:
    content_type = "image" if resource.extension in IMAGE_EXTENSIONS else "text"
    return [
        Document(text=s, metadata={
            "content_type": content_type,
            "filename": resource.filename,
            "source": resource.location,
        })
        for s in segments
        if s and s.strip()
    ]


# ───────── token-aware splitter ─────────
class TokenTextSplitter:
    """Cut text into ~chunk_size-token pieces, preferring sentence ends."""

    PUNCTUATION = (".", "?", "!", "\n")

    def __init__(self, chunk_size=800, min_chunk_chars=350, min_chunk_len=5,
                 max_chunks=10000, encoding=None):
        self.chunk_size = chunk_size
        self.min_chunk_chars = min_chunk_chars
        self.min_chunk_len = min_chunk_len
        self.max_chunks = max_chunks
        self._encoding = encoding

    @property
    def encoding(self):
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding("cl100k_base")
        return self._encoding

    def split_text(self, text: str) -> List[str]:
        if not text or not text.strip():
            return []
        tokens = self.encoding.encode(text)
        chunks, rounds = [], 0
        while tokens and rounds < self.max_chunks:
            rounds += 1
            window = tokens[:self.chunk_size]
            piece = self.encoding.decode(window)
            if not piece.strip():
                tokens = tokens[len(window):]
                continue

            cut = max(piece.rfind(p) for p in self.PUNCTUATION)
            if cut != -1 and cut > self.min_chunk_chars:
                piece = piece[:cut + 1]

            cleaned = piece.replace("\n", " ").strip()
            if len(cleaned) > self.min_chunk_len:
                chunks.append(cleaned)

            consumed = len(self.encoding.encode(piece)) or len(window)
            tokens = tokens[consumed:]

        if tokens:
            rest = self.encoding.decode(tokens).replace("\n", " ").strip()
            if len(rest) > self.min_chunk_len:
                chunks.append(rest)
        return chunks

    def split(self, documents: List[Document]) -> List[Document]:
        out = []
        for d in documents:
            for piece in self.split_text(d.text):
                out.append(Document(text=piece, metadata=dict(d.metadata)))
        return out


# ───────── encryption ─────────
def encrypt_documents(documents: List[Document], crypto: CryptoService) -> List[Document]:
    out = []
    for d in documents:
        if not d.text or not d.text.strip():
            out.append(d)
            continue
        try:
            enc = crypto.encrypt(d.text)
        except Exception:
            logger.exception("Encrypting a chunk from %s failed; storing it unencrypted",
                             d.metadata.get("source"))
            out.append(d)
            continue
        meta = dict(d.metadata)
        meta.update({"enc": ENC_SCHEME, "enc_iv": enc.iv_b64, "enc_v": ENC_VERSION})
        out.append(Document(text=enc.cipher_b64, metadata=meta))
    return out


# ───────── whole pass ─────────
def ingest_resource(resource: Resource, splitter: TokenTextSplitter,
                    crypto: Optional[CryptoService] = None) -> List[Document]:
    try:
        segments = parse(resource)
    except Exception:
        logger.exception("Could not read %s - skipping", resource.location)
        return []
    if not segments or not any(s and s.strip() for s in segments):
        logger.warning("No text found in %s - skipping", resource.location)
        return []

    docs = with_metadata(segments, resource)
    if not docs:
        logger.warning("No processed documents from %s - skipping", resource.location)
        return []

    try:
        split = splitter.split(docs)
    except Exception:
        logger.exception("Could not split %s - skipping", resource.location)
        return []
    if not split:
        logger.warning("No chunks produced from %s - skipping", resource.location)
        return []

    if crypto is not None:
        split = encrypt_documents(split, crypto)
    logger.debug("Prepared %d chunk(s) from %s", len(split), resource.location)
    return split


def iter_ingested(resources: Iterable[Resource], splitter: Optional[TokenTextSplitter] = None,
                  crypto: Optional[CryptoService] = None) -> Iterator[Tuple[str, List[Document]]]:
    """Yield (location, chunks) per source that produced any."""
    splitter = splitter or TokenTextSplitter()
    for res in resources:
        try:
            docs = ingest_resource(res, splitter, crypto)
        finally:
            res.cleanup()
        if docs:
            yield res.location, docs


def ingest_resources(resources: List[Resource], splitter: Optional[TokenTextSplitter] = None,
                     crypto: Optional[CryptoService] = None) -> List[Document]:
    return [d for _, docs in iter_ingested(resources, splitter, crypto) for d in docs]
