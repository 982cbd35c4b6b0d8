# rag/resources.py
"""
Find the documents to ingest.

Precedence: explicit DOCUMENTS_TO_LOAD list → seed documents next to the
vector-store file → recursive scan of DOCUMENTS_TO_LOAD_DIR.
"""
import logging
import mimetypes
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional
from urllib.parse import unquote, urlparse

import requests

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS  = ("pdf", "docx", "doc", "txt", "md")
IMAGE_EXTENSIONS = ("png", "jpg", "jpeg", "gif", "bmp", "tiff", "webp", "svg")
ALLOWED_EXTENSIONS = TEXT_EXTENSIONS + IMAGE_EXTENSIONS

DOWNLOAD_TIMEOUT = 120


class UnsupportedDocument(ValueError):
    pass


@dataclass(frozen=True)
class Resource:
    location: str          # what ends up in metadata["source"]
    path: Path             # local file to parse
    filename: str
    temporary: bool = False

    @property
    def extension(self) -> str:
        return Path(self.filename).suffix.lower().lstrip(".")

    def cleanup(self) -> None:
        if self.temporary:
            try:
                os.unlink(self.path)
            except FileNotFoundError:
                pass


def _is_remote(location: str) -> bool:
    return urlparse(location).scheme in ("http", "https")


def _local_path(location: str) -> Path:
    if location.startswith("file:"):
        return Path(unquote(urlparse(location).path))
    return Path(location).expanduser()


def _suffix_for(url: str, content_type: Optional[str]) -> str:
    suffix = Path(unquote(urlparse(url).path)).suffix
    if suffix:
        return suffix.lower()
    if content_type:
        guessed = mimetypes.guess_extension(content_type.split(";")[0].strip())
        if guessed:
            return guessed
    return ".bin"


def download(url: str) -> Resource:
    """Materialize a remote document in a temp file, keeping its extension."""
    res = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
    res.raise_for_status()
    suffix = _suffix_for(url, res.headers.get("Content-Type"))

    tmp = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
    with tmp:
        tmp.write(res.content)

    name = Path(unquote(urlparse(url).path)).name or "download"
    if not Path(name).suffix:
        name += suffix
    return Resource(location=url, path=Path(tmp.name), filename=name, temporary=True)


def _resolve_one(location: str) -> Resource:
    if _is_remote(location):
        res = download(location)
    else:
        path = _local_path(location)
        if not path.is_file():
            raise FileNotFoundError(f"No such document: {path}")
        path = path.resolve()
        res = Resource(location=path.as_uri(), path=path, filename=path.name)
    if res.extension not in ALLOWED_EXTENSIONS:
        res.cleanup()
        raise UnsupportedDocument(f"Unsupported document type .{res.extension or '?'}")
    return res


def _has_allowed_extension(path: Path) -> bool:
    return path.suffix.lower().lstrip(".") in ALLOWED_EXTENSIONS


def _dedupe(resources: Iterable[Resource]) -> List[Resource]:
    seen, out = set(), []
    for r in resources:
        if r.location in seen:
            r.cleanup()
            continue
        seen.add(r.location)
        out.append(r)
    return out


def scan_seed_dir(store_path: Path) -> List[Resource]:
    """Documents dropped next to the store file seed a fresh store."""
    directory = store_path.parent
    if not directory.is_dir():
        return []
    found = []
    for p in sorted(directory.iterdir()):
        if p.is_file() and p.resolve() != store_path.resolve() and _has_allowed_extension(p):
            p = p.resolve()
            found.append(Resource(location=p.as_uri(), path=p, filename=p.name))
    return found


def scan_base_dir(base_dir: Path) -> List[Resource]:
    found = []
    for ext in ALLOWED_EXTENSIONS:
        try:
            matches = sorted(
                p for p in base_dir.rglob("*")
                if p.is_file() and p.suffix.lower() == f".{ext}"
            )
        except OSError as exc:
            logger.warning("Could not scan %s for .%s files: %s", base_dir, ext, exc)
            continue
        if matches:
            logger.debug("Found %d .%s file(s)", len(matches), ext)
        for p in matches:
            p = p.resolve()
            found.append(Resource(location=p.as_uri(), path=p, filename=p.name))
    return found


def resolve_resources(rag_settings: dict) -> List[Resource]:
    explicit = rag_settings.get("DOCUMENTS_TO_LOAD") or []
    if explicit:
        out = []
        for loc in explicit:
            try:
                out.append(_resolve_one(loc))
            except (OSError, requests.RequestException, UnsupportedDocument) as exc:
                logger.warning("Skipping document %s: %s", loc, exc)
        return _dedupe(out)

    store_path = Path(rag_settings["VECTOR_STORE_PATH"])
    seeds = scan_seed_dir(store_path)
    if seeds:
        logger.info("Seeding vector store from %s", store_path.parent)
        return _dedupe(seeds)

    base_dir = rag_settings.get("DOCUMENTS_TO_LOAD_DIR")
    if not base_dir:
        logger.warning("No DOCUMENTS_TO_LOAD or DOCUMENTS_TO_LOAD_DIR configured")
        return []
    base = _local_path(base_dir)
    if not base.is_dir():
        logger.warning("Document directory %s does not exist", base)
        return []

    found = _dedupe(scan_base_dir(base))
    if not found:
        logger.warning("No files in %s with extensions %s", base, list(ALLOWED_EXTENSIONS))
    else:
        logger.info("Files to load from %s:", base)
        for r in found:
            logger.info(" - %s", r.location)
    return found
