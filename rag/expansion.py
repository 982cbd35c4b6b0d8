# rag/expansion.py
import logging
from typing import Callable, List, Optional

from pydantic import BaseModel, ValidationError

from rag.llm import complete

logger = logging.getLogger(__name__)

TRANSLATE_INSTRUCTION = (
    "Translate the user query into both English and Norwegian.\n"
    "Return ONLY this JSON object with double quotes and no extra text:\n"
    '{"en": "<english>", "no": "<norwegian>"}'
)


class Translations(BaseModel):
    en: Optional[str] = None
    no: Optional[str] = None


def expand_query(original: str, completer: Callable[..., str] = complete) -> List[str]:
    """[original, english, norwegian]; falls back to the original on any failure."""
    try:
        raw = completer(original, system=TRANSLATE_INSTRUCTION, json_mode=True)
        parsed = Translations.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Query expansion returned an unexpected shape: %s", exc.errors()[:1])
        return [original]
    except Exception:
        logger.warning("Query expansion failed; using the original query only", exc_info=True)
        return [original]

    variants = [original]
    for value in (parsed.en, parsed.no):
        variants.append(value.strip() if value and value.strip() else original)
    return variants
