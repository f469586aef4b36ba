from __future__ import annotations

from dataclasses import dataclass

import structlog
from pydantic import BaseModel

from ..interfaces import StructuredExtractor
from ..reference import country_language

logger = structlog.get_logger(__name__)

TRANSLATION_PROMPT = """You translate product search keywords from English into the target language for e-commerce search.

- Use the term locals most commonly search for in the target market.
- Keep brand names and technical terms in their original form when they are commonly used that way.
- Use lowercase unless the language capitalises the term.
- Return only the translated keyword.

If the target language is English or the keyword already fits, return it unchanged."""


class TranslationResult(BaseModel):
    translated_keyword: str
    language_code: str
    language_name: str


@dataclass(frozen=True)
class TranslatedKeyword:
    original: str
    translated: str
    language_code: str
    language_name: str


async def translate_keyword(keyword: str, country_code: str, extractor: StructuredExtractor) -> TranslatedKeyword:
    """Translate ``keyword`` into the country's language; falls back to the original."""
    code, name = country_language(country_code)
    if code == "en":
        return TranslatedKeyword(keyword, keyword, "en", "English")

    user = (
        f"Translate this product search keyword to {name} ({code}):\n\n"
        f'Keyword: "{keyword}"\n\nTarget Language: {name}\nTarget Country: {country_code}'
    )
    try:
        result = await extractor.complete(TRANSLATION_PROMPT, user, TranslationResult, max_tokens=256)
    except Exception as exc:  # noqa: BLE001
        logger.warning("translation.failed", keyword=keyword, country_code=country_code, error=repr(exc))
        return TranslatedKeyword(keyword, keyword, code, name)
    return TranslatedKeyword(keyword, result.translated_keyword or keyword, result.language_code, result.language_name)


__all__ = ["TranslatedKeyword", "translate_keyword"]
