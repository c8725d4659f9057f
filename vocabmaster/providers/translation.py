"""Bilingual translation API client and the translation-backed lookup tiers."""

import logging
from enum import Enum
from typing import TYPE_CHECKING, Optional

from ..config import Config
from ..exceptions import AuthError, ProviderMiss
from ..models import WordRecord
from .base import BaseProvider, JSONClient, LookupQuery

if TYPE_CHECKING:
    from ..services.translation_service import TranslationService

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Translation direction as a MyMemory language pair."""
    EN_TO_ZH = "en|zh-CN"
    ZH_TO_EN = "zh-CN|en"


class MyMemoryTranslator(JSONClient):
    """
    MyMemory-compatible translation API.

    ``GET ?q=<text>&langpair=<src|dst>`` answering
    ``{"responseStatus": 200, "responseData": {"translatedText": ...}}``.
    """

    tag = "translator"

    def __init__(self, base_url: str = Config.TRANSLATION_API_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    async def translate(self, text: str, direction: Direction) -> Optional[str]:
        """
        Translate text.

        Returns:
            The translation, or None when the API failed or echoed the input
            back unchanged (its way of saying it has no translation)
        """
        try:
            data = await self.get_json(self.base_url, params={"q": text, "langpair": direction.value})
        except ProviderMiss as e:
            logger.debug("Translation %s failed for %r: %s", direction.value, text, e)
            return None

        if not isinstance(data, dict) or data.get("responseStatus") != 200:
            return None
        response_data = data.get("responseData")
        result = response_data.get("translatedText") if isinstance(response_data, dict) else None
        if not isinstance(result, str) or not result or result.strip().lower() == text.strip().lower():
            return None
        return result


class TranslationOnlyProvider(BaseProvider):
    """Record with no meanings, carrying just the joined translation."""

    tag = "translation-only"
    requires_translation = True

    async def try_resolve(self, query: LookupQuery) -> Optional[WordRecord]:
        if not query.translation:
            raise ProviderMiss("translation-only: no translation")
        return WordRecord(
            key=query.text,
            display_word=query.display_word,
            translation=query.translation,
            source=self.tag,
        )


class LLMFallbackProvider(BaseProvider):
    """Last tier: ask the configured LLM for a translation."""

    tag = "llm"
    requires_translation = True

    def __init__(self, translation_service: "TranslationService"):
        self.translation_service = translation_service

    async def try_resolve(self, query: LookupQuery) -> Optional[WordRecord]:
        try:
            translation = await self.translation_service.llm_translate(query.text)
        except AuthError as e:
            query.auth_failed = True
            raise ProviderMiss(f"llm: {e}") from e
        if not translation:
            raise ProviderMiss("llm: no translation")
        return WordRecord(
            key=query.text,
            display_word=query.display_word,
            translation=translation,
            source=self.tag,
        )
