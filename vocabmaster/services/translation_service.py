"""
Translation Service - bilingual translation with an LLM fallback.

Used standalone (translating definitions, the Chinese bridge) and inside the
lookup waterfall (the translation-only and LLM tiers).
"""

import asyncio
import logging
from typing import Any, List, Optional

from ..exceptions import AuthError
from ..models import ExtrasKind, Meaning
from ..providers.translation import Direction, MyMemoryTranslator
from .ai_service import AIService

logger = logging.getLogger(__name__)


class TranslationService:
    """
    Wraps the bilingual translation API and the optional LLM.

    Usage:
        async with TranslationService(MyMemoryTranslator(), AIService()) as service:
            text = await service.translate("run", Direction.EN_TO_ZH)
    """

    def __init__(
        self,
        translator: Optional[MyMemoryTranslator] = None,
        ai_service: Optional[AIService] = None,
    ):
        """
        Args:
            translator: Bilingual translation client
            ai_service: LLM used as fallback and for extras; None disables both
        """
        self.translator = translator or MyMemoryTranslator()
        self.ai_service = ai_service

    async def close(self) -> None:
        await self.translator.close()
        if self.ai_service:
            await self.ai_service.close()

    async def __aenter__(self) -> "TranslationService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def has_llm(self) -> bool:
        return self.ai_service is not None

    async def translate(
        self,
        text: str,
        direction: Direction,
        use_llm_fallback: bool = False,
    ) -> Optional[str]:
        """
        Translate text, optionally falling back to the LLM.

        An echoed result counts as a failure. Never raises.

        Args:
            text: Text to translate
            direction: Language pair
            use_llm_fallback: Ask the LLM when the translation API has nothing

        Returns:
            Translation or None
        """
        if not text or not text.strip():
            return None

        result = await self.translator.translate(text, direction)
        if result or not use_llm_fallback:
            return result

        try:
            return await self.llm_translate(text)
        except AuthError as e:
            logger.info("LLM fallback unavailable: %s", e)
            return None

    async def llm_translate(self, text: str) -> Optional[str]:
        """
        Translate with the LLM's auto-detecting prompt.

        Raises:
            AuthError: No LLM configured, or credentials missing/invalid
        """
        if self.ai_service is None:
            raise AuthError("No LLM provider configured")
        result = await self.ai_service.translate(text)
        if result and result.strip().lower() == text.strip().lower():
            return None
        return result

    async def fetch_extras(self, text: str, kind: ExtrasKind) -> Optional[Any]:
        """
        Fetch structured extras for a word or phrase.

        Returns:
            Parsed JSON (dict for conjugations, list otherwise) or None

        Raises:
            AuthError: No LLM configured, or credentials missing/invalid
        """
        if self.ai_service is None:
            raise AuthError("No LLM provider configured")
        return await self.ai_service.fetch_extras(text, kind)

    async def translate_definitions(self, meanings: List[Meaning]) -> None:
        """
        Fill ``Definition.translation`` (English to Chinese) in place.

        All definitions are translated concurrently; a failed one keeps None.
        """
        definitions = [d for m in meanings for d in m.definitions]
        if not definitions:
            return

        results = await asyncio.gather(
            *(self.translator.translate(d.text, Direction.EN_TO_ZH) for d in definitions),
            return_exceptions=True,
        )
        for definition, result in zip(definitions, results):
            if isinstance(result, BaseException):
                logger.debug("Definition translation failed: %s", result)
                continue
            definition.translation = result
