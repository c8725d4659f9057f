"""
Lookup Resolver - ordered provider waterfall with language-aware routing.

Tiers are tried strictly in order and the first non-empty record wins; no
data is merged across tiers. Not-found responses, transport errors, timeouts
and unparsable payloads are all plain misses.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import Config
from ..exceptions import AuthError, ProviderMiss
from ..models import InputType, LookupResult, WordRecord
from ..providers.base import BaseProvider, LookupQuery
from ..providers.registry import ProviderRegistry
from ..providers.translation import Direction
from ..services.translation_service import TranslationService
from ..utils.parsing import TextParser
from .classifier import classify

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGES = {
    InputType.CHINESE: "Could not translate this Chinese text, try another expression.",
    InputType.WORD: "Word or phrase not found, check the spelling and try again.",
    InputType.PHRASE: "Word or phrase not found, check the spelling and try again.",
}
AUTH_HINT = "Configure LLM credentials in settings to enable the AI fallback."


class LookupResolver:
    """
    Resolve user input to a normalized record.

    Tier lists:
        word:    primary, secondary, translation-only, llm
        phrase:  secondary, primary, translation-only, llm
        chinese: translate to English, then the word list on the English lemma

    Usage:
        async with LookupResolver.create(translation_service) as resolver:
            result = await resolver.resolve("run")
    """

    def __init__(
        self,
        tiers: Dict[InputType, List[BaseProvider]],
        translation_service: TranslationService,
        timeout: float = Config.TIMEOUT,
    ):
        """
        Args:
            tiers: Ordered providers for WORD and PHRASE input
            translation_service: Used for the joined translation fetch and
                the Chinese bridge
            timeout: Upper bound in seconds for each tier attempt
        """
        self.tiers = tiers
        self.translation_service = translation_service
        self.timeout = timeout

    @classmethod
    def create(
        cls,
        translation_service: TranslationService,
        timeout: int = Config.TIMEOUT,
        order: Optional[Dict[InputType, List[str]]] = None,
    ) -> "LookupResolver":
        """Build a resolver with the registered default tiers."""
        tiers = ProviderRegistry.build_tiers(
            order=order, timeout=timeout, translation_service=translation_service
        )
        return cls(tiers, translation_service, timeout=timeout)

    async def close(self) -> None:
        """Close every distinct provider and the translation service."""
        seen = set()
        for providers in self.tiers.values():
            for provider in providers:
                if id(provider) not in seen:
                    seen.add(id(provider))
                    await provider.close()
        await self.translation_service.close()

    async def __aenter__(self) -> "LookupResolver":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def resolve(self, text: str) -> LookupResult:
        """
        Look up a word, phrase or Chinese expression.

        Never raises (cancellation aside): every failure inside the waterfall
        is a miss, and total exhaustion is reported through ``message``.
        """
        input_type = classify(text)
        trimmed = (text or "").strip()
        if not trimmed:
            return self._exhausted(input_type, None, auth_failed=False)

        if input_type == InputType.CHINESE:
            return await self._resolve_chinese(trimmed)

        query = LookupQuery(text=trimmed, display_word=trimmed, input_type=input_type)
        record, tag = await self._waterfall(
            self.tiers[input_type], query,
            translate_direction=Direction.EN_TO_ZH,
        )
        if record is None:
            return self._exhausted(input_type, query.translation, query.auth_failed)

        return LookupResult(
            record=record,
            translation_text=record.translation or query.translation,
            input_type=input_type,
            source_tag=tag,
        )

    async def _resolve_chinese(self, chinese: str) -> LookupResult:
        """Bridge Chinese input through its English translation."""
        auth_failed = False
        english = await self._bridge_step(
            "translator", self.translation_service.translate(chinese, Direction.ZH_TO_EN)
        )
        if not english:
            try:
                english = await self._bridge_step(
                    "llm", self.translation_service.llm_translate(chinese)
                )
            except AuthError as e:
                logger.info("LLM bridge unavailable: %s", e)
                auth_failed = True

        lemma = TextParser.to_lemma(english) if english else ""
        if not lemma:
            return self._exhausted(InputType.CHINESE, None, auth_failed)

        query = LookupQuery(
            text=lemma,
            display_word=chinese,
            input_type=InputType.CHINESE,
            translation=english,
        )
        record, tag = await self._waterfall(self.tiers[InputType.WORD], query)
        if record is None:
            return self._exhausted(InputType.CHINESE, english, auth_failed or query.auth_failed)

        # Display substitution: show the Chinese, keep the English lemma as key
        record.key = lemma
        record.display_word = chinese
        record.translation = english
        return LookupResult(
            record=record,
            translation_text=english,
            input_type=InputType.CHINESE,
            source_tag=tag,
        )

    async def _bridge_step(self, name: str, coro) -> Optional[str]:
        """One bounded bridge translation. AuthError propagates, anything else is a miss."""
        try:
            result = await asyncio.wait_for(coro, self.timeout)
        except AuthError:
            raise
        except asyncio.TimeoutError:
            logger.debug("Bridge %s timed out after %ss", name, self.timeout)
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Bridge %s failed unexpectedly: %s", name, e)
            return None
        return result if isinstance(result, str) and result.strip() else None

    async def _waterfall(
        self,
        providers: Sequence[BaseProvider],
        query: LookupQuery,
        translate_direction: Optional[Direction] = None,
    ) -> Tuple[Optional[WordRecord], Optional[str]]:
        """
        Run tiers in order, stopping at the first record.

        The leading tiers that do not need the translation run concurrently
        with the translation fetch; both branches are joined before the
        remaining tiers run.
        """
        split = next(
            (i for i, p in enumerate(providers) if p.requires_translation), len(providers)
        )
        independent, dependent = providers[:split], providers[split:]

        if translate_direction is not None:
            found, translation = await asyncio.gather(
                self._first_hit(independent, query),
                self.translation_service.translate(query.text, translate_direction),
                return_exceptions=True,
            )
            if isinstance(found, BaseException):
                logger.warning("Definition fetch failed for %r: %s", query.text, found)
                found = (None, None)
            if isinstance(translation, BaseException):
                logger.warning("Translation fetch failed for %r: %s", query.text, translation)
                translation = None
            query.translation = translation
        else:
            found = await self._first_hit(independent, query)

        if found[0] is not None:
            return found
        return await self._first_hit(dependent, query)

    async def _first_hit(
        self, providers: Sequence[BaseProvider], query: LookupQuery
    ) -> Tuple[Optional[WordRecord], Optional[str]]:
        for provider in providers:
            record = await self._attempt(provider, query)
            if record is not None:
                logger.debug("%r resolved by %s", query.text, provider.tag)
                return record, provider.tag
        return None, None

    async def _attempt(self, provider: BaseProvider, query: LookupQuery) -> Optional[WordRecord]:
        """One attempt at one tier. Every failure is a miss."""
        try:
            record = await asyncio.wait_for(provider.try_resolve(query), self.timeout)
        except ProviderMiss as e:
            logger.debug("Miss: %s", e)
            return None
        except asyncio.TimeoutError:
            logger.debug("Miss: %s timed out after %ss", provider.tag, self.timeout)
            return None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Miss: %s failed unexpectedly: %s", provider.tag, e)
            return None

        if record is None or record.is_empty:
            return None
        return record

    @staticmethod
    def _exhausted(input_type: InputType, translation: Optional[str], auth_failed: bool) -> LookupResult:
        message = NOT_FOUND_MESSAGES[input_type]
        if auth_failed:
            message = f"{message} {AUTH_HINT}"
        return LookupResult(
            record=None,
            translation_text=translation,
            input_type=input_type,
            source_tag=None,
            message=message,
        )
