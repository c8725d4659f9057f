"""
Application wiring: builds the store, resolver and services from settings.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from .config import SettingsManager
from .lookup import LookupResolver
from .providers.translation import MyMemoryTranslator
from .services.ai_service import AIService, build_ai_config
from .services.repository import LocalFileStore, MirrorFileStore, WordRepository
from .services.review_service import ReviewService
from .services.scheduler import SpacedRepetitionScheduler
from .services.translation_service import TranslationService
from .services.vocabulary_service import VocabularyService

logger = logging.getLogger(__name__)


@dataclass
class App:
    """Live services for one session."""
    settings: SettingsManager
    scheduler: SpacedRepetitionScheduler
    repository: WordRepository
    resolver: LookupResolver
    vocabulary: VocabularyService
    reviews: ReviewService


def build_translation_service(settings: SettingsManager) -> TranslationService:
    """Translation client plus the LLM when the fallback is enabled."""
    timeout = settings.get("TIMEOUT")
    ai_service = None
    if settings.get("LLM_FALLBACK_ENABLED"):
        ai_service = AIService(build_ai_config(
            provider=settings.get("LLM_PROVIDER"),
            model=settings.get("LLM_MODEL") or None,
            api_key=settings.get("LLM_API_KEY") or None,
            base_url=settings.get("LLM_BASE_URL") or None,
            timeout=timeout,
        ))
    return TranslationService(MyMemoryTranslator(timeout=timeout), ai_service)


@asynccontextmanager
async def open_app(settings: Optional[SettingsManager] = None) -> AsyncIterator[App]:
    """
    Open the word store and build every service around it.

    Usage:
        async with open_app() as app:
            result = await app.vocabulary.lookup("run")
    """
    settings = settings or SettingsManager()
    scheduler = SpacedRepetitionScheduler(
        settings.get("REVIEW_INTERVAL_DAYS"), settings.get("MASTERED_INTERVAL_DAYS")
    )
    mirror_dir = settings.get("MIRROR_DIR")
    mirror = MirrorFileStore(mirror_dir) if mirror_dir else None

    async with WordRepository.open(
        LocalFileStore(settings.get("STORE_FILE")), mirror=mirror, scheduler=scheduler
    ) as repository:
        translation_service = build_translation_service(settings)
        async with LookupResolver.create(
            translation_service, timeout=settings.get("TIMEOUT")
        ) as resolver:
            logger.debug("Opened store with %d words", repository.count)
            yield App(
                settings=settings,
                scheduler=scheduler,
                repository=repository,
                resolver=resolver,
                vocabulary=VocabularyService(resolver, repository, translation_service),
                reviews=ReviewService(repository, scheduler),
            )
