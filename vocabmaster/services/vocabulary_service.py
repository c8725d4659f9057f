"""
Vocabulary Service - lookups, history and enrichment over the word store.

Separates the lookup/persistence workflow from any front end:
- Tags lookups with sequence tokens so stale results can be dropped
- Saves lookup results with their review defaults
- Serves history, extras and pronunciation for stored words
"""

import itertools
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, TYPE_CHECKING

from ..models import ExtrasKind, LookupResult, WordRecord
from ..providers.pronunciation import (
    NeuralTTSFetcher,
    PronunciationPolicy,
    PronunciationSource,
    VoiceInfo,
)
from ..utils.parsing import TextParser
from .repository import WordRepository
from .translation_service import TranslationService

if TYPE_CHECKING:
    from ..lookup.resolver import LookupResolver

logger = logging.getLogger(__name__)

SORT_ORDERS = ("newest", "oldest", "alpha", "level")


class VocabularyService:
    """
    Facade used by the CLI and other front ends.

    Usage:
        service = VocabularyService(resolver, repo, translation_service)
        result = await service.lookup("run")
        if result.found and service.is_latest(result.sequence):
            await service.save_lookup(result)
    """

    def __init__(
        self,
        resolver: "LookupResolver",
        store: WordRepository,
        translation_service: Optional[TranslationService] = None,
        pronunciation: Optional[PronunciationPolicy] = None,
    ):
        """
        Args:
            resolver: Lookup waterfall
            store: Word repository (already opened)
            translation_service: Used for extras and definition translation;
                defaults to the resolver's
            pronunciation: Pronunciation precedence policy
        """
        self.resolver = resolver
        self.store = store
        self.translation_service = translation_service or resolver.translation_service
        self.pronunciation = pronunciation or PronunciationPolicy()

        self._sequence = itertools.count(1)
        self._latest = 0
        self._saved_sequence: Dict[str, int] = {}

    # ==================== Lookup ====================

    async def lookup(self, text: str) -> LookupResult:
        """Resolve input; the result carries a fresh sequence token."""
        token = next(self._sequence)
        self._latest = token
        result = await self.resolver.resolve(text)
        result.sequence = token
        return result

    def is_latest(self, token: int) -> bool:
        """True when no lookup was started after the one holding ``token``."""
        return token == self._latest

    async def save_lookup(self, result: LookupResult) -> Optional[WordRecord]:
        """
        Store a found lookup result.

        The record's translation falls back to the lookup's translation text.
        A stored extras cache survives re-saving the same word. Skipped
        (returns None) when nothing was found or a newer lookup of the same
        key has already been saved.
        """
        if not result.found:
            return None

        record = result.record.copy()
        reserved = self._saved_sequence.get(record.key)
        if result.sequence:
            if result.sequence < (reserved or 0):
                logger.debug("Skipping stale save of %r (#%d)", record.key, result.sequence)
                return None
            # Claim the key before the first await
            self._saved_sequence[record.key] = result.sequence

        try:
            stored = await self._store_lookup(record, result)
        except Exception:
            if result.sequence and self._saved_sequence.get(record.key) == result.sequence:
                if reserved is None:
                    self._saved_sequence.pop(record.key, None)
                else:
                    self._saved_sequence[record.key] = reserved
            raise
        logger.info("Saved %r", stored.key)
        return stored

    async def _store_lookup(self, record: WordRecord, result: LookupResult) -> WordRecord:
        if not record.translation and result.translation_text:
            record.translation = result.translation_text
        if result.source_tag and not record.source:
            record.source = result.source_tag

        existing = await self.store.get(record.key)
        if existing is not None and not record.extras_cache:
            record.extras_cache = existing.extras_cache

        return await self.store.upsert(record)

    # ==================== History ====================

    async def history(self, search: Optional[str] = None, sort: str = "newest") -> List[WordRecord]:
        """
        List stored words.

        Args:
            search: Case-insensitive substring of key, display word or translation
            sort: newest | oldest | alpha | level

        Raises:
            ValueError: Unknown sort order
        """
        if sort not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order {sort!r}, expected one of {SORT_ORDERS}")

        records = await self.store.get_all()
        if search:
            needle = TextParser.normalize_unicode(search).strip().lower()
            records = [
                r for r in records
                if needle in r.key
                or needle in (r.display_word or "").lower()
                or needle in (r.translation or "").lower()
            ]

        if sort == "alpha":
            records.sort(key=lambda r: r.key)
        elif sort == "level":
            records.sort(key=lambda r: (-(r.level or 0), r.key))
        else:
            records.sort(key=lambda r: r.added_at or 0, reverse=(sort == "newest"))
        return records

    async def delete(self, key: str) -> bool:
        deleted = await self.store.delete(key)
        if deleted:
            self._saved_sequence.pop(TextParser.normalize_key(key), None)
        return deleted

    # ==================== Enrichment ====================

    async def extras(self, key: str, kind: ExtrasKind) -> Optional[Any]:
        """
        Conjugations, synonyms or antonyms for a word, cached on its record.

        A cached value is returned without a network call. Failed fetches
        are not cached.

        Raises:
            AuthError: No LLM configured, or credentials missing/invalid
        """
        key = TextParser.normalize_key(key)
        record = await self.store.get(key)
        if record is not None and kind.value in record.extras_cache:
            return record.extras_cache[kind.value]

        value = await self.translation_service.fetch_extras(key, kind)
        if value is None or record is None:
            return value

        async with self.store.transaction(key) as working:
            if working is not None:
                working.extras_cache[kind.value] = value
        return value

    async def translate_definitions(self, record: WordRecord) -> WordRecord:
        """
        Translate every definition of a record into Chinese.

        Persists the translations when the word is stored.
        """
        record = record.copy()
        await self.translation_service.translate_definitions(record.meanings)
        if await self.store.contains(record.key):
            await self.store.update(record.key, {"meanings": record.meanings})
        return record

    async def check_llm(self) -> Tuple[bool, str]:
        ai_service = self.translation_service.ai_service
        if ai_service is None:
            return False, "No LLM provider configured"
        return await ai_service.check_connection()

    # ==================== Pronunciation ====================

    def pronunciation_sources(self, record: WordRecord, lang: str = "en-US",
                              voices: Sequence[VoiceInfo] = ()) -> List[PronunciationSource]:
        return self.pronunciation.sources(record, lang, voices)

    async def speak(self, record: WordRecord, output_path: str, lang: str = "en-US") -> bool:
        """Render the word with neural TTS into an MP3 file."""
        async with NeuralTTSFetcher(lang) as tts:
            return await tts.fetch(record.display_word or record.key, output_path)
