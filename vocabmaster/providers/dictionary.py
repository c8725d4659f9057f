"""Dictionary tiers: Free Dictionary API (primary) and Wiktionary (secondary)."""

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ..config import Config
from ..exceptions import ProviderMiss
from ..models import Definition, Meaning, WordRecord
from ..utils.parsing import TextParser
from .base import HTTPProvider, LookupQuery

logger = logging.getLogger(__name__)


class PrimaryDictionaryProvider(HTTPProvider):
    """Exact lower-cased word lookup against the Free Dictionary API."""

    tag = "primary"

    def __init__(self, base_url: str = Config.DICTIONARY_API_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    async def try_resolve(self, query: LookupQuery) -> Optional[WordRecord]:
        word = query.text.strip().lower()
        data = await self.get_json(f"{self.base_url}/{quote(word, safe='')}")
        return self.parse(data, query)

    @classmethod
    def parse(cls, data: Any, query: LookupQuery) -> WordRecord:
        """
        Normalize a Free Dictionary payload (a list of entries).

        Only the first entry is used, as the API lists homographs separately
        and the first is the most common sense.

        Raises:
            ProviderMiss: If the payload has no entry or no definitions
        """
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise ProviderMiss("primary: empty payload")

        entry = data[0]
        meanings = cls._extract_meanings(entry)
        if not meanings:
            raise ProviderMiss("primary: no definitions")

        return WordRecord(
            key=entry.get("word") or query.text,
            display_word=query.display_word,
            phonetic=cls._extract_phonetic(entry),
            audio_url=cls._extract_audio_url(entry),
            meanings=meanings,
            source=cls.tag,
        )

    @staticmethod
    def _extract_phonetic(entry: Dict[str, Any]) -> str:
        if entry.get("phonetic"):
            return entry["phonetic"]
        for phonetic in entry.get("phonetics") or []:
            if phonetic.get("text"):
                return phonetic["text"]
        return ""

    @staticmethod
    def _extract_audio_url(entry: Dict[str, Any]) -> Optional[str]:
        for phonetic in entry.get("phonetics") or []:
            if phonetic.get("audio"):
                return phonetic["audio"]
        return None

    @staticmethod
    def _extract_meanings(entry: Dict[str, Any]) -> List[Meaning]:
        meanings = []
        for m in entry.get("meanings") or []:
            definitions = [
                Definition(
                    text=d["definition"],
                    example=d.get("example") or None,
                    synonyms=list(d.get("synonyms") or []),
                )
                for d in m.get("definitions") or []
                if d.get("definition")
            ]
            if definitions:
                meanings.append(Meaning(
                    part_of_speech=m.get("partOfSpeech") or "unknown",
                    definitions=definitions,
                    synonyms=list(m.get("synonyms") or [])[:5],
                ))
        return meanings


class SecondaryDictionaryProvider(HTTPProvider):
    """Wiktionary REST definitions; handles multi-word phrases."""

    tag = "secondary"

    def __init__(self, base_url: str = Config.WIKTIONARY_API_URL, **kwargs):
        super().__init__(base_url, **kwargs)

    async def try_resolve(self, query: LookupQuery) -> Optional[WordRecord]:
        slug = TextParser.slugify(query.text)
        data = await self.get_json(f"{self.base_url}/{quote(slug, safe='')}")
        return self.parse(data, query)

    @classmethod
    def parse(cls, data: Any, query: LookupQuery) -> WordRecord:
        """
        Normalize a Wiktionary payload keyed by language code.

        English entries are preferred; otherwise the first language with
        entries is used. Markup is stripped from definitions and examples.

        Raises:
            ProviderMiss: If no usable meaning remains
        """
        if not isinstance(data, dict):
            raise ProviderMiss("secondary: unexpected payload")

        entries = data.get("en") or data.get("English")
        if not isinstance(entries, list) or not entries:
            entries = next(
                (v for v in data.values() if isinstance(v, list) and v), None
            )
        if not entries:
            raise ProviderMiss("secondary: no entries")

        meanings = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            definitions = []
            for d in entry.get("definitions") or []:
                text = TextParser.strip_html(d.get("definition"))
                if not text:
                    continue
                example = next(
                    (e for e in map(TextParser.strip_html, d.get("examples") or []) if e), None
                )
                definitions.append(Definition(text=text, example=example))
            if definitions:
                meanings.append(Meaning(
                    part_of_speech=entry.get("partOfSpeech") or "unknown",
                    definitions=definitions,
                ))

        if not meanings:
            raise ProviderMiss("secondary: no usable definitions")

        return WordRecord(
            key=query.text,
            display_word=query.display_word,
            meanings=meanings,
            source=cls.tag,
        )
