"""Data models for VocabMaster."""

import copy
import time
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Optional

from ..utils.parsing import TextParser


class InputType(Enum):
    """Query class assigned by the input classifier."""
    WORD = "word"
    PHRASE = "phrase"
    CHINESE = "chinese"


class ExtrasKind(Enum):
    """On-demand enrichment kinds cached on a record."""
    CONJUGATIONS = "conjugations"
    SYNONYMS = "synonyms"
    ANTONYMS = "antonyms"


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class Definition:
    """A single sense of a meaning."""

    text: str
    example: Optional[str] = None
    synonyms: List[str] = field(default_factory=list)
    translation: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"definition": self.text}
        if self.example:
            data["example"] = self.example
        if self.synonyms:
            data["synonyms"] = list(self.synonyms)
        if self.translation is not None:
            data["translation"] = self.translation
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Definition":
        _require_object(data, "definition")
        example = _optional_str(data, "example")
        if not example:
            # Older backups carry a list of examples
            examples = _str_list(data, "examples")
            example = examples[0] if examples else None
        return cls(
            text=str(data.get("definition") or data.get("text") or ""),
            example=example,
            synonyms=_str_list(data, "synonyms"),
            translation=data.get("translation", data.get("translationZh")),
        )


@dataclass
class Meaning:
    """Definitions grouped under one part of speech."""

    part_of_speech: str
    definitions: List[Definition] = field(default_factory=list)
    synonyms: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "partOfSpeech": self.part_of_speech,
            "definitions": [d.to_dict() for d in self.definitions],
        }
        if self.synonyms:
            data["synonyms"] = list(self.synonyms)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Meaning":
        _require_object(data, "meaning")
        definitions = data.get("definitions") or []
        if not isinstance(definitions, list):
            raise ValueError("'definitions' must be a list")
        return cls(
            part_of_speech=str(data.get("partOfSpeech") or "unknown"),
            definitions=[Definition.from_dict(d) for d in definitions],
            synonyms=_str_list(data, "synonyms"),
        )


# Attribute name -> serialized name
_WIRE_NAMES = {
    "key": "word",
    "display_word": "displayWord",
    "phonetic": "phonetic",
    "audio_url": "audioUrl",
    "meanings": "meanings",
    "translation": "translation",
    "extras_cache": "extrasCache",
    "added_at": "addedAt",
    "last_reviewed_at": "lastReviewedAt",
    "review_count": "reviewCount",
    "level": "level",
    "next_review_at": "nextReviewAt",
    "source": "source",
}


@dataclass
class WordRecord:
    """
    The persisted unit: one looked-up word or phrase with its review state.

    Scheduler fields left as None are filled in by the repository when the
    record is first stored. Timestamps are integer milliseconds since the
    epoch, the unit used by existing backup files.
    """

    key: str
    display_word: str = ""
    phonetic: str = ""
    audio_url: Optional[str] = None
    meanings: List[Meaning] = field(default_factory=list)
    translation: str = ""
    extras_cache: Dict[str, Any] = field(default_factory=dict)
    added_at: Optional[int] = None
    last_reviewed_at: Optional[int] = None
    review_count: Optional[int] = None
    level: Optional[int] = None
    next_review_at: Optional[int] = None
    source: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.key = TextParser.normalize_key(self.key)
        if not self.display_word:
            self.display_word = self.key
        if self.meanings is None:
            self.meanings = []

    @property
    def is_empty(self) -> bool:
        """True when the record carries neither meanings nor a translation."""
        return not self.meanings and not self.translation

    def copy(self) -> "WordRecord":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the backup-file shape (camelCase keys)."""
        data: Dict[str, Any] = dict(self.extra)
        data.update({
            "word": self.key,
            "displayWord": self.display_word,
            "phonetic": self.phonetic,
            "audioUrl": self.audio_url,
            "meanings": [m.to_dict() for m in self.meanings],
            "translation": self.translation,
            "addedAt": self.added_at,
            "nextReviewAt": self.next_review_at,
            "reviewCount": self.review_count,
            "level": self.level,
            "lastReviewedAt": self.last_reviewed_at,
        })
        if self.extras_cache:
            data["extrasCache"] = copy.deepcopy(self.extras_cache)
        if self.source is not None:
            data["source"] = self.source
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordRecord":
        """
        Build a record from its serialized form.

        Raises:
            ValueError: If the mapping has no usable key or malformed fields
        """
        if not isinstance(data, dict):
            raise ValueError(f"Record must be an object, got {type(data).__name__}")

        key = data.get("word") or data.get("key")
        if not isinstance(key, str) or not key.strip():
            raise ValueError("Record has no 'word' key")

        meanings = data.get("meanings") or []
        if not isinstance(meanings, list):
            raise ValueError(f"'meanings' of {key!r} must be a list")

        extras_cache = data.get("extrasCache") or {}
        if not isinstance(extras_cache, dict):
            raise ValueError(f"'extrasCache' of {key!r} must be an object")

        known = set(_WIRE_NAMES.values()) | {"key"}
        return cls(
            key=key,
            display_word=_optional_str(data, "displayWord") or "",
            phonetic=_optional_str(data, "phonetic") or "",
            audio_url=_optional_str(data, "audioUrl") or None,
            meanings=[Meaning.from_dict(m) for m in meanings],
            translation=_optional_str(data, "translation") or "",
            extras_cache=dict(extras_cache),
            added_at=_optional_int(data, "addedAt"),
            last_reviewed_at=_optional_int(data, "lastReviewedAt"),
            review_count=_optional_int(data, "reviewCount"),
            level=_optional_int(data, "level"),
            next_review_at=_optional_int(data, "nextReviewAt"),
            source=_optional_str(data, "source"),
            extra={k: v for k, v in data.items() if k not in known},
        )

    @classmethod
    def field_names(cls) -> List[str]:
        return [f.name for f in fields(cls)]


def _optional_int(data: Dict[str, Any], name: str) -> Optional[int]:
    value = data.get(name)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{name}' must be a number, got {value!r}")
    return int(value)


def _require_object(data: Any, what: str) -> None:
    if not isinstance(data, dict):
        raise ValueError(f"Each {what} must be an object, got {type(data).__name__}")


def _optional_str(data: Dict[str, Any], name: str) -> Optional[str]:
    value = data.get(name)
    if value is None or isinstance(value, str):
        return value
    raise ValueError(f"'{name}' must be a string, got {value!r}")


def _str_list(data: Dict[str, Any], name: str) -> List[str]:
    value = data.get(name) or []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{name}' must be a list of strings")
    return list(value)


@dataclass
class LookupResult:
    """Transient outcome of one resolver run. Not persisted as-is."""

    record: Optional[WordRecord]
    translation_text: Optional[str]
    input_type: InputType
    source_tag: Optional[str] = None
    message: Optional[str] = None
    sequence: int = 0

    @property
    def found(self) -> bool:
        return self.record is not None
