"""Text parsing utilities for consistent text processing across the application."""

import html
import re
import unicodedata
from typing import Optional


class TextParser:
    """
    Centralized text parsing utilities.

    Single source of truth for key normalization, markup stripping and the
    small string rules the lookup pipeline depends on.
    """

    # HTML tag removal pattern
    HTML_TAG_PATTERN = re.compile(r'<[^>]*>')

    # Whitespace normalization pattern
    WHITESPACE_PATTERN = re.compile(r'\s+')

    # One trailing run of sentence punctuation
    TRAILING_PUNCT_PATTERN = re.compile(r'[.!?,;:]+$')

    # Optional ``` / ```json fence around an LLM reply
    CODE_FENCE_PATTERN = re.compile(r'^```(?:json)?\s*|\s*```$')

    @classmethod
    def normalize_unicode(cls, text: Optional[str]) -> str:
        """
        Normalize text to NFC form for consistent Unicode handling.

        Args:
            text: Input text

        Returns:
            NFC-normalized text
        """
        if not text:
            return ""
        return unicodedata.normalize('NFC', str(text))

    @classmethod
    def normalize_key(cls, text: Optional[str]) -> str:
        """
        Build the store key for a word: NFC, trimmed, lower-cased.

        Args:
            text: Raw word or phrase

        Returns:
            Case-normalized, whitespace-trimmed key
        """
        return cls.normalize_unicode(text).strip().lower()

    @classmethod
    def strip_html(cls, text: Optional[str]) -> str:
        """
        Remove markup from a definition and unescape entities.

        Args:
            text: Definition that may contain HTML

        Returns:
            Plain text
        """
        if not text:
            return ""
        text = cls.HTML_TAG_PATTERN.sub('', str(text))
        return html.unescape(text).strip()

    @classmethod
    def strip_trailing_punctuation(cls, text: str) -> str:
        """Drop one trailing run of . ! ? , ; : characters."""
        return cls.TRAILING_PUNCT_PATTERN.sub('', text)

    @classmethod
    def to_lemma(cls, translated: str) -> str:
        """
        Turn a machine translation into a dictionary lookup key.

        "Hello." becomes "hello": lower-case, trim, then strip the trailing
        punctuation run translation services tend to append.
        """
        return cls.strip_trailing_punctuation(translated.lower().strip())

    @classmethod
    def slugify(cls, text: str) -> str:
        """Wiktionary page slug: lower-cased, whitespace runs become '_'."""
        return cls.WHITESPACE_PATTERN.sub('_', text.strip().lower())

    @classmethod
    def strip_code_fence(cls, text: str) -> str:
        """Remove an optional surrounding ``` or ```json fence."""
        return cls.CODE_FENCE_PATTERN.sub('', text.strip()).strip()

    @classmethod
    def clean_for_tts(cls, text: Optional[str]) -> str:
        """
        Clean text for TTS processing.

        Removes HTML, normalizes whitespace.

        Args:
            text: Raw text

        Returns:
            Cleaned text ready for TTS
        """
        if not text:
            return ""

        text = cls.strip_html(text)
        text = cls.WHITESPACE_PATTERN.sub(' ', text).strip()
        return cls.normalize_unicode(text)
