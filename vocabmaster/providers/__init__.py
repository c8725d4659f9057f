"""Providers module - lookup tiers with the Strategy pattern."""

from .base import BaseProvider, HTTPProvider, JSONClient, LookupQuery
from .dictionary import PrimaryDictionaryProvider, SecondaryDictionaryProvider
from .translation import (
    Direction,
    LLMFallbackProvider,
    MyMemoryTranslator,
    TranslationOnlyProvider,
)
from .pronunciation import NeuralTTSFetcher, PronunciationPolicy, PronunciationSource, VoiceInfo
from .registry import ProviderRegistry

__all__ = [
    'BaseProvider',
    'HTTPProvider',
    'JSONClient',
    'LookupQuery',
    'PrimaryDictionaryProvider',
    'SecondaryDictionaryProvider',
    'Direction',
    'LLMFallbackProvider',
    'MyMemoryTranslator',
    'TranslationOnlyProvider',
    'NeuralTTSFetcher',
    'PronunciationPolicy',
    'PronunciationSource',
    'VoiceInfo',
    'ProviderRegistry',
]
