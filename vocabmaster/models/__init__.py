"""Data models."""

from .word import (
    Definition,
    ExtrasKind,
    InputType,
    LookupResult,
    Meaning,
    WordRecord,
    now_ms,
)

__all__ = [
    'Definition',
    'ExtrasKind',
    'InputType',
    'LookupResult',
    'Meaning',
    'WordRecord',
    'now_ms',
]
