"""Lookup module - input classification and the provider waterfall."""

from .classifier import CJK_PATTERN, classify
from .resolver import AUTH_HINT, NOT_FOUND_MESSAGES, LookupResolver

__all__ = [
    'CJK_PATTERN',
    'classify',
    'AUTH_HINT',
    'NOT_FOUND_MESSAGES',
    'LookupResolver',
]
