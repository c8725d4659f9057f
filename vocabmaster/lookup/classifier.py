"""Input classification: word, phrase or Chinese."""

import re
from typing import Optional

from ..models import InputType

# CJK Unified Ideographs, Extension A, Compatibility Ideographs
CJK_PATTERN = re.compile(r'[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff]')


def classify(text: Optional[str]) -> InputType:
    """
    Map raw input to a query class.

    Any CJK codepoint makes it CHINESE regardless of token count; otherwise
    more than one whitespace-separated token makes it a PHRASE; anything
    else (including empty input) is a WORD.
    """
    trimmed = (text or "").strip()
    if CJK_PATTERN.search(trimmed):
        return InputType.CHINESE
    if len(trimmed.split()) > 1:
        return InputType.PHRASE
    return InputType.WORD
