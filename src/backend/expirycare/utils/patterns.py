"""
Shared regex building blocks for the extraction passes.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional, Pattern


@dataclass(frozen=True)
class PatternSpec:
    """A named regex pattern with example and notes for documentation."""
    name: str
    pattern: str
    example: str
    notes: Optional[str] = None
    priority: Optional[int] = None
    flags: int = re.IGNORECASE
    compiled: re.Pattern = field(default=None, init=False, compare=False, repr=False)

    def __post_init__(self):
        object.__setattr__(self, 'compiled', re.compile(self.pattern, self.flags))


def phrase_pattern(phrase: str) -> str:
    """
    Build a regex for a keyword phrase.

    Words may be separated by any run of whitespace (OCR line wraps included)
    and the phrase must not be glued to surrounding letters, so "exp" does
    not fire inside "expense".
    """
    words = [re.escape(word) for word in phrase.split()]
    return r'(?<![a-z])' + r'\s+'.join(words) + r'(?![a-z])'


def compile_phrases(phrases: Iterable[str]) -> Pattern:
    """Compile an alternation of phrases, longest first."""
    ordered = sorted(set(phrases), key=len, reverse=True)
    return re.compile('|'.join(phrase_pattern(p) for p in ordered), re.IGNORECASE)
