"""
OCR text clean-up and value cleaning helpers shared by the extraction passes.
"""

import re
from typing import Iterable, Optional

from expirycare.utils.dates import DATE_TOKEN_PATTERN

# Labels that end a free-text value when they appear later on the same line
NEXT_LABEL_PATTERN = re.compile(
    r'\s*\b(?:'
    r'valid\s+(?:till|until|up\s*to|through|thru)'
    r'|exp(?:iry|iration)?\.?\s*(?:date|dt\.?)?\s*[:\-.]'
    r'|expires?\s+on'
    r'|best\s+before|use\s+(?:before|by)'
    r'|(?:batch|lot|b\.)\s*(?:no\.?|number|#)?\s*[:\-.]'
    r'|(?:mfg|mfd|mkt)\.?\s*(?:date|dt\.?|by)?\s*[:\-]'
    r'|(?:manufactured|marketed)\s+(?:by|on)'
    r'|(?:policy|plan|serial|model|contract|subscription|membership|member)\s*'
    r'(?:no\.?|number|#|id|type|name)?\s*[:\-]'
    r'|(?:brand|company|provider|insurer|manufacturer|product|service)\s*(?:name|type)?\s*[:\-]'
    r'|(?:purchase|invoice|bill|issue)\s+date'
    r'|(?:mrp|price|qty|sum\s+insured)\b'
    r')',
    re.IGNORECASE,
)

PERIOD_PATTERN = re.compile(
    r'(?P<count>\d{1,2})\s*(?:\+\s*(?P<extra>\d{1,2})\s*)?(?P<unit>years?|yrs?|months?|mths?)\b',
    re.IGNORECASE,
)

CODE_PATTERN = re.compile(r'[A-Za-z0-9][A-Za-z0-9\-/]{2,29}')

# Words that are never a value on their own (they are labels)
STOP_VALUES = {
    'no', 'number', 'batch', 'invoice', 'exp', 'expiry', 'mfg', 'mfd', 'date',
    'name', 'type', 'id', 'na', 'n/a', 'nil', 'none', 'details', 'by',
}


def normalize_ocr_text(text: str) -> str:
    """
    Repair common OCR damage before extraction.

    - Letter-spaced words: "E X P I R Y" → "EXPIRY"
    - Letter O read instead of zero inside dates: "3O/12/2O24" → "30/12/2024"
    - Dates split across lines: "31/12/\\n2024" → "31/12/2024"
    """
    if not text:
        return ""

    # Collapse runs of 3+ single letters separated by single spaces
    text = re.sub(
        r'\b[A-Za-z](?: [A-Za-z]){2,}\b',
        lambda m: m.group(0).replace(' ', ''),
        text,
    )

    # O/o between digits or next to a date separator is a zero
    previous = None
    while previous != text:
        previous = text
        text = re.sub(r'(?<=\d)[Oo](?=[\d/\-.])', '0', text)
        text = re.sub(r'(?<=[\d/\-.])[Oo](?=\d)', '0', text)
        text = re.sub(r'(?<=\d[/\-.])[Oo](?![A-Za-z])', '0', text)

    # Date split across a line break after a separator
    text = re.sub(r'(\d{1,2}[/\-.](?:\d{1,2}[/\-.])?)[ \t]*\n[ \t]*(?=\d{2,4}\b)', r'\1', text)
    return text


def trim_at_next_label(value: str) -> str:
    """Cut a free-text value where the next label on the line begins."""
    match = NEXT_LABEL_PATTERN.search(value, 1)
    if match:
        value = value[:match.start()]
    return value.strip()


def clean_text_value(
    raw: Optional[str],
    min_length: int = 2,
    max_length: int = 60,
    reject: Iterable[str] = (),
) -> Optional[str]:
    """
    Clean a free-text value (names, providers, plans).

    Over-long values are cut back to whole words. Returns None when what
    remains is not a plausible name: too short, no letters, a bare label
    word, or a date.
    """
    if not raw:
        return None
    value = trim_at_next_label(raw)
    value = re.sub(r'\s+', ' ', value).strip(' :-.,;|#*')
    if len(value) > max_length:
        # Keep whole words only
        value = value[:max_length].rsplit(' ', 1)[0].rstrip(' :-.,;|#*')
    if len(value) < min_length:
        return None
    if sum(ch.isalpha() for ch in value) < 2:
        return None
    lowered = value.lower()
    if lowered in STOP_VALUES:
        return None
    if any(word and re.match(re.escape(word.lower()) + r'(?![a-z0-9])', lowered) for word in reject):
        # Whole words only: "Expert Care" is a name, "Exp 12/26" is a label
        return None
    if DATE_TOKEN_PATTERN.fullmatch(value):
        return None
    return value


def clean_code_value(raw: Optional[str], require_digit: bool = True) -> Optional[str]:
    """Take the first code-like token (batch, serial, policy number)."""
    if not raw:
        return None
    for match in CODE_PATTERN.finditer(raw.strip(' :-#.')):
        value = match.group(0).strip('-/')
        if len(value) < 3 or value.lower() in STOP_VALUES:
            continue
        if require_digit and not any(ch.isdigit() for ch in value):
            return None
        return value.upper()
    return None


def normalize_period(raw: Optional[str]) -> Optional[str]:
    """
    Normalize a duration such as "2 yrs" or "1+1 years" to "2 Years".

    Examples:
        >>> normalize_period("1 yr")
        '1 Year'
        >>> normalize_period("1+1 Years")
        '2 Years'
    """
    if not raw:
        return None
    match = PERIOD_PATTERN.search(raw)
    if not match:
        return None
    count = int(match.group('count')) + int(match.group('extra') or 0)
    if count <= 0:
        return None
    unit = 'Year' if match.group('unit').lower().startswith('y') else 'Month'
    return f"{count} {unit}{'s' if count != 1 else ''}"


def title_case(value: str) -> str:
    """Title-case words that are fully upper or lower case, keep mixed ones."""
    words = []
    for word in value.split():
        if word.isupper() and len(word) <= 4:
            # Acronyms like LIC, HDFC, AMC
            words.append(word)
        elif word.isupper() or word.islower():
            words.append(word.capitalize())
        else:
            words.append(word)
    return ' '.join(words)
