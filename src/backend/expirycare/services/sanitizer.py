"""
PII sanitizer: strips personal identifiers from OCR text before any
field extraction runs.

Redaction replaces each match with a single space and is repeated until the
text stops changing, so sanitizing already-sanitized text is a no-op.
"""

import logging
import re
from typing import List, Tuple

logger = logging.getLogger(__name__)

# Value following a PII label runs until the next non-PII label or end of line
_NON_PII_LABELS = (
    r'valid|exp|expiry|expires|best\s+before|use\s+before|use\s+by|batch|lot|mfg|mfd'
    r'|manufactured|manufacturing|marketed|policy|plan|premium|serial|model|warranty'
    r'|product|brand|service|subscription|membership|renewal|contract|date\s+of\s+issue'
    r'|issue\s+date|issued|dob|d\.o\.b|date\s+of\s+birth|birth\s+date|address|name'
    r'|blood\s+group|phone|mobile|email|passport|licen[cs]e|dl'
)
_PII_VALUE = r'(?:(?!\b(?:' + _NON_PII_LABELS + r')\b)[^\n])*'

_NAME_PREFIXES = (
    r"(?:(?:full|customer|patient|holder'?s?|father'?s?|mother'?s?|husband'?s?"
    r"|spouse'?s?|guardian'?s?|insured|policy\s*holder|member|owner'?s?|proposer'?s?)\s+)?"
)

# Field labels that contain "name" but are not about a person
_BUSINESS_NAME_GUARDS = ''.join(
    r'(?<!{} )'.format(word) for word in (
        'product', 'brand', 'service', 'medicine', 'drug', 'plan', 'company',
        'insurer', 'provider', 'model', 'item', 'generic', 'trade', 'store',
        'dealer', 'shop', 'app', 'platform', 'package', 'policy', 'scheme',
    )
)

_OTHER_PII_LABELS = (
    r'd\.?o\.?b\.?|date\s+of\s+birth|birth\s+date|(?:residential\s+|permanent\s+|present\s+)?address'
    r'|licen[cs]e\s*(?:no\.?|number|#)|dl\s*(?:no\.?|number|#)|passport\s*(?:no\.?|number|#)'
    r'|blood\s+group'
)

_LINE_START_LABEL = re.compile(
    r'^[ \t]*(?:' + _NAME_PREFIXES + r'name|' + _OTHER_PII_LABELS + r')(?![a-z])[ \t]*[:.\-]?' + _PII_VALUE,
    re.IGNORECASE | re.MULTILINE,
)

_INLINE_LABEL = re.compile(
    r'(?:' + _BUSINESS_NAME_GUARDS + r'\b' + _NAME_PREFIXES + r'name|\b(?:' + _OTHER_PII_LABELS + r'))'
    r'(?![a-z])[ \t]*[:\-]' + _PII_VALUE,
    re.IGNORECASE,
)


class PIISanitizer:
    """Removes Indian ID numbers, contact details and labelled personal data."""

    # Ordered: the longer digit runs go first so a 12-digit Aadhaar is not
    # half-eaten by the 10-digit phone rule
    PII_PATTERNS: List[Tuple[str, re.Pattern]] = [
        ('aadhaar_grouped', re.compile(r'(?<!\d)\d{4}[ \-]\d{4}[ \-]\d{4}(?!\d)')),
        ('aadhaar_plain', re.compile(r'(?<!\d)\d{12}(?!\d)')),
        ('phone', re.compile(r'(?<![\w+])(?:\+?91[ \-]?)?\d{10}(?!\d)')),
        ('email', re.compile(r'[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}')),
        ('pan', re.compile(r'\b[A-Z]{5}\d{4}[A-Z]\b')),
        ('driving_licence', re.compile(r'\b[A-Z]{2}[ \-]?\d{2}[ \-]?\d{4}[ \-]?\d{7}\b')),
        ('passport', re.compile(r'\b[A-Z]\d{7}\b')),
        ('labelled_line', _LINE_START_LABEL),
        ('labelled_inline', _INLINE_LABEL),
    ]

    def sanitize(self, text: str) -> str:
        """
        Return text with PII removed and whitespace collapsed.

        Never raises: non-string or empty input returns an empty string.
        """
        if not text or not isinstance(text, str):
            return ""

        sanitized = self._collapse_whitespace(text)
        while True:
            redacted = sanitized
            for _, pattern in self.PII_PATTERNS:
                redacted = pattern.sub(' ', redacted)
            redacted = self._collapse_whitespace(redacted)
            if redacted == sanitized:
                break
            sanitized = redacted

        if len(sanitized) != len(text):
            logger.debug(
                "Sanitized OCR text",
                extra={"input_length": len(text), "output_length": len(sanitized)}
            )
        return sanitized

    @staticmethod
    def _collapse_whitespace(text: str) -> str:
        lines = []
        for line in text.splitlines():
            line = re.sub(r'[ \t\f\v\u00a0]+', ' ', line).strip()
            if line:
                lines.append(line)
        return '\n'.join(lines)


def sanitize_text(text: str) -> str:
    """Convenience wrapper around PIISanitizer.sanitize."""
    return PIISanitizer().sanitize(text)
