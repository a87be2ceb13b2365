"""HTTP client for the optional AI enrichment service.

The service receives sanitized OCR text and answers with a candidate-shaped
JSON body. Uses httpx with bounded timeouts and tenacity for a single retry
on transient failures (timeouts, connection errors, 502/503/504). Anything
else is reported as EnrichmentUnavailable and the caller carries on without
an AI candidate.
"""

import json
import logging
import re
from typing import Dict, Optional, Protocol

import httpx
from pydantic import ValidationError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from expirycare.config import settings
from expirycare.models.document import Category, EnrichmentPayload
from expirycare.services.category_schemas import CategorySchemaRegistry
from expirycare.utils.candidates import CandidateSource, ExtractionCandidate, FieldValue
from expirycare.utils.dates import is_iso_date

logger = logging.getLogger(__name__)

# Never more than one retry, whatever the configuration says
MAX_ATTEMPTS = 2

DATE_FIELDS = frozenset({'expiryDate', 'purchaseDate', 'manufacturingDate'})

TRANSIENT_STATUS_CODES = frozenset({502, 503, 504})

_FENCED_JSON = re.compile(r'```(?:json)?\s*(?P<body>\{.*?\})\s*```', re.DOTALL | re.IGNORECASE)
_BARE_JSON = re.compile(r'\{.*\}', re.DOTALL)


class EnrichmentUnavailable(Exception):
    """Enrichment produced no usable candidate (timeout, auth, quota, bad body)."""


class TransientEnrichmentError(EnrichmentUnavailable):
    """Enrichment failed in a way worth one more try."""


class EnrichmentProvider(Protocol):
    def enrich(self, raw_text: str, category_hint: Optional[Category] = None) -> ExtractionCandidate:
        ...


def parse_enrichment_body(text: str) -> dict:
    """
    Extract the JSON object from a response body.

    Accepts plain JSON or JSON wrapped in a markdown code fence, which
    language-model services often return.
    """
    if not text or not text.strip():
        raise EnrichmentUnavailable("Empty enrichment response")
    candidates = [text]
    fenced = _FENCED_JSON.search(text)
    if fenced:
        candidates.append(fenced.group('body'))
    bare = _BARE_JSON.search(text)
    if bare:
        candidates.append(bare.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    raise EnrichmentUnavailable("Malformed enrichment response")


def canonicalize_fields(
    fields: Dict[str, FieldValue],
    category: Category,
    registry: Optional[CategorySchemaRegistry] = None
) -> Dict[str, FieldValue]:
    """
    Rename aliased field names and drop date fields that are not ISO dates.

    Date checks run on the canonical name, so "expiry" and "mfgDate" are held
    to the same rule as "expiryDate". When two names collapse into one field
    the higher score wins.
    """
    registry = registry or CategorySchemaRegistry()
    canonical: Dict[str, FieldValue] = {}
    for name, field_value in fields.items():
        if field_value is None or field_value.is_empty:
            continue
        name = registry.canonical_field_name(category, name)
        if name in DATE_FIELDS and not is_iso_date(field_value.value):
            logger.debug("Dropped non-ISO date from enrichment", extra={"field": name})
            continue
        current = canonical.get(name)
        if current is None or field_value.confidence_score > current.confidence_score:
            canonical[name] = field_value
    return canonical


def payload_to_candidate(
    data: dict,
    category_hint: Optional[Category] = None,
    registry: Optional[CategorySchemaRegistry] = None
) -> ExtractionCandidate:
    """Validate a decoded body and turn it into an AI ExtractionCandidate."""
    try:
        payload = EnrichmentPayload.model_validate(data)
    except ValidationError as e:
        raise EnrichmentUnavailable(f"Invalid enrichment payload: {e.error_count()} errors") from e

    category = Category.coerce(payload.category) or category_hint or Category.OTHER
    proposed_fields = {
        name: FieldValue(proposed.value, proposed.confidence_score, proposed.source_keyword)
        for name, proposed in payload.fields.items()
    }
    return ExtractionCandidate(
        source=CandidateSource.AI,
        category=category,
        fields=canonicalize_fields(proposed_fields, category_hint or category, registry),
        warnings=list(payload.warnings),
    )


class HttpEnrichmentProvider:
    """HTTP enrichment client with bounded timeout and one retry."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        path: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        connect_timeout: Optional[float] = None,
        retry_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        self._base_url = (base_url or settings.ENRICHMENT_URL).rstrip("/")
        self._path = path or settings.ENRICHMENT_PATH
        attempts = retry_attempts if retry_attempts is not None else settings.ENRICHMENT_RETRY_ATTEMPTS
        self._retry_attempts = max(1, min(MAX_ATTEMPTS, attempts))
        self._retry_delay = retry_delay if retry_delay is not None else settings.ENRICHMENT_RETRY_DELAY

        read_timeout = timeout if timeout is not None else settings.ENRICHMENT_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.ENRICHMENT_CONNECT_TIMEOUT

        key = api_key if api_key is not None else settings.ENRICHMENT_API_KEY
        headers = {"User-Agent": settings.APP_NAME}
        if key:
            headers["Authorization"] = f"Bearer {key}"

        self._client = httpx.Client(
            base_url=self._base_url,
            headers=headers,
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=float(read_timeout),
                pool=float(conn_timeout),
            ),
        )

    def close(self):
        self._client.close()

    def enrich(self, raw_text: str, category_hint: Optional[Category] = None) -> ExtractionCandidate:
        """
        Ask the enrichment service for a candidate.

        Raises EnrichmentUnavailable when no usable candidate can be produced.
        """
        payload = {
            "rawText": raw_text,
            "categoryHint": category_hint.value if category_hint else None,
        }
        data = self._post_with_retry(payload)
        return payload_to_candidate(data, category_hint)

    def _post_with_retry(self, payload: dict) -> dict:
        @retry(
            retry=retry_if_exception_type(TransientEnrichmentError),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_fixed(self._retry_delay),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Enrichment service unavailable, retrying (attempt %d/%d)",
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        def _do_post() -> dict:
            return self._send(payload)

        return _do_post()

    def _send(self, payload: dict) -> dict:
        """Send a single enrichment request."""
        try:
            resp = self._client.post(self._path, json=payload)
        except httpx.TimeoutException as e:
            logger.warning("Enrichment service timeout: %s", type(e).__name__)
            raise TransientEnrichmentError("Enrichment service timeout") from e
        except httpx.ConnectError as e:
            logger.warning("Enrichment service connection failed")
            raise TransientEnrichmentError("Cannot connect to enrichment service") from e
        except httpx.HTTPError as e:
            logger.warning("Enrichment service HTTP error: %s", type(e).__name__)
            raise EnrichmentUnavailable("Enrichment service HTTP error") from e

        if resp.status_code in TRANSIENT_STATUS_CODES:
            logger.warning("Enrichment service returned %d", resp.status_code)
            raise TransientEnrichmentError(f"HTTP {resp.status_code}")

        if resp.status_code in (401, 403):
            logger.warning("Enrichment service rejected credentials (%d)", resp.status_code)
            raise EnrichmentUnavailable(f"HTTP {resp.status_code}")

        if resp.status_code == 429:
            logger.warning("Enrichment service quota exceeded")
            raise EnrichmentUnavailable("HTTP 429")

        if resp.status_code != 200:
            logger.warning("Enrichment service error %d", resp.status_code)
            raise EnrichmentUnavailable(f"HTTP {resp.status_code}")

        try:
            data = resp.json()
        except ValueError:
            data = parse_enrichment_body(resp.text)
        if not isinstance(data, dict):
            raise EnrichmentUnavailable("Malformed enrichment response")
        return data


def build_enrichment_provider() -> Optional[HttpEnrichmentProvider]:
    """Create the configured provider, or None when enrichment is disabled."""
    if not settings.ENRICHMENT_URL:
        return None
    return HttpEnrichmentProvider()
