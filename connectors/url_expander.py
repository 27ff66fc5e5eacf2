"""Short-URL expansion and product code extraction."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

import requests

from connectors.base import BaseConnector, ConnectorError, TransientTransportError, is_transient
from connectors.models import ExpansionOutcome
from utils.backoff import RetryPolicy, sleep_with_backoff

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
)
BROWSER_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

CODE_NOT_FOUND = "ASIN not found"
INVALID_URL = "Invalid URL"
EXPANSION_FAILED = "Expansion failed"

_BOUNDARY = r"(?=[/?]|$)"
PRODUCT_CODE_PATTERNS = [
    re.compile(r"/dp/([A-Z0-9]{10})" + _BOUNDARY, re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})" + _BOUNDARY, re.IGNORECASE),
    re.compile(r"/gp/aw/d/([A-Z0-9]{10})" + _BOUNDARY, re.IGNORECASE),
    re.compile(r"/product/([A-Z0-9]{10})" + _BOUNDARY, re.IGNORECASE),
]
# Any bare 10-character segment; may also match unrelated tokens of that shape.
FALLBACK_PATTERN = re.compile(r"/([A-Z0-9]{10})" + _BOUNDARY, re.IGNORECASE)

_SHORT_HOST_PREFIX = re.compile(r"^(a\.co|amzn\.to)/", re.IGNORECASE)
_HTTP_SCHEME = re.compile(r"^https?://", re.IGNORECASE)


def extract_product_code(url: Optional[str]) -> Optional[str]:
    """Return the upper-cased product code in ``url``, or ``None``."""
    if not url:
        return None
    for pattern in PRODUCT_CODE_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1).upper()
    match = FALLBACK_PATTERN.search(url)
    return match.group(1).upper() if match else None


def parse_url_list(text: str) -> List[str]:
    """Split free text into distinct http(s) URLs, keeping first-seen order.

    Bare ``a.co/...`` and ``amzn.to/...`` tokens get an ``https://`` prefix.
    """
    urls: List[str] = []
    seen = set()
    for token in re.split(r"[\s,]+", text or ""):
        value = token.strip().rstrip(";,")
        if not value:
            continue
        if not _HTTP_SCHEME.match(value):
            if not _SHORT_HOST_PREFIX.match(value):
                continue
            value = "https://" + value
        if value not in seen:
            seen.add(value)
            urls.append(value)
    return urls


def unique_product_codes(outcomes: Iterable[ExpansionOutcome]) -> List[str]:
    codes: List[str] = []
    for outcome in outcomes:
        if outcome.product_code and outcome.product_code not in codes:
            codes.append(outcome.product_code)
    return codes


class URLExpander(BaseConnector):
    """Follows redirect chains with bounded retries and extracts product codes."""

    def __init__(
        self,
        *,
        settings: Dict[str, Any] | None = None,
        session: Any | None = None,
    ) -> None:
        super().__init__(service_name="url_expander", settings=settings, session=session)
        self.retry_policy = RetryPolicy.from_settings(self.settings.get("url_expander", {}))

    def _fetch_final_url(self, url: str) -> str:
        """GET ``url`` following redirects; retries transient failures only.

        Any HTTP response counts as success. Raises ``ConnectorError`` once
        retries are exhausted or on a non-transient failure.
        """
        attempt = 1
        while True:
            try:
                response = self.session.request(
                    "GET",
                    url,
                    headers=BROWSER_HEADERS,
                    allow_redirects=True,
                    stream=True,
                    timeout=self.timeout,
                )
            except requests.exceptions.RequestException as exc:
                if not is_transient(exc):
                    raise ConnectorError(f"Failed to expand {url}: {exc}") from exc
                if attempt >= self.retry_policy.max_attempts:
                    raise TransientTransportError(
                        f"Failed to expand {url} after {attempt} attempts: {exc}"
                    ) from exc
                self.logger.warning(
                    "Retrying %s after %.2f seconds due to %s (attempt %s)",
                    url,
                    self.retry_policy.compute_delay(attempt),
                    exc.__class__.__name__,
                    attempt,
                )
                sleep_with_backoff(attempt, self.retry_policy)
                attempt += 1
                continue

            try:
                return getattr(response, "url", None) or url
            finally:
                # Only the resolved location is needed; release the connection.
                response.close()

    def resolve(self, url: str) -> str:
        """Final URL after redirects, or ``url`` itself when resolution fails."""
        try:
            return self._fetch_final_url(url)
        except ConnectorError as exc:
            self.logger.warning("Falling back to original URL: %s", exc)
            return url

    def expand(self, url: Any) -> ExpansionOutcome:
        """Expand one URL. Failures are reported on the outcome, never raised."""
        if not isinstance(url, str) or not url.strip():
            return ExpansionOutcome(url=str(url), final_url=None, product_code=None, error=INVALID_URL)

        try:
            final_url = self.resolve(url.strip())
        except Exception as exc:
            self.logger.error("Failed to expand %s: %s", url, exc)
            return ExpansionOutcome(
                url=url,
                final_url=None,
                product_code=None,
                error=str(exc) or EXPANSION_FAILED,
            )

        code = extract_product_code(final_url)
        return ExpansionOutcome(
            url=url,
            final_url=final_url,
            product_code=code,
            error=None if code else CODE_NOT_FOUND,
        )

    def expand_batch(self, urls: Iterable[Any]) -> List[ExpansionOutcome]:
        """Expand each URL independently; outcomes follow input order."""
        outcomes = [self.expand(url) for url in urls]
        self.logger.info(
            "Expanded %s urls (%s with product code)",
            len(outcomes),
            sum(1 for outcome in outcomes if outcome.ok),
        )
        return outcomes
