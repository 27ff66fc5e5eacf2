"""Amazon Product Advertising API (PA-API) adapter."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List

from connectors.base import BaseConnector, RemoteError, describe_body
from connectors.models import PaapiCredentials
from connectors.signing import GET_ITEMS_PATH, sign
from utils.errors import ConfigError

GET_ITEMS_RESOURCES = [
    "CustomerReviews.Count",
    "CustomerReviews.StarRating",
    "ItemInfo.ByLineInfo",
    "ItemInfo.ContentInfo",
    "ItemInfo.ContentRating",
    "ItemInfo.Classifications",
    "ItemInfo.ExternalIds",
    "ItemInfo.Features",
    "ItemInfo.ManufactureInfo",
    "ItemInfo.ProductInfo",
    "ItemInfo.TechnicalInfo",
    "ItemInfo.Title",
    "ItemInfo.TradeInInfo",
]
PARTNER_TYPE = "Associates"


def build_get_items_body(item_ids: Iterable[str], partner_tag: str, marketplace: str) -> Dict[str, Any]:
    return {
        "ItemIds": list(item_ids),
        "Resources": list(GET_ITEMS_RESOURCES),
        "PartnerTag": partner_tag,
        "PartnerType": PARTNER_TYPE,
        "Marketplace": marketplace,
    }


def extract_items(response: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Item list from either ``ItemsResult.Items`` or a top-level ``Items``."""
    result = response.get("ItemsResult")
    items = result.get("Items") if isinstance(result, dict) else None
    if not items:
        items = response.get("Items")
    return list(items) if isinstance(items, list) else []


class PAAPIClient(BaseConnector):
    """Signs and performs GetItems calls with a stored credential set."""

    def __init__(
        self,
        credentials: PaapiCredentials,
        *,
        settings: Dict[str, Any] | None = None,
        session: Any | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__(service_name="paapi", settings=settings, session=session)
        defaults = self.settings.get("paapi", {})
        self.credentials = credentials.with_defaults(
            marketplace=defaults.get("marketplace", "www.amazon.com"),
            region=defaults.get("region", "us-east-1"),
            host=defaults.get("host", "webservices.amazon.com"),
        )
        self.base_url = f"https://{self.credentials.host}"
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _check_credentials(self) -> None:
        if not self.credentials.access_key or not self.credentials.secret_key:
            raise ConfigError("PA API credentials not configured")
        if not self.credentials.partner_tag.strip():
            raise ConfigError("PA API partnerTag not configured")

    def get_items(self, item_ids: Iterable[str]) -> List[Dict[str, Any]]:
        """Look up ``item_ids`` with one signed GetItems call.

        No retries happen here: a non-success status raises ``RemoteError``
        carrying the remote status and body.
        """
        self._check_credentials()
        ids = [str(item_id).strip() for item_id in item_ids]
        if not ids:
            raise ValueError("item_ids must not be empty")

        creds = self.credentials
        body = build_get_items_body(ids, creds.partner_tag.strip(), creds.marketplace)
        signed = sign(creds, creds.region, creds.host, GET_ITEMS_PATH, body, now=self._clock())

        self.logger.info("GetItems count=%s marketplace=%s", len(ids), creds.marketplace)
        try:
            response = self._http_request(
                "POST",
                GET_ITEMS_PATH,
                data=signed.payload.encode("utf-8"),
                headers=signed.http_headers(),
            )
        except RemoteError as exc:
            self.logger.error("PA API error status=%s body=%s", exc.status, describe_body(exc.body))
            raise
        return extract_items(response)


def lookup_items(
    credentials: PaapiCredentials,
    item_ids: Iterable[str],
    **kwargs: Any,
) -> List[Dict[str, Any]]:
    """Convenience wrapper around ``PAAPIClient.get_items``."""
    return PAAPIClient(credentials, **kwargs).get_items(item_ids)
