"""Records exchanged between connectors, storage and the HTTP layer."""
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

DEFAULT_MARKETPLACE = "www.amazon.com"
DEFAULT_REGION = "us-east-1"
DEFAULT_HOST = "webservices.amazon.com"

# Storage names for each credential field, in persistence order.
CREDENTIAL_FIELDS = {
    "access_key": "accessKey",
    "secret_key": "secretKey",
    "partner_tag": "partnerTag",
    "marketplace": "marketplace",
    "region": "region",
    "host": "host",
}


@dataclass(frozen=True)
class PaapiCredentials:
    """Product Advertising API credential set."""

    access_key: str = ""
    secret_key: str = ""
    partner_tag: str = ""
    marketplace: str = ""
    region: str = ""
    host: str = ""
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "PaapiCredentials":
        """Build from a camelCase mapping, trimming every value."""
        values = {}
        for attr, key in CREDENTIAL_FIELDS.items():
            raw = payload.get(key)
            values[attr] = raw.strip() if isinstance(raw, str) else ""
        return cls(**values)

    def merged_with(self, overrides: Mapping[str, Any]) -> "PaapiCredentials":
        """Replace fields with the non-blank values present in ``overrides``."""
        forwarded = PaapiCredentials.from_mapping(overrides)
        changes = {
            attr: getattr(forwarded, attr)
            for attr in CREDENTIAL_FIELDS
            if getattr(forwarded, attr)
        }
        return replace(self, **changes)

    def with_defaults(
        self,
        *,
        marketplace: str = DEFAULT_MARKETPLACE,
        region: str = DEFAULT_REGION,
        host: str = DEFAULT_HOST,
    ) -> "PaapiCredentials":
        return replace(
            self,
            marketplace=self.marketplace.strip() or marketplace,
            region=self.region.strip() or region,
            host=self.host.strip() or host,
        )

    def to_dict(self) -> Dict[str, Any]:
        record: Dict[str, Any] = {key: getattr(self, attr) for attr, key in CREDENTIAL_FIELDS.items()}
        record["createdAt"] = self.created_at
        record["updatedAt"] = self.updated_at
        return record


@dataclass(frozen=True)
class ExpansionOutcome:
    """Result of expanding one short URL.

    Exactly one of ``product_code`` and ``error`` is set.
    """

    url: str
    final_url: Optional[str]
    product_code: Optional[str]
    error: Optional[str]

    def __post_init__(self) -> None:
        if (self.product_code is None) == (self.error is None):
            raise ValueError("outcome must carry either a product code or an error")

    @property
    def ok(self) -> bool:
        return self.product_code is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "finalUrl": self.final_url,
            "asin": self.product_code,
            "error": self.error,
        }


__all__ = [
    "CREDENTIAL_FIELDS",
    "DEFAULT_HOST",
    "DEFAULT_MARKETPLACE",
    "DEFAULT_REGION",
    "ExpansionOutcome",
    "PaapiCredentials",
]
