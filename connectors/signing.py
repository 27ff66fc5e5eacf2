"""AWS Signature Version 4 signing for the PA-API GetItems operation.

The signer is pure: it derives everything from the credentials, the request
description and the supplied timestamp. The ``x-amz-target`` header is fixed
to GetItems, so signing another operation requires a different target.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from connectors.models import PaapiCredentials
from utils.errors import ConfigError

ALGORITHM = "AWS4-HMAC-SHA256"
SERVICE_NAME = "ProductAdvertisingAPI"
METHOD = "POST"
GET_ITEMS_PATH = "/paapi5/getitems"
GET_ITEMS_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.GetItems"
CONTENT_ENCODING = "amz-1.0"
CONTENT_TYPE = "application/json; charset=utf-8"


@dataclass(frozen=True)
class SignedRequest:
    authorization: str
    amz_date: str
    payload: str
    headers: Tuple[Tuple[str, str], ...]

    def http_headers(self) -> Dict[str, str]:
        """Headers to send: the signed set plus ``Authorization``."""
        sent = dict(self.headers)
        sent["Authorization"] = self.authorization
        return sent


def amz_timestamp(now: datetime) -> str:
    """ISO-8601 basic format in UTC without separators or milliseconds."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y%m%dT%H%M%SZ")


def serialize_payload(body: Any) -> str:
    # Key order is preserved; the payload hash depends on it.
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False)


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def _sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, "aws4_request")


def signed_header_pairs(host: str, amz_date: str) -> List[Tuple[str, str]]:
    """Ordered (lower-case name, value) pairs covered by the signature."""
    return [
        ("content-encoding", CONTENT_ENCODING),
        ("content-type", CONTENT_TYPE),
        ("host", host),
        ("x-amz-date", amz_date),
        ("x-amz-target", GET_ITEMS_TARGET),
    ]


def canonical_headers(pairs: List[Tuple[str, str]]) -> str:
    return "".join(f"{name}:{value}\n" for name, value in pairs)


def signed_headers(pairs: List[Tuple[str, str]]) -> str:
    return ";".join(name for name, _ in pairs)


def canonical_request(path: str, pairs: List[Tuple[str, str]], payload_hash: str) -> str:
    return "\n".join(
        [
            METHOD,
            path,
            "",
            canonical_headers(pairs),
            signed_headers(pairs),
            payload_hash,
        ]
    )


def credential_scope(date_stamp: str, region: str) -> str:
    return f"{date_stamp}/{region}/{SERVICE_NAME}/aws4_request"


def string_to_sign(amz_date: str, scope: str, canonical: str) -> str:
    return "\n".join([ALGORITHM, amz_date, scope, _sha256_hex(canonical)])


def sign(
    credentials: PaapiCredentials,
    region: str,
    host: str,
    path: str,
    body: Any,
    now: Optional[datetime] = None,
) -> SignedRequest:
    """Sign a GetItems POST. Raises ``ConfigError`` on incomplete credentials."""
    if not credentials.access_key or not credentials.secret_key:
        raise ConfigError("PA API credentials not configured")

    amz_date = amz_timestamp(now or datetime.now(timezone.utc))
    date_stamp = amz_date[:8]

    payload = serialize_payload(body)
    pairs = signed_header_pairs(host, amz_date)
    canonical = canonical_request(path, pairs, _sha256_hex(payload))

    scope = credential_scope(date_stamp, region)
    signing_key = derive_signing_key(credentials.secret_key, date_stamp, region, SERVICE_NAME)
    signature = hmac.new(
        signing_key,
        string_to_sign(amz_date, scope, canonical).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    authorization = (
        f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
        f"SignedHeaders={signed_headers(pairs)}, Signature={signature}"
    )
    return SignedRequest(
        authorization=authorization,
        amz_date=amz_date,
        payload=payload,
        headers=tuple(pairs),
    )
