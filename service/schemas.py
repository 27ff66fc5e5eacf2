"""Request payloads accepted by the HTTP service.

Each schema is built with ``from_dict`` which raises ``ValueError`` with a
user-facing message when the payload is malformed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from connectors.models import PaapiCredentials

MAX_KEY_LENGTH = 200


def _as_mapping(payload: Any) -> Mapping[str, Any]:
    return payload if isinstance(payload, Mapping) else {}


@dataclass
class SettingValueRequest:
    value: str

    @classmethod
    def from_dict(cls, payload: Any) -> "SettingValueRequest":
        value = _as_mapping(payload).get("value")
        if not isinstance(value, str):
            raise ValueError("value must be a string")
        if not value.strip():
            raise ValueError("value cannot be empty")
        return cls(value=value.strip())


@dataclass
class SecretValueRequest:
    value: str

    @classmethod
    def from_dict(cls, payload: Any) -> "SecretValueRequest":
        value = _as_mapping(payload).get("value")
        if not isinstance(value, str) or not value.strip():
            raise ValueError("value is required")
        return cls(value=value.strip())


@dataclass
class PaapiConfigRequest:
    credentials: PaapiCredentials

    @classmethod
    def from_dict(cls, payload: Any) -> "PaapiConfigRequest":
        data = _as_mapping(payload)
        access_key = data.get("accessKey")
        secret_key = data.get("secretKey")
        if not isinstance(access_key, str) or not isinstance(secret_key, str):
            raise ValueError("accessKey and secretKey must be strings")
        credentials = PaapiCredentials.from_mapping(data)
        if not credentials.access_key or not credentials.secret_key:
            raise ValueError("Both accessKey and secretKey are required")
        if len(credentials.access_key) > MAX_KEY_LENGTH or len(credentials.secret_key) > MAX_KEY_LENGTH:
            raise ValueError("Keys too long")
        return cls(credentials=credentials)


@dataclass
class LogEventRequest:
    message: str
    level: str = "info"
    context: Optional[Any] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "LogEventRequest":
        data = _as_mapping(payload)
        message = data.get("message")
        if not isinstance(message, str) or not message.strip():
            raise ValueError("message is required")
        level = str(data.get("level") or "info").lower()
        return cls(message=message.strip(), level=level, context=data.get("context") or None)


@dataclass
class GetItemsRequest:
    asins: List[str]
    credentials: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Any) -> "GetItemsRequest":
        data = _as_mapping(payload)
        asins = data.get("asins")
        if not isinstance(asins, list) or not asins:
            raise ValueError("asins must be a non-empty array")
        cleaned = [asin.strip() for asin in asins if isinstance(asin, str) and asin.strip()]
        if not cleaned:
            raise ValueError("asins must be a non-empty array")
        forwarded = data.get("credentials")
        return cls(asins=cleaned, credentials=dict(forwarded) if isinstance(forwarded, Mapping) else {})


@dataclass
class ExpandUrlsRequest:
    urls: List[Any]

    @classmethod
    def from_dict(cls, payload: Any) -> "ExpandUrlsRequest":
        urls = _as_mapping(payload).get("urls")
        if not isinstance(urls, list) or not urls:
            raise ValueError("No URLs provided")
        return cls(urls=list(urls))


@dataclass
class ExtractPairsRequest:
    html: str

    @classmethod
    def from_dict(cls, payload: Any) -> "ExtractPairsRequest":
        html = _as_mapping(payload).get("html")
        if not isinstance(html, str) or not html.strip():
            raise ValueError("No HTML provided")
        return cls(html=html)
