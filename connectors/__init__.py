"""Connector package exports."""
from .base import BaseConnector, ConnectorError, RemoteError, TransientTransportError
from .models import ExpansionOutcome, PaapiCredentials
from .paapi_client import PAAPIClient, lookup_items
from .tile_extractor import AsinAaidPair, extract_asin_aaid_pairs
from .url_expander import URLExpander, extract_product_code, parse_url_list

__all__ = [
    "AsinAaidPair",
    "BaseConnector",
    "ConnectorError",
    "ExpansionOutcome",
    "PAAPIClient",
    "PaapiCredentials",
    "RemoteError",
    "TransientTransportError",
    "URLExpander",
    "extract_asin_aaid_pairs",
    "extract_product_code",
    "lookup_items",
    "parse_url_list",
]
