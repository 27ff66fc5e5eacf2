"""ASIN/AAID pairs from pasted storefront editor HTML.

Each product tile carries two copy buttons, ``data-prefix="ASIN"`` and
``data-prefix="ID"``, whose ``value`` attributes hold the codes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from bs4 import BeautifulSoup

from utils.logging import get_logger

logger = get_logger(__name__)

TILE_SELECTORS = (".product_tile_editorbar", ".product-tile-editorbar", ".product_tile")
ASIN_BUTTON = 'button[data-prefix="ASIN"]'
AAID_BUTTON = 'button[data-prefix="ID"]'


@dataclass(frozen=True)
class AsinAaidPair:
    asin: str
    aaid: str

    def to_dict(self) -> Dict[str, str]:
        return {"asin": self.asin, "aaid": self.aaid}


def _button_value(button) -> str:
    return (button.get("value") or "").strip() if button is not None else ""


def _pairs_from_tiles(soup: BeautifulSoup) -> List[AsinAaidPair]:
    seen = set()
    pairs: List[AsinAaidPair] = []
    for selector in TILE_SELECTORS:
        for tile in soup.select(selector):
            # A tile can match more than one selector.
            if id(tile) in seen:
                continue
            seen.add(id(tile))
            asin = _button_value(tile.select_one(ASIN_BUTTON))
            aaid = _button_value(tile.select_one(AAID_BUTTON))
            if asin and aaid:
                pairs.append(AsinAaidPair(asin=asin, aaid=aaid))
    return pairs


def _pairs_by_index(soup: BeautifulSoup) -> List[AsinAaidPair]:
    pairs: List[AsinAaidPair] = []
    for asin_button, aaid_button in zip(soup.select(ASIN_BUTTON), soup.select(AAID_BUTTON)):
        asin = _button_value(asin_button)
        aaid = _button_value(aaid_button)
        if asin and aaid:
            pairs.append(AsinAaidPair(asin=asin, aaid=aaid))
    return pairs


def extract_asin_aaid_pairs(html: str) -> List[AsinAaidPair]:
    """Return pairs de-duplicated by ASIN, in first-seen order.

    Buttons are paired inside each product tile. When no tile yields a pair,
    all ASIN and ID buttons in the document are paired by position. A
    repeated ASIN keeps its first position and takes the last AAID seen.
    """
    if not html or not html.strip():
        return []
    soup = BeautifulSoup(html.strip(), "html.parser")
    collected = _pairs_from_tiles(soup) or _pairs_by_index(soup)

    unique: Dict[str, AsinAaidPair] = {}
    for pair in collected:
        unique[pair.asin] = pair
    logger.info("Extracted %s ASIN/AAID pairs (%s unique)", len(collected), len(unique))
    return list(unique.values())


def format_mapping(pairs: List[AsinAaidPair]) -> str:
    """``ASIN: AAID`` lines, one per pair."""
    return "\n".join(f"{pair.asin}: {pair.aaid}" for pair in pairs)
