# adlaunch/services/creative_assets.py
"""
Creative asset assembly from product creative entries.

Entries in ``ProductCreative.data`` arrive either as objects or as JSON
strings (sometimes single-quoted). Everything here is pure.
"""
import json
import logging
from typing import Any, Dict, Iterable, List, Optional

from adlaunch.schemas.campaign import Product

log = logging.getLogger("adlaunch.creatives")

GOOGLE_HEADLINE_MAX = 30
GOOGLE_DESCRIPTION_MAX = 90
GOOGLE_BUNDLE_SIZE = 3

TONE_ADJECTIVES = {
    "playful": "Amazing",
    "professional": "Premium",
    "energetic": "Incredible",
    "friendly": "Perfect",
}
DEFAULT_ADJECTIVE = "Great"


def parse_entry(entry: Any) -> Optional[Dict[str, Any]]:
    """Parse one creative entry; None when it can't be read"""
    if isinstance(entry, dict):
        return entry
    if not isinstance(entry, str) or not entry.strip():
        return None
    for candidate in (entry, entry.replace("'", '"')):
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    log.warning(f"⚠️ Skipping unreadable creative entry: {entry[:80]}")
    return None


def channel_entries(product: Product, channel: str) -> List[Dict[str, Any]]:
    """All parsed entries from the product's creatives for one channel"""
    entries = []
    for creative in product.creatives:
        if creative.channel.lower() != channel.lower():
            continue
        for raw in creative.data:
            parsed = parse_entry(raw)
            if parsed:
                entries.append(parsed)
    return entries


def dedupe(values: Iterable[Optional[str]]) -> List[str]:
    """Drop blanks and duplicates, keep first-seen order"""
    seen = []
    for value in values:
        if value is None:
            continue
        value = str(value).strip()
        if value and value not in seen:
            seen.append(value)
    return seen


def _collect(entries: List[Dict[str, Any]], *keys: str) -> List[Any]:
    return [entry[key] for entry in entries for key in keys if entry.get(key)]


def generate_ad_copy(product: Product, tone: Optional[str]) -> Dict[str, str]:
    adjective = TONE_ADJECTIVES.get((tone or "").lower(), DEFAULT_ADJECTIVE)
    body = f"{adjective} {product.title}"
    if product.features:
        body += f" - {', '.join(product.features[:3])}"
    if product.price is not None:
        body += f". Now only ${product.price:.2f}"
    return {
        "headline": f"{adjective} {product.title}",
        "body": body,
        "description": product.description or f"Shop {product.title} today",
    }


# ────────────────────────────────────────────
# Meta
# ────────────────────────────────────────────

def build_meta_asset_spec(product: Product, channel: str, tone: Optional[str]) -> Dict[str, Any]:
    """
    Asset feed spec for one product creative.

    Falls back to the product title when no headline is available and to the
    product image when no creative image is supplied.
    """
    entries = channel_entries(product, channel)
    copy = generate_ad_copy(product, tone)

    images = dedupe(_collect(entries, "url", "imageUrl", "image_url")) or dedupe([product.image_link])
    titles = dedupe(_collect(entries, "headline", "title"))
    if not titles:
        titles = [product.title]
    bodies = dedupe(_collect(entries, "primaryText", "primary_text", "body") + [copy["body"]])
    descriptions = dedupe(_collect(entries, "description") + [copy["description"]])

    return {
        "images": [{"url": url} for url in images],
        "titles": [{"text": text} for text in titles],
        "bodies": [{"text": text} for text in bodies],
        "descriptions": [{"text": text} for text in descriptions],
        "link_urls": [{"website_url": url} for url in dedupe([product.product_link])],
        "call_to_action_types": ["SHOP_NOW"],
        "ad_formats": ["SINGLE_IMAGE"],
    }


# ────────────────────────────────────────────
# Google responsive search ads
# ────────────────────────────────────────────

def _chunks(values: List[str], size: int) -> List[List[str]]:
    return [values[i:i + size] for i in range(0, len(values) - size + 1, size)]


def build_google_bundles(product: Product, channel: str = "google") -> List[Dict[str, List[str]]]:
    """
    Text bundles for responsive search ads: 3 headlines (<= 30 chars) and
    3 descriptions (<= 90 chars) each. Incomplete groups are dropped.
    """
    entries = channel_entries(product, channel)
    headlines = dedupe(str(h)[:GOOGLE_HEADLINE_MAX] for h in _collect(entries, "headline", "title"))
    descriptions = dedupe(str(d)[:GOOGLE_DESCRIPTION_MAX] for d in _collect(entries, "description"))

    return [
        {"headlines": h, "descriptions": d}
        for h, d in zip(_chunks(headlines, GOOGLE_BUNDLE_SIZE), _chunks(descriptions, GOOGLE_BUNDLE_SIZE))
    ]
