"""
Comp search query builder.

Turns a listing title into a compact marketplace query:
- brand + family + strongest identifier (model number, else movement)
- case size when there is room
- naive stop-word-filtered fallback when too little was recognised
- accessory-prone (smartwatch) brands get a coarser family and negative keywords
"""

import logging
import re
from dataclasses import dataclass, replace

from compscout.normalize.identifiers import (
    WATCH_FAMILIES,
    Identifiers,
    KeywordClassifier,
    extract_case_size,
    extract_identifiers,
)

logger = logging.getLogger(__name__)

MAX_QUERY_PARTS = 4
MIN_STRUCTURED_PARTS = 2
FALLBACK_MAX_TOKENS = 5
FALLBACK_MIN_TOKEN_LENGTH = 3

STOP_WORDS = frozenset({
    'the', 'and', 'with', 'for', 'new', 'used', 'pre-owned', 'mint', 'excellent', 'great', 'good',
})

# Brands whose accessories are sold under the same search terms as the watch
ACCESSORY_PRONE_BRANDS = ['apple', 'samsung', 'garmin', 'fitbit', 'suunto', 'polar']

ACCESSORY_TERMS = [
    'band', 'strap', 'bands', 'straps', 'loop', 'bracelet', 'wristband',
    'charger', 'charging', 'cable', 'dock', 'stand', 'holder',
    'screen protector', 'protector', 'film', 'tempered glass',
    'case only', 'cover', 'bumper', 'protective',
    'replacement', 'spare', 'extra', 'accessory', 'accessories',
]

NEGATIVE_KEYWORDS = ['-band', '-strap', '-charger', '-cable', '-case', '-protector', '-replacement']

accessory_brand_classifier = KeywordClassifier.from_keywords(ACCESSORY_PRONE_BRANDS)
accessory_classifier = KeywordClassifier(
    (re.compile(rf'\b{re.escape(term)}\b', re.IGNORECASE), term) for term in ACCESSORY_TERMS
)

# Coarse parent lines, checked in order once the brand is known
APPLE_PARENT_FAMILIES = KeywordClassifier([
    (re.compile(r'\bultra\s*2\b', re.IGNORECASE), 'watch ultra 2'),
    (re.compile(r'\bultra\b', re.IGNORECASE), 'watch ultra'),
    (re.compile(r'\bse\s*2\b', re.IGNORECASE), 'watch se 2'),
    (re.compile(r'\bse\b', re.IGNORECASE), 'watch se'),
])
SERIES_RE = re.compile(r'series\s*(\d+)', re.IGNORECASE)
GALAXY_VERSION_RE = re.compile(r'galaxy\s*watch\s*(\d+)', re.IGNORECASE)


@dataclass
class CompQuery:
    """A search query plus the identifiers it was built from."""

    query: str
    identifiers: Identifiers
    accessory_prone: bool = False


def fallback_tokens(title: str) -> list[str]:
    """First few meaningful words of the title."""
    words = [
        w for w in title.split()
        if len(w) >= FALLBACK_MIN_TOKEN_LENGTH and w.lower() not in STOP_WORDS
    ]
    return words[:FALLBACK_MAX_TOKENS]


def is_accessory_prone(title: str) -> bool:
    return accessory_brand_classifier.classify(title) is not None


def looks_like_accessory(title: str) -> bool:
    return accessory_classifier.classify(title) is not None


def infer_parent_family(title: str, brand: str) -> str:
    """Collapse specific smartwatch variants into a parent line."""
    lowered = title.lower()

    if brand == 'apple' and 'watch' in lowered:
        family = APPLE_PARENT_FAMILIES.classify(lowered)
        if family:
            return family
        series = SERIES_RE.search(lowered)
        if series:
            return f"watch series {series.group(1)}"
        return 'watch'

    if brand == 'samsung' and 'galaxy watch' in lowered:
        if 'ultra' in lowered:
            return 'galaxy watch ultra'
        version = GALAXY_VERSION_RE.search(lowered)
        if version:
            return f"galaxy watch {version.group(1)}"
        if 'active' in lowered:
            return 'galaxy watch active'
        return ''

    if brand == 'garmin':
        classifier = KeywordClassifier.from_keywords(WATCH_FAMILIES.get('garmin', []))
        return classifier.classify(lowered) or ''

    return ''


def _title_case(value: str) -> str:
    return ' '.join(w[:1].upper() + w[1:] for w in value.split(' '))


def build_accessory_safe_query(title: str, identifiers: Identifiers) -> CompQuery:
    """
    Query for brands that share search terms with their accessories.

    Uses a coarser family label and appends negative keywords so bands,
    chargers and cases do not pollute the comps.
    """
    if looks_like_accessory(title) and not identifiers.family:
        logger.info(f"Title looks like an accessory, not the watch itself: {title!r}")

    brand = identifiers.brand
    family = identifiers.family or infer_parent_family(title, brand)
    size = extract_case_size(title)

    parts = []
    if brand:
        parts.append(brand[:1].upper() + brand[1:])
    if family:
        parts.append(_title_case(family))
    if size and len(parts) < MAX_QUERY_PARTS:
        parts.append(size)

    if len(parts) >= MIN_STRUCTURED_PARTS:
        base = ' '.join(parts)
    else:
        base = f"{brand} smartwatch".strip()

    query = f"{base} {' '.join(NEGATIVE_KEYWORDS)}"
    resolved = replace(identifiers, family=family or identifiers.family)
    logger.debug(f"Built accessory-safe query {query!r} from {resolved}")
    return CompQuery(query=query, identifiers=resolved, accessory_prone=True)


def build_comp_query(title: str) -> CompQuery:
    """
    Build a tight search query for sold comps.

    Args:
        title: Listing title

    Returns:
        CompQuery with the query string and extracted identifiers
    """
    identifiers = extract_identifiers(title)

    if is_accessory_prone(title):
        return build_accessory_safe_query(title, identifiers)

    parts = []
    if identifiers.brand:
        parts.append(identifiers.brand)
    if identifiers.family:
        parts.append(identifiers.family)
    if identifiers.model_number:
        parts.append(identifiers.model_number)
    elif identifiers.movement:
        parts.append(identifiers.movement)
    if identifiers.case_size and len(parts) < MAX_QUERY_PARTS:
        parts.append(identifiers.case_size)

    if len(parts) < MIN_STRUCTURED_PARTS:
        return CompQuery(query=' '.join(fallback_tokens(title)), identifiers=identifiers)

    query = ' '.join(parts)
    logger.debug(f"Built comp query {query!r} from {identifiers}")
    return CompQuery(query=query, identifiers=identifiers)
