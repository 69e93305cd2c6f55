"""Sold-comp cleaning: exclusion filter, quartile trim and summary statistics.

Deterministic and side-effect free apart from logging/metrics; safe to call
concurrently for different items.
"""

import logging
import math
import re
from dataclasses import dataclass, field, fields
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, Optional

from compscout import metrics
from compscout.config import settings

logger = logging.getLogger(__name__)

Q1_FRACTION = 0.25
Q3_FRACTION = 0.75

EXCLUDED_TITLE_PATTERNS = [
    # Parts, repair, non-working
    re.compile(r'\b(parts?|repair|for parts|broken|not working|needs work|non.?working|damaged|as.?is)\b', re.IGNORECASE),
    # Bundles and lots
    re.compile(r'\b(bundle|lot of|set of|collection|bulk|wholesale)\b', re.IGNORECASE),
    # Component-only listings
    re.compile(r'\b(band only|strap only|case only|dial only|movement only|bezel only|crown only)\b', re.IGNORECASE),
    re.compile(r'\b(replacement|spare|extra|accessory|accessories)\b', re.IGNORECASE),
    re.compile(r'\b(box only|papers only|certificate only)\b', re.IGNORECASE),
    re.compile(r'\b(display|dummy|replica|fake|homage|copy)\b', re.IGNORECASE),
    # Bands/straps, unless the title is clearly a full watch priced at $100+
    re.compile(r'\b(band|strap|bands|straps|loop|wristband)\b(?!.*\b(watch|ultra|series|se)\b.*\$[1-9]\d{2,})', re.IGNORECASE),
    re.compile(r'\b(charger|charging|cable|dock|stand|holder)\b', re.IGNORECASE),
    re.compile(r'\b(screen protector|protector|tempered glass|film)\b', re.IGNORECASE),
]


class Confidence(str, Enum):
    HIGH = "high"
    LOW = "low"


class CleaningReason(str, Enum):
    """Machine-readable reason attached to failed or low-confidence results."""

    NO_COMPS = "no_comps"
    ALL_FILTERED = "all_filtered"
    ALL_OUTLIERS = "all_outliers"
    LOW_CONFIDENCE = "low_confidence"


@dataclass
class RawComp:
    """One sold listing."""

    sold_price: float
    shipping_cost: float = 0.0
    date_sold: Optional[str] = None
    condition: str = "unknown"
    title: Optional[str] = None
    thumbnail: Optional[str] = None

    @property
    def total_price(self) -> float:
        return self.sold_price + (self.shipping_cost or 0.0)


@dataclass
class CleanedComp(RawComp):
    """A comp after trimming, flagged when it fell outside the middle quartiles."""

    is_outlier: bool = False


@dataclass
class CleanedCompResult:
    """Outcome of cleaning. Prices are all None whenever success is False."""

    success: bool
    comps: list[CleanedComp] = field(default_factory=list)
    median_price: Optional[float] = None
    low_price: Optional[float] = None
    high_price: Optional[float] = None
    comp_count: int = 0
    confidence: Confidence = Confidence.LOW
    reason: Optional[str] = None
    reason_code: Optional[CleaningReason] = None
    search_query: str = ""

    @property
    def retained_comps(self) -> list[CleanedComp]:
        return [c for c in self.comps if not c.is_outlier]

    @classmethod
    def failure(
        cls,
        reason: str,
        reason_code: CleaningReason,
        comps: Optional[list[CleanedComp]] = None,
        search_query: str = "",
    ) -> "CleanedCompResult":
        return cls(
            success=False,
            comps=comps or [],
            reason=reason,
            reason_code=reason_code,
            search_query=search_query,
        )


def round_price(value: float) -> float:
    """Round half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def should_exclude_comp(title: Optional[str]) -> bool:
    """True if the title marks the comp as unrepresentative. Untitled comps are kept."""
    if not title:
        return False
    return any(pattern.search(title) for pattern in EXCLUDED_TITLE_PATTERNS)


def quartile_bounds(n: int) -> tuple[int, int]:
    """
    Trim bounds for ``n`` sorted comps.

    Indices ``< q1`` and ``>= q3`` are outliers. The floor/ceil pair keeps
    slightly more than half for small ``n`` (n=5 keeps 3).
    """
    return math.floor(n * Q1_FRACTION), math.ceil(n * Q3_FRACTION)


def _flagged(comp: RawComp, is_outlier: bool) -> CleanedComp:
    values = {f.name: getattr(comp, f.name) for f in fields(RawComp)}
    return CleanedComp(**values, is_outlier=is_outlier)


def median(values: list[float]) -> float:
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def clean_sold_comps(
    raw_comps: Optional[Iterable[RawComp]],
    search_query: str = "",
    min_comps_for_high_confidence: Optional[int] = None,
) -> CleanedCompResult:
    """
    Clean sold comps: drop unrepresentative listings, trim outliers, summarise.

    Args:
        raw_comps: Raw sold listings for one item
        search_query: Query the comps came from (carried into the result)
        min_comps_for_high_confidence: Retained count needed for ``high``
            (defaults to settings.min_comps_for_high_confidence)

    Returns:
        CleanedCompResult; never carries a price when ``success`` is False
    """
    threshold = min_comps_for_high_confidence
    if threshold is None:
        threshold = settings.min_comps_for_high_confidence
    raw_comps = list(raw_comps or [])

    if not raw_comps:
        metrics.record_comp_cleaning(CleaningReason.NO_COMPS.value)
        return CleanedCompResult.failure("No comps found", CleaningReason.NO_COMPS, search_query=search_query)

    filtered = [c for c in raw_comps if not should_exclude_comp(c.title)]
    logger.info(
        f"Filtered {len(raw_comps)} -> {len(filtered)} comps (removed parts/repair/bundles)"
    )

    if not filtered:
        metrics.record_comp_cleaning(CleaningReason.ALL_FILTERED.value)
        return CleanedCompResult.failure(
            "All comps filtered (parts/repair/bundles)",
            CleaningReason.ALL_FILTERED,
            search_query=search_query,
        )

    ordered = sorted(filtered, key=lambda c: c.sold_price)
    q1, q3 = quartile_bounds(len(ordered))
    trimmed = [
        _flagged(comp, is_outlier=(index < q1 or index >= q3))
        for index, comp in enumerate(ordered)
    ]
    retained = [c for c in trimmed if not c.is_outlier]

    logger.info(
        f"Quartile trim: removed {len(trimmed) - len(retained)} (bottom/top 25%), "
        f"{len(retained)} remain"
    )

    if not retained:
        metrics.record_comp_cleaning(CleaningReason.ALL_OUTLIERS.value)
        return CleanedCompResult.failure(
            "All comps were outliers after filtering",
            CleaningReason.ALL_OUTLIERS,
            comps=trimmed,
            search_query=search_query,
        )

    prices = [c.sold_price for c in retained]
    confidence = Confidence.HIGH if len(retained) >= threshold else Confidence.LOW

    result = CleanedCompResult(
        success=True,
        comps=trimmed,
        median_price=round_price(median(prices)),
        low_price=round_price(min(prices)),
        high_price=round_price(max(prices)),
        comp_count=len(retained),
        confidence=confidence,
        search_query=search_query,
    )
    if confidence is Confidence.LOW:
        result.reason = f"Low comp confidence ({len(retained)}/{threshold} required)"
        result.reason_code = CleaningReason.LOW_CONFIDENCE

    metrics.record_comp_cleaning(f"success_{confidence.value}")
    return result
