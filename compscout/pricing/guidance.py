"""Maximum buy price from cleaned comps.

Formula::

    raw_max_buy = median - median*fee_rate - outbound_shipping - fixed_costs
                  - shipping_in - median*target_margin
    max_buy     = floor(raw_max_buy * safety_multiplier)

There is no fallback price: a failed cleaning result always yields
``max_buy=None``. A non-positive result yields ``max_buy=0`` with its own
reason code, which callers must not confuse with "no data".
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from compscout import metrics
from compscout.config import settings
from compscout.pricing.comp_cleaner import CleanedCompResult

logger = logging.getLogger(__name__)

SAFETY_MULTIPLIER = Decimal("0.8")


class GuidanceReason(str, Enum):
    CLEANING_FAILED = "cleaning_failed"
    COSTS_EXCEED_MEDIAN = "costs_exceed_median"


def _default(name: str):
    return field(default_factory=lambda: getattr(settings, name))


@dataclass
class GuidanceConfig:
    """Cost and margin assumptions. Rates are fractions, the rest currency amounts."""

    platform_fee_rate: float = _default("guidance_platform_fee_rate")
    outbound_shipping: float = _default("guidance_outbound_shipping")
    fixed_costs: float = _default("guidance_fixed_costs")
    shipping_in: float = _default("guidance_shipping_in")
    target_margin: float = _default("guidance_target_margin")


@dataclass
class PriceGuidance:
    """Either a non-negative max buy price or an explicit absence with a reason."""

    max_buy: Optional[int]
    reason: Optional[str] = None
    reason_code: Optional[GuidanceReason] = None
    raw_max_buy: Optional[float] = None

    @property
    def has_price(self) -> bool:
        return self.max_buy is not None


def _d(value: float) -> Decimal:
    return Decimal(str(value))


def calculate_max_buy_from_comps(
    cleaned_result: CleanedCompResult,
    config: Optional[GuidanceConfig] = None,
) -> PriceGuidance:
    """
    Convert a cleaned median into a maximum buy price.

    Args:
        cleaned_result: Output of ``clean_sold_comps``
        config: Cost/margin assumptions (defaults from settings)

    Returns:
        PriceGuidance
    """
    config = config or GuidanceConfig()

    if not cleaned_result.success or cleaned_result.median_price is None:
        metrics.record_price_guidance(GuidanceReason.CLEANING_FAILED.value)
        return PriceGuidance(
            max_buy=None,
            reason=cleaned_result.reason or "No valid comps for max buy calculation",
            reason_code=GuidanceReason.CLEANING_FAILED,
        )

    median = _d(cleaned_result.median_price)
    platform_fees = median * _d(config.platform_fee_rate)
    target_profit = median * _d(config.target_margin)

    raw_max_buy = (
        median
        - platform_fees
        - _d(config.outbound_shipping)
        - _d(config.fixed_costs)
        - _d(config.shipping_in)
        - target_profit
    )
    max_buy = math.floor(raw_max_buy * SAFETY_MULTIPLIER)

    if max_buy <= 0:
        metrics.record_price_guidance(GuidanceReason.COSTS_EXCEED_MEDIAN.value)
        return PriceGuidance(
            max_buy=0,
            reason=(
                f"Max buy would be $0 or less (median ${median:.2f} - costs = ${raw_max_buy:.2f}): "
                "costs exceed the median price"
            ),
            reason_code=GuidanceReason.COSTS_EXCEED_MEDIAN,
            raw_max_buy=float(raw_max_buy),
        )

    metrics.record_price_guidance("success")
    return PriceGuidance(max_buy=max_buy, raw_max_buy=float(raw_max_buy))
