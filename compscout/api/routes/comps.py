"""Comp cleaning, price guidance and comp query routes."""

from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from compscout.pricing.comp_cleaner import RawComp, clean_sold_comps
from compscout.pricing.guidance import GuidanceConfig, calculate_max_buy_from_comps
from compscout.search.query_builder import build_comp_query

router = APIRouter(prefix="/api/comps", tags=["comps"])


class RawCompIn(BaseModel):
    sold_price: float = Field(..., ge=0)
    shipping_cost: float = Field(0.0, ge=0)
    date_sold: Optional[str] = None
    condition: str = "unknown"
    title: Optional[str] = None
    thumbnail: Optional[str] = None


class GuidanceConfigIn(BaseModel):
    platform_fee_rate: Optional[float] = Field(None, ge=0, le=1)
    outbound_shipping: Optional[float] = Field(None, ge=0)
    fixed_costs: Optional[float] = Field(None, ge=0)
    shipping_in: Optional[float] = Field(None, ge=0)
    target_margin: Optional[float] = Field(None, ge=0, le=1)


class CleanRequest(BaseModel):
    comps: List[RawCompIn] = Field(default_factory=list)
    search_query: str = ""
    min_comps_for_high_confidence: Optional[int] = Field(None, ge=1)
    guidance: Optional[GuidanceConfigIn] = None


class CleanedCompOut(RawCompIn):
    is_outlier: bool
    total_price: float


class GuidanceOut(BaseModel):
    max_buy: Optional[int]
    reason: Optional[str] = None
    reason_code: Optional[str] = None


class CleanResponse(BaseModel):
    success: bool
    median_price: Optional[float]
    low_price: Optional[float]
    high_price: Optional[float]
    comp_count: int
    confidence: str
    reason: Optional[str]
    reason_code: Optional[str]
    search_query: str
    comps: List[CleanedCompOut]
    guidance: GuidanceOut


class QueryRequest(BaseModel):
    title: str


class QueryResponse(BaseModel):
    query: str
    accessory_prone: bool
    identifiers: dict


def _enum_value(value) -> Optional[str]:
    return value.value if value is not None else None


@router.post("/clean", response_model=CleanResponse)
async def clean_comps(request: CleanRequest):
    """Clean raw sold comps and derive a max buy price from the result."""
    raw = [RawComp(**comp.model_dump()) for comp in request.comps]
    cleaned = clean_sold_comps(
        raw,
        search_query=request.search_query,
        min_comps_for_high_confidence=request.min_comps_for_high_confidence,
    )

    overrides = request.guidance.model_dump(exclude_none=True) if request.guidance else {}
    guidance = calculate_max_buy_from_comps(cleaned, GuidanceConfig(**overrides))

    return CleanResponse(
        success=cleaned.success,
        median_price=cleaned.median_price,
        low_price=cleaned.low_price,
        high_price=cleaned.high_price,
        comp_count=cleaned.comp_count,
        confidence=cleaned.confidence.value,
        reason=cleaned.reason,
        reason_code=_enum_value(cleaned.reason_code),
        search_query=cleaned.search_query,
        comps=[
            CleanedCompOut(
                sold_price=c.sold_price,
                shipping_cost=c.shipping_cost,
                date_sold=c.date_sold,
                condition=c.condition,
                title=c.title,
                thumbnail=c.thumbnail,
                is_outlier=c.is_outlier,
                total_price=c.total_price,
            )
            for c in cleaned.comps
        ],
        guidance=GuidanceOut(
            max_buy=guidance.max_buy,
            reason=guidance.reason,
            reason_code=_enum_value(guidance.reason_code),
        ),
    )


@router.post("/query", response_model=QueryResponse)
async def comp_query(request: QueryRequest):
    """Build a sold-comp search query from a listing title."""
    result = build_comp_query(request.title)
    return QueryResponse(
        query=result.query,
        accessory_prone=result.accessory_prone,
        identifiers=result.identifiers.to_dict(),
    )
