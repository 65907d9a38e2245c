"""Pricing Routes - public price list and quote previews (no auth).

- GET /api/pricing/catalogue
- POST /api/pricing/estimate  body: {numberOfPages, features, websiteType}
"""
from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List
from services.pricing import breakdown, deposit_amount, get_catalogue

router = APIRouter(prefix="/api/pricing", tags=["pricing"])


class EstimateRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    number_of_pages: int = Field(ge=1, le=100)
    features: List[str] = Field(default_factory=list)
    # Free text: unknown types price with a 1.0 multiplier
    website_type: str


@router.get("/catalogue")
async def pricing_catalogue():
    return get_catalogue()


@router.post("/estimate")
async def pricing_estimate(body: EstimateRequest):
    quote = breakdown(body.number_of_pages, body.features, body.website_type)
    quote["deposit"] = deposit_amount(quote["total"])
    return quote
