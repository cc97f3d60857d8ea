from typing import Optional

from fastapi import APIRouter, Depends, Query

from glasschat.models.schemas import ModelPricingResponse, PricingTableResponse, SpendSummaryResponse
from glasschat.services.cost_tracker import CostTracker
from glasschat.dependencies import get_cost_tracker

router = APIRouter(prefix="/costs", tags=["costs"])


@router.get("/summary", response_model=SpendSummaryResponse)
async def get_spend_summary(
    chat_id: Optional[int] = Query(default=None),
    cost_tracker: CostTracker = Depends(get_cost_tracker),
):
    return await cost_tracker.get_spend_summary(chat_id)


@router.get("/pricing", response_model=ModelPricingResponse)
async def get_model_pricing(
    provider: str,
    model: str,
    tier: Optional[str] = Query(default=None),
    cost_tracker: CostTracker = Depends(get_cost_tracker),
):
    pricing = cost_tracker.pricing.get_model_pricing(provider, model, tier)
    return ModelPricingResponse(
        provider=provider,
        model=model,
        tier=tier,
        input=pricing.input,
        output=pricing.output,
    )


@router.get("/pricing/table", response_model=PricingTableResponse)
async def get_pricing_table(cost_tracker: CostTracker = Depends(get_cost_tracker)):
    """Full configured table with its date, disclaimer and fallback rate."""
    return cost_tracker.pricing.to_dict()
