from pydantic import BaseModel, Field
from typing import Literal, Optional

from glasschat.services.optimization import ROLLING_WITH_SUMMARY

StrategyName = Literal["full-history", "rolling-window", "smart-summary", "rolling-with-summary"]


# --- Optimization ---
class OptimizationSettings(BaseModel):
    strategy: StrategyName = ROLLING_WITH_SUMMARY
    rolling_window_size: int = Field(default=15, ge=1)
    summary_threshold: int = Field(default=5000, ge=0)

    @classmethod
    def from_config(cls, config: dict) -> "OptimizationSettings":
        return cls(**{k: v for k, v in (config or {}).items() if k in cls.model_fields})


class PreviewRequest(BaseModel):
    settings: Optional[OptimizationSettings] = None
    fallback_provider: Optional[str] = None
    fallback_model: Optional[str] = None


class CompressRequest(BaseModel):
    threshold: Optional[int] = Field(default=None, ge=0)


class ContextRequest(BaseModel):
    settings: Optional[OptimizationSettings] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    text: str = ""
    image_path: Optional[str] = None


# --- Chats ---
class ChatCreate(BaseModel):
    title: str = Field(default="New Chat", min_length=1, max_length=200)


class ChatTitleUpdate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)


class ChatResponse(BaseModel):
    id: int
    title: str
    created_at: str
    updated_at: str
    total_cost: float = 0.0
    message_count: int = 0


class ChatListResponse(BaseModel):
    chats: list[ChatResponse]


# --- Messages ---
class MessageCreate(BaseModel):
    role: Literal["user", "assistant"]
    content: str = Field(..., max_length=200000)
    image_path: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    optimization_method: Optional[str] = None
    actual_input_tokens: int = Field(default=0, ge=0)
    actual_cost: float = Field(default=0.0, ge=0.0)


class MessageUpdate(BaseModel):
    content: Optional[str] = None
    image_path: Optional[str] = None


class MessageResponse(BaseModel):
    id: int
    chat_id: int
    role: str
    content: str
    image_path: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    timestamp: str
    optimization_method: Optional[str] = None
    actual_input_tokens: int = 0
    actual_cost: float = 0.0


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str = "0.1.0"
    chat_count: int = 0
    message_count: int = 0


# --- Cost ---
class SpendSummaryResponse(BaseModel):
    chat_id: Optional[int] = None
    total_cost_usd: float = 0.0
    total_input_tokens: int = 0
    message_count: int = 0
    paid_message_count: int = 0
    breakdown: list[dict] = []


class ModelPricingResponse(BaseModel):
    provider: str
    model: str
    tier: Optional[str] = None
    input: float
    output: float


class PricingTableResponse(BaseModel):
    last_updated: str
    disclaimer: str
    fallback: dict[str, float]
    providers: dict
