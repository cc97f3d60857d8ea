from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

SUMMARY_PROVIDER = "system"
SUMMARY_MODEL = "summary"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class Message:
    id: int
    chat_id: int
    role: str
    content: str
    image_path: Optional[str] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    timestamp: str = ""
    optimization_method: Optional[str] = None
    actual_input_tokens: int = 0
    actual_cost: float = 0.0

    @property
    def is_summary(self) -> bool:
        return self.provider == SUMMARY_PROVIDER and self.model == SUMMARY_MODEL

    @classmethod
    def from_row(cls, row) -> "Message":
        data = dict(row)
        return cls(
            id=data["id"],
            chat_id=data["chat_id"],
            role=data["role"],
            content=data["content"] or "",
            image_path=data.get("image_path"),
            provider=data.get("provider"),
            model=data.get("model"),
            timestamp=data.get("timestamp") or "",
            optimization_method=data.get("optimization_method"),
            actual_input_tokens=data.get("actual_input_tokens") or 0,
            actual_cost=data.get("actual_cost") or 0.0,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def make_summary_message(
    content: str, chat_id: int, timestamp: str | None = None
) -> Message:
    """Build a synthesized summary message.

    The message is structurally a regular assistant ``Message`` so it can be
    stored like any other, but carries the ``system``/``summary``
    provider/model pair so it can be told apart downstream. The id is a
    placeholder until the store assigns a real one.
    """
    return Message(
        id=0,
        chat_id=chat_id,
        role="assistant",
        content=content,
        provider=SUMMARY_PROVIDER,
        model=SUMMARY_MODEL,
        timestamp=timestamp or utc_now(),
    )


@dataclass
class OptimizationResult:
    messages: list[Message]
    original_tokens: int
    optimized_tokens: int
    saved_tokens: int
    strategy: str
    checkpoint: Optional[Message] = None

    def to_dict(self) -> dict:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "original_tokens": self.original_tokens,
            "optimized_tokens": self.optimized_tokens,
            "saved_tokens": self.saved_tokens,
            "strategy": self.strategy,
            "checkpoint": self.checkpoint.to_dict() if self.checkpoint else None,
        }


@dataclass
class CostEntry:
    message_id: int
    provider: str
    model: str
    tokens: int
    cost: float
    role: str


@dataclass
class CostBreakdown:
    input_cost: float = 0.0
    estimated_output_cost: float = 0.0
    total_cost: float = 0.0
    breakdown: list[CostEntry] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class CompressionResult:
    success: bool
    summary_message: Optional[Message] = None
    deleted_count: int = 0
    saved_tokens: int = 0
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "summary_message": (
                self.summary_message.to_dict() if self.summary_message else None
            ),
            "deleted_count": self.deleted_count,
            "saved_tokens": self.saved_tokens,
            "reason": self.reason,
        }
