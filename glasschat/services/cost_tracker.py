import logging
import math
from typing import Sequence

from glasschat.config import Settings
from glasschat.database import get_db
from glasschat.models.domain import CostBreakdown, CostEntry, Message
from glasschat.services.pricing import PricingTable
from glasschat.services.token_estimator import DEFAULT_ESTIMATOR, TokenEstimator

logger = logging.getLogger(__name__)

# Output is guessed as a fraction of the context when no per-message data exists
OUTPUT_TOKEN_RATIO = 0.2


def resolve_provider_model(
    message: Message, fallback_provider: str, fallback_model: str
) -> tuple[str, str]:
    """Return the provider/model a message was priced under.

    Assistant messages record the model that answered; user messages usually
    carry nothing and take the caller's fallback.
    """
    provider = (message.provider or fallback_provider or "").lower()
    model = message.model or fallback_model
    return provider, model


class CostTracker:
    def __init__(self, settings: Settings, estimator: TokenEstimator | None = None):
        self._pricing = PricingTable(settings.pricing_config)
        self._tier = settings.pricing_tier
        self._estimator = estimator or DEFAULT_ESTIMATOR

    @property
    def pricing(self) -> PricingTable:
        return self._pricing

    def estimate_cost(
        self,
        tokens: int,
        provider: str,
        model: str,
        token_type: str = "input",
        tier: str | None = None,
    ) -> float:
        """Cost in USD for ``tokens`` at the per-1K rate, rounded to 6 places."""
        if tokens <= 0:
            return 0.0
        pricing = self._pricing.get_model_pricing(provider, model, tier or self._tier)
        rate = pricing.output if token_type == "output" else pricing.input
        return round((tokens / 1000) * rate, 6)

    def estimate_accurate_chat_cost(
        self,
        messages: Sequence[Message],
        fallback_provider: str = "openai",
        fallback_model: str = "gpt-4o",
    ) -> CostBreakdown:
        """Price every message under its own provider/model.

        Assistant messages are billed at the output rate, everything else at
        the input rate, so a chat that switched models midway is not priced
        at one blended rate.
        """
        input_cost = 0.0
        output_cost = 0.0
        entries = []
        for message in messages:
            provider, model = resolve_provider_model(
                message, fallback_provider, fallback_model
            )
            tokens = self._estimator.estimate_message_tokens(message)
            is_output = message.role == "assistant"
            cost = self.estimate_cost(
                tokens, provider, model, "output" if is_output else "input"
            )
            if is_output:
                output_cost += cost
            else:
                input_cost += cost
            entries.append(CostEntry(
                message_id=message.id,
                provider=provider,
                model=model,
                tokens=tokens,
                cost=cost,
                role=message.role,
            ))

        return CostBreakdown(
            input_cost=round(input_cost, 6),
            estimated_output_cost=round(output_cost, 6),
            total_cost=round(input_cost + output_cost, 6),
            breakdown=entries,
        )

    def estimate_chat_cost(
        self, messages: Sequence[Message], provider: str, model: str
    ) -> CostBreakdown:
        """Cost of sending the whole chat as context to one provider/model."""
        input_tokens = self._estimator.estimate_chat_tokens(messages)
        output_tokens = math.ceil(input_tokens * OUTPUT_TOKEN_RATIO)
        input_cost = self.estimate_cost(input_tokens, provider, model, "input")
        output_cost = self.estimate_cost(output_tokens, provider, model, "output")
        return CostBreakdown(
            input_cost=input_cost,
            estimated_output_cost=output_cost,
            total_cost=round(input_cost + output_cost, 6),
        )

    @staticmethod
    def summarize_by_model(entries: Sequence[CostEntry]) -> dict[str, dict]:
        summary: dict[str, dict] = {}
        for entry in entries:
            key = f"{entry.provider}/{entry.model}"
            bucket = summary.setdefault(key, {"count": 0, "cost": 0.0})
            bucket["count"] += 1
            bucket["cost"] = round(bucket["cost"] + entry.cost, 6)
        return summary

    async def get_spend_summary(self, chat_id: int | None = None) -> dict:
        """Actual spend recorded on stored messages, optionally for one chat."""
        where = "WHERE chat_id = ?" if chat_id is not None else ""
        params = (chat_id,) if chat_id is not None else ()
        async with get_db() as db:
            cursor = await db.execute(
                f"""SELECT
                    COALESCE(SUM(actual_cost), 0) as total_cost_usd,
                    COALESCE(SUM(actual_input_tokens), 0) as total_input_tokens,
                    COUNT(*) as message_count,
                    COALESCE(SUM(CASE WHEN actual_cost > 0 THEN 1 ELSE 0 END), 0)
                        as paid_message_count
                   FROM messages {where}""",
                params,
            )
            row = await cursor.fetchone()

            breakdown_cursor = await db.execute(
                f"""SELECT provider, model,
                          COUNT(*) as message_count,
                          COALESCE(SUM(actual_cost), 0) as cost,
                          COALESCE(SUM(actual_input_tokens), 0) as input_tokens
                   FROM messages {where}
                   GROUP BY provider, model""",
                params,
            )
            breakdown_rows = await breakdown_cursor.fetchall()

        return {
            "chat_id": chat_id,
            "total_cost_usd": row["total_cost_usd"] if row else 0.0,
            "total_input_tokens": row["total_input_tokens"] if row else 0,
            "message_count": row["message_count"] if row else 0,
            "paid_message_count": row["paid_message_count"] if row else 0,
            "breakdown": [dict(r) for r in breakdown_rows],
        }
