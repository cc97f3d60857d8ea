import logging
from typing import Sequence

from glasschat.config import Settings
from glasschat.models.domain import CompressionResult, Message
from glasschat.models.schemas import OptimizationSettings
from glasschat.services.chat_service import MessageStore
from glasschat.services.cost_tracker import CostTracker
from glasschat.services.optimization import apply_smart_summary, apply_strategy
from glasschat.services.token_estimator import TokenEstimator

logger = logging.getLogger(__name__)

NO_COMPRESSION_NEEDED = "No compression needed"


class CompressionError(Exception):
    """A store operation failed while applying a compression."""

    def __init__(self, operation: str, message_id: int | None = None, cause: Exception | None = None):
        self.operation = operation
        self.message_id = message_id
        detail = f"Compression failed during {operation}"
        if message_id is not None:
            detail += f" (message {message_id})"
        if cause is not None:
            detail += f": {cause}"
        super().__init__(detail)


class OptimizationService:
    """Preview and apply history optimizations for a chat.

    Everything except ``compress_chat_history`` is read-only and works on the
    message list passed in.
    """

    def __init__(
        self,
        settings: Settings,
        cost_tracker: CostTracker | None = None,
        estimator: TokenEstimator | None = None,
    ):
        self._estimator = estimator or TokenEstimator.from_settings(settings)
        self._cost_tracker = cost_tracker or CostTracker(settings, self._estimator)
        self._defaults = OptimizationSettings.from_config(settings.optimization_config)

    @property
    def default_settings(self) -> OptimizationSettings:
        return self._defaults

    def _optimize(self, messages: Sequence[Message], settings: OptimizationSettings):
        return apply_strategy(
            messages,
            settings.strategy,
            settings.rolling_window_size,
            settings.summary_threshold,
            estimator=self._estimator,
        )

    def get_chat_token_stats(
        self, messages: Sequence[Message], provider: str, model: str
    ) -> dict:
        """Token count and next-send cost estimate for a full chat."""
        next_send = self._cost_tracker.estimate_chat_cost(messages, provider, model)
        per_message = self._cost_tracker.estimate_accurate_chat_cost(
            messages, provider, model
        )
        return {
            "total_tokens": self._estimator.estimate_chat_tokens(messages),
            "message_count": len(messages),
            "estimated_cost": next_send.total_cost,
            "cost_breakdown": {
                "input_cost": next_send.input_cost,
                "estimated_output_cost": next_send.estimated_output_cost,
                "total_cost": next_send.total_cost,
            },
            "model_breakdown": per_message.to_dict()["breakdown"],
            "models_used": self._cost_tracker.summarize_by_model(per_message.breakdown),
        }

    def get_optimization_preview(
        self,
        messages: Sequence[Message],
        settings: OptimizationSettings | None,
        fallback_provider: str,
        fallback_model: str,
    ) -> dict:
        settings = settings or self._defaults
        result = self._optimize(messages, settings)
        original = self._cost_tracker.estimate_accurate_chat_cost(
            messages, fallback_provider, fallback_model
        )
        optimized = self._cost_tracker.estimate_accurate_chat_cost(
            result.messages, fallback_provider, fallback_model
        )
        return {
            **result.to_dict(),
            "original_cost": original.total_cost,
            "optimized_cost": optimized.total_cost,
            "saved_cost": round(original.total_cost - optimized.total_cost, 6),
            "cost_breakdown": {
                "original": original.to_dict(),
                "optimized": optimized.to_dict(),
            },
        }

    async def compress_chat_history(
        self,
        messages: Sequence[Message],
        threshold: int | None,
        store: MessageStore,
    ) -> CompressionResult:
        """Persist a summary of the older messages and delete them.

        The summary is saved before anything is deleted; a failed save leaves
        the chat untouched.
        """
        if threshold is None:
            threshold = self._defaults.summary_threshold
        result = apply_smart_summary(messages, threshold, estimator=self._estimator)
        checkpoint = result.checkpoint
        if checkpoint is None:
            return CompressionResult(success=False, reason=NO_COMPRESSION_NEEDED)

        # result.messages is the checkpoint followed by the retained tail
        summarized = list(messages[: len(messages) - (len(result.messages) - 1)])

        try:
            saved = await store.save_message(
                chat_id=checkpoint.chat_id,
                role=checkpoint.role,
                content=checkpoint.content,
                provider=checkpoint.provider,
                model=checkpoint.model,
                timestamp=checkpoint.timestamp,
                optimization_method=result.strategy,
            )
        except Exception as e:
            logger.exception(f"Saving summary for chat {checkpoint.chat_id} failed")
            raise CompressionError("save_summary", cause=e) from e

        deleted = 0
        for message in summarized:
            try:
                await store.delete_message(message.id)
            except Exception as e:
                logger.exception(f"Deleting message {message.id} failed after summary {saved.id}")
                raise CompressionError("delete_message", message_id=message.id, cause=e) from e
            deleted += 1

        logger.info(
            f"Compressed chat {checkpoint.chat_id}: {deleted} messages replaced by "
            f"summary {saved.id}, ~{result.saved_tokens} tokens saved"
        )
        return CompressionResult(
            success=True,
            summary_message=saved,
            deleted_count=deleted,
            saved_tokens=result.saved_tokens,
        )

    def plan_send_context(
        self,
        history: Sequence[Message],
        settings: OptimizationSettings | None,
        provider: str,
        model: str,
        new_message: Message | None = None,
    ) -> dict:
        """Work out what a send would include and what its input costs.

        The returned ``optimization_method``, ``actual_input_tokens`` and
        ``actual_cost`` are what gets recorded on the stored message.
        """
        settings = settings or self._defaults
        result = self._optimize(history, settings)
        input_tokens = result.optimized_tokens
        if new_message is not None:
            input_tokens += self._estimator.estimate_message_tokens(new_message)
        return {
            "messages": [m.to_dict() for m in result.messages],
            "optimization_method": result.strategy,
            "actual_input_tokens": input_tokens,
            "actual_cost": self._cost_tracker.estimate_cost(
                input_tokens, provider, model, "input"
            ),
            "saved_tokens": result.saved_tokens,
        }
