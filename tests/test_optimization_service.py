import pytest

from glasschat.models.domain import Message
from glasschat.models.schemas import OptimizationSettings
from glasschat.services.chat_service import ChatService
from glasschat.services.optimization_service import (
    NO_COMPRESSION_NEEDED,
    CompressionError,
    OptimizationService,
)
from glasschat.services.token_estimator import estimate_chat_tokens
from helpers import FILLER, make_messages

HAIKU = "claude-3-5-haiku-20241022"


class RecordingStore:
    """In-memory message store that records calls and can fail on demand."""

    def __init__(self, fail_on=None):
        self.calls = []
        self.fail_on = fail_on

    async def save_message(self, chat_id, role, content, **fields):
        self.calls.append(("save", None))
        if self.fail_on == "save":
            raise RuntimeError("disk full")
        return Message(id=1000, chat_id=chat_id, role=role, content=content, **fields)

    async def delete_message(self, message_id):
        self.calls.append(("delete", message_id))
        if self.fail_on == "delete":
            raise RuntimeError("locked")


@pytest.fixture
def service(test_settings):
    return OptimizationService(test_settings)


class TestDefaults:
    def test_defaults_from_yaml(self, service):
        defaults = service.default_settings
        assert defaults.strategy == "rolling-with-summary"
        assert defaults.rolling_window_size == 15
        assert defaults.summary_threshold == 5000

    def test_defaults_without_yaml_section(self, temp_db_path):
        from glasschat.config import Settings
        settings = Settings(database_url=temp_db_path, yaml_config={"pricing": {}})
        service = OptimizationService(settings)
        assert service.default_settings == OptimizationSettings()


class TestTokenStats:
    def test_stats(self, service):
        messages = make_messages(4)
        messages[1].provider, messages[1].model = "claude", HAIKU
        stats = service.get_chat_token_stats(messages, "openai", "gpt-4o")
        assert stats["total_tokens"] == 240
        assert stats["message_count"] == 4
        assert stats["estimated_cost"] == stats["cost_breakdown"]["total_cost"]
        assert len(stats["model_breakdown"]) == 4
        assert stats["models_used"][f"claude/{HAIKU}"]["count"] == 1
        assert stats["models_used"]["openai/gpt-4o"]["count"] == 3


class TestPreview:
    def test_rolling_with_summary_scenario(self, service):
        messages = make_messages(20)
        settings = OptimizationSettings(
            strategy="rolling-with-summary", rolling_window_size=15, summary_threshold=5000
        )
        preview = service.get_optimization_preview(messages, settings, "openai", "gpt-4o")

        assert preview["strategy"] == "rolling-with-summary"
        assert [m["id"] for m in preview["messages"]] == list(range(6, 21))
        assert preview["original_tokens"] == 1200
        assert preview["optimized_tokens"] == 900
        assert preview["saved_tokens"] == 300
        assert preview["checkpoint"] is None
        assert preview["saved_cost"] == pytest.approx(
            preview["original_cost"] - preview["optimized_cost"]
        )
        assert preview["saved_cost"] > 0
        assert len(preview["cost_breakdown"]["original"]["breakdown"]) == 20
        assert len(preview["cost_breakdown"]["optimized"]["breakdown"]) == 15

    def test_summary_preview_is_read_only(self, service):
        messages = make_messages(20)
        settings = OptimizationSettings(strategy="smart-summary", summary_threshold=100)
        preview = service.get_optimization_preview(messages, settings, "openai", "gpt-4o")
        assert preview["checkpoint"]["provider"] == "system"
        assert preview["messages"][0] == preview["checkpoint"]
        assert len(messages) == 20

    def test_uses_defaults_when_no_settings(self, service):
        messages = make_messages(20)
        preview = service.get_optimization_preview(messages, None, "openai", "gpt-4o")
        assert preview["strategy"] == "rolling-with-summary"
        assert len(preview["messages"]) == 15

    def test_full_history(self, service):
        messages = make_messages(8)
        settings = OptimizationSettings(strategy="full-history")
        preview = service.get_optimization_preview(messages, settings, "openai", "gpt-4o")
        assert preview["saved_tokens"] == 0
        assert preview["saved_cost"] == 0


class TestCompressWithFakeStore:
    @pytest.mark.asyncio
    async def test_below_threshold_is_noop(self, service):
        store = RecordingStore()
        result = await service.compress_chat_history(make_messages(10), 5000, store)
        assert result.success is False
        assert result.reason == NO_COMPRESSION_NEEDED
        assert result.deleted_count == 0
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_saves_before_deleting(self, service):
        store = RecordingStore()
        messages = make_messages(20)
        result = await service.compress_chat_history(messages, 500, store)

        assert result.success is True
        assert result.deleted_count == 14
        assert store.calls[0] == ("save", None)
        assert [c[1] for c in store.calls[1:]] == list(range(1, 15))
        assert result.summary_message.id == 1000
        assert result.summary_message.is_summary
        assert result.summary_message.optimization_method == "smart-summary"

    @pytest.mark.asyncio
    async def test_deletes_message_with_id_zero(self, service):
        store = RecordingStore()
        messages = make_messages(20)
        messages[0].id = 0
        result = await service.compress_chat_history(messages, 500, store)

        assert result.deleted_count == 14
        assert [c[1] for c in store.calls[1:]] == [0] + list(range(2, 15))

    @pytest.mark.asyncio
    async def test_failed_save_deletes_nothing(self, service):
        store = RecordingStore(fail_on="save")
        with pytest.raises(CompressionError) as exc_info:
            await service.compress_chat_history(make_messages(20), 500, store)
        assert exc_info.value.operation == "save_summary"
        assert store.calls == [("save", None)]

    @pytest.mark.asyncio
    async def test_failed_delete_identifies_message(self, service):
        store = RecordingStore(fail_on="delete")
        with pytest.raises(CompressionError) as exc_info:
            await service.compress_chat_history(make_messages(20), 500, store)
        assert exc_info.value.operation == "delete_message"
        assert exc_info.value.message_id == 1
        assert store.calls[0] == ("save", None)

    @pytest.mark.asyncio
    async def test_default_threshold(self, service):
        store = RecordingStore()
        # 20 messages of 60 tokens stay under the configured 5000
        result = await service.compress_chat_history(make_messages(20), None, store)
        assert result.success is False


class TestCompressWithDatabase:
    @pytest.mark.asyncio
    async def test_compress_then_noop(self, initialized_db, service):
        chats = ChatService()
        chat = await chats.create_chat("Long chat")
        for i in range(20):
            await chats.save_message(chat["id"], "user" if i % 2 == 0 else "assistant", FILLER)

        messages = await chats.get_chat_messages(chat["id"])
        result = await service.compress_chat_history(messages, 1000, chats)
        assert result.success is True
        assert result.deleted_count == 14

        remaining = await chats.get_chat_messages(chat["id"])
        assert len(remaining) == 7
        assert remaining[0].is_summary
        assert remaining[0].id == result.summary_message.id
        assert [m.id for m in remaining[1:]] == [m.id for m in messages[-6:]]
        assert estimate_chat_tokens(remaining) < estimate_chat_tokens(messages)

        again = await service.compress_chat_history(remaining, 1000, chats)
        assert again.success is False
        assert again.reason == NO_COMPRESSION_NEEDED
        assert await chats.get_message_count(chat["id"]) == 7


class TestPlanSendContext:
    def test_context_and_cost(self, service):
        history = make_messages(20)
        settings = OptimizationSettings(strategy="rolling-window", rolling_window_size=10)
        new_message = Message(id=0, chat_id=1, role="user", content="x" * 40)

        plan = service.plan_send_context(history, settings, "openai", "gpt-4o", new_message)
        assert plan["optimization_method"] == "rolling-window"
        assert len(plan["messages"]) == 10
        assert plan["actual_input_tokens"] == 600 + 20
        assert plan["actual_cost"] == pytest.approx(620 / 1000 * 0.0025)
        assert plan["saved_tokens"] == 600

    def test_without_new_message(self, service):
        plan = service.plan_send_context([], None, "deepseek", "deepseek-chat")
        assert plan["messages"] == []
        assert plan["actual_input_tokens"] == 0
        assert plan["actual_cost"] == 0
