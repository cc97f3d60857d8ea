from glasschat.models.domain import (
    CompressionResult,
    Message,
    OptimizationResult,
    make_summary_message,
)


class TestSummaryMessage:
    def test_sentinel_fields(self):
        summary = make_summary_message("digest", chat_id=3, timestamp="2025-09-03T10:00:00")
        assert summary.role == "assistant"
        assert summary.provider == "system"
        assert summary.model == "summary"
        assert summary.chat_id == 3
        assert summary.timestamp == "2025-09-03T10:00:00"
        assert summary.is_summary

    def test_timestamp_defaults_to_now(self):
        assert make_summary_message("digest", chat_id=1).timestamp

    def test_regular_message_is_not_summary(self):
        msg = Message(id=1, chat_id=1, role="assistant", content="hi", provider="system")
        assert not msg.is_summary


class TestFromRow:
    def test_nulls_normalized(self):
        msg = Message.from_row({
            "id": 4, "chat_id": 2, "role": "user", "content": None,
            "image_path": None, "provider": None, "model": None,
            "timestamp": "2025-09-03T10:00:00", "optimization_method": None,
            "actual_input_tokens": None, "actual_cost": None,
        })
        assert msg.content == ""
        assert msg.actual_input_tokens == 0
        assert msg.actual_cost == 0.0


class TestSerialization:
    def test_result_to_dict(self):
        summary = make_summary_message("digest", chat_id=1)
        result = OptimizationResult(
            messages=[summary], original_tokens=100, optimized_tokens=20,
            saved_tokens=80, strategy="smart-summary", checkpoint=summary,
        )
        data = result.to_dict()
        assert data["checkpoint"]["model"] == "summary"
        assert data["messages"][0] == data["checkpoint"]

    def test_compression_to_dict(self):
        data = CompressionResult(success=False, reason="No compression needed").to_dict()
        assert data == {
            "success": False,
            "summary_message": None,
            "deleted_count": 0,
            "saved_tokens": 0,
            "reason": "No compression needed",
        }
