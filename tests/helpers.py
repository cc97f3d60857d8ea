from glasschat.models.domain import Message

# 200 chars, no punctuation: 50 content tokens, 60 with message overhead
FILLER = ("lorem ipsum " * 17)[:200]


def make_messages(count: int, content: str = FILLER, chat_id: int = 1) -> list[Message]:
    """Alternating user/assistant messages with increasing timestamps."""
    return [
        Message(
            id=i + 1,
            chat_id=chat_id,
            role="user" if i % 2 == 0 else "assistant",
            content=content,
            timestamp=f"2025-09-03T10:{i // 60:02d}:{i % 60:02d}",
        )
        for i in range(count)
    ]
