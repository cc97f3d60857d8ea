"""Approximate token counting.

There is deliberately no tokenizer dependency here: counts are derived from
character length plus small surcharges for markdown and punctuation, which is
close enough for context budgeting and cost previews. Expect drift of a few
percent against any vendor tokenizer.
"""
import math
import re
from dataclasses import dataclass
from typing import Iterable

from glasschat.models.domain import Message

CHARS_PER_TOKEN = 4
MESSAGE_OVERHEAD_TOKENS = 10
IMAGE_TOKENS = 85

# Fenced code, inline code, bold/italic, headings, rules, blockquotes
_MARKDOWN_RE = re.compile(r"```|`|\*\*|\*|#|---|>\s")
_SPECIAL_CHARS_RE = re.compile(r"""[{}()\[\]<>@#$%^&*+=|\\:;"',?!]""")


def estimate_tokens(text: str | None) -> int:
    if not text:
        return 0
    base = math.ceil(len(text) / CHARS_PER_TOKEN)
    markdown = len(_MARKDOWN_RE.findall(text)) * 2
    special = len(_SPECIAL_CHARS_RE.findall(text)) * 0.5
    return math.ceil(base + markdown + special)


@dataclass(frozen=True)
class TokenEstimator:
    """Per-message token estimation with configurable overheads.

    ``message_overhead`` approximates role/formatting tokens each message
    costs; ``image_tokens`` is a flat charge for an attached image regardless
    of its size or the model.
    """
    message_overhead: int = MESSAGE_OVERHEAD_TOKENS
    image_tokens: int = IMAGE_TOKENS

    @classmethod
    def from_settings(cls, settings) -> "TokenEstimator":
        return cls(
            message_overhead=settings.message_overhead_tokens,
            image_tokens=settings.image_tokens,
        )

    def estimate_message_tokens(self, message: Message) -> int:
        total = self.message_overhead + estimate_tokens(message.content)
        if message.image_path:
            total += self.image_tokens
        return total

    def estimate_chat_tokens(self, messages: Iterable[Message]) -> int:
        return sum(self.estimate_message_tokens(m) for m in messages)


DEFAULT_ESTIMATOR = TokenEstimator()


def estimate_message_tokens(message: Message) -> int:
    return DEFAULT_ESTIMATOR.estimate_message_tokens(message)


def estimate_chat_tokens(messages: Iterable[Message]) -> int:
    return DEFAULT_ESTIMATOR.estimate_chat_tokens(messages)
