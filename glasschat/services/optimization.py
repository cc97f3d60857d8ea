"""History optimization strategies.

Each strategy takes the chat history (ordered by timestamp) and returns an
``OptimizationResult`` describing the messages to resend. Strategies never
modify the input list or its messages, and ``optimized_tokens`` is always
recomputed from the returned list.
"""
import logging
import math
import re
from datetime import datetime, timedelta
from typing import Sequence

from glasschat.models.domain import Message, OptimizationResult, make_summary_message
from glasschat.services.token_estimator import DEFAULT_ESTIMATOR, TokenEstimator

logger = logging.getLogger(__name__)

FULL_HISTORY = "full-history"
ROLLING_WINDOW = "rolling-window"
SMART_SUMMARY = "smart-summary"
ROLLING_WITH_SUMMARY = "rolling-with-summary"

STRATEGIES = (FULL_HISTORY, ROLLING_WINDOW, SMART_SUMMARY, ROLLING_WITH_SUMMARY)

MIN_KEEP_MESSAGES = 5
KEEP_RATIO = 0.3

MAX_TOPICS = 5
MAX_QUESTIONS = 3
MAX_SOLUTIONS = 3
KEYWORDS_PER_MESSAGE = 10
SOLUTIONS_PER_MESSAGE = 2
QUESTION_PREVIEW_CHARS = 100

STOPWORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "up", "about", "into", "through", "during", "before",
    "after", "above", "below", "between", "among", "around", "is", "are",
    "was", "were", "be", "been", "being", "have", "has", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "must", "can",
    "this", "that", "these", "those", "i", "you", "he", "she", "it", "we",
    "they", "me", "him", "her", "us", "them", "my", "your", "his", "its",
    "our", "their", "there", "where", "which", "while", "what", "when",
})

_QUESTION_START_RE = re.compile(r"^(how|what|why|when|where|can|could|would|should)\b")
_SOLUTION_GATE_RE = re.compile(r"solution|recommend|suggest|should")
_SOLUTION_SENTENCE_RE = re.compile(
    r"solution|recommend|suggest|should|try|use|install|run|execute"
)
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def _result(
    messages: list[Message],
    original_tokens: int,
    strategy: str,
    estimator: TokenEstimator,
    checkpoint: Message | None = None,
) -> OptimizationResult:
    optimized_tokens = estimator.estimate_chat_tokens(messages)
    return OptimizationResult(
        messages=messages,
        original_tokens=original_tokens,
        optimized_tokens=optimized_tokens,
        saved_tokens=original_tokens - optimized_tokens,
        strategy=strategy,
        checkpoint=checkpoint,
    )


def apply_full_history(
    messages: Sequence[Message], *, estimator: TokenEstimator = DEFAULT_ESTIMATOR
) -> OptimizationResult:
    original_tokens = estimator.estimate_chat_tokens(messages)
    return _result(list(messages), original_tokens, FULL_HISTORY, estimator)


def apply_rolling_window(
    messages: Sequence[Message],
    window_size: int,
    *,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> OptimizationResult:
    """Keep only the last ``window_size`` messages; older ones are dropped."""
    if window_size < 1:
        raise ValueError(f"window_size must be positive, got {window_size}")
    original_tokens = estimator.estimate_chat_tokens(messages)
    if len(messages) <= window_size:
        return _result(list(messages), original_tokens, ROLLING_WINDOW, estimator)
    return _result(
        list(messages[-window_size:]), original_tokens, ROLLING_WINDOW, estimator
    )


def _summary_timestamp(last_summarized: str, first_retained: str) -> str | None:
    """Timestamp of the last summarized message, kept strictly before the tail.

    Messages sort by (timestamp, id) and a persisted summary gets the highest
    id, so a tie with the first retained message would put it after that one.
    """
    if not last_summarized or not first_retained:
        return last_summarized or None
    try:
        last = datetime.fromisoformat(last_summarized)
        first = datetime.fromisoformat(first_retained)
        if last < first:
            return last_summarized
        return (first - timedelta(microseconds=1)).isoformat()
    except (TypeError, ValueError):
        logger.debug(f"Unparseable timestamps {last_summarized!r}, {first_retained!r}")
        return last_summarized


def apply_smart_summary(
    messages: Sequence[Message],
    token_threshold: int,
    *,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> OptimizationResult:
    """Replace the older part of the history with one summary message.

    Triggers only once the history exceeds ``token_threshold``. The most recent
    30% of messages (at least five) are kept verbatim; everything before them
    is folded into a summary placed at the head of the result.
    """
    original_tokens = estimator.estimate_chat_tokens(messages)
    unchanged = _result(list(messages), original_tokens, SMART_SUMMARY, estimator)
    if original_tokens <= token_threshold:
        return unchanged

    keep_count = max(MIN_KEEP_MESSAGES, math.floor(len(messages) * KEEP_RATIO))
    if keep_count >= len(messages):
        return unchanged

    to_summarize = list(messages[:-keep_count])
    recent = list(messages[-keep_count:])

    content = (
        f"**Chat Summary** ({len(to_summarize)} messages)\n\n"
        f"{create_message_summary(to_summarize)}"
    )
    summary = make_summary_message(
        content,
        chat_id=to_summarize[0].chat_id,
        timestamp=_summary_timestamp(to_summarize[-1].timestamp, recent[0].timestamp),
    )
    result = _result([summary, *recent], original_tokens, SMART_SUMMARY, estimator, summary)

    # A digest of a few short messages can outweigh them
    if result.saved_tokens <= 0:
        logger.debug("Summary would not reduce tokens, keeping history as is")
        return unchanged
    logger.debug(
        f"Summarized {len(to_summarize)} messages, "
        f"{original_tokens} -> {result.optimized_tokens} tokens"
    )
    return result


def apply_rolling_with_summary(
    messages: Sequence[Message],
    window_size: int,
    summary_threshold: int,
    *,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> OptimizationResult:
    """Rolling window, then summarize the window if it is still too large.

    Summarizing only the windowed messages bounds the work to ``window_size``
    messages regardless of chat length.
    """
    windowed = apply_rolling_window(messages, window_size, estimator=estimator)
    if windowed.optimized_tokens <= summary_threshold:
        return _result(
            windowed.messages, windowed.original_tokens, ROLLING_WITH_SUMMARY, estimator
        )

    summarized = apply_smart_summary(
        windowed.messages, summary_threshold, estimator=estimator
    )
    return _result(
        summarized.messages,
        windowed.original_tokens,
        ROLLING_WITH_SUMMARY,
        estimator,
        summarized.checkpoint,
    )


def apply_strategy(
    messages: Sequence[Message],
    strategy: str,
    window_size: int,
    summary_threshold: int,
    *,
    estimator: TokenEstimator = DEFAULT_ESTIMATOR,
) -> OptimizationResult:
    if strategy == FULL_HISTORY:
        return apply_full_history(messages, estimator=estimator)
    if strategy == ROLLING_WINDOW:
        return apply_rolling_window(messages, window_size, estimator=estimator)
    if strategy == SMART_SUMMARY:
        return apply_smart_summary(messages, summary_threshold, estimator=estimator)
    if strategy == ROLLING_WITH_SUMMARY:
        return apply_rolling_with_summary(
            messages, window_size, summary_threshold, estimator=estimator
        )
    raise ValueError(f"Unknown optimization strategy: {strategy}")


def extract_keywords(text: str) -> list[str]:
    words = _NON_WORD_RE.sub(" ", text.lower()).split()
    keywords = [w for w in words if len(w) > 4 and w not in STOPWORDS]
    return keywords[:KEYWORDS_PER_MESSAGE]


def _is_question(content: str) -> bool:
    lowered = content.strip().lower()
    return "?" in lowered or bool(_QUESTION_START_RE.match(lowered))


def _solution_sentences(content: str) -> list[str]:
    if not _SOLUTION_GATE_RE.search(content.lower()):
        return []
    sentences = []
    for sentence in _SENTENCE_SPLIT_RE.split(content):
        sentence = sentence.strip()
        if sentence and _SOLUTION_SENTENCE_RE.search(sentence.lower()):
            sentences.append(sentence)
        if len(sentences) == SOLUTIONS_PER_MESSAGE:
            break
    return sentences


def create_message_summary(messages: Sequence[Message]) -> str:
    """Heuristic digest of topics, questions and recommendations."""
    topics: list[str] = []
    questions: list[str] = []
    solutions: list[str] = []

    for msg in messages:
        content = msg.content or ""
        if msg.role == "user":
            if _is_question(content):
                preview = content[:QUESTION_PREVIEW_CHARS]
                if len(content) > QUESTION_PREVIEW_CHARS:
                    preview += "..."
                questions.append(preview)
            for keyword in extract_keywords(content):
                if keyword not in topics:
                    topics.append(keyword)
        elif msg.role == "assistant":
            solutions.extend(_solution_sentences(content))

    sections = []
    if topics:
        sections.append(f"**Topics discussed:** {', '.join(topics[:MAX_TOPICS])}")
    if questions:
        lines = "\n".join(f"• {q}" for q in questions[:MAX_QUESTIONS])
        sections.append(f"**Key questions:**\n{lines}")
    if solutions:
        lines = "\n".join(f"• {s}" for s in solutions[:MAX_SOLUTIONS])
        sections.append(f"**Solutions/Recommendations:**\n{lines}")
    sections.append(
        f"*This summary covers {len(messages)} messages from the conversation history.*"
    )
    return "\n\n".join(sections)
