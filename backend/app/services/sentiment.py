"""Per-message sentiment and burnout scoring.

A message is scored by the language model when it is reachable and answers
with valid JSON; otherwise a keyword heuristic produces a lower-confidence
estimate. Reaction emojis shift either score through the static emoji table.
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import ClassVar

from pydantic import ValidationError

from app.core.config import get_settings
from app.schemas.llm import ModelSentimentPayload, SentimentLabel, load_json_reply
from app.services.emoji_table import EmojiSentimentTable, get_emoji_table
from app.services.llm_client import TextGenerator

logger = logging.getLogger(__name__)

POSITIVE_THRESHOLD = 0.6
NEGATIVE_THRESHOLD = 0.4
EMOJI_BLEND_GATE = 0.2
TEXT_WEIGHT = 0.7
EMOJI_WEIGHT = 0.3
MIN_SCOREABLE_LENGTH = 3
SHORT_TEXT_CONFIDENCE = 0.3
FALLBACK_CONFIDENCE = 0.4

POSITIVE_WORDS = (
    "great", "awesome", "excellent", "good", "nice", "love", "perfect", "amazing",
    "fantastic", "wonderful", "thanks", "thank you", "appreciate", "helpful",
    "success", "win", "celebrate", "congrats", "well done",
)
NEGATIVE_WORDS = (
    "bad", "terrible", "awful", "hate", "problem", "issue", "error", "fail",
    "failure", "broken", "bug", "stuck", "frustrating", "annoying", "annoyed",
    "stressed", "overwhelmed", "burnout", "exhausted", "tired", "overworked",
)
BURNOUT_PHRASES = (
    "overtime", "late night", "weekend work", "burnout", "exhausted", "overwhelmed",
    "too much", "can't handle", "breaking point", "stressed out", "no time", "overloaded",
)

SCORING_PROMPT = """Analyze this workplace Slack message for sentiment and burnout signals. Consider both text content and emoji reactions.

Message: "{message}"
Reactions: {reactions}

Analyze for:
1. Overall workplace sentiment (positive/neutral/negative)
2. Sentiment score (0.0-1.0, where 0.0 = very negative, 0.5 = neutral, 1.0 = very positive)
3. Confidence in analysis (0.0-1.0)
4. Burnout signals (excessive work hours mentions, stress indicators, overwhelm, frustration with workload)

Return ONLY valid JSON in this format:
{{"sentiment": "positive|neutral|negative", "score": 0.5, "confidence": 0.8, "burnoutSignals": false}}"""


@dataclass(frozen=True)
class SentimentResult:
    sentiment: SentimentLabel
    score: float
    confidence: float
    burnout_signals: bool

    source: ClassVar[str] = "unknown"


@dataclass(frozen=True)
class ModelScored(SentimentResult):
    source: ClassVar[str] = "model"


@dataclass(frozen=True)
class HeuristicScored(SentimentResult):
    source: ClassVar[str] = "heuristic"


def label_for_score(score: float) -> SentimentLabel:
    if score >= POSITIVE_THRESHOLD:
        return "positive"
    if score <= NEGATIVE_THRESHOLD:
        return "negative"
    return "neutral"


def blend_emoji(score: float, emoji_sentiment: float) -> float:
    return score * TEXT_WEIGHT + ((emoji_sentiment + 1) / 2) * EMOJI_WEIGHT


def build_scoring_prompt(text: str, reactions: Sequence[tuple[str, int]]) -> str:
    rendered = ", ".join(f"{emoji} ({count})" for emoji, count in reactions) or "none"
    return SCORING_PROMPT.format(message=text, reactions=rendered)


def parse_model_reply(raw: str) -> ModelSentimentPayload:
    return ModelSentimentPayload.model_validate(load_json_reply(raw))


def keyword_score(text: str) -> tuple[float, bool]:
    lowered = text.lower()
    score = 0.5
    burnout = False
    for word in POSITIVE_WORDS:
        if word in lowered:
            score += 0.1
    for word in NEGATIVE_WORDS:
        if word in lowered:
            score -= 0.1
    for phrase in BURNOUT_PHRASES:
        if phrase in lowered:
            score -= 0.15
            burnout = True
    return score, burnout


class MessageScorer:
    def __init__(
        self,
        llm: TextGenerator | None,
        emoji_table: EmojiSentimentTable | None = None,
        model: str | None = None,
    ):
        self.llm = llm
        self.emoji_table = emoji_table or get_emoji_table()
        self.model = model or get_settings().scoring_model

    def score(self, text: str, reactions: Sequence[tuple[str, int]] = ()) -> SentimentResult:
        if not text or len(text.strip()) < MIN_SCOREABLE_LENGTH:
            return HeuristicScored(sentiment="neutral", score=0.5, confidence=SHORT_TEXT_CONFIDENCE, burnout_signals=False)

        reactions = list(reactions)
        emoji_sentiment = self.emoji_table.reaction_sentiment(reactions)

        if self.llm is None:
            return self.fallback(text, emoji_sentiment)

        try:
            raw = self.llm.complete(build_scoring_prompt(text, reactions), model=self.model, max_tokens=200, temperature=0.1)
        except Exception as exc:  # any collaborator failure is routed to the heuristic
            logger.warning("Sentiment model call failed, using keyword fallback: %s", exc)
            return self.fallback(text, emoji_sentiment)

        try:
            payload = parse_model_reply(raw)
        except (ValueError, ValidationError) as exc:
            logger.warning("Unparseable sentiment model reply %r: %s", raw[:200], exc)
            return self.fallback(text, emoji_sentiment)

        score = payload.score
        if emoji_sentiment is not None and abs(emoji_sentiment) > EMOJI_BLEND_GATE:
            score = blend_emoji(score, emoji_sentiment)

        return ModelScored(
            sentiment=label_for_score(score),
            score=score,
            confidence=payload.confidence,
            burnout_signals=payload.burnoutSignals,
        )

    def fallback(self, text: str, emoji_sentiment: float | None) -> HeuristicScored:
        score, burnout = keyword_score(text)
        if emoji_sentiment is not None:
            score = blend_emoji(score, emoji_sentiment)
        score = max(0.0, min(1.0, score))
        return HeuristicScored(
            sentiment=label_for_score(score),
            score=score,
            confidence=FALLBACK_CONFIDENCE,
            burnout_signals=burnout,
        )
