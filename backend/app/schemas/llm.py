import json
import re
from typing import Literal

from pydantic import BaseModel, Field, StrictBool

SentimentLabel = Literal["positive", "neutral", "negative"]

FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


class ModelSentimentPayload(BaseModel):
    sentiment: SentimentLabel
    score: float = Field(ge=0.0, le=1.0)
    confidence: float = Field(ge=0.0, le=1.0)
    burnoutSignals: StrictBool


class WeeklyNarrativePayload(BaseModel):
    insights: list[str] = Field(min_length=1)
    recommendations: list[str] = Field(min_length=1)


def load_json_reply(raw: str) -> object:
    """Parse a model reply that should be a bare JSON document.

    Raises ValueError (json.JSONDecodeError) for anything that is not JSON.
    """
    return json.loads(FENCE_RE.sub("", raw.strip()))
