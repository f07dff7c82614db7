import logging
from collections.abc import Sequence
from dataclasses import dataclass

from pydantic import ValidationError

from app.core.config import get_settings
from app.schemas.llm import WeeklyNarrativePayload, load_json_reply
from app.services.llm_client import TextGenerator

logger = logging.getLogger(__name__)

FALLBACK_INSIGHTS = (
    "Team sentiment data collected for analysis",
    "Communication patterns indicate normal workplace activity",
    "Regular monitoring will help identify trends over time",
)
FALLBACK_RECOMMENDATIONS = (
    "Continue monitoring team communication patterns",
    "Check in with team members during 1:1 meetings",
    "Maintain open channels for feedback and concerns",
)

NARRATIVE_PROMPT = """As a workplace wellness expert, analyze this weekly team sentiment data and provide actionable insights for managers.

Channel Data:
{table}

Provide:
1. Key insights about team mood and engagement patterns
2. Specific, actionable recommendations for managers

Return ONLY valid JSON:
{{"insights": ["insight1", "insight2", "insight3"], "recommendations": ["rec1", "rec2", "rec3"]}}"""


@dataclass(frozen=True)
class Narrative:
    insights: list[str]
    recommendations: list[str]
    generated: bool


def fallback_narrative() -> Narrative:
    return Narrative(list(FALLBACK_INSIGHTS), list(FALLBACK_RECOMMENDATIONS), generated=False)


def render_rollup_table(rollups: Sequence[dict]) -> str:
    return "\n".join(
        f"- {r['channel_name']}: {r['message_count']} messages, avg sentiment: {r['avg_sentiment']:.2f}, "
        f"burnout risk: {r['burnout_risk']:.2f}, trend: {r['trend']}"
        for r in rollups
    )


class WeeklyNarrator:
    def __init__(self, llm: TextGenerator | None, model: str | None = None):
        self.llm = llm
        self.model = model or get_settings().insights_model

    def generate(self, rollups: Sequence[dict]) -> Narrative:
        if self.llm is None:
            return fallback_narrative()
        prompt = NARRATIVE_PROMPT.format(table=render_rollup_table(rollups))
        try:
            raw = self.llm.complete(prompt, model=self.model, max_tokens=500, temperature=0.3)
        except Exception as exc:  # same treatment as a malformed reply
            logger.warning("Weekly insight generation failed, using fallback text: %s", exc)
            return fallback_narrative()
        try:
            payload = WeeklyNarrativePayload.model_validate(load_json_reply(raw))
        except (ValueError, ValidationError) as exc:
            logger.warning("Unparseable weekly insight reply: %s", exc)
            return fallback_narrative()
        return Narrative(payload.insights, payload.recommendations, generated=True)
