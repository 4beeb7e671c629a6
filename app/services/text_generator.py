"""
Gemini text generation for seasons and missions.

Both renderers ask for a JSON object and raise TextGenerationError on any
unusable answer; callers own the fallback to default copy.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from langchain_core.prompts import PromptTemplate
from langchain_google_genai import ChatGoogleGenerativeAI

from app.config import Settings, get_settings
from app.core.exceptions import TextGenerationError
from app.services.arm_catalog import Dimension

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeasonNarrative:
    objective: str
    key_result: str
    strategy: str
    target_dimension: Dimension
    narrative_text: str = ""
    icon: Optional[str] = None
    color: Optional[str] = None


@dataclass(frozen=True)
class MissionText:
    action: str
    hint: str


SEASON_PROMPT = PromptTemplate.from_template("""
You are the strategy lead of a field-work company. Set the team OKR for the
next {season_weeks} weeks from the data below.

OPERATIONS (this month)
- Total sales: {total_sales}
- Active sites: {site_count}

QUANTITATIVE (org competency averages, 0-100)
- LU (learning & sharing): {lu}
- Q (quality & efficiency): {q}
- O (improvement & innovation): {o}

QUALITATIVE (recent team activity logs)
{team_logs}

Pick the ONE dimension (LU, Q or O) the team should focus on.
Reply with a single JSON object and nothing else:
{{"objective": "...", "keyResult": "...", "strategy": "...", "targetDim": "LU|Q|O",
  "message": "one encouraging sentence", "icon": "material icon name", "color": "#rrggbb"}}
""")


MISSION_PROMPT = PromptTemplate.from_template("""
You are a coach for field workers. Suggest a personal two-week mission.

FOCUS THEME: {focus} ({dimension})
THEME DETAIL: {description}

TEAM OKR
- Objective: {objective}
- Key Result: {key_result}
- Strategy: {strategy}

USER'S RECENT ACTIVITY
{recent_logs}

AVOID (missions this user previously rewrote, with their reasons)
{rejections}

Guidelines:
- One concrete, observable action
- Maximum 100 characters per field
- Positive tone, no jargon

Reply with a single JSON object and nothing else:
{{"action": "...", "hint": "..."}}
""")


def _content_to_text(content: Any) -> str:
    """Flatten a chat message content (string or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
        return "".join(parts)
    return str(content)


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse an LLM reply that should contain one JSON object, tolerating code fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
        cleaned = cleaned.strip()
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise TextGenerationError(f"Reply is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise TextGenerationError("Reply JSON is not an object")
    return data


class GeminiTextGenerator:
    """Renders season narratives and mission copy with Gemini."""

    def __init__(self, settings: Optional[Settings] = None, llm: Optional[Any] = None):
        self.settings = settings or get_settings()
        self._llm = llm

    def _get_llm(self):
        if self._llm is not None:
            return self._llm
        if not self.settings.google_api_key:
            raise TextGenerationError("GOOGLE_API_KEY is not configured")
        self._llm = ChatGoogleGenerativeAI(
            model=self.settings.gemini_model,
            google_api_key=self.settings.google_api_key,
            temperature=self.settings.gemini_temperature,
        )
        return self._llm

    async def _invoke_json(self, prompt: PromptTemplate, context: Dict[str, Any]) -> Dict[str, Any]:
        chain = prompt | self._get_llm()
        response = await chain.ainvoke(context)
        return parse_json_object(_content_to_text(getattr(response, "content", response)))

    def season_prompt_context(self, metrics: Dict[str, Any]) -> Dict[str, Any]:
        """Fill values for SEASON_PROMPT; missing metrics read as n/a."""
        ops_metrics = metrics.get("ops_metrics") or {}
        org_stats = metrics.get("org_stats") or {}
        team_logs = "\n".join(metrics.get("team_logs") or [])[:3000]

        total_sales = "n/a"
        if ops_metrics.get("total_sales") is not None:
            total_sales = f"{ops_metrics['total_sales']:,.0f}"

        return {
            "season_weeks": self.settings.season_length_days // 7,
            "total_sales": total_sales,
            "site_count": ops_metrics.get("site_count", "n/a"),
            "lu": org_stats.get("LU", "n/a"),
            "q": org_stats.get("Q", "n/a"),
            "o": org_stats.get("O", "n/a"),
            "team_logs": team_logs or "(no recent logs)",
        }

    async def render_season_narrative(self, metrics: Dict[str, Any]) -> SeasonNarrative:
        """
        Generate the season OKR from org metrics.

        Args:
            metrics: {"ops_metrics": {"total_sales": .., "site_count": ..},
                      "org_stats": {"LU": .., "Q": .., "O": ..}, "team_logs": [str, ...]}
        """
        data = await self._invoke_json(SEASON_PROMPT, self.season_prompt_context(metrics))

        if not data.get("objective"):
            raise TextGenerationError("Season reply has no objective")
        try:
            target = Dimension(str(data.get("targetDim", "")).upper())
        except ValueError as e:
            raise TextGenerationError(f"Season reply has invalid targetDim {data.get('targetDim')!r}") from e

        return SeasonNarrative(
            objective=str(data["objective"]),
            key_result=str(data.get("keyResult") or ""),
            strategy=str(data.get("strategy") or ""),
            target_dimension=target,
            narrative_text=str(data.get("message") or ""),
            icon=data.get("icon"),
            color=data.get("color"),
        )

    async def render_mission_text(
        self,
        arm_focus: str,
        arm_description: str,
        user_context: Dict[str, Any],
    ) -> MissionText:
        """
        Generate the action/hint pair for a selected arm.

        Args:
            arm_focus: Focus label of the selected arm
            arm_description: Longer description of the arm
            user_context: dimension, season OKR fields, recent_logs, rejections
        """
        recent_logs = user_context.get("recent_logs") or []
        rejections = user_context.get("rejections") or []

        data = await self._invoke_json(MISSION_PROMPT, {
            "focus": arm_focus,
            "dimension": user_context.get("dimension", ""),
            "description": arm_description,
            "objective": user_context.get("objective", ""),
            "key_result": user_context.get("key_result", ""),
            "strategy": user_context.get("strategy", ""),
            "recent_logs": "\n".join(recent_logs) or "(no activity logged yet)",
            "rejections": "\n".join(f"- {r}" for r in rejections) or "(none)",
        })

        if not data.get("action") or not data.get("hint"):
            raise TextGenerationError("Mission reply is missing action or hint")
        return MissionText(action=str(data["action"]), hint=str(data["hint"]))
