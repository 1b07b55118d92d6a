"""content.schemas

Contract for the optional AI campaign debrief.

Design choice:
We keep the numbers OUT of the LLM. The engine computes every metric; the
model only writes a short coaching narrative on top of a finished campaign.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

ALLOWED_FOCUS = {"acquisition", "retention", "monetization", "overall"}


def normalize_focus(focus: Any, default: str = "overall") -> str:
    f = str(focus or "").strip().lower()
    if f in ALLOWED_FOCUS:
        return f
    aliases = {
        "ua": "acquisition",
        "user acquisition": "acquisition",
        "engagement": "retention",
        "revenue": "monetization",
        "ads": "monetization",
    }
    return aliases.get(f, default)


def normalize_steps(steps: Any) -> List[str]:
    if steps is None:
        return []
    if isinstance(steps, str):
        parts = [x.strip(" -•\t") for x in steps.splitlines()]
        return [p for p in parts if p]
    if isinstance(steps, list):
        return [str(x).strip() for x in steps if str(x or "").strip()]
    return [str(steps).strip()] if str(steps).strip() else []


@dataclass(frozen=True)
class CampaignDebrief:
    """Narrative-only post-campaign review returned by the LLM."""

    headline: str
    summary: str
    focus: str
    next_steps: List[str]
    lesson: str = ""
    risks: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "headline": self.headline,
            "summary": self.summary,
            "focus": self.focus,
            "next_steps": list(self.next_steps),
            "lesson": self.lesson,
            "risks": list(self.risks),
        }


def validate_debrief(d: CampaignDebrief) -> None:
    if len((d.headline or "").strip()) < 6:
        raise ValueError("debrief.headline too short")
    if len((d.summary or "").strip()) < 120:
        raise ValueError("debrief.summary too short (>=120 chars)")
    if normalize_focus(d.focus) not in ALLOWED_FOCUS:
        raise ValueError("debrief.focus invalid")
    if not 2 <= len(list(d.next_steps or [])) <= 5:
        raise ValueError("debrief.next_steps must hold 2-5 items")


def debrief_from_llm(data: Mapping[str, Any]) -> CampaignDebrief:
    """Parse and validate the model's JSON into a CampaignDebrief."""
    d = CampaignDebrief(
        headline=str(data.get("headline") or data.get("title") or "").strip(),
        summary=str(data.get("summary", "") or "").strip(),
        focus=normalize_focus(data.get("focus")),
        next_steps=normalize_steps(data.get("next_steps") or data.get("steps"))[:5],
        lesson=str(data.get("lesson", "") or "").strip(),
        risks=normalize_steps(data.get("risks", [])),
    )
    validate_debrief(d)
    return d
