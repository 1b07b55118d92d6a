"""content.prompts

Prompt builders for the campaign debrief.

The model never sees formulas and never produces numbers we rely on; it gets
a finished campaign described in words and plain metrics and writes the
coaching text.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

from .schemas import ALLOWED_FOCUS


def _bucket(x: float, lo: float, hi: float) -> str:
    if x <= lo:
        return "weak"
    if x >= hi:
        return "strong"
    return "average"


def describe_metrics(metrics: Mapping[str, Any]) -> str:
    """One-line verbal read of the campaign KPIs."""
    roas = float(metrics.get("roas", 0.0))
    cpi = float(metrics.get("cpi", 0.0))
    ctr = float(metrics.get("ctr", 0.0))
    d7 = float(metrics.get("retention_d7", 0.0))
    arpdau = float(metrics.get("arpdau", 0.0))

    roas_s = "profitable" if roas >= 1.0 else ("close to break-even" if roas >= 0.7 else "losing money")
    cpi_s = "cheap" if cpi < 1.0 else ("expensive" if cpi > 1.5 else "market rate")

    return (
        f"Overall: {roas_s}. "
        f"Installs are {cpi_s}. "
        f"Creative click-through: {_bucket(ctr, 0.02, 0.05)}. "
        f"Day-7 retention: {_bucket(d7, 15.0, 30.0)}. "
        f"Revenue per daily user: {_bucket(arpdau, 0.10, 0.50)}."
    )


def build_debrief_prompt(
    *,
    genre: str,
    budget: float,
    metrics: Mapping[str, Any],
    strategies: Mapping[str, Any],
    insights: Sequence[str] = (),
    events: Sequence[str] = (),
) -> str:
    """Build the debrief prompt. The model MUST reply with JSON only."""

    allowed_focus = "|".join(sorted(ALLOWED_FOCUS))
    insight_lines = "\n".join(f"- {x}" for x in insights) or "- (none)"
    event_lines = ", ".join(events) or "none"

    return f"""
You are a senior mobile user-acquisition coach reviewing a trainee's simulated campaign.

Campaign:
- App genre: {genre or "(unknown)"}
- Budget: ${float(budget):,.0f}
- Read: {describe_metrics(metrics)}
- Raw metrics: ROAS {float(metrics.get("roas", 0.0)):.2f}, CPI ${float(metrics.get("cpi", 0.0)):.2f}, D7 {float(metrics.get("retention_d7", 0.0)):.1f}%, ARPDAU ${float(metrics.get("arpdau", 0.0)):.3f}
- Targeting: {strategies.get("audience")}
- Creatives: {strategies.get("creatives")}
- Bidding: {strategies.get("bidding")}
- Retention plan: {strategies.get("retention")}
- Monetization plan: {strategies.get("monetization")}
- Market events: {event_lines}

Engine insights:
{insight_lines}

Task:
1) Write a one-line "headline" that names the campaign's defining result.
2) Write a "summary" of 2-3 short paragraphs explaining why the numbers came out this way.
3) Pick the single phase to fix first as "focus" (only: {allowed_focus}).
4) Give 3-5 concrete "next_steps" for the next campaign.
5) Optional: a one-sentence "lesson" and up to 3 "risks".

Do not invent metrics that are not listed above.

OUTPUT: JSON ONLY (no markdown, no extra text).

JSON SCHEMA:
{{
  "headline": "string (>= 6 chars)",
  "summary": "string (>= 120 chars)",
  "focus": "{allowed_focus}",
  "next_steps": ["string", "string", "string"],
  "lesson": "string (optional)",
  "risks": ["string"]
}}
""".strip()


def build_json_repair_prompt(broken_text: str) -> str:
    broken_text = str(broken_text or "")
    return f"""The text below contains broken JSON. Return ONLY valid JSON.
- No comments, no markdown.
- Keep the field names; only fix the syntax.
- Fix missing commas, quotes and brackets.

BROKEN TEXT:
{broken_text}
""".strip()
