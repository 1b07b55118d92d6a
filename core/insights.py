"""
core.insights
End-of-campaign aggregation and the predicates built on top of it:
- final totals (spend, revenue, ROAS) + insight strings
- achievements
- in-game assistant recommendations
- chart series for the results dashboard
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .rng import RandomSource
from .state import FinalResults, GameState, Phase, safe_div

INSIGHT_UNPROFITABLE = "Your campaign is currently unprofitable. Consider optimizing ad targeting and reducing acquisition costs."
INSIGHT_PROFITABLE = "Your campaign is profitable! Focus on scaling while maintaining efficiency."
INSIGHT_LOW_RETENTION = "Low retention rates are affecting your revenue. Consider improving user engagement strategies."
INSIGHT_LOW_ARPDAU = "Your ARPDAU is below industry average. Test different monetization strategies to improve revenue."

LOW_D7_THRESHOLD = 20.0
LOW_ARPDAU_THRESHOLD = 0.10


def build_insights(roas: float, d7: float, arpdau: float) -> Tuple[str, ...]:
    out: List[str] = []
    out.append(INSIGHT_UNPROFITABLE if roas < 1 else INSIGHT_PROFITABLE)
    if d7 < LOW_D7_THRESHOLD:
        out.append(INSIGHT_LOW_RETENTION)
    if arpdau < LOW_ARPDAU_THRESHOLD:
        out.append(INSIGHT_LOW_ARPDAU)
    return tuple(out)


def compute_final_results(state: GameState) -> FinalResults:
    """Aggregate committed phase results (pure; same state -> same output)."""
    total_spend = float(state.budget)
    total_revenue = float(state.phase3_results.ad_revenue) + float(state.phase3_results.iap_revenue)
    roas = round(safe_div(total_revenue, total_spend), 2)
    insights = build_insights(
        roas,
        float(state.phase2_results.retention_rates.d7),
        float(state.phase3_results.arpdau),
    )
    return FinalResults(
        total_spend=total_spend,
        total_revenue=total_revenue,
        roas=roas,
        insights=insights,
        committed=True,
    )


def is_profitable(roas: float) -> bool:
    return roas >= 1.0


# -------------------------
# Dashboard series
# -------------------------

# Per-format CTR/CVR are sampled (percent), the campaign only commits blended rates.
CREATIVE_CTR_RANGE = (2.0, 7.0)
CREATIVE_CVR_RANGE = (1.0, 4.0)


def retention_curve(state: GameState) -> Dict[str, List]:
    r = state.phase2_results.retention_rates
    return {"day": ["D1", "D7", "D30"], "rate": [float(r.d1), float(r.d7), float(r.d30)]}


def creative_performance(state: GameState, rng: RandomSource) -> Dict[str, List]:
    formats = list(state.creative_selection.formats)
    return {
        "format": formats,
        "ctr": [round(rng.uniform(*CREATIVE_CTR_RANGE), 2) for _ in formats],
        "cvr": [round(rng.uniform(*CREATIVE_CVR_RANGE), 2) for _ in formats],
    }


def revenue_split(state: GameState) -> Dict[str, List]:
    p3 = state.phase3_results
    return {"source": ["Ad Revenue", "IAP Revenue"], "revenue": [float(p3.ad_revenue), float(p3.iap_revenue)]}


def revenue_share(state: GameState) -> Tuple[float, float]:
    """(ad, iap) shares of total revenue; (0, 0) when nothing was earned."""
    ad, iap = revenue_split(state)["revenue"]
    total = ad + iap
    return safe_div(ad, total), safe_div(iap, total)


# -------------------------
# Achievements
# -------------------------


@dataclass(frozen=True)
class AchievementSnapshot:
    roas: float = 0.0
    d7: float = 0.0
    arpdau: float = 0.0
    ctr: float = 0.0
    session_length: float = 0.0

    @staticmethod
    def from_state(state: GameState) -> "AchievementSnapshot":
        return AchievementSnapshot(
            roas=float(state.final_results.roas),
            d7=float(state.phase2_results.retention_rates.d7),
            arpdau=float(state.phase3_results.arpdau),
            ctr=float(state.phase1_results.ctr),
            session_length=float(state.phase2_results.session_length),
        )


@dataclass(frozen=True)
class Achievement:
    id: str
    title: str
    description: str
    icon: str
    condition: Callable[[AchievementSnapshot], bool]


ACHIEVEMENTS: Tuple[Achievement, ...] = (
    Achievement("roas_rookie", "ROAS Rookie", "Achieve a ROAS above 1.0", "🎯", lambda s: s.roas >= 1.0),
    Achievement("retention_master", "Retention Master", "Achieve Day-7 Retention above 30%", "🌟", lambda s: s.d7 >= 30.0),
    Achievement("monetization_pro", "Ad Monetization Pro", "Generate ARPDAU greater than $0.50", "💰", lambda s: s.arpdau >= 0.50),
    Achievement("creative_genius", "Creative Genius", "Achieve CTR above 5%", "🎨", lambda s: s.ctr >= 0.05),
    Achievement("engagement_expert", "Engagement Expert", "Achieve session length above 20 minutes", "⏱️", lambda s: s.session_length >= 20.0),
)


def unlocked_achievements(snapshot: AchievementSnapshot) -> List[Achievement]:
    return [a for a in ACHIEVEMENTS if a.condition(snapshot)]


# -------------------------
# Assistant recommendations
# -------------------------


@dataclass(frozen=True)
class Recommendation:
    id: str
    message: str
    icon: str
    condition: Callable[[GameState], bool]


def _narrow_age_range(s: GameState) -> bool:
    lo, hi = s.audience_targeting.age_range or (18, 84)
    return (hi - lo) < 20


RECOMMENDATIONS: Dict[Phase, Tuple[Recommendation, ...]] = {
    Phase.ACQUISITION: (
        Recommendation("high_cpi", "Your CPI is high. Try adjusting your bidding strategy or testing different ad formats.", "💰",
                       lambda s: s.phase1_results.cpi > 2.5),
        Recommendation("low_ctr", "Your CTR is low. Try different creative formats or target audiences that might be more interested in your app.", "🎯",
                       lambda s: s.phase1_results.committed and s.phase1_results.ctr < 0.018),
        Recommendation("poor_targeting", "Broader audience targeting might help you find more potential users. Consider selecting additional interests.", "👥",
                       lambda s: len(s.audience_targeting.interests) < 3),
        Recommendation("high_budget_low_roi", "High budget but low ROI. Consider optimizing your targeting before increasing spend.", "📊",
                       lambda s: s.budget > 1500 and s.phase1_results.cpi > 2.0),
        Recommendation("narrow_age_range", "Your age targeting might be too narrow. Consider expanding to reach more potential users.", "🎲",
                       _narrow_age_range),
    ),
    Phase.RETENTION: (
        Recommendation("poor_retention", "Your Day 7 retention is low. Consider improving user engagement with more frequent content updates.", "📊",
                       lambda s: s.phase2_results.committed and s.phase2_results.retention_rates.d7 < 20),
        Recommendation("excessive_notifications", "Frequent notifications might be overwhelming users. Consider reducing frequency to improve retention.", "🔔",
                       lambda s: s.retention_strategy.notification_frequency == "frequent"),
        Recommendation("low_engagement", "Short session lengths indicate low engagement. Try adding more engaging content or special events.", "⏱️",
                       lambda s: s.phase2_results.committed and s.phase2_results.session_length < 10),
    ),
    Phase.MONETIZATION: (
        Recommendation("low_arpdau", "Your ARPDAU is below industry average. Consider optimizing your ad placement or IAP pricing strategy.", "💰",
                       lambda s: s.phase3_results.committed and s.phase3_results.arpdau < 0.10),
        Recommendation("ad_fatigue", "High ad frequency might be causing user fatigue. Consider balancing ad frequency with user experience.", "😴",
                       lambda s: s.monetization_strategy.ad_frequency == "high"),
        Recommendation("missed_revenue", "Rewarded video ads often have high engagement. Consider adding them to your monetization strategy.", "🎥",
                       lambda s: "rewarded" not in s.monetization_strategy.ad_formats),
    ),
}


def eligible_recommendations(phase: Phase, state: GameState, dismissed: Sequence[str] = ()) -> List[Recommendation]:
    skip = set(dismissed)
    return [r for r in RECOMMENDATIONS.get(phase, ()) if r.id not in skip and r.condition(state)]


def pick_recommendation(
    phase: Phase,
    state: GameState,
    rng: RandomSource,
    dismissed: Sequence[str] = (),
) -> Optional[Recommendation]:
    eligible = eligible_recommendations(phase, state, dismissed)
    if not eligible:
        return None
    return rng.choice(eligible)


# Reference values shown next to the strategy-simulator preview.
PREVIEW_TARGETS: Dict[Phase, Dict[str, float]] = {
    Phase.ACQUISITION: {"ctr": 0.05, "cpi": 1.50},
    Phase.RETENTION: {"d1": 30.0, "d7": 18.0},
    Phase.MONETIZATION: {"arpdau": 0.85, "fill_rate": 0.90, "roas": 0.75},
}
