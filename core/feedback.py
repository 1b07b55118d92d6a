"""
core.feedback
Coaching-tip selection.

Categories are weighted by whether the matching metric looks weak, then
2-3 distinct messages are sampled. Weights do not have to sum to 1: each
roll is drawn over the total weight, so every roll lands on a category.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .balance import DEFAULT_BALANCE, BalanceTable
from .rng import RandomSource

# Walk order for the cumulative-weight roll.
CATEGORY_ORDER: Tuple[str, ...] = (
    "CTR_LOW",
    "AUDIENCE_BROAD",
    "CREATIVE_PERFORMANCE",
    "RETENTION",
    "MONETIZATION",
    "POSITIVE",
)

FEEDBACK_POOLS: Dict[str, Tuple[str, ...]] = {
    "CTR_LOW": (
        "Your CTR is underperforming. Try increasing your video ad share for better engagement.",
        "Users aren't clicking enough. Consider adding more attractive creative formats.",
        "Your CTR is low. Have you considered switching to a different geo or adjusting creative tone?",
        "Try A/B testing creative styles to improve CTR.",
        "CTR might improve with more audience-specific messaging. Try adjusting ad copy.",
    ),
    "AUDIENCE_BROAD": (
        "Consider expanding your target age group to increase reach.",
        "Your audience targeting is too narrow. Try adding another interest for better scale.",
        "Expanding audience targeting could reduce CPI and increase installs.",
        "Consider testing different audience segments for better CTR.",
        "Reaching more users might improve ad efficiency and lower CPI.",
    ),
    "CREATIVE_PERFORMANCE": (
        "Video ads are outperforming banners. Consider increasing video split.",
        "Playable ads are delivering higher CVR. Consider using more playable formats.",
        "Static banners aren't performing well. Switch to video or interactive formats.",
        "Interactive ads show better engagement. Try increasing their share.",
        "Consider testing new creative variations to improve performance.",
    ),
    "RETENTION": (
        "Retention dropped after D1. Try increasing push notification frequency.",
        "Engagement might improve with more frequent content updates.",
        "Users are churning too early. Try reducing ad frequency to improve session length.",
        "Consider adding more engaging features to improve retention.",
        "Try implementing a daily reward system to boost retention.",
    ),
    "MONETIZATION": (
        "ARPDAU is underperforming. Consider increasing rewarded ad frequency.",
        "Interstitial ads might be too frequent. Try reducing to improve retention.",
        "IAP revenue could increase with better pricing tiers.",
        "Try optimizing ad placement to improve viewability.",
        "Consider implementing dynamic pricing for IAPs.",
    ),
    "POSITIVE": (
        "Nice work! Your video ad split is driving high CTR.",
        "Your retention is strong. Keep up the engagement!",
        "Great work. ROAS is improving with the current ad format strategy.",
        "Excellent balance of ad formats and frequency!",
        "Your monetization strategy is showing great results!",
    ),
}

MIN_MESSAGES = 2
MAX_MESSAGES = 3
MAX_ATTEMPTS = 32


@dataclass(frozen=True)
class FeedbackMetrics:
    """Metrics snapshot; a missing value never triggers its category."""

    ctr: Optional[float] = None
    cvr: Optional[float] = None
    cpi: Optional[float] = None
    d7: Optional[float] = None       # percent
    arpdau: Optional[float] = None
    roas: Optional[float] = None


def _below(value: Optional[float], threshold: float) -> bool:
    return value is not None and value < threshold


def _above(value: Optional[float], threshold: float) -> bool:
    return value is not None and value > threshold


def category_weights(m: FeedbackMetrics, balance: BalanceTable = DEFAULT_BALANCE) -> Dict[str, float]:
    return {
        "CTR_LOW": 0.4 if _below(m.ctr, balance.ctr_floor) else 0.1,
        "AUDIENCE_BROAD": 0.3 if _above(m.cpi, balance.base_cpi) else 0.1,
        "CREATIVE_PERFORMANCE": 0.3 if _below(m.cvr, 0.08) else 0.1,
        "RETENTION": 0.4 if _below(m.d7, balance.retention_start[1]) else 0.1,
        "MONETIZATION": 0.4 if _below(m.arpdau, 0.5) else 0.1,
        "POSITIVE": 0.5 if _above(m.roas, 0.7) else 0.2,
    }


def _pick_category(weights: Dict[str, float], roll: float) -> str:
    cumulative = 0.0
    for cat in CATEGORY_ORDER:
        cumulative += weights[cat]
        if roll < cumulative:
            return cat
    return CATEGORY_ORDER[-1]


def select_feedback(
    metrics: FeedbackMetrics,
    rng: RandomSource,
    balance: BalanceTable = DEFAULT_BALANCE,
) -> List[str]:
    """Return 2-3 unique coaching messages, biased toward weak metrics."""
    weights = category_weights(metrics, balance)
    total = sum(weights.values())
    target = MIN_MESSAGES if rng.random() < 0.5 else MAX_MESSAGES

    picked: List[str] = []
    for _ in range(MAX_ATTEMPTS):
        if len(picked) >= target:
            break
        cat = _pick_category(weights, rng.random() * total)
        message = rng.choice(FEEDBACK_POOLS[cat])
        if message not in picked:
            picked.append(message)
    return picked
