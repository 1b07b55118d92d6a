"""
core.formulas
Metric formulas for the three campaign phases:
- acquisition: CTR/CVR draws, format synergy, age-bracket + genre CPI
- retention: tiered bonuses, genre floor, clamp, DAU
- monetization: fill rate, eCPM, ad + IAP revenue, ARPDAU, ROAS

Pure functions of their inputs plus the injected random source.
All constants come from core.balance.BalanceTable.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from .balance import CREATIVE_FORMATS, DEFAULT_BALANCE, NEUTRAL_GENRE, BalanceTable, GenreMetrics, get_age_bracket
from .feedback import FeedbackMetrics, select_feedback
from .rng import RandomSource
from .state import Phase1Results, clamp, safe_div


@dataclass(frozen=True)
class AcquisitionOutcome:
    ctr: float
    cvr: float
    cpi: float
    installs: int
    video_share: float = 0.0
    feedback: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ctr": float(self.ctr),
            "cvr": float(self.cvr),
            "cpi": float(self.cpi),
            "installs": int(self.installs),
            "video_share": float(self.video_share),
            "feedback": list(self.feedback),
        }


@dataclass(frozen=True)
class RetentionOutcome:
    d1: float
    d7: float
    d30: float
    dau: int
    session_length: float = 0.0
    feedback: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "d1": float(self.d1),
            "d7": float(self.d7),
            "d30": float(self.d30),
            "dau": int(self.dau),
            "session_length": float(self.session_length),
            "feedback": list(self.feedback),
        }


@dataclass(frozen=True)
class MonetizationOutcome:
    fill_rate: float
    ecpm: float
    ad_revenue: float
    iap_revenue: float
    arpdau: float
    roas: float
    feedback: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fill_rate": float(self.fill_rate),
            "ecpm": float(self.ecpm),
            "ad_revenue": float(self.ad_revenue),
            "iap_revenue": float(self.iap_revenue),
            "arpdau": float(self.arpdau),
            "roas": float(self.roas),
            "feedback": list(self.feedback),
        }


# -------------------------
# Genre caps
# -------------------------


def genre_cpi_multiplier(genre: Optional[GenreMetrics], balance: BalanceTable = DEFAULT_BALANCE) -> float:
    """Genre can raise CPI by at most the cap (default +20%)."""
    g = genre or NEUTRAL_GENRE
    return min(float(g.cpi), balance.genre_cpi_cap)


def genre_floor(value: float, balance: BalanceTable = DEFAULT_BALANCE) -> float:
    """Genre can cut retention/revenue by at most 20%."""
    return max(float(value), balance.genre_floor)


def video_share(formats: Sequence[str]) -> float:
    formats = list(formats or [])
    videos = sum(1 for f in formats if f in CREATIVE_FORMATS and CREATIVE_FORMATS[f].is_video)
    return safe_div(videos, len(formats))


# -------------------------
# Acquisition
# -------------------------


def simulate_acquisition(
    budget: float,
    age_group: Optional[str],
    interests: Iterable[str],
    formats: Sequence[str],
    genre_metrics: Optional[GenreMetrics],
    rng: RandomSource,
    balance: BalanceTable = DEFAULT_BALANCE,
) -> AcquisitionOutcome:
    """Interests are accepted with the rest of the audience but do not move any rate."""
    lo, hi = balance.ctr_range
    ctr = rng.uniform(lo, hi)
    lo, hi = balance.cvr_range
    cvr = rng.uniform(lo, hi)

    share = video_share(formats)
    if share >= balance.video_share_threshold:
        ctr *= balance.video_ctr_bonus
        cvr *= balance.video_cvr_bonus

    bracket = get_age_bracket(age_group or "", balance)
    cpi = balance.base_cpi * bracket.cpi
    cpi *= genre_cpi_multiplier(genre_metrics, balance)

    ctr = max(ctr, balance.ctr_floor)

    if float(budget) <= 0:
        installs = 0
    else:
        installs = int(math.floor(safe_div(float(budget), cpi) * ctr * cvr))
    installs = max(0, installs)

    feedback = select_feedback(FeedbackMetrics(ctr=ctr, cvr=cvr, cpi=cpi), rng, balance)
    return AcquisitionOutcome(ctr=ctr, cvr=cvr, cpi=cpi, installs=installs, video_share=share, feedback=feedback)


def to_phase1_results(outcome: AcquisitionOutcome, budget: float) -> Phase1Results:
    """Derive the funnel (impressions -> clicks -> installs) from the rates."""
    clicks = int(math.ceil(safe_div(outcome.installs, outcome.cvr)))
    impressions = int(math.ceil(safe_div(clicks, outcome.ctr)))
    return Phase1Results(
        impressions=impressions,
        clicks=clicks,
        ctr=float(outcome.ctr),
        installs=int(outcome.installs),
        cvr=float(outcome.cvr),
        cpi=float(outcome.cpi),
        spend=float(budget),
        committed=True,
    )


# -------------------------
# Retention
# -------------------------


def simulate_retention(
    installs: int,
    notification_frequency: Optional[str],
    content_updates: Optional[str],
    special_events: Optional[bool],
    genre_metrics: Optional[GenreMetrics],
    rng: RandomSource,
    balance: BalanceTable = DEFAULT_BALANCE,
    engagement_spend: Optional[str] = None,
) -> RetentionOutcome:
    d1, d7, d30 = balance.retention_start

    n1, n7, n30 = balance.notification_bonus.get(str(notification_frequency), (1.0, 1.0, 1.0))
    d1, d7, d30 = d1 * n1, d7 * n7, d30 * n30

    c1, c7, c30 = balance.content_bonus.get(str(content_updates), (1.0, 1.0, 1.0))
    d1, d7, d30 = d1 * c1, d7 * c7, d30 * c30

    if special_events:
        s1, s7, s30 = balance.special_events_bonus
        d1, d7, d30 = d1 * s1, d7 * s7, d30 * s30

    g = genre_metrics or NEUTRAL_GENRE
    d1 *= genre_floor(g.retention_d1, balance)
    d7 *= genre_floor(g.retention_d7, balance)
    d30 *= genre_floor(g.retention_d30, balance)

    lo, hi = balance.retention_floor, balance.retention_ceiling
    d1, d7, d30 = clamp(d1, lo, hi), clamp(d7, lo, hi), clamp(d30, lo, hi)

    dau = max(0, int(math.floor(max(0, int(installs)) * (d7 / 100.0) * balance.dau_bonus)))

    session = balance.session_length_base
    session *= balance.session_content_multiplier.get(str(content_updates), 1.0)
    session *= balance.session_engagement_multiplier.get(str(engagement_spend), 1.0)
    session *= genre_floor(g.session_length, balance)

    feedback = select_feedback(FeedbackMetrics(d7=d7), rng, balance)
    return RetentionOutcome(d1=d1, d7=d7, d30=d30, dau=dau, session_length=session, feedback=feedback)


# -------------------------
# Monetization
# -------------------------


def promotions_enabled(promotional_offers: Union[str, bool, None]) -> bool:
    if isinstance(promotional_offers, bool):
        return promotional_offers
    return str(promotional_offers or "none").lower() != "none"


def effective_ecpm(ad_formats: Iterable[str], ad_frequency: Optional[str], balance: BalanceTable = DEFAULT_BALANCE) -> float:
    ecpm = balance.base_ecpm
    for fmt in sorted(set(ad_formats or ())):
        ecpm *= balance.ad_format_ecpm.get(str(fmt), 1.0)
    ecpm *= balance.ad_frequency_ecpm.get(str(ad_frequency), 1.0)
    return ecpm


def projected_roas(arpdau: float, balance: BalanceTable = DEFAULT_BALANCE) -> float:
    """30-day ROAS projection from ARPDAU, never below the floor."""
    return max(float(arpdau) * balance.roas_horizon_days / balance.base_cpi, balance.roas_floor)


def simulate_monetization(
    dau: int,
    ad_frequency: Optional[str],
    ad_formats: Iterable[str],
    iap_pricing: Optional[str],
    promotional_offers: Union[str, bool, None],
    genre_metrics: Optional[GenreMetrics],
    rng: RandomSource,
    balance: BalanceTable = DEFAULT_BALANCE,
) -> MonetizationOutcome:
    """Zero DAU yields zero revenue, zero ARPDAU and the ROAS floor."""
    lo, hi = balance.fill_rate_range
    fill_rate = rng.uniform(lo, hi)
    ecpm = effective_ecpm(ad_formats, ad_frequency, balance)

    users = max(0, int(dau))
    per_user = balance.impressions_per_user.get(str(ad_frequency), 0.0)
    ad_revenue = users * per_user * fill_rate * (ecpm / 1000.0)

    conversion, price = balance.iap_tiers.get(str(iap_pricing), (0.0, 0.0))
    iap_revenue = users * conversion * price
    if promotions_enabled(promotional_offers):
        iap_revenue *= balance.promo_boost

    g = genre_metrics or NEUTRAL_GENRE
    ad_revenue *= genre_floor(g.ad_revenue, balance)
    iap_revenue *= genre_floor(g.iap_revenue, balance)

    arpdau = safe_div(ad_revenue + iap_revenue, users)
    roas = projected_roas(arpdau, balance)

    feedback = select_feedback(FeedbackMetrics(arpdau=arpdau, roas=roas), rng, balance)
    return MonetizationOutcome(
        fill_rate=fill_rate,
        ecpm=ecpm,
        ad_revenue=ad_revenue,
        iap_revenue=iap_revenue,
        arpdau=arpdau,
        roas=roas,
        feedback=feedback,
    )
