"""
core.balance
Game-balance constants and static catalogs.

Every tunable number of the formula library lives in `BalanceTable` so
balancing happens in one place; the UI reads the catalogs for labels.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple


@dataclass(frozen=True)
class AgeBracket:
    key: str
    cpi: float
    retention: float
    monetization: float


@dataclass(frozen=True)
class GenreMetrics:
    """Multiplier bundle applied across all three phases."""

    cpi: float
    retention_d1: float
    retention_d7: float
    retention_d30: float
    ad_revenue: float
    iap_revenue: float
    session_length: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "cpi": float(self.cpi),
            "retention_d1": float(self.retention_d1),
            "retention_d7": float(self.retention_d7),
            "retention_d30": float(self.retention_d30),
            "ad_revenue": float(self.ad_revenue),
            "iap_revenue": float(self.iap_revenue),
            "session_length": float(self.session_length),
        }


NEUTRAL_GENRE = GenreMetrics(
    cpi=1.0,
    retention_d1=1.0,
    retention_d7=1.0,
    retention_d30=1.0,
    ad_revenue=1.0,
    iap_revenue=1.0,
    session_length=1.0,
)


@dataclass(frozen=True)
class GenreSpec:
    key: str
    desc: str
    icon: str
    metrics: GenreMetrics
    power_ups: Tuple[str, ...] = ()
    power_downs: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CreativeFormat:
    key: str
    is_video: bool


@dataclass(frozen=True)
class AdFormat:
    key: str
    name: str
    desc: str


@dataclass(frozen=True)
class BiddingStrategy:
    key: str
    desc: str
    market_rate: str


@dataclass(frozen=True)
class BalanceTable:
    """Authoritative tuning table (the later, more forgiving balance pass)."""

    base_cpi: float = 1.20
    base_ecpm: float = 14.00

    # acquisition
    ctr_range: Tuple[float, float] = (0.03, 0.09)
    cvr_range: Tuple[float, float] = (0.10, 0.15)
    video_share_threshold: float = 0.60
    video_ctr_bonus: float = 1.40
    video_cvr_bonus: float = 1.30
    genre_cpi_cap: float = 1.20
    ctr_floor: float = 0.02
    default_age_bracket: str = "25-34"

    # retention (percentages)
    retention_start: Tuple[float, float, float] = (35.0, 22.0, 15.0)
    retention_floor: float = 8.0
    retention_ceiling: float = 100.0
    notification_bonus: Dict[str, Tuple[float, float, float]] = field(
        default_factory=lambda: {
            "none": (1.0, 1.0, 1.0),
            "occasional": (1.15, 1.12, 1.10),
            "frequent": (1.30, 1.25, 1.20),
        }
    )
    content_bonus: Dict[str, Tuple[float, float, float]] = field(
        default_factory=lambda: {
            "rare": (1.0, 1.0, 1.0),
            "regular": (1.0, 1.15, 1.20),
            "frequent": (1.0, 1.30, 1.35),
        }
    )
    special_events_bonus: Tuple[float, float, float] = (1.0, 1.25, 1.30)
    genre_floor: float = 0.80
    dau_bonus: float = 1.20

    # session length (minutes)
    session_length_base: float = 15.0
    session_content_multiplier: Dict[str, float] = field(
        default_factory=lambda: {"rare": 0.7, "regular": 1.0, "frequent": 1.3}
    )
    session_engagement_multiplier: Dict[str, float] = field(
        default_factory=lambda: {"low": 0.9, "medium": 1.1, "high": 1.3}
    )

    # monetization
    fill_rate_range: Tuple[float, float] = (0.85, 1.00)
    ad_format_ecpm: Dict[str, float] = field(
        default_factory=lambda: {"rewarded": 1.3, "interstitial": 1.2, "banner": 0.8}
    )
    ad_frequency_ecpm: Dict[str, float] = field(
        default_factory=lambda: {"low": 0.7, "medium": 1.0, "high": 1.2}
    )
    impressions_per_user: Dict[str, float] = field(
        default_factory=lambda: {"low": 3.0, "medium": 6.0, "high": 10.0}
    )
    # (conversion rate, price point)
    iap_tiers: Dict[str, Tuple[float, float]] = field(
        default_factory=lambda: {
            "low": (0.18, 1.99),
            "medium": (0.12, 4.99),
            "high": (0.07, 9.99),
        }
    )
    promo_boost: float = 1.35
    roas_horizon_days: float = 30.0
    roas_floor: float = 0.5

    # variance
    variance_range: Tuple[float, float] = (0.05, 0.15)


DEFAULT_BALANCE = BalanceTable()


AGE_BRACKETS: Dict[str, AgeBracket] = {
    "18-24": AgeBracket("18-24", cpi=0.85, retention=1.3, monetization=0.7),
    "25-34": AgeBracket("25-34", cpi=0.95, retention=1.2, monetization=0.9),
    "35-44": AgeBracket("35-44", cpi=1.10, retention=1.1, monetization=1.2),
    "45-54": AgeBracket("45-54", cpi=1.20, retention=1.0, monetization=1.4),
    "55-64": AgeBracket("55-64", cpi=1.30, retention=0.9, monetization=1.5),
    "65-84+": AgeBracket("65-84+", cpi=1.40, retention=0.8, monetization=1.6),
}


def get_age_bracket(key: str, balance: BalanceTable = DEFAULT_BALANCE) -> AgeBracket:
    return AGE_BRACKETS.get(str(key or ""), AGE_BRACKETS[balance.default_age_bracket])


def bracket_for_range(lo: int, hi: int) -> str:
    """Bracket key containing the midpoint of an age-range slider."""
    mid = (int(lo) + int(hi)) / 2.0
    for key in AGE_BRACKETS:
        start = int(key.split("-")[0])
        end = key.split("-")[1].rstrip("+")
        if start <= mid <= int(end) + 0.999:
            return key
    return "65-84+" if mid > 64 else "18-24"


GENRES: Dict[str, GenreSpec] = {
    "Casual Game": GenreSpec(
        key="Casual Game",
        desc="High install rates, strong ad monetization potential, shorter sessions",
        icon="🎮",
        metrics=GenreMetrics(cpi=0.8, retention_d1=1.2, retention_d7=0.9, retention_d30=0.7, ad_revenue=1.2, iap_revenue=0.8, session_length=0.8),
        power_ups=("+10% Installs (Viral Effect)", "+5% CTR for Video Ads"),
        power_downs=("-5% Retention (Short Sessions)",),
    ),
    "Social App": GenreSpec(
        key="Social App",
        desc="High engagement, moderate acquisition costs, strong viral potential",
        icon="👥",
        metrics=GenreMetrics(cpi=1.1, retention_d1=1.3, retention_d7=1.2, retention_d30=1.1, ad_revenue=0.7, iap_revenue=0.9, session_length=1.3),
        power_ups=("+15% D1 Retention", "+10% CTR from Sharing"),
        power_downs=("+10% Higher CPI",),
    ),
    "Education App": GenreSpec(
        key="Education App",
        desc="Higher user value, longer retention, strong IAP potential",
        icon="📚",
        metrics=GenreMetrics(cpi=1.2, retention_d1=0.9, retention_d7=1.1, retention_d30=1.3, ad_revenue=0.8, iap_revenue=1.4, session_length=1.1),
        power_ups=("+20% IAP Revenue", "+5% D7 Retention"),
        power_downs=("-10% Banner CTR",),
    ),
    "Fitness & Health": GenreSpec(
        key="Fitness & Health",
        desc="High subscription potential, seasonal variations, loyal user base",
        icon="💪",
        metrics=GenreMetrics(cpi=1.3, retention_d1=1.0, retention_d7=1.0, retention_d30=1.2, ad_revenue=0.6, iap_revenue=1.5, session_length=0.9),
        power_ups=("+5% Retention Boost", "+15% ARPDAU"),
        power_downs=("-10% Installs",),
    ),
    "Productivity App": GenreSpec(
        key="Productivity App",
        desc="High user value, longer sales cycle, strong B2B potential",
        icon="✅",
        metrics=GenreMetrics(cpi=1.4, retention_d1=0.8, retention_d7=1.0, retention_d30=1.4, ad_revenue=0.5, iap_revenue=1.6, session_length=1.2),
        power_ups=("+20% Ad Revenue", "+5% Fill Rate"),
        power_downs=("-5% Retention",),
    ),
}


def get_genre_spec(key: str) -> GenreSpec:
    spec = GENRES.get(str(key or ""))
    if spec is None:
        raise KeyError(f"Unknown genre: {key!r}")
    return spec


CREATIVE_FORMATS: Dict[str, CreativeFormat] = {
    "Gameplay Videos": CreativeFormat("Gameplay Videos", is_video=True),
    "Playable Ads": CreativeFormat("Playable Ads", is_video=True),
    "Educational Videos": CreativeFormat("Educational Videos", is_video=True),
    "Static Banner Ads": CreativeFormat("Static Banner Ads", is_video=False),
    "Rewarded Videos": CreativeFormat("Rewarded Videos", is_video=True),
}

MAX_CREATIVE_FORMATS = 2

AD_FORMATS: Dict[str, AdFormat] = {
    "rewarded": AdFormat("rewarded", "Rewarded Video Ads", "Users receive in-app rewards for watching"),
    "interstitial": AdFormat("interstitial", "Interstitial Ads", "Full-screen ads between activities"),
    "banner": AdFormat("banner", "Banner Ads", "Small ads at screen edges"),
}

BIDDING_STRATEGIES: Dict[str, BiddingStrategy] = {
    "high": BiddingStrategy("high", "Quick results, higher CPI", "1.5x market rate"),
    "moderate": BiddingStrategy("moderate", "Balanced approach", "1x market rate"),
    "low": BiddingStrategy("low", "Slower results, lower CPI", "0.7x market rate"),
}

INTERESTS: List[str] = ["Gaming", "Education", "Lifestyle"]

BUDGET_MIN = 500
BUDGET_MAX = 2000
BUDGET_STEP = 100

NOTIFICATION_TIERS = ("none", "occasional", "frequent")
CONTENT_TIERS = ("rare", "regular", "frequent")
LEVEL_TIERS = ("low", "medium", "high")
PROMO_TIERS = ("none", "limited", "frequent")


def is_valid_budget(amount: float) -> bool:
    try:
        value = float(amount)
    except (TypeError, ValueError):
        return False
    if value < BUDGET_MIN or value > BUDGET_MAX:
        return False
    return abs((value - BUDGET_MIN) % BUDGET_STEP) < 1e-9


GLOSSARY: Dict[str, str] = {
    "CPI": "Cost Per Install - spend divided by installs.",
    "CTR": "Click-Through Rate - clicks divided by impressions.",
    "CVR": "Conversion Rate - installs divided by clicks.",
    "DAU": "Daily Active Users.",
    "Retention": "Share of installed users still active 1, 7 or 30 days later.",
    "ARPDAU": "Average Revenue Per Daily Active User.",
    "eCPM": "Effective revenue per thousand ad impressions.",
    "Fill Rate": "Fraction of ad requests successfully served an ad.",
    "ROAS": "Return on Ad Spend - revenue divided by spend. Above 1 means profitable.",
    "Genre modifier": "Fixed multiplier bundle of the chosen app category, applied across all phases.",
}
