"""
core.state
Core domain data models (UI/LLM independent).

GameState is immutable; every change goes through core.actions.reduce().
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from .balance import GenreMetrics


def clamp(x: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, x))


def safe_div(num: float, den: float) -> float:
    """Division that yields 0.0 instead of ZeroDivisionError/NaN."""
    if not den:
        return 0.0
    return float(num) / float(den)


class Phase(str, Enum):
    HOME = "home"
    GENRE_SELECTION = "genre-selection"
    ACQUISITION = "acquisition"
    RETENTION = "retention"
    MONETIZATION = "monetization"
    RESULTS = "results"


PHASE_ORDER: Tuple[Phase, ...] = (
    Phase.HOME,
    Phase.GENRE_SELECTION,
    Phase.ACQUISITION,
    Phase.RETENTION,
    Phase.MONETIZATION,
    Phase.RESULTS,
)


@dataclass(frozen=True)
class AudienceTargeting:
    age_group: Optional[str] = None
    age_range: Optional[Tuple[int, int]] = None
    interests: Tuple[str, ...] = ()
    geo: Optional[str] = None
    device_type: Optional[str] = None


@dataclass(frozen=True)
class CreativeSelection:
    formats: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Phase1Results:
    impressions: int = 0
    clicks: int = 0
    ctr: float = 0.0
    installs: int = 0
    cvr: float = 0.0
    cpi: float = 0.0
    spend: float = 0.0
    committed: bool = False


@dataclass(frozen=True)
class RetentionStrategy:
    notification_frequency: Optional[str] = None
    content_updates: Optional[str] = None
    special_events: Optional[bool] = None
    engagement_spend: Optional[str] = None

    def is_complete(self) -> bool:
        return (
            self.notification_frequency is not None
            and self.content_updates is not None
            and self.special_events is not None
            and self.engagement_spend is not None
        )


@dataclass(frozen=True)
class RetentionRates:
    d1: float = 0.0       # 0..100
    d7: float = 0.0       # 0..100
    d30: float = 0.0      # 0..100


@dataclass(frozen=True)
class Phase2Results:
    retention_rates: RetentionRates = field(default_factory=RetentionRates)
    dau: int = 0
    session_length: float = 0.0   # minutes
    committed: bool = False


@dataclass(frozen=True)
class MonetizationStrategy:
    ad_formats: Tuple[str, ...] = ()
    ad_frequency: Optional[str] = None
    iap_pricing: Optional[str] = None
    promotional_offers: Optional[str] = None

    def is_complete(self) -> bool:
        return (
            len(self.ad_formats) > 0
            and self.ad_frequency is not None
            and self.iap_pricing is not None
            and self.promotional_offers is not None
        )


@dataclass(frozen=True)
class Phase3Results:
    arpdau: float = 0.0
    ad_revenue: float = 0.0
    iap_revenue: float = 0.0
    fill_rate: float = 0.0        # 0..1
    ecpm: float = 0.0
    roas: float = 0.0             # projected 30-day ROAS from the committed arpdau
    committed: bool = False


@dataclass(frozen=True)
class FinalResults:
    total_spend: float = 0.0
    total_revenue: float = 0.0
    roas: float = 0.0
    insights: Tuple[str, ...] = ()
    committed: bool = False


@dataclass(frozen=True)
class GameState:
    """One campaign session.

    The pipeline is strictly sequential: phase N results are only computed
    after phase N-1 results are committed.
    """

    current_phase: Phase = Phase.HOME
    app_genre: Optional[str] = None
    genre_metrics: Optional[GenreMetrics] = None
    budget: float = 1000.0
    audience_targeting: AudienceTargeting = field(default_factory=AudienceTargeting)
    creative_selection: CreativeSelection = field(default_factory=CreativeSelection)
    bidding_strategy: Optional[str] = None
    phase1_results: Phase1Results = field(default_factory=Phase1Results)
    retention_strategy: RetentionStrategy = field(default_factory=RetentionStrategy)
    phase2_results: Phase2Results = field(default_factory=Phase2Results)
    monetization_strategy: MonetizationStrategy = field(default_factory=MonetizationStrategy)
    phase3_results: Phase3Results = field(default_factory=Phase3Results)
    final_results: FinalResults = field(default_factory=FinalResults)
    events_shown: Tuple[str, ...] = ()
    feedback: Tuple[str, ...] = ()


def initial_state() -> GameState:
    """Baseline start state.

    Keep it in core so headless tests and UI share the same baseline.
    """
    return GameState()


def state_to_dict(s: GameState) -> Dict[str, Any]:
    """JSON-friendly snapshot (enums flattened to their values)."""
    d = asdict(s)
    d["current_phase"] = s.current_phase.value
    return d
