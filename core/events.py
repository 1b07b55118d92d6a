"""
core.events
Bounded randomness on top of the formula output:
- continuous variance (x * (1 +/- U(5%, 15%)))
- discrete random events with fixed multiplicative impacts

An event id shows at most once per session; its impact is applied once and
stays applied. The number of events per session is capped.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from typing import Dict, List, Sequence, Tuple

from .balance import DEFAULT_BALANCE, BalanceTable
from .formulas import projected_roas
from .rng import RandomSource
from .state import GameState, Phase, Phase1Results, Phase2Results, Phase3Results, RetentionRates, clamp, safe_div

POSITIVE_EVENT_PROBABILITY = 0.35
NEGATIVE_EVENT_PROBABILITY = 0.20
MAX_EVENTS_PER_SESSION = 3


@dataclass(frozen=True)
class EventSpec:
    id: str
    title: str
    description: str
    phase: Phase
    polarity: str  # positive|negative
    impact: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "phase": self.phase.value,
            "polarity": self.polarity,
            "impact": dict(self.impact),
        }


EVENT_POOLS: Dict[Phase, Tuple[EventSpec, ...]] = {
    Phase.ACQUISITION: (
        EventSpec("viral_creative", "Viral Creative! 🚀", "One of your ads went viral! +15% installs.", Phase.ACQUISITION, "positive", {"installs": 1.15}),
        EventSpec("ad_network_boost", "Ad Network Boost 📈", "Ad network algorithm favors your ads! +20% clicks.", Phase.ACQUISITION, "positive", {"clicks": 1.20}),
        EventSpec("targeting_improvement", "Targeting Sweet Spot 🎯", "Your audience targeting is performing exceptionally well! +25% CVR.", Phase.ACQUISITION, "positive", {"cvr": 1.25}),
        EventSpec("platform_feature", "Platform Feature 🌟", "Your app got featured! +30% impressions without additional cost.", Phase.ACQUISITION, "positive", {"impressions": 1.30}),
        EventSpec("competitor_exit", "Market Opportunity 📊", "A major competitor paused their campaigns! -15% CPI.", Phase.ACQUISITION, "positive", {"cpi": 0.85}),
        EventSpec("market_saturation", "Market Saturation 📉", "Too many apps are bidding on your audience. +5% CPI.", Phase.ACQUISITION, "negative", {"cpi": 1.05}),
    ),
    Phase.RETENTION: (
        EventSpec("positive_reviews", "Positive Reviews 🌟", "Users love your app! +10% to all retention metrics.", Phase.RETENTION, "positive", {"d1": 1.10, "d7": 1.10, "d30": 1.10}),
        EventSpec("user_backlash", "User Backlash 😠", "Users complain about notification frequency. D7 retention drops.", Phase.RETENTION, "negative", {"d7": 0.85}),
    ),
    Phase.MONETIZATION: (
        EventSpec("seasonal_boost", "Seasonal Boost 🎉", "Holiday season increases IAP purchases! +20% to IAP revenue.", Phase.MONETIZATION, "positive", {"iap_revenue": 1.20}),
        EventSpec("ad_fatigue", "Ad Fatigue 😴", "Users are showing ad fatigue. -15% to ad revenue.", Phase.MONETIZATION, "negative", {"ad_revenue": 0.85}),
    ),
}


def get_event(event_id: str) -> EventSpec:
    for pool in EVENT_POOLS.values():
        for ev in pool:
            if ev.id == event_id:
                return ev
    raise KeyError(f"Unknown event id: {event_id!r}")


# -------------------------
# Variance
# -------------------------


def add_variance(value: float, rng: RandomSource, balance: BalanceTable = DEFAULT_BALANCE) -> float:
    lo, hi = balance.variance_range
    magnitude = rng.uniform(lo, hi)
    sign = 1.0 if rng.random() < 0.5 else -1.0
    return float(value) * (1.0 + sign * magnitude)


# -------------------------
# Event rolls
# -------------------------


def roll_phase_events(
    phase: Phase,
    events_shown: Sequence[str],
    rng: RandomSource,
    *,
    positive_probability: float = POSITIVE_EVENT_PROBABILITY,
    negative_probability: float = NEGATIVE_EVENT_PROBABILITY,
    max_events: int = MAX_EVENTS_PER_SESSION,
) -> List[EventSpec]:
    """Roll the positive and negative triggers for one phase.

    Both triggers are always rolled so the random stream does not depend on
    how many events were already shown.
    """
    pool = EVENT_POOLS.get(phase, ())
    shown = set(events_shown)
    budget_left = max(0, int(max_events) - len(shown))

    picked: List[EventSpec] = []
    for polarity, p in (("positive", positive_probability), ("negative", negative_probability)):
        if rng.random() >= p:
            continue
        if len(picked) >= budget_left:
            continue
        available = [ev for ev in pool if ev.polarity == polarity and ev.id not in shown]
        if not available:
            continue
        ev = rng.choice(available)
        picked.append(ev)
        shown.add(ev.id)
    return picked


# -------------------------
# Event application
# -------------------------


def _scale(count: int, factor: float) -> int:
    # tolerance keeps 100 * 1.15 at 115
    return int(math.floor(count * factor + 1e-9))


def _impact_acquisition(p1: Phase1Results, impact: Dict[str, float]) -> Phase1Results:
    impressions = int(p1.impressions)
    clicks = int(p1.clicks)
    installs = int(p1.installs)
    ctr, cvr, cpi = float(p1.ctr), float(p1.cvr), float(p1.cpi)

    if "impressions" in impact:
        impressions = _scale(impressions, impact["impressions"])
    if "clicks" in impact:
        clicks = _scale(clicks, impact["clicks"])
    if "cpi" in impact:
        cpi = cpi * impact["cpi"]
    if "cvr" in impact:
        cvr = cvr * impact["cvr"]
        installs = _scale(clicks, cvr) if clicks > 0 else installs
    if "installs" in impact:
        installs = _scale(installs, impact["installs"])
        if clicks > 0:
            cvr = safe_div(installs, clicks)
    if ("clicks" in impact or "impressions" in impact) and impressions > 0:
        ctr = safe_div(clicks, impressions)

    return replace(p1, impressions=impressions, clicks=clicks, installs=max(0, installs), ctr=ctr, cvr=cvr, cpi=cpi)


def _impact_retention(p2: Phase2Results, impact: Dict[str, float], balance: BalanceTable) -> Phase2Results:
    r = p2.retention_rates
    lo, hi = balance.retention_floor, balance.retention_ceiling
    rates = RetentionRates(
        d1=clamp(r.d1 * impact.get("d1", 1.0), lo, hi),
        d7=clamp(r.d7 * impact.get("d7", 1.0), lo, hi),
        d30=clamp(r.d30 * impact.get("d30", 1.0), lo, hi),
    )
    return replace(p2, retention_rates=rates)


def _impact_monetization(p3: Phase3Results, impact: Dict[str, float], dau: int, balance: BalanceTable) -> Phase3Results:
    ad = float(p3.ad_revenue) * impact.get("ad_revenue", 1.0)
    iap = float(p3.iap_revenue) * impact.get("iap_revenue", 1.0)
    arpdau = safe_div(ad + iap, dau)
    return replace(p3, ad_revenue=ad, iap_revenue=iap, arpdau=arpdau, roas=projected_roas(arpdau, balance))


def apply_event(state: GameState, event: EventSpec, balance: BalanceTable = DEFAULT_BALANCE) -> GameState:
    """Apply an event's impact to the committed results of its phase (pure).

    Repeated ids and events for an uncommitted phase leave the state unchanged.
    """
    if event.id in state.events_shown:
        return state

    if event.phase == Phase.ACQUISITION:
        if not state.phase1_results.committed:
            return state
        state = replace(state, phase1_results=_impact_acquisition(state.phase1_results, event.impact))
    elif event.phase == Phase.RETENTION:
        if not state.phase2_results.committed:
            return state
        state = replace(state, phase2_results=_impact_retention(state.phase2_results, event.impact, balance))
    elif event.phase == Phase.MONETIZATION:
        if not state.phase3_results.committed:
            return state
        state = replace(
            state,
            phase3_results=_impact_monetization(state.phase3_results, event.impact, state.phase2_results.dau, balance),
        )
    else:
        return state

    return replace(state, events_shown=(*state.events_shown, event.id))
