"""Tests for variance and random market events."""

import math
import random
from dataclasses import replace

import pytest

from core.events import (
    EVENT_POOLS,
    MAX_EVENTS_PER_SESSION,
    add_variance,
    apply_event,
    get_event,
    roll_phase_events,
)
from core.state import GameState, Phase, Phase1Results, Phase2Results, Phase3Results, RetentionRates

from conftest import ScriptedRandom


def committed_state() -> GameState:
    return GameState(
        phase1_results=Phase1Results(impressions=20000, clicks=1000, ctr=0.05, installs=100, cvr=0.1, cpi=1.2, spend=1000, committed=True),
        phase2_results=Phase2Results(RetentionRates(d1=95.0, d7=20.0, d30=10.0), dau=40, session_length=12.0, committed=True),
        phase3_results=Phase3Results(arpdau=3.0, ad_revenue=100.0, iap_revenue=20.0, fill_rate=0.9, ecpm=14.0, roas=2.0, committed=True),
    )


# ── Variance ───────────────────────────────────────────────


def test_variance_stays_in_band():
    rng = random.Random(42)
    for _ in range(500):
        ratio = add_variance(100.0, rng) / 100.0
        assert 0.05 - 1e-9 <= abs(ratio - 1.0) <= 0.15 + 1e-9


def test_variance_sign_follows_roll():
    assert math.isclose(add_variance(100.0, ScriptedRandom(0.0, 0.1)), 105.0)
    assert math.isclose(add_variance(100.0, ScriptedRandom(1.0, 0.9)), 85.0)


# ── Rolls ──────────────────────────────────────────────────


def test_roll_picks_both_polarities():
    events = roll_phase_events(Phase.ACQUISITION, (), ScriptedRandom(0.0, 0.0, 0.0, 0.0))
    assert [e.id for e in events] == ["viral_creative", "market_saturation"]


def test_roll_no_trigger():
    assert roll_phase_events(Phase.RETENTION, (), ScriptedRandom(0.9, 0.9)) == []


def test_roll_never_repeats_ids():
    shown = ("market_saturation",)
    events = roll_phase_events(Phase.ACQUISITION, shown, ScriptedRandom(0.9, 0.0, 0.0))
    assert events == []


def test_roll_respects_session_cap():
    shown = ("viral_creative", "positive_reviews", "seasonal_boost")
    assert roll_phase_events(Phase.ACQUISITION, shown, ScriptedRandom(default=0.0)) == []

    events = roll_phase_events(Phase.ACQUISITION, shown[:2], ScriptedRandom(default=0.0))
    assert len(events) == 1


def test_many_sessions_stay_under_cap():
    for seed in range(200):
        rng = random.Random(seed)
        shown = []
        for phase in (Phase.ACQUISITION, Phase.RETENTION, Phase.MONETIZATION):
            shown += [e.id for e in roll_phase_events(phase, tuple(shown), rng)]
        assert len(shown) <= MAX_EVENTS_PER_SESSION
        assert len(set(shown)) == len(shown)


def test_event_ids_are_unique_across_pools():
    ids = [e.id for pool in EVENT_POOLS.values() for e in pool]
    assert len(ids) == len(set(ids))


def test_get_event_unknown_raises():
    with pytest.raises(KeyError):
        get_event("nope")


# ── Application ────────────────────────────────────────────


def test_viral_creative_recomputes_cvr():
    s = apply_event(committed_state(), get_event("viral_creative"))
    assert s.phase1_results.installs == 115
    assert math.isclose(s.phase1_results.cvr, 0.115)
    assert s.events_shown == ("viral_creative",)


def test_click_boost_recomputes_ctr():
    s = apply_event(committed_state(), get_event("ad_network_boost"))
    assert s.phase1_results.clicks == 1200
    assert math.isclose(s.phase1_results.ctr, 1200 / 20000)


def test_cvr_boost_recomputes_installs():
    s = apply_event(committed_state(), get_event("targeting_improvement"))
    assert math.isclose(s.phase1_results.cvr, 0.125)
    assert s.phase1_results.installs == 125


def test_event_applied_once():
    ev = get_event("competitor_exit")
    once = apply_event(committed_state(), ev)
    twice = apply_event(once, ev)
    assert twice is once
    assert math.isclose(once.phase1_results.cpi, 1.2 * 0.85)


def test_uncommitted_phase_is_noop():
    s = replace(committed_state(), phase1_results=Phase1Results())
    assert apply_event(s, get_event("viral_creative")) is s


def test_retention_event_clamped():
    s = apply_event(committed_state(), get_event("positive_reviews"))
    r = s.phase2_results.retention_rates
    assert r.d1 == 100.0
    assert math.isclose(r.d7, 22.0)


def test_monetization_event_recomputes_arpdau():
    s = apply_event(committed_state(), get_event("ad_fatigue"))
    p3 = s.phase3_results
    assert math.isclose(p3.ad_revenue, 85.0)
    assert math.isclose(p3.arpdau, (85.0 + 20.0) / 40)


def test_monetization_event_recomputes_roas():
    p3 = apply_event(committed_state(), get_event("ad_fatigue")).phase3_results
    assert math.isclose(p3.roas, p3.arpdau * 30 / 1.2)


def test_monetization_event_roas_keeps_floor():
    s = committed_state()
    s = replace(s, phase2_results=replace(s.phase2_results, dau=100000))
    p3 = apply_event(s, get_event("ad_fatigue")).phase3_results
    assert p3.roas == 0.5
