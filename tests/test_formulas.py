"""Tests for the phase formula library (acquisition, retention, monetization).

Covers:
- non-negative installs and positive CPI for every valid budget/bracket
- video-share synergy (scenario A) and its monotonicity
- genre caps (CPI at most +20%, retention/revenue at most -20%)
- retention clamp under stacked bonuses, tier ordering (scenario B)
- zero-DAU monetization policy (scenario C)
"""

import math
import random
from dataclasses import replace

from core.balance import AGE_BRACKETS, BUDGET_MAX, BUDGET_MIN, BUDGET_STEP, CREATIVE_FORMATS, GENRES, GenreMetrics
from core.formulas import (
    effective_ecpm,
    genre_cpi_multiplier,
    genre_floor,
    promotions_enabled,
    simulate_acquisition,
    simulate_monetization,
    simulate_retention,
    to_phase1_results,
    video_share,
)

from conftest import ScriptedRandom

VIDEO_PAIR = ["Playable Ads", "Gameplay Videos"]
STATIC = ["Static Banner Ads"]


# ── Acquisition ────────────────────────────────────────────


def test_installs_non_negative_and_cpi_positive():
    """Every valid budget and bracket yields installs >= 0 and cpi > 0."""
    rng = random.Random(99)
    for budget in range(BUDGET_MIN, BUDGET_MAX + 1, BUDGET_STEP):
        for bracket in AGE_BRACKETS:
            for formats in (VIDEO_PAIR, STATIC, ["Rewarded Videos", "Static Banner Ads"], []):
                out = simulate_acquisition(budget, bracket, ["Gaming"], formats, None, rng)
                assert out.installs >= 0
                assert out.cpi > 0


def test_zero_budget_gives_zero_installs():
    out = simulate_acquisition(0, "25-34", [], VIDEO_PAIR, None, random.Random(1))
    assert out.installs == 0
    assert out.cpi > 0


def test_scenario_a_video_synergy():
    """Two video formats (100% share) boost CTR 1.4x and CVR 1.3x."""
    boosted = simulate_acquisition(1000, "25-34", ["Gaming"], VIDEO_PAIR, None, ScriptedRandom(0.5, 0.5))
    baseline = simulate_acquisition(1000, "25-34", ["Gaming"], STATIC, None, ScriptedRandom(0.5, 0.5))

    assert math.isclose(boosted.ctr, baseline.ctr * 1.4)
    assert math.isclose(boosted.cvr, baseline.cvr * 1.3)
    assert boosted.installs > 0
    assert boosted.video_share == 1.0


def test_scenario_a_exact_values():
    out = simulate_acquisition(1000, "25-34", ["Gaming"], VIDEO_PAIR, None, ScriptedRandom(0.5, 0.5))
    assert math.isclose(out.ctr, 0.06 * 1.4)
    assert math.isclose(out.cvr, 0.125 * 1.3)
    assert math.isclose(out.cpi, 1.20 * 0.95)
    assert out.installs == math.floor(1000 / (1.20 * 0.95) * 0.084 * 0.1625)


def test_video_share_monotonic_ctr():
    """Holding the draws fixed, >=60% video share never lowers CTR."""
    for seed in range(50):
        video = simulate_acquisition(1000, "35-44", ["Gaming"], VIDEO_PAIR, None, random.Random(seed))
        mixed = simulate_acquisition(1000, "35-44", ["Gaming"], ["Gameplay Videos", "Static Banner Ads"], None, random.Random(seed))
        assert video.ctr >= mixed.ctr


def test_half_video_share_is_below_threshold():
    assert video_share(["Gameplay Videos", "Static Banner Ads"]) == 0.5
    assert video_share([]) == 0.0


def test_all_creative_formats_flagged():
    videos = {k for k, f in CREATIVE_FORMATS.items() if f.is_video}
    assert videos == {"Gameplay Videos", "Playable Ads", "Educational Videos", "Rewarded Videos"}


def test_ctr_floor_applies(balance):
    cold = replace(balance, ctr_range=(0.0, 0.01))
    out = simulate_acquisition(1000, "25-34", [], STATIC, None, ScriptedRandom(0.0, 0.0), cold)
    assert out.ctr == 0.02


def test_interests_do_not_change_outcome():
    narrow = simulate_acquisition(1000, "25-34", ["Gaming"], VIDEO_PAIR, None, random.Random(8))
    wide = simulate_acquisition(1000, "25-34", ["Gaming", "Education", "Lifestyle"], VIDEO_PAIR, None, random.Random(8))
    assert narrow == wide


def test_unknown_bracket_falls_back_to_default():
    a = simulate_acquisition(1000, "nope", [], STATIC, None, ScriptedRandom(0.5, 0.5))
    b = simulate_acquisition(1000, "25-34", [], STATIC, None, ScriptedRandom(0.5, 0.5))
    assert a.cpi == b.cpi


def test_phase1_funnel_is_consistent():
    out = simulate_acquisition(2000, "18-24", ["Gaming"], VIDEO_PAIR, None, random.Random(3))
    p1 = to_phase1_results(out, 2000)
    assert p1.committed
    assert p1.spend == 2000
    assert p1.clicks >= p1.installs
    assert p1.impressions >= p1.clicks


# ── Genre caps ─────────────────────────────────────────────


def test_genre_cpi_capped_at_plus_twenty_percent():
    for spec in GENRES.values():
        assert genre_cpi_multiplier(spec.metrics) <= 1.2
    assert genre_cpi_multiplier(GENRES["Productivity App"].metrics) == 1.2
    assert genre_cpi_multiplier(GENRES["Casual Game"].metrics) == 0.8


def test_genre_floor_limits_penalty():
    for spec in GENRES.values():
        m = spec.metrics
        for value in (m.retention_d1, m.retention_d7, m.retention_d30, m.ad_revenue, m.iap_revenue):
            assert genre_floor(value) >= 0.8
    assert genre_floor(0.5) == 0.8
    assert genre_floor(1.3) == 1.3


def test_harsh_genre_retention_penalty_capped():
    harsh = GenreMetrics(cpi=3.0, retention_d1=0.1, retention_d7=0.1, retention_d30=0.1, ad_revenue=0.1, iap_revenue=0.1, session_length=0.1)
    ret = simulate_retention(1000, "none", "rare", False, harsh, random.Random(1))
    neutral = simulate_retention(1000, "none", "rare", False, None, random.Random(1))
    assert math.isclose(ret.d7, neutral.d7 * 0.8)

    acq = simulate_acquisition(1000, "25-34", [], STATIC, harsh, ScriptedRandom(0.5, 0.5))
    base = simulate_acquisition(1000, "25-34", [], STATIC, None, ScriptedRandom(0.5, 0.5))
    assert math.isclose(acq.cpi, base.cpi * 1.2)


# ── Retention ──────────────────────────────────────────────


def test_retention_clamped_with_stacked_bonuses(balance):
    huge = GenreMetrics(cpi=1.0, retention_d1=5.0, retention_d7=5.0, retention_d30=5.0, ad_revenue=1.0, iap_revenue=1.0, session_length=1.0)
    out = simulate_retention(1000, "frequent", "frequent", True, huge, random.Random(1), balance)
    for rate in (out.d1, out.d7, out.d30):
        assert balance.retention_floor <= rate <= 100.0
    assert out.d1 == 100.0


def test_retention_floor_applies(balance):
    low = replace(balance, retention_start=(1.0, 1.0, 1.0))
    out = simulate_retention(100, "none", "rare", False, None, random.Random(1), low)
    assert out.d1 == out.d7 == out.d30 == 8.0


def test_scenario_b_frequent_beats_weakest():
    strong = simulate_retention(1000, "frequent", "frequent", True, None, random.Random(5))
    weak = simulate_retention(1000, "none", "rare", False, None, random.Random(5))
    assert strong.d7 > weak.d7
    assert math.isclose(strong.d7, 22.0 * 1.25 * 1.30 * 1.25)
    assert weak.d7 == 22.0


def test_dau_formula():
    out = simulate_retention(1000, "none", "rare", False, None, random.Random(1))
    assert out.dau == math.floor(1000 * 0.22 * 1.2)


def test_session_length_tiers():
    out = simulate_retention(10, "none", "frequent", False, None, random.Random(1), engagement_spend="high")
    assert math.isclose(out.session_length, 15.0 * 1.3 * 1.3)


def test_retention_feedback_is_unique():
    out = simulate_retention(500, "occasional", "regular", True, None, random.Random(11))
    assert 2 <= len(out.feedback) <= 3
    assert len(set(out.feedback)) == len(out.feedback)


# ── Monetization ───────────────────────────────────────────


def test_scenario_c_zero_dau():
    """Zero DAU: no exception, no NaN, zero revenue, ROAS at the floor."""
    out = simulate_monetization(0, "high", ["rewarded"], "high", "frequent", None, random.Random(1))
    assert out.arpdau == 0.0
    assert not math.isnan(out.arpdau)
    assert out.ad_revenue == 0.0
    assert out.iap_revenue == 0.0
    assert out.roas == 0.5


def test_monetization_exact_values():
    out = simulate_monetization(100, "medium", ["rewarded"], "low", "none", None, ScriptedRandom(0.0))
    ecpm = 14.0 * 1.3 * 1.0
    assert math.isclose(out.fill_rate, 0.85)
    assert math.isclose(out.ecpm, ecpm)
    assert math.isclose(out.ad_revenue, 100 * 6 * 0.85 * ecpm / 1000)
    assert math.isclose(out.iap_revenue, 100 * 0.18 * 1.99)
    assert math.isclose(out.arpdau, (out.ad_revenue + out.iap_revenue) / 100)


def test_promotions_boost_iap():
    a = simulate_monetization(100, "low", ["banner"], "medium", "limited", None, ScriptedRandom(0.5))
    b = simulate_monetization(100, "low", ["banner"], "medium", "none", None, ScriptedRandom(0.5))
    assert math.isclose(a.iap_revenue, b.iap_revenue * 1.35)


def test_promotions_enabled_values():
    assert promotions_enabled("limited")
    assert promotions_enabled(True)
    assert not promotions_enabled("none")
    assert not promotions_enabled(None)
    assert not promotions_enabled(False)


def test_effective_ecpm_stacks_formats():
    assert math.isclose(effective_ecpm(["rewarded", "interstitial"], "high"), 14.0 * 1.3 * 1.2 * 1.2)
    assert effective_ecpm(["banner", "rewarded"], "low") == effective_ecpm(["rewarded", "banner"], "low")


def test_roas_never_below_floor():
    rng = random.Random(8)
    for dau in (0, 1, 10, 500):
        for freq in ("low", "medium", "high"):
            out = simulate_monetization(dau, freq, ["banner"], "low", "none", GENRES["Productivity App"].metrics, rng)
            assert out.roas >= 0.5
            assert out.ad_revenue >= 0 and out.iap_revenue >= 0
