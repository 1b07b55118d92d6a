"""Tests for the command reducer."""

from dataclasses import dataclass, replace

from core.actions import (
    ApplyEvent,
    ResetGame,
    SetAppGenre,
    SetAudienceTargeting,
    SetBiddingStrategy,
    SetBudget,
    SetCreativeSelection,
    SetFeedback,
    SetMonetizationStrategy,
    SetPhase,
    SetPhase1Results,
    SetRetentionStrategy,
    reduce,
)
from core.balance import GENRES
from core.state import GameState, Phase, Phase1Results, initial_state


@dataclass(frozen=True)
class NotACommand:
    payload: str = "x"


def populated_state() -> GameState:
    s = initial_state()
    for action in (
        SetPhase(Phase.MONETIZATION),
        SetAppGenre("Social App"),
        SetBudget(1500),
        SetAudienceTargeting(age_group="18-24", interests=["Gaming", "Education"]),
        SetCreativeSelection(("Playable Ads",)),
        SetBiddingStrategy("high"),
        SetPhase1Results(Phase1Results(installs=50, clicks=400, impressions=8000, ctr=0.05, cvr=0.125, cpi=1.0, committed=True)),
        SetRetentionStrategy(notification_frequency="frequent", special_events=True),
        SetMonetizationStrategy(ad_formats=["rewarded"]),
        SetFeedback(("tip",)),
        ApplyEvent("viral_creative"),
    ):
        s = reduce(s, action)
    return s


def test_unknown_action_is_noop():
    s = initial_state()
    assert reduce(s, NotACommand()) is s


def test_unknown_phase_is_noop():
    s = initial_state()
    assert reduce(s, SetPhase("bogus")) is s
    assert reduce(s, SetPhase("results")).current_phase == Phase.RESULTS


def test_reset_restores_defaults():
    s = populated_state()
    assert s != initial_state()
    assert s.events_shown == ("viral_creative",)

    fresh = reduce(s, ResetGame())
    assert fresh == GameState()
    assert fresh.current_phase == Phase.HOME
    assert fresh.events_shown == ()
    assert fresh.audience_targeting.interests == ()
    assert fresh.creative_selection.formats == ()
    assert fresh.monetization_strategy.ad_formats == ()
    assert fresh.feedback == ()


def test_budget_bounds_and_step():
    s = initial_state()
    assert reduce(s, SetBudget(1500)).budget == 1500.0
    for bad in (400, 2100, 550.5, "lots", None):
        assert reduce(s, SetBudget(bad)) is s


def test_budget_locked_after_acquisition():
    s = reduce(initial_state(), SetPhase1Results(Phase1Results(committed=True)))
    assert reduce(s, SetBudget(1500)).budget == 1000.0


def test_genre_sets_metrics_and_locks():
    s = reduce(initial_state(), SetAppGenre("Education App"))
    assert s.app_genre == "Education App"
    assert s.genre_metrics == GENRES["Education App"].metrics
    assert reduce(s, SetAppGenre("Casual Game")) is s


def test_unknown_genre_ignored():
    s = initial_state()
    assert reduce(s, SetAppGenre("Crypto Casino")) is s


def test_creatives_deduplicated_and_capped():
    s = reduce(initial_state(), SetCreativeSelection(("Playable Ads", "Playable Ads", "Gameplay Videos", "Static Banner Ads")))
    assert s.creative_selection.formats == ("Playable Ads", "Gameplay Videos")


def test_partial_audience_merge():
    s = reduce(initial_state(), SetAudienceTargeting(age_group="35-44"))
    s = reduce(s, SetAudienceTargeting(interests=["Gaming"]))
    assert s.audience_targeting.age_group == "35-44"
    assert s.audience_targeting.interests == ("Gaming",)


def test_partial_retention_merge():
    s = reduce(initial_state(), SetRetentionStrategy(notification_frequency="none"))
    s = reduce(s, SetRetentionStrategy(content_updates="rare", special_events=False, engagement_spend="low"))
    assert s.retention_strategy.notification_frequency == "none"
    assert s.retention_strategy.is_complete()


def test_monetization_gate_requires_ad_format():
    s = reduce(initial_state(), SetMonetizationStrategy(ad_frequency="low", iap_pricing="low", promotional_offers="none"))
    assert not s.monetization_strategy.is_complete()
    s = reduce(s, SetMonetizationStrategy(ad_formats={"banner"}))
    assert s.monetization_strategy.is_complete()


def test_unknown_event_ignored():
    s = populated_state()
    assert reduce(s, ApplyEvent("meteor_strike")) is s


def test_reducer_does_not_mutate_input():
    s = populated_state()
    before = replace(s)
    reduce(s, ResetGame())
    reduce(s, SetBudget(2000))
    assert s == before
