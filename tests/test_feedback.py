"""Tests for coaching-tip selection: weights, termination, uniqueness."""

import random

from core.feedback import (
    FEEDBACK_POOLS,
    MAX_MESSAGES,
    MIN_MESSAGES,
    FeedbackMetrics,
    _pick_category,
    category_weights,
    select_feedback,
)

from conftest import ScriptedRandom

ALL_MESSAGES = {m for pool in FEEDBACK_POOLS.values() for m in pool}


def test_missing_metrics_take_low_weights():
    w = category_weights(FeedbackMetrics())
    assert w == {
        "CTR_LOW": 0.1,
        "AUDIENCE_BROAD": 0.1,
        "CREATIVE_PERFORMANCE": 0.1,
        "RETENTION": 0.1,
        "MONETIZATION": 0.1,
        "POSITIVE": 0.2,
    }


def test_weak_metrics_raise_weights():
    w = category_weights(FeedbackMetrics(ctr=0.01, cvr=0.05, cpi=2.0, d7=10.0, arpdau=0.1, roas=0.9))
    assert w["CTR_LOW"] == 0.4
    assert w["AUDIENCE_BROAD"] == 0.3
    assert w["CREATIVE_PERFORMANCE"] == 0.3
    assert w["RETENTION"] == 0.4
    assert w["MONETIZATION"] == 0.4
    assert w["POSITIVE"] == 0.5


def test_pick_category_walks_fixed_order():
    w = category_weights(FeedbackMetrics())
    assert _pick_category(w, 0.0) == "CTR_LOW"
    assert _pick_category(w, 0.15) == "AUDIENCE_BROAD"
    assert _pick_category(w, 0.55) == "POSITIVE"
    assert _pick_category(w, 10.0) == "POSITIVE"


def test_two_or_three_unique_messages():
    for seed in range(100):
        msgs = select_feedback(FeedbackMetrics(ctr=0.01, roas=1.2), random.Random(seed))
        assert MIN_MESSAGES <= len(msgs) <= MAX_MESSAGES
        assert len(set(msgs)) == len(msgs)
        assert set(msgs) <= ALL_MESSAGES


def test_terminates_when_rolls_repeat():
    """A source that always repeats the same draw still returns."""
    msgs = select_feedback(FeedbackMetrics(), ScriptedRandom(default=0.0))
    assert msgs == [FEEDBACK_POOLS["CTR_LOW"][0]]


def test_scripted_target_count():
    # target roll, then (category, message) pairs
    rng = ScriptedRandom(0.9, 0.0, 0.0, 0.0, 0.2, 0.99, 0.4)
    msgs = select_feedback(FeedbackMetrics(), rng)
    assert len(msgs) == 3
    assert msgs[0] == FEEDBACK_POOLS["CTR_LOW"][0]
    assert msgs[1] == FEEDBACK_POOLS["CTR_LOW"][1]
