"""Shared fixtures for the campaign simulator tests."""

from __future__ import annotations

import random
from typing import List, Sequence

import pytest

from core.balance import DEFAULT_BALANCE
from engine.config import EngineConfig
from engine.pipeline import GameSession


class ScriptedRandom:
    """Random source that replays fixed fractions in [0, 1).

    uniform(a, b) maps the fraction onto the interval and choice(seq) onto an
    index, so one queue drives every draw. Once the queue is empty the
    default fraction is returned.
    """

    def __init__(self, *values: float, default: float = 0.5) -> None:
        self._values: List[float] = list(values)
        self._default = default
        self.calls = 0

    def _next(self) -> float:
        self.calls += 1
        if self._values:
            return self._values.pop(0)
        return self._default

    def random(self) -> float:
        return self._next()

    def uniform(self, a: float, b: float) -> float:
        return a + (b - a) * self._next()

    def choice(self, seq: Sequence):
        return seq[min(int(self._next() * len(seq)), len(seq) - 1)]


@pytest.fixture
def scripted():
    return ScriptedRandom


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def balance():
    return DEFAULT_BALANCE


@pytest.fixture
def quiet_config():
    """No variance and no random events: phase outputs equal the formulas."""
    return EngineConfig(base_seed=7, apply_variance=False, random_events=False)


@pytest.fixture
def session(quiet_config):
    return GameSession(quiet_config)


def drive_to_retention(s: GameSession, genre: str = "Casual Game") -> GameSession:
    s.start()
    s.choose_genre(genre)
    s.enter_acquisition()
    s.set_budget(1000)
    s.next_step()
    s.set_audience(age_group="25-34", interests=("Gaming", "Lifestyle"))
    s.next_step()
    s.toggle_creative("Gameplay Videos")
    s.toggle_creative("Playable Ads")
    s.next_step()
    s.choose_bidding("moderate")
    return s


def drive_to_monetization(s: GameSession) -> GameSession:
    drive_to_retention(s)
    s.set_retention(notification_frequency="occasional", content_updates="regular", special_events=True, engagement_spend="medium")
    s.calculate_retention()
    s.advance()
    return s


def complete_monetization_strategy(s: GameSession) -> None:
    s.set_monetization(ad_formats=("rewarded", "banner"), ad_frequency="medium", iap_pricing="medium", promotional_offers="limited")
