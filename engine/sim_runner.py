"""engine.sim_runner

Headless runner for quick sanity checks.

Plays one scripted campaign end to end with a fixed seed, no UI and no
network calls. Useful for balance tweaks and CI smoke runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.state import GameState, Phase

from .config import EngineConfig
from .history import CampaignHistory
from .logging import make_run_export
from .pipeline import GameSession


@dataclass(frozen=True)
class CampaignScript:
    """Every decision a player makes in one campaign."""

    genre: str = "Casual Game"
    budget: float = 1000.0
    age_group: str = "18-24"
    interests: Tuple[str, ...] = ("Gaming",)
    creatives: Tuple[str, ...] = ("Gameplay Videos", "Playable Ads")
    bidding: str = "moderate"
    retention: Dict[str, Any] = field(
        default_factory=lambda: {
            "notification_frequency": "occasional",
            "content_updates": "regular",
            "special_events": True,
            "engagement_spend": "medium",
        }
    )
    monetization: Dict[str, Any] = field(
        default_factory=lambda: {
            "ad_formats": ("rewarded", "interstitial"),
            "ad_frequency": "medium",
            "iap_pricing": "medium",
            "promotional_offers": "limited",
        }
    )


def play_script(session: GameSession, script: CampaignScript) -> GameState:
    """Drive a session through all phases; stops early if a guard refuses."""
    session.start()
    session.choose_genre(script.genre)
    if not session.enter_acquisition():
        return session.state

    session.set_budget(script.budget)
    session.next_step()
    session.set_audience(age_group=script.age_group, interests=script.interests)
    session.next_step()
    for fmt in script.creatives:
        session.toggle_creative(fmt)
    session.next_step()
    if session.choose_bidding(script.bidding) is None:
        return session.state

    session.set_retention(**script.retention)
    if session.calculate_retention() is None:
        return session.state
    session.advance()

    session.set_monetization(**script.monetization)
    if session.calculate_monetization() is None:
        return session.state
    session.advance()
    return session.state


def run_headless_sim(
    script: Optional[CampaignScript] = None,
    *,
    seed: int = 123,
    history: Optional[CampaignHistory] = None,
) -> Dict[str, Any]:
    """Run a deterministic campaign and return summary."""
    cfg = EngineConfig(base_seed=seed)
    session = GameSession(cfg, history=history)
    start = session.state
    final = play_script(session, script or CampaignScript())

    return {
        "seed": seed,
        "finished": final.current_phase == Phase.RESULTS,
        "final": final,
        "export": make_run_export(seed=seed, config=cfg, initial_state=start, phase_logs=session.phase_logs),
    }
