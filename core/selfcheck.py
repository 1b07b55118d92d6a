"""
core.selfcheck
Minimal "it runs" proof for the formula library.

Run:
  python -m core.selfcheck
"""

from __future__ import annotations

from dataclasses import asdict

from .actions import (
    ApplyEvent,
    SetAppGenre,
    SetMonetizationStrategy,
    SetPhase1Results,
    SetPhase2Results,
    SetPhase3Results,
    SetRetentionStrategy,
    reduce,
)
from .balance import DEFAULT_BALANCE, GENRES
from .events import roll_phase_events
from .formulas import simulate_acquisition, simulate_monetization, simulate_retention, to_phase1_results
from .insights import compute_final_results
from .rng import rng_from
from .state import Phase, Phase2Results, Phase3Results, RetentionRates, initial_state


def run_campaign_smoke(runs: int = 50) -> None:
    base_seed = 42
    bal = DEFAULT_BALANCE

    for run in range(runs):
        genre = sorted(GENRES)[run % len(GENRES)]
        state = reduce(initial_state(), SetAppGenre(genre))
        g = state.genre_metrics

        rng = rng_from("acquisition", run, base_seed=base_seed)
        acq = simulate_acquisition(state.budget, "25-34", ("Gaming",), ("Gameplay Videos", "Static Banner Ads"), g, rng)
        state = reduce(state, SetPhase1Results(to_phase1_results(acq, state.budget)))

        state = reduce(state, SetRetentionStrategy(notification_frequency="occasional", content_updates="regular", special_events=run % 2 == 0, engagement_spend="medium"))
        rs = state.retention_strategy
        rng = rng_from("retention", run, base_seed=base_seed)
        ret = simulate_retention(acq.installs, rs.notification_frequency, rs.content_updates, rs.special_events, g, rng, engagement_spend=rs.engagement_spend)
        state = reduce(state, SetPhase2Results(Phase2Results(RetentionRates(ret.d1, ret.d7, ret.d30), ret.dau, ret.session_length, committed=True)))

        state = reduce(state, SetMonetizationStrategy(ad_formats=("rewarded",), ad_frequency="medium", iap_pricing="low", promotional_offers="none"))
        rng = rng_from("monetization", run, base_seed=base_seed)
        mon = simulate_monetization(ret.dau, "medium", ("rewarded",), "low", "none", g, rng)
        state = reduce(
            state,
            SetPhase3Results(Phase3Results(mon.arpdau, mon.ad_revenue, mon.iap_revenue, mon.fill_rate, mon.ecpm, mon.roas, committed=True)),
        )

        for phase in (Phase.ACQUISITION, Phase.RETENTION, Phase.MONETIZATION):
            for ev in roll_phase_events(phase, state.events_shown, rng_from("events", phase.value, run, base_seed=base_seed)):
                state = reduce(state, ApplyEvent(ev.id))

        final = compute_final_results(state)

        # invariants
        assert acq.installs >= 0
        assert acq.ctr >= bal.ctr_floor
        assert 2 <= len(acq.feedback) <= 3 and len(set(acq.feedback)) == len(acq.feedback)
        for rate in (ret.d1, ret.d7, ret.d30):
            assert bal.retention_floor <= rate <= bal.retention_ceiling
        assert mon.roas >= bal.roas_floor
        assert mon.ad_revenue >= 0.0 and mon.iap_revenue >= 0.0
        assert len(state.events_shown) == len(set(state.events_shown)) <= 3
        assert final == compute_final_results(state)

    print(f"OK: {runs} campaign smoke runs passed.")
    print("Last final results:", asdict(final))


if __name__ == "__main__":
    run_campaign_smoke()
