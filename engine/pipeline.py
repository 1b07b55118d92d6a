"""engine.pipeline

Campaign phase flow (headless).

Responsibilities:
- Own the GameState of one session (single writer: every change is a
  core.actions command passed to dispatch())
- Guard phase transitions and acquisition sub-steps
- Run the phase formulas, variance and random events on commit
- Aggregate final results and record the campaign in history

This layer is UI-agnostic.
"""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from core.actions import (
    Action,
    ApplyEvent,
    ResetGame,
    SetAppGenre,
    SetAudienceTargeting,
    SetBiddingStrategy,
    SetBudget,
    SetCreativeSelection,
    SetFeedback,
    SetFinalResults,
    SetMonetizationStrategy,
    SetPhase,
    SetPhase1Results,
    SetPhase2Results,
    SetPhase3Results,
    SetRetentionStrategy,
    reduce,
)
from core.balance import MAX_CREATIVE_FORMATS, bracket_for_range, is_valid_budget
from core.events import EventSpec, add_variance, roll_phase_events
from core.formulas import (
    AcquisitionOutcome,
    MonetizationOutcome,
    RetentionOutcome,
    simulate_acquisition,
    simulate_monetization,
    projected_roas,
    simulate_retention,
    to_phase1_results,
)
from core.insights import compute_final_results
from core.rng import RandomSource, rng_from
from core.state import FinalResults, GameState, Phase, Phase1Results, Phase2Results, Phase3Results, RetentionRates, initial_state, safe_div

from .config import ConfigurationError, EngineConfig
from .history import CampaignHistory
from .logging import make_phase_log

logger = logging.getLogger("campaign_sim.pipeline")

SESSION_KEY = "game_session"


class AcquisitionStep(str, Enum):
    BUDGET = "budget"
    AUDIENCE = "audience"
    CREATIVE = "creative"
    BIDDING = "bidding"


STEP_ORDER = (AcquisitionStep.BUDGET, AcquisitionStep.AUDIENCE, AcquisitionStep.CREATIVE, AcquisitionStep.BIDDING)


# -------------------------
# Guards (pure)
# -------------------------


def effective_age_group(state: GameState) -> Optional[str]:
    at = state.audience_targeting
    if at.age_group:
        return at.age_group
    if at.age_range:
        return bracket_for_range(*at.age_range)
    return None


def step_ready(state: GameState, step: AcquisitionStep) -> bool:
    if step == AcquisitionStep.BUDGET:
        return is_valid_budget(state.budget)
    if step == AcquisitionStep.AUDIENCE:
        return effective_age_group(state) is not None and len(state.audience_targeting.interests) > 0
    if step == AcquisitionStep.CREATIVE:
        return len(state.creative_selection.formats) > 0
    if step == AcquisitionStep.BIDDING:
        return state.bidding_strategy is not None
    return False


def can_enter_acquisition(state: GameState) -> bool:
    return state.app_genre is not None


def can_commit_acquisition(state: GameState) -> bool:
    return (
        state.current_phase == Phase.ACQUISITION
        and can_enter_acquisition(state)
        and not state.phase1_results.committed
        and all(step_ready(state, s) for s in STEP_ORDER)
    )


def can_calculate_retention(state: GameState) -> bool:
    return (
        state.current_phase == Phase.RETENTION
        and state.phase1_results.committed
        and not state.phase2_results.committed
        and state.retention_strategy.is_complete()
    )


def can_enter_monetization(state: GameState) -> bool:
    return state.current_phase == Phase.RETENTION and state.phase2_results.committed


def can_calculate_monetization(state: GameState) -> bool:
    return (
        state.current_phase == Phase.MONETIZATION
        and state.phase2_results.committed
        and not state.phase3_results.committed
        and state.monetization_strategy.is_complete()
    )


def can_finalize(state: GameState) -> bool:
    return state.current_phase == Phase.MONETIZATION and state.phase3_results.committed


# -------------------------
# Session
# -------------------------


class GameSession:
    """State owner for one player's campaign.

    Pass the session to whatever needs it; there is no module-level state.
    Every commit method accepts an optional random source, otherwise a
    stable stream is derived from the config seed.
    """

    def __init__(
        self,
        config: EngineConfig,
        *,
        state: Optional[GameState] = None,
        history: Optional[CampaignHistory] = None,
    ) -> None:
        self.config = config.validate()
        self.state: GameState = state or initial_state()
        self.history = history
        self.step: AcquisitionStep = AcquisitionStep.BUDGET
        self.run_index = 0
        self.phase_logs: List[Dict[str, Any]] = []
        self.last_events: List[EventSpec] = []
        self._preview_count = 0

    # ---- plumbing

    def dispatch(self, action: Action) -> GameState:
        self.state = reduce(self.state, action)
        return self.state

    def _rng(self, *parts: Any) -> RandomSource:
        return rng_from(*parts, self.run_index, base_seed=int(self.config.base_seed))

    def _roll_events(self, phase: Phase, rng: RandomSource) -> List[EventSpec]:
        if not self.config.random_events:
            return []
        events = roll_phase_events(
            phase,
            self.state.events_shown,
            rng,
            positive_probability=self.config.positive_event_probability,
            negative_probability=self.config.negative_event_probability,
            max_events=self.config.max_events,
        )
        for ev in events:
            self.dispatch(ApplyEvent(ev.id, self.config.balance))
            logger.info("event %s applied to %s", ev.id, phase.value)
        return events

    def _log_phase(self, phase: Phase, before: GameState, outcome: Dict[str, Any], events: List[EventSpec]) -> None:
        self.phase_logs.append(
            make_phase_log(
                phase=phase.value,
                before=before,
                after=self.state,
                outcome=outcome,
                events=[e.to_dict() for e in events],
            )
        )

    # ---- home / genre

    def start(self) -> bool:
        if self.state.current_phase != Phase.HOME:
            return False
        self.dispatch(SetPhase(Phase.GENRE_SELECTION))
        return True

    def back_to_home(self) -> bool:
        if self.state.current_phase != Phase.GENRE_SELECTION:
            return False
        self.dispatch(SetPhase(Phase.HOME))
        return True

    def choose_genre(self, genre: str) -> bool:
        if self.state.current_phase != Phase.GENRE_SELECTION:
            return False
        self.dispatch(SetAppGenre(genre))
        return self.state.app_genre == genre

    def enter_acquisition(self) -> bool:
        if self.state.current_phase != Phase.GENRE_SELECTION or not can_enter_acquisition(self.state):
            return False
        self.dispatch(SetPhase(Phase.ACQUISITION))
        self.step = AcquisitionStep.BUDGET
        return True

    # ---- acquisition sub-steps

    def set_budget(self, amount: float) -> bool:
        """False when the amount is invalid or the budget is already locked."""
        if self.state.phase1_results.committed or not is_valid_budget(amount):
            return False
        self.dispatch(SetBudget(amount))
        return True

    def set_audience(self, **fields: Any) -> GameState:
        return self.dispatch(SetAudienceTargeting(**fields))

    def toggle_interest(self, interest: str) -> GameState:
        current = list(self.state.audience_targeting.interests)
        if interest in current:
            current.remove(interest)
        else:
            current.append(interest)
        return self.dispatch(SetAudienceTargeting(interests=tuple(current)))

    def toggle_creative(self, fmt: str) -> GameState:
        current = list(self.state.creative_selection.formats)
        if fmt in current:
            current.remove(fmt)
        elif len(current) < MAX_CREATIVE_FORMATS:
            current.append(fmt)
        return self.dispatch(SetCreativeSelection(formats=tuple(current)))

    def can_continue(self) -> bool:
        return self.state.current_phase == Phase.ACQUISITION and step_ready(self.state, self.step)

    def next_step(self) -> bool:
        if not self.can_continue():
            return False
        ix = STEP_ORDER.index(self.step)
        if ix >= len(STEP_ORDER) - 1:
            return False
        self.step = STEP_ORDER[ix + 1]
        return True

    def back_step(self) -> bool:
        """Go back one sub-step; entered data is kept."""
        ix = STEP_ORDER.index(self.step)
        if ix == 0:
            return False
        self.step = STEP_ORDER[ix - 1]
        return True

    def choose_bidding(self, strategy: str, rng: Optional[RandomSource] = None) -> Optional[Phase1Results]:
        """Selecting a bidding strategy commits acquisition and advances."""
        if self.state.current_phase != Phase.ACQUISITION or self.state.phase1_results.committed:
            return None
        self.dispatch(SetBiddingStrategy(strategy))
        return self.commit_acquisition(rng)

    def _acquisition_outcome(self, rng: RandomSource) -> AcquisitionOutcome:
        s = self.state
        return simulate_acquisition(
            s.budget,
            effective_age_group(s),
            s.audience_targeting.interests,
            s.creative_selection.formats,
            s.genre_metrics,
            rng,
            self.config.balance,
        )

    def commit_acquisition(self, rng: Optional[RandomSource] = None) -> Optional[Phase1Results]:
        if not can_commit_acquisition(self.state):
            return None
        before = self.state
        formula_rng = rng or self._rng("acquisition")
        outcome = self._acquisition_outcome(formula_rng)
        if self.config.apply_variance:
            varied = add_variance(outcome.installs, rng or self._rng("variance", "acquisition"), self.config.balance)
            outcome = replace(outcome, installs=max(0, int(math.floor(varied))))

        self.dispatch(SetPhase1Results(to_phase1_results(outcome, self.state.budget)))
        self.dispatch(SetFeedback(tuple(outcome.feedback)))
        self.last_events = self._roll_events(Phase.ACQUISITION, rng or self._rng("events", "acquisition"))
        self.dispatch(SetPhase(Phase.RETENTION))

        logger.info("acquisition committed: installs=%s cpi=%.2f", self.state.phase1_results.installs, self.state.phase1_results.cpi)
        self._log_phase(Phase.ACQUISITION, before, outcome.to_dict(), self.last_events)
        return self.state.phase1_results

    # ---- retention

    def set_retention(self, **fields: Any) -> GameState:
        return self.dispatch(SetRetentionStrategy(**fields))

    def _retention_outcome(self, rng: RandomSource) -> RetentionOutcome:
        s = self.state
        rs = s.retention_strategy
        return simulate_retention(
            s.phase1_results.installs,
            rs.notification_frequency,
            rs.content_updates,
            rs.special_events,
            s.genre_metrics,
            rng,
            self.config.balance,
            engagement_spend=rs.engagement_spend,
        )

    def calculate_retention(self, rng: Optional[RandomSource] = None) -> Optional[Phase2Results]:
        if not can_calculate_retention(self.state):
            return None
        before = self.state
        outcome = self._retention_outcome(rng or self._rng("retention"))
        results = Phase2Results(
            retention_rates=RetentionRates(d1=outcome.d1, d7=outcome.d7, d30=outcome.d30),
            dau=outcome.dau,
            session_length=outcome.session_length,
            committed=True,
        )
        self.dispatch(SetPhase2Results(results))
        self.dispatch(SetFeedback(tuple(outcome.feedback)))
        self.last_events = self._roll_events(Phase.RETENTION, rng or self._rng("events", "retention"))

        logger.info("retention committed: d7=%.1f dau=%s", self.state.phase2_results.retention_rates.d7, self.state.phase2_results.dau)
        self._log_phase(Phase.RETENTION, before, outcome.to_dict(), self.last_events)
        return self.state.phase2_results

    # ---- monetization

    def set_monetization(self, **fields: Any) -> GameState:
        return self.dispatch(SetMonetizationStrategy(**fields))

    def toggle_ad_format(self, fmt: str) -> GameState:
        current = list(self.state.monetization_strategy.ad_formats)
        if fmt in current:
            current.remove(fmt)
        else:
            current.append(fmt)
        return self.dispatch(SetMonetizationStrategy(ad_formats=tuple(current)))

    def _monetization_outcome(self, rng: RandomSource) -> MonetizationOutcome:
        s = self.state
        ms = s.monetization_strategy
        return simulate_monetization(
            s.phase2_results.dau,
            ms.ad_frequency,
            ms.ad_formats,
            ms.iap_pricing,
            ms.promotional_offers,
            s.genre_metrics,
            rng,
            self.config.balance,
        )

    def calculate_monetization(self, rng: Optional[RandomSource] = None) -> Optional[Phase3Results]:
        if not can_calculate_monetization(self.state):
            return None
        before = self.state
        outcome = self._monetization_outcome(rng or self._rng("monetization"))
        ad, iap = outcome.ad_revenue, outcome.iap_revenue
        if self.config.apply_variance:
            vrng = rng or self._rng("variance", "monetization")
            ad = max(0.0, add_variance(ad, vrng, self.config.balance))
            iap = max(0.0, add_variance(iap, vrng, self.config.balance))

        arpdau = safe_div(ad + iap, self.state.phase2_results.dau)
        results = Phase3Results(
            arpdau=arpdau,
            ad_revenue=ad,
            iap_revenue=iap,
            fill_rate=outcome.fill_rate,
            ecpm=outcome.ecpm,
            roas=projected_roas(arpdau, self.config.balance),
            committed=True,
        )
        self.dispatch(SetPhase3Results(results))
        self.dispatch(SetFeedback(tuple(outcome.feedback)))
        self.last_events = self._roll_events(Phase.MONETIZATION, rng or self._rng("events", "monetization"))

        logger.info("monetization committed: arpdau=%.3f", self.state.phase3_results.arpdau)
        self._log_phase(Phase.MONETIZATION, before, outcome.to_dict(), self.last_events)
        return self.state.phase3_results

    # ---- transitions

    def advance(self) -> bool:
        """Explicit 'continue' after a phase's results are shown."""
        if can_enter_monetization(self.state):
            self.dispatch(SetPhase(Phase.MONETIZATION))
            return True
        if can_finalize(self.state):
            return self.finalize() is not None
        return False

    def finalize(self) -> Optional[FinalResults]:
        if not can_finalize(self.state):
            return None
        self.dispatch(SetFinalResults(compute_final_results(self.state)))
        self.dispatch(SetPhase(Phase.RESULTS))
        logger.info("campaign finished: roas=%.2f", self.state.final_results.roas)
        if self.history is not None:
            self.history.record(self.state)
        return self.state.final_results

    def reset(self) -> GameState:
        self.dispatch(ResetGame())
        self.step = AcquisitionStep.BUDGET
        self.run_index += 1
        self.phase_logs = []
        self.last_events = []
        return self.state

    # ---- strategy simulator

    def preview(self, phase: Phase, rng: Optional[RandomSource] = None) -> Any:
        """Run a phase formula on the current inputs without touching state."""
        self._preview_count += 1
        rng = rng or self._rng("preview", phase.value, self._preview_count)
        if phase == Phase.ACQUISITION:
            return self._acquisition_outcome(rng)
        if phase == Phase.RETENTION:
            return self._retention_outcome(rng)
        if phase == Phase.MONETIZATION:
            return self._monetization_outcome(rng)
        raise ValueError(f"No preview for phase: {phase}")


def use_session(store: Mapping[str, Any], key: str = SESSION_KEY) -> GameSession:
    """Fetch the active session from a UI store or fail fast."""
    session = store.get(key) if store is not None else None
    if not isinstance(session, GameSession):
        raise ConfigurationError("use_session() called without an active GameSession")
    return session
