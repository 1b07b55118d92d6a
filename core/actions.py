"""
core.actions
Command variants and the single reducer that applies them.

reduce() is pure: (GameState, command) -> GameState. Anything that is not a
known command leaves the state unchanged. Invalid payloads (unknown phase,
budget out of range, changing the genre or budget after they are locked) are
ignored rather than raised; the UI disables those controls anyway.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple, Union

from .balance import DEFAULT_BALANCE, GENRES, MAX_CREATIVE_FORMATS, BalanceTable, GenreMetrics, is_valid_budget
from .events import apply_event, get_event
from .state import (
    CreativeSelection,
    FinalResults,
    GameState,
    Phase,
    Phase1Results,
    Phase2Results,
    Phase3Results,
    initial_state,
)

logger = logging.getLogger("campaign_sim.actions")

_UNSET: Any = object()


@dataclass(frozen=True)
class SetPhase:
    phase: Phase


@dataclass(frozen=True)
class SetAppGenre:
    genre: str
    metrics: Optional[GenreMetrics] = None


@dataclass(frozen=True)
class SetBudget:
    amount: float


@dataclass(frozen=True)
class SetAudienceTargeting:
    """Partial update: only fields that are passed are merged."""

    age_group: Any = _UNSET
    age_range: Any = _UNSET
    interests: Any = _UNSET
    geo: Any = _UNSET
    device_type: Any = _UNSET


@dataclass(frozen=True)
class SetCreativeSelection:
    formats: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SetBiddingStrategy:
    strategy: str


@dataclass(frozen=True)
class SetPhase1Results:
    results: Phase1Results


@dataclass(frozen=True)
class SetRetentionStrategy:
    notification_frequency: Any = _UNSET
    content_updates: Any = _UNSET
    special_events: Any = _UNSET
    engagement_spend: Any = _UNSET


@dataclass(frozen=True)
class SetPhase2Results:
    results: Phase2Results


@dataclass(frozen=True)
class SetMonetizationStrategy:
    ad_formats: Any = _UNSET
    ad_frequency: Any = _UNSET
    iap_pricing: Any = _UNSET
    promotional_offers: Any = _UNSET


@dataclass(frozen=True)
class SetPhase3Results:
    results: Phase3Results


@dataclass(frozen=True)
class SetFinalResults:
    results: FinalResults


@dataclass(frozen=True)
class SetFeedback:
    messages: Tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ApplyEvent:
    event_id: str
    balance: BalanceTable = field(default=DEFAULT_BALANCE, compare=False, repr=False)


@dataclass(frozen=True)
class ResetGame:
    pass


Action = Union[
    SetPhase,
    SetAppGenre,
    SetBudget,
    SetAudienceTargeting,
    SetCreativeSelection,
    SetBiddingStrategy,
    SetPhase1Results,
    SetRetentionStrategy,
    SetPhase2Results,
    SetMonetizationStrategy,
    SetPhase3Results,
    SetFinalResults,
    SetFeedback,
    ApplyEvent,
    ResetGame,
]


def _merge(target: Any, update: Any) -> Any:
    """Merge the explicitly-set fields of a partial-update command into target."""
    changes = {k: v for k, v in vars(update).items() if v is not _UNSET}
    for k, v in list(changes.items()):
        if isinstance(v, (list, set, frozenset)):
            changes[k] = tuple(v)
    return replace(target, **changes)


def reduce(state: GameState, action: Action) -> GameState:
    if isinstance(action, SetPhase):
        try:
            phase = Phase(action.phase)
        except ValueError:
            logger.debug("unknown phase %r ignored", action.phase)
            return state
        return replace(state, current_phase=phase)

    if isinstance(action, SetAppGenre):
        if state.app_genre is not None:
            logger.debug("genre already locked to %s; ignoring %s", state.app_genre, action.genre)
            return state
        metrics = action.metrics
        if metrics is None:
            spec = GENRES.get(action.genre)
            if spec is None:
                logger.debug("unknown genre %r ignored", action.genre)
                return state
            metrics = spec.metrics
        return replace(state, app_genre=str(action.genre), genre_metrics=metrics)

    if isinstance(action, SetBudget):
        if state.phase1_results.committed:
            logger.debug("budget locked after acquisition results; ignoring %s", action.amount)
            return state
        if not is_valid_budget(action.amount):
            logger.debug("budget %r out of range; ignoring", action.amount)
            return state
        return replace(state, budget=float(action.amount))

    if isinstance(action, SetAudienceTargeting):
        return replace(state, audience_targeting=_merge(state.audience_targeting, action))

    if isinstance(action, SetCreativeSelection):
        formats = tuple(dict.fromkeys(action.formats))[:MAX_CREATIVE_FORMATS]
        return replace(state, creative_selection=CreativeSelection(formats=formats))

    if isinstance(action, SetBiddingStrategy):
        return replace(state, bidding_strategy=str(action.strategy))

    if isinstance(action, SetPhase1Results):
        return replace(state, phase1_results=action.results)

    if isinstance(action, SetRetentionStrategy):
        return replace(state, retention_strategy=_merge(state.retention_strategy, action))

    if isinstance(action, SetPhase2Results):
        return replace(state, phase2_results=action.results)

    if isinstance(action, SetMonetizationStrategy):
        return replace(state, monetization_strategy=_merge(state.monetization_strategy, action))

    if isinstance(action, SetPhase3Results):
        return replace(state, phase3_results=action.results)

    if isinstance(action, SetFinalResults):
        return replace(state, final_results=action.results)

    if isinstance(action, SetFeedback):
        return replace(state, feedback=tuple(action.messages))

    if isinstance(action, ApplyEvent):
        try:
            event = get_event(action.event_id)
        except KeyError:
            logger.debug("unknown event %r ignored", action.event_id)
            return state
        return apply_event(state, event, action.balance)

    if isinstance(action, ResetGame):
        return initial_state()

    logger.debug("unrecognized action %r ignored", action)
    return state
