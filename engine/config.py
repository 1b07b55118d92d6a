"""engine.config

Engine configuration passed from UI.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from core.balance import DEFAULT_BALANCE, BalanceTable
from core.events import MAX_EVENTS_PER_SESSION, NEGATIVE_EVENT_PROBABILITY, POSITIVE_EVENT_PROBABILITY


class ConfigurationError(RuntimeError):
    """Engine used without a valid session or with an invalid configuration."""


@dataclass(frozen=True)
class EngineConfig:
    base_seed: int
    balance: BalanceTable = field(default_factory=lambda: DEFAULT_BALANCE)
    positive_event_probability: float = POSITIVE_EVENT_PROBABILITY
    negative_event_probability: float = NEGATIVE_EVENT_PROBABILITY
    max_events: int = MAX_EVENTS_PER_SESSION
    random_events: bool = True
    apply_variance: bool = True
    history_path: str = ".campaign_history.json"
    history_limit: int = 5

    def validate(self) -> "EngineConfig":
        for name in ("positive_event_probability", "negative_event_probability"):
            p = float(getattr(self, name))
            if not 0.0 <= p <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {p}")
        if int(self.max_events) < 0:
            raise ConfigurationError("max_events must be >= 0")
        if int(self.history_limit) < 1:
            raise ConfigurationError("history_limit must be >= 1")
        lo, hi = self.balance.variance_range
        if not 0.0 <= lo <= hi < 1.0:
            raise ConfigurationError(f"variance_range must satisfy 0 <= lo <= hi < 1, got {(lo, hi)}")
        return self
