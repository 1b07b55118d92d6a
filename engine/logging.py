"""engine.logging

Small helpers for storing run logs.

A run log is JSON-serializable so it can be exported/imported later.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import Any, Dict, List, Sequence

from core.state import GameState, state_to_dict


def make_phase_log(
    *,
    phase: str,
    before: GameState,
    after: GameState,
    outcome: Dict[str, Any],
    events: Sequence[Dict[str, Any]] = (),
) -> Dict[str, Any]:
    return {
        "phase": str(phase),
        "before": state_to_dict(before),
        "after": state_to_dict(after),
        "outcome": dict(outcome),
        "events": [dict(e) for e in events],
    }


def make_run_export(*, seed: int, config: Any, initial_state: GameState, phase_logs: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "version": 1,
        "seed": int(seed),
        "config": asdict(config) if hasattr(config, "__dataclass_fields__") else dict(config),
        "initial_state": state_to_dict(initial_state),
        "phase_logs": list(phase_logs),
    }


def dumps_run_export(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, indent=2, sort_keys=True, default=str)
