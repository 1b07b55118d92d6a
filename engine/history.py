"""engine.history

Campaign history: a small JSON file holding the most recent finished
campaigns (newest first). Writes are best-effort; a failing disk never
interrupts a session.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.state import GameState

logger = logging.getLogger("campaign_sim.history")

STORAGE_KEY = "campaignHistory"
MAX_HISTORY = 5


def make_history_entry(state: GameState, *, now: Optional[datetime] = None) -> Dict[str, Any]:
    ts = now or datetime.now(timezone.utc)
    return {
        "id": int(ts.timestamp() * 1000),
        "timestamp": ts.isoformat(),
        "metrics": {
            "spend": float(state.budget),
            "revenue": float(state.final_results.total_revenue),
            "roas": float(state.final_results.roas),
            "cpi": float(state.phase1_results.cpi),
            "retention_d7": float(state.phase2_results.retention_rates.d7),
            "arpdau": float(state.phase3_results.arpdau),
        },
        "strategies": {
            "genre": state.app_genre,
            "audience": asdict(state.audience_targeting),
            "creatives": list(state.creative_selection.formats),
            "bidding": state.bidding_strategy,
            "retention": asdict(state.retention_strategy),
            "monetization": asdict(state.monetization_strategy),
        },
    }


@dataclass
class CampaignHistory:
    path: str
    limit: int = MAX_HISTORY

    def load(self) -> List[Dict[str, Any]]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning("campaign history unreadable (%s): %s", self.path, e)
            return []
        entries = data.get(STORAGE_KEY) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            return []
        return [e for e in entries if isinstance(e, dict)][: self.limit]

    def record(self, state: GameState) -> List[Dict[str, Any]]:
        """Prepend a finished campaign and evict the oldest beyond the limit."""
        entries = [make_history_entry(state), *self.load()][: self.limit]
        try:
            tmp = f"{self.path}.{os.getpid()}.{int(time.time() * 1000)}.tmp"
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump({STORAGE_KEY: entries}, fh, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.warning("campaign history not saved (%s): %s", self.path, e)
        return entries

    def clear(self) -> None:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("campaign history not cleared (%s): %s", self.path, e)


def best_of(entries: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Best ROAS / best D7 plus creative mixes of profitable campaigns."""
    if not entries:
        return {"best_roas": 0.0, "best_retention_d7": 0.0, "winning_creatives": []}
    metrics = [e.get("metrics") or {} for e in entries]
    winning = [
        ", ".join((e.get("strategies") or {}).get("creatives") or [])
        for e in entries
        if float((e.get("metrics") or {}).get("roas", 0.0)) >= 1.0
    ]
    return {
        "best_roas": max(float(m.get("roas", 0.0)) for m in metrics),
        "best_retention_d7": max(float(m.get("retention_d7", 0.0)) for m in metrics),
        "winning_creatives": winning[:2],
    }
