"""content.providers.base

Provider interfaces.

A provider's job is to turn a debrief prompt into a validated
CampaignDebrief. It never touches the game state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Tuple

from ..schemas import CampaignDebrief


@dataclass(frozen=True)
class ProviderStatus:
    ok: bool
    backend: str
    model: str
    note: str = ""
    error: str = ""


class ContentProvider(Protocol):
    def status(self) -> ProviderStatus: ...

    def generate_debrief(
        self,
        *,
        prompt: str,
        temperature: float = 0.7,
        max_output_tokens: int = 1400,
        repair_on_fail: bool = True,
    ) -> Tuple[CampaignDebrief, str]:
        """Return (debrief, raw_text_used)."""
        ...
