"""content.providers.gemini

Gemini provider for the campaign debrief.

- Supports google-genai (preferred) and google-generativeai (legacy).
- Returns a validated CampaignDebrief or raises RuntimeError with the
  underlying cause; there is no offline fallback text.

UI-agnostic: API keys are resolved by the Streamlit app (secrets/env).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from ..parsing import try_parse_json
from ..prompts import build_json_repair_prompt
from ..schemas import CampaignDebrief, debrief_from_llm
from .base import ProviderStatus

logger = logging.getLogger("campaign_sim.content")

MODEL_CANDIDATES = (
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-2.5-pro",
)


@dataclass
class GeminiProvider:
    api_keys: List[str]

    # runtime
    backend: str = "none"  # genai | legacy | none
    model_in_use: str = ""
    last_error: str = ""

    _client: Any = None
    _legacy: Any = None

    def __post_init__(self) -> None:
        self.api_keys = [str(k).strip() for k in (self.api_keys or []) if str(k).strip()]
        self._init_backend()

    @staticmethod
    def from_api_key_string(raw: str) -> "GeminiProvider":
        """Accepts one key or a comma-separated list (rotated on failure)."""
        return GeminiProvider([x for x in str(raw or "").split(",") if x.strip()])

    def _init_backend(self) -> None:
        self._client = None
        self._legacy = None
        self.backend = "none"
        self.model_in_use = ""

        if not self.api_keys:
            self.last_error = "No API key configured."
            return

        try:
            from google import genai

            self._client = genai.Client(api_key=self.api_keys[0])
            self.backend = "genai"
            self.model_in_use = MODEL_CANDIDATES[0]
            self.last_error = ""
            return
        except Exception as e:
            self.last_error = f"google-genai unavailable: {e}"
            logger.info("google-genai backend unavailable: %s", e)

        try:
            import google.generativeai as genai_legacy

            genai_legacy.configure(api_key=self.api_keys[0])
            self._legacy = genai_legacy
            self.backend = "legacy"
            self.model_in_use = MODEL_CANDIDATES[0]
            self.last_error = ""
        except Exception as e:
            self.last_error = f"google-generativeai unavailable: {e}"
            logger.warning("no Gemini backend available: %s", e)

    def status(self) -> ProviderStatus:
        if self.backend == "none":
            return ProviderStatus(False, "none", "", error=str(self.last_error or ""))
        return ProviderStatus(True, self.backend, self.model_in_use)

    def _rotate_key(self) -> None:
        if len(self.api_keys) <= 1:
            return
        self.api_keys = self.api_keys[1:] + self.api_keys[:1]
        self._init_backend()

    def _call_model(self, model: str, prompt: str, gen_cfg: Dict[str, Any]) -> str:
        if self.backend == "genai" and self._client is not None:
            resp = self._client.models.generate_content(model=model, contents=prompt, config=gen_cfg)
        elif self.backend == "legacy" and self._legacy is not None:
            resp = self._legacy.GenerativeModel(model).generate_content(prompt, generation_config=gen_cfg)
        else:
            raise RuntimeError(self.last_error or "Gemini backend not initialised")
        return (getattr(resp, "text", "") or "").strip()

    def _generate_text(self, prompt: str, temperature: float, max_output_tokens: int) -> str:
        gen_cfg: Dict[str, Any] = {
            "temperature": float(temperature),
            "max_output_tokens": int(max_output_tokens),
            "response_mime_type": "application/json",
        }
        last_err: Optional[Exception] = None

        for _ in range(max(1, len(self.api_keys))):
            for model in MODEL_CANDIDATES:
                try:
                    txt = self._call_model(model, prompt, gen_cfg)
                except Exception as e:
                    last_err = e
                    logger.info("Gemini model %s failed: %s", model, e)
                    continue
                if txt:
                    self.model_in_use = model
                    return txt
            self._rotate_key()

        raise RuntimeError(f"Gemini error: {last_err}" if last_err else "Gemini returned no text.")

    @staticmethod
    def _parse_or_raise(raw: str) -> Dict[str, Any]:
        res = try_parse_json(raw)
        if res.data is None:
            raise ValueError(res.error or "could not parse JSON")
        return res.data

    def generate_debrief(
        self,
        *,
        prompt: str,
        temperature: float = 0.7,
        max_output_tokens: int = 1400,
        repair_on_fail: bool = True,
    ) -> Tuple[CampaignDebrief, str]:
        """Generate and validate a CampaignDebrief.

        One repair pass is attempted when the first reply does not parse or
        validate.
        """
        raw = self._generate_text(prompt, temperature=temperature, max_output_tokens=max_output_tokens)
        try:
            return debrief_from_llm(self._parse_or_raise(raw)), raw
        except ValueError as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.info("debrief reply rejected: %s", self.last_error)

        if not repair_on_fail:
            raise RuntimeError(self.last_error or "Gemini debrief could not be validated")

        raw2 = self._generate_text(build_json_repair_prompt(raw), temperature=0.1, max_output_tokens=max_output_tokens + 300)
        try:
            return debrief_from_llm(self._parse_or_raise(raw2)), raw2
        except ValueError as e:
            self.last_error = f"{type(e).__name__}: {e}"
            raise RuntimeError(f"Gemini debrief could not be validated: {self.last_error}") from e
