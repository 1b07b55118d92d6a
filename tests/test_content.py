"""Tests for the AI debrief layer (no network: the model call is stubbed)."""

import pytest

from content.parsing import must_parse_json, try_parse_json
from content.prompts import build_debrief_prompt, build_json_repair_prompt, describe_metrics
from content.providers.gemini import GeminiProvider
from content.schemas import CampaignDebrief, debrief_from_llm, normalize_focus, validate_debrief

GOOD = {
    "headline": "Cheap installs, leaky funnel",
    "summary": (
        "Your video-heavy creatives bought installs below market rate, but only a small share of "
        "those users were still around after a week, so monetization had little to work with."
    ),
    "focus": "retention",
    "next_steps": ["Ship weekly content", "Add a live event", "Test rewarded ads"],
}


# ── Parsing ────────────────────────────────────────────────


def test_parses_fenced_json():
    raw = 'Sure! ```json\n{"a": 1, "b": [1, 2,],}\n``` hope that helps'
    assert try_parse_json(raw).data == {"a": 1, "b": [1, 2]}


def test_parses_smart_quotes_and_newlines():
    raw = "{“a”: “line one\nline two”}"
    assert must_parse_json(raw) == {"a": "line one\nline two"}


def test_parses_python_literals():
    raw = "{'ok': true, 'none': null, 'n': 2}"
    assert must_parse_json(raw) == {"ok": True, "none": None, "n": 2}


def test_non_object_root_rejected():
    res = try_parse_json("[1, 2, 3]")
    assert res.data is None
    assert res.error


def test_garbage_raises():
    with pytest.raises(ValueError):
        must_parse_json("no json here")


# ── Schema ─────────────────────────────────────────────────


def test_debrief_from_llm():
    d = debrief_from_llm(GOOD)
    assert isinstance(d, CampaignDebrief)
    assert d.focus == "retention"
    assert d.to_dict()["next_steps"] == GOOD["next_steps"]


def test_steps_from_multiline_string():
    d = debrief_from_llm({**GOOD, "next_steps": "- one\n- two\n"})
    assert d.next_steps == ["one", "two"]


def test_short_summary_rejected():
    with pytest.raises(ValueError):
        debrief_from_llm({**GOOD, "summary": "too short"})


def test_too_few_steps_rejected():
    d = CampaignDebrief(headline="A headline", summary=GOOD["summary"], focus="overall", next_steps=["one"])
    with pytest.raises(ValueError):
        validate_debrief(d)


def test_focus_aliases():
    assert normalize_focus("Revenue") == "monetization"
    assert normalize_focus("UA") == "acquisition"
    assert normalize_focus("???") == "overall"


# ── Prompts ────────────────────────────────────────────────


def test_debrief_prompt_mentions_campaign():
    prompt = build_debrief_prompt(
        genre="Casual Game",
        budget=1500,
        metrics={"roas": 1.25, "cpi": 0.9, "retention_d7": 24.0, "arpdau": 0.3, "ctr": 0.06},
        strategies={"creatives": ["Playable Ads"], "bidding": "moderate"},
        insights=["Your campaign is profitable!"],
        events=["Viral Creative! 🚀"],
    )
    assert "Casual Game" in prompt
    assert "$1,500" in prompt
    assert "Viral Creative!" in prompt
    assert "JSON" in prompt


def test_describe_metrics_words():
    text = describe_metrics({"roas": 1.2, "cpi": 0.8, "ctr": 0.06, "retention_d7": 35, "arpdau": 0.6})
    assert "profitable" in text
    assert "cheap" in text


def test_repair_prompt_embeds_text():
    assert "{broken" in build_json_repair_prompt("{broken")


# ── Provider ───────────────────────────────────────────────


def test_provider_without_key_not_ready():
    p = GeminiProvider([])
    st = p.status()
    assert not st.ok
    assert st.backend == "none"
    assert st.error


def test_key_string_split():
    p = GeminiProvider.from_api_key_string("")
    assert p.api_keys == []


def test_generate_debrief_uses_repair_pass(monkeypatch):
    p = GeminiProvider([])
    replies = iter(["not json at all", '{"headline": "%s", "summary": "%s", "focus": "retention", "next_steps": ["a", "b"]}' % (GOOD["headline"], GOOD["summary"])])
    monkeypatch.setattr(p, "_generate_text", lambda prompt, temperature, max_output_tokens: next(replies))

    debrief, raw = p.generate_debrief(prompt="x")
    assert debrief.headline == GOOD["headline"]
    assert raw.startswith("{")


def test_generate_debrief_fails_loudly(monkeypatch):
    p = GeminiProvider([])
    monkeypatch.setattr(p, "_generate_text", lambda prompt, temperature, max_output_tokens: "nope")
    with pytest.raises(RuntimeError):
        p.generate_debrief(prompt="x")
    with pytest.raises(RuntimeError):
        p.generate_debrief(prompt="x", repair_on_fail=False)


def test_generate_text_without_backend_raises():
    with pytest.raises(RuntimeError):
        GeminiProvider([])._generate_text("x", 0.5, 100)
