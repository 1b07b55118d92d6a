"""UA Campaign Simulator (Streamlit)

UI/Experience layer.

Principles:
- UI only renders + triggers.
- Core domain and engine are pure Python modules; every change goes through
  the GameSession held in st.session_state.
- The optional AI debrief is LLM-only (Gemini). If the LLM fails we show a
  clear error (no silent offline fallback).

Entry point for Streamlit Cloud: app.py
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import streamlit as st

import core
from content.prompts import build_debrief_prompt
from content.providers.base import ProviderStatus
from content.providers.gemini import GeminiProvider
from core.balance import (
    AD_FORMATS,
    AGE_BRACKETS,
    BIDDING_STRATEGIES,
    BUDGET_MAX,
    BUDGET_MIN,
    BUDGET_STEP,
    CONTENT_TIERS,
    CREATIVE_FORMATS,
    GENRES,
    GLOSSARY,
    INTERESTS,
    LEVEL_TIERS,
    MAX_CREATIVE_FORMATS,
    NOTIFICATION_TIERS,
    PROMO_TIERS,
)
from core.events import get_event
from core.insights import (
    PREVIEW_TARGETS,
    AchievementSnapshot,
    creative_performance,
    is_profitable,
    pick_recommendation,
    retention_curve,
    revenue_share,
    revenue_split,
    unlocked_achievements,
)
from core.rng import rng_from, stable_int_seed
from core.state import Phase
from engine.config import ConfigurationError, EngineConfig
from engine.history import CampaignHistory, best_of, make_history_entry
from engine.logging import dumps_run_export, make_run_export
from engine.pipeline import AcquisitionStep, GameSession, effective_age_group, use_session

APP_TITLE = "UA Campaign Simulator"
APP_SUBTITLE = "Run a mobile app campaign: acquire users, keep them, monetize them. Hit ROAS ≥ 1."
APP_VERSION = "1.0.0"
EXPECTED_CORE_API = "core-v1-20261019"

logging.basicConfig(level=os.getenv("CAMPAIGN_SIM_LOG_LEVEL", "INFO"), format="%(asctime)s %(name)s %(levelname)s %(message)s")
logger = logging.getLogger("campaign_sim.app")

st.set_page_config(page_title=APP_TITLE, page_icon="📱", layout="wide", initial_sidebar_state="expanded")

CSS = """
<style>
.block-container {padding-top: 3.2rem; padding-bottom: 2rem;}
section[data-testid="stSidebar"] .block-container {padding-top: 2.0rem;}
.card {
  border: 1px solid rgba(255,255,255,0.08);
  border-radius: 16px;
  padding: 14px 16px;
  background: rgba(255,255,255,0.03);
}
.pill {
  display: inline-block;
  padding: 2px 10px;
  border-radius: 999px;
  border: 1px solid rgba(255,255,255,0.12);
  font-size: 12px;
  opacity: .85;
}
.pill.ok {border-color: rgba(120,255,160,0.25);}
.pill.bad {border-color: rgba(255,120,120,0.25);}
hr.soft {border: none; border-top: 1px solid rgba(255,255,255,0.08); margin: 1rem 0;}
.small {font-size: 13px; opacity:.75;}
</style>
"""

st.markdown(CSS, unsafe_allow_html=True)

if getattr(core, "API_VERSION", None) != EXPECTED_CORE_API:
    st.error(
        "Core version does not match the app (partially updated checkout?).\n\n"
        f"Expected core: {EXPECTED_CORE_API}, found: {getattr(core, 'API_VERSION', None)!r}"
    )
    st.stop()


# =========================
# Helpers
# =========================


def _get_api_key() -> str:
    # Streamlit Cloud: st.secrets; a missing secrets file raises on access
    try:
        if "GEMINI_API_KEY" in st.secrets:
            return str(st.secrets["GEMINI_API_KEY"])
    except FileNotFoundError:
        pass
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY") or ""


def _provider() -> GeminiProvider:
    return GeminiProvider.from_api_key_string(_get_api_key())


def _provider_status() -> ProviderStatus:
    return _provider().status()


def _pill(label: str, good: bool) -> str:
    return f"<span class='pill {'ok' if good else 'bad'}'>{label}</span>"


def _show_feedback(messages: List[str]) -> None:
    if not messages:
        return
    st.markdown("#### 💡 Coach says")
    for m in messages:
        st.markdown(f"- {m}")


def _show_events(session: GameSession) -> None:
    for ev in session.last_events:
        box = st.success if ev.polarity == "positive" else st.warning
        box(f"**{ev.title}** {ev.description}")


def _show_recommendation(session: GameSession, phase: Phase) -> None:
    ss = st.session_state
    dismissed = ss.setdefault("dismissed_tips", [])
    rng = rng_from("tip", phase.value, len(dismissed), base_seed=int(session.config.base_seed))
    rec = pick_recommendation(phase, session.state, rng, dismissed)
    if rec is None:
        return
    c1, c2 = st.columns([6, 1])
    c1.info(f"{rec.icon} {rec.message}")
    if c2.button("Dismiss", key=f"dismiss_{rec.id}"):
        dismissed.append(rec.id)
        st.rerun()


def _preview_box(session: GameSession, phase: Phase) -> None:
    """Strategy simulator: run the formula on current inputs, no commit."""
    with st.expander("🔮 Strategy simulator (preview)"):
        if not st.button("Simulate", key=f"preview_{phase.value}"):
            st.caption("Preview a possible outcome of the current choices. Nothing is saved.")
            return
        out = session.preview(phase).to_dict()
        targets = PREVIEW_TARGETS.get(phase, {})
        cols = st.columns(max(1, len(targets)))
        for col, (k, target) in zip(cols, targets.items()):
            col.metric(k.upper(), f"{float(out.get(k, 0.0)):.3f}", f"target {target}")


# =========================
# Session State
# =========================


def _ensure_state() -> None:
    ss = st.session_state
    if "base_seed" not in ss:
        ss.base_seed = stable_int_seed(datetime.now(timezone.utc).isoformat()) % 100_000
    if "game_session" not in ss:
        cfg = EngineConfig(base_seed=int(ss.base_seed))
        ss.game_session = GameSession(cfg, history=CampaignHistory(cfg.history_path, cfg.history_limit))
        ss.initial_state = ss.game_session.state
    if "dismissed_tips" not in ss:
        ss.dismissed_tips = []
    if "debrief" not in ss:
        ss.debrief = None
    if "debrief_raw" not in ss:
        ss.debrief_raw = ""


def _reset_run(new_seed: Optional[int] = None) -> None:
    ss = st.session_state
    if new_seed is not None and int(new_seed) != int(ss.base_seed):
        ss.base_seed = int(new_seed)
        del ss["game_session"]
    else:
        use_session(ss).reset()
    ss.dismissed_tips = []
    ss.debrief = None
    ss.debrief_raw = ""
    _ensure_state()
    ss.initial_state = ss.game_session.state


# =========================
# UI Pages
# =========================


def page_home(session: GameSession) -> None:
    st.title(APP_TITLE)
    st.caption(APP_SUBTITLE)
    st.markdown(
        """
        ### How to play
        - Pick an **app genre**. It shifts costs, retention and revenue for the whole campaign.
        - **Acquisition:** set budget, audience, up to two creatives and a bidding strategy.
        - **Retention:** choose notifications, content cadence, live events and engagement spend.
        - **Monetization:** mix ad formats, ad frequency, IAP pricing and promotions.
        - Goal: a **ROAS of 1.0 or higher**. Watch for random market events.
        """
    )
    if st.button("Start campaign", type="primary"):
        session.start()
        st.rerun()


def page_genre(session: GameSession) -> None:
    st.title("Choose your app genre")
    chosen = session.state.app_genre
    cols = st.columns(len(GENRES))
    for col, (key, spec) in zip(cols, GENRES.items()):
        with col:
            st.markdown("<div class='card'>", unsafe_allow_html=True)
            st.markdown(f"#### {spec.icon} {key}")
            st.caption(spec.desc)
            st.markdown(" ".join(_pill(p, True) for p in spec.power_ups), unsafe_allow_html=True)
            st.markdown(" ".join(_pill(p, False) for p in spec.power_downs), unsafe_allow_html=True)
            if st.button("Selected" if chosen == key else "Select", key=f"genre_{key}", disabled=chosen is not None):
                session.choose_genre(key)
                st.rerun()
            st.markdown("</div>", unsafe_allow_html=True)

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    c1, c2 = st.columns(2)
    if c1.button("Back"):
        session.back_to_home()
        st.rerun()
    if c2.button("Continue to acquisition", type="primary", disabled=chosen is None):
        session.enter_acquisition()
        st.rerun()


def _acq_budget(session: GameSession) -> None:
    budget = st.select_slider(
        "Campaign budget ($)",
        options=list(range(BUDGET_MIN, BUDGET_MAX + 1, BUDGET_STEP)),
        value=int(session.state.budget),
    )
    if int(budget) != int(session.state.budget):
        session.set_budget(budget)


def _acq_audience(session: GameSession) -> None:
    at = session.state.audience_targeting
    lo, hi = at.age_range or (18, 84)
    age_range = st.slider("Age range", min_value=18, max_value=84, value=(int(lo), int(hi)))
    if tuple(age_range) != tuple(at.age_range or ()):
        session.set_audience(age_range=tuple(age_range), age_group=None)
    group = effective_age_group(session.state)
    if group:
        b = AGE_BRACKETS[group]
        st.caption(f"Bracket {group}: CPI ×{b.cpi}, retention ×{b.retention}, monetization ×{b.monetization}")

    st.markdown("**Interests**")
    cols = st.columns(len(INTERESTS))
    for col, interest in zip(cols, INTERESTS):
        on = interest in session.state.audience_targeting.interests
        if col.checkbox(interest, value=on, key=f"interest_{interest}") != on:
            session.toggle_interest(interest)
            st.rerun()


def _acq_creative(session: GameSession) -> None:
    selected = session.state.creative_selection.formats
    st.caption(f"Pick up to {MAX_CREATIVE_FORMATS}. Mostly video creatives earn a CTR/CVR bonus.")
    for key, fmt in CREATIVE_FORMATS.items():
        on = key in selected
        full = len(selected) >= MAX_CREATIVE_FORMATS and not on
        label = f"{key} {'🎬' if fmt.is_video else '🖼️'}"
        if st.checkbox(label, value=on, key=f"creative_{key}", disabled=full) != on:
            session.toggle_creative(key)
            st.rerun()


def _acq_bidding(session: GameSession) -> None:
    cols = st.columns(len(BIDDING_STRATEGIES))
    for col, (key, strat) in zip(cols, BIDDING_STRATEGIES.items()):
        with col:
            st.markdown(f"#### {key.title()}")
            st.caption(f"{strat.desc} · {strat.market_rate}")
            if st.button(f"Launch with {key} bids", key=f"bid_{key}", use_container_width=True):
                session.choose_bidding(key)
                st.rerun()


def page_acquisition(session: GameSession) -> None:
    st.title("Phase 1 · User Acquisition")
    steps = list(AcquisitionStep)
    st.progress((steps.index(session.step) + 1) / len(steps), text=f"Step: {session.step.value}")
    _show_recommendation(session, Phase.ACQUISITION)

    renderers = {
        AcquisitionStep.BUDGET: _acq_budget,
        AcquisitionStep.AUDIENCE: _acq_audience,
        AcquisitionStep.CREATIVE: _acq_creative,
        AcquisitionStep.BIDDING: _acq_bidding,
    }
    renderers[session.step](session)

    if session.step == AcquisitionStep.BIDDING:
        _preview_box(session, Phase.ACQUISITION)

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    c1, c2 = st.columns(2)
    if c1.button("Back", disabled=session.step == AcquisitionStep.BUDGET):
        session.back_step()
        st.rerun()
    if session.step != AcquisitionStep.BIDDING:
        if c2.button("Next", type="primary", disabled=not session.can_continue()):
            session.next_step()
            st.rerun()


def _phase1_summary(session: GameSession) -> None:
    p1 = session.state.phase1_results
    a, b, c, d, e = st.columns(5)
    a.metric("Impressions", f"{p1.impressions:,}")
    b.metric("Clicks", f"{p1.clicks:,}")
    c.metric("CTR", f"{p1.ctr * 100:.2f}%")
    d.metric("Installs", f"{p1.installs:,}")
    e.metric("CPI", f"${p1.cpi:.2f}")


def page_retention(session: GameSession) -> None:
    st.title("Phase 2 · Retention & Engagement")
    s = session.state
    with st.expander("Acquisition results", expanded=not s.phase2_results.committed):
        _phase1_summary(session)

    if not s.phase2_results.committed:
        _show_events(session)
        _show_feedback(list(s.feedback))

    rs = s.retention_strategy
    done = s.phase2_results.committed
    notif = st.radio("Push notifications", NOTIFICATION_TIERS, index=NOTIFICATION_TIERS.index(rs.notification_frequency) if rs.notification_frequency else 0, horizontal=True, disabled=done)
    content = st.radio("Content updates", CONTENT_TIERS, index=CONTENT_TIERS.index(rs.content_updates) if rs.content_updates else 0, horizontal=True, disabled=done)
    events = st.toggle("Run special live events", value=bool(rs.special_events), disabled=done)
    spend = st.radio("Engagement spend", LEVEL_TIERS, index=LEVEL_TIERS.index(rs.engagement_spend) if rs.engagement_spend else 0, horizontal=True, disabled=done)
    if not done:
        session.set_retention(notification_frequency=notif, content_updates=content, special_events=bool(events), engagement_spend=spend)
        _show_recommendation(session, Phase.RETENTION)
        _preview_box(session, Phase.RETENTION)
        if st.button("Calculate retention", type="primary"):
            session.calculate_retention()
            st.rerun()
        return

    p2 = session.state.phase2_results
    r = p2.retention_rates
    a, b, c, d, e = st.columns(5)
    a.metric("D1", f"{r.d1:.1f}%")
    b.metric("D7", f"{r.d7:.1f}%")
    c.metric("D30", f"{r.d30:.1f}%")
    d.metric("DAU", f"{p2.dau:,}")
    e.metric("Session", f"{p2.session_length:.1f} min")
    _show_events(session)
    _show_feedback(list(session.state.feedback))
    if st.button("Continue to monetization", type="primary"):
        session.advance()
        st.rerun()


def page_monetization(session: GameSession) -> None:
    st.title("Phase 3 · Monetization")
    s = session.state
    ms = s.monetization_strategy
    done = s.phase3_results.committed

    st.markdown("**Ad formats**")
    for key, fmt in AD_FORMATS.items():
        on = key in ms.ad_formats
        if st.checkbox(f"{fmt.name} · {fmt.desc}", value=on, key=f"adfmt_{key}", disabled=done) != on:
            session.toggle_ad_format(key)
            st.rerun()
    freq = st.radio("Ad frequency", LEVEL_TIERS, index=LEVEL_TIERS.index(ms.ad_frequency) if ms.ad_frequency else 0, horizontal=True, disabled=done)
    iap = st.radio("IAP pricing", LEVEL_TIERS, index=LEVEL_TIERS.index(ms.iap_pricing) if ms.iap_pricing else 0, horizontal=True, disabled=done)
    promo = st.radio("Promotional offers", PROMO_TIERS, index=PROMO_TIERS.index(ms.promotional_offers) if ms.promotional_offers else 0, horizontal=True, disabled=done)

    if not done:
        session.set_monetization(ad_frequency=freq, iap_pricing=iap, promotional_offers=promo)
        _show_recommendation(session, Phase.MONETIZATION)
        _preview_box(session, Phase.MONETIZATION)
        if not session.state.monetization_strategy.is_complete():
            st.caption("Select at least one ad format.")
        if st.button("Calculate revenue", type="primary", disabled=not session.state.monetization_strategy.is_complete()):
            session.calculate_monetization()
            st.rerun()
        return

    p3 = session.state.phase3_results
    a, b, c, d, e = st.columns(5)
    a.metric("Ad revenue", f"${p3.ad_revenue:,.2f}")
    b.metric("IAP revenue", f"${p3.iap_revenue:,.2f}")
    c.metric("ARPDAU", f"${p3.arpdau:.3f}")
    d.metric("Fill rate", f"{p3.fill_rate * 100:.0f}%")
    e.metric("eCPM", f"${p3.ecpm:.2f}")
    _show_events(session)
    _show_feedback(list(session.state.feedback))
    if st.button("See final results", type="primary"):
        session.advance()
        st.rerun()


def _generate_debrief(session: GameSession) -> None:
    ss = st.session_state
    provider = _provider()
    stt = provider.status()
    ss.provider_status = asdict(stt)
    if not stt.ok:
        raise RuntimeError(f"Gemini not ready: {stt.error or 'API key?'}")

    s = session.state
    entry = make_history_entry(s)
    prompt = build_debrief_prompt(
        genre=s.app_genre or "",
        budget=s.budget,
        metrics={**entry["metrics"], "ctr": s.phase1_results.ctr},
        strategies=entry["strategies"],
        insights=list(s.final_results.insights),
        events=[get_event(e).title for e in s.events_shown],
    )
    debrief, raw = provider.generate_debrief(prompt=prompt)
    ss.debrief = debrief
    ss.debrief_raw = raw


def _render_analytics(session: GameSession) -> None:
    s = session.state
    st.markdown("### 📊 Campaign analytics")
    left, right = st.columns(2)
    with left:
        st.markdown("**Retention curve**")
        st.caption("How many users keep opening the app over time (%).")
        st.line_chart(retention_curve(s), x="day", y="rate", height=220)
    with right:
        st.markdown("**Revenue split**")
        ad_share, iap_share = revenue_share(s)
        st.caption(f"Ads {ad_share:.0%} · IAP {iap_share:.0%}")
        st.bar_chart(revenue_split(s), x="source", y="revenue", height=220)

    if s.creative_selection.formats:
        st.markdown("**Creative performance**")
        st.caption("CTR and CVR (%) per ad format.")
        rng = rng_from("creatives", *s.creative_selection.formats, base_seed=int(session.config.base_seed))
        st.bar_chart(creative_performance(s, rng), x="format", y=["ctr", "cvr"], height=220)

    p2, p3 = s.phase2_results, s.phase3_results
    a, b, c = st.columns(3)
    a.metric("ARPDAU", f"${p3.arpdau:.3f}")
    b.metric("D7 retention", f"{p2.retention_rates.d7:.1f}%")
    c.metric("eCPM", f"${p3.ecpm:.2f}")


def page_results(session: GameSession) -> None:
    s = session.state
    fr = s.final_results
    st.title("Campaign results")

    a, b, c = st.columns(3)
    a.metric("Total spend", f"${fr.total_spend:,.2f}")
    b.metric("Total revenue", f"${fr.total_revenue:,.2f}")
    c.metric("ROAS", f"{fr.roas:.2f}")
    if is_profitable(fr.roas):
        st.success("🎉 Profitable campaign!")
    else:
        st.error("📉 The campaign did not pay back its spend.")

    st.markdown("### Insights")
    for line in fr.insights:
        st.markdown(f"- {line}")

    _render_analytics(session)

    unlocked = unlocked_achievements(AchievementSnapshot.from_state(s))
    if unlocked:
        st.markdown("### Achievements")
        cols = st.columns(len(unlocked))
        for col, ach in zip(cols, unlocked):
            col.markdown(f"#### {ach.icon} {ach.title}")
            col.caption(ach.description)

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    st.markdown("### 🤖 AI debrief")
    ss = st.session_state
    if ss.debrief is None:
        if st.button("Ask the coach (Gemini)"):
            try:
                with st.spinner("Writing your debrief (Gemini)…"):
                    _generate_debrief(session)
            except RuntimeError as e:
                st.error(f"Debrief unavailable: {e}")
            else:
                st.rerun()
    else:
        d = ss.debrief
        st.markdown(f"#### {d.headline}")
        st.markdown(d.summary)
        st.markdown(f"**Fix first:** {d.focus}")
        for step in d.next_steps:
            st.markdown(f"- {step}")
        if d.lesson:
            st.markdown(f"---\n*{d.lesson}*")

    st.markdown("<hr class='soft'/>", unsafe_allow_html=True)
    if st.button("Play again", type="primary"):
        _reset_run()
        st.rerun()


def page_history(session: GameSession) -> None:
    st.title("Campaign history")
    st.caption("Your last five finished campaigns, newest first.")
    if session.history is None:
        st.info("History is disabled.")
        return
    entries = session.history.load()
    if not entries:
        st.info("No finished campaigns yet.")
        return

    best = best_of(entries)
    a, b = st.columns(2)
    a.metric("Best ROAS", f"{best['best_roas']:.2f}")
    b.metric("Best D7", f"{best['best_retention_d7']:.1f}%")
    for mix in best["winning_creatives"]:
        st.markdown(f"- Winning creative mix: {mix}")

    for e in entries:
        m = e.get("metrics") or {}
        strat = e.get("strategies") or {}
        st.markdown("<div class='card'>", unsafe_allow_html=True)
        st.markdown(f"#### {strat.get('genre')} · ROAS {float(m.get('roas', 0.0)):.2f}")
        st.caption(str(e.get("timestamp", "")))
        st.json(e)
        st.markdown("</div>", unsafe_allow_html=True)

    if st.button("Clear history"):
        session.history.clear()
        st.rerun()


def page_glossary() -> None:
    st.title("Glossary")
    for term, text in GLOSSARY.items():
        st.markdown(f"**{term}** · {text}")


def page_debug(session: GameSession) -> None:
    ss = st.session_state
    st.title("Debug")

    st.subheader("Provider")
    st.json(ss.get("provider_status") or asdict(_provider_status()))

    st.subheader("EngineConfig")
    st.json(asdict(session.config))

    st.subheader("GameState")
    st.json(asdict(session.state))

    st.subheader("Last raw model output")
    st.code(ss.get("debrief_raw", "") or "", language="json")


# =========================
# Sidebar
# =========================


def export_controls(session: GameSession) -> None:
    ss = st.session_state
    st.sidebar.markdown("---")
    st.sidebar.markdown("### Run export")
    export = make_run_export(
        seed=int(session.config.base_seed),
        config=session.config,
        initial_state=ss.initial_state,
        phase_logs=session.phase_logs,
    )
    st.sidebar.download_button(
        "Download run log",
        data=dumps_run_export(export).encode("utf-8"),
        file_name=f"ua_campaign_run_{session.config.base_seed}_{session.run_index}.json",
        mime="application/json",
        disabled=not session.phase_logs,
    )


def sidebar(session: GameSession) -> str:
    ss = st.session_state
    st.sidebar.markdown(f"**{APP_TITLE}**  ")
    st.sidebar.markdown(f"v{APP_VERSION}")
    st.sidebar.markdown("---")

    seed = st.sidebar.number_input("Seed", value=int(ss.base_seed), step=1)
    if st.sidebar.button("Reset campaign", use_container_width=True):
        _reset_run(int(seed))
        st.rerun()

    st.sidebar.markdown("---")
    ps = _provider_status()
    if ps.ok:
        st.sidebar.success(f"Gemini ready ({ps.backend} / {ps.model})")
    else:
        st.sidebar.caption(f"AI debrief off: {ps.error or 'API key missing'}")

    export_controls(session)

    st.sidebar.markdown("---")
    return st.sidebar.radio("Page", ["Play", "History", "Glossary", "Debug"], index=0)


# =========================
# Main
# =========================

PHASE_PAGES = {
    Phase.HOME: page_home,
    Phase.GENRE_SELECTION: page_genre,
    Phase.ACQUISITION: page_acquisition,
    Phase.RETENTION: page_retention,
    Phase.MONETIZATION: page_monetization,
    Phase.RESULTS: page_results,
}


def main() -> None:
    _ensure_state()
    try:
        session = use_session(st.session_state)
    except ConfigurationError as e:
        st.error(f"No active campaign: {e}. Reset to start again.")
        return

    page = sidebar(session)
    if page == "Play":
        PHASE_PAGES[session.state.current_phase](session)
    elif page == "History":
        page_history(session)
    elif page == "Glossary":
        page_glossary()
    else:
        page_debug(session)


if __name__ == "__main__":
    main()
