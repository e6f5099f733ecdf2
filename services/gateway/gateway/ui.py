"""
Lawlens - Streamlit browser UI.

Run with:  streamlit run services/gateway/gateway/ui.py
"""
import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from typing import Dict, Optional

import streamlit as st

from gateway import client
from gateway.client import ResearcherError
from gateway.countries import (
    DEFAULT_COUNTRY,
    TRANSLATION_LANGUAGES,
    countries,
    default_language,
    language_locked,
    languages_for,
    priority_note,
)
from gateway.models import Policy, Regulation, Tab
from gateway.state import (
    PROGRESS_LINGER_SECONDS,
    PROGRESS_TICK_SECONDS,
    CardTranslation,
    SearchPanel,
    run_search,
    source_links,
    translate_card,
)

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("gateway")

TAB_TITLES = {Tab.LAW: "法規查詢", Tab.POLICY: "政策查詢"}
TAB_HEADINGS = {Tab.LAW: "AI 法律查詢", Tab.POLICY: "AI 政策查詢"}
TAB_INTROS = {
    Tab.LAW: "選擇目標國家與語言，然後輸入您的法律問題、情境或關鍵字。",
    Tab.POLICY: "輸入關鍵字，尋找相關的政府政策、計畫或最新動態。",
}

st.set_page_config(page_title="Lawlens", page_icon="⚖️", layout="centered")


# -------------------- session --------------------

def _init_session():
    ss = st.session_state
    if "country" not in ss:
        ss.country = DEFAULT_COUNTRY
        ss.language = default_language(DEFAULT_COUNTRY)
    if "panels" not in ss:
        ss.panels = {tab: SearchPanel(tab=tab) for tab in Tab}
    if "cards" not in ss:
        ss.cards = {}


def _on_country_change():
    st.session_state.language = default_language(st.session_state.country)


def _card(tab: Tab, idx: int) -> CardTranslation:
    return st.session_state.cards.setdefault((tab.value, idx), CardTranslation())


def _reset_cards(tab: Tab):
    st.session_state.cards = {k: v for k, v in st.session_state.cards.items() if k[0] != tab.value}


def _iso(d: Optional[date]) -> str:
    return d.isoformat() if d else ""


# -------------------- actions --------------------

def _search(panel: SearchPanel, query: str, filters: Dict[str, str]):
    if not panel.submit(query):
        return
    _reset_cards(panel.tab)
    ss = st.session_state
    bar = st.progress(0, text=panel.progress.label())
    try:
        with ThreadPoolExecutor(max_workers=1) as pool:
            fut = pool.submit(asyncio.run, run_search(panel.tab, query, ss.country, ss.language, filters))
            while not fut.done():
                time.sleep(PROGRESS_TICK_SECONDS)
                panel.progress.tick()
                bar.progress(panel.progress.percent, text=panel.progress.label())
            try:
                panel.apply_response(fut.result())
            except ResearcherError as e:
                log.warning("search failed: %s", e)
                panel.fail(e.message)
            except Exception:
                log.exception("search failed")
                panel.fail(None)
        bar.progress(panel.progress.percent, text=panel.progress.label())
        time.sleep(PROGRESS_LINGER_SECONDS)
    finally:
        bar.empty()
        panel.settle()


def _translate(card: CardTranslation, record, lang: str):
    with st.spinner("翻譯中..."):
        changed = asyncio.run(translate_card(card, record, lang, client.translate))
    if changed:
        st.rerun()


# -------------------- rendering --------------------

def _translation_controls(card: CardTranslation, record, key: str):
    cols = st.columns([3, 1])
    lang = cols[0].selectbox("翻譯語言", TRANSLATION_LANGUAGES, key=f"{key}-lang",
                             label_visibility="collapsed", disabled=card.translating)
    if cols[1].button("翻譯中..." if card.translating else "翻譯", key=f"{key}-go", disabled=card.translating):
        _translate(card, record, lang)
    if card.error:
        st.error(card.error)


def _render_regulation(rec: Regulation, card: CardTranslation, key: str):
    with st.container(border=True):
        st.subheader(rec.regulation_name)
        left, right = st.columns(2)
        if rec.competent_authority:
            left.caption("主管機關")
            left.write(rec.competent_authority)
        if rec.last_amended_date:
            right.caption("最新修正日期")
            right.write(rec.last_amended_date)

        st.markdown(f"**條文內容 ({rec.article})**")
        st.text(rec.content)
        if card.fields.get("content"):
            st.info(f"**{card.lang} 譯文**\n\n{card.fields['content']}")

        if rec.penalty:
            st.markdown("**相關罰則**")
            st.warning(rec.penalty)
            if card.fields.get("penalty"):
                st.warning(f"**{card.lang} 譯文**\n\n{card.fields['penalty']}")

        _translation_controls(card, rec, key)


def _render_policy(rec: Policy, card: CardTranslation, key: str):
    with st.container(border=True):
        st.subheader(rec.policy_name)
        a, b, c = st.columns(3)
        a.markdown(f"**發布機關:** {rec.issuing_agency}")
        b.markdown(f"**發布日期:** {rec.publication_date}")
        c.markdown(f"**狀態:** `{rec.status}`")

        st.markdown("**政策摘要**")
        st.write(rec.summary)
        if card.fields.get("summary"):
            st.success(f"**{card.lang} 譯文**\n\n{card.fields['summary']}")

        if rec.key_points:
            st.markdown("**主要重點**")
            st.markdown("\n".join(f"- {p}" for p in rec.key_points))
            points = card.fields.get("key_points") or []
            if points:
                st.success(f"**{card.lang} 譯文**\n\n" + "\n".join(f"- {p}" for p in points))

        _translation_controls(card, rec, key)


def _render_sources(sources):
    if not sources:
        return
    st.divider()
    st.markdown("#### 資料來源")
    st.caption("AI 的回答基於以下網路資料來源。請注意，AI 可能會產生不準確的資訊，建議點擊連結進行事實核查。")
    st.markdown(source_links(sources))


def _render_results(panel: SearchPanel):
    if panel.error:
        st.error(f"**發生錯誤：** {panel.error}")

    if panel.show_initial:
        st.info("選擇目標國家與語言，然後輸入法律問題、情境或關鍵字。")
        return

    if panel.records:
        st.markdown("### 查詢結果")
        render = _render_regulation if panel.tab is Tab.LAW else _render_policy
        for i, rec in enumerate(panel.records):
            render(rec, _card(panel.tab, i), key=f"{panel.tab.value}-{i}")
        _render_sources(panel.sources)
    elif not panel.loading and panel.raw_text:
        with st.container(border=True):
            st.markdown("**AI 原始回應**")
            st.text(panel.raw_text)
        _render_sources(panel.sources)


def _law_filters() -> Dict[str, str]:
    with st.expander("進階篩選"):
        authority = st.text_input("主管機關", key="law-authority")
        c1, c2 = st.columns(2)
        date_from = c1.date_input("最新修正日期（起）", value=None, key="law-from")
        date_to = c2.date_input("最新修正日期（迄）", value=None, key="law-to")
    return {"competentAuthority": authority, "dateFrom": _iso(date_from), "dateTo": _iso(date_to)}


def _policy_filters() -> Dict[str, str]:
    with st.expander("進階篩選"):
        c1, c2 = st.columns(2)
        date_from = c1.date_input("發布日期（起）", value=None, key="policy-from")
        date_to = c2.date_input("發布日期（迄）", value=None, key="policy-to")
        include = st.text_input("包含關鍵字", key="policy-include")
        exclude = st.text_input("排除關鍵字", key="policy-exclude")
    return {"dateFrom": _iso(date_from), "dateTo": _iso(date_to),
            "includeKeywords": include, "excludeKeywords": exclude}


def _render_tab(panel: SearchPanel):
    st.markdown(f"### {TAB_HEADINGS[panel.tab]}")
    st.caption(TAB_INTROS[panel.tab])

    with st.form(key=f"{panel.tab.value}-form"):
        query = st.text_input(
            "查詢內容",
            placeholder="輸入法律問題、情境或關鍵字...",
            help="例如：「在公共場所室內吸菸的罰則是什麼？」",
            key=f"{panel.tab.value}-query",
        )
        filters = _law_filters() if panel.tab is Tab.LAW else _policy_filters()
        submitted = st.form_submit_button("開始查詢", type="primary", disabled=panel.loading)

    if submitted:
        _search(panel, query, filters)

    _render_results(panel)


def main():
    _init_session()
    ss = st.session_state

    st.title("⚖️ Lawlens")
    st.caption("AI 驅動的各國法規與政策查詢")

    c1, c2 = st.columns(2)
    c1.selectbox("國家 / 地區", countries(), key="country", on_change=_on_country_change)
    langs = languages_for(ss.country)
    if ss.language not in langs:
        ss.language = default_language(ss.country)
    c2.selectbox("回應語言", langs, key="language", disabled=language_locked(ss.country))

    note = priority_note(ss.country)
    if note:
        st.info(note)

    tabs = st.tabs([TAB_TITLES[t] for t in Tab])
    for tab, container in zip(Tab, tabs):
        with container:
            _render_tab(ss.panels[tab])


main()
