"""LuckyMap — Streamlit app ranking routes by directional risk for a birth year and moment."""

import datetime
import html
import logging
import os

import streamlit as st
from dotenv import load_dotenv
from streamlit_js_eval import streamlit_js_eval

load_dotenv()

logging.basicConfig(
    level=os.environ.get("LUCKYMAP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

from luckymap.compute import InvalidQueryError, now_local, parse_query, run  # noqa: E402
from luckymap.i18n import direction_name, t  # noqa: E402
from luckymap.providers import (  # noqa: E402
    place_to_point,
    reverse_geocode,
    search_places,
)
from luckymap.renderers.links import google_maps_url  # noqa: E402
from luckymap.renderers.plotly_map import render_route_map  # noqa: E402

# --- Language detection (browser-first via streamlit-js-eval) ---
# The first run returns None; the rerun triggered by streamlit_js_eval fills it in.
if "lang" not in st.session_state:
    _browser_lang: str | None = streamlit_js_eval(
        js_expressions="navigator.language", key="_lang_detect", height=0
    )
    if _browser_lang is not None:
        st.session_state.lang = "vi" if _browser_lang.lower().startswith("vi") else "en"

_lang: str = st.session_state.get("lang", "vi")

st.set_page_config(
    page_title=t("page_title", _lang),
    page_icon="✦",
    layout="wide",
)

# --- Session state initialization ---

if "result" not in st.session_state:
    st.session_state.result = None
if "error_msg" not in st.session_state:
    st.session_state.error_msg = None

st.markdown(
    """
    <style>
    iframe[src*="streamlit_js_eval"] { display: none !important; }
    [data-testid="stHeader"], [data-testid="stToolbar"] { display: none !important; }
    .summary-box {
        border-top: 1px solid rgba(201,169,110,0.3);
        padding: 0.8rem 0;
        color: #c9a96e;
        font-weight: 600;
    }
    </style>
    """,
    unsafe_allow_html=True,
)

st.title(t("page_title", _lang))


def _place_picker(label_key: str, key: str):
    """Free-text geocoder search followed by a select box of candidates."""
    query = st.text_input(t(label_key, _lang), key=f"{key}_query")
    places = search_places(query)
    if not places:
        return None
    names = [p.get("display_name", "") for p in places]
    choice = st.selectbox(
        t("label_pick_place", _lang),
        options=range(len(places)),
        format_func=lambda i: names[i],
        key=f"{key}_choice",
    )
    return place_to_point(places[choice])


def _place_name(point) -> str:
    return reverse_geocode(point.lat, point.lng) or f"{point.lat:.5f}, {point.lng:.5f}"


# --- Input panel ---
col_from, col_to = st.columns(2)
with col_from:
    origin = _place_picker("label_origin", "origin")
with col_to:
    destination = _place_picker("label_destination", "destination")

_now = now_local()
col1, col2, col3, col4, col5 = st.columns([2, 2, 2, 2, 2])
with col1:
    birth_year = st.number_input(
        t("label_birth_year", _lang),
        min_value=1900,
        max_value=_now.year,
        value=1990,
        step=1,
    )
with col2:
    gender = st.radio(
        t("label_gender", _lang),
        options=["male", "female"],
        format_func=lambda g: t(f"gender_{g}", _lang),
        horizontal=True,
    )
with col3:
    vehicle = st.radio(
        t("label_vehicle", _lang),
        options=["driving", "foot"],
        format_func=lambda v: t(f"vehicle_{v}", _lang),
        horizontal=True,
    )
with col4:
    date_val = st.date_input(t("label_date", _lang), value=_now.date())
with col5:
    time_val = st.time_input(
        t("label_time", _lang), value=datetime.time(_now.hour, _now.minute), step=900
    )

submitted = st.button(t("btn_find_routes", _lang), key="submit_btn")

# --- Form submission handler ---
if submitted:
    st.session_state.error_msg = None
    if origin is None or destination is None:
        st.session_state.error_msg = t("error_place", _lang)
    else:
        payload = {
            "origin": {"lat": origin.lat, "lng": origin.lng},
            "destination": {"lat": destination.lat, "lng": destination.lng},
            "birthYear": int(birth_year),
            "gender": gender,
            "vehicle": vehicle,
            "datetime": f"{date_val.strftime('%Y-%m-%d')}T{time_val.strftime('%H:%M')}",
        }
        with st.spinner(t("loading_compute", _lang)):
            try:
                st.session_state.result = run(parse_query(payload))
            except InvalidQueryError as e:
                st.session_state.result = None
                st.session_state.error_msg = t("error_query", _lang).format(
                    error=html.escape(str(e))
                )

# --- Error message ---
if st.session_state.error_msg:
    st.error(st.session_state.error_msg)

# --- Result ---
result = st.session_state.result
if result is None:
    st.caption(t("placeholder", _lang))
    st.stop()

reading = result.reading
directions = ", ".join(direction_name(d, _lang) for d in reading.risk_directions)
st.markdown(
    "<div class='summary-box'>"
    + html.escape(
        t("summary", _lang).format(
            nine_qi=reading.nine_qi,
            center=reading.center,
            directions=directions or t("no_risk_directions", _lang),
        )
    )
    + "</div>",
    unsafe_allow_html=True,
)
st.caption(
    t("route_endpoints", _lang).format(
        origin=_place_name(result.query.origin),
        destination=_place_name(result.query.destination),
    )
)

if not result.routes:
    st.info(t("no_routes", _lang))
    st.stop()

st.plotly_chart(
    render_route_map(result, lang=_lang),
    use_container_width=True,
    config={"scrollZoom": True, "displayModeBar": False},
)

for r in result.routes:
    line = t("route_line", _lang).format(
        n=(r.index or 0) + 1,
        lucky=r.lucky_point,
        km=r.route.distance / 1000,
        minutes=r.route.duration / 60,
    )
    url = google_maps_url(r, result.query.profile)
    if url:
        st.markdown(f"{html.escape(line)} · [{t('open_google_maps', _lang)}]({url})")
    else:
        st.markdown(html.escape(line))
