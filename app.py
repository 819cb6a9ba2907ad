import asyncio
from contextlib import contextmanager
from typing import Optional

import altair as alt
import streamlit as st

from console_core import config
from console_core.client import ApiClient
from console_core.engine import AggregationEngine, DashboardState
from console_core.filters import normalize_scope
from console_core.metrics import STAT_LABELS, stats_frame, stats_to_csv
from console_core.charts import stats_bar_chart
from console_core.repositories import build_repositories

config.configure_logging()
alt.data_transformers.disable_max_rows()


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{title}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


ENGINE_KEY = "dashboard_engine_{}"


async def load_dashboard(mode: str, raw_identity: dict) -> DashboardState:
    """Reload through the session's engine so generations and errors persist across reruns."""
    scope = normalize_scope(raw_identity, mode=mode)
    key = ENGINE_KEY.format(scope.mode)
    async with ApiClient() as client:
        repos = build_repositories(client)
        engine: Optional[AggregationEngine] = st.session_state.get(key)
        if engine is None:
            engine = st.session_state[key] = AggregationEngine(repos, scope.mode)
        else:
            engine.use_repositories(repos)
        return await engine.reload(scope.identity)


# ---------- UI setup ----------
st.set_page_config(page_title="Sales Console Dashboard", layout="wide")
inject_base_styles()
st.title("Sales Console Dashboard")
st.caption(f"Backend: {config.API_BASE_URL}")

with st.sidebar:
    st.markdown("### Scope")
    mode_label = st.radio("Dashboard", ["Global (admin)", "Site"], index=0)
    mode = "scoped" if mode_label == "Site" else "global"
    st.markdown("---")
    user_id = st.number_input("User id", min_value=0, value=0, step=1)
    site_id = st.number_input("Site id", min_value=0, value=0, step=1, disabled=mode == "global")
    groupement_type = st.text_input("Groupement type", value="", disabled=mode == "global")
    user_site_id = st.number_input("User-site id", min_value=0, value=0, step=1, disabled=mode == "global")
    refresh = st.button("Refresh")

identity = {
    "user_id": int(user_id),
    "details": {
        "siteId": int(site_id),
        "groupementType": groupement_type,
        "userSiteId": int(user_site_id),
    },
}
engine_key = ENGINE_KEY.format(mode)
if refresh or engine_key not in st.session_state:
    with st.spinner("Loading dashboard statistics..."):
        asyncio.run(load_dashboard(mode, identity))

engine: AggregationEngine = st.session_state[engine_key]
state: DashboardState = engine.state

if state.error:
    err_col, btn_col = st.columns([8, 1])
    err_col.error(state.error)
    if btn_col.button("Dismiss"):
        engine.clear_error()
        st.rerun()

if state.assignment is not None:
    a = state.assignment
    st.info(f"{a.site_type.value} **{a.site_name or a.site_id}** · groupement {a.groupement_name}")

with card("Overview"):
    cols = st.columns(4)
    for i, (name, stat) in enumerate(state.stats.items()):
        cols[i % 4].metric(STAT_LABELS.get(name, name), f"{stat.total:,}", f"{stat.active:,} active", delta_color="off")

with card("Current period", actions=state.period_kpis.period_label):
    k1, k2 = st.columns(2)
    k1.metric("Objectives", f"{state.period_kpis.objective_count:,}")
    k2.metric("Sales", f"{state.period_kpis.sale_count:,}")

frame = stats_frame(state.stats)
with card("Totals by category"):
    st.altair_chart(stats_bar_chart(frame), use_container_width=True)
    st.download_button(
        "Export CSV",
        data=stats_to_csv(state.stats).encode("utf-8"),
        file_name=f"dashboard-{mode}.csv",
        mime="text/csv",
    )
