"""
M/M/1 Queue Simulator - Streamlit front end
- Live, tick-driven run with Start / Pause / Reset
- Theoretical vs simulated comparison once the horizon is reached
- Replications with confidence intervals and a SimPy cross-check
"""

import time

import streamlit as st
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

from mm1_engine import (
    RateUnit,
    RunStatus,
    SimulationConfig,
    SimulationController,
    compare_with_theory,
    compute_mm1_theoretical,
    run_replications,
    to_per_minute,
)
from compare_simpy import run_head_to_head_validation

TICKS_PER_FRAME = 1
FRAME_SECONDS = 0.05

st.set_page_config(
    page_title="M/M/1 Queue Simulator",
    page_icon="🎓",
    layout="wide"
)

st.title("M/M/1 Queue Simulator 🎓")
st.markdown("### Single server, Poisson arrivals, exponential service")

with st.expander("📘 Concept Guide: Why do simulated results vary?"):
    st.markdown("""
    **1. Transient vs. Steady State:**
    * Every run starts empty; the closed-form values assume the queue has run forever.
    * *Fix:* Use a longer horizon.

    **2. Stochastic Variation:**
    * Short runs are noisy. Use **Statistical Validation** to average many replications.

    **3. Horizon Truncation:**
    * Customers still being served at the horizon never depart and are not counted as served.
    """)

st.markdown("---")

mode = st.sidebar.radio("Select Mode", ["Live Simulation", "Statistical Validation"], index=0)

# --- Sidebar: shared inputs ---
with st.sidebar:
    st.header("Parameters")
    unit = RateUnit(st.selectbox("Rate unit", [u.value for u in RateUnit], index=0,
                                 help="Rates are normalised to customers per minute."))
    lam_in = st.number_input("λ - Arrival rate", 0.1, 1000.0, 3.0, 0.1)
    mu_in = st.number_input("μ - Service rate", 0.1, 1000.0, 4.0, 0.1)
    horizon = st.number_input("Horizon (minutes)", 1.0, 10000.0, 60.0, 1.0)
    seed = st.number_input("Random Seed", 1, 99999, 42)
    lam = to_per_minute(lam_in, unit)
    mu = to_per_minute(mu_in, unit)
    if unit == RateUnit.HOURS:
        st.caption(f"≈ λ {lam:.4f} / min, μ {mu:.4f} / min")

    rho = lam / mu
    st.metric("Traffic intensity (ρ)", f"{rho:.3f}")
    if rho >= 1:
        st.error("⚠️ Saturated: ρ ≥ 1, the queue grows without bound.")
    elif rho >= 0.9:
        st.warning("⚠️ Near saturation: ρ ≥ 0.9.")

theo = compute_mm1_theoretical(lam, mu)


def make_config() -> SimulationConfig:
    return SimulationConfig(arrival_rate=lam, service_rate=mu, horizon=horizon,
                            tick_delta=0.1, random_seed=int(seed))


# ==========================================
# MODE 1: LIVE SIMULATION
# ==========================================
if mode == "Live Simulation":
    if 'sim' not in st.session_state:
        st.session_state.sim = SimulationController(make_config())
    sim: SimulationController = st.session_state.sim

    # Inputs are locked while a run is in progress; apply edits on an idle controller.
    if sim.status == RunStatus.IDLE and sim.config != make_config():
        sim = st.session_state.sim = SimulationController(make_config())

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("ρ", f"{theo['rho']:.4f}")
    m2.metric("Lq", f"{theo['Lq']:.4f}" if theo['stable'] else "∞")
    m3.metric("Wq (min)", f"{theo['Wq']:.4f}" if theo['stable'] else "∞")
    m4.metric("W (min)", f"{theo['W']:.4f}" if theo['stable'] else "∞")

    c_start, c_pause, c_reset, c_clock = st.columns([1, 1, 1, 3])
    running = sim.status == RunStatus.RUNNING
    start_label = "Start" if sim.status == RunStatus.IDLE else "Continue"
    if c_start.button(start_label, type="primary", disabled=running or sim.is_complete):
        sim.start()
        st.rerun()
    if c_pause.button("Pause", disabled=not running):
        sim.pause()
        st.rerun()
    if c_reset.button("Reset"):
        sim.reset()
        st.rerun()
    c_clock.markdown(f"**Time:** {sim.logical_time:.1f} / {sim.config.horizon:.0f} min "
                     f"&nbsp;·&nbsp; *{sim.status.value}*")

    if sim.status == RunStatus.RUNNING:
        for _ in range(TICKS_PER_FRAME):
            sim.tick()
            if sim.is_complete:
                break
    state = sim.state()
    stats = sim.statistics()

    s1, s2, s3, s4 = st.columns(4)
    s1.metric("In system", state.customers_in_system)
    s2.metric("In queue", state.customers_in_queue)
    s3.metric("Total arrivals", stats.total_arrived)
    s4.metric("Total served", stats.total_served)

    st.subheader("Queue")
    queued = sim.queued_ids()
    strip = " ".join(f"`C{cid}`" for cid in queued[:40])
    more = f" … +{len(queued) - 40}" if len(queued) > 40 else ""
    st.markdown(f"{strip}{more} → 🖥️ {'**busy**' if state.server_busy else 'idle'}")

    ts_df = sim.get_time_series_dataframe()
    fig_ts = px.line(ts_df, x='time', y='customers_in_system', line_shape='hv',
                     title="Customers in System Over Time")
    st.plotly_chart(fig_ts, use_container_width=True)

    if sim.is_complete:
        st.subheader("📐 Theoretical vs Simulated")
        comp_df = pd.DataFrame(compare_with_theory(stats, sim.logical_time, lam, mu))
        st.dataframe(comp_df, hide_index=True, use_container_width=True)

        fig = go.Figure()
        finite = comp_df[comp_df['Theoretical'] != float('inf')]
        fig.add_trace(go.Bar(x=finite['Metric'], y=finite['Theoretical'], name='Theoretical'))
        fig.add_trace(go.Bar(x=comp_df['Metric'], y=comp_df['Simulated'], name='Simulated'))
        fig.update_layout(barmode='group')
        st.plotly_chart(fig, use_container_width=True)
        st.caption("Simulated values approach the theoretical ones for longer horizons.")

        with st.expander("📂 Event Log & Export"):
            log_df = sim.get_event_log_dataframe()
            st.dataframe(log_df.head(200), use_container_width=True)
            st.download_button("Download CSV", log_df.to_csv(index=False), "event_log.csv", "text/csv")
            st.download_button("Download JSON", sim.export_to_json(), "run.json", "application/json")

    if sim.status == RunStatus.RUNNING:
        time.sleep(FRAME_SECONDS)
        st.rerun()

# ==========================================
# MODE 2: STATISTICAL VALIDATION
# ==========================================
elif mode == "Statistical Validation":
    st.header("Confidence Intervals")
    st.markdown("Run multiple **Replications** to reduce variance and find the true mean.")
    n_reps = st.number_input("Replications", 5, 100, 20)
    conf = st.slider("Confidence Level", 0.8, 0.99, 0.95)

    if st.button("Run Validation"):
        with st.spinner("Running replications..."):
            res = run_replications(make_config(), int(n_reps), conf)

        st.success(f"Wait Time CI: [{res['Wq']['lower']:.4f}, {res['Wq']['upper']:.4f}]")
        if theo['stable']:
            st.caption(f"Theoretical Wq = {theo['Wq']:.4f} min")
        fig = px.histogram(res['Wq']['values'], nbins=10, title="Distribution of Means")
        fig.add_vline(x=res['Wq']['mean'], line_color='red')
        st.plotly_chart(fig, use_container_width=True)

        st.dataframe(pd.DataFrame([
            {'Metric': k, 'Mean': v['mean'], 'Lower': v['lower'], 'Upper': v['upper'], 'Std': v['std']}
            for k, v in res.items()
        ]), hide_index=True, use_container_width=True)

    st.markdown("---")
    st.subheader("Cross-check against SimPy")
    if st.button("Run SimPy Comparison"):
        with st.spinner("Simulating both engines..."):
            res = run_head_to_head_validation(lam, mu, horizon, int(seed))
        c1, c2, c3 = st.columns(3)
        c1.metric("Theory Wq", f"{res['theoretical_wq']:.4f}" if res['has_theory'] else "∞")
        c2.metric("Engine Wq", f"{res['engine_wq']:.4f}")
        c3.metric("SimPy Wq", f"{res['simpy_wq']:.4f}", delta=f"{res['diff']:.4f}", delta_color="off")
