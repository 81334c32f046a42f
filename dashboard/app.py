import streamlit as st
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots
import logging
import sys
from pathlib import Path

# Add project root directory to Python path
current_dir = Path(__file__).resolve().parent
project_root = current_dir.parent
sys.path.insert(0, str(project_root))

from src.configs.params import DEFAULT_SETTINGS, STIMULUS_PROTOCOLS
from src.environment.adapter import IOAdapter
from src.environment.stimulus import INTENSITY_LABEL, TIME_LABEL, generate_protocol
from src.processes.physiology.photoreceptor import cone_constants, rod_constants
from src.system.retina import SimulationDriver, intensity_response_curve
from src.utils.function import log_intensity_grid

# --- Page Config ---
st.set_page_config(
    page_title="Phototransduction Dashboard",
    layout="wide",
    initial_sidebar_state="expanded",
)

# --- Logger ---
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


# --- Helper Functions ---
def load_trace(uploaded_file):
    """Load a saved trace workbook, returning None when it cannot be read."""
    if uploaded_file is None:
        return None
    try:
        excel_data = pd.ExcelFile(uploaded_file)
        logger.info(f"Sheets found: {excel_data.sheet_names}")
        if "trace" not in excel_data.sheet_names:
            st.error("The workbook has no 'trace' sheet.")
            return None
        return pd.read_excel(excel_data, sheet_name="trace")
    except Exception as e:
        st.error(f"Error reading workbook: {e}")
        logger.error(f"Unexpected error loading trace: {e}", exc_info=True)
        return None


@st.cache_data
def simulate(protocol, duration, intensity, position):
    """Run the driver on a generated protocol."""
    adapter = IOAdapter()
    options = {}
    if protocol in ("step", "flash"):
        options["intensity"] = intensity
    elif protocol == "pot_sweep":
        options["stop"] = position
    stimulus = generate_protocol(protocol, duration, DEFAULT_SETTINGS["tick_interval"], **options)
    driver = SimulationDriver(adapter=adapter)
    return driver.run(stimulus, record_state=True)


@st.cache_data
def response_curves():
    intensities = log_intensity_grid(0.1, 1e7, points_per_decade=2)
    return pd.concat(
        [intensity_response_curve(c, intensities) for c in (rod_constants(), cone_constants())],
        ignore_index=True,
    )


def plot_trace(trace):
    fig = make_subplots(
        rows=3,
        cols=1,
        shared_xaxes=True,
        subplot_titles=("Stimulus", "Membrane current", "Normalized response"),
    )
    fig.add_trace(
        go.Scatter(x=trace[TIME_LABEL], y=trace[INTENSITY_LABEL], name="Intensity"), row=1, col=1
    )
    for column in ("Rod J (pA)", "Cone J (pA)"):
        fig.add_trace(go.Scatter(x=trace[TIME_LABEL], y=trace[column], name=column), row=2, col=1)
    for column in ("Rod Response", "Cone Response", "Combined Response"):
        fig.add_trace(go.Scatter(x=trace[TIME_LABEL], y=trace[column], name=column), row=3, col=1)
    fig.update_yaxes(type="log", row=1, col=1)
    fig.update_xaxes(title_text=TIME_LABEL, row=3, col=1)
    fig.update_layout(height=800)
    return fig


def plot_curves(curves):
    fig = go.Figure()
    for cell, group in curves.groupby("Cell"):
        fig.add_trace(go.Scatter(x=group[INTENSITY_LABEL], y=group["Suppression"], name=cell))
    fig.add_hline(y=0.5, line_dash="dot")
    fig.update_xaxes(type="log", title_text=INTENSITY_LABEL)
    fig.update_yaxes(title_text="Steady-state suppression")
    return fig


# --- Sidebar ---
with st.sidebar:
    st.title("Stimulus")
    protocol = st.selectbox("Protocol", list(STIMULUS_PROTOCOLS.keys()), index=1)
    duration = st.slider("Duration (s)", 1.0, 20.0, float(DEFAULT_SETTINGS["duration"]), 0.5)
    position = st.slider("Light level (normalized)", 0.0, 1.0, 0.6, 0.01)
    intensity = IOAdapter().intensity_from_normalized(position)
    st.markdown(f"Intensity: **{intensity:,.1f} R\\*/s**")
    st.markdown("---")
    uploaded_file = st.file_uploader("Or load a saved trace workbook", type=["xlsx"])

# --- Main App Logic ---
st.title("Rod and Cone Phototransduction")

trace = load_trace(uploaded_file)
if trace is None:
    trace = simulate(protocol, duration, intensity, position)
    logger.info(f"Simulated {len(trace)} ticks of '{protocol}'")

rod_weight, cone_weight = IOAdapter().blend_weights(intensity)
col1, col2, col3, col4 = st.columns(4)
col1.metric("Rod J (pA)", f"{trace['Rod J (pA)'].iloc[-1]:.2f}")
col2.metric("Cone J (pA)", f"{trace['Cone J (pA)'].iloc[-1]:.2f}")
col3.metric("Rod weight", f"{rod_weight:.2f}")
col4.metric("Cone weight", f"{cone_weight:.2f}")

st.plotly_chart(plot_trace(trace), use_container_width=True)

with st.expander("Steady-state intensity-response curves"):
    st.plotly_chart(plot_curves(response_curves()), use_container_width=True)

with st.expander("Trace data"):
    st.dataframe(trace)
