import json
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pandas as pd
import streamlit as st

from tabular_gbm.config import METADATA_FILE
from tabular_gbm.data.load_data import load_data
from tabular_gbm.models.predict import predict_one

st.set_page_config(page_title="Gradient-Boosted Price Predictor", layout="wide")
st.title("Gradient-Boosted Price Predictor")

@st.cache_resource
def load_metadata() -> Dict:
    p = Path(METADATA_FILE)
    if not p.exists():
        return {}
    return json.loads(p.read_text(encoding="utf-8"))

@st.cache_data
def load_df(target: str) -> Optional[pd.DataFrame]:
    try:
        return load_data(target_col=target, use_cache=True)
    except (FileNotFoundError, ValueError):
        return None

def get_numeric_bounds(df: Optional[pd.DataFrame], column: str) -> Optional[Tuple[float, float, float]]:
    if df is None or column not in df.columns:
        return None
    ser = pd.to_numeric(df[column], errors="coerce").dropna()
    if ser.empty:
        return None
    return float(ser.min()), float(ser.max()), float(ser.median())

metadata = load_metadata()
if not metadata:
    st.error(f"No model metadata at {METADATA_FILE}. Run `tabular-gbm` to train a model first.")
    st.stop()

target = metadata.get("target", "target")
features: List[str] = metadata.get("features", [])
levels: Dict[str, List[str]] = metadata.get("categorical_levels", {})
df = load_df(target)

st.sidebar.header("Features")

input_dict = {}
for feature in features:
    if feature in levels:
        options = levels[feature]
        input_dict[feature] = st.sidebar.selectbox(feature, options, index=0) if options else st.sidebar.text_input(feature)
        continue
    bounds = get_numeric_bounds(df, feature)
    if bounds:
        min_v, max_v, median_v = bounds
        input_dict[feature] = st.sidebar.number_input(feature, min_v, max_v, median_v)
    else:
        input_dict[feature] = st.sidebar.number_input(feature, value=0.0)

col1, col2 = st.columns([2, 1])

with col1:
    if st.button("Predict"):
        try:
            value = predict_one(input_dict)
            st.markdown(f"<h1 style='margin:0'>{value:,.2f}</h1>", unsafe_allow_html=True)
            st.caption(f"Predicted {target}")
        except (FileNotFoundError, ValueError) as e:
            st.error(f"Prediction failed: {e}")

with col2:
    metrics = metadata.get("metrics", {})
    if metrics:
        st.subheader("Test-set metrics")
        st.json(metrics)

st.markdown("---")
