#!/usr/bin/env python3
"""
Genetic Marker Analysis Dashboard - Streamlit client for the REST API
Upload, overview, history, analysis details, chat and export
"""

import os
import uuid
from typing import Any, Dict, List, Optional

import requests
import streamlit as st

# Configure Streamlit page
st.set_page_config(
    page_title="Genetic Marker Analysis Dashboard",
    page_icon="🧬",
    layout="wide"
)

# API Configuration
API_BASE_URL = os.getenv("GENEDASH_API_URL", "http://localhost:5000")

RISK_BADGES = {"High": "🔴", "Moderate": "🟡", "Low": "🟢"}


def test_api_connection(api_url=None):
    """Test if the API is running"""
    url = api_url or API_BASE_URL
    try:
        response = requests.get(f"{url}/api/health", timeout=5)
        return response.status_code == 200
    except requests.RequestException:
        return False


def call_api_endpoint(endpoint: str, data: Optional[Dict[str, Any]] = None, method: str = "GET",
                      files: Optional[Dict[str, Any]] = None, timeout: float = 30) -> Dict[str, Any]:
    """Call an API endpoint and return its JSON body, or an error dict"""
    url = f"{API_BASE_URL}/api{endpoint}"
    try:
        if method == "POST" and files:
            response = requests.post(url, data=data, files=files, timeout=timeout)
        elif method == "POST":
            response = requests.post(url, json=data, timeout=timeout)
        elif method == "DELETE":
            response = requests.delete(url, timeout=timeout)
        else:
            response = requests.get(url, params=data, timeout=timeout)

        if response.status_code == 204:
            return {"success": True}
        body = response.json()
        if response.status_code >= 400:
            return {"success": False, "error": body.get("detail", response.reason)}
        return body
    except (requests.RequestException, ValueError) as e:
        return {"success": False, "error": str(e), "endpoint": endpoint}


def is_error(result: Any) -> bool:
    return isinstance(result, dict) and result.get("success") is False


def main():
    st.title("🧬 Genetic Marker Analysis Dashboard")
    st.markdown("Upload genetic marker files and review AI-assisted clinical interpretations")

    # Check API connection
    if not test_api_connection():
        st.error(f"❌ API server not responding at {API_BASE_URL}")
        st.info("Please start the API server: `python main.py`")
        return

    st.success(f"✅ Connected to API server at {API_BASE_URL}")

    model_status_sidebar()
    overview_metrics()

    tab1, tab2, tab3, tab4 = st.tabs(["📤 Upload", "📚 History", "🔬 Analysis Details", "💬 Chat"])

    with tab1:
        upload_tab()

    with tab2:
        history_tab()

    with tab3:
        details_tab()

    with tab4:
        chat_tab()


def model_status_sidebar():
    st.sidebar.title("🤖 Model Status")
    models = call_api_endpoint("/model-status")
    if is_error(models):
        st.sidebar.error(f"❌ {models['error']}")
        return

    for model in models:
        icon = {"active": "🟢", "standby": "🟡"}.get(model["status"], "🔴")
        st.sidebar.markdown(f"{icon} **{model['name']}** ({model['status']})")

    if st.sidebar.button("🔄 Refresh"):
        st.rerun()


def overview_metrics():
    overview = call_api_endpoint("/analysis-overview")
    if is_error(overview):
        st.warning(f"⚠️ {overview['error']}")
        return

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Markers", overview["total_markers"])
    with col2:
        st.metric("Analyzed Variants", overview["analyzed_variants"])
    with col3:
        st.metric("Risk Factors", overview["risk_factors"])
    with col4:
        st.metric("Last Analysis", overview["last_analysis"])


def upload_tab():
    """File upload and analysis"""
    st.markdown("### 📤 Upload Genetic Data")
    st.caption("Supported formats: CSV, TSV, TXT, JSON and VCF")

    uploaded = st.file_uploader("Genetic marker file", type=["csv", "tsv", "txt", "json", "vcf"])
    if uploaded is None:
        return

    if st.button("🧬 Analyze File", type="primary", use_container_width=True):
        progress_id = uuid.uuid4().hex
        with st.spinner("🔄 Analyzing genetic markers, this can take a few minutes..."):
            result = call_api_endpoint(
                "/genetic-analysis",
                data={"progress_id": progress_id},
                method="POST",
                files={"genetic_file": (uploaded.name, uploaded.getvalue(), uploaded.type or "text/plain")},
                timeout=1800,
            )

        if is_error(result):
            st.error(f"❌ Analysis failed: {result['error']}")
            return

        summary = result["summary"]
        if result["status"] == "completed":
            st.success(f"✅ {result['message']}")
        else:
            st.warning(f"⚠️ {result['message']}")

        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Markers Analyzed", summary["total_markers"])
        with col2:
            st.metric("Analyzed Variants", summary["analyzed_variants"])
        with col3:
            st.metric("Risk Factors", summary["risk_factors"])

        st.session_state.selected_analysis = result["analysis_id"]


def history_tab():
    st.markdown("### 📚 Analysis History")
    history = call_api_endpoint("/analysis-history")
    if is_error(history):
        st.error(f"❌ {history['error']}")
        return
    if not history:
        st.info("No analyses yet. Upload a file to get started.")
        return

    for item in history:
        summary = item["summary"]
        with st.expander(f"📄 {item['file_name']} ({item['status']}, {item['created_at'][:16]})"):
            col1, col2, col3, col4 = st.columns(4)
            with col1:
                st.metric("Markers", item["total_markers"])
            with col2:
                st.metric("Analyzed", item["analyzed_variants"])
            with col3:
                st.metric("High Risk", summary["high_risk_count"])
            with col4:
                st.metric("Assessments", summary["total_risk_assessments"])

            col_open, col_delete = st.columns([3, 1])
            with col_open:
                if st.button("🔬 Open", key=f"open_{item['id']}"):
                    st.session_state.selected_analysis = item["id"]
                    st.info("Switch to the Analysis Details tab")
            with col_delete:
                if st.button("🗑️ Delete", key=f"delete_{item['id']}"):
                    result = call_api_endpoint(f"/analysis/{item['id']}", method="DELETE")
                    if is_error(result):
                        st.error(f"❌ {result['error']}")
                    else:
                        st.rerun()


def analysis_selector() -> Optional[int]:
    history = call_api_endpoint("/analysis-history")
    if is_error(history) or not history:
        st.info("No analyses available")
        return None

    options = {f"#{item['id']} {item['file_name']}": item["id"] for item in history}
    ids = list(options.values())
    selected = st.session_state.get("selected_analysis")
    index = ids.index(selected) if selected in ids else 0
    label = st.selectbox("Analysis:", list(options.keys()), index=index)
    st.session_state.selected_analysis = options[label]
    return options[label]


def details_tab():
    """Markers table, risk assessments and export"""
    st.markdown("### 🔬 Analysis Details")
    analysis_id = analysis_selector()
    if analysis_id is None:
        return

    details = call_api_endpoint(f"/analysis/{analysis_id}")
    if is_error(details):
        st.error(f"❌ {details['error']}")
        return

    analysis = details["analysis"]
    st.markdown(f"**File:** `{analysis['file_name']}`  **Status:** {analysis['status']}  "
                f"**Failed markers:** {analysis['failed_markers']}")

    st.markdown("#### ⚠️ Risk Assessments")
    render_risk_assessments(details["risk_assessments"])

    st.markdown("#### 🧬 Genetic Markers")
    markers = details["markers"]
    if markers:
        st.dataframe(
            [
                {
                    "Gene": m["gene"],
                    "Variant": m["variant"],
                    "Genotype": m["genotype"],
                    "Impact": m["impact"],
                    "Clinical Significance": m["clinical_significance"],
                    "Risk": m["risk_score"],
                    "Category": m["health_category"],
                    "Source": m["source"],
                }
                for m in markers
            ],
            use_container_width=True,
        )
        for marker in markers:
            with st.expander(f"💭 {marker['gene']} {marker['variant']} ({marker['genotype']})"):
                st.write(marker["explanation"])
                for recommendation in marker["recommendations"]:
                    st.markdown(f"• {recommendation}")
    else:
        st.warning("No markers were analyzed in this run")

    export = requests.get(f"{API_BASE_URL}/api/export/{analysis_id}", timeout=30)
    if export.status_code == 200:
        st.download_button(
            "📥 Export Analysis (JSON)",
            data=export.content,
            file_name=f"genetic-analysis-{analysis_id}.json",
            mime="application/json",
        )


def render_risk_assessments(assessments: List[Dict[str, Any]]):
    if not assessments:
        st.info("No risk assessments for this analysis")
        return
    for assessment in assessments:
        badge = RISK_BADGES.get(assessment["risk_label"], "⚪")
        st.markdown(f"{badge} **{assessment['category']}**: {assessment['subcategory']} "
                    f"({assessment['risk_label']}, {assessment['risk_level']:g}/5)")
        st.progress(min(assessment["percentage"] / 100, 1.0))
        st.caption(f"{assessment['description']} {assessment['recommendation']}")


def chat_tab():
    st.markdown("### 💬 Ask About Your Results")
    analysis_id = st.session_state.get("selected_analysis")
    if analysis_id is None:
        st.info("Select an analysis in the Analysis Details tab first")
        return

    history = call_api_endpoint(f"/chat/{analysis_id}")
    if not is_error(history):
        for entry in history:
            with st.chat_message("user"):
                st.write(entry["message"])
            with st.chat_message("assistant"):
                st.write(entry["response"])

    question = st.chat_input("Ask a question about your genetic markers")
    if question:
        with st.spinner("🔄 Thinking..."):
            result = call_api_endpoint("/chat", data={"message": question, "analysis_id": analysis_id},
                                       method="POST", timeout=300)
        if is_error(result):
            st.error(f"❌ {result['error']}")
        else:
            st.rerun()


if __name__ == "__main__":
    main()
