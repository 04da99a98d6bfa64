import streamlit as st
import requests
import os

# Configuration
BACKEND_URL = os.getenv("BACKEND_API_URL", "http://localhost:8000") # Use environment variable or default
ANALYZE_ENDPOINT = f"{BACKEND_URL}/api/analyze-pronunciation"
SUPPORTED_FORMATS = ["flac", "m4a", "mp3", "mp4", "mpeg", "mpga", "oga", "ogg", "wav", "webm"]

st.set_page_config(page_title="Korean Pronunciation Practice")

st.title("🗣️ Korean Pronunciation Practice")
st.markdown("Upload a recording of a Korean phrase. The system will transcribe it and check it against Korean pronunciation rules.")

# --- Session State Initialization ---
if "analysis_result" not in st.session_state:
    st.session_state.analysis_result = None
if "error_message" not in st.session_state:
    st.session_state.error_message = None


uploaded_audio_file = st.file_uploader("Choose an audio file", type=SUPPORTED_FORMATS)
expected_text = st.text_input("Expected text (optional)", placeholder="만나서 반갑습니다")

if uploaded_audio_file is not None:
    st.audio(uploaded_audio_file, format=uploaded_audio_file.type)

    if st.button("Analyze My Pronunciation", type="primary", key="analyze_btn"):
        st.session_state.analysis_result = None # Clear previous results
        st.session_state.error_message = None

        files_to_upload = {"audio": (uploaded_audio_file.name, uploaded_audio_file.getvalue(), uploaded_audio_file.type)}
        form_data = {"expected_text": expected_text} if expected_text.strip() else {}
        with st.spinner("Analyzing your pronunciation..."):
            try:
                response = requests.post(ANALYZE_ENDPOINT, files=files_to_upload, data=form_data, timeout=300)
                response.raise_for_status() # Will raise an HTTPError for bad responses (4XX or 5XX)
                st.session_state.analysis_result = response.json()
            except requests.exceptions.HTTPError:
                try:
                    error_detail = response.json().get("message", response.text)
                except ValueError: # If response is not JSON
                    error_detail = response.text
                st.session_state.error_message = f"Analysis failed (HTTP {response.status_code}): {error_detail}"
            except requests.exceptions.RequestException as req_err:
                st.session_state.error_message = f"Analysis failed: Could not connect to the backend or network error. ({req_err})"

# --- Display Analysis Result ---
if st.session_state.error_message:
    st.error(st.session_state.error_message)

if st.session_state.analysis_result:
    result = st.session_state.analysis_result
    st.divider()
    if result.get("result", "").startswith("Correct"):
        st.success("✅ Correct pronunciation")
    else:
        st.error("❌ Incorrect pronunciation")
        if result.get("correct_pronunciation"):
            st.markdown(f"**Correct pronunciation:** {result['correct_pronunciation']}")
        if result.get("feedback"):
            st.subheader("Feedback")
            st.text(result["feedback"])


st.sidebar.header("How to Use")
st.sidebar.markdown("""
1.  **Upload Your Audio:** Select a recording of yourself saying a Korean phrase.
2.  **Expected Text (optional):** Type the phrase you meant to say for a direct comparison.
3.  **Analyze:** Click 'Analyze My Pronunciation'.
4.  **Read the Feedback:** Incorrect results show the rule involved (tensification, liaison, ㅎ weakening, ...) and the romanized correct pronunciation.
""")
