import logging
import streamlit as st
from capture import OpenCVCamera
from database import Database
from permissions import ROLE_CONFIG, accessible_menu_items, normalize_role
from scanner import ScannerFeature
import views
import config

logging.basicConfig(level=config.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

# Page Configuration
st.set_page_config(
    page_title="Asset Scan Manager",
    page_icon="📦",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Initialize Database
@st.cache_resource
def get_database():
    return Database()

@st.cache_resource
def get_camera():
    return OpenCVCamera()

db = get_database()

# --- SESSION STATE MANAGEMENT ---
if 'logged_in' not in st.session_state: st.session_state.logged_in = False
if 'user_role' not in st.session_state: st.session_state.user_role = None
if 'username' not in st.session_state: st.session_state.username = None
if 'user_id' not in st.session_state: st.session_state.user_id = None
if 'scanner' not in st.session_state: st.session_state.scanner = None

def logout():
    feature = st.session_state.scanner
    if feature is not None:
        feature.session.stop()
    st.session_state.logged_in = False
    st.session_state.user_role = None
    st.session_state.scanner = None

# --- AUTHENTICATION FLOW ---
if not st.session_state.logged_in:
    col1, col2, col3 = st.columns([1, 1, 1])
    with col2:
        st.header("Asset Scan Manager Login")
        username = st.text_input("Username")
        password = st.text_input("Password", type="password")

        if st.button("Login", type="primary", use_container_width=True):
            user = db.verify_user(username, password)
            if user:
                st.session_state.logged_in = True
                st.session_state.user_id = user[0]
                st.session_state.username = user[1]
                st.session_state.user_role = normalize_role(user[2])
                st.rerun()
            else:
                st.error("Invalid Credentials")
else:
    role = st.session_state.user_role
    if st.session_state.scanner is None:
        st.session_state.scanner = ScannerFeature(
            db, get_camera(), role=role, user_id=st.session_state.user_id
        ).load()
    feature = st.session_state.scanner

    # --- MAIN APP LAYOUT ---
    st.sidebar.title("📦 Asset Scanner")
    st.sidebar.caption(f"Version {config.APP_VERSION}")
    st.sidebar.info(f"User: **{st.session_state.username}**\nRole: **{ROLE_CONFIG[role]['label']}**")
    st.sidebar.divider()

    items = accessible_menu_items(role)
    labels = {item["label"]: item["id"] for item in items}
    choice = labels[st.sidebar.radio("Navigation", list(labels))]
    st.sidebar.markdown("---")

    if st.sidebar.button("Logout", type="secondary"):
        logout()
        st.rerun()

    if choice != "qr-scanner" and feature.session.is_scanning:
        feature.session.stop()

    if choice == "qr-scanner": views.show_scanner(feature)
    elif choice == "reports": views.show_reports(feature)
    elif choice == "labels": views.show_labels(db, role)
