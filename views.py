import streamlit as st
import pandas as pd
import plotly.express as px
import time
import config
import export
from errors import ScannerError
from models import ScanEdit
from permissions import can_edit_qr_data, has_permission
from scanner import SessionState
from stats import location_stats, summary

POLL_INTERVAL = 0.5

# --- HELPER: LEDGER TABLE ---
def ledger_frame(results):
    rows = []
    for r in results:
        d = r.device_info
        rows.append({
            "ID": r.id,
            "Timestamp": export.format_timestamp(r.timestamp),
            "Location": r.location,
            "QR Code Data": r.data if len(r.data) <= 50 else f"{r.data[:50]}...",
            "Device Type": d.type if d else "",
            "Device Model": (d.model or "") if d else "",
            "Device Serial": (d.serial or "") if d else "",
            "Device Status": (d.status or "") if d else "",
            "Asset": r.asset_info.describe() if r.asset_info else "",
        })
    return pd.DataFrame(rows, columns=["ID"] + config.SCAN_COLUMNS)


def edit_form(prefix, edit, locations):
    c1, c2 = st.columns(2)
    qr_data = c1.text_area("QR Code Data", value=edit.qr_data, key=f"{prefix}_data")
    location_options = list(locations)
    if edit.location and edit.location not in location_options:
        location_options.append(edit.location)
    location = c2.selectbox("Location", location_options,
                            index=location_options.index(edit.location) if edit.location in location_options else 0,
                            key=f"{prefix}_loc")
    d1, d2 = st.columns(2)
    device_type = d1.text_input("Device Type", value=edit.device_type, key=f"{prefix}_type")
    device_model = d2.text_input("Device Model", value=edit.device_model, key=f"{prefix}_model")
    d3, d4 = st.columns(2)
    device_serial = d3.text_input("Device Serial", value=edit.device_serial, key=f"{prefix}_serial")
    statuses = config.DEVICE_STATUSES
    device_status = d4.selectbox("Device Status", statuses,
                                 index=statuses.index(edit.device_status) if edit.device_status in statuses else 0,
                                 key=f"{prefix}_status")
    return ScanEdit(qr_data=qr_data, location=location, device_type=device_type, device_model=device_model,
                    device_serial=device_serial, device_status=device_status)


# --- COMPONENT: PENDING SCAN DIALOG ---
@st.dialog("New Scan")
def show_pending_dialog(feature):
    session = feature.session
    pending = session.pending
    if pending is None:
        st.rerun()
        return

    st.caption("Review and edit information before saving.")
    if pending.asset_info:
        st.success(f"**Asset found:** {pending.asset_info.describe()}")
    elif session.pending_resolution is not None and not session.pending_resolution.ok:
        st.warning("No asset code could be read from this scan.")
    else:
        st.info("Device detected, asset unknown.")

    edit = edit_form(f"pending_{pending.id}", ScanEdit.from_result(pending), feature.locations.locations)

    if session.error:
        st.error(session.error.message)

    c_save, c_cancel = st.columns(2)
    if c_save.button("💾 Save Scan", type="primary", use_container_width=True):
        try:
            session.edit_pending(edit)
            session.confirm()
            st.success("Scan saved successfully!")
            time.sleep(config.SAVE_CONFIRM_DELAY)
            st.rerun()
        except ScannerError as e:
            st.error(e.message)
    if c_cancel.button("Cancel", use_container_width=True):
        session.cancel()
        st.rerun()


@st.dialog("Edit Scan")
def show_edit_dialog(feature, result):
    edit = edit_form(f"edit_{result.id}", ScanEdit.from_result(result), feature.locations.locations)
    if st.button("💾 Save Changes", type="primary"):
        try:
            feature.session.edit_existing(result.id, edit)
            st.success("Updated!")
            time.sleep(1); st.rerun()
        except ScannerError as e:
            st.error(e.message)


# --- VIEW 1: SCANNER ---
def show_scanner(feature):
    session = feature.session
    st.title("📷 QR Code Scanner")
    st.caption("Scan QR codes and track devices")

    c_loc, c_new = st.columns([2, 1])
    with c_loc:
        options = feature.locations.locations
        current = session.location if session.location in options else None
        chosen = st.selectbox("📍 Scanning Location", options, index=options.index(current) if current else None,
                              placeholder="Select a location", disabled=session.is_scanning)
        if chosen and chosen != session.location:
            session.set_location(chosen)
    with c_new:
        new_loc = st.text_input("Add Location", placeholder="e.g., Dock 1", disabled=session.is_scanning)
        if st.button("➕ Add & Use", disabled=session.is_scanning) and new_loc:
            session.set_location(feature.locations.add(new_loc))
            st.rerun()

    c_start, c_stop, c_check = st.columns(3)
    if session.state in (SessionState.IDLE, SessionState.PAUSED) and session.pending is None:
        if c_start.button("▶ Start Scanning", type="primary", use_container_width=True):
            try:
                session.start()
            except ScannerError as e:
                st.error(e.message)
            st.rerun()
    else:
        if c_stop.button("⏹ Stop", use_container_width=True):
            session.stop()
            st.rerun()
    if c_check.button("🔄 Check Camera", use_container_width=True):
        session.check_camera_support()
        st.rerun()

    if session.error:
        st.error(session.error.message)

    if session.state is SessionState.SCANNING:
        st.info(f"Scanning at **{session.location}**... hold a code in front of the camera.")
    elif session.is_resolving:
        st.info("Code detected, looking up the asset...")
    elif session.state is SessionState.PAUSED and session.pending is None:
        st.info("Get ready for the next code...")

    if session.pending is not None:
        show_pending_dialog(feature)

    st.divider()
    show_ledger(feature)

    if session.state in (SessionState.SCANNING, SessionState.REQUESTING) or \
            (session.state is SessionState.PAUSED and session.pending is None):
        time.sleep(POLL_INTERVAL)
        st.rerun()


def show_ledger(feature):
    session = feature.session
    store = feature.store
    st.subheader(f"Scan Results ({len(store)})")
    if not len(store):
        st.caption("No scans yet.")
        return

    c_filter, c_clear = st.columns([3, 1])
    loc_filter = c_filter.selectbox("Filter by Location", ["all"] + store.locations(), key="ledger_filter")
    results = store.filter_by_location(loc_filter)

    event = st.dataframe(ledger_frame(results), on_select="rerun", selection_mode="single-row",
                         use_container_width=True, hide_index=True, column_config={"ID": None})

    rows = event.selection.rows
    if rows and can_edit_qr_data(session.role):
        show_edit_dialog(feature, results[rows[0]])

    if can_edit_qr_data(session.role):
        with c_clear:
            confirm = st.checkbox("Confirm clear")
            if st.button("🗑️ Clear All", type="secondary", disabled=not confirm):
                try:
                    session.clear_ledger()
                except ScannerError as e:
                    st.error(e.message)
                st.rerun()


# --- VIEW 2: REPORTS ---
def show_reports(feature):
    st.title("📊 Scan Reports")
    results = feature.store.results
    if not results:
        st.info("Scan assets to generate a report.")
        return

    counts = summary(results)
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Scans", counts["total_scans"])
    c2.metric("Locations", counts["total_locations"])
    c3.metric("Devices Detected", counts["devices_detected"])
    c4.metric("Assets Matched", counts["assets_matched"])

    stats = location_stats(results)
    df_stats = pd.DataFrame([{
        "Location": s.location, "Scans": s.count, "Devices": len(s.distinct_devices),
        "Last Scan": export.format_timestamp(s.last_scan)
    } for s in stats])

    c_chart, c_table = st.columns([2, 1])
    with c_chart:
        fig = px.bar(df_stats, x="Scans", y="Location", orientation="h", title="Scans by Location", text_auto=True)
        st.plotly_chart(fig, use_container_width=True)
    with c_table:
        st.dataframe(df_stats, use_container_width=True, hide_index=True)

    st.divider()
    e1, e2 = st.columns(2)
    e1.download_button("⬇ Export Excel", data=export.build_excel_report(results),
                       file_name=export.report_filename("xlsx"),
                       mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet", type="primary")
    e2.download_button("⬇ Export JSON", data=export.json_report_bytes(results),
                       file_name=export.report_filename("json"), mime="application/json")


# --- VIEW 3: LABELS ---
def show_labels(db, role):
    st.title("🏷️ Asset QR Labels")
    if not has_permission(role, "view_assets"):
        st.error("🔒 Restricted Access"); return

    assets = db.get_all_assets()
    if not assets:
        st.info("No assets registered.")
        return

    df = pd.DataFrame(assets)
    event = st.dataframe(df, on_select="rerun", selection_mode="multi-row", use_container_width=True,
                         hide_index=True, column_config={"id": None})
    rows = event.selection.rows
    if len(rows) == 1:
        asset = assets[rows[0]]
        png = export.qr_png_bytes(asset["assetCode"])
        st.image(png, width=150)
        st.download_button("⬇ QR Image", data=png, file_name=f"QR_{asset['assetCode']}.png", mime="image/png")
    elif len(rows) > 1:
        st.info(f"✅ **{len(rows)} Assets Selected**")
        if st.button("🖨️ Generate QR Label Sheet (PDF)"):
            pdf_data = export.generate_qr_sheet([assets[i] for i in rows])
            st.download_button(label="⬇ Download Sticker Sheet", data=pdf_data, file_name="qr_stickers.pdf",
                               mime="application/pdf")
