import io
import json
from urllib.parse import urlparse

import pandas as pd
import qrcode
from fpdf import FPDF

from models import to_iso, utcnow
from stats import location_stats, summary


def is_valid_url(text):
    try:
        parsed = urlparse(text or "")
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def format_timestamp(value):
    return value.astimezone().strftime("%Y-%m-%d %H:%M:%S")


# --- JSON REPORT ---
def build_json_report(results, generated_at=None):
    results = list(results)
    return {
        "generatedAt": to_iso(generated_at or utcnow()),
        "totalScans": len(results),
        "locations": [s.to_dict() for s in location_stats(results)],
        "detailedResults": [r.to_record() for r in results],
    }


def json_report_bytes(results, generated_at=None):
    return json.dumps(build_json_report(results, generated_at), indent=2).encode("utf-8")


# --- EXCEL REPORT ---
def _detailed_frame(results):
    rows = []
    for r in results:
        d = r.device_info
        rows.append({
            "Timestamp": format_timestamp(r.timestamp),
            "Location": r.location,
            "QR Code Data": r.data,
            "Device Type": d.type if d else "",
            "Device Model": (d.model or "") if d else "",
            "Device Serial": (d.serial or "") if d else "",
            "Device Status": (d.status or "") if d else "",
            "Asset": r.asset_info.describe() if r.asset_info else "",
            "Is URL": "Yes" if is_valid_url(r.data) else "No",
        })
    return pd.DataFrame(rows, columns=[
        "Timestamp", "Location", "QR Code Data", "Device Type", "Device Model",
        "Device Serial", "Device Status", "Asset", "Is URL"
    ])


def _devices_frame(results):
    rows = []
    for r in results:
        if r.device_info is None:
            continue
        d = r.device_info
        rows.append({
            "Device Type": d.type, "Model": d.model or "", "Serial Number": d.serial or "",
            "Status": d.status or "", "Location": r.location,
            "Last Scanned": format_timestamp(r.timestamp), "QR Code Data": r.data,
        })
    return pd.DataFrame(rows)


def _location_frame(stats):
    return pd.DataFrame([{
        "Location": s.location,
        "Scan Count": s.count,
        "Device Count": len(s.distinct_devices),
        "Last Scan": format_timestamp(s.last_scan),
        "Device Details": "; ".join(d.describe() for d in s.distinct_devices),
    } for s in stats], columns=["Location", "Scan Count", "Device Count", "Last Scan", "Device Details"])


def _summary_frame(results, stats, generated_at):
    counts = summary(results)
    rows = [
        ["QR Code Scanner Report Summary", "", "", ""],
        ["Generated At", format_timestamp(generated_at), "", ""],
        ["Total Scans", counts["total_scans"], "", ""],
        ["Total Locations", counts["total_locations"], "", ""],
        ["Total Devices Detected", counts["devices_detected"], "", ""],
        ["", "", "", ""],
        ["Location Statistics", "", "", ""],
        ["Location", "Total Scans", "Devices Found", "Last Scan"],
    ]
    for s in stats:
        rows.append([s.location, s.count, len(s.distinct_devices), format_timestamp(s.last_scan)])
    return pd.DataFrame(rows)


def _set_widths(sheet, widths):
    for index, width in enumerate(widths):
        sheet.column_dimensions[chr(ord("A") + index)].width = width


def build_excel_report(results, generated_at=None):
    """Workbook bytes with Summary, Detailed Scans, Devices Only and Location Breakdown sheets."""
    results = list(results)
    stats = location_stats(results)
    generated_at = generated_at or utcnow()

    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        _summary_frame(results, stats, generated_at).to_excel(writer, sheet_name="Summary", index=False, header=False)
        _set_widths(writer.sheets["Summary"], [25, 15, 15, 20])

        _detailed_frame(results).to_excel(writer, sheet_name="Detailed Scans", index=False)
        _set_widths(writer.sheets["Detailed Scans"], [20, 15, 30, 15, 15, 20, 12, 25, 8])

        devices = _devices_frame(results)
        if not devices.empty:
            devices.to_excel(writer, sheet_name="Devices Only", index=False)
            _set_widths(writer.sheets["Devices Only"], [15, 15, 20, 12, 15, 20, 30])

        _location_frame(stats).to_excel(writer, sheet_name="Location Breakdown", index=False)
        _set_widths(writer.sheets["Location Breakdown"], [20, 12, 12, 20, 50])
    return buf.getvalue()


def report_filename(extension, generated_at=None):
    day = (generated_at or utcnow()).strftime("%Y-%m-%d")
    if extension == "xlsx":
        return f"QRCode_Scanner_Report_{day}.xlsx"
    return f"qrcode-scan-report-{day}.{extension}"


# --- QR LABELS ---
def generate_qr(data, box_size=10, border=4):
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    return qr.make_image(fill_color="black", back_color="white")


def qr_png_bytes(data):
    buf = io.BytesIO()
    generate_qr(data).save(buf, format="PNG")
    return buf.getvalue()


def generate_qr_sheet(assets):
    """PDF sticker sheet, three labels per row, one QR per asset code."""
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.add_page()

    w, h = 60, 35
    cols = 3
    x_start, y_start = 10, 10
    col_counter, row_counter = 0, 0

    for asset in assets:
        x = x_start + (col_counter * w)
        y = y_start + (row_counter * h)

        if y + h > 280:
            pdf.add_page()
            col_counter, row_counter = 0, 0
            x, y = x_start, y_start

        pdf.rect(x, y, w, h)
        code = str(asset.get("assetCode") or "")
        pdf.image(io.BytesIO(qr_png_bytes(code)), x=x + 2, y=y + 2, w=20, h=20)

        pdf.set_xy(x + 24, y + 5)
        pdf.set_font("Helvetica", "B", 9)
        pdf.multi_cell(34, 4, text=f"{str(asset.get('name') or '')[:15]}\n{str(asset.get('model') or '')[:15]}")

        pdf.set_font("Helvetica", size=7)
        pdf.set_xy(x + 24, y + 15)
        pdf.cell(34, 4, text=f"Code: {code}")
        pdf.set_xy(x + 24, y + 19)
        pdf.cell(34, 4, text=f"S/N: {asset.get('serialNumber') or '-'}")

        col_counter += 1
        if col_counter >= cols:
            col_counter = 0
            row_counter += 1

    return bytes(pdf.output())
