# config.py
import os

APP_VERSION = "3.0 Scan Ledger"

# Database
DB_NAME = "asset_manager.db"
DB_URL = os.environ.get("ASSET_SCANNER_DB_URL", f"sqlite:///{DB_NAME}")

# Backend: "local" uses the SQLite tables, "rest" talks to the API below
BACKEND = os.environ.get("ASSET_SCANNER_BACKEND", "local")
API_BASE_URL = os.environ.get("ASSET_SCANNER_API_URL", "http://localhost:5000/api").rstrip("/")
API_TIMEOUT = float(os.environ.get("ASSET_SCANNER_API_TIMEOUT", "8"))

LOG_LEVEL = os.environ.get("ASSET_SCANNER_LOG_LEVEL", "INFO")

# Roles
ROLE_SUPERADMIN = "superadmin"
ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_SUPERADMIN, ROLE_ADMIN, ROLE_USER)

# Local storage keys
SCAN_RESULTS_KEY = "qrcode-scan-results"
LOCATIONS_KEY = "qrcode-locations"

DEFAULT_LOCATIONS = ["Office Floor 1", "Office Floor 2", "Warehouse", "Conference Room A"]

# Scanner timing (seconds)
RESTART_DELAY = 0.5
SAVE_CONFIRM_DELAY = 1.5
SCAN_FPS = 10

# Camera indexes probed by OpenCV, e.g. "0,1,2"
CAMERA_INDEXES = [int(i) for i in os.environ.get("ASSET_SCANNER_CAMERA_INDEXES", "0,1").split(",") if i.strip()]

DEVICE_STATUSES = ["Active", "Inactive", "Maintenance", "Retired"]

# Column headers for the scan ledger table
SCAN_COLUMNS = [
    "Timestamp", "Location", "QR Code Data", "Device Type",
    "Device Model", "Device Serial", "Device Status", "Asset"
]
