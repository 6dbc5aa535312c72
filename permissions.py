import config

PERMISSIONS = (
    "view_overview",
    "view_assets", "create_assets", "update_assets", "delete_assets",
    "view_users", "create_users", "update_users", "delete_users",
    "view_suppliers", "create_suppliers", "update_suppliers", "delete_suppliers",
    "view_insurance", "create_insurance", "update_insurance", "delete_insurance",
    "use_qr_scanner",
    "edit_qr_data",
    "view_analytics",
    "manage_settings",
)

# --- ROLE MATRIX ---
ROLE_PERMISSIONS = {
    config.ROLE_SUPERADMIN: frozenset(PERMISSIONS),
    config.ROLE_ADMIN: frozenset([
        "view_overview",
        "view_assets",
        "view_users",
        "view_suppliers",
        "view_insurance",
        "use_qr_scanner",
        "view_analytics",
    ]),
    config.ROLE_USER: frozenset(["use_qr_scanner"]),
}

# Backend role names -> closed role set. Lookups are lower-cased first.
ROLE_ALIASES = {
    "superadmin": config.ROLE_SUPERADMIN,
    "super_admin": config.ROLE_SUPERADMIN,
    "administrator": config.ROLE_SUPERADMIN,
    "admin": config.ROLE_ADMIN,
    "manager": config.ROLE_ADMIN,
    "user": config.ROLE_USER,
    "employee": config.ROLE_USER,
    "staff": config.ROLE_USER,
}

ROLE_CONFIG = {
    config.ROLE_SUPERADMIN: {"label": "Super Admin", "color": "#7c3aed"},
    config.ROLE_ADMIN: {"label": "Admin", "color": "#2563eb"},
    config.ROLE_USER: {"label": "User", "color": "#16a34a"},
}

MENU_ITEMS = [
    {"id": "qr-scanner", "label": "QR Code Scanner"},
    {"id": "reports", "label": "Scan Reports"},
    {"id": "labels", "label": "Asset Labels"},
]

PANEL_PERMISSIONS = {
    "overview": "view_overview",
    "assets": "view_assets",
    "users": "view_users",
    "suppliers": "view_suppliers",
    "insurance": "view_insurance",
    "qr-scanner": "use_qr_scanner",
    "reports": "view_analytics",
    "labels": "view_assets",
}


def normalize_role(raw_role):
    """Map any upstream role string onto superadmin/admin/user.

    Unrecognised or missing input falls back to the least privileged role.
    """
    if not isinstance(raw_role, str):
        return config.ROLE_USER
    return ROLE_ALIASES.get(raw_role.strip().lower(), config.ROLE_USER)


def permissions_for(role):
    return ROLE_PERMISSIONS.get(role, frozenset())


def has_permission(role, permission):
    return permission in permissions_for(role)


def has_any_permission(role, permissions):
    granted = permissions_for(role)
    return any(p in granted for p in permissions)


def has_all_permissions(role, permissions):
    granted = permissions_for(role)
    return all(p in granted for p in permissions)


def has_role(role, required):
    if isinstance(required, (list, tuple, set, frozenset)):
        return role in required
    return role == required


# --- PANEL / CRUD HELPERS ---
def can_access_panel(role, panel):
    permission = PANEL_PERMISSIONS.get(panel)
    if permission is None:
        return False
    return has_permission(role, permission)


def can_create(role, resource):
    return has_permission(role, f"create_{resource}")


def can_update(role, resource):
    return has_permission(role, f"update_{resource}")


def can_delete(role, resource):
    return has_permission(role, f"delete_{resource}")


def can_edit_qr_data(role):
    return has_permission(role, "edit_qr_data")


def accessible_menu_items(role):
    return [item for item in MENU_ITEMS if can_access_panel(role, item["id"])]
