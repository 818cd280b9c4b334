"""
Permission constants and the static role mapping.

WHY: Authentication lives outside this service. The caller forwards the
actor's id and role in headers; this module only answers "may this role do
that?" so every route checks the same table.

DESIGN PRINCIPLES:
- One action per permission code
- Roles are a fixed lookup, not stored in the database
- Unknown roles have no permissions
"""

# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# Each permission is defined as: (code, name, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_PRODUCTS", "View Products", "Browse the catalog and pack variants"),
    ("MANAGE_PRODUCTS", "Manage Products", "Create products, import them and manage pack variants"),
    ("VIEW_INVENTORY", "View Inventory", "View stock levels and pack decompositions"),
    ("ADJUST_INVENTORY", "Adjust Inventory", "Record stock counts as reasoned adjustments"),
    ("CREATE_SALE", "Create Sale", "Quote carts and submit sales"),
    ("VIEW_SALES", "View Sales", "Look up completed sales"),
    ("VIEW_REPORTS", "View Reports", "Stock status and best-seller reports"),
]

ALL_PERMISSIONS = frozenset(code for code, _, _ in PERMISSION_DEFINITIONS)


# =============================================================================
# ROLE PERMISSION MAPPINGS
# =============================================================================

# - CASHIER: sell and look things up
# - MANAGER: cashier plus stock corrections, catalog upkeep and reports
# - ADMIN: everything

ROLE_PERMISSIONS = {
    "cashier": frozenset({
        "VIEW_PRODUCTS",
        "VIEW_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
    }),
    "manager": frozenset({
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "VIEW_INVENTORY",
        "ADJUST_INVENTORY",
        "CREATE_SALE",
        "VIEW_SALES",
        "VIEW_REPORTS",
    }),
    "admin": ALL_PERMISSIONS,
}


def role_has_permission(role: str | None, permission_code: str) -> bool:
    if not role:
        return False
    return permission_code in ROLE_PERMISSIONS.get(role.strip().lower(), frozenset())
