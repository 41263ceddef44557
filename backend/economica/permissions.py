"""
Permission codes and role mappings.

Roles are fixed (admin, manager, cashier, customer); each maps to a set of
permission codes checked by @require_permission. Cart endpoints only need
an authenticated user, so storefront customers get no codes here beyond
viewing the catalog.
"""

# =============================================================================
# PERMISSION DEFINITIONS
# =============================================================================

# (code, description)
PERMISSION_DEFINITIONS = [
    ("VIEW_INVENTORY", "View products and stock levels"),
    ("MANAGE_PRODUCTS", "Create and edit products"),
    ("ADJUST_INVENTORY", "Manual stock adjustments"),
    ("CREATE_ORDER", "Scan products at the register"),
    ("PROCESS_PAYMENT", "Check out carts and confirm payments"),
    ("VIEW_SALES", "View orders and receipts"),
    ("HANDLE_RETURN", "Process refunds"),
    ("VIEW_SALES_REPORTS", "View sales reports"),
    ("MANAGE_USERS", "Create users"),
]


ROLES = ("admin", "manager", "cashier", "customer")

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [code for code, _ in PERMISSION_DEFINITIONS],

    "manager": [
        "VIEW_INVENTORY",
        "MANAGE_PRODUCTS",
        "ADJUST_INVENTORY",
        "CREATE_ORDER",
        "PROCESS_PAYMENT",
        "VIEW_SALES",
        "HANDLE_RETURN",
        "VIEW_SALES_REPORTS",
    ],

    "cashier": [
        # POS operations only
        "VIEW_INVENTORY",
        "CREATE_ORDER",
        "PROCESS_PAYMENT",
        "VIEW_SALES",
        "HANDLE_RETURN",
    ],

    "customer": [
        # Storefront checkout of their own cart
        "VIEW_INVENTORY",
        "PROCESS_PAYMENT",
    ],
}



def get_role_permissions(role):
    return set(DEFAULT_ROLE_PERMISSIONS.get(role, []))


def has_permission(role, code):
    return code in get_role_permissions(role)
