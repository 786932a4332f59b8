# Overview: Role -> section map; the single source for what each staff role may reach.

"""
Role based access.

Sections mirror the navigation: every role sees the dashboard and the sales
area; inventory, people and reports need MANAGER; finance and admin (users,
settings) are ADMIN only.

Inside the sales area, order entry and the cashier desk are split the same
way the counter is staffed: SALES staff write tickets, CASHIER staff take
payment and look up receipts.
"""

from __future__ import annotations


SECTIONS = ("dashboard", "sales", "inventory", "people", "reports", "finance", "admin")

ROLE_SECTIONS: dict[str, frozenset[str]] = {
    "ADMIN": frozenset(SECTIONS),
    "MANAGER": frozenset({"dashboard", "sales", "inventory", "people", "reports"}),
    "CASHIER": frozenset({"dashboard", "sales"}),
    "SALES": frozenset({"dashboard", "sales"}),
}

# Sub-areas of "sales"
CAPABILITY_ROLES: dict[str, frozenset[str]] = {
    "order_entry": frozenset({"ADMIN", "MANAGER", "SALES"}),
    "cashier": frozenset({"ADMIN", "MANAGER", "CASHIER"}),
    "receipts": frozenset({"ADMIN", "MANAGER", "CASHIER"}),
}


def allowed_sections(role: str | None) -> list[str]:
    granted = ROLE_SECTIONS.get(role or "", frozenset())
    return [s for s in SECTIONS if s in granted]


def allowed_capabilities(role: str | None) -> list[str]:
    return sorted(c for c, roles in CAPABILITY_ROLES.items() if role in roles)


def can_access(role: str | None, area: str) -> bool:
    """`area` is a section name or a sales capability."""
    if area in CAPABILITY_ROLES:
        return role in CAPABILITY_ROLES[area]
    return area in ROLE_SECTIONS.get(role or "", frozenset())
